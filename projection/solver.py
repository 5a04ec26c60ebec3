"""Circular solver: interest, debt, cash and net result for all model years.

The cycle:
    interest expense -> net result -> cash shortfall -> short-term debt
    -> interest expense

is resolved by fixed-point iteration over a forward recurrence.

Iteration 1 (cold start) assumes zero interest everywhere. Every later
iteration is a pure function (SolverParams, previous pass) -> new pass:
interest is charged on the average of this pass's carried-forward balance
and the same year's closing balance from the previous pass.

Execution order per year (forward pass, first year -> last year):
    1.  Depreciation on opening fixed assets
    2.  Net result before zakat = EBITDA - depreciation - interest + interest income
    3.  Zakat on a positive result only
    4.  Working capital (AR, AP, deferred income, accrued expenses)
    5.  Operating and investing cash flow -> theoretical cash
    6.  Balancing: repay, hold or draw short-term debt to keep the cash floor
    7.  Fixed-asset roll, balance sheet, retained earnings

Balancing policy (short-term debt is the only lever):

    theoretical >= floor + prev_debt   repay all    cash = theoretical - prev_debt
    floor <= theoretical < ...          hold         cash = theoretical
    theoretical < floor                 draw gap     cash = floor
"""

from __future__ import annotations

import logging
import time
from typing import NamedTuple, Sequence

from projection.config import SolverConstants
from projection.errors import (
    CalcError, check_length, check_non_negative, check_rate, first_error,
)
from projection.formulas import calc_depreciation, calc_interest, calc_zakat
from projection.periods import first_year, total_years
from projection.types import SolverMetadata, SolverParams, SolverResult, YearState

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365.0


# ── Validation ──────────────────────────────────────────────────

def validate_solver_params(params: SolverParams) -> CalcError | None:
    n = total_years()
    s = params.settings
    wc = s.working_capital
    return first_error(
        check_length(params.revenue, "revenue", n),
        check_length(params.ebitda, "ebitda", n),
        check_length(params.capex, "capex", n),
        check_length(params.staff_costs, "staff_costs", n),
        check_non_negative(params.fixed_assets_opening, "fixed_assets_opening", "Opening fixed assets"),
        check_rate(params.depreciation_rate, "depreciation_rate"),
        check_non_negative(params.starting_cash, "starting_cash", "Starting cash"),
        check_non_negative(params.opening_equity, "opening_equity", "Opening equity"),
        check_rate(s.zakat_rate, "zakat_rate"),
        check_rate(s.debt_interest_rate, "debt_interest_rate"),
        check_rate(s.bank_deposit_interest_rate, "bank_deposit_interest_rate"),
        check_non_negative(s.minimum_cash_balance, "minimum_cash_balance", "Minimum cash balance"),
        check_non_negative(wc.ar_collection_days, "ar_collection_days", "AR collection days"),
        check_non_negative(wc.ap_payment_days, "ap_payment_days", "AP payment days"),
        check_rate(wc.deferral_factor, "deferral_factor"),
        check_non_negative(wc.accrual_days, "accrual_days", "Accrual days"),
    )


# ── Balancing ───────────────────────────────────────────────────

class Balanced(NamedTuple):
    cash: float
    short_term_debt: float
    financing_cash_flow: float


def balance_cash(theoretical_cash: float, previous_debt: float,
                 minimum_cash: float) -> Balanced:
    """Apply the debt policy to a pre-financing cash position."""
    if theoretical_cash >= minimum_cash + previous_debt:
        return Balanced(theoretical_cash - previous_debt, 0.0, -previous_debt)
    if theoretical_cash >= minimum_cash:
        return Balanced(theoretical_cash, previous_debt, 0.0)
    debt = previous_debt + (minimum_cash - theoretical_cash)
    return Balanced(minimum_cash, debt, debt - previous_debt)


# ── One forward pass ────────────────────────────────────────────

def forward_pass(params: SolverParams,
                 previous: Sequence[YearState] | None = None) -> tuple[YearState, ...]:
    """Run the per-year recurrence once.

    previous=None is the cold start (no interest). Otherwise previous must
    be the prior iteration's pass, one YearState per year.
    """
    s = params.settings
    wc = s.working_capital
    states = [YearState(year=params.first_year + i) for i in range(len(params.revenue))]

    prev_cash = params.starting_cash
    prev_debt = 0.0
    prev_fa = params.fixed_assets_opening
    prev_ar = prev_ap = prev_deferred = prev_accrued = 0.0
    retained = 0.0

    for i, st in enumerate(states):
        st.revenue = revenue = params.revenue[i]
        st.ebitda = params.ebitda[i]
        st.capex = params.capex[i]
        st.staff_costs = staff = params.staff_costs[i]

        if previous is not None:
            avg_debt = (prev_debt + previous[i].short_term_debt) / 2.0
            avg_cash = (prev_cash + previous[i].cash) / 2.0
            st.interest_expense = calc_interest(avg_debt, s.debt_interest_rate)
            st.interest_income = calc_interest(avg_cash, s.bank_deposit_interest_rate)

        # P&L tail
        st.depreciation = calc_depreciation(prev_fa, params.depreciation_rate)
        before_zakat = st.ebitda - st.depreciation - st.interest_expense + st.interest_income
        st.zakat = calc_zakat(before_zakat, s.zakat_rate)
        st.net_result = before_zakat - st.zakat

        # Working capital: asset increase uses cash, liability increase provides it
        st.accounts_receivable = revenue / DAYS_PER_YEAR * wc.ar_collection_days
        st.accounts_payable = staff / DAYS_PER_YEAR * wc.ap_payment_days
        st.deferred_income = revenue * wc.deferral_factor
        st.accrued_expenses = staff * (wc.accrual_days / DAYS_PER_YEAR)
        st.working_capital_change = (
            (st.accounts_receivable - prev_ar)
            - (st.accounts_payable - prev_ap)
            - (st.deferred_income - prev_deferred)
            - (st.accrued_expenses - prev_accrued)
        )

        # Cash flow before financing
        st.operating_cash_flow = st.net_result + st.depreciation - st.working_capital_change
        st.investing_cash_flow = -st.capex
        st.theoretical_cash = prev_cash + st.operating_cash_flow + st.investing_cash_flow

        bal = balance_cash(st.theoretical_cash, prev_debt, s.minimum_cash_balance)
        st.cash = bal.cash
        st.short_term_debt = bal.short_term_debt
        st.financing_cash_flow = bal.financing_cash_flow
        st.net_cash_flow = st.operating_cash_flow + st.investing_cash_flow + st.financing_cash_flow

        # Balance sheet
        st.fixed_assets = prev_fa + st.capex - st.depreciation
        retained += st.net_result
        st.retained_earnings = retained
        st.opening_equity = params.opening_equity
        st.total_equity = params.opening_equity + retained
        st.total_assets = st.cash + st.accounts_receivable + st.fixed_assets
        st.total_liabilities = (st.accounts_payable + st.deferred_income
                                + st.accrued_expenses + st.short_term_debt)

        prev_cash, prev_debt, prev_fa = st.cash, st.short_term_debt, st.fixed_assets
        prev_ar, prev_ap = st.accounts_receivable, st.accounts_payable
        prev_deferred, prev_accrued = st.deferred_income, st.accrued_expenses

    return tuple(states)


# ── Convergence ─────────────────────────────────────────────────

class ConvergenceCheck(NamedTuple):
    converged: bool
    max_error: float
    year_with_max_error: int
    error_type: str


def check_convergence(previous: Sequence[YearState], current: Sequence[YearState],
                      threshold: float, absolute_floor: float) -> ConvergenceCheck:
    """Compare net result year by year between two passes.

    Absolute error where the previous net result is near zero, relative
    error otherwise. Converged when every year is within threshold.
    """
    max_error = 0.0
    error_type = "relative"
    worst_year = current[0].year if current else first_year()
    converged = True

    for prev, curr in zip(previous, current):
        diff = abs(curr.net_result - prev.net_result)
        if abs(prev.net_result) < absolute_floor:
            error, kind = diff, "absolute"
        else:
            error, kind = diff / abs(prev.net_result), "relative"
        if error > max_error:
            max_error, error_type, worst_year = error, kind, curr.year
        if error > threshold:
            converged = False

    return ConvergenceCheck(converged, max_error, worst_year, error_type)


# ── Solver ──────────────────────────────────────────────────────

class CircularSolver:
    """Fixed-point solver over forward_pass. Stateless between calls."""

    def __init__(self, constants: SolverConstants | None = None):
        self.constants = constants or SolverConstants.load()

    def solve(self, params: SolverParams) -> SolverResult | CalcError:
        err = validate_solver_params(params)
        if err:
            return err

        c = self.constants
        started = time.perf_counter()

        current = forward_pass(params)
        check = ConvergenceCheck(False, 0.0, params.first_year, "relative")
        iterations = 1
        while iterations < c.max_iterations:
            previous = current
            current = forward_pass(params, previous)
            iterations += 1
            check = check_convergence(previous, current, c.convergence_threshold,
                                      c.absolute_error_threshold)
            if check.converged:
                break

        duration_ms = (time.perf_counter() - started) * 1000.0
        metadata = SolverMetadata(
            converged=check.converged,
            iterations=iterations,
            max_error=check.max_error,
            year_with_max_error=check.year_with_max_error,
            error_type=check.error_type,
            duration_ms=duration_ms,
            fallback_used=not check.converged,
        )

        if not check.converged:
            logger.warning(
                "Solver did not converge after %d iterations (max error %.6f in %d, %s)",
                iterations, check.max_error, check.year_with_max_error, check.error_type,
            )
        if duration_ms > c.slow_solve_ms:
            logger.warning("Slow solve: %.1f ms (target %.0f ms)", duration_ms, c.slow_solve_ms)
        logger.info("Solved %d years in %d iterations (max error %.6f, %.1f ms)",
                    len(current), iterations, check.max_error, duration_ms)

        return SolverResult(years=current, metadata=metadata)
