"""Pure audit check functions for a finished projection.

Each function takes projection data and returns a list of check result tuples:
    (section: str, name: str, expected: float, actual: float, delta: float, passed: bool)

All checks read from YearlyProjection records, never from solver internals.
"""

from __future__ import annotations

from typing import Sequence

from projection.types import SolverMetadata, YearlyProjection

TOLERANCE = 0.01  # SAR


# ── Helper ────────────────────────────────────────────────────────

def _check(results: list, section: str, name: str,
           expected: float, actual: float, tolerance: float = TOLERANCE) -> None:
    """Append a single check result to the results list."""
    delta = abs(expected - actual)
    ok = delta <= tolerance
    results.append((section, name, expected, actual, delta, ok))


def _check_floor(results: list, section: str, name: str,
                 floor: float, actual: float, tolerance: float = TOLERANCE) -> None:
    """One-sided check: actual must not fall below floor."""
    delta = max(0.0, floor - actual)
    results.append((section, name, floor, actual, delta, delta <= tolerance))


# ── Classification ────────────────────────────────────────────────

def classify_check(section: str, name: str) -> str:
    """Return 'identity' or 'policy' for a check.

    Identities are accounting arithmetic that must always hold. Policy
    checks cover the balancing rules and solver convergence.
    """
    if section in ("POLICY", "SOLVER"):
        return "policy"
    return "identity"


# ── P&L ───────────────────────────────────────────────────────────

def check_pnl(years: Sequence[YearlyProjection], zakat_rate: float | None = None) -> list[tuple]:
    """EBITDA, net result and zakat identities."""
    results: list[tuple] = []
    sec = "P&L"

    for a in years:
        y = a.year
        _check(results, sec, f"Y{y} Rev - Staff - Rent - Opex = EBITDA",
               a.revenue - a.staff_cost - a.rent - a.opex, a.ebitda)

        before_zakat = a.ebitda - a.depreciation - a.interest_expense + a.interest_income
        _check(results, sec, f"Y{y} EBITDA - Depr - IE + II - Zakat = NR",
               before_zakat - a.zakat, a.net_result)

        if before_zakat < 0:
            _check(results, sec, f"Y{y} No zakat on a loss", 0.0, a.zakat)
        elif zakat_rate is not None:
            _check(results, sec, f"Y{y} Zakat = max(NR before zakat, 0) x rate",
                   before_zakat * zakat_rate, a.zakat)

        expected_margin = a.ebitda / a.revenue * 100.0 if a.revenue else 0.0
        _check(results, sec, f"Y{y} EBITDA margin", expected_margin, a.ebitda_margin, 1e-9)

    return results


# ── Cash Flow ─────────────────────────────────────────────────────

def check_cash_flow(years: Sequence[YearlyProjection]) -> list[tuple]:
    """Cash flow build-up and net cash flow = change in cash."""
    results: list[tuple] = []
    sec = "CF"
    if not years:
        return results

    first = years[0]
    prev_cash = first.theoretical_cash - first.operating_cash_flow - first.investing_cash_flow

    for a in years:
        y = a.year
        _check(results, sec, f"Y{y} NR + Depr - dWC = CF Ops",
               a.net_result + a.depreciation - a.working_capital_change, a.operating_cash_flow)
        _check(results, sec, f"Y{y} CF Invest = -Capex", -a.capex, a.investing_cash_flow)
        _check(results, sec, f"Y{y} Ops + Invest + Fin = Net CF",
               a.operating_cash_flow + a.investing_cash_flow + a.financing_cash_flow,
               a.net_cash_flow)
        _check(results, sec, f"Y{y} Net CF = Cash - prior Cash",
               a.cash - prev_cash, a.net_cash_flow)
        prev_cash = a.cash

    return results


# ── Balance Sheet ─────────────────────────────────────────────────

def check_balance_sheet(years: Sequence[YearlyProjection]) -> list[tuple]:
    """Totals, A = L + E, retained earnings and fixed asset rolls."""
    results: list[tuple] = []
    sec = "BS"
    prev: YearlyProjection | None = None

    for a in years:
        y = a.year
        _check(results, sec, f"Y{y} Cash + AR + FA = Total Assets",
               a.cash + a.accounts_receivable + a.fixed_assets, a.total_assets)
        _check(results, sec, f"Y{y} AP + Deferred + Accrued + Debt = Total Liabilities",
               a.accounts_payable + a.deferred_income + a.accrued_expenses + a.short_term_debt,
               a.total_liabilities)
        _check(results, sec, f"Y{y} Opening Equity + RE = Total Equity",
               a.opening_equity + a.retained_earnings, a.total_equity)
        _check(results, sec, f"Y{y} Assets - Liabilities - Equity = 0", 0.0, a.balance_gap)

        if prev is not None:
            _check(results, sec, f"Y{y} RE = prior RE + NR",
                   prev.retained_earnings + a.net_result, a.retained_earnings)
            _check(results, sec, f"Y{y} FA = prior FA + Capex - Depr",
                   prev.fixed_assets + a.capex - a.depreciation, a.fixed_assets)
        prev = a

    return results


# ── Balancing policy ──────────────────────────────────────────────

def check_policy(years: Sequence[YearlyProjection], minimum_cash: float) -> list[tuple]:
    """Cash floor held and debt never negative."""
    results: list[tuple] = []
    sec = "POLICY"
    for a in years:
        _check_floor(results, sec, f"Y{a.year} Cash >= minimum", minimum_cash, a.cash)
        _check_floor(results, sec, f"Y{a.year} Debt >= 0", 0.0, a.short_term_debt)
    return results


def check_solver(metadata: SolverMetadata) -> list[tuple]:
    results: list[tuple] = []
    _check(results, "SOLVER", f"Converged in {metadata.iterations} iteration(s)",
           1.0, 1.0 if metadata.converged else 0.0, 0.0)
    return results
