"""Projection orchestrator: calculators, resolver, solver, NPV, summary.

Architecture:
    PASS 1: Inputs. Validate params, read settings from the provider and
            historical/transition records from the data store. Unreachable
            sources log a warning and fall back to defaults.
    PASS 2: Operating lines per year. Tuition and enrollment -> revenue ->
            rent -> staff cost -> opex -> capex, each resolved through
            PeriodResolver, then EBITDA.
    PASS 3: Circular solve over the full model window.
    PASS 4: NPV over the NPV window, summary, per-year records.

Only the settings and data-store reads are awaited; the arithmetic is
synchronous and deterministic.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

from projection.capex import capex_from_rules, planned_capex, validate_capex_rule
from projection.config import ProjectionDefaults
from projection.data_store import HistoricalDataStore
from projection.ebitda import calculate_ebitda
from projection.errors import (
    CalcError, DataStoreError, ErrorCode, check_non_negative, check_rate, first_error, is_error,
)
from projection.formulas import safe_pct
from projection.growth import tuition_series, validate_growth
from projection.inputs import CapexItem, HistoricalActuals, ProjectionParams, TransitionYear
from projection.npv import calculate_npv
from projection.opex import calculate_opex, validate_sub_account
from projection.periods import all_years, dynamic_years, first_year, in_window, is_dynamic, last_year, npv_window, year_index
from projection.rent import calculate_rent, validate_rent_model
from projection.resolver import PeriodResolver
from projection.revenue import calculate_curriculum_revenue
from projection.settings import DefaultSettingsProvider, SettingsProvider
from projection.solver import CircularSolver
from projection.staff_costs import staff_cost_base_from_curricula, staff_cost_base_year, staff_cost_series
from projection.types import (
    ProjectionResult, ProjectionSummary, SolverParams, YearState, YearlyProjection,
)

logger = logging.getLogger(__name__)


# ── Validation ──────────────────────────────────────────────────

def validate_params(params: ProjectionParams) -> CalcError | None:
    """First problem in params, or None. Checks run in input order."""
    if not params.curricula:
        return CalcError(ErrorCode.EMPTY_CURRICULA, "At least one curriculum plan is required",
                         "curricula")
    if params.start_year > params.end_year:
        return CalcError(ErrorCode.INVALID_YEAR_RANGE,
                         f"Start year {params.start_year} is after end year {params.end_year}",
                         "start_year")
    for name, y in (("start_year", params.start_year), ("end_year", params.end_year)):
        if not in_window(y):
            return CalcError(ErrorCode.YEAR_OUT_OF_RANGE,
                             f"{name} {y} is outside {first_year()}-{last_year()}", name)

    for c in params.curricula:
        if not c.students_projection:
            return CalcError(ErrorCode.EMPTY_ENROLLMENT,
                             f"Curriculum {c.curriculum_type} has no students projection",
                             f"curricula.{c.curriculum_type}")
        err = first_error(
            check_non_negative(c.capacity, f"curricula.{c.curriculum_type}.capacity", "Capacity"),
            validate_growth(c.tuition_base, params.admin.cpi_rate, c.cpi_frequency,
                            f"curricula.{c.curriculum_type}.tuition_base"),
            *(check_non_negative(s, f"curricula.{c.curriculum_type}.students", f"Students {y}")
              for y, s in c.students_projection.items()),
        )
        if err:
            return err

    bs = params.balance_sheet
    err = first_error(
        validate_rent_model(params.rent_model),
        (check_non_negative(params.staff_cost_base, "staff_cost_base", "Staff cost base")
         if params.staff_cost_base is not None else None),
        check_rate(params.admin.discount_rate, "discount_rate"),
        check_rate(params.admin.zakat_rate, "zakat_rate") if params.admin.zakat_rate is not None else None,
        *(check_non_negative(item.amount, "capex_items", f"Capex {item.year}")
          for item in params.capex_items),
        *(validate_capex_rule(rule, first_year(), last_year()) for rule in params.capex_rules),
        *(validate_sub_account(a) for a in params.opex_sub_accounts),
        *(check_non_negative(v, "other_revenue_by_year", f"Other revenue {y}")
          for y, v in params.other_revenue_by_year.items()),
        check_rate(params.depreciation_rate, "depreciation_rate") if params.depreciation_rate is not None else None,
        check_non_negative(bs.starting_cash or 0.0, "starting_cash", "Starting cash"),
        check_non_negative(bs.opening_equity or 0.0, "opening_equity", "Opening equity"),
        check_non_negative(bs.fixed_assets_opening or 0.0, "fixed_assets_opening", "Opening fixed assets"),
        check_non_negative(params.transition.transition_rent, "transition_rent", "Transition rent"),
    )
    return err


# ── Inputs ──────────────────────────────────────────────────────

async def _load_overrides(
    params: ProjectionParams,
    store: HistoricalDataStore | None,
) -> tuple[tuple[HistoricalActuals, ...], tuple[TransitionYear, ...]]:
    """Records passed in params win; the rest come from the store."""
    historical = params.historical_actuals
    transition = params.transition_years
    if store is not None and params.version_id is not None:
        try:
            if historical is None:
                historical = tuple(await store.historical_actuals(params.version_id))
            if transition is None:
                transition = tuple(await store.transition_years(params.version_id))
        except (DataStoreError, OSError) as e:
            logger.warning("Historical data for version %s unavailable (%s); "
                           "continuing without overrides", params.version_id, e)
    return tuple(historical or ()), tuple(transition or ())


def _capex_plan(params: ProjectionParams) -> tuple[CapexItem, ...] | CalcError:
    """Manual capex items followed by the items reinvestment rules generate."""
    generated = capex_from_rules(params.capex_rules, params.admin.cpi_rate,
                                 first_year(), last_year())
    if is_error(generated):
        return generated
    return (*params.capex_items, *generated)


def _staff_cost_base(params: ProjectionParams) -> float | CalcError:
    """Explicit base, else derived from curriculum staffing in the base year."""
    if params.staff_cost_base is not None:
        return params.staff_cost_base
    base_year = staff_cost_base_year(params.version_mode)
    base = staff_cost_base_from_curricula(params.curricula, base_year)
    if not is_error(base):
        logger.info("Staff cost base %.2f derived from curriculum staffing for %d",
                    base, base_year)
    return base


# ── Operating lines ─────────────────────────────────────────────

@dataclass
class _YearLines:
    year: int
    revenue: float
    staff_cost: float
    rent: float
    opex: float
    capex: float
    ebitda: float
    ebitda_margin: float
    rent_load: float
    tuition: dict[str, float] = field(default_factory=dict)
    enrollment: dict[str, int] = field(default_factory=dict)
    sources: dict[str, str] = field(default_factory=dict)


def _operating_lines(
    params: ProjectionParams,
    resolver: PeriodResolver,
    defaults: ProjectionDefaults,
    capex_plan: tuple[CapexItem, ...],
) -> dict[int, _YearLines] | CalcError:
    years = range(params.start_year, params.end_year + 1)
    cpi = params.admin.cpi_rate

    tuition: dict[str, dict[int, float]] = {}
    for c in params.curricula:
        series = tuition_series(c.tuition_base, cpi, params.start_year, years, c.cpi_frequency)
        if is_error(series):
            return series
        tuition[c.curriculum_type] = series

    frequency = params.staff_cost_cpi_frequency or defaults.staff_cost_cpi_frequency
    staff_base = _staff_cost_base(params)
    if is_error(staff_base):
        return staff_base
    staff_calc = staff_cost_series(staff_base, cpi,
                                   staff_cost_base_year(params.version_mode), years, frequency)
    if is_error(staff_calc):
        return staff_calc

    planned = planned_capex(capex_plan)

    lines: dict[int, _YearLines] = {}
    for y in years:
        projected = {c.curriculum_type: c.students(y) for c in params.curricula}
        enrollment = resolver.resolve_enrollment(y, projected)

        tuition_revenue = 0.0
        for c in params.curricula:
            r = calculate_curriculum_revenue(tuition[c.curriculum_type][y],
                                             enrollment[c.curriculum_type].value)
            if is_error(r):
                return r
            tuition_revenue += r

        revenue = resolver.resolve_revenue(y, tuition_revenue, params.other_revenue(y))

        model_rent = 0.0
        if is_dynamic(y):
            model_rent = calculate_rent(params.rent_model, y, revenue.value)
            if is_error(model_rent):
                return model_rent
        rent = resolver.resolve_rent(y, model_rent)

        staff = resolver.resolve_staff_cost(y, staff_calc[y])

        opex_calc = calculate_opex(revenue.value, params.opex_sub_accounts)
        if is_error(opex_calc):
            return opex_calc
        opex = resolver.resolve_opex(y, opex_calc)

        capex = resolver.resolve_capex(y, planned.get(y, 0.0))

        eb = calculate_ebitda(revenue.value, staff.value, rent.value, opex.value)
        if is_error(eb):
            return eb

        enrollment_source = next(iter(enrollment.values())).source.value if enrollment else ""
        lines[y] = _YearLines(
            year=y,
            revenue=revenue.value,
            staff_cost=staff.value,
            rent=rent.value,
            opex=opex.value,
            capex=capex.value,
            ebitda=eb.ebitda,
            ebitda_margin=eb.margin,
            rent_load=safe_pct(rent.value, revenue.value),
            tuition={k: v[y] for k, v in tuition.items()},
            enrollment={k: int(v.value) for k, v in enrollment.items()},
            sources={
                "enrollment": enrollment_source,
                "revenue": revenue.source.value,
                "staff_cost": staff.source.value,
                "rent": rent.source.value,
                "opex": opex.source.value,
                "capex": capex.source.value,
            },
        )
    return lines


# ── Solver inputs ───────────────────────────────────────────────

def _opening_fixed_assets(params: ProjectionParams, capex_plan: tuple[CapexItem, ...],
                          starting_cash: float, opening_equity: float) -> float:
    """Explicit value, else capex dated before the range, else the balancing plug."""
    explicit = params.balance_sheet.fixed_assets_opening
    if explicit is not None:
        return explicit
    prior = [item.amount for item in capex_plan if item.year < params.start_year]
    if prior:
        return sum(prior)
    return max(opening_equity - starting_cash, 0.0)


def _solver_arrays(lines: dict[int, _YearLines]) -> tuple[tuple[float, ...], ...]:
    """Revenue, EBITDA, capex and staff cost over the full model window.

    Years outside the requested range are zero.
    """
    revenue, ebitda, capex, staff = [], [], [], []
    for y in all_years():
        ln = lines.get(y)
        revenue.append(ln.revenue if ln else 0.0)
        ebitda.append(ln.ebitda if ln else 0.0)
        capex.append(ln.capex if ln else 0.0)
        staff.append(ln.staff_cost if ln else 0.0)
    return tuple(revenue), tuple(ebitda), tuple(capex), tuple(staff)


def _yearly(ln: _YearLines, st: YearState) -> YearlyProjection:
    return YearlyProjection(
        year=ln.year,
        revenue=ln.revenue,
        staff_cost=ln.staff_cost,
        rent=ln.rent,
        opex=ln.opex,
        ebitda=ln.ebitda,
        ebitda_margin=ln.ebitda_margin,
        rent_load=ln.rent_load,
        capex=ln.capex,
        depreciation=st.depreciation,
        interest_expense=st.interest_expense,
        interest_income=st.interest_income,
        zakat=st.zakat,
        net_result=st.net_result,
        working_capital_change=st.working_capital_change,
        operating_cash_flow=st.operating_cash_flow,
        investing_cash_flow=st.investing_cash_flow,
        financing_cash_flow=st.financing_cash_flow,
        net_cash_flow=st.net_cash_flow,
        cash=st.cash,
        accounts_receivable=st.accounts_receivable,
        fixed_assets=st.fixed_assets,
        total_assets=st.total_assets,
        accounts_payable=st.accounts_payable,
        deferred_income=st.deferred_income,
        accrued_expenses=st.accrued_expenses,
        short_term_debt=st.short_term_debt,
        total_liabilities=st.total_liabilities,
        opening_equity=st.opening_equity,
        retained_earnings=st.retained_earnings,
        total_equity=st.total_equity,
        theoretical_cash=st.theoretical_cash,
        tuition=ln.tuition,
        enrollment=ln.enrollment,
        sources=ln.sources,
    )


def _summary(years: list[YearlyProjection], npv_rent: float, npv_cash_flow: float,
             start_year: int, end_year: int) -> ProjectionSummary:
    dyn = set(dynamic_years(start_year, end_year))
    loads = [y.rent_load for y in years if y.year in dyn]
    return ProjectionSummary(
        total_revenue=sum(y.revenue for y in years),
        total_staff_cost=sum(y.staff_cost for y in years),
        total_rent=sum(y.rent for y in years),
        total_opex=sum(y.opex for y in years),
        total_ebitda=sum(y.ebitda for y in years),
        total_capex=sum(y.capex for y in years),
        total_cash_flow=sum(y.net_cash_flow for y in years),
        npv_rent=npv_rent,
        npv_cash_flow=npv_cash_flow,
        avg_ebitda_margin=sum(y.ebitda_margin for y in years) / len(years) if years else 0.0,
        avg_rent_load=sum(loads) / len(loads) if loads else 0.0,
    )


# ── Orchestrator ────────────────────────────────────────────────

async def run_projection(
    params: ProjectionParams,
    *,
    settings_provider: SettingsProvider | None = None,
    data_store: HistoricalDataStore | None = None,
    solver: CircularSolver | None = None,
) -> ProjectionResult | CalcError:
    """Run the full projection. Validation problems come back as CalcError."""
    started = time.perf_counter()

    # ═══ PASS 1: Inputs ═══
    err = validate_params(params)
    if err:
        return err

    provider = settings_provider or DefaultSettingsProvider()
    settings = (await provider.get_settings()).with_zakat(params.admin.zakat_rate)
    historical, transition = await _load_overrides(params, data_store)
    resolver = PeriodResolver(historical, transition, params.transition)
    defaults = ProjectionDefaults.load()

    # ═══ PASS 2: Operating lines ═══
    capex_plan = _capex_plan(params)
    if is_error(capex_plan):
        return capex_plan
    lines = _operating_lines(params, resolver, defaults, capex_plan)
    if is_error(lines):
        return lines

    # ═══ PASS 3: Circular solve ═══
    bs = params.balance_sheet
    starting_cash = bs.starting_cash if bs.starting_cash is not None else defaults.starting_cash
    opening_equity = bs.opening_equity if bs.opening_equity is not None else defaults.opening_equity
    fa_opening = _opening_fixed_assets(params, capex_plan, starting_cash, opening_equity)
    # Any opening gap would carry into every year's A = L + E
    opening_gap = starting_cash + fa_opening - opening_equity
    if abs(opening_gap) >= 0.01:
        return CalcError(
            ErrorCode.UNBALANCED_OPENING,
            f"Opening balance sheet is out of balance by {opening_gap:.2f} "
            f"(cash {starting_cash:.2f} + fixed assets {fa_opening:.2f} "
            f"vs equity {opening_equity:.2f})",
            "balance_sheet",
        )

    revenue, ebitda, capex, staff = _solver_arrays(lines)
    solved = (solver or CircularSolver()).solve(SolverParams(
        revenue=revenue,
        ebitda=ebitda,
        capex=capex,
        staff_costs=staff,
        fixed_assets_opening=fa_opening,
        depreciation_rate=(params.depreciation_rate if params.depreciation_rate is not None
                           else defaults.depreciation_rate),
        starting_cash=starting_cash,
        opening_equity=opening_equity,
        settings=settings,
        first_year=first_year(),
    ))
    if is_error(solved):
        return solved

    # ═══ PASS 4: NPV, records, summary ═══
    years = [_yearly(lines[y], solved.years[year_index(y)])
             for y in range(params.start_year, params.end_year + 1)]

    window = npv_window(params.start_year, params.end_year)
    rate = params.admin.discount_rate
    npv_rent = calculate_npv({y.year: y.rent for y in years}, rate, window)
    npv_cash_flow = calculate_npv({y.year: y.net_cash_flow for y in years}, rate, window)
    for v in (npv_rent, npv_cash_flow):
        if is_error(v):
            return v

    return ProjectionResult(
        years=tuple(years),
        summary=_summary(years, npv_rent, npv_cash_flow, params.start_year, params.end_year),
        metadata=solved.metadata,
        duration_ms=(time.perf_counter() - started) * 1000.0,
    )


def run_projection_sync(
    params: ProjectionParams,
    *,
    settings_provider: SettingsProvider | None = None,
    data_store: HistoricalDataStore | None = None,
    solver: CircularSolver | None = None,
) -> ProjectionResult | CalcError:
    """Blocking wrapper around run_projection for scripts and the audit CLI."""
    return asyncio.run(run_projection(
        params, settings_provider=settings_provider, data_store=data_store, solver=solver,
    ))
