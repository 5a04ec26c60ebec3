import asyncio
import logging

import pytest

from projection.errors import CalcError, DataStoreError, ErrorCode, is_error
from projection.inputs import (
    AdminSettings, BalanceSheetSettings, CapexItem, CapexRule, CurriculumPlan, FixedEscalationRent,
    HistoricalActuals, OpexSubAccount, ProjectionParams, TransitionSettings, TransitionYear,
)
from projection.npv import calculate_npv
from projection.data_store import InMemoryDataStore
from projection.orchestrator import run_projection, run_projection_sync
from projection.settings import StaticSettingsProvider
from projection.types import FinancialSettings
from projection.value_tags import ValueType

YEARS = range(2023, 2053)
SETTINGS = FinancialSettings()


def _curriculum(name="FR", students=1000, tuition=50_000.0, frequency=1):
    return CurriculumPlan(name, capacity=2000, tuition_base=tuition, cpi_frequency=frequency,
                          students_projection={y: students for y in YEARS})


def _params(**overrides) -> ProjectionParams:
    base = dict(
        curricula=(_curriculum(),),
        rent_model=FixedEscalationRent(10_000_000.0, 0.03),
        staff_cost_base=15_000_000.0,
        capex_items=(CapexItem(2030, 5_000_000.0),),
        opex_sub_accounts=(OpexSubAccount("Operations", percent_of_revenue=5.0),),
        admin=AdminSettings(cpi_rate=0.02, discount_rate=0.08),
    )
    base.update(overrides)
    return ProjectionParams(**base)


def _run(params, **kwargs):
    kwargs.setdefault("settings_provider", StaticSettingsProvider(SETTINGS))
    result = run_projection_sync(params, **kwargs)
    assert not is_error(result), result
    return result


# ── Full run ────────────────────────────────────────────────────

def test_full_projection_balances_every_year():
    result = _run(_params())
    assert [y.year for y in result.years] == list(YEARS)
    assert result.metadata.converged
    for y in result.years:
        assert abs(y.balance_gap) < 0.01
        assert y.cash >= SETTINGS.minimum_cash_balance - 0.01
        assert y.short_term_debt >= 0.0


def test_operating_lines_follow_calculators():
    result = _run(_params())
    y2030 = result.year(2030)
    tuition = 50_000.0 * 1.02 ** 7
    assert y2030.tuition["FR"] == pytest.approx(tuition)
    assert y2030.revenue == pytest.approx(1000 * tuition)
    assert y2030.rent == pytest.approx(10_000_000.0 * 1.03 ** 2)
    assert y2030.staff_cost == pytest.approx(15_000_000.0 * 1.02 ** 2)
    assert y2030.opex == pytest.approx(y2030.revenue * 0.05)
    assert y2030.capex == 5_000_000.0
    assert y2030.ebitda == pytest.approx(y2030.revenue - y2030.staff_cost - y2030.rent - y2030.opex)


def test_staff_cost_before_relocation_is_deflated():
    result = _run(_params())
    assert result.year(2027).staff_cost == pytest.approx(15_000_000.0 / 1.02)
    assert result.year(2028).staff_cost == pytest.approx(15_000_000.0)


def test_rent_outside_dynamic_period():
    result = _run(_params(transition=TransitionSettings(transition_rent=6_000_000.0)))
    assert result.year(2023).rent == 0.0
    assert result.year(2026).rent == 6_000_000.0
    assert result.year(2026).sources["rent"] == "TRANSITION_FALLBACK"


def test_projection_is_idempotent():
    a = _run(_params())
    b = _run(_params())
    assert [y.to_row() for y in a.years] == [y.to_row() for y in b.years]
    assert a.summary == b.summary


def test_zero_enrollment_gives_zero_ratios():
    result = _run(_params(curricula=(_curriculum(students=0),)))
    y = result.year(2030)
    assert y.revenue == 0.0
    assert y.ebitda_margin == 0.0
    assert y.rent_load == 0.0


def test_async_entry_point():
    result = asyncio.run(run_projection(_params(), settings_provider=StaticSettingsProvider(SETTINGS)))
    assert len(result.years) == 30


# ── Validation ──────────────────────────────────────────────────

@pytest.mark.parametrize("overrides, code", [
    (dict(curricula=()), ErrorCode.EMPTY_CURRICULA),
    (dict(start_year=2030, end_year=2029), ErrorCode.INVALID_YEAR_RANGE),
    (dict(end_year=2060), ErrorCode.YEAR_OUT_OF_RANGE),
    (dict(curricula=(CurriculumPlan("FR", 100, 50_000.0, 1, {}),)), ErrorCode.EMPTY_ENROLLMENT),
    (dict(curricula=(_curriculum(frequency=4),)), ErrorCode.INVALID_FREQUENCY),
    (dict(staff_cost_base=-1.0), ErrorCode.NEGATIVE_AMOUNT),
    (dict(admin=AdminSettings(0.02, 1.5)), ErrorCode.INVALID_RATE),
    (dict(capex_items=(CapexItem(2030, -5.0),)), ErrorCode.NEGATIVE_AMOUNT),
    (dict(rent_model=FixedEscalationRent(0.0, 0.03)), ErrorCode.NEGATIVE_AMOUNT),
    (dict(capex_rules=(CapexRule("IT", 0, 1_000_000.0, 2030),)), ErrorCode.INVALID_FREQUENCY),
    (dict(staff_cost_base=None), ErrorCode.MISSING_PARAMETER),
])
def test_invalid_params_return_error(overrides, code):
    result = run_projection_sync(_params(**overrides), settings_provider=StaticSettingsProvider(SETTINGS))
    assert isinstance(result, CalcError)
    assert result.code is code


# ── Historical and transition records ───────────────────────────

def test_historical_actuals_from_params():
    actuals = (HistoricalActuals(2023, revenue=40_000_000.0, staff_cost=12_000_000.0,
                                 rent=1_000_000.0, opex=2_000_000.0, capex=0.0),)
    y = _run(_params(historical_actuals=actuals)).year(2023)
    assert y.revenue == 40_000_000.0
    assert y.ebitda == 25_000_000.0
    assert set(y.sources.values()) == {"HISTORICAL", "CALCULATED"}
    assert y.sources["revenue"] == "HISTORICAL"
    assert y.sources["enrollment"] == "CALCULATED"


def test_records_loaded_from_data_store():
    store = InMemoryDataStore()
    store.put_historical("v1", [HistoricalActuals(2024, revenue=45_000_000.0)])
    store.put_transition("v1", [TransitionYear(2026, target_enrollment=800)])

    result = _run(_params(version_id="v1"), data_store=store)
    assert result.year(2024).revenue == 45_000_000.0
    assert result.year(2026).enrollment == {"FR": 800}
    assert result.year(2026).sources["enrollment"] == "TRANSITION_EXPLICIT"


def test_params_records_take_precedence_over_store():
    store = InMemoryDataStore()
    store.put_historical("v1", [HistoricalActuals(2024, revenue=45_000_000.0)])
    params = _params(version_id="v1", historical_actuals=(HistoricalActuals(2024, revenue=1.0),))
    assert _run(params, data_store=store).year(2024).revenue == 1.0


class _BrokenStore:
    async def historical_actuals(self, version_id):
        raise DataStoreError("database offline")

    async def transition_years(self, version_id):
        raise DataStoreError("database offline")


def test_unreachable_store_logs_and_continues(caplog):
    with caplog.at_level(logging.WARNING, logger="projection.orchestrator"):
        result = _run(_params(version_id="v1"), data_store=_BrokenStore())
    assert "unavailable" in caplog.text
    assert result.year(2023).sources["revenue"] == "CALCULATED"


def test_transition_enrollment_is_capped():
    params = _params(curricula=(_curriculum("FR", 1500), _curriculum("IB", 500)))
    y = _run(params).year(2025)
    assert y.enrollment == {"FR": 1387, "IB": 462}
    assert y.sources["enrollment"] == "TRANSITION_FALLBACK"
    assert _run(params).year(2030).enrollment == {"FR": 1500, "IB": 500}


# ── Settings ────────────────────────────────────────────────────

def test_admin_zakat_overrides_provider():
    result = _run(_params(admin=AdminSettings(0.02, 0.08, zakat_rate=0.0)))
    assert all(y.zakat == 0.0 for y in result.years)


def test_provider_zakat_applies():
    result = _run(_params(), settings_provider=StaticSettingsProvider(FinancialSettings(zakat_rate=0.0)))
    assert all(y.zakat == 0.0 for y in result.years)
    taxed = _run(_params())
    assert any(y.zakat > 0 for y in taxed.years)


def test_unbalanced_opening_is_rejected():
    params = _params(balance_sheet=BalanceSheetSettings(5_000_000.0, 55_000_000.0, 10_000_000.0))
    err = run_projection_sync(params, settings_provider=StaticSettingsProvider(SETTINGS))
    assert isinstance(err, CalcError)
    assert err.code is ErrorCode.UNBALANCED_OPENING
    assert err.field == "balance_sheet"
    assert "-40000000.00" in err.message


def test_explicit_balanced_opening_is_accepted():
    params = _params(balance_sheet=BalanceSheetSettings(5_000_000.0, 55_000_000.0, 50_000_000.0))
    result = _run(params)
    assert abs(result.year(2023).balance_gap) < 0.01


def test_staff_cost_base_derived_from_staffing():
    staffed = CurriculumPlan("FR", capacity=2000, tuition_base=50_000.0, cpi_frequency=1,
                             students_projection={y: 1000 for y in YEARS},
                             teacher_ratio=0.0714, non_teacher_ratio=0.0385,
                             teacher_monthly_salary=20_000.0, non_teacher_monthly_salary=15_000.0)
    result = _run(_params(curricula=(staffed,), staff_cost_base=None))
    base = 1000 * (0.0714 * 20_000.0 + 0.0385 * 15_000.0) * 12
    assert result.year(2028).staff_cost == pytest.approx(base)
    assert result.year(2030).staff_cost == pytest.approx(base * 1.02 ** 2)


def test_explicit_staff_cost_base_wins_over_staffing():
    staffed = CurriculumPlan("FR", 2000, 50_000.0, 1, {y: 1000 for y in YEARS},
                             teacher_ratio=0.5, non_teacher_ratio=0.5,
                             teacher_monthly_salary=1.0, non_teacher_monthly_salary=1.0)
    assert _run(_params(curricula=(staffed,))).year(2028).staff_cost == pytest.approx(15_000_000.0)


def test_capex_rules_add_to_manual_items():
    result = _run(_params(capex_rules=(CapexRule("IT", 5, 1_000_000.0, 2030),)))
    assert result.year(2030).capex == pytest.approx(6_000_000.0)
    assert result.year(2035).capex == pytest.approx(1_000_000.0 * 1.02 ** 5)
    assert result.year(2031).capex == 0.0
    assert result.summary.total_capex == pytest.approx(
        5_000_000.0 + sum(1_000_000.0 * 1.02 ** (y - 2030) for y in range(2030, 2053, 5)))


def test_opening_fixed_assets_from_prior_capex():
    params = _params(capex_items=(CapexItem(2022, 50_000_000.0),))
    y = _run(params).year(2023)
    assert y.depreciation == pytest.approx(5_000_000.0)
    assert y.capex == 0.0


# ── NPV and summary ─────────────────────────────────────────────

def test_npv_over_dynamic_window():
    result = _run(_params())
    rents = {y.year: y.rent for y in result.years}
    flows = {y.year: y.net_cash_flow for y in result.years}
    assert result.summary.npv_rent == pytest.approx(calculate_npv(rents, 0.08, range(2028, 2053)))
    assert result.summary.npv_cash_flow == pytest.approx(calculate_npv(flows, 0.08, range(2028, 2053)))
    assert result.summary.total_revenue == pytest.approx(sum(y.revenue for y in result.years))


def test_npv_is_zero_without_dynamic_years():
    result = _run(_params(start_year=2023, end_year=2027))
    assert len(result.years) == 5
    assert result.summary.npv_rent == 0.0
    assert result.summary.npv_cash_flow == 0.0
    assert result.summary.avg_rent_load == 0.0


# ── Output shapes ───────────────────────────────────────────────

def test_dataframes_are_tagged():
    dfs = _run(_params(curricula=(_curriculum("FR"), _curriculum("IB", 300)))).dataframes
    annual = dfs["annual"]
    assert len(annual) == 30
    assert annual.attrs["col_tags"]["revenue"] is ValueType.REVENUE
    assert annual.attrs["col_units"]["ebitda_margin"] == "%"
    assert dfs["sources"].attrs["col_tags"]["rent"] is ValueType.SOURCE
    assert dfs["enrollment"].attrs["col_tags"]["IB"] is ValueType.VOLUME
    assert dfs["summary"].attrs["col_tags"]["total_revenue"] is ValueType.REVENUE


def test_to_dict_is_plain_data():
    d = _run(_params()).to_dict()
    assert len(d["years"]) == 30
    assert d["metadata"]["converged"] is True
    assert d["years"][0]["sources"]["revenue"] == "CALCULATED"
    assert type(d["years"][0]["enrollment"]) is dict


def test_yearly_drivers_are_read_only():
    y = _run(_params()).year(2030)
    with pytest.raises(TypeError):
        y.sources["rent"] = "HISTORICAL"
    with pytest.raises(TypeError):
        y.enrollment["FR"] = 0
    with pytest.raises(TypeError):
        y.tuition["FR"] = 0.0
    assert y.sources["rent"] == "CALCULATED"
