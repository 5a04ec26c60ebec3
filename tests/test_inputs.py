import pytest

from projection.config import load_default_scenario
from projection.inputs import (
    CapexRule, FixedEscalationRent, HistoricalActuals, PartnerModelRent, ProjectionParams, RentModelType,
    RevenueShareRent, VersionMode, rent_model_from_dict,
)


def test_default_scenario_parses():
    p = ProjectionParams.from_dict(load_default_scenario())
    assert [c.curriculum_type for c in p.curricula] == ["FR", "IB"]
    assert p.curricula[0].students(2030) == 1450
    assert len(p.curricula[1].students_projection) == 30
    assert p.rent_model == FixedEscalationRent(10_000_000.0, 0.03, 2)
    assert p.other_revenue(2029) == 1_500_000.0
    assert p.other_revenue(2040) == 0.0
    assert p.opex_sub_accounts[1].is_fixed
    assert p.admin.zakat_rate is None
    assert p.balance_sheet.fixed_assets_opening is None
    assert p.transition.capacity_cap == 1850
    assert p.version_mode is VersionMode.RELOCATION_2028
    assert p.historical_actuals is None


def test_year_records_as_list():
    d = dict(load_default_scenario(), otherRevenueByYear=[{"year": 2030, "amount": 250}])
    assert ProjectionParams.from_dict(d).other_revenue_by_year == {2030: 250.0}


def test_rent_variants_from_dict():
    share = rent_model_from_dict("REVENUE_SHARE", {"revenueSharePercent": 0.08, "minimumRent": 5e6})
    assert share == RevenueShareRent(0.08, 5_000_000.0)
    assert share.model is RentModelType.REVENUE_SHARE

    partner = rent_model_from_dict("PARTNER_MODEL", {
        "landSize": 10000, "landPricePerSqm": 500, "buaSize": 8000,
        "constructionCostPerSqm": 2500, "yieldBase": 0.08,
    })
    assert isinstance(partner, PartnerModelRent)
    assert partner.growth_rate == 0.0
    assert partner.frequency == 1


def test_unknown_rent_model():
    with pytest.raises(ValueError, match="Unknown rent model"):
        rent_model_from_dict("LEASEHOLD", {})


def test_statement_row_without_expense_lines():
    h = HistoricalActuals.from_statement({"year": 2023, "totalRevenues": 1000})
    assert h == HistoricalActuals(2023, revenue=1000.0, staff_cost=0.0, rent=0.0)


def test_capex_rules_and_staffing_from_dict():
    d = dict(load_default_scenario(),
             capexRules=[{"category": "IT", "cycleYears": 5, "baseCost": 1e6, "startingYear": 2030}])
    d.pop("staffCostBase")
    d["curricula"] = [dict(c, teacherRatio=7.14, nonTeacherRatio=3.85,
                           teacherMonthlySalary=20000, nonTeacherMonthlySalary=15000)
                      for c in d["curricula"]]
    p = ProjectionParams.from_dict(d)
    assert p.capex_rules == (CapexRule("IT", 5, 1_000_000.0, 2030),)
    assert p.staff_cost_base is None
    assert p.curricula[0].has_staffing
    assert p.curricula[0].teacher_ratio == 7.14


def test_staffing_absent_by_default():
    p = ProjectionParams.from_dict(load_default_scenario())
    assert p.capex_rules == ()
    assert not any(c.has_staffing for c in p.curricula)
    assert p.staff_cost_base == 32_000_000.0
