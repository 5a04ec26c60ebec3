import logging

import pytest

from projection.capex import capex_from_rule, capex_from_rules, planned_capex
from projection.ebitda import calculate_ebitda
from projection.errors import CalcError, ErrorCode, is_error
from projection.growth import calculate_tuition, tuition_series
from projection.inputs import (
    CapexItem, CapexRule, CurriculumPlan, FixedEscalationRent, OpexSubAccount, PartnerModelRent,
    RevenueShareRent, VersionMode,
)
from projection.npv import calculate_npv
from projection.opex import calculate_opex
from projection.rent import calculate_rent, partner_base_rent, rent_series
from projection.revenue import calculate_curriculum_revenue, calculate_total_revenue
from projection.staff_costs import (
    calculate_staff_cost, staff_cost_base_from_curricula, staff_cost_base_year,
)


# ── Growth ──────────────────────────────────────────────────────

def test_tuition_steps_only_at_frequency_boundaries():
    series = tuition_series(50_000.0, 0.03, 2028, range(2028, 2035), 3)
    assert series[2028] == series[2029] == series[2030] == 50_000.0
    assert series[2031] == pytest.approx(51_500.0)
    assert series[2033] == series[2031]
    assert series[2034] == pytest.approx(50_000.0 * 1.03 ** 2)


def test_tuition_frequency_two():
    assert calculate_tuition(50_000.0, 0.03, 2028, 2029, 2) == 50_000.0
    assert calculate_tuition(50_000.0, 0.03, 2028, 2030, 2) == pytest.approx(51_500.0)


def test_tuition_rejects_bad_inputs():
    assert calculate_tuition(50_000.0, 0.03, 2028, 2030, 4).code is ErrorCode.INVALID_FREQUENCY
    assert calculate_tuition(50_000.0, -0.01, 2028, 2030, 1).code is ErrorCode.NEGATIVE_AMOUNT
    assert calculate_tuition(0.0, 0.03, 2028, 2030, 1).code is ErrorCode.NEGATIVE_AMOUNT


# ── Revenue ─────────────────────────────────────────────────────

def test_zero_enrollment_is_zero_revenue():
    assert calculate_curriculum_revenue(50_000.0, 0) == 0.0


def test_revenue_sums_curricula_and_other_revenue():
    assert calculate_curriculum_revenue(50_000.0, 100) == 5_000_000.0
    assert calculate_total_revenue([5_000_000.0, 2_000_000.0], 500_000.0) == 7_500_000.0


def test_negative_students_is_an_error():
    err = calculate_curriculum_revenue(50_000.0, -1)
    assert isinstance(err, CalcError)
    assert err.code is ErrorCode.NEGATIVE_AMOUNT
    assert is_error(calculate_total_revenue([1.0], -5.0))


# ── Staff costs ─────────────────────────────────────────────────

def test_staff_cost_base_year_follows_version_mode():
    assert staff_cost_base_year(VersionMode.RELOCATION_2028) == 2028
    assert staff_cost_base_year(VersionMode.HISTORICAL_BASELINE) == 2023


def test_staff_cost_deflates_before_base_year():
    assert calculate_staff_cost(15_000_000.0, 0.03, 2028, 2026, 2) == pytest.approx(15_000_000.0 / 1.03 ** 2)


def test_staff_cost_steps_after_base_year():
    assert calculate_staff_cost(15_000_000.0, 0.03, 2028, 2029, 2) == 15_000_000.0
    assert calculate_staff_cost(15_000_000.0, 0.03, 2028, 2030, 2) == pytest.approx(15_450_000.0)


def _staffed(students, teacher_ratio=0.0714, non_teacher_ratio=0.0385, name="FR"):
    return CurriculumPlan(name, 1000, 50_000.0, 1, students,
                          teacher_ratio=teacher_ratio, non_teacher_ratio=non_teacher_ratio,
                          teacher_monthly_salary=20_000.0, non_teacher_monthly_salary=15_000.0)


def test_staff_cost_base_from_staffing_ratios():
    base = staff_cost_base_from_curricula([_staffed({2028: 200})], 2028)
    assert base == pytest.approx(200 * 0.0714 * 20_000 * 12 + 200 * 0.0385 * 15_000 * 12)


def test_staffing_ratios_above_one_are_percentages():
    as_percent = staff_cost_base_from_curricula([_staffed({2028: 200}, 7.14, 3.85)], 2028)
    assert as_percent == pytest.approx(staff_cost_base_from_curricula([_staffed({2028: 200})], 2028))


def test_staff_base_sums_curricula():
    both = staff_cost_base_from_curricula([_staffed({2028: 200}), _staffed({2028: 100}, name="IB")], 2028)
    single = staff_cost_base_from_curricula([_staffed({2028: 300})], 2028)
    assert both == pytest.approx(single)


def test_staff_base_uses_nearest_enrollment_year(caplog):
    plan = _staffed({2026: 100, 2030: 300})
    with caplog.at_level(logging.WARNING, logger="projection.staff_costs"):
        base = staff_cost_base_from_curricula([plan], 2028)
    assert base == pytest.approx(staff_cost_base_from_curricula([_staffed({2028: 100})], 2028))
    assert "using 2026" in caplog.text


def test_staff_base_requires_complete_staffing():
    plan = CurriculumPlan("FR", 1000, 50_000.0, 1, {2028: 200}, teacher_ratio=0.07)
    err = staff_cost_base_from_curricula([plan], 2028)
    assert err.code is ErrorCode.MISSING_PARAMETER
    assert err.field == "curricula.FR"


def test_staff_base_validation():
    assert staff_cost_base_from_curricula([], 2028).code is ErrorCode.EMPTY_CURRICULA
    assert staff_cost_base_from_curricula([_staffed({2028: 1})], 2060).code is ErrorCode.YEAR_OUT_OF_RANGE
    assert staff_cost_base_from_curricula([_staffed({})], 2028).code is ErrorCode.EMPTY_ENROLLMENT
    assert staff_cost_base_from_curricula([_staffed({2028: 1}, teacher_ratio=0.0)], 2028).code is ErrorCode.NEGATIVE_AMOUNT


# ── Opex ────────────────────────────────────────────────────────

def test_opex_percent_is_whole_number():
    accounts = [
        OpexSubAccount("Marketing", percent_of_revenue=6.0),
        OpexSubAccount("Utilities", is_fixed=True, fixed_amount=1_000_000.0),
    ]
    assert calculate_opex(10_000_000.0, accounts) == pytest.approx(1_600_000.0)


def test_opex_validation():
    assert calculate_opex(1.0, [OpexSubAccount("X", percent_of_revenue=150.0)]).code is ErrorCode.INVALID_PERCENT
    assert calculate_opex(1.0, [OpexSubAccount("X", is_fixed=True)]).code is ErrorCode.MISSING_PARAMETER
    assert calculate_opex(1.0, [OpexSubAccount("X")]).code is ErrorCode.MISSING_PARAMETER
    assert calculate_opex(1.0, [OpexSubAccount("X", is_fixed=True, fixed_amount=-1.0)]).code is ErrorCode.NEGATIVE_AMOUNT


def test_opex_without_accounts_is_zero():
    assert calculate_opex(10_000_000.0, []) == 0.0


# ── EBITDA ──────────────────────────────────────────────────────

def test_ebitda_and_margin():
    result = calculate_ebitda(50_000_000.0, 15_000_000.0, 10_000_000.0, 5_000_000.0)
    assert result.ebitda == 20_000_000.0
    assert result.margin == pytest.approx(40.0)


def test_margin_is_zero_without_revenue():
    result = calculate_ebitda(0.0, 1_000_000.0, 500_000.0, 0.0)
    assert result.ebitda == -1_500_000.0
    assert result.margin == 0.0


def test_ebitda_rejects_negative_costs():
    assert calculate_ebitda(1.0, -1.0, 0.0, 0.0).code is ErrorCode.NEGATIVE_AMOUNT


# ── Rent ────────────────────────────────────────────────────────

def test_fixed_escalation_rent():
    model = FixedEscalationRent(10_000_000.0, 0.04)
    assert calculate_rent(model, 2028) == 10_000_000.0
    assert calculate_rent(model, 2030) == pytest.approx(10_000_000.0 * 1.04 ** 2)


def test_fixed_escalation_with_frequency():
    model = FixedEscalationRent(10_000_000.0, 0.04, frequency=2)
    assert calculate_rent(model, 2029) == 10_000_000.0
    assert calculate_rent(model, 2030) == pytest.approx(10_400_000.0)


def test_rent_escalation_cycles_longer_than_cpi_frequencies():
    model = FixedEscalationRent(10_000_000.0, 0.05, frequency=5)
    assert calculate_rent(model, 2032) == 10_000_000.0
    assert calculate_rent(model, 2033) == pytest.approx(10_500_000.0)
    assert calculate_rent(model, 2038) == pytest.approx(10_000_000.0 * 1.05 ** 2)


@pytest.mark.parametrize("frequency", [0, -1, 2.5])
def test_rent_escalation_cycle_must_be_whole_years(frequency):
    err = calculate_rent(FixedEscalationRent(10_000_000.0, 0.05, frequency=frequency), 2030)
    assert err.code is ErrorCode.INVALID_FREQUENCY
    assert err.field == "rent_frequency"


def test_revenue_share_rent_and_minimum_floor():
    assert calculate_rent(RevenueShareRent(0.08), 2030, 50_000_000.0) == pytest.approx(4_000_000.0)
    floored = RevenueShareRent(0.08, minimum_rent=5_000_000.0)
    assert calculate_rent(floored, 2030, 50_000_000.0) == 5_000_000.0
    assert calculate_rent(floored, 2030, 100_000_000.0) == pytest.approx(8_000_000.0)


def test_partner_model_rent():
    model = PartnerModelRent(10_000.0, 5_000.0, 8_000.0, 3_000.0, 0.045)
    assert partner_base_rent(model) == pytest.approx(3_330_000.0)
    assert calculate_rent(model, 2040) == pytest.approx(3_330_000.0)

    grown = PartnerModelRent(10_000.0, 5_000.0, 8_000.0, 3_000.0, 0.045, growth_rate=0.02, frequency=5)
    assert calculate_rent(grown, 2032) == pytest.approx(3_330_000.0)
    assert calculate_rent(grown, 2033) == pytest.approx(3_330_000.0 * 1.02)


def test_rent_validation():
    assert calculate_rent(PartnerModelRent(1.0, 1.0, 1.0, 1.0, 0.0), 2030).code is ErrorCode.INVALID_RATE
    assert calculate_rent(RevenueShareRent(1.5), 2030, 1.0).code is ErrorCode.INVALID_RATE
    assert calculate_rent(FixedEscalationRent(0.0, 0.02), 2030).code is ErrorCode.NEGATIVE_AMOUNT
    assert calculate_rent("LEASE", 2030).code is ErrorCode.UNKNOWN_RENT_MODEL


def test_rent_series_reads_revenue_per_year():
    series = rent_series(RevenueShareRent(0.1), range(2028, 2030), {2028: 10.0, 2029: 20.0})
    assert series == {2028: pytest.approx(1.0), 2029: pytest.approx(2.0)}


# ── Capex ───────────────────────────────────────────────────────

def test_capex_rule_repeats_every_cycle_with_cpi():
    items = capex_from_rule(CapexRule("Building", 20, 5_000_000.0, 2028), 0.03, 2023, 2052)
    assert [i.year for i in items] == [2028, 2048]
    assert items[0].amount == 5_000_000.0
    assert items[1].amount == pytest.approx(5_000_000.0 * 1.03 ** 20)
    assert {i.category for i in items} == {"Building"}


def test_capex_rules_sorted_by_year_then_category():
    rules = [CapexRule("IT", 5, 1_000_000.0, 2030), CapexRule("Furniture", 10, 500_000.0, 2030)]
    items = capex_from_rules(rules, 0.0, 2023, 2052)
    assert [(i.year, i.category) for i in items[:3]] == [(2030, "Furniture"), (2030, "IT"), (2035, "IT")]
    assert len(items) == 8


def test_planned_capex_totals_manual_and_rule_items():
    rule_items = capex_from_rule(CapexRule("IT", 5, 1_000_000.0, 2030), 0.0, 2023, 2052)
    totals = planned_capex([CapexItem(2030, 2_000_000.0), *rule_items])
    assert totals[2030] == 3_000_000.0
    assert totals[2035] == 1_000_000.0


@pytest.mark.parametrize("rule, code", [
    (CapexRule("IT", 5, 0.0, 2030), ErrorCode.NEGATIVE_AMOUNT),
    (CapexRule("IT", 0, 1.0, 2030), ErrorCode.INVALID_FREQUENCY),
    (CapexRule("IT", 51, 1.0, 2030), ErrorCode.INVALID_FREQUENCY),
    (CapexRule("IT", 5, 1.0, 2060), ErrorCode.YEAR_OUT_OF_RANGE),
])
def test_capex_rule_validation(rule, code):
    assert capex_from_rule(rule, 0.02, 2023, 2052).code is code


def test_capex_rule_rejects_negative_cpi():
    assert capex_from_rule(CapexRule("IT", 5, 1.0, 2030), -0.01, 2023, 2052).code is ErrorCode.NEGATIVE_AMOUNT


# ── NPV ─────────────────────────────────────────────────────────

def test_npv_discounts_first_year_one_period():
    assert calculate_npv({2028: 110.0, 2029: 121.0}, 0.10, range(2028, 2030)) == pytest.approx(200.0)


def test_npv_empty_window_is_zero():
    assert calculate_npv({2028: 110.0}, 0.10, range(0)) == 0.0


def test_npv_rejects_bad_rate():
    assert calculate_npv({}, 1.5, range(2028, 2030)).code is ErrorCode.INVALID_RATE
