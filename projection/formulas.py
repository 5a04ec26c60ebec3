"""Generic financial formulas: stateless, no projection knowledge."""

from __future__ import annotations

import math


def stepped_growth(base: float, rate: float, years_elapsed: int, frequency: int) -> float:
    """Stepped compounding: base x (1+rate)^floor(years_elapsed / frequency).

    The value only moves at frequency boundaries. Negative years_elapsed
    steps backwards (floor division), so callers that want continuous
    deflation before the base year use ``deflate`` instead.
    """
    steps = math.floor(years_elapsed / frequency)
    return base * (1.0 + rate) ** steps


def deflate(base: float, rate: float, years_before: int) -> float:
    """Continuous deflation: base / (1+rate)^years_before."""
    return base / (1.0 + rate) ** years_before


def calc_ebitda(revenue: float, staff_cost: float, rent: float, opex: float) -> float:
    """Earnings before interest, tax, depreciation, amortisation."""
    return revenue - staff_cost - rent - opex


def safe_pct(numerator: float, denominator: float) -> float:
    """numerator / denominator x 100, exactly 0.0 when the denominator is 0."""
    return (numerator / denominator * 100.0) if denominator else 0.0


def calc_depreciation(fixed_assets: float, rate: float) -> float:
    """Straight percentage of the opening net book value."""
    return fixed_assets * rate


def calc_zakat(net_result_before_zakat: float, rate: float) -> float:
    """Zakat on a positive result only. Losses are never levied."""
    return max(0.0, net_result_before_zakat) * rate


def calc_interest(average_balance: float, annual_rate: float) -> float:
    """Annual interest on an average balance. Returns 0 if balance <= 0."""
    if average_balance <= 0:
        return 0.0
    return average_balance * annual_rate


def discount_factor(rate: float, periods: int) -> float:
    return (1.0 + rate) ** periods
