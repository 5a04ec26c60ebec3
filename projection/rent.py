"""Rent for the dynamic period, one of three mutually exclusive models.

    FIXED_ESCALATION  base x (1+esc)^floor((year - 2028) / frequency)
    REVENUE_SHARE     max(revenue x share, minimum_rent)
    PARTNER_MODEL     (land x land_price + bua x build_cost) x yield,
                      x (1+growth)^floor((year - 2028) / frequency)
"""

from __future__ import annotations

from typing import Iterable, Mapping

from projection.errors import (
    CalcError, ErrorCode, check_cycle, check_non_negative, check_positive, check_rate,
    first_error,
)
from projection.formulas import stepped_growth
from projection.inputs import FixedEscalationRent, PartnerModelRent, RentModel, RevenueShareRent
from projection.periods import relocation_year


def validate_rent_model(model: RentModel) -> CalcError | None:
    if isinstance(model, FixedEscalationRent):
        return first_error(
            check_positive(model.base_rent, "base_rent", "Base rent"),
            check_rate(model.escalation_rate, "escalation_rate"),
            check_cycle(model.frequency, "rent_frequency"),
        )
    if isinstance(model, RevenueShareRent):
        return first_error(
            check_rate(model.revenue_share_percent, "revenue_share_percent"),
            check_non_negative(model.minimum_rent or 0.0, "minimum_rent", "Minimum rent"),
        )
    if isinstance(model, PartnerModelRent):
        return first_error(
            check_positive(model.land_size, "land_size", "Land size"),
            check_positive(model.land_price_per_sqm, "land_price_per_sqm", "Land price"),
            check_positive(model.bua_size, "bua_size", "BUA size"),
            check_positive(model.construction_cost_per_sqm, "construction_cost_per_sqm",
                           "Construction cost"),
            check_rate(model.yield_base, "yield_base", low_inclusive=False),
            check_non_negative(model.growth_rate, "growth_rate", "Rent growth rate"),
            check_cycle(model.frequency, "rent_frequency"),
        )
    return CalcError(ErrorCode.UNKNOWN_RENT_MODEL,
                     f"Unknown rent model: {type(model).__name__}", "rent_model")


def partner_base_rent(model: PartnerModelRent) -> float:
    """Annual rent before escalation: yield on land plus construction value."""
    value = (model.land_size * model.land_price_per_sqm
             + model.bua_size * model.construction_cost_per_sqm)
    return value * model.yield_base


def _rent(model: RentModel, year: int, revenue: float) -> float:
    elapsed = year - relocation_year()
    if isinstance(model, FixedEscalationRent):
        return stepped_growth(model.base_rent, model.escalation_rate, elapsed, model.frequency)
    if isinstance(model, RevenueShareRent):
        return max(revenue * model.revenue_share_percent, model.minimum_rent or 0.0)
    return stepped_growth(partner_base_rent(model), model.growth_rate, elapsed, model.frequency)


def calculate_rent(model: RentModel, year: int, revenue: float = 0.0) -> float | CalcError:
    """Rent for one dynamic year. revenue is only read by REVENUE_SHARE."""
    err = validate_rent_model(model) or check_non_negative(revenue, "revenue", "Revenue")
    if err:
        return err
    return _rent(model, year, revenue)


def rent_series(model: RentModel, years: Iterable[int],
                revenue_by_year: Mapping[int, float]) -> dict[int, float] | CalcError:
    err = validate_rent_model(model)
    if err:
        return err
    out: dict[int, float] = {}
    for y in years:
        revenue = revenue_by_year.get(y, 0.0)
        err = check_non_negative(revenue, "revenue", f"Revenue {y}")
        if err:
            return err
        out[y] = _rent(model, y, revenue)
    return out
