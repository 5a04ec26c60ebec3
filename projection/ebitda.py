"""EBITDA and EBITDA margin."""

from __future__ import annotations

from typing import NamedTuple

from projection.errors import CalcError, check_non_negative, first_error
from projection.formulas import calc_ebitda, safe_pct


class Ebitda(NamedTuple):
    ebitda: float
    margin: float   # percent, 0.0 when revenue is 0


def calculate_ebitda(revenue: float, staff_cost: float, rent: float,
                     opex: float) -> Ebitda | CalcError:
    err = first_error(
        check_non_negative(revenue, "revenue", "Revenue"),
        check_non_negative(staff_cost, "staff_cost", "Staff cost"),
        check_non_negative(rent, "rent", "Rent"),
        check_non_negative(opex, "opex", "Opex"),
    )
    if err:
        return err
    value = calc_ebitda(revenue, staff_cost, rent, opex)
    return Ebitda(value, safe_pct(value, revenue))
