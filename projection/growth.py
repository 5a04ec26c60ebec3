"""Stepped CPI growth for tuition.

    tuition(t) = base x (1 + cpi)^floor((t - base_year) / frequency)

With frequency 2 the value holds for two years, then steps:
2028 = base, 2029 = base, 2030 = base x (1+cpi), ...
"""

from __future__ import annotations

from typing import Iterable

from projection.errors import CalcError, check_frequency, check_non_negative, check_positive, first_error
from projection.formulas import stepped_growth


def validate_growth(base: float, cpi_rate: float, frequency: int,
                    field: str = "tuition_base") -> CalcError | None:
    return first_error(
        check_positive(base, field),
        check_non_negative(cpi_rate, "cpi_rate", "CPI rate"),
        check_frequency(frequency, "cpi_frequency"),
    )


def calculate_tuition(base: float, cpi_rate: float, base_year: int, year: int,
                      frequency: int) -> float | CalcError:
    """Tuition for one year. Years before base_year step backwards."""
    err = validate_growth(base, cpi_rate, frequency)
    if err:
        return err
    return stepped_growth(base, cpi_rate, year - base_year, frequency)


def tuition_series(base: float, cpi_rate: float, base_year: int, years: Iterable[int],
                   frequency: int) -> dict[int, float] | CalcError:
    err = validate_growth(base, cpi_rate, frequency)
    if err:
        return err
    return {y: stepped_growth(base, cpi_rate, y - base_year, frequency) for y in years}
