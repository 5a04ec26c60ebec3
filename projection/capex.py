"""Capex plan: manual items plus items generated by reinvestment rules.

    occurrences  starting_year + n x cycle_years   (n = 0, 1, ... while <= end_year)
    amount       base_cost x (1 + cpi)^(year - starting_year)

Rule growth is compounded every year, not stepped like tuition.
"""

from __future__ import annotations

from typing import Iterable

from projection.errors import (
    CalcError, ErrorCode, check_cycle, check_non_negative, check_positive, first_error,
)
from projection.inputs import CapexItem, CapexRule

MAX_CYCLE_YEARS = 50


def validate_capex_rule(rule: CapexRule, start_year: int, end_year: int) -> CalcError | None:
    field = f"capex_rules.{rule.category}"
    err = first_error(
        check_positive(rule.base_cost, field, f"Capex rule '{rule.category}' base cost"),
        check_cycle(rule.cycle_years, f"{field}.cycle_years"),
    )
    if err:
        return err
    if rule.cycle_years > MAX_CYCLE_YEARS:
        return CalcError(ErrorCode.INVALID_FREQUENCY,
                         f"Capex rule '{rule.category}' cycle must be at most {MAX_CYCLE_YEARS} "
                         f"years (got {rule.cycle_years})", f"{field}.cycle_years")
    if not start_year <= rule.starting_year <= end_year:
        return CalcError(ErrorCode.YEAR_OUT_OF_RANGE,
                         f"Capex rule '{rule.category}' starting year {rule.starting_year} "
                         f"is outside {start_year}-{end_year}", f"{field}.starting_year")
    return None


def capex_from_rule(rule: CapexRule, cpi_rate: float, start_year: int,
                    end_year: int) -> list[CapexItem] | CalcError:
    err = validate_capex_rule(rule, start_year, end_year) or check_non_negative(
        cpi_rate, "cpi_rate", "CPI rate")
    if err:
        return err
    return [
        CapexItem(year, rule.base_cost * (1.0 + cpi_rate) ** (year - rule.starting_year),
                  rule.category)
        for year in range(rule.starting_year, end_year + 1, rule.cycle_years)
    ]


def capex_from_rules(rules: Iterable[CapexRule], cpi_rate: float, start_year: int,
                     end_year: int) -> list[CapexItem] | CalcError:
    """Items of every rule, ordered by year then category."""
    items: list[CapexItem] = []
    for rule in rules:
        generated = capex_from_rule(rule, cpi_rate, start_year, end_year)
        if isinstance(generated, CalcError):
            return generated
        items.extend(generated)
    return sorted(items, key=lambda i: (i.year, i.category))


def planned_capex(items: Iterable[CapexItem]) -> dict[int, float]:
    """Total planned capex per year."""
    totals: dict[int, float] = {}
    for item in items:
        totals[item.year] = totals.get(item.year, 0.0) + item.amount
    return totals
