"""Projection timeline from periods.json.

Every calendar year in the model window belongs to exactly one phase:

    HISTORICAL  2023-2024  recorded actuals
    TRANSITION  2025-2027  admin overrides with capacity-capped fallback
    DYNAMIC     2028-2052  fully calculated
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import NamedTuple

from projection.config import load_config


class Phase(str, Enum):
    HISTORICAL = "HISTORICAL"
    TRANSITION = "TRANSITION"
    DYNAMIC = "DYNAMIC"


class Period(NamedTuple):
    phase: Phase
    start_year: int
    end_year: int


@lru_cache(maxsize=1)
def load_periods() -> tuple[Period, ...]:
    """Load the phase boundaries from periods.json."""
    data = load_config("periods")
    return tuple(
        Period(Phase(p["phase"]), int(p["start_year"]), int(p["end_year"]))
        for p in data["phases"]
    )


@lru_cache(maxsize=1)
def load_periods_meta() -> dict:
    """Load metadata (window bounds, relocation year, capacity cap)."""
    data = load_config("periods")
    return {k: v for k, v in data.items() if k != "phases"}


def first_year() -> int:
    return load_periods_meta()["first_year"]


def last_year() -> int:
    return load_periods_meta()["last_year"]


def total_years() -> int:
    return last_year() - first_year() + 1


def all_years() -> range:
    return range(first_year(), last_year() + 1)


def relocation_year() -> int:
    return load_periods_meta()["relocation_year"]


def transition_base_year() -> int:
    return load_periods_meta()["transition_base_year"]


def transition_capacity_cap() -> int:
    return load_periods_meta()["transition_capacity_cap"]


def year_index(year: int) -> int:
    """Zero-based offset of a calendar year inside the model window."""
    return year - first_year()


def in_window(year: int) -> bool:
    return first_year() <= year <= last_year()


def phase_for_year(year: int) -> Phase:
    for p in load_periods():
        if p.start_year <= year <= p.end_year:
            return p.phase
    raise ValueError(f"Year {year} is outside the model window {first_year()}-{last_year()}")


def is_historical(year: int) -> bool:
    return phase_for_year(year) is Phase.HISTORICAL


def is_transition(year: int) -> bool:
    return phase_for_year(year) is Phase.TRANSITION


def is_dynamic(year: int) -> bool:
    return phase_for_year(year) is Phase.DYNAMIC


def npv_window(start_year: int, end_year: int) -> range:
    """NPV years: the configured window intersected with the requested range.

    Empty when the ranges do not overlap.
    """
    w = load_periods_meta()["npv_window"]
    lo = max(int(w["start"]), start_year)
    hi = min(int(w["end"]), end_year)
    return range(lo, hi + 1) if lo <= hi else range(0)


def dynamic_years(start_year: int, end_year: int) -> range:
    """Years of the requested range that fall in the dynamic phase."""
    dyn = next(p for p in load_periods() if p.phase is Phase.DYNAMIC)
    lo = max(dyn.start_year, start_year)
    hi = min(dyn.end_year, end_year)
    return range(lo, hi + 1) if lo <= hi else range(0)
