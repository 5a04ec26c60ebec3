"""Typed validation failures.

Validation problems in caller input are returned as CalcError values, never
raised. Calculators return ``float | CalcError``; callers test with
``is_error``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorCode(str, Enum):
    INVALID_ARRAY_LENGTH = "INVALID_ARRAY_LENGTH"
    EMPTY_CURRICULA = "EMPTY_CURRICULA"
    INVALID_YEAR_RANGE = "INVALID_YEAR_RANGE"
    YEAR_OUT_OF_RANGE = "YEAR_OUT_OF_RANGE"
    EMPTY_ENROLLMENT = "EMPTY_ENROLLMENT"
    NEGATIVE_AMOUNT = "NEGATIVE_AMOUNT"
    INVALID_RATE = "INVALID_RATE"
    INVALID_FREQUENCY = "INVALID_FREQUENCY"
    INVALID_PERCENT = "INVALID_PERCENT"
    MISSING_PARAMETER = "MISSING_PARAMETER"
    UNKNOWN_RENT_MODEL = "UNKNOWN_RENT_MODEL"
    UNBALANCED_OPENING = "UNBALANCED_OPENING"


@dataclass(frozen=True)
class CalcError:
    code: ErrorCode
    message: str
    field: str = ""

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"


class DataStoreError(Exception):
    """A historical/transition data source could not be read."""


def is_error(value: object) -> bool:
    return isinstance(value, CalcError)


# ── Reusable checks (return None when valid) ─────────────────────────

def check_non_negative(value: float, field: str, label: str | None = None) -> CalcError | None:
    if value < 0:
        return CalcError(
            ErrorCode.NEGATIVE_AMOUNT,
            f"{label or field} cannot be negative (got {value})",
            field,
        )
    return None


def check_positive(value: float, field: str, label: str | None = None) -> CalcError | None:
    if value <= 0:
        return CalcError(
            ErrorCode.NEGATIVE_AMOUNT,
            f"{label or field} must be positive (got {value})",
            field,
        )
    return None


def check_rate(value: float, field: str, low: float = 0.0, high: float = 1.0,
               low_inclusive: bool = True) -> CalcError | None:
    ok_low = value >= low if low_inclusive else value > low
    if not ok_low or value > high:
        bracket = "[" if low_inclusive else "("
        return CalcError(
            ErrorCode.INVALID_RATE,
            f"{field} must be in {bracket}{low}, {high}] (got {value})",
            field,
        )
    return None


def check_frequency(value: int, field: str = "frequency") -> CalcError | None:
    if value not in (1, 2, 3):
        return CalcError(
            ErrorCode.INVALID_FREQUENCY,
            f"{field} must be 1, 2, or 3 years (got {value})",
            field,
        )
    return None


def check_cycle(value: int, field: str = "frequency") -> CalcError | None:
    """A whole number of years, at least 1 (rent escalation, reinvestment cycles)."""
    if int(value) != value or value < 1:
        return CalcError(
            ErrorCode.INVALID_FREQUENCY,
            f"{field} must be a whole number of years >= 1 (got {value})",
            field,
        )
    return None


def check_length(values, name: str, expected: int) -> CalcError | None:
    if len(values) != expected:
        return CalcError(
            ErrorCode.INVALID_ARRAY_LENGTH,
            f"{name} array must have {expected} years (got {len(values)})",
            name,
        )
    return None


def first_error(*checks: CalcError | None) -> CalcError | None:
    """The first non-None result, in argument order."""
    for c in checks:
        if c is not None:
            return c
    return None
