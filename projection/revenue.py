"""Tuition revenue: tuition x enrollment per curriculum, plus other revenue."""

from __future__ import annotations

from typing import Iterable

from projection.errors import CalcError, check_non_negative, first_error


def calculate_curriculum_revenue(tuition: float, students: int) -> float | CalcError:
    """Revenue of one curriculum for one year. Zero students is zero revenue."""
    err = first_error(
        check_non_negative(tuition, "tuition", "Tuition"),
        check_non_negative(students, "students", "Student count"),
    )
    if err:
        return err
    return tuition * students


def calculate_total_revenue(curriculum_revenues: Iterable[float],
                            other_revenue: float = 0.0) -> float | CalcError:
    err = check_non_negative(other_revenue, "other_revenue", "Other revenue")
    if err:
        return err
    return sum(curriculum_revenues) + other_revenue
