"""Staff cost growth.

Same stepped CPI as tuition from the base year onwards. Years before the
base year are deflated continuously: base / (1+cpi)^(base_year - year).
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from projection.errors import (
    CalcError, ErrorCode, check_frequency, check_non_negative, check_positive, first_error,
)
from projection.formulas import deflate, stepped_growth
from projection.inputs import CurriculumPlan, VersionMode
from projection.periods import first_year, last_year, relocation_year

logger = logging.getLogger(__name__)


def staff_cost_base_year(mode: VersionMode) -> int:
    """The year staff_cost_base is quoted in."""
    if mode is VersionMode.HISTORICAL_BASELINE:
        return first_year()
    return relocation_year()


def _staff_cost(base: float, cpi_rate: float, base_year: int, year: int, frequency: int) -> float:
    if year < base_year:
        return deflate(base, cpi_rate, base_year - year)
    return stepped_growth(base, cpi_rate, year - base_year, frequency)


def validate_staff_cost(base: float, cpi_rate: float, frequency: int) -> CalcError | None:
    return first_error(
        check_non_negative(base, "staff_cost_base", "Staff cost base"),
        check_non_negative(cpi_rate, "cpi_rate", "CPI rate"),
        check_frequency(frequency, "staff_cost_cpi_frequency"),
    )


def calculate_staff_cost(base: float, cpi_rate: float, base_year: int, year: int,
                         frequency: int) -> float | CalcError:
    err = validate_staff_cost(base, cpi_rate, frequency)
    if err:
        return err
    return _staff_cost(base, cpi_rate, base_year, year, frequency)


def staff_cost_series(base: float, cpi_rate: float, base_year: int, years: Iterable[int],
                      frequency: int) -> dict[int, float] | CalcError:
    err = validate_staff_cost(base, cpi_rate, frequency)
    if err:
        return err
    return {y: _staff_cost(base, cpi_rate, base_year, y, frequency) for y in years}


# ── Base from curriculum staffing ───────────────────────────────

def _ratio(value: float) -> float:
    # 7.14 and 0.0714 both mean 7.14 staff per 100 students
    return value / 100.0 if value > 1 else value


def _students_near(plan: CurriculumPlan, base_year: int) -> int | CalcError:
    if base_year in plan.students_projection:
        return plan.students_projection[base_year]
    if not plan.students_projection:
        return CalcError(ErrorCode.EMPTY_ENROLLMENT,
                         f"Curriculum '{plan.curriculum_type}' has no student projection",
                         f"curricula.{plan.curriculum_type}.students_projection")
    # nearest year, earlier year on a tie
    nearest = min(plan.students_projection, key=lambda y: (abs(y - base_year), y))
    logger.warning("Curriculum %s has no enrollment for %d, using %d",
                   plan.curriculum_type, base_year, nearest)
    return plan.students_projection[nearest]


def staff_cost_base_from_curricula(curricula: Sequence[CurriculumPlan],
                                   base_year: int) -> float | CalcError:
    """Annual staff cost in base_year from per-curriculum ratios and monthly salaries.

    Per curriculum: students x (teacher_ratio x teacher_salary
    + non_teacher_ratio x non_teacher_salary) x 12.
    """
    if not curricula:
        return CalcError(ErrorCode.EMPTY_CURRICULA,
                         "At least one curriculum is required", "curricula")
    if not first_year() <= base_year <= last_year():
        return CalcError(ErrorCode.YEAR_OUT_OF_RANGE,
                         f"Staff cost base year {base_year} is outside "
                         f"{first_year()}-{last_year()}", "base_year")

    total = 0.0
    for plan in curricula:
        field = f"curricula.{plan.curriculum_type}"
        if not plan.has_staffing:
            return CalcError(ErrorCode.MISSING_PARAMETER,
                             f"Curriculum '{plan.curriculum_type}' has no complete staffing "
                             f"configuration and no staff cost base was given", field)
        err = first_error(
            check_positive(plan.teacher_ratio, f"{field}.teacher_ratio"),
            check_positive(plan.non_teacher_ratio, f"{field}.non_teacher_ratio"),
            check_positive(plan.teacher_monthly_salary, f"{field}.teacher_monthly_salary"),
            check_positive(plan.non_teacher_monthly_salary, f"{field}.non_teacher_monthly_salary"),
        )
        if err:
            return err
        students = _students_near(plan, base_year)
        if isinstance(students, CalcError):
            return students
        monthly = (_ratio(plan.teacher_ratio) * plan.teacher_monthly_salary
                   + _ratio(plan.non_teacher_ratio) * plan.non_teacher_monthly_salary)
        total += students * monthly * 12
    return total
