"""Typed projection inputs and their camelCase wire-format constructors."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Mapping, Union


def _float(d: Mapping[str, Any], key: str, default: float | None = None) -> float | None:
    v = d.get(key)
    if v is None:
        return default
    return float(v)


def _int(d: Mapping[str, Any], key: str, default: int | None = None) -> int | None:
    v = d.get(key)
    if v is None:
        return default
    return int(v)


def _year_map(raw: Any, value_key: str) -> dict[int, float]:
    """Accept either {"2028": x} or [{"year": 2028, value_key: x}]."""
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return {int(k): v for k, v in raw.items()}
    if isinstance(raw, (list, tuple)):
        return {int(item["year"]): item[value_key] for item in raw}
    raise TypeError(f"Expected a year mapping or list of year records, got {type(raw).__name__}")


# ── Curricula ───────────────────────────────────────────────────

@dataclass(frozen=True)
class CurriculumPlan:
    curriculum_type: str
    capacity: int
    tuition_base: float
    cpi_frequency: int
    students_projection: dict[int, int] = field(default_factory=dict)
    # Staffing, used to derive the staff cost base when none is given.
    # Ratios are staff per student (1/14 = 0.0714).
    teacher_ratio: float | None = None
    non_teacher_ratio: float | None = None
    teacher_monthly_salary: float | None = None
    non_teacher_monthly_salary: float | None = None

    def students(self, year: int) -> int:
        return self.students_projection.get(year, 0)

    @property
    def has_staffing(self) -> bool:
        return None not in (self.teacher_ratio, self.non_teacher_ratio,
                            self.teacher_monthly_salary, self.non_teacher_monthly_salary)

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "CurriculumPlan":
        raw = _year_map(d.get("studentsProjection"), "students")
        return cls(
            curriculum_type=str(d["curriculumType"]),
            capacity=int(d.get("capacity", 0)),
            tuition_base=float(d["tuitionBase"]),
            cpi_frequency=int(d.get("cpiFrequency", 1)),
            students_projection={y: int(s) for y, s in raw.items()},
            teacher_ratio=_float(d, "teacherRatio"),
            non_teacher_ratio=_float(d, "nonTeacherRatio"),
            teacher_monthly_salary=_float(d, "teacherMonthlySalary"),
            non_teacher_monthly_salary=_float(d, "nonTeacherMonthlySalary"),
        )


# ── Rent model variants ─────────────────────────────────────────

class RentModelType(str, Enum):
    FIXED_ESCALATION = "FIXED_ESCALATION"
    REVENUE_SHARE = "REVENUE_SHARE"
    PARTNER_MODEL = "PARTNER_MODEL"


@dataclass(frozen=True)
class FixedEscalationRent:
    """base x (1+escalation)^floor((year - 2028) / frequency)."""
    model: ClassVar[RentModelType] = RentModelType.FIXED_ESCALATION
    base_rent: float
    escalation_rate: float
    frequency: int = 1


@dataclass(frozen=True)
class RevenueShareRent:
    """revenue x share, floored at minimum_rent when one is set."""
    model: ClassVar[RentModelType] = RentModelType.REVENUE_SHARE
    revenue_share_percent: float
    minimum_rent: float | None = None


@dataclass(frozen=True)
class PartnerModelRent:
    """(land x land price + BUA x build cost) x yield, optionally escalated."""
    model: ClassVar[RentModelType] = RentModelType.PARTNER_MODEL
    land_size: float
    land_price_per_sqm: float
    bua_size: float
    construction_cost_per_sqm: float
    yield_base: float
    growth_rate: float = 0.0
    frequency: int = 1


RentModel = Union[FixedEscalationRent, RevenueShareRent, PartnerModelRent]


def rent_model_from_dict(kind: str, params: Mapping[str, Any]) -> RentModel:
    """Build a rent variant from the rentModel tag and its parameters."""
    try:
        model = RentModelType(kind)
    except ValueError:
        raise ValueError(f"Unknown rent model: {kind}") from None

    if model is RentModelType.FIXED_ESCALATION:
        return FixedEscalationRent(
            base_rent=float(params.get("baseRent", 0)),
            escalation_rate=float(params.get("escalationRate", 0)),
            frequency=int(params.get("frequency") or 1),
        )
    if model is RentModelType.REVENUE_SHARE:
        return RevenueShareRent(
            revenue_share_percent=float(params.get("revenueSharePercent", 0)),
            minimum_rent=_float(params, "minimumRent"),
        )
    return PartnerModelRent(
        land_size=float(params.get("landSize", 0)),
        land_price_per_sqm=float(params.get("landPricePerSqm", 0)),
        bua_size=float(params.get("buaSize", 0)),
        construction_cost_per_sqm=float(params.get("constructionCostPerSqm", 0)),
        yield_base=float(params.get("yieldBase", 0)),
        growth_rate=float(params.get("growthRate") or 0),
        frequency=int(params.get("frequency") or 1),
    )


# ── Cost lines ──────────────────────────────────────────────────

@dataclass(frozen=True)
class OpexSubAccount:
    """A fixed amount, or a whole-number percentage of revenue (6 = 6%)."""
    name: str
    percent_of_revenue: float | None = None
    is_fixed: bool = False
    fixed_amount: float | None = None

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "OpexSubAccount":
        return cls(
            name=str(d["name"]),
            percent_of_revenue=_float(d, "percentOfRevenue"),
            is_fixed=bool(d.get("isFixed", False)),
            fixed_amount=_float(d, "fixedAmount"),
        )


@dataclass(frozen=True)
class CapexItem:
    year: int
    amount: float
    category: str = ""

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "CapexItem":
        return cls(year=int(d["year"]), amount=float(d["amount"]),
                   category=str(d.get("category") or ""))


@dataclass(frozen=True)
class CapexRule:
    """Recurring reinvestment: base_cost in starting_year, then every cycle_years.

    Each occurrence is priced at base_cost x (1+cpi)^(year - starting_year).
    """
    category: str
    cycle_years: int
    base_cost: float
    starting_year: int

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "CapexRule":
        return cls(
            category=str(d["category"]),
            cycle_years=int(d["cycleYears"]),
            base_cost=float(d["baseCost"]),
            starting_year=int(d["startingYear"]),
        )


# ── Settings supplied with the request ──────────────────────────

@dataclass(frozen=True)
class AdminSettings:
    cpi_rate: float
    discount_rate: float
    zakat_rate: float | None = None  # None = use the settings provider's rate

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "AdminSettings":
        return cls(
            cpi_rate=float(d.get("cpiRate", 0)),
            discount_rate=float(d.get("discountRate", 0)),
            zakat_rate=_float(d, "zakatRate"),
        )


@dataclass(frozen=True)
class BalanceSheetSettings:
    starting_cash: float | None = None
    opening_equity: float | None = None
    fixed_assets_opening: float | None = None

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "BalanceSheetSettings":
        return cls(
            starting_cash=_float(d, "startingCash"),
            opening_equity=_float(d, "openingEquity"),
            fixed_assets_opening=_float(d, "fixedAssetsOpening"),
        )


@dataclass(frozen=True)
class TransitionSettings:
    """Admin-level transition inputs that apply to all three transition years."""
    capacity_cap: int | None = None         # None = periods.json default
    transition_rent: float = 0.0            # flat manual rent when no override
    rent_base_2024: float | None = None     # None = 2024 historical rent
    staff_cost_base_2024: float | None = None

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "TransitionSettings":
        return cls(
            capacity_cap=_int(d, "capacityCap"),
            transition_rent=float(d.get("transitionRent") or 0),
            rent_base_2024=_float(d, "rentBase2024"),
            staff_cost_base_2024=_float(d, "staffCostBase2024"),
        )


# ── Data-store records ──────────────────────────────────────────

@dataclass(frozen=True)
class HistoricalActuals:
    """Recorded figures for one historical year. None = not recorded."""
    year: int
    revenue: float | None = None
    staff_cost: float | None = None
    rent: float | None = None
    opex: float | None = None
    capex: float | None = None

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "HistoricalActuals":
        return cls(
            year=int(d["year"]),
            revenue=_float(d, "revenue"),
            staff_cost=_float(d, "staffCost"),
            rent=_float(d, "rent"),
            opex=_float(d, "opex"),
            capex=_float(d, "capex"),
        )

    @classmethod
    def from_statement(cls, row: Mapping[str, Any]) -> "HistoricalActuals":
        """Map a full historical statement row to model fields.

        opex excludes salaries and rent, which have their own lines; capex is
        the absolute fixed-asset additions from the cash flow statement.
        """
        salaries = float(row.get("salaries") or 0)
        rent = float(row.get("schoolRent") or 0)
        total_opex = row.get("totalOperatingExpenses")
        additions = row.get("cfAdditionsFixedAssets")
        return cls(
            year=int(row["year"]),
            revenue=_float(row, "totalRevenues"),
            staff_cost=salaries,
            rent=rent,
            opex=None if total_opex is None else float(total_opex) - salaries - rent,
            capex=None if additions is None else abs(float(additions)),
        )


@dataclass(frozen=True)
class TransitionYear:
    """Explicit admin overrides for one transition year."""
    year: int
    target_enrollment: int | None = None
    staff_cost_base: float | None = None
    rent: float | None = None
    average_tuition_per_student: float | None = None
    other_revenue: float | None = None
    staff_cost_growth_percent: float | None = None
    rent_growth_percent: float | None = None

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "TransitionYear":
        return cls(
            year=int(d["year"]),
            target_enrollment=_int(d, "targetEnrollment"),
            staff_cost_base=_float(d, "staffCostBase"),
            rent=_float(d, "rent"),
            average_tuition_per_student=_float(d, "averageTuitionPerStudent"),
            other_revenue=_float(d, "otherRevenue"),
            staff_cost_growth_percent=_float(d, "staffCostGrowthPercent"),
            rent_growth_percent=_float(d, "rentGrowthPercent"),
        )


# ── Projection request ──────────────────────────────────────────

class VersionMode(str, Enum):
    RELOCATION_2028 = "RELOCATION_2028"
    HISTORICAL_BASELINE = "HISTORICAL_BASELINE"


@dataclass(frozen=True)
class ProjectionParams:
    """Everything one projection run needs from the caller.

    historical_actuals / transition_years given here take precedence over
    the data store; leave them None to load by version_id.
    """
    curricula: tuple[CurriculumPlan, ...]
    rent_model: RentModel
    staff_cost_base: float | None           # None = derived from curriculum staffing
    capex_items: tuple[CapexItem, ...]
    opex_sub_accounts: tuple[OpexSubAccount, ...]
    admin: AdminSettings
    start_year: int = 2023
    end_year: int = 2052
    staff_cost_cpi_frequency: int | None = None
    other_revenue_by_year: dict[int, float] = field(default_factory=dict)
    balance_sheet: BalanceSheetSettings = field(default_factory=BalanceSheetSettings)
    depreciation_rate: float | None = None
    transition: TransitionSettings = field(default_factory=TransitionSettings)
    version_id: str | None = None
    version_mode: VersionMode = VersionMode.RELOCATION_2028
    historical_actuals: tuple[HistoricalActuals, ...] | None = None
    transition_years: tuple[TransitionYear, ...] | None = None
    capex_rules: tuple[CapexRule, ...] = ()

    def other_revenue(self, year: int) -> float:
        return self.other_revenue_by_year.get(year, 0.0)

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "ProjectionParams":
        """Build params from the camelCase request document."""
        hist = d.get("historicalActuals")
        trans = d.get("transitionYears")
        return cls(
            curricula=tuple(CurriculumPlan.from_dict(c) for c in d.get("curricula", ())),
            rent_model=rent_model_from_dict(d["rentModel"], d.get("rentParameters", {})),
            staff_cost_base=_float(d, "staffCostBase"),
            staff_cost_cpi_frequency=_int(d, "staffCostCpiFrequency"),
            capex_items=tuple(CapexItem.from_dict(c) for c in d.get("capexItems", ())),
            capex_rules=tuple(CapexRule.from_dict(r) for r in d.get("capexRules", ())),
            opex_sub_accounts=tuple(OpexSubAccount.from_dict(o) for o in d.get("opexSubAccounts", ())),
            admin=AdminSettings.from_dict(d.get("adminSettings", {})),
            start_year=int(d.get("startYear", 2023)),
            end_year=int(d.get("endYear", 2052)),
            other_revenue_by_year={
                y: float(v) for y, v in _year_map(d.get("otherRevenueByYear"), "amount").items()
            },
            balance_sheet=BalanceSheetSettings.from_dict(d.get("balanceSheet", {})),
            depreciation_rate=_float(d, "depreciationRate"),
            transition=TransitionSettings.from_dict(d.get("transition", {})),
            version_id=d.get("versionId"),
            version_mode=VersionMode(d.get("versionMode", VersionMode.RELOCATION_2028.value)),
            historical_actuals=None if hist is None else tuple(HistoricalActuals.from_dict(h) for h in hist),
            transition_years=None if trans is None else tuple(TransitionYear.from_dict(t) for t in trans),
        )
