"""Data shapes for the projection engine."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from types import MappingProxyType
from typing import Any, Mapping

from projection.config import load_settings


def _pick(d: Mapping[str, Any], key: str, default: float) -> float:
    v = d.get(key)
    return default if v is None else float(v)


# ── Settings ────────────────────────────────────────────────────

@dataclass(frozen=True)
class WorkingCapitalSettings:
    ar_collection_days: float = 0.0
    ap_payment_days: float = 30.0
    deferral_factor: float = 0.25
    accrual_days: float = 15.0

    @classmethod
    def defaults(cls) -> "WorkingCapitalSettings":
        wc = load_settings()["working_capital"]
        return cls(
            ar_collection_days=float(wc["ar_collection_days"]),
            ap_payment_days=float(wc["ap_payment_days"]),
            deferral_factor=float(wc["deferral_factor"]),
            accrual_days=float(wc["accrual_days"]),
        )

    @classmethod
    def from_dict(cls, d: Mapping[str, Any] | None) -> "WorkingCapitalSettings":
        """Parse the nested settings-API shape; missing fields keep defaults."""
        base = cls.defaults()
        if not d:
            return base
        return cls(
            ar_collection_days=_pick(d.get("accountsReceivable") or {}, "collectionDays",
                                     base.ar_collection_days),
            ap_payment_days=_pick(d.get("accountsPayable") or {}, "paymentDays",
                                  base.ap_payment_days),
            deferral_factor=_pick(d.get("deferredIncome") or {}, "deferralFactor",
                                  base.deferral_factor),
            accrual_days=_pick(d.get("accruedExpenses") or {}, "accrualDays",
                               base.accrual_days),
        )


@dataclass(frozen=True)
class FinancialSettings:
    """Rates and policy the solver reads; supplied by a settings provider."""
    zakat_rate: float = 0.025
    debt_interest_rate: float = 0.05
    bank_deposit_interest_rate: float = 0.02
    minimum_cash_balance: float = 1_000_000.0
    working_capital: WorkingCapitalSettings = field(default_factory=WorkingCapitalSettings)

    @classmethod
    def defaults(cls) -> "FinancialSettings":
        fin = load_settings()["financial"]
        return cls(
            zakat_rate=float(fin["zakat_rate"]),
            debt_interest_rate=float(fin["debt_interest_rate"]),
            bank_deposit_interest_rate=float(fin["bank_deposit_interest_rate"]),
            minimum_cash_balance=float(fin["minimum_cash_balance"]),
            working_capital=WorkingCapitalSettings.defaults(),
        )

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "FinancialSettings":
        """Parse the camelCase settings-API payload over the defaults."""
        base = cls.defaults()
        return cls(
            zakat_rate=_pick(d, "zakatRate", base.zakat_rate),
            debt_interest_rate=_pick(d, "debtInterestRate", base.debt_interest_rate),
            bank_deposit_interest_rate=_pick(d, "bankDepositInterestRate",
                                             base.bank_deposit_interest_rate),
            minimum_cash_balance=_pick(d, "minimumCashBalance", base.minimum_cash_balance),
            working_capital=WorkingCapitalSettings.from_dict(d.get("workingCapitalSettings")),
        )

    def with_zakat(self, zakat_rate: float | None) -> "FinancialSettings":
        if zakat_rate is None:
            return self
        return FinancialSettings(
            zakat_rate=zakat_rate,
            debt_interest_rate=self.debt_interest_rate,
            bank_deposit_interest_rate=self.bank_deposit_interest_rate,
            minimum_cash_balance=self.minimum_cash_balance,
            working_capital=self.working_capital,
        )


# ── Solver ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class SolverParams:
    """One solve request. Arrays hold one value per model year, 2023 first."""
    revenue: tuple[float, ...]
    ebitda: tuple[float, ...]
    capex: tuple[float, ...]
    staff_costs: tuple[float, ...]
    fixed_assets_opening: float
    depreciation_rate: float
    starting_cash: float
    opening_equity: float
    settings: FinancialSettings = field(default_factory=FinancialSettings)
    first_year: int = 2023


@dataclass(slots=True)
class YearState:
    """Closing position of one year inside a single forward pass."""
    year: int
    revenue: float = 0.0
    ebitda: float = 0.0
    capex: float = 0.0
    staff_costs: float = 0.0
    depreciation: float = 0.0
    interest_expense: float = 0.0
    interest_income: float = 0.0
    zakat: float = 0.0
    net_result: float = 0.0
    accounts_receivable: float = 0.0
    accounts_payable: float = 0.0
    deferred_income: float = 0.0
    accrued_expenses: float = 0.0
    working_capital_change: float = 0.0
    operating_cash_flow: float = 0.0
    investing_cash_flow: float = 0.0
    financing_cash_flow: float = 0.0
    net_cash_flow: float = 0.0
    theoretical_cash: float = 0.0
    cash: float = 0.0
    short_term_debt: float = 0.0
    fixed_assets: float = 0.0
    total_assets: float = 0.0
    total_liabilities: float = 0.0
    retained_earnings: float = 0.0
    opening_equity: float = 0.0
    total_equity: float = 0.0

    @property
    def balance_gap(self) -> float:
        return self.total_assets - self.total_liabilities - self.total_equity


@dataclass(frozen=True)
class SolverMetadata:
    converged: bool
    iterations: int
    max_error: float
    year_with_max_error: int | None
    error_type: str          # "absolute" | "relative"
    duration_ms: float
    fallback_used: bool


@dataclass(frozen=True)
class SolverResult:
    years: tuple[YearState, ...]
    metadata: SolverMetadata


# ── Projection output ───────────────────────────────────────────

_DRIVER_FIELDS = ("tuition", "enrollment", "sources")


@dataclass(frozen=True)
class YearlyProjection:
    year: int
    # P&L
    revenue: float
    staff_cost: float
    rent: float
    opex: float
    ebitda: float
    ebitda_margin: float
    rent_load: float
    capex: float
    depreciation: float
    interest_expense: float
    interest_income: float
    zakat: float
    net_result: float
    # Cash flow
    working_capital_change: float
    operating_cash_flow: float
    investing_cash_flow: float
    financing_cash_flow: float
    net_cash_flow: float
    # Balance sheet
    cash: float
    accounts_receivable: float
    fixed_assets: float
    total_assets: float
    accounts_payable: float
    deferred_income: float
    accrued_expenses: float
    short_term_debt: float
    total_liabilities: float
    opening_equity: float
    retained_earnings: float
    total_equity: float
    theoretical_cash: float
    # Drivers and provenance, read-only once built
    tuition: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))
    enrollment: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    sources: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self):
        for name in _DRIVER_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, MappingProxyType):
                object.__setattr__(self, name, MappingProxyType(dict(value)))

    @property
    def balance_gap(self) -> float:
        return self.total_assets - self.total_liabilities - self.total_equity

    def to_row(self) -> dict:
        """Flat numeric row (drivers and provenance excluded)."""
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name not in _DRIVER_FIELDS}

    def to_dict(self) -> dict:
        return {**self.to_row(), **{name: dict(getattr(self, name)) for name in _DRIVER_FIELDS}}


@dataclass(frozen=True)
class ProjectionSummary:
    total_revenue: float
    total_staff_cost: float
    total_rent: float
    total_opex: float
    total_ebitda: float
    total_capex: float
    total_cash_flow: float
    npv_rent: float
    npv_cash_flow: float
    avg_ebitda_margin: float
    avg_rent_load: float


@dataclass(frozen=True)
class ProjectionResult:
    """Complete output for one projection run."""
    years: tuple[YearlyProjection, ...]
    summary: ProjectionSummary
    metadata: SolverMetadata
    duration_ms: float = 0.0

    def year(self, year: int) -> YearlyProjection:
        for y in self.years:
            if y.year == year:
                return y
        raise KeyError(year)

    def to_dict(self) -> dict:
        return {
            "years": [y.to_dict() for y in self.years],
            "summary": asdict(self.summary),
            "metadata": asdict(self.metadata),
            "duration_ms": self.duration_ms,
        }

    @property
    def dataframes(self) -> dict:
        """Projection data as pandas DataFrames.

        Returns dict with keys:
            annual      one row per year, numeric columns only
            summary     single-row summary
            sources     per-year provenance of each resolved field
            enrollment  per-year students by curriculum

        Each DataFrame carries attrs["col_tags"] ({col: ValueType}).
        """
        import pandas as pd
        from projection.value_tags import tag_all_dataframes

        dfs = {
            "annual": pd.DataFrame([y.to_row() for y in self.years]),
            "summary": pd.DataFrame([asdict(self.summary)]),
            "sources": pd.DataFrame([{"year": y.year, **y.sources} for y in self.years]),
            "enrollment": pd.DataFrame([{"year": y.year, **y.enrollment} for y in self.years]),
        }
        return tag_all_dataframes(dfs)
