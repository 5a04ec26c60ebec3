"""Value type tagging: classify every projection column by accounting category.

Each column belongs to one ValueType (what it IS) and has a unit (what it's
measured in). Exact column names are looked up first; prefixes catch the
remaining summary totals.

Usage:
    from projection.value_tags import tag_dataframe, ValueType

    df = result.dataframes["annual"]
    # df.attrs["col_tags"]  = {"revenue": ValueType.REVENUE, ...}
    # df.attrs["col_units"] = {"revenue": "SAR", ...}
"""

from __future__ import annotations

from enum import Enum


class ValueType(str, Enum):
    """Accounting category for a computed value."""
    REVENUE      = "revenue"
    EXPENSE      = "expense"
    EBITDA       = "ebitda"
    DEPRECIATION = "depreciation"
    INTEREST     = "interest"
    TAX          = "tax"           # Zakat
    PROFIT       = "profit"
    ASSET        = "asset"
    LIABILITY    = "liability"
    EQUITY       = "equity"
    CF_OPS       = "cf_ops"
    CF_INVEST    = "cf_invest"
    CF_FINANCE   = "cf_finance"
    CF_NET       = "cf_net"
    VOLUME       = "volume"        # Students
    RATIO        = "ratio"         # Margins, rent load
    PERIOD       = "period"
    SOURCE       = "source"        # Provenance tags
    OTHER        = "other"


_COLUMN_TAGS: dict[str, tuple[ValueType, str]] = {
    "year":                   (ValueType.PERIOD,       ""),
    "revenue":                (ValueType.REVENUE,      "SAR"),
    "staff_cost":             (ValueType.EXPENSE,      "SAR"),
    "rent":                   (ValueType.EXPENSE,      "SAR"),
    "opex":                   (ValueType.EXPENSE,      "SAR"),
    "ebitda":                 (ValueType.EBITDA,       "SAR"),
    "ebitda_margin":          (ValueType.RATIO,        "%"),
    "rent_load":              (ValueType.RATIO,        "%"),
    "capex":                  (ValueType.CF_INVEST,    "SAR"),
    "depreciation":           (ValueType.DEPRECIATION, "SAR"),
    "interest_expense":       (ValueType.INTEREST,     "SAR"),
    "interest_income":        (ValueType.INTEREST,     "SAR"),
    "zakat":                  (ValueType.TAX,          "SAR"),
    "net_result":             (ValueType.PROFIT,       "SAR"),
    "working_capital_change": (ValueType.CF_OPS,       "SAR"),
    "operating_cash_flow":    (ValueType.CF_OPS,       "SAR"),
    "investing_cash_flow":    (ValueType.CF_INVEST,    "SAR"),
    "financing_cash_flow":    (ValueType.CF_FINANCE,   "SAR"),
    "net_cash_flow":          (ValueType.CF_NET,       "SAR"),
    "theoretical_cash":       (ValueType.CF_NET,       "SAR"),
    "cash":                   (ValueType.ASSET,        "SAR"),
    "accounts_receivable":    (ValueType.ASSET,        "SAR"),
    "fixed_assets":           (ValueType.ASSET,        "SAR"),
    "total_assets":           (ValueType.ASSET,        "SAR"),
    "accounts_payable":       (ValueType.LIABILITY,    "SAR"),
    "deferred_income":        (ValueType.LIABILITY,    "SAR"),
    "accrued_expenses":       (ValueType.LIABILITY,    "SAR"),
    "short_term_debt":        (ValueType.LIABILITY,    "SAR"),
    "total_liabilities":      (ValueType.LIABILITY,    "SAR"),
    "opening_equity":         (ValueType.EQUITY,       "SAR"),
    "retained_earnings":      (ValueType.EQUITY,       "SAR"),
    "total_equity":           (ValueType.EQUITY,       "SAR"),
    "npv_rent":               (ValueType.EXPENSE,      "SAR"),
    "npv_cash_flow":          (ValueType.CF_NET,       "SAR"),
    "avg_ebitda_margin":      (ValueType.RATIO,        "%"),
    "avg_rent_load":          (ValueType.RATIO,        "%"),
    "total_cash_flow":        (ValueType.CF_NET,       "SAR"),
}

# ── Prefix Fallback ──────────────────────────────────────────────────

_PREFIX_TAGS: list[tuple[str, ValueType, str]] = [
    ("total_revenue",  ValueType.REVENUE,   "SAR"),
    ("total_ebitda",   ValueType.EBITDA,    "SAR"),
    ("total_capex",    ValueType.CF_INVEST, "SAR"),
    ("total_",         ValueType.EXPENSE,   "SAR"),
]


def _tag_column(col_name: str) -> tuple[ValueType, str]:
    """Classify a column: exact name first, prefix fallback second."""
    col = col_name.lower()
    if col in _COLUMN_TAGS:
        return _COLUMN_TAGS[col]
    for prefix, vtype, unit in _PREFIX_TAGS:
        if col.startswith(prefix):
            return vtype, unit
    return ValueType.OTHER, ""


def tag_columns(columns: list[str]) -> dict[str, tuple[ValueType, str]]:
    """Tag a list of column names.

    Returns: {col_name: (ValueType, unit)}
    """
    return {col: _tag_column(col) for col in columns}


def tag_dataframe(df: "pd.DataFrame", overrides: dict[str, tuple[ValueType, str]] | None = None) -> "pd.DataFrame":
    """Attach value type tags and units to a DataFrame's attrs.

    Non-destructive: returns the same DataFrame with attrs populated.
    """
    tags = tag_columns([str(c) for c in df.columns])
    if overrides:
        tags.update({c: t for c, t in overrides.items() if c in tags})
    df.attrs["col_tags"] = {col: vtype for col, (vtype, _) in tags.items()}
    df.attrs["col_units"] = {col: unit for col, (_, unit) in tags.items()}
    return df


def tag_all_dataframes(dfs: dict[str, "pd.DataFrame"]) -> dict[str, "pd.DataFrame"]:
    """Tag all DataFrames in a dict (e.g. from ProjectionResult.dataframes).

    The provenance and enrollment tables are tagged by table, since their
    columns are field or curriculum names.
    """
    out = {}
    for name, df in dfs.items():
        if name == "sources":
            overrides = {c: (ValueType.SOURCE, "") for c in df.columns if c != "year"}
        elif name == "enrollment":
            overrides = {c: (ValueType.VOLUME, "students") for c in df.columns if c != "year"}
        else:
            overrides = None
        out[name] = tag_dataframe(df, overrides)
    return out
