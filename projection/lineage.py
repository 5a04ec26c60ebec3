"""Calculation lineage: where every projection column comes from.

Two views per column key of YearlyProjection:
    tooltip   the first-order formula, optionally with the year's values
    heritage  the chain of formulas down to the driving assumptions

The graph is static and built at import. Keys without a node of their own
(tuition_base, cpi_rate, students, ...) are drivers; walks stop there.

    from projection.lineage import get_tooltip, get_heritage

    get_tooltip("ebitda")
    # "ebitda = revenue - staff_cost - rent - opex"

    get_tooltip("ebitda", values=year.to_row())
    # "ebitda = ... = SAR 50,000,000 - SAR 15,000,000 - ... = SAR 20,000,000"
"""

from __future__ import annotations

from typing import Iterator, Mapping, NamedTuple


class LineageNode(NamedTuple):
    key: str
    formula: str
    inputs: tuple[str, ...]
    sign: tuple[int, ...]        # +1 / -1 per input, used when values are inlined
    unit: str = "SAR"
    label: str = ""
    source: str = ""             # module that computes the value


class HeritageStep(NamedTuple):
    key: str
    label: str
    formula: str
    inputs: tuple[str, ...]
    sign: tuple[int, ...]
    unit: str
    source: str
    depth: int
    input_values: dict[str, float | None]
    result_value: float | None


_GRAPH: dict[str, LineageNode] = {}


def _n(key: str, formula: str, inputs: tuple[str, ...], *,
       sign: tuple[int, ...] | None = None, unit: str = "SAR",
       label: str = "", source: str = "") -> None:
    _GRAPH[key] = LineageNode(key, formula, inputs, sign or (1,) * len(inputs),
                              unit, label, source)


# ── Operating lines ──────────────────────────────────────────────────

_n("tuition", "tuition_base x (1 + cpi_rate)^floor((year - start_year) / cpi_frequency)",
   ("tuition_base", "cpi_rate", "cpi_frequency"),
   label="Tuition per Student", source="projection/growth.py")

_n("revenue", "sum(tuition x students) + other_revenue", ("tuition", "students", "other_revenue"),
   label="Revenue", source="projection/revenue.py")

_n("staff_cost", "staff_cost_base x (1 + cpi_rate)^floor((year - base_year) / frequency)",
   ("staff_cost_base", "cpi_rate", "staff_cost_cpi_frequency"),
   label="Staff Costs", source="projection/staff_costs.py")

_n("rent", "rent model (fixed escalation | revenue share | partner)", ("rent_model", "revenue"),
   label="Rent", source="projection/rent.py")

_n("opex", "sum(fixed_amount | revenue x percent / 100)", ("opex_sub_accounts", "revenue"),
   label="Operating Expenses", source="projection/opex.py")

_n("ebitda", "revenue - staff_cost - rent - opex", ("revenue", "staff_cost", "rent", "opex"),
   sign=(1, -1, -1, -1), label="EBITDA", source="projection/ebitda.py")

_n("ebitda_margin", "ebitda / revenue x 100", ("ebitda", "revenue"),
   unit="%", label="EBITDA Margin", source="projection/ebitda.py")

_n("rent_load", "rent / revenue x 100", ("rent", "revenue"),
   unit="%", label="Rent Load", source="projection/orchestrator.py")


# ── P&L tail ─────────────────────────────────────────────────────────

_n("depreciation", "prior fixed_assets x depreciation_rate", ("fixed_assets_prior", "depreciation_rate"),
   label="Depreciation", source="projection/solver.py:forward_pass")

_n("interest_expense", "avg(prior debt, last pass debt) x debt_interest_rate",
   ("short_term_debt", "debt_interest_rate"),
   label="Interest Expense", source="projection/solver.py:forward_pass")

_n("interest_income", "avg(prior cash, last pass cash) x bank_deposit_interest_rate",
   ("cash", "bank_deposit_interest_rate"),
   label="Interest Income", source="projection/solver.py:forward_pass")

_n("net_result_before_zakat", "ebitda - depreciation - interest_expense + interest_income", (
    "ebitda", "depreciation", "interest_expense", "interest_income",
), sign=(1, -1, -1, 1), label="Result before Zakat", source="projection/solver.py:forward_pass")

_n("zakat", "max(0, net_result_before_zakat) x zakat_rate", ("net_result_before_zakat", "zakat_rate"),
   label="Zakat", source="projection/formulas.py")

_n("net_result", "net_result_before_zakat - zakat", ("net_result_before_zakat", "zakat"),
   sign=(1, -1), label="Net Result", source="projection/solver.py:forward_pass")


# ── Cash flow ────────────────────────────────────────────────────────

_n("working_capital_change",
   "d(accounts_receivable) - d(accounts_payable) - d(deferred_income) - d(accrued_expenses)", (
       "accounts_receivable", "accounts_payable", "deferred_income", "accrued_expenses",
   ), sign=(1, -1, -1, -1), label="Working Capital Change", source="projection/solver.py:forward_pass")

_n("operating_cash_flow", "net_result + depreciation - working_capital_change", (
    "net_result", "depreciation", "working_capital_change",
), sign=(1, 1, -1), label="Operating Cash Flow", source="projection/solver.py:forward_pass")

_n("investing_cash_flow", "-capex", ("capex",), sign=(-1,),
   label="Investing Cash Flow", source="projection/solver.py:forward_pass")

_n("theoretical_cash", "prior cash + operating_cash_flow + investing_cash_flow", (
    "cash_prior", "operating_cash_flow", "investing_cash_flow",
), label="Theoretical Cash", source="projection/solver.py:forward_pass")

_n("financing_cash_flow", "short_term_debt - prior short_term_debt", (
    "short_term_debt", "short_term_debt_prior",
), sign=(1, -1), label="Financing Cash Flow", source="projection/solver.py:balance_cash")

_n("net_cash_flow", "operating_cash_flow + investing_cash_flow + financing_cash_flow", (
    "operating_cash_flow", "investing_cash_flow", "financing_cash_flow",
), label="Net Cash Flow", source="projection/solver.py:forward_pass")


# ── Balance sheet ────────────────────────────────────────────────────

_n("cash", "balancing policy on theoretical_cash (floor minimum_cash_balance)", (
    "theoretical_cash", "short_term_debt_prior", "minimum_cash_balance",
), sign=(1, -1, 1), label="Cash", source="projection/solver.py:balance_cash")

_n("short_term_debt", "prior debt + shortfall below minimum_cash_balance, repaid from surplus", (
    "theoretical_cash", "short_term_debt_prior", "minimum_cash_balance",
), sign=(-1, 1, 1), label="Short-term Debt", source="projection/solver.py:balance_cash")

_n("accounts_receivable", "revenue / 365 x ar_collection_days", ("revenue", "ar_collection_days"),
   label="Accounts Receivable", source="projection/solver.py:forward_pass")

_n("accounts_payable", "staff_cost / 365 x ap_payment_days", ("staff_cost", "ap_payment_days"),
   label="Accounts Payable", source="projection/solver.py:forward_pass")

_n("deferred_income", "revenue x deferral_factor", ("revenue", "deferral_factor"),
   label="Deferred Income", source="projection/solver.py:forward_pass")

_n("accrued_expenses", "staff_cost x accrual_days / 365", ("staff_cost", "accrual_days"),
   label="Accrued Expenses", source="projection/solver.py:forward_pass")

_n("fixed_assets", "prior fixed_assets + capex - depreciation", (
    "fixed_assets_prior", "capex", "depreciation",
), sign=(1, 1, -1), label="Fixed Assets", source="projection/solver.py:forward_pass")

_n("total_assets", "cash + accounts_receivable + fixed_assets", (
    "cash", "accounts_receivable", "fixed_assets",
), label="Total Assets", source="projection/solver.py:forward_pass")

_n("total_liabilities", "accounts_payable + deferred_income + accrued_expenses + short_term_debt", (
    "accounts_payable", "deferred_income", "accrued_expenses", "short_term_debt",
), label="Total Liabilities", source="projection/solver.py:forward_pass")

_n("retained_earnings", "prior retained_earnings + net_result", (
    "retained_earnings_prior", "net_result",
), label="Retained Earnings", source="projection/solver.py:forward_pass")

_n("total_equity", "opening_equity + retained_earnings", ("opening_equity", "retained_earnings"),
   label="Total Equity", source="projection/solver.py:forward_pass")

_n("balance_gap", "total_assets - total_liabilities - total_equity", (
    "total_assets", "total_liabilities", "total_equity",
), sign=(1, -1, -1), label="Balance Gap (should be 0)", source="projection/types.py")


# ── Queries ─────────────────────────────────────────────────────

def _fmt_val(value: float | None, unit: str = "SAR") -> str:
    if value is None:
        return "?"
    if unit == "%":
        return f"{value:.1f}%"
    if unit == "SAR":
        return f"SAR {value:,.0f}"
    return f"{value:,.0f}"


def _term(position: int, sign: int, text: str) -> str:
    """One operand of an inlined formula; the first carries no operator."""
    if position == 0:
        return f"-{text}" if sign < 0 else text
    return f"{'-' if sign < 0 else '+'} {text}"


def _walk(key: str, max_depth: int) -> Iterator[tuple[str, int]]:
    """Depth-first (key, depth) pairs, each key once, drivers included."""
    seen: set[str] = set()
    stack = [(key, 0)]
    while stack:
        k, depth = stack.pop()
        if depth > max_depth or k in seen:
            continue
        seen.add(k)
        yield k, depth
        node = _GRAPH.get(k)
        if node is not None:
            stack.extend((inp, depth + 1) for inp in reversed(node.inputs))


def get_node(key: str) -> LineageNode | None:
    return _GRAPH.get(key)


def get_all_keys() -> frozenset[str]:
    return frozenset(_GRAPH)


def get_tooltip(key: str, values: Mapping[str, float] | None = None) -> str:
    """Formula for key, with values substituted when given.

    Inputs missing from values stay as names. "" for keys without a node.
    """
    node = _GRAPH.get(key)
    if node is None:
        return ""
    text = f"{key} = {node.formula}"
    if values is None:
        return text

    terms = []
    for i, (inp, s) in enumerate(zip(node.inputs, node.sign)):
        v = values.get(inp)
        terms.append(_term(i, s, inp if v is None else _fmt_val(abs(v), node.unit)))
    text = f"{text} = {' '.join(terms)}"
    if values.get(key) is not None:
        text += f" = {_fmt_val(values[key], node.unit)}"
    return text


def get_heritage(key: str, max_depth: int = 8,
                 values: Mapping[str, float] | None = None) -> list[HeritageStep]:
    """Formula chain from key down to its drivers, depth-first."""
    values = values or {}
    steps = []
    for k, depth in _walk(key, max_depth):
        node = _GRAPH.get(k)
        if node is None:
            continue
        steps.append(HeritageStep(
            k, node.label or k, node.formula, node.inputs, node.sign, node.unit, node.source,
            depth, {inp: values.get(inp) for inp in node.inputs}, values.get(k),
        ))
    return steps


def get_leaf_inputs(key: str, max_depth: int = 10) -> frozenset[str]:
    """Driver keys (no node of their own) that key depends on."""
    return frozenset(k for k, _ in _walk(key, max_depth) if k not in _GRAPH)
