"""Operating expenses: sum of fixed and percent-of-revenue sub-accounts."""

from __future__ import annotations

from typing import Iterable

from projection.errors import CalcError, ErrorCode, check_non_negative
from projection.inputs import OpexSubAccount


def validate_sub_account(account: OpexSubAccount) -> CalcError | None:
    field = f"opex.{account.name}"
    if account.is_fixed:
        if account.fixed_amount is None:
            return CalcError(ErrorCode.MISSING_PARAMETER,
                             f"Fixed opex account '{account.name}' needs a fixed amount", field)
        return check_non_negative(account.fixed_amount, field, f"Opex '{account.name}'")
    pct = account.percent_of_revenue
    if pct is None:
        return CalcError(ErrorCode.MISSING_PARAMETER,
                         f"Opex account '{account.name}' needs a percent of revenue", field)
    if pct < 0 or pct > 100:
        return CalcError(ErrorCode.INVALID_PERCENT,
                         f"Opex '{account.name}' percent must be between 0 and 100 (got {pct})", field)
    return None


def sub_account_amount(account: OpexSubAccount, revenue: float) -> float:
    if account.is_fixed:
        return account.fixed_amount or 0.0
    return revenue * (account.percent_of_revenue or 0.0) / 100.0


def calculate_opex(revenue: float, accounts: Iterable[OpexSubAccount]) -> float | CalcError:
    """Total opex for one year."""
    err = check_non_negative(revenue, "revenue", "Revenue")
    if err:
        return err
    total = 0.0
    for account in accounts:
        err = validate_sub_account(account)
        if err:
            return err
        total += sub_account_amount(account, revenue)
    return total
