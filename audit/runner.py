"""Audit runner -- orchestrates all checks against projection output."""

from __future__ import annotations

from projection.config import load_default_scenario
from projection.errors import is_error
from projection.inputs import ProjectionParams
from projection.orchestrator import run_projection_sync
from projection.settings import StaticSettingsProvider
from projection.types import FinancialSettings, ProjectionResult
from audit.checks import (
    check_balance_sheet,
    check_cash_flow,
    check_pnl,
    check_policy,
    check_solver,
    classify_check,
)


def run_all_checks(
    result: ProjectionResult | None = None,
    params: ProjectionParams | None = None,
    settings: FinancialSettings | None = None,
) -> dict:
    """Run all audit checks. If result is None, runs the projection first.

    settings must be the ones the projection ran with; defaults otherwise.

    Returns dict with:
        results: list of (section, name, expected, actual, delta, passed)
        summary: dict with counts
        model_result: the ProjectionResult used
    """
    if settings is None:
        settings = FinancialSettings.defaults()
    if params is not None:
        settings = settings.with_zakat(params.admin.zakat_rate)

    if result is None:
        if params is None:
            params = ProjectionParams.from_dict(load_default_scenario())
            settings = settings.with_zakat(params.admin.zakat_rate)
        out = run_projection_sync(params, settings_provider=StaticSettingsProvider(settings))
        if is_error(out):
            raise ValueError(f"Projection failed: {out}")
        result = out

    years = result.years
    all_results: list[tuple] = []
    all_results.extend(check_pnl(years, settings.zakat_rate))
    all_results.extend(check_cash_flow(years))
    all_results.extend(check_balance_sheet(years))
    all_results.extend(check_policy(years, settings.minimum_cash_balance))
    all_results.extend(check_solver(result.metadata))

    identity = [r for r in all_results if classify_check(r[0], r[1]) == "identity"]
    policy = [r for r in all_results if classify_check(r[0], r[1]) == "policy"]

    return {
        "results": all_results,
        "summary": {
            "total": len(all_results),
            "identity_pass": sum(1 for r in identity if r[5]),
            "identity_fail": sum(1 for r in identity if not r[5]),
            "policy_pass": sum(1 for r in policy if r[5]),
            "policy_fail": sum(1 for r in policy if not r[5]),
        },
        "model_result": result,
    }
