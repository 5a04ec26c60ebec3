"""Audit reports: a JSON document and a fixed-width text summary."""

from __future__ import annotations

import json
from collections import OrderedDict
from datetime import datetime
from pathlib import Path

from audit.checks import classify_check

CHECK_FIELDS = ("section", "name", "expected", "actual", "delta", "passed")


def verdict(summary: dict) -> str:
    if summary["identity_fail"]:
        return "IDENTITY_ERRORS"
    if summary["policy_fail"]:
        return "POLICY_BREACHES"
    return "BALANCED"


def build_json_report(audit_data: dict) -> dict:
    results = audit_data["results"]
    summary = audit_data["summary"]
    meta = audit_data["model_result"].metadata
    return {
        "timestamp": datetime.now().isoformat(),
        "summary": summary,
        "verdict": verdict(summary),
        "solver": {
            "converged": meta.converged,
            "iterations": meta.iterations,
            "max_error": meta.max_error,
            "year_with_max_error": meta.year_with_max_error,
            "duration_ms": meta.duration_ms,
        },
        "checks": [dict(zip(CHECK_FIELDS, r), category=classify_check(r[0], r[1]))
                   for r in results],
    }


def write_json_report(audit_data: dict, output_path: str | Path) -> Path:
    """Write audit results to JSON file."""
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(build_json_report(audit_data), f, indent=2)
    return path


def format_text_report(audit_data: dict) -> str:
    """Format audit results as human-readable text."""
    results = audit_data["results"]
    summary = audit_data["summary"]
    result = audit_data["model_result"]
    lines: list[str] = []

    lines.append("=" * 72)
    lines.append("FINANCIAL PROJECTION - AUDIT REPORT")
    lines.append("=" * 72)
    lines.append("")

    sections: OrderedDict[str, list] = OrderedDict()
    for r in results:
        sections.setdefault(r[0], []).append(r)

    for category, title in (("identity", "ACCOUNTING IDENTITIES"),
                            ("policy", "BALANCING POLICY AND SOLVER")):
        lines.append(title)
        lines.append("-" * 72)
        for sec, checks in sections.items():
            group = [r for r in checks if classify_check(r[0], r[1]) == category]
            if not group:
                continue
            fails = [r for r in group if not r[5]]
            status = "ALL PASS" if not fails else f"{len(fails)} FAIL"
            lines.append(f"  {sec} ({len(group)} checks, {status})")
            for r in fails:
                lines.append(f"    FAIL  {r[1]}")
                lines.append(f"          expected: {r[2]:>18,.2f}")
                lines.append(f"          actual:   {r[3]:>18,.2f}")
                lines.append(f"          delta:    {r[4]:>18,.2f}")
            if not fails:
                lines.append(f"    (max delta: {max(r[4] for r in group):,.6f})")
        lines.append("")

    s = result.summary
    lines.append("=" * 72)
    lines.append("SUMMARY")
    lines.append("=" * 72)
    lines.append(f"  Years:            {result.years[0].year}-{result.years[-1].year}"
                 if result.years else "  Years:            none")
    lines.append(f"  Total revenue:    {s.total_revenue:>20,.0f}")
    lines.append(f"  Total EBITDA:     {s.total_ebitda:>20,.0f}")
    lines.append(f"  NPV rent:         {s.npv_rent:>20,.0f}")
    lines.append(f"  NPV cash flow:    {s.npv_cash_flow:>20,.0f}")
    lines.append(f"  Avg EBITDA margin:{s.avg_ebitda_margin:>19.2f}%")
    lines.append(f"  Avg rent load:    {s.avg_rent_load:>19.2f}%")
    lines.append(f"  Solver:           {result.metadata.iterations} iteration(s), "
                 f"{'converged' if result.metadata.converged else 'NOT converged'}")
    lines.append("")
    lines.append(f"  Total checks:     {summary['total']}")
    lines.append(f"  Identities:       {summary['identity_pass']} pass, "
                 f"{summary['identity_fail']} fail")
    lines.append(f"  Policy:           {summary['policy_pass']} pass, "
                 f"{summary['policy_fail']} fail")
    lines.append("")
    lines.append(f"  VERDICT: {verdict(summary)}")
    lines.append("=" * 72)

    return "\n".join(lines)
