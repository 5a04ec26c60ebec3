"""CLI entry: python -m audit [input.json] [--json PATH] [--verbose]"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from projection.inputs import ProjectionParams
from audit.runner import run_all_checks
from audit.report import format_text_report, write_json_report


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="python -m audit",
                                     description="Run a projection and audit its accounting identities.")
    parser.add_argument("input", nargs="?", help="projection request JSON (default: bundled scenario)")
    parser.add_argument("--json", dest="json_path", help="also write a JSON report to this path")
    parser.add_argument("-v", "--verbose", action="store_true", help="log solver progress")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    params = None
    if args.input:
        with open(args.input, "r") as f:
            params = ProjectionParams.from_dict(json.load(f))

    print("Running projection...")
    audit_data = run_all_checks(params=params)
    print(format_text_report(audit_data))

    if args.json_path:
        path = write_json_report(audit_data, Path(args.json_path))
        print(f"\nJSON report written to: {path}")

    return 1 if audit_data["summary"]["identity_fail"] else 0


if __name__ == "__main__":
    sys.exit(main())
