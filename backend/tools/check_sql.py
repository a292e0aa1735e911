"""Run the SQL safety gate over a regression corpus or a single query.

The corpus is a YAML file with a ``cases`` list; each case has ``name``,
``sql``, ``admitted`` and, for rejections, ``first_reason``. Cases whose
verdict differs from the expectation are reported as mismatches.

Usage:
    cd backend
    python -m tools.check_sql
    python -m tools.check_sql --cases schema/gate_cases.yaml --output report.json
    python -m tools.check_sql --sql "select * from users; drop table users"
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any

import yaml

from querypilot.security import assess_complexity, validate_sql

DEFAULT_CASES = Path(__file__).resolve().parent.parent / "schema" / "gate_cases.yaml"


@dataclass
class CaseResult:
    """Outcome of running one corpus case through the gate."""
    name: str
    sql: str
    expected_admitted: bool
    admitted: bool
    reasons: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    expected_first_reason: str | None = None

    @property
    def matches(self) -> bool:
        if self.admitted != self.expected_admitted:
            return False
        if self.expected_first_reason and self.reasons:
            return self.reasons[0] == self.expected_first_reason
        return True


@dataclass
class CheckReport:
    """Summary of a corpus run."""
    total: int = 0
    admitted: int = 0
    rejected: int = 0
    mismatches: int = 0
    results: list[CaseResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": {
                "total": self.total,
                "admitted": self.admitted,
                "rejected": self.rejected,
                "mismatches": self.mismatches,
            },
            "results": [dict(asdict(r), matches=r.matches) for r in self.results],
        }


def load_cases(path: Path) -> list[dict[str, Any]]:
    """Load gate cases from a YAML corpus."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    cases = data.get("cases", [])
    if not isinstance(cases, list):
        raise ValueError(f"'cases' must be a list in {path}")
    return cases


def run_cases(cases: list[dict[str, Any]]) -> CheckReport:
    report = CheckReport()
    for index, case in enumerate(cases):
        sql = case.get("sql", "")
        verdict = validate_sql(sql)
        complexity = assess_complexity(sql)
        result = CaseResult(
            name=case.get("name") or f"case_{index}",
            sql=sql,
            expected_admitted=bool(case.get("admitted", False)),
            admitted=verdict.admitted,
            reasons=list(verdict.reasons),
            warnings=list(complexity.warnings),
            expected_first_reason=case.get("first_reason"),
        )
        report.total += 1
        if result.admitted:
            report.admitted += 1
        else:
            report.rejected += 1
        if not result.matches:
            report.mismatches += 1
        report.results.append(result)
    return report


def _print_single(sql: str) -> int:
    verdict = validate_sql(sql)
    complexity = assess_complexity(sql)
    print(f"Admitted: {verdict.admitted}")
    for reason in verdict.reasons:
        print(f"  - reason: {reason}")
    for warning in complexity.warnings:
        print(f"  - warning: {warning}")
    return 0 if verdict.admitted else 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Check SQL against the safety gate")
    parser.add_argument("--cases", type=Path, default=DEFAULT_CASES, help="YAML corpus of gate cases")
    parser.add_argument("--sql", help="Check a single SQL string instead of a corpus")
    parser.add_argument("--output", type=Path, help="Write JSON report to this path")
    parser.add_argument("--verbose", "-v", action="store_true", help="Print every case")
    args = parser.parse_args(argv)

    if args.sql is not None:
        return _print_single(args.sql)

    report = run_cases(load_cases(args.cases))

    print("=" * 60)
    print("SAFETY GATE SUMMARY")
    print("=" * 60)
    print(f"Total cases: {report.total}")
    print(f"Admitted:    {report.admitted}")
    print(f"Rejected:    {report.rejected}")
    print(f"Mismatches:  {report.mismatches}")

    for result in report.results:
        if args.verbose or not result.matches:
            status = "OK" if result.matches else "MISMATCH"
            print(f"\n[{status}] {result.name}")
            print(f"  admitted={result.admitted} expected={result.expected_admitted}")
            for reason in result.reasons:
                print(f"  - {reason}")

    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(report.to_dict(), f, indent=2, ensure_ascii=False)
        print(f"\nReport written to: {args.output}")

    return 1 if report.mismatches else 0


if __name__ == "__main__":
    sys.exit(main())
