"""
Report generation for escrow conformance results.
"""

import json
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from comparator import ComparisonResult, Divergence


@dataclass
class TestResult:
    """Result of a single test vector."""
    vector_name: str
    suite_name: str
    passed: bool
    execution_time_ms: float
    comparison: Optional[ComparisonResult] = None
    error: Optional[str] = None


@dataclass
class SuiteResult:
    """Result of a test suite (collection of vectors)."""
    suite_name: str
    total_tests: int
    passed_tests: int
    failed_tests: int
    skipped_tests: int
    execution_time_ms: float
    test_results: List[TestResult]

    @property
    def executed_tests(self) -> int:
        return self.passed_tests + self.failed_tests

    @property
    def pass_rate(self) -> float:
        if self.executed_tests == 0:
            return 0.0
        return self.passed_tests / self.executed_tests * 100


@dataclass
class ConformanceReport:
    """Complete conformance test report."""
    timestamp: str
    clients: List[str]
    reference_client: str
    total_suites: int
    total_tests: int
    total_passed: int
    total_failed: int
    total_skipped: int
    total_divergences: int
    execution_time_ms: float
    suite_results: List[SuiteResult]
    divergences: List[Divergence]

    @property
    def pass_rate(self) -> float:
        return self.total_passed / max(self.total_passed + self.total_failed, 1) * 100


class ReportGenerator:
    """Writes JSON and markdown conformance reports."""

    def __init__(self, result_dir: str):
        self.result_dir = result_dir
        os.makedirs(result_dir, exist_ok=True)

    def generate_report(
        self,
        suite_results: List[SuiteResult],
        clients: List[str],
        reference_client: str,
        execution_time_ms: float,
    ) -> ConformanceReport:
        """
        Aggregate suite results into one report.

        Args:
            suite_results: Results from all test suites
            clients: List of client names tested
            reference_client: Name of the reference the clients were checked against
            execution_time_ms: Total execution time
        """
        divergences = []
        for suite in suite_results:
            for test in suite.test_results:
                if test.comparison and test.comparison.divergences:
                    divergences.extend(test.comparison.divergences)

        return ConformanceReport(
            timestamp=datetime.now(timezone.utc).isoformat(),
            clients=clients,
            reference_client=reference_client,
            total_suites=len(suite_results),
            total_tests=sum(s.total_tests for s in suite_results),
            total_passed=sum(s.passed_tests for s in suite_results),
            total_failed=sum(s.failed_tests for s in suite_results),
            total_skipped=sum(s.skipped_tests for s in suite_results),
            total_divergences=len(divergences),
            execution_time_ms=execution_time_ms,
            suite_results=suite_results,
            divergences=divergences,
        )

    def write_json_report(
        self,
        report: ConformanceReport,
        filename: str = "conformance-report.json",
    ) -> str:
        """Write report as JSON; returns the written path."""
        path = os.path.join(self.result_dir, filename)
        with open(path, "w") as f:
            json.dump(self._report_to_dict(report), f, indent=2)
        return path

    def write_summary(
        self,
        report: ConformanceReport,
        filename: str = "conformance-summary.md",
    ) -> str:
        """Write a markdown summary; returns the written path."""
        path = os.path.join(self.result_dir, filename)

        lines = [
            "# Escrow Conformance Report",
            "",
            f"- Timestamp: {report.timestamp}",
            f"- Clients: {', '.join(report.clients)}",
            f"- Reference: {report.reference_client}",
            f"- Passed: {report.total_passed}",
            f"- Failed: {report.total_failed}",
            f"- Skipped: {report.total_skipped}",
            f"- Divergences: {report.total_divergences}",
            f"- Pass rate: {report.pass_rate:.1f}%",
            f"- Duration: {report.execution_time_ms:.2f}ms",
            "",
            "## Suites",
            "",
            "| Status | Suite | Passed | Failed | Skipped |",
            "|---|---|---|---|---|",
        ]

        for suite in report.suite_results:
            if suite.executed_tests == 0:
                status = "SKIP"
            elif suite.failed_tests == 0:
                status = "PASS"
            else:
                status = "FAIL"
            lines.append(
                f"| {status} | {suite.suite_name} | {suite.passed_tests} "
                f"| {suite.failed_tests} | {suite.skipped_tests} |"
            )

        if report.divergences:
            lines.extend(["", "## Divergences", ""])
            for div in report.divergences:
                lines.append(f"- `{div.vector_name}` ({div.field}), client `{div.client}`")
                lines.append(f"  - expected: `{div.expected}`")
                lines.append(f"  - actual: `{div.actual}`")
                if div.details:
                    lines.append(f"  - {div.details}")

        errored = [
            t for s in report.suite_results for t in s.test_results if t.error
        ]
        if errored:
            lines.extend(["", "## Errors", ""])
            for t in errored:
                lines.append(f"- `{t.suite_name}/{t.vector_name}`: {t.error}")

        with open(path, "w") as f:
            f.write("\n".join(lines) + "\n")

        return path

    def print_summary(self, report: ConformanceReport) -> None:
        """Print summary to console."""
        print("\n" + "=" * 60)
        print("Escrow Conformance Results")
        print("=" * 60)
        print(f"Clients: {', '.join(report.clients)}")
        print(f"Reference: {report.reference_client}")
        print()
        print(f"Passed:      {report.total_passed}")
        print(f"Failed:      {report.total_failed}")
        print(f"Skipped:     {report.total_skipped}")
        print(f"Divergences: {report.total_divergences}")
        print(f"Pass Rate:   {report.pass_rate:.1f}%")
        print()

        if report.divergences:
            print("DIVERGENCES FOUND:")
            for div in report.divergences[:10]:  # Show first 10
                print(f"  - {div.vector_name}: {div.field} ({div.client})")
            if len(report.divergences) > 10:
                print(f"  ... and {len(report.divergences) - 10} more")

        status = "PASSED" if report.total_failed == 0 else "FAILED"
        print()
        print(f"Overall: {status}")
        print("=" * 60)

    def _report_to_dict(self, report: ConformanceReport) -> Dict[str, Any]:
        return {
            "timestamp": report.timestamp,
            "clients": report.clients,
            "reference_client": report.reference_client,
            "total_suites": report.total_suites,
            "total_tests": report.total_tests,
            "total_passed": report.total_passed,
            "total_failed": report.total_failed,
            "total_skipped": report.total_skipped,
            "total_divergences": report.total_divergences,
            "execution_time_ms": report.execution_time_ms,
            "suite_results": [
                {
                    "suite_name": s.suite_name,
                    "total_tests": s.total_tests,
                    "passed_tests": s.passed_tests,
                    "failed_tests": s.failed_tests,
                    "skipped_tests": s.skipped_tests,
                    "execution_time_ms": s.execution_time_ms,
                    "pass_rate": s.pass_rate,
                    "errors": {t.vector_name: t.error for t in s.test_results if t.error},
                }
                for s in report.suite_results
            ],
            "divergences": [
                {
                    "field": d.field,
                    "expected": str(d.expected),
                    "actual": str(d.actual),
                    "client": d.client,
                    "reference_client": d.reference_client,
                    "vector_name": d.vector_name,
                    "details": d.details,
                }
                for d in report.divergences
            ],
        }
