"""
Human-readable and JSON reporting of suite results.
"""

import json
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TextIO

from resilience_engine.logging import get_logger
from resilience_engine.suites.models import SuiteResult, Verdict, VerdictClass

logger = get_logger(__name__)

_EXPLANATIONS = {
    VerdictClass.ALL_PASS: "EXCELLENT: all required and optional suites passed",
    VerdictClass.MEETS_MINIMUM: "GOOD: all required suites passed (meets minimum)",
    VerdictClass.FAILED: "FAILED: at least one required suite failed",
}


def format_suite_line(result: SuiteResult) -> str:
    status = "PASS" if result.passed else "FAIL"
    kind = "required" if result.required else "optional"
    line = (
        f"[{status}] {result.name} ({kind}) "
        f"{result.checks_passed}/{len(result.checks)} checks {result.duration_s:.1f}s"
    )
    if result.error:
        line += f" error: {result.error}"
    return line


def explain(verdict: Verdict) -> str:
    """One-line explanation of the classification."""
    text = _EXPLANATIONS[verdict.classification]
    shortfalls = []
    if verdict.failed_required:
        shortfalls.append(f"required failed: {', '.join(verdict.failed_required)}")
    if verdict.failed_optional:
        shortfalls.append(f"optional failed: {', '.join(verdict.failed_optional)}")
    if shortfalls:
        text += f" ({'; '.join(shortfalls)})"
    return text


class SuiteReporter:
    """Writes per-suite lines and the final summary block to a stream."""

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream or sys.stdout

    def _write(self, line: str = "") -> None:
        self.stream.write(line + "\n")
        self.stream.flush()

    def report_suite(self, result: SuiteResult) -> None:
        self._write(format_suite_line(result))

    def report_verdict(self, verdict: Verdict) -> None:
        self._write()
        self._write("=" * 60)
        self._write("RESILIENCE TEST SUMMARY")
        self._write("=" * 60)
        for result in verdict.results:
            self._write(format_suite_line(result))
        self._write("-" * 60)
        self._write(f"Required: {verdict.required_passed}/{verdict.required_total} passed")
        self._write(f"Optional: {verdict.optional_passed}/{verdict.optional_total} passed")
        self._write(f"Total:    {verdict.total_passed}/{verdict.total} passed")
        self._write(f"Verdict:  {verdict.classification.value}")
        self._write(explain(verdict))
        self._write("=" * 60)


def write_report(
    verdict: Verdict,
    directory: Path,
    config: dict[str, Any] | None = None,
) -> Path:
    """
    Write the verdict as a JSON artefact.

    Args:
        verdict: Run verdict
        directory: Target directory (created if missing)
        config: Optional configuration summary stored alongside the results

    Returns:
        Path of the written report
    """
    directory.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S%fZ")
    path = directory / f"report-{stamp}.json"

    payload = verdict.model_dump(mode="json")
    payload["ok"] = verdict.ok
    payload["explanation"] = explain(verdict)
    if config is not None:
        payload["config"] = config

    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    logger.info("Report written to %s", path)
    return path
