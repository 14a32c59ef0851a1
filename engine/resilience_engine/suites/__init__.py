"""Suite registry, verdict classification and reporting."""

from resilience_engine.suites.models import (
    Check,
    Suite,
    SuiteResult,
    Verdict,
    VerdictClass,
    classify,
)
from resilience_engine.suites.registry import SuiteRegistry
from resilience_engine.suites.reporter import SuiteReporter, write_report

__all__ = [
    "Check",
    "Suite",
    "SuiteRegistry",
    "SuiteReporter",
    "SuiteResult",
    "Verdict",
    "VerdictClass",
    "classify",
    "write_report",
]
