"""
Suite, result and verdict models.
"""

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

from resilience_engine.logging import get_logger

logger = get_logger(__name__)

CheckFn = Callable[[], Awaitable[bool]]


@dataclass(frozen=True)
class Check:
    """One named child check of a suite."""

    name: str
    run: CheckFn
    description: str = ""


@dataclass
class Suite:
    """
    A named group of checks.

    Checks run sequentially. A check that raises is logged and counted as
    failed; the remaining checks still run.
    """

    name: str
    required: bool
    checks: list[Check] = field(default_factory=list)
    description: str = ""

    async def execute(self) -> dict[str, bool]:
        """Run every check and return name -> passed."""
        results: dict[str, bool] = {}
        for check in self.checks:
            logger.info("--- %s ---", check.name)
            try:
                passed = bool(await check.run())
            except Exception:
                logger.exception("Check %s raised", check.name)
                passed = False
            results[check.name] = passed
            logger.info("%s %s: %s", "[v]" if passed else "[X]", check.name, "PASS" if passed else "FAIL")
        return results

    async def run(self) -> bool:
        """True iff every check passed."""
        return all((await self.execute()).values())


class SuiteResult(BaseModel):
    """Outcome of one suite."""

    name: str
    required: bool
    passed: bool
    checks: dict[str, bool] = Field(default_factory=dict)
    error: str | None = None
    duration_s: float = 0.0

    @property
    def checks_passed(self) -> int:
        return sum(1 for passed in self.checks.values() if passed)


class VerdictClass(str, Enum):
    """Overall classification of a run."""

    ALL_PASS = "all-pass"
    MEETS_MINIMUM = "meets-minimum"
    FAILED = "failed"


class Verdict(BaseModel):
    """Aggregated result of every suite in a run."""

    results: list[SuiteResult] = Field(default_factory=list)
    classification: VerdictClass
    required_passed: int = 0
    required_total: int = 0
    optional_passed: int = 0
    optional_total: int = 0
    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def ok(self) -> bool:
        """Meets-minimum or better."""
        return self.classification in (VerdictClass.ALL_PASS, VerdictClass.MEETS_MINIMUM)

    @property
    def total_passed(self) -> int:
        return self.required_passed + self.optional_passed

    @property
    def total(self) -> int:
        return self.required_total + self.optional_total

    @property
    def failed_required(self) -> list[str]:
        return [r.name for r in self.results if r.required and not r.passed]

    @property
    def failed_optional(self) -> list[str]:
        return [r.name for r in self.results if not r.required and not r.passed]


def classify(results: Sequence[SuiteResult]) -> Verdict:
    """
    Classify a set of suite results.

    all-pass: every suite passed. meets-minimum: every required suite passed.
    failed: at least one required suite failed.
    """
    required = [r for r in results if r.required]
    optional = [r for r in results if not r.required]
    required_passed = sum(1 for r in required if r.passed)
    optional_passed = sum(1 for r in optional if r.passed)

    if required_passed == len(required) and optional_passed == len(optional):
        classification = VerdictClass.ALL_PASS
    elif required_passed == len(required):
        classification = VerdictClass.MEETS_MINIMUM
    else:
        classification = VerdictClass.FAILED

    return Verdict(
        results=list(results),
        classification=classification,
        required_passed=required_passed,
        required_total=len(required),
        optional_passed=optional_passed,
        optional_total=len(optional),
    )
