"""
Suite registry.

Runs registered suites sequentially. A suite that raises is recorded as
failed with its error and the next suite still runs.
"""

import asyncio
import time
from collections.abc import Callable, Iterable

from resilience_engine.errors import UnknownSuiteError
from resilience_engine.logging import clear_log_context, get_logger, set_log_context
from resilience_engine.runtime.cancellation import is_cancelled
from resilience_engine.suites.models import Suite, SuiteResult, Verdict, classify

logger = get_logger(__name__)


class SuiteRegistry:
    """Ordered collection of suites."""

    def __init__(self, suites: Iterable[Suite] = ()):
        self._suites: dict[str, Suite] = {}
        for suite in suites:
            self.register(suite)

    def register(self, suite: Suite) -> None:
        if suite.name in self._suites:
            raise ValueError(f"Suite '{suite.name}' is already registered")
        self._suites[suite.name] = suite

    def names(self) -> list[str]:
        return list(self._suites)

    def get(self, name: str) -> Suite:
        try:
            return self._suites[name]
        except KeyError:
            raise UnknownSuiteError(name, self.names()) from None

    def select(self, names: Iterable[str] | None = None) -> list[Suite]:
        """Resolve suite names (registration order when None)."""
        if names is None:
            return list(self._suites.values())
        return [self.get(name) for name in names]

    async def run_suite(self, suite: Suite) -> SuiteResult:
        """Run one suite, converting any exception into a failed result."""
        set_log_context(suite.name)
        logger.info("Running %s (%s)", suite.name, "required" if suite.required else "optional")
        start = time.perf_counter()
        try:
            checks = await suite.execute()
            passed = all(checks.values())
            error = None
        except Exception as e:
            logger.exception("Suite %s crashed", suite.name)
            checks = {}
            passed = False
            error = f"{type(e).__name__}: {e}"
        finally:
            clear_log_context()

        return SuiteResult(
            name=suite.name,
            required=suite.required,
            passed=passed,
            checks=checks,
            error=error,
            duration_s=time.perf_counter() - start,
        )

    async def run_all(
        self,
        names: Iterable[str] | None = None,
        cancel: asyncio.Event | None = None,
        on_result: Callable[[SuiteResult], None] | None = None,
    ) -> Verdict:
        """
        Run suites one after another and classify the results.

        Args:
            names: Subset of suites to run (all when None)
            cancel: Once set, remaining suites are recorded as failed without running
            on_result: Called with each SuiteResult as soon as it is available

        Returns:
            Verdict over the suites that were selected
        """
        results: list[SuiteResult] = []
        for suite in self.select(names):
            if is_cancelled(cancel):
                result = SuiteResult(
                    name=suite.name, required=suite.required, passed=False, error="cancelled"
                )
            else:
                result = await self.run_suite(suite)
            results.append(result)
            if on_result is not None:
                on_result(result)

        verdict = classify(results)
        logger.info(
            "Verdict: %s (required %d/%d, optional %d/%d)",
            verdict.classification.value,
            verdict.required_passed,
            verdict.required_total,
            verdict.optional_passed,
            verdict.optional_total,
        )
        return verdict
