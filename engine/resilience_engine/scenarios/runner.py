"""
Scenario runner.

Drives a Scenario through its phases, executing steps strictly in order and
short-circuiting on the first failing step. Step failures, timeouts and
exceptions all end as a FAILED ScenarioResult; nothing escapes run().
"""

import asyncio
import time

from resilience_engine.logging import get_logger
from resilience_engine.runtime.cancellation import is_cancelled
from resilience_engine.scenarios.models import (
    PHASES,
    Scenario,
    ScenarioResult,
    ScenarioRun,
    ScenarioState,
    ScenarioStep,
    StepResult,
)

logger = get_logger(__name__)

PRECONDITIONS_NOT_MET = "preconditions not met"
STEP_TIMED_OUT = "step timed out"
CANCELLED = "cancelled"


class ScenarioRunner:
    """Executes scenarios one at a time."""

    def __init__(self, cancel: asyncio.Event | None = None):
        self.cancel = cancel

    async def run(self, scenario: Scenario, cancel: asyncio.Event | None = None) -> ScenarioResult:
        """
        Run a scenario to a terminal state.

        Args:
            scenario: Scenario to execute
            cancel: Overrides the runner-level cancel event

        Returns:
            ScenarioResult in state PASSED or FAILED
        """
        cancel = cancel if cancel is not None else self.cancel
        run = ScenarioRun(scenario=scenario, cancel=cancel)
        start = time.perf_counter()
        logger.info("=== Scenario %s ===", scenario.name)

        for phase in PHASES:
            run.transition(phase)
            for step in scenario.steps_for(phase):
                if is_cancelled(cancel):
                    return self._finish(run, start, step, CANCELLED)

                result = await self._execute(run, step)
                run.step_results.append(result)

                if not result.passed:
                    if is_cancelled(cancel):
                        reason = CANCELLED
                    elif phase == ScenarioState.PRECONDITION_CHECK:
                        reason = PRECONDITIONS_NOT_MET
                    else:
                        reason = result.error or "step failed"
                    return self._finish(run, start, step, reason)

        return self._finish(run, start)

    async def _execute(self, run: ScenarioRun, step: ScenarioStep) -> StepResult:
        logger.info("[%s] %s (%s)", step.phase.value, step.name, step.kind.value)
        start = time.perf_counter()
        error: str | None = None

        try:
            if step.timeout_s is not None:
                passed = await asyncio.wait_for(step.execute(run), timeout=step.timeout_s)
            else:
                passed = await step.execute(run)
        except TimeoutError:
            passed = False
            error = STEP_TIMED_OUT
        except Exception as e:
            logger.exception("Step %s raised", step.name)
            passed = False
            error = f"{type(e).__name__}: {e}"

        duration = time.perf_counter() - start
        passed = bool(passed)
        if passed:
            logger.info("[v] %s (%.2fs)", step.name, duration)
        else:
            logger.warning("[X] %s (%.2fs) %s", step.name, duration, error or "")

        return StepResult(
            name=step.name,
            phase=step.phase,
            kind=step.kind,
            passed=passed,
            duration_s=duration,
            error=error,
        )

    def _finish(
        self,
        run: ScenarioRun,
        start: float,
        failed: ScenarioStep | None = None,
        reason: str | None = None,
    ) -> ScenarioResult:
        failed_phase = run.state if failed is not None else None
        run.transition(ScenarioState.FAILED if failed is not None else ScenarioState.PASSED)
        duration = time.perf_counter() - start

        if failed is None:
            logger.info("Scenario %s PASSED (%.2fs)", run.scenario.name, duration)
        else:
            logger.warning(
                "Scenario %s FAILED at %s/%s: %s",
                run.scenario.name,
                failed_phase.value if failed_phase else "-",
                failed.name,
                reason,
            )

        return ScenarioResult(
            scenario=run.scenario.name,
            state=run.state,
            steps=tuple(run.step_results),
            transitions=tuple(run.transitions),
            failed_step=failed.name if failed is not None else None,
            failed_phase=failed_phase,
            reason=reason,
            duration_s=duration,
        )
