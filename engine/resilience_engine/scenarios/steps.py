"""
Reusable scenario steps.

Each builder returns a ScenarioStep bound to a HarnessContext. Steps only
write into the ScenarioRun they are executed with.
"""

from collections.abc import Callable, Sequence
from typing import Any

from resilience_engine.infra.models import InfraAction
from resilience_engine.logging import get_logger
from resilience_engine.probes.business import Resource, matches_marker
from resilience_engine.probes.models import TargetEndpoint
from resilience_engine.runtime.cancellation import sleep_or_cancel
from resilience_engine.runtime.context import HarnessContext
from resilience_engine.scenarios.models import (
    MarkerRecord,
    ScenarioRun,
    ScenarioState,
    ScenarioStep,
    StepKind,
)

logger = get_logger(__name__)

# Builds a creation payload, possibly from markers written earlier in the run
PayloadFactory = Callable[[ScenarioRun], dict[str, Any]]

# Slack added on top of command/probe budgets so the step timeout never fires first
_TIMEOUT_MARGIN_S = 5.0


def assert_all_healthy(
    ctx: HarnessContext,
    endpoints: Sequence[TargetEndpoint] | None = None,
    phase: ScenarioState = ScenarioState.PRECONDITION_CHECK,
    name: str = "all_services_healthy",
) -> ScenarioStep:
    """Every endpoint answers its health probe."""
    targets = list(endpoints) if endpoints is not None else ctx.settings.endpoints

    async def execute(run: ScenarioRun) -> bool:
        return await ctx.poller.check_all_healthy(targets)

    return ScenarioStep(
        name=name,
        phase=phase,
        kind=StepKind.HEALTH,
        execute=execute,
        timeout_s=ctx.settings.probe_timeout_s + _TIMEOUT_MARGIN_S,
    )


def create_marker(
    ctx: HarnessContext,
    key: str,
    resource: Resource,
    payload: PayloadFactory,
    expected_fields: Sequence[str],
    phase: ScenarioState = ScenarioState.PRECONDITION_CHECK,
) -> ScenarioStep:
    """
    Write a marker record and remember it under `key`.

    Only `expected_fields` of the payload are compared when the marker is
    verified later.
    """

    async def execute(run: ScenarioRun) -> bool:
        body = payload(run)
        created = await ctx.business.create(resource, body)
        if created is None:
            return False
        expected = {field: body[field] for field in expected_fields if field in body}
        run.markers[key] = MarkerRecord(resource=resource, record_id=created["id"], expected=expected)
        logger.info("Marker %s -> %s %s", key, resource.name, created["id"])
        return True

    return ScenarioStep(
        name=f"create_{key}",
        phase=phase,
        kind=StepKind.DATA,
        execute=execute,
        timeout_s=ctx.business.timeout_s + _TIMEOUT_MARGIN_S,
    )


def verify_marker(
    ctx: HarnessContext,
    key: str,
    phase: ScenarioState = ScenarioState.POST_VALIDATION,
) -> ScenarioStep:
    """The marker record is still readable with every field unchanged."""

    async def execute(run: ScenarioRun) -> bool:
        marker = run.markers.get(key)
        if marker is None:
            logger.error("No marker %s was recorded in this run", key)
            return False
        record = await ctx.business.fetch(marker.resource, marker.record_id)
        if record is None:
            logger.warning("Marker %s (%s) not found", key, marker.record_id)
            return False
        if not matches_marker(record, marker.expected):
            logger.warning("Marker %s changed: expected %s, got %s", key, marker.expected, record)
            return False
        return True

    return ScenarioStep(
        name=f"verify_{key}",
        phase=phase,
        kind=StepKind.DATA,
        execute=execute,
        timeout_s=ctx.business.timeout_s + _TIMEOUT_MARGIN_S,
    )


def infra_action(
    ctx: HarnessContext,
    action: InfraAction,
    component: str | None = None,
    timeout_s: float | None = None,
    phase: ScenarioState = ScenarioState.FAULT_INJECTION,
) -> ScenarioStep:
    """Run one infrastructure command; the step fails when the command does."""
    budget = timeout_s if timeout_s is not None else ctx.settings.infra_timeout_s

    async def execute(run: ScenarioRun) -> bool:
        result = await ctx.runner.run(action, component, timeout_s=budget)
        return result.success

    label = f"{action.value}_{component}" if component else action.value
    return ScenarioStep(
        name=label,
        phase=phase,
        kind=StepKind.INFRA,
        execute=execute,
        timeout_s=budget + _TIMEOUT_MARGIN_S,
    )


def wait(seconds: float, phase: ScenarioState, name: str | None = None) -> ScenarioStep:
    """Fixed settle time; fails only when cancelled."""

    async def execute(run: ScenarioRun) -> bool:
        if seconds > 0:
            logger.info("Waiting %.1fs", seconds)
        return await sleep_or_cancel(seconds, run.cancel)

    return ScenarioStep(
        name=name or f"wait_{seconds:g}s",
        phase=phase,
        kind=StepKind.WAIT,
        execute=execute,
        timeout_s=seconds + _TIMEOUT_MARGIN_S,
    )


def wait_ready(
    ctx: HarnessContext,
    endpoints: Sequence[TargetEndpoint],
    max_attempts: int | None = None,
    interval_s: float | None = None,
    phase: ScenarioState = ScenarioState.RECOVERY,
    name: str = "wait_ready",
) -> ScenarioStep:
    """Poll until every endpoint is ready again, with the recovery budget."""
    attempts = max_attempts if max_attempts is not None else ctx.settings.heal_max_attempts
    interval = interval_s if interval_s is not None else ctx.settings.heal_interval_s
    targets = list(endpoints)
    per_endpoint = attempts * (interval + ctx.poller.probe_timeout_s)

    async def execute(run: ScenarioRun) -> bool:
        return await ctx.poller.wait_all_ready(targets, attempts, interval, run.cancel)

    return ScenarioStep(
        name=name,
        phase=phase,
        kind=StepKind.HEALTH,
        execute=execute,
        timeout_s=per_endpoint * len(targets) + _TIMEOUT_MARGIN_S,
    )


def assert_healthy(
    ctx: HarnessContext,
    endpoint: TargetEndpoint,
    phase: ScenarioState,
    name: str | None = None,
) -> ScenarioStep:
    """A single endpoint answers healthy right now."""

    async def execute(run: ScenarioRun) -> bool:
        result = await ctx.poller.probe(endpoint)
        if not result.healthy:
            logger.warning("%s unhealthy: %s", endpoint.name, result.error)
        return result.healthy

    return ScenarioStep(
        name=name or f"{endpoint.name}_healthy",
        phase=phase,
        kind=StepKind.HEALTH,
        execute=execute,
        timeout_s=ctx.poller.probe_timeout_s + _TIMEOUT_MARGIN_S,
    )


def expect_unreachable(
    ctx: HarnessContext,
    endpoint: TargetEndpoint,
    phase: ScenarioState = ScenarioState.DEGRADED_VALIDATION,
) -> ScenarioStep:
    """A stopped service must not answer its health probe."""
    timeout = ctx.settings.outage_probe_timeout_s

    async def execute(run: ScenarioRun) -> bool:
        result = await ctx.poller.probe(endpoint, timeout_s=timeout)
        if result.healthy:
            logger.warning("%s still answers while it should be down", endpoint.name)
            return False
        logger.info("%s unreachable as expected (%s)", endpoint.name, result.error)
        return True

    return ScenarioStep(
        name=f"{endpoint.name}_unreachable",
        phase=phase,
        kind=StepKind.HEALTH,
        execute=execute,
        timeout_s=timeout + _TIMEOUT_MARGIN_S,
    )


def assert_read_succeeds(
    ctx: HarnessContext,
    resource: Resource,
    phase: ScenarioState = ScenarioState.DEGRADED_VALIDATION,
) -> ScenarioStep:
    """Listing the collection succeeds."""

    async def execute(run: ScenarioRun) -> bool:
        return await ctx.business.list(resource) is not None

    return ScenarioStep(
        name=f"read_{resource.name}",
        phase=phase,
        kind=StepKind.DATA,
        execute=execute,
        timeout_s=ctx.business.timeout_s + _TIMEOUT_MARGIN_S,
    )
