"""
Tier 1: Single service faults.

Tests that a restarted service recovers with its data and that a stopped
gateway is observed as unreachable before it comes back with its data.
"""

import pytest

from resilience_engine.infra.models import CommandResult, InfraAction
from resilience_engine.runtime.context import HarnessContext
from resilience_engine.scenarios import library
from resilience_engine.scenarios.models import ScenarioState
from resilience_engine.scenarios.runner import PRECONDITIONS_NOT_MET, ScenarioRunner
from tests.fixtures.fake_cluster import FakeCluster, FakeCommandRunner, make_context


class NoopRunner(FakeCommandRunner):
    """Reports success for every command without touching the cluster."""

    async def run(self, action, component=None, *, timeout_s, replicas=None) -> CommandResult:
        self.calls.append((action, component, replicas))
        return CommandResult(action=action, component=component, success=True, exit_code=0)


class OrdersLostOnStart(FakeCommandRunner):
    """Starts components normally but wipes every stored order."""

    async def run(self, action, component=None, *, timeout_s, replicas=None) -> CommandResult:
        if action == InfraAction.START:
            self.cluster.orders.clear()
        return await super().run(action, component, timeout_s=timeout_s, replicas=replicas)


@pytest.mark.chaos
@pytest.mark.tier1
class TestServiceRestartScenarios:
    """Restart of the user service."""

    @pytest.mark.asyncio
    async def test_service_restart_recovers_with_marker(
        self, chaos_context: HarnessContext, fake_runner: FakeCommandRunner, runner: ScenarioRunner
    ) -> None:
        """
        SCENARIO: Write a user, restart the user service, read the user back
        EXPECTED: Scenario passes, exactly one restart command issued
        """
        async with chaos_context:
            result = await runner.run(library.service_restart(chaos_context))

        assert result.passed, result.reason
        assert fake_runner.calls == [(InfraAction.RESTART, "user_service", None)]

    @pytest.mark.asyncio
    async def test_slow_startup_within_heal_budget(self, settings, runner: ScenarioRunner) -> None:
        """
        SCENARIO: Restarted service answers 503 for its first 3 health probes
        EXPECTED: Recovery polling absorbs the warm-up and the scenario passes
        """
        cluster = FakeCluster(warmup_probes=3)
        async with make_context(cluster, settings) as ctx:
            result = await runner.run(library.service_restart(ctx))

        assert result.passed, result.reason

    @pytest.mark.asyncio
    async def test_service_never_recovers(self, settings, runner: ScenarioRunner) -> None:
        """
        SCENARIO: Restarted service stays unhealthy longer than the heal budget
        EXPECTED: FAILED at the recovery wait, post validation never runs
        """
        cluster = FakeCluster(warmup_probes=50)
        async with make_context(cluster, settings) as ctx:
            result = await runner.run(library.service_restart(ctx))

        assert result.state == ScenarioState.FAILED
        assert result.failed_phase == ScenarioState.RECOVERY
        assert result.failed_step == "wait_ready"
        assert all(step.phase != ScenarioState.POST_VALIDATION for step in result.steps)

    @pytest.mark.asyncio
    async def test_unhealthy_system_fails_preconditions(
        self, cluster: FakeCluster, chaos_context: HarnessContext, fake_runner, runner
    ) -> None:
        """
        SCENARIO: Gateway already down before the scenario starts
        EXPECTED: FAILED with "preconditions not met", no infrastructure command issued
        """
        cluster.stop("api_gateway")

        async with chaos_context:
            result = await runner.run(library.service_restart(chaos_context))

        assert result.state == ScenarioState.FAILED
        assert result.reason == PRECONDITIONS_NOT_MET
        assert fake_runner.calls == []


@pytest.mark.chaos
@pytest.mark.tier1
class TestGatewayOutageScenarios:
    """Stop and start of the API gateway."""

    @pytest.mark.asyncio
    async def test_gateway_outage_and_recovery(
        self, chaos_context: HarnessContext, fake_runner: FakeCommandRunner, runner: ScenarioRunner
    ) -> None:
        """
        SCENARIO: Stop the gateway, probe it, start it again
        EXPECTED: Probe fails while stopped, the order written before the outage
                  reads back unchanged through the gateway afterwards
        """
        async with chaos_context:
            result = await runner.run(library.gateway_outage(chaos_context))

        assert result.passed, result.reason
        assert fake_runner.actions() == [InfraAction.STOP, InfraAction.START]
        post = [s for s in result.steps if s.phase == ScenarioState.POST_VALIDATION]
        assert [s.name for s in post] == ["api-gateway_healthy", "verify_order"]
        assert all(s.passed for s in post)

    @pytest.mark.asyncio
    async def test_orders_lost_across_gateway_restart(
        self, cluster: FakeCluster, settings, runner: ScenarioRunner
    ) -> None:
        """
        SCENARIO: Orders disappear while the gateway is down
        EXPECTED: Gateway healthy again but FAILED at the order marker check
        """
        async with make_context(cluster, settings, OrdersLostOnStart(cluster)) as ctx:
            result = await runner.run(library.gateway_outage(ctx))

        assert result.state == ScenarioState.FAILED
        assert result.failed_phase == ScenarioState.POST_VALIDATION
        assert result.failed_step == "verify_order"

    @pytest.mark.asyncio
    async def test_failed_stop_never_reaches_recovery(
        self, cluster: FakeCluster, settings, runner: ScenarioRunner
    ) -> None:
        """
        SCENARIO: The stop command itself fails
        EXPECTED: FAILED at fault injection, START is never issued
        """
        fake = FakeCommandRunner(cluster, unsupported={InfraAction.STOP})
        async with make_context(cluster, settings, fake) as ctx:
            result = await runner.run(library.gateway_outage(ctx))

        assert result.state == ScenarioState.FAILED
        assert result.failed_phase == ScenarioState.FAULT_INJECTION
        assert fake.actions() == [InfraAction.STOP]

    @pytest.mark.asyncio
    async def test_gateway_still_reachable_fails_degraded_validation(
        self, cluster: FakeCluster, settings, runner: ScenarioRunner
    ) -> None:
        """
        SCENARIO: Stop reports success but the gateway keeps answering
        EXPECTED: FAILED during degraded validation
        """
        async with make_context(cluster, settings, NoopRunner(cluster)) as ctx:
            result = await runner.run(library.gateway_outage(ctx))

        assert result.state == ScenarioState.FAILED
        assert result.failed_phase == ScenarioState.DEGRADED_VALIDATION
        assert result.failed_step == "api-gateway_unreachable"
