"""
Tests for the built-in suites against the fake cluster.

Tests:
- Every suite passes against a healthy deployment
- Missing or malformed monitoring payloads fail their check
- Gateway answered by different instances fails identity stability
- Scaling that is unsupported is skipped, a failed scale back is not
- Cancelled checks do not read back; background load is cancelled on error
"""

import asyncio

import httpx
import pytest
import respx

from resilience_engine.infra.models import CommandResult, InfraAction
from resilience_engine.runtime.context import HarnessContext
from resilience_engine.suites.catalog import (
    build_default_registry,
    data_consistency_suite,
    deployment_automation_suite,
    distributed_communication_suite,
    monitoring_suite,
    stress_suite,
    system_recovery_suite,
)
from resilience_engine.suites.models import Check, Suite, VerdictClass
from tests.chaos.fixtures.network_chaos import NetworkChaos
from tests.fixtures.fake_cluster import (
    GATEWAY_URL,
    FakeCluster,
    FakeCommandRunner,
    make_context,
)

MONITORING_BODY = {
    "gateway": {"uptime": 12.5, "memory": {"rss": 1024}},
    "services": {"user_service": True},
    "system": {"storage_nodes_up": 3},
}


def check_named(suite: Suite, name: str) -> Check:
    return next(check for check in suite.checks if check.name == name)


def mocked_context(settings) -> HarnessContext:
    """Context whose HTTP client is intercepted by respx."""
    cluster = FakeCluster()
    return HarnessContext(
        settings=settings,
        client=httpx.AsyncClient(),
        runner=FakeCommandRunner(cluster),
        owns_client=True,
    )


class ScaleBackFails(FakeCommandRunner):
    async def run(self, action, component=None, *, timeout_s, replicas=None) -> CommandResult:
        if action == InfraAction.SCALE and replicas == 1:
            self.calls.append((action, component, replicas))
            return CommandResult(action=action, component=component, success=False, exit_code=1)
        return await super().run(action, component, timeout_s=timeout_s, replicas=replicas)


# =============================================================================
# Healthy deployment
# =============================================================================


class TestHealthyDeployment:
    """Every suite passes against a healthy fake cluster."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "factory",
        [
            distributed_communication_suite,
            data_consistency_suite,
            monitoring_suite,
            stress_suite,
            system_recovery_suite,
            deployment_automation_suite,
        ],
    )
    async def test_suite_passes(self, cluster: FakeCluster, settings, factory) -> None:
        async with make_context(cluster, settings) as ctx:
            checks = await factory(ctx).execute()

        assert checks
        assert all(checks.values()), checks

    @pytest.mark.asyncio
    async def test_full_registry_all_pass(self, cluster: FakeCluster, settings) -> None:
        async with make_context(cluster, settings) as ctx:
            registry = build_default_registry(ctx)
            verdict = await registry.run_all()

        assert registry.names() == [
            "distributed-communication",
            "data-consistency",
            "monitoring",
            "stress",
            "system-recovery",
            "deployment-automation",
        ]
        assert verdict.classification == VerdictClass.ALL_PASS
        assert (verdict.required_passed, verdict.required_total) == (4, 4)
        assert (verdict.optional_passed, verdict.optional_total) == (2, 2)


# =============================================================================
# Degraded deployment
# =============================================================================


class TestDegradedDeployment:
    """Suites report failures instead of raising."""

    @pytest.mark.asyncio
    async def test_order_service_down(self, cluster: FakeCluster, settings) -> None:
        cluster.stop("order_service")

        async with make_context(cluster, settings) as ctx:
            communication = await distributed_communication_suite(ctx).execute()
            stress = await stress_suite(ctx).execute()

        assert communication["service_communication"] is False
        assert communication["storage_read_path"] is False
        assert communication["gateway_identity_stability"] is True
        assert stress["user_service_load"] is True
        assert stress["order_service_load"] is False

    @pytest.mark.asyncio
    async def test_storage_quorum_lost(self, cluster: FakeCluster, settings) -> None:
        cluster.stop("cassandra1")
        cluster.stop("cassandra2")

        async with make_context(cluster, settings) as ctx:
            checks = await data_consistency_suite(ctx).execute()

        assert checks == {"write_read_consistency": False, "cross_service_consistency": False}

    @pytest.mark.asyncio
    async def test_optional_failure_meets_minimum(self, cluster: FakeCluster, settings) -> None:
        runner = FakeCommandRunner(cluster, unsupported={InfraAction.DOWN, InfraAction.RESTART})

        async with make_context(cluster, settings, runner) as ctx:
            verdict = await build_default_registry(ctx).run_all()

        assert verdict.classification == VerdictClass.MEETS_MINIMUM
        assert verdict.ok is True
        assert set(verdict.failed_optional) == {"system-recovery", "deployment-automation"}


# =============================================================================
# Monitoring payloads
# =============================================================================


class TestMonitoringPayloads:
    """Shape checks on the gateway's monitoring endpoints."""

    @pytest.mark.asyncio
    async def test_missing_top_level_field(self, settings) -> None:
        ctx = mocked_context(settings)
        with respx.mock(assert_all_called=False) as router:
            NetworkChaos.partial_json(router, f"{GATEWAY_URL}/monitoring", MONITORING_BODY, ["system"])
            async with ctx:
                passed = await check_named(monitoring_suite(ctx), "monitoring_endpoint").run()

        assert passed is False

    @pytest.mark.asyncio
    async def test_missing_nested_field(self, settings) -> None:
        body = {**MONITORING_BODY, "gateway": {"uptime": 1.0}}
        ctx = mocked_context(settings)
        with respx.mock(assert_all_called=False) as router:
            router.get(f"{GATEWAY_URL}/monitoring").mock(return_value=httpx.Response(200, json=body))
            async with ctx:
                passed = await check_named(monitoring_suite(ctx), "monitoring_endpoint").run()

        assert passed is False

    @pytest.mark.asyncio
    async def test_complete_payload(self, settings) -> None:
        ctx = mocked_context(settings)
        with respx.mock(assert_all_called=False) as router:
            router.get(f"{GATEWAY_URL}/monitoring").mock(
                return_value=httpx.Response(200, json=MONITORING_BODY)
            )
            async with ctx:
                passed = await check_named(monitoring_suite(ctx), "monitoring_endpoint").run()

        assert passed is True

    @pytest.mark.asyncio
    async def test_recent_logs_must_be_a_list(self, settings) -> None:
        ctx = mocked_context(settings)
        with respx.mock(assert_all_called=False) as router:
            router.get(f"{GATEWAY_URL}/logs").mock(
                return_value=httpx.Response(200, json={"totalLines": 3, "recentLogs": "a\nb\nc"})
            )
            async with ctx:
                passed = await check_named(monitoring_suite(ctx), "logs_endpoint").run()

        assert passed is False

    @pytest.mark.asyncio
    async def test_non_json_metrics(self, settings) -> None:
        ctx = mocked_context(settings)
        with respx.mock(assert_all_called=False) as router:
            NetworkChaos.invalid_json(router, f"{GATEWAY_URL}/metrics")
            async with ctx:
                passed = await check_named(monitoring_suite(ctx), "metrics_endpoint").run()

        assert passed is False

    @pytest.mark.asyncio
    async def test_gateway_unreachable(self, settings) -> None:
        ctx = mocked_context(settings)
        with respx.mock(assert_all_called=False) as router:
            NetworkChaos.connection_refused(router, "gateway.test")
            async with ctx:
                passed = await check_named(monitoring_suite(ctx), "metrics_endpoint").run()

        assert passed is False


# =============================================================================
# Gateway identity
# =============================================================================


class TestGatewayIdentity:
    """Consecutive gateway health polls must report the same identity."""

    @pytest.mark.asyncio
    async def test_rotating_identity_fails(self, settings) -> None:
        ctx = mocked_context(settings)
        with respx.mock(assert_all_called=False) as router:
            NetworkChaos.rotating_identity(router, f"{GATEWAY_URL}/health", ["gw-1", "gw-2"])
            async with ctx:
                check = check_named(distributed_communication_suite(ctx), "gateway_identity_stability")
                passed = await check.run()

        assert passed is False

    @pytest.mark.asyncio
    async def test_single_identity_passes(self, settings) -> None:
        ctx = mocked_context(settings)
        with respx.mock(assert_all_called=False) as router:
            NetworkChaos.rotating_identity(router, f"{GATEWAY_URL}/health", ["gw-1"])
            async with ctx:
                check = check_named(distributed_communication_suite(ctx), "gateway_identity_stability")
                passed = await check.run()

        assert passed is True

    @pytest.mark.asyncio
    async def test_unhealthy_poll_fails(self, settings) -> None:
        ctx = mocked_context(settings)
        with respx.mock(assert_all_called=False) as router:
            NetworkChaos.intermittent_500(
                router, f"{GATEWAY_URL}/health", {"status": "ok", "service": "api-gateway"}
            )
            async with ctx:
                check = check_named(distributed_communication_suite(ctx), "gateway_identity_stability")
                passed = await check.run()

        assert passed is False


# =============================================================================
# Deployment automation
# =============================================================================


class TestDeploymentAutomation:
    """Redeploy, continuous health and scaling checks."""

    @pytest.mark.asyncio
    async def test_redeploy_issues_down_then_up(self, cluster: FakeCluster, settings) -> None:
        runner = FakeCommandRunner(cluster)

        async with make_context(cluster, settings, runner) as ctx:
            passed = await check_named(deployment_automation_suite(ctx), "compose_redeploy").run()

        assert passed is True
        assert runner.actions() == [InfraAction.DOWN, InfraAction.UP]

    @pytest.mark.asyncio
    async def test_failed_up_fails_redeploy(self, cluster: FakeCluster, settings) -> None:
        runner = FakeCommandRunner(cluster, unsupported={InfraAction.UP})

        async with make_context(cluster, settings, runner) as ctx:
            passed = await check_named(deployment_automation_suite(ctx), "compose_redeploy").run()

        assert passed is False

    @pytest.mark.asyncio
    async def test_unsupported_scaling_is_skipped(self, cluster: FakeCluster, settings) -> None:
        runner = FakeCommandRunner(cluster, unsupported={InfraAction.SCALE})

        async with make_context(cluster, settings, runner) as ctx:
            passed = await check_named(deployment_automation_suite(ctx), "scaling_automation").run()

        assert passed is True
        assert runner.calls == [(InfraAction.SCALE, "user_service", 2)]

    @pytest.mark.asyncio
    async def test_scale_up_and_back(self, cluster: FakeCluster, settings) -> None:
        runner = FakeCommandRunner(cluster)

        async with make_context(cluster, settings, runner) as ctx:
            passed = await check_named(deployment_automation_suite(ctx), "scaling_automation").run()

        assert passed is True
        assert runner.actions() == [InfraAction.SCALE, InfraAction.STATUS, InfraAction.SCALE]
        assert cluster.replicas["user_service"] == 1

    @pytest.mark.asyncio
    async def test_failed_scale_back_fails(self, cluster: FakeCluster, settings) -> None:
        runner = ScaleBackFails(cluster)

        async with make_context(cluster, settings, runner) as ctx:
            passed = await check_named(deployment_automation_suite(ctx), "scaling_automation").run()

        assert passed is False

    @pytest.mark.asyncio
    async def test_flapping_gateway_below_health_ratio(self, settings) -> None:
        ctx = mocked_context(settings.model_copy(update={"health_ratio_threshold": 0.8}))
        ok = {"status": "ok", "service": "api-gateway"}
        with respx.mock(assert_all_called=False) as router:
            for url in ("http://users.test/health", "http://orders.test/health"):
                router.get(url).mock(return_value=httpx.Response(200, json=ok))
            NetworkChaos.intermittent_500(router, f"{GATEWAY_URL}/health", ok)
            async with ctx:
                check = check_named(deployment_automation_suite(ctx), "health_check_automation")
                passed = await check.run()

        assert passed is False


# =============================================================================
# Cancellation and cleanup
# =============================================================================


class SlowLoad:
    """Stands in for the load generator; records whether it was cancelled."""

    def __init__(self) -> None:
        self.started = False
        self.cancelled = False

    async def run(self, profile, cancel=None):
        self.started = True
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            self.cancelled = True
            raise


class TestCancellationAndCleanup:
    """Cancelled checks stop early and leave no background work behind."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "name,writes", [("write_read_consistency", 1), ("cross_service_consistency", 2)]
    )
    async def test_cancel_during_consistency_delay(
        self, cluster: FakeCluster, settings, name, writes
    ) -> None:
        slow = settings.model_copy(update={"consistency_delay_s": 5.0})

        async with make_context(cluster, slow) as ctx:
            check = check_named(data_consistency_suite(ctx), name)
            asyncio.get_running_loop().call_later(0.05, ctx.cancel.set)
            passed = await check.run()

        assert passed is False
        # Only the writes reached the cluster; nothing was read back
        assert cluster.request_count == writes

    @pytest.mark.asyncio
    async def test_sampler_failure_cancels_background_load(self, cluster: FakeCluster, settings) -> None:
        async def broken_sample(*args, **kwargs):
            await asyncio.sleep(0.01)
            raise RuntimeError("metrics sampler crashed")

        async with make_context(cluster, settings) as ctx:
            ctx.load = SlowLoad()
            ctx.sampler.sample_json = broken_sample
            check = check_named(stress_suite(ctx), "performance_monitoring")

            with pytest.raises(RuntimeError, match="sampler crashed"):
                await check.run()

        assert ctx.load.started is True
        assert ctx.load.cancelled is True
