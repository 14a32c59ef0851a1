"""
Built-in suites.

Required: distributed-communication, data-consistency, monitoring, stress.
Optional: system-recovery, deployment-automation.
"""

import asyncio

from resilience_engine.infra.models import InfraAction
from resilience_engine.load.metrics import format_summary, meets_threshold, summarize_run
from resilience_engine.load.models import LoadProfile
from resilience_engine.load.operations import (
    mixed_profile,
    monitoring_profile,
    order_service_profile,
    user_service_profile,
)
from resilience_engine.logging import get_logger
from resilience_engine.probes.business import (
    gateway_orders_resource,
    order_payload,
    order_service_orders_resource,
    user_payload,
    users_resource,
)
from resilience_engine.probes.sampler import fetch_json, missing_fields
from resilience_engine.runtime.cancellation import sleep_or_cancel
from resilience_engine.runtime.context import HarnessContext
from resilience_engine.scenarios import library
from resilience_engine.scenarios.models import Scenario
from resilience_engine.scenarios.runner import ScenarioRunner
from resilience_engine.suites.models import Check, Suite
from resilience_engine.suites.registry import SuiteRegistry

logger = get_logger(__name__)

MONITORING_FIELDS = ["gateway", "services", "system", "gateway.uptime", "gateway.memory"]
METRICS_FIELDS = ["timestamp", "process", "requests", "services"]
LOGS_FIELDS = ["totalLines", "recentLogs"]

# Keys that may carry the identity of the instance answering a health probe
IDENTITY_KEYS = ("service", "node_id", "instance")


# =============================================================================
# Distributed communication
# =============================================================================


def distributed_communication_suite(ctx: HarnessContext) -> Suite:
    s = ctx.settings
    users = users_resource(s)
    orders = gateway_orders_resource(s)

    async def service_communication() -> bool:
        user = await ctx.business.create(users, user_payload())
        if user is None:
            return False
        order = await ctx.business.create(orders, order_payload(user["id"]))
        if order is None:
            return False
        logger.info("Created user %s and order %s through the gateway", user["id"], order["id"])
        return True

    async def storage_read_path() -> bool:
        user_list = await ctx.business.list(users)
        order_list = await ctx.business.list(order_service_orders_resource(s))
        if user_list is None or order_list is None:
            return False
        logger.info("Read %d users and %d orders", len(user_list), len(order_list))
        return True

    async def gateway_identity_stability() -> bool:
        identities = set()
        for i in range(s.identity_polls):
            result = await ctx.poller.probe(s.gateway)
            if not result.healthy:
                logger.warning(
                    "Gateway poll %d/%d unhealthy: %s", i + 1, s.identity_polls, result.error
                )
                return False
            body = result.body if isinstance(result.body, dict) else {}
            identity = next((body[key] for key in IDENTITY_KEYS if key in body), None)
            identities.add(str(identity))
        if len(identities) != 1:
            logger.warning("Gateway identity changed across polls: %s", sorted(identities))
            return False
        return True

    return Suite(
        name="distributed-communication",
        required=True,
        description="Services reach each other and the storage layer through the gateway",
        checks=[
            Check("service_communication", service_communication),
            Check("storage_read_path", storage_read_path),
            Check("gateway_identity_stability", gateway_identity_stability),
        ],
    )


# =============================================================================
# Data consistency
# =============================================================================


def data_consistency_suite(ctx: HarnessContext) -> Suite:
    s = ctx.settings
    users = users_resource(s)

    async def write_read_consistency() -> bool:
        payload = user_payload()
        user = await ctx.business.create(users, payload)
        if user is None:
            return False
        if not await sleep_or_cancel(s.consistency_delay_s, ctx.cancel):
            return False
        return await ctx.business.verify(users, user["id"], payload)

    async def cross_service_consistency() -> bool:
        user = await ctx.business.create(users, user_payload())
        if user is None:
            return False
        payload = order_payload(user["id"])
        order = await ctx.business.create(gateway_orders_resource(s), payload)
        if order is None:
            return False
        if not await sleep_or_cancel(s.consistency_delay_s, ctx.cancel):
            return False
        expected = {"user_id": payload["user_id"], "total_amount": payload["total_amount"]}
        return await ctx.business.verify(order_service_orders_resource(s), order["id"], expected)

    return Suite(
        name="data-consistency",
        required=True,
        description="Records written through one path are readable through another",
        checks=[
            Check("write_read_consistency", write_read_consistency),
            Check("cross_service_consistency", cross_service_consistency),
        ],
    )


# =============================================================================
# Monitoring
# =============================================================================


def monitoring_suite(ctx: HarnessContext) -> Suite:
    s = ctx.settings

    async def health_checks() -> bool:
        return await ctx.poller.check_all_healthy(s.endpoints)

    def endpoint_check(path: str, required_fields: list[str], list_field: str | None = None):
        async def check() -> bool:
            status, body = await fetch_json(ctx.client, s.gateway.url(path), s.probe_timeout_s)
            if status != 200:
                logger.warning("GET %s returned %s", path, status)
                return False
            missing = missing_fields(body, required_fields)
            if missing:
                logger.warning("GET %s missing fields: %s", path, ", ".join(missing))
                return False
            if list_field is not None and not isinstance(body[list_field], list):
                logger.warning("GET %s field %s is not a list", path, list_field)
                return False
            return True

        return check

    return Suite(
        name="monitoring",
        required=True,
        description="Health, monitoring, metrics and log endpoints respond with the expected shape",
        checks=[
            Check("health_checks", health_checks),
            Check("monitoring_endpoint", endpoint_check("/monitoring", MONITORING_FIELDS)),
            Check("metrics_endpoint", endpoint_check("/metrics", METRICS_FIELDS)),
            Check("logs_endpoint", endpoint_check("/logs", LOGS_FIELDS, list_field="recentLogs")),
        ],
    )


# =============================================================================
# Stress
# =============================================================================


def stress_suite(ctx: HarnessContext) -> Suite:
    s = ctx.settings

    def load_check(profile: LoadProfile, threshold: float):
        async def check() -> bool:
            result = await ctx.load.run(profile, ctx.cancel)
            summary = summarize_run(result)
            for line in format_summary(profile.name, summary):
                logger.info(line)
            return not result.cancelled and meets_threshold(summary, threshold)

        return check

    async def performance_monitoring() -> bool:
        load_task = asyncio.create_task(ctx.load.run(monitoring_profile(s), ctx.cancel))
        try:
            snapshots = await ctx.sampler.sample_json(
                s.gateway.url("/metrics"), s.monitor_duration_s, s.monitor_interval_s, ctx.cancel
            )
            result = await load_task
        finally:
            # Background load never outlives this check
            if not load_task.done():
                load_task.cancel()
                try:
                    await load_task
                except asyncio.CancelledError:
                    pass
        summary = summarize_run(result)
        for line in format_summary(result.profile_name, summary):
            logger.info(line)
        logger.info("Collected %d metrics snapshots during load", len(snapshots))
        return len(snapshots) > 0

    return Suite(
        name="stress",
        required=True,
        description="Concurrent load keeps success rates above threshold",
        checks=[
            Check(
                "user_service_load",
                load_check(user_service_profile(s), s.single_service_threshold),
            ),
            Check(
                "order_service_load",
                load_check(order_service_profile(s), s.single_service_threshold),
            ),
            Check("mixed_load", load_check(mixed_profile(s), s.mixed_threshold)),
            Check("performance_monitoring", performance_monitoring),
        ],
    )


# =============================================================================
# System recovery (optional)
# =============================================================================


def system_recovery_suite(ctx: HarnessContext) -> Suite:
    runner = ScenarioRunner(ctx.cancel)

    def scenario_check(scenario: Scenario) -> Check:
        async def check() -> bool:
            result = await runner.run(scenario)
            return result.passed

        return Check(scenario.name, check, scenario.description)

    return Suite(
        name="system-recovery",
        required=False,
        description="Services, storage nodes and the whole system recover from faults",
        checks=[scenario_check(scenario) for scenario in library.all_scenarios(ctx)],
    )


# =============================================================================
# Deployment automation (optional)
# =============================================================================


def deployment_automation_suite(ctx: HarnessContext) -> Suite:
    s = ctx.settings

    async def compose_redeploy() -> bool:
        down = await ctx.runner.run(InfraAction.DOWN, timeout_s=s.deploy_timeout_s)
        if not down.success:
            return False
        up = await ctx.runner.run(InfraAction.UP, timeout_s=s.deploy_timeout_s)
        if not up.success:
            return False
        if not await sleep_or_cancel(s.deploy_settle_s, ctx.cancel):
            return False
        if not await ctx.poller.wait_all_ready(
            s.endpoints, s.heal_max_attempts, s.heal_interval_s, ctx.cancel
        ):
            return False
        return await ctx.poller.check_all_healthy(s.endpoints)

    async def health_check_automation() -> bool:
        if not await ctx.poller.check_all_healthy(s.endpoints):
            return False
        report = await ctx.sampler.monitor_health(
            ctx.poller,
            s.gateway,
            s.continuous_health_duration_s,
            s.continuous_health_interval_s,
            ctx.cancel,
        )
        logger.info(
            "Continuous monitoring: %d/%d healthy (%.0f%%)",
            report.healthy,
            report.total,
            report.ratio * 100,
        )
        return report.ratio >= s.health_ratio_threshold

    async def scaling_automation() -> bool:
        component = s.user_service_component
        scale_up = await ctx.runner.run(
            InfraAction.SCALE, component, timeout_s=s.deploy_timeout_s, replicas=2
        )
        if not scale_up.success:
            logger.warning("Scaling %s not supported in this environment, skipped", component)
            return True

        status = await ctx.runner.run(InfraAction.STATUS, timeout_s=s.infra_timeout_s)
        if status.success and status.output:
            logger.info("Deployment status after scale up:\n%s", status.output.strip())

        scale_down = await ctx.runner.run(
            InfraAction.SCALE, component, timeout_s=s.deploy_timeout_s, replicas=1
        )
        if not scale_down.success:
            logger.error("Failed to scale %s back to 1 replica", component)
            return False
        return True

    return Suite(
        name="deployment-automation",
        required=False,
        description="The deployment can be torn down, redeployed, monitored and scaled",
        checks=[
            Check("compose_redeploy", compose_redeploy),
            Check("health_check_automation", health_check_automation),
            Check("scaling_automation", scaling_automation),
        ],
    )


def build_default_suites(ctx: HarnessContext) -> list[Suite]:
    return [
        distributed_communication_suite(ctx),
        data_consistency_suite(ctx),
        monitoring_suite(ctx),
        stress_suite(ctx),
        system_recovery_suite(ctx),
        deployment_automation_suite(ctx),
    ]


def build_default_registry(ctx: HarnessContext) -> SuiteRegistry:
    return SuiteRegistry(build_default_suites(ctx))
