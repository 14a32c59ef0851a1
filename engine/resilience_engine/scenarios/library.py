"""
Built-in recovery scenarios for the gateway / user / order / storage deployment.
"""

from resilience_engine.infra.models import InfraAction
from resilience_engine.probes.business import (
    gateway_orders_resource,
    order_payload,
    user_payload,
    users_resource,
)
from resilience_engine.runtime.context import HarnessContext
from resilience_engine.scenarios import steps
from resilience_engine.scenarios.models import Scenario, ScenarioState

PRE = ScenarioState.PRECONDITION_CHECK
FAULT = ScenarioState.FAULT_INJECTION
DEGRADED = ScenarioState.DEGRADED_VALIDATION
RECOVERY = ScenarioState.RECOVERY
POST = ScenarioState.POST_VALIDATION

USER_FIELDS = ("name", "email")
ORDER_FIELDS = ("user_id", "total_amount")


def service_restart(ctx: HarnessContext) -> Scenario:
    """Restart the user service; data written before must survive."""
    s = ctx.settings
    users = users_resource(s)
    return Scenario(
        name="service_restart",
        description="Restart a single service and verify it recovers with its data",
        steps=(
            steps.assert_all_healthy(ctx),
            steps.create_marker(ctx, "user", users, lambda run: user_payload(), USER_FIELDS),
            steps.infra_action(ctx, InfraAction.RESTART, s.user_service_component),
            steps.wait(s.restart_settle_s, RECOVERY, name="settle_after_restart"),
            steps.wait_ready(ctx, [s.user_service]),
            steps.verify_marker(ctx, "user"),
        ),
    )


def storage_node_failure(ctx: HarnessContext) -> Scenario:
    """
    Stop one storage node.

    Writes must keep working while the node is down and an unrelated order
    written beforehand must still be readable through the gateway. Every
    record written before or during the outage must be readable after the
    node rejoins.
    """
    s = ctx.settings
    users = users_resource(s)
    orders = gateway_orders_resource(s)
    return Scenario(
        name="storage_node_failure",
        description="Stop one database node, keep serving, then rejoin it",
        steps=(
            steps.assert_all_healthy(ctx),
            steps.create_marker(ctx, "user_before", users, lambda run: user_payload(), USER_FIELDS),
            steps.create_marker(
                ctx,
                "order_before",
                orders,
                lambda run: order_payload(run.markers["user_before"].record_id),
                ORDER_FIELDS,
            ),
            steps.infra_action(ctx, InfraAction.STOP, s.storage_fault_node),
            steps.wait(s.degraded_settle_s, FAULT, name="settle_after_node_stop"),
            steps.create_marker(
                ctx, "user_during", users, lambda run: user_payload(), USER_FIELDS, phase=DEGRADED
            ),
            steps.verify_marker(ctx, "order_before", phase=DEGRADED),
            steps.assert_read_succeeds(ctx, users),
            steps.infra_action(ctx, InfraAction.START, s.storage_fault_node, phase=RECOVERY),
            steps.wait(s.storage_rejoin_s, RECOVERY, name="wait_node_rejoin"),
            steps.wait_ready(ctx, s.endpoints),
            steps.verify_marker(ctx, "user_before"),
            steps.verify_marker(ctx, "user_during"),
            steps.verify_marker(ctx, "order_before"),
        ),
    )


def gateway_outage(ctx: HarnessContext) -> Scenario:
    """
    Stop the gateway, confirm it is unreachable, bring it back.

    An order written through the gateway before the outage must be readable
    through it again afterwards.
    """
    s = ctx.settings
    return Scenario(
        name="gateway_outage",
        description="Stop the API gateway and verify it is unreachable, then recovers",
        steps=(
            steps.assert_healthy(ctx, s.gateway, PRE),
            steps.create_marker(ctx, "user", users_resource(s), lambda run: user_payload(), USER_FIELDS),
            steps.create_marker(
                ctx,
                "order",
                gateway_orders_resource(s),
                lambda run: order_payload(run.markers["user"].record_id),
                ORDER_FIELDS,
            ),
            steps.infra_action(ctx, InfraAction.STOP, s.gateway_component),
            steps.expect_unreachable(ctx, s.gateway),
            steps.infra_action(ctx, InfraAction.START, s.gateway_component, phase=RECOVERY),
            steps.wait_ready(ctx, [s.gateway]),
            steps.assert_healthy(ctx, s.gateway, POST),
            steps.verify_marker(ctx, "order"),
        ),
    )


def full_system_restart(ctx: HarnessContext) -> Scenario:
    """Restart every component; user and order markers must survive."""
    s = ctx.settings
    users = users_resource(s)
    orders = gateway_orders_resource(s)
    return Scenario(
        name="full_system_restart",
        description="Restart the whole deployment and verify data persistence",
        steps=(
            steps.assert_all_healthy(ctx),
            steps.create_marker(ctx, "user", users, lambda run: user_payload(), USER_FIELDS),
            steps.create_marker(
                ctx,
                "order",
                orders,
                lambda run: order_payload(run.markers["user"].record_id),
                ORDER_FIELDS,
            ),
            steps.infra_action(ctx, InfraAction.RESTART_ALL, timeout_s=s.deploy_timeout_s),
            steps.wait(s.system_restart_settle_s, RECOVERY, name="settle_after_system_restart"),
            steps.wait_ready(ctx, s.endpoints),
            steps.verify_marker(ctx, "user"),
            steps.verify_marker(ctx, "order"),
        ),
    )


def all_scenarios(ctx: HarnessContext) -> list[Scenario]:
    return [
        service_restart(ctx),
        storage_node_failure(ctx),
        gateway_outage(ctx),
        full_system_restart(ctx),
    ]
