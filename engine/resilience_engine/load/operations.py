"""
Workload operations and the standard load profiles.
"""

import random

from resilience_engine.config import Settings
from resilience_engine.load.models import (
    LoadProfile,
    OperationBuilder,
    OperationRequest,
    WeightedOperation,
)


def create_user_op(base_url: str, prefix: str = "load") -> OperationBuilder:
    """POST <user-service>/users with a unique name/email per request."""

    def build(rng: random.Random, user: int, sequence: int) -> OperationRequest:
        return OperationRequest(
            method="POST",
            url=f"{base_url}/users",
            json={
                "name": f"{prefix.title()} Test User {user}-{sequence}",
                "email": f"{prefix}{user}-{sequence}-{rng.getrandbits(32):08x}@test.com",
            },
        )

    return build


def create_order_op(
    gateway_url: str, prefix: str = "load", max_amount: float = 100.0
) -> OperationBuilder:
    """POST <gateway>/api/orders for a synthetic user id."""

    def build(rng: random.Random, user: int, sequence: int) -> OperationRequest:
        return OperationRequest(
            method="POST",
            url=f"{gateway_url}/api/orders",
            json={
                "user_id": f"{prefix}_user_{user}",
                "items": [f"item{sequence}", f"item{sequence + 1}"],
                "total_amount": round(rng.uniform(0, max_amount), 2),
            },
        )

    return build


def list_users_op(base_url: str) -> OperationBuilder:
    def build(rng: random.Random, user: int, sequence: int) -> OperationRequest:
        return OperationRequest(method="GET", url=f"{base_url}/users")

    return build


def list_orders_op(gateway_url: str) -> OperationBuilder:
    def build(rng: random.Random, user: int, sequence: int) -> OperationRequest:
        return OperationRequest(method="GET", url=f"{gateway_url}/api/orders")

    return build


def _base_profile(settings: Settings, profile_name: str, **overrides) -> dict:
    params = {
        "name": profile_name,
        "concurrency": settings.load_concurrency,
        "requests_per_user": settings.load_requests_per_user,
        "timeout_s": settings.load_request_timeout_s,
        "ramp_up_s": settings.load_ramp_up_s,
        "think_time_max_s": settings.think_time_max_s,
        "seed": settings.load_seed,
    }
    params.update(overrides)
    return params


def user_service_profile(settings: Settings, **overrides) -> LoadProfile:
    """Create-user load against the user service."""
    mix = (
        WeightedOperation(
            name="create_user", weight=1.0, build=create_user_op(settings.user_service_url, "stress")
        ),
    )
    return LoadProfile(mix=mix, **_base_profile(settings, "user-service", **overrides))


def order_service_profile(settings: Settings, **overrides) -> LoadProfile:
    """Create-order load through the gateway."""
    mix = (
        WeightedOperation(
            name="create_order", weight=1.0, build=create_order_op(settings.gateway_url, "stress")
        ),
    )
    return LoadProfile(mix=mix, **_base_profile(settings, "order-service", **overrides))


def mixed_profile(settings: Settings, **overrides) -> LoadProfile:
    """
    Realistic mixed workload.

    50% create user, 30% create order, 20% reads split evenly between the
    user list and the order list.
    """
    mix = (
        WeightedOperation(
            name="create_user", weight=0.5, build=create_user_op(settings.user_service_url, "mixed")
        ),
        WeightedOperation(
            name="create_order",
            weight=0.3,
            build=create_order_op(settings.gateway_url, "mixed", max_amount=50.0),
        ),
        WeightedOperation(name="list_users", weight=0.1, build=list_users_op(settings.user_service_url)),
        WeightedOperation(name="list_orders", weight=0.1, build=list_orders_op(settings.gateway_url)),
    )
    overrides.setdefault("think_time_max_s", settings.mixed_think_time_max_s)
    return LoadProfile(mix=mix, **_base_profile(settings, "mixed", **overrides))


def monitoring_profile(settings: Settings, **overrides) -> LoadProfile:
    """Background load applied while gateway metrics are sampled."""
    overrides.setdefault("concurrency", settings.monitor_concurrency)
    return mixed_profile(settings, **{**overrides, "name": "monitoring-background"})
