"""
Load generation models.

LoadProfile is the validated input to a run; RequestOutcome records are
write-once and are the only data the metrics aggregator sees.
"""

import math
import random
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


@dataclass(frozen=True)
class OperationRequest:
    """A single HTTP request produced by an operation."""

    method: str
    url: str
    json: dict[str, Any] | None = None


# Builds the next request for a virtual user: (rng, user_index, sequence) -> request
OperationBuilder = Callable[[random.Random, int, int], OperationRequest]


class WeightedOperation(BaseModel):
    """An operation and its share of the workload mix."""

    model_config = {"frozen": True}

    name: str
    weight: float
    build: OperationBuilder


class LoadProfile(BaseModel):
    """
    Parameters of one load run.

    Mix weights must sum to 1.0; every weight must be positive.
    """

    model_config = {"frozen": True}

    name: str
    concurrency: int = Field(..., ge=1, description="Number of virtual users")
    requests_per_user: int = Field(..., ge=1, description="Sequential requests per user")
    timeout_s: float = Field(default=10.0, gt=0, description="Per-request timeout")
    ramp_up_s: float = Field(default=0.0, ge=0, description="Start-time spread across users")
    think_time_max_s: float = Field(default=0.0, ge=0, description="Max pause between requests")
    mix: tuple[WeightedOperation, ...]
    seed: int | None = None

    @field_validator("mix")
    @classmethod
    def validate_mix(cls, v: tuple[WeightedOperation, ...]) -> tuple[WeightedOperation, ...]:
        if not v:
            raise ValueError("Load profile mix must contain at least one operation")
        for op in v:
            if op.weight <= 0:
                raise ValueError(f"Operation '{op.name}' has non-positive weight {op.weight}")
        total = sum(op.weight for op in v)
        if not math.isclose(total, 1.0, abs_tol=1e-6):
            raise ValueError(f"Mix weights must sum to 1.0, got {total:.6f}")
        return v

    @model_validator(mode="after")
    def validate_names(self) -> "LoadProfile":
        names = [op.name for op in self.mix]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate operation names in mix: {names}")
        return self

    @property
    def total_requests(self) -> int:
        return self.concurrency * self.requests_per_user

    def start_delay(self, user: int) -> float:
        """Ramp-up delay before virtual user `user` starts."""
        return user / self.concurrency * self.ramp_up_s


class ErrorKind(str, Enum):
    """Classification of a failed request."""

    NONE = "none"
    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    HTTP_STATUS = "http_status"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class RequestOutcome:
    """One request issued by a virtual user."""

    operation: str
    user: int
    sequence: int
    success: bool
    latency_s: float
    status_code: int | None = None
    error_kind: ErrorKind = ErrorKind.NONE
    error: str | None = None


@dataclass
class LoadRunResult:
    """All outcomes of one load run."""

    profile_name: str
    outcomes: list[RequestOutcome] = field(default_factory=list)
    started_at: datetime | None = None
    duration_s: float = 0.0
    cancelled: bool = False


class LoadSummary(BaseModel):
    """Aggregate metrics over a set of request outcomes."""

    total: int = 0
    successes: int = 0
    failures: int = 0
    success_rate: float = 0.0
    avg_latency_ms: float = 0.0
    min_latency_ms: float = 0.0
    max_latency_ms: float = 0.0
    p50_latency_ms: float = 0.0
    p95_latency_ms: float = 0.0
    p99_latency_ms: float = 0.0
    throughput_rps: float = 0.0
    duration_s: float = 0.0
    error_kinds: dict[str, int] = Field(default_factory=dict)
    error_messages: list[str] = Field(default_factory=list)
