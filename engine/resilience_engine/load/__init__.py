"""Concurrent load generation and metrics."""

from resilience_engine.load.generator import LoadGenerator, run_load
from resilience_engine.load.metrics import meets_threshold, summarize
from resilience_engine.load.models import (
    ErrorKind,
    LoadProfile,
    LoadRunResult,
    LoadSummary,
    OperationRequest,
    RequestOutcome,
    WeightedOperation,
)

__all__ = [
    "ErrorKind",
    "LoadGenerator",
    "LoadProfile",
    "LoadRunResult",
    "LoadSummary",
    "OperationRequest",
    "RequestOutcome",
    "WeightedOperation",
    "meets_threshold",
    "run_load",
    "summarize",
]
