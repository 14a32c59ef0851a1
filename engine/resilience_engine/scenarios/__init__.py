"""Fault-injection scenarios and the state machine that runs them."""

from resilience_engine.scenarios.models import (
    Scenario,
    ScenarioResult,
    ScenarioRun,
    ScenarioState,
    ScenarioStep,
    StepKind,
)
from resilience_engine.scenarios.runner import ScenarioRunner

__all__ = [
    "Scenario",
    "ScenarioResult",
    "ScenarioRun",
    "ScenarioRunner",
    "ScenarioState",
    "ScenarioStep",
    "StepKind",
]
