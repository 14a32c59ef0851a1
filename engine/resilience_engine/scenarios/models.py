"""
Scenario models.

A Scenario is an immutable, phase-ordered list of steps. Each execution
gets a fresh ScenarioRun holding everything the steps write (marker
records, transitions, step results), so scenarios can be re-run freely.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from resilience_engine.probes.business import Resource


class ScenarioState(str, Enum):
    """
    Scenario lifecycle state.

    Valid state transitions:
    - INIT -> PRECONDITION_CHECK
    - PRECONDITION_CHECK -> FAULT_INJECTION
    - FAULT_INJECTION -> DEGRADED_VALIDATION
    - DEGRADED_VALIDATION -> RECOVERY
    - RECOVERY -> POST_VALIDATION
    - POST_VALIDATION -> PASSED
    - any non-terminal state -> FAILED

    Terminal states: PASSED, FAILED
    """

    INIT = "init"
    PRECONDITION_CHECK = "precondition_check"
    FAULT_INJECTION = "fault_injection"
    DEGRADED_VALIDATION = "degraded_validation"
    RECOVERY = "recovery"
    POST_VALIDATION = "post_validation"
    PASSED = "passed"
    FAILED = "failed"


# Phases that hold steps, in execution order
PHASES: tuple[ScenarioState, ...] = (
    ScenarioState.PRECONDITION_CHECK,
    ScenarioState.FAULT_INJECTION,
    ScenarioState.DEGRADED_VALIDATION,
    ScenarioState.RECOVERY,
    ScenarioState.POST_VALIDATION,
)

TERMINAL_STATES = frozenset({ScenarioState.PASSED, ScenarioState.FAILED})

VALID_TRANSITIONS: dict[ScenarioState, set[ScenarioState]] = {
    ScenarioState.INIT: {ScenarioState.PRECONDITION_CHECK, ScenarioState.FAILED},
    ScenarioState.PRECONDITION_CHECK: {ScenarioState.FAULT_INJECTION, ScenarioState.FAILED},
    ScenarioState.FAULT_INJECTION: {ScenarioState.DEGRADED_VALIDATION, ScenarioState.FAILED},
    ScenarioState.DEGRADED_VALIDATION: {ScenarioState.RECOVERY, ScenarioState.FAILED},
    ScenarioState.RECOVERY: {ScenarioState.POST_VALIDATION, ScenarioState.FAILED},
    ScenarioState.POST_VALIDATION: {ScenarioState.PASSED, ScenarioState.FAILED},
    ScenarioState.PASSED: set(),
    ScenarioState.FAILED: set(),
}


def validate_transition(current: ScenarioState, target: ScenarioState) -> bool:
    """Check whether a scenario state transition is allowed."""
    return target in VALID_TRANSITIONS.get(current, set())


class InvalidTransitionError(Exception):
    """Raised when the runner attempts an illegal state transition."""

    pass


class StepKind(str, Enum):
    """What a scenario step does."""

    INFRA = "infra"
    WAIT = "wait"
    HEALTH = "health"
    DATA = "data"


@dataclass(frozen=True)
class MarkerRecord:
    """A record written before a fault whose contents must survive it."""

    resource: Resource
    record_id: Any
    expected: dict[str, Any]


@dataclass(frozen=True)
class StepResult:
    """Outcome of one executed step."""

    name: str
    phase: ScenarioState
    kind: StepKind
    passed: bool
    duration_s: float
    error: str | None = None


@dataclass
class ScenarioRun:
    """Mutable state of one scenario execution."""

    scenario: "Scenario"
    cancel: asyncio.Event | None = None
    state: ScenarioState = ScenarioState.INIT
    markers: dict[str, MarkerRecord] = field(default_factory=dict)
    transitions: list[tuple[ScenarioState, ScenarioState]] = field(default_factory=list)
    step_results: list[StepResult] = field(default_factory=list)

    def transition(self, target: ScenarioState) -> None:
        if not validate_transition(self.state, target):
            raise InvalidTransitionError(
                f"Invalid scenario transition {self.state.value} -> {target.value}"
            )
        self.transitions.append((self.state, target))
        self.state = target


StepAction = Callable[[ScenarioRun], Awaitable[bool]]


@dataclass(frozen=True)
class ScenarioStep:
    """
    One step of a scenario.

    execute returns True on success; returning False or raising fails the
    scenario at this step.
    """

    name: str
    phase: ScenarioState
    kind: StepKind
    execute: StepAction
    timeout_s: float | None = None


@dataclass(frozen=True)
class Scenario:
    """A named fault-injection scenario."""

    name: str
    steps: tuple[ScenarioStep, ...]
    description: str = ""

    def __post_init__(self) -> None:
        order = {phase: i for i, phase in enumerate(PHASES)}
        last = -1
        for step in self.steps:
            if step.phase not in order:
                raise ValueError(f"Step '{step.name}' has non-executable phase {step.phase.value}")
            if order[step.phase] < last:
                raise ValueError(
                    f"Step '{step.name}' ({step.phase.value}) is out of phase order in '{self.name}'"
                )
            last = order[step.phase]

    def steps_for(self, phase: ScenarioState) -> list[ScenarioStep]:
        return [step for step in self.steps if step.phase == phase]


@dataclass(frozen=True)
class ScenarioResult:
    """Final outcome of a scenario run."""

    scenario: str
    state: ScenarioState
    steps: tuple[StepResult, ...] = ()
    transitions: tuple[tuple[ScenarioState, ScenarioState], ...] = ()
    failed_step: str | None = None
    failed_phase: ScenarioState | None = None
    reason: str | None = None
    duration_s: float = 0.0

    @property
    def passed(self) -> bool:
        return self.state == ScenarioState.PASSED
