"""
Infrastructure command models.
"""

from dataclasses import dataclass
from enum import Enum


class InfraAction(str, Enum):
    """
    Actions the orchestrator can take against the deployment.

    STOP/START/RESTART/SCALE target a single component; RESTART_ALL,
    DOWN, UP and STATUS act on the whole deployment.
    """

    STOP = "stop"
    START = "start"
    RESTART = "restart"
    RESTART_ALL = "restart_all"
    SCALE = "scale"
    DOWN = "down"
    UP = "up"
    STATUS = "status"

    @property
    def needs_component(self) -> bool:
        return self in _COMPONENT_ACTIONS


_COMPONENT_ACTIONS = frozenset(
    {InfraAction.STOP, InfraAction.START, InfraAction.RESTART, InfraAction.SCALE}
)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a single infrastructure command."""

    action: InfraAction
    component: str | None
    success: bool
    output: str = ""
    error: str = ""
    exit_code: int | None = None
    duration_s: float = 0.0
    timed_out: bool = False

    @property
    def description(self) -> str:
        return f"{self.action.value} {self.component}" if self.component else self.action.value
