"""Infrastructure control through the container orchestrator."""

from resilience_engine.infra.models import CommandResult, InfraAction
from resilience_engine.infra.runner import CommandRunner, ComposeCommandRunner

__all__ = ["CommandResult", "CommandRunner", "ComposeCommandRunner", "InfraAction"]
