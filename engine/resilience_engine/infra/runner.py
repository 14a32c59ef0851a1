"""
Infrastructure command runner.

Maps InfraActions onto docker compose invocations. Commands are built as
argv lists and executed without a shell, under a hard timeout. The runner
never retries; retry policy belongs to the scenario that issued the command.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from pathlib import Path

from resilience_engine.infra.models import CommandResult, InfraAction
from resilience_engine.logging import get_logger

logger = get_logger(__name__)

_OUTPUT_LIMIT = 4000


class CommandRunner(ABC):
    """
    Abstract interface for controlling the deployment.

    Implementations must report failures (including timeouts) through the
    returned CommandResult rather than raising.
    """

    @abstractmethod
    async def run(
        self,
        action: InfraAction,
        component: str | None = None,
        *,
        timeout_s: float,
        replicas: int | None = None,
    ) -> CommandResult:
        """
        Execute one infrastructure action.

        Args:
            action: What to do
            component: Target component for per-component actions
            timeout_s: Hard timeout for the command
            replicas: Replica count for SCALE

        Returns:
            CommandResult describing the outcome
        """
        pass


def validate_request(action: InfraAction, component: str | None, replicas: int | None) -> None:
    """Reject malformed requests (programming errors, not infrastructure failures)."""
    if action.needs_component and not component:
        raise ValueError(f"Action '{action.value}' requires a component")
    if action == InfraAction.SCALE:
        if replicas is None or replicas < 0:
            raise ValueError(f"SCALE requires replicas >= 0, got {replicas}")


class ComposeCommandRunner(CommandRunner):
    """Runs actions through `docker compose -f <file> ...`."""

    def __init__(
        self,
        compose_command: list[str] | None = None,
        compose_file: str = "docker-compose.distributed.yml",
        project_dir: Path | None = None,
    ):
        self.compose_command = compose_command or ["docker", "compose"]
        self.compose_file = compose_file
        self.project_dir = project_dir

    def build_argv(
        self,
        action: InfraAction,
        component: str | None = None,
        replicas: int | None = None,
    ) -> list[str]:
        """Translate an action into the argv executed by the runner."""
        validate_request(action, component, replicas)
        argv = [*self.compose_command, "-f", self.compose_file]

        if action in (InfraAction.STOP, InfraAction.START, InfraAction.RESTART):
            argv += [action.value, component]
        elif action == InfraAction.RESTART_ALL:
            argv += ["restart"]
        elif action == InfraAction.SCALE:
            argv += ["up", "-d", "--scale", f"{component}={replicas}"]
        elif action == InfraAction.DOWN:
            argv += ["down"]
        elif action == InfraAction.UP:
            argv += ["up", "-d"]
        elif action == InfraAction.STATUS:
            argv += ["ps"]
        return argv

    async def run(
        self,
        action: InfraAction,
        component: str | None = None,
        *,
        timeout_s: float,
        replicas: int | None = None,
    ) -> CommandResult:
        argv = self.build_argv(action, component, replicas)
        label = f"{action.value} {component}" if component else action.value
        logger.info("Running infra command: %s", " ".join(argv))

        start = time.perf_counter()
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.project_dir,
            )
        except (FileNotFoundError, PermissionError) as e:
            logger.error("Infra command %s could not start: %s", label, e)
            return CommandResult(
                action=action,
                component=component,
                success=False,
                error=str(e),
                duration_s=time.perf_counter() - start,
            )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout_s)
        except TimeoutError:
            await _kill(process)
            duration = time.perf_counter() - start
            logger.error("Infra command %s timed out after %.1fs", label, duration)
            return CommandResult(
                action=action,
                component=component,
                success=False,
                error=f"timed out after {timeout_s}s",
                duration_s=duration,
                timed_out=True,
            )
        except asyncio.CancelledError:
            await _kill(process)
            raise

        duration = time.perf_counter() - start
        output = stdout.decode(errors="replace")[-_OUTPUT_LIMIT:]
        error = stderr.decode(errors="replace")[-_OUTPUT_LIMIT:]
        success = process.returncode == 0

        if success:
            logger.info("Infra command %s succeeded (%.1fs)", label, duration)
        else:
            logger.error(
                "Infra command %s failed with exit code %s: %s",
                label,
                process.returncode,
                error.strip(),
            )

        return CommandResult(
            action=action,
            component=component,
            success=success,
            output=output,
            error=error,
            exit_code=process.returncode,
            duration_s=duration,
        )


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            return
        await process.wait()
