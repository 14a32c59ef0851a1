"""
Harness context: the collaborators shared by every suite in one run.
"""

import asyncio
from dataclasses import dataclass, field

import httpx

from resilience_engine.config import Settings
from resilience_engine.infra.runner import CommandRunner, ComposeCommandRunner
from resilience_engine.load.generator import LoadGenerator
from resilience_engine.logging import get_logger
from resilience_engine.probes.business import BusinessClient
from resilience_engine.probes.readiness import ReadinessPoller
from resilience_engine.probes.sampler import EndpointSampler

logger = get_logger(__name__)


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    """One pooled client sized for the largest load profile."""
    pool = max(settings.load_concurrency, settings.monitor_concurrency) + 10
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.load_request_timeout_s),
        limits=httpx.Limits(max_connections=pool, max_keepalive_connections=pool),
    )


@dataclass
class HarnessContext:
    """
    Wiring for one orchestrator run.

    The context owns the HTTP client unless one was supplied by the caller.
    """

    settings: Settings
    client: httpx.AsyncClient
    runner: CommandRunner
    cancel: asyncio.Event = field(default_factory=asyncio.Event)
    owns_client: bool = False

    def __post_init__(self) -> None:
        self.poller = ReadinessPoller(self.client, self.settings.probe_timeout_s)
        self.business = BusinessClient(
            self.client,
            timeout_s=self.settings.load_request_timeout_s,
            lookup=self.settings.record_lookup,
        )
        self.sampler = EndpointSampler(self.client, timeout_s=self.settings.probe_timeout_s)
        self.load = LoadGenerator(self.client)

    @classmethod
    def create(
        cls,
        settings: Settings,
        client: httpx.AsyncClient | None = None,
        runner: CommandRunner | None = None,
    ) -> "HarnessContext":
        """Build a context, creating the HTTP client and compose runner if not given."""
        if runner is None:
            runner = ComposeCommandRunner(
                compose_command=settings.compose_argv,
                compose_file=settings.compose_file,
                project_dir=settings.compose_project_dir,
            )
        owns_client = client is None
        return cls(
            settings=settings,
            client=client if client is not None else build_http_client(settings),
            runner=runner,
            owns_client=owns_client,
        )

    async def aclose(self) -> None:
        if self.owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "HarnessContext":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
