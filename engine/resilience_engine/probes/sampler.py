"""
Periodic sampling of JSON endpoints and continuous health monitoring.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from resilience_engine.logging import get_logger
from resilience_engine.probes.models import ProbeResult, TargetEndpoint
from resilience_engine.probes.readiness import ReadinessPoller
from resilience_engine.runtime.cancellation import is_cancelled, sleep_or_cancel

logger = get_logger(__name__)

_MISSING = object()


def lookup_path(body: Any, path: str) -> Any:
    """Resolve a dotted path ("gateway.uptime") inside a JSON object."""
    current = body
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def missing_fields(body: Any, required: list[str]) -> list[str]:
    """Return the dotted paths from `required` that are absent from `body`."""
    return [path for path in required if lookup_path(body, path) is _MISSING]


async def fetch_json(
    client: httpx.AsyncClient, url: str, timeout_s: float = 5.0
) -> tuple[int | None, Any]:
    """
    GET a JSON document.

    Returns:
        (status_code, body); status is None when the request failed and body
        is None when the response was not JSON.
    """
    try:
        response = await client.get(url, timeout=timeout_s)
    except httpx.HTTPError as e:
        logger.warning("GET %s failed: %s: %s", url, type(e).__name__, e)
        return None, None
    try:
        return response.status_code, response.json()
    except ValueError:
        return response.status_code, None


@dataclass
class HealthMonitorReport:
    """Outcome of continuous health monitoring."""

    probes: list[ProbeResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.probes)

    @property
    def healthy(self) -> int:
        return sum(1 for probe in self.probes if probe.healthy)

    @property
    def ratio(self) -> float:
        if not self.probes:
            return 0.0
        return self.healthy / self.total


class EndpointSampler:
    """Polls endpoints at a fixed cadence for a bounded duration."""

    def __init__(self, client: httpx.AsyncClient, timeout_s: float = 5.0):
        self._client = client
        self.timeout_s = timeout_s

    async def sample_json(
        self,
        url: str,
        duration_s: float,
        interval_s: float,
        cancel: asyncio.Event | None = None,
    ) -> list[dict[str, Any]]:
        """Collect every successful JSON object returned by `url` during the window."""
        snapshots: list[dict[str, Any]] = []
        deadline = time.monotonic() + duration_s

        while not is_cancelled(cancel):
            started = time.monotonic()
            status, body = await fetch_json(self._client, url, self.timeout_s)
            if status == 200 and isinstance(body, dict):
                snapshots.append(body)
                logger.debug("Sampled %s (%d snapshots)", url, len(snapshots))

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            pause = min(remaining, max(0.0, interval_s - (time.monotonic() - started)))
            if not await sleep_or_cancel(pause, cancel):
                break

        logger.info("Collected %d snapshots from %s", len(snapshots), url)
        return snapshots

    async def monitor_health(
        self,
        poller: ReadinessPoller,
        endpoint: TargetEndpoint,
        duration_s: float,
        interval_s: float,
        cancel: asyncio.Event | None = None,
    ) -> HealthMonitorReport:
        """Probe an endpoint every `interval_s` for `duration_s`."""
        report = HealthMonitorReport()
        checks = max(1, int(duration_s / interval_s)) if interval_s > 0 else 1

        for i in range(checks):
            if is_cancelled(cancel):
                break
            started = time.monotonic()
            result = await poller.probe(endpoint)
            report.probes.append(result)
            logger.info(
                "Health check %d/%d for %s: %s",
                i + 1,
                checks,
                endpoint.name,
                "healthy" if result.healthy else "unhealthy",
            )
            if i + 1 < checks:
                pause = max(0.0, interval_s - (time.monotonic() - started))
                if not await sleep_or_cancel(pause, cancel):
                    break

        return report
