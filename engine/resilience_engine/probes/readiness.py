"""
Readiness poller.

Repeatedly probes a service health endpoint until it answers healthy or the
attempt budget is exhausted. Never raises for HTTP or transport errors.
"""

import asyncio
import time
from collections.abc import Sequence

import httpx

from resilience_engine.logging import get_logger
from resilience_engine.probes.models import ProbeResult, TargetEndpoint
from resilience_engine.runtime.cancellation import is_cancelled, sleep_or_cancel

logger = get_logger(__name__)


class ReadinessPoller:
    """
    Health probing with a bounded retry budget.

    A probe is healthy only on HTTP 200. wait_ready() performs at most
    max_attempts probes; the interval is measured from the start of each
    attempt, and no sleep follows the final attempt.
    """

    def __init__(self, client: httpx.AsyncClient, probe_timeout_s: float = 5.0):
        self._client = client
        self.probe_timeout_s = probe_timeout_s

    async def probe(self, endpoint: TargetEndpoint, timeout_s: float | None = None) -> ProbeResult:
        """Issue a single health probe."""
        timeout = timeout_s if timeout_s is not None else self.probe_timeout_s
        start = time.perf_counter()
        try:
            response = await self._client.get(endpoint.health_url, timeout=timeout)
        except httpx.TimeoutException as e:
            return ProbeResult(
                endpoint=endpoint.name,
                healthy=False,
                latency_s=time.perf_counter() - start,
                error=f"timeout: {e}",
            )
        except httpx.HTTPError as e:
            return ProbeResult(
                endpoint=endpoint.name,
                healthy=False,
                latency_s=time.perf_counter() - start,
                error=f"{type(e).__name__}: {e}",
            )

        latency = time.perf_counter() - start
        try:
            body = response.json()
        except ValueError:
            body = response.text

        healthy = response.status_code == 200
        return ProbeResult(
            endpoint=endpoint.name,
            healthy=healthy,
            status_code=response.status_code,
            latency_s=latency,
            body=body,
            error=None if healthy else f"HTTP {response.status_code}",
        )

    async def wait_ready(
        self,
        endpoint: TargetEndpoint,
        max_attempts: int,
        interval_s: float,
        cancel: asyncio.Event | None = None,
    ) -> bool:
        """
        Wait until an endpoint answers healthy.

        Args:
            endpoint: Service to probe
            max_attempts: Probe budget (>= 1)
            interval_s: Spacing between attempt starts
            cancel: Optional event that aborts the wait

        Returns:
            True on the first healthy probe, False when the budget is
            exhausted or the wait is cancelled.
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

        for attempt in range(1, max_attempts + 1):
            if is_cancelled(cancel):
                logger.info("Wait for %s cancelled", endpoint.name)
                return False

            started = time.monotonic()
            result = await self.probe(endpoint)
            if result.healthy:
                logger.info("%s is ready (attempt %d/%d)", endpoint.name, attempt, max_attempts)
                return True

            logger.info(
                "Waiting for %s ... (%d/%d) %s",
                endpoint.name,
                attempt,
                max_attempts,
                result.error or "",
            )

            if attempt == max_attempts:
                break

            remaining = interval_s - (time.monotonic() - started)
            if not await sleep_or_cancel(max(0.0, remaining), cancel):
                logger.info("Wait for %s cancelled", endpoint.name)
                return False

        logger.warning("%s not ready after %d attempts", endpoint.name, max_attempts)
        return False

    async def wait_all_ready(
        self,
        endpoints: Sequence[TargetEndpoint],
        max_attempts: int,
        interval_s: float,
        cancel: asyncio.Event | None = None,
    ) -> bool:
        """Wait for each endpoint in turn; stops at the first that never becomes ready."""
        for endpoint in endpoints:
            if not await self.wait_ready(endpoint, max_attempts, interval_s, cancel):
                return False
        return True

    async def check_all_healthy(self, endpoints: Sequence[TargetEndpoint]) -> bool:
        """Probe every endpoint once; all must be healthy."""
        results = await asyncio.gather(*(self.probe(endpoint) for endpoint in endpoints))
        for result in results:
            if result.healthy:
                logger.info("[v] %s healthy (%.0fms)", result.endpoint, result.latency_s * 1000)
            else:
                logger.warning("[X] %s unhealthy: %s", result.endpoint, result.error)
        return all(result.healthy for result in results)
