"""
Concurrent load generator.

Spawns one asyncio task per virtual user. Users start staggered across the
ramp-up window, issue their requests sequentially with a random think time
in between, and record one RequestOutcome per request into a private
buffer. Buffers are merged once all users have finished.
"""

import asyncio
import random
import time
from datetime import UTC, datetime

import httpx

from resilience_engine.load.models import (
    ErrorKind,
    LoadProfile,
    LoadRunResult,
    OperationRequest,
    RequestOutcome,
    WeightedOperation,
)
from resilience_engine.logging import get_logger
from resilience_engine.runtime.cancellation import is_cancelled, sleep_or_cancel

logger = get_logger(__name__)


def choose_operation(rng: random.Random, mix: tuple[WeightedOperation, ...]) -> WeightedOperation:
    """Sample one operation from the weighted mix."""
    roll = rng.random()
    cumulative = 0.0
    for op in mix:
        cumulative += op.weight
        if roll < cumulative:
            return op
    return mix[-1]


class LoadGenerator:
    """Runs load profiles against a shared HTTP client."""

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def run(self, profile: LoadProfile, cancel: asyncio.Event | None = None) -> LoadRunResult:
        """
        Execute a load profile.

        Args:
            profile: Validated load parameters
            cancel: Optional event; once set, users stop issuing new requests

        Returns:
            LoadRunResult with exactly concurrency * requests_per_user outcomes
            unless the run was cancelled.
        """
        logger.info(
            "Starting load '%s': %d users x %d requests (ramp-up %.1fs)",
            profile.name,
            profile.concurrency,
            profile.requests_per_user,
            profile.ramp_up_s,
        )

        # Per-user generators derived from one seeded source keep runs reproducible
        root_rng = random.Random(profile.seed)
        user_rngs = [random.Random(root_rng.getrandbits(64)) for _ in range(profile.concurrency)]

        started_at = datetime.now(UTC)
        start = time.perf_counter()
        buffers = await asyncio.gather(
            *(
                self._virtual_user(profile, user, user_rngs[user], cancel)
                for user in range(profile.concurrency)
            )
        )
        duration = time.perf_counter() - start

        outcomes = [outcome for buffer in buffers for outcome in buffer]
        cancelled = is_cancelled(cancel)
        successes = sum(1 for o in outcomes if o.success)
        logger.info(
            "Load '%s' finished: %d/%d successful in %.2fs%s",
            profile.name,
            successes,
            len(outcomes),
            duration,
            " (cancelled)" if cancelled else "",
        )

        return LoadRunResult(
            profile_name=profile.name,
            outcomes=outcomes,
            started_at=started_at,
            duration_s=duration,
            cancelled=cancelled,
        )

    async def _virtual_user(
        self,
        profile: LoadProfile,
        user: int,
        rng: random.Random,
        cancel: asyncio.Event | None,
    ) -> list[RequestOutcome]:
        buffer: list[RequestOutcome] = []

        if not await sleep_or_cancel(profile.start_delay(user), cancel):
            return buffer

        for sequence in range(profile.requests_per_user):
            if is_cancelled(cancel):
                break

            op = choose_operation(rng, profile.mix)
            request = op.build(rng, user, sequence)
            buffer.append(await self._issue(profile, op.name, request, user, sequence))

            if profile.think_time_max_s > 0 and sequence + 1 < profile.requests_per_user:
                if not await sleep_or_cancel(rng.uniform(0, profile.think_time_max_s), cancel):
                    break

        return buffer

    async def _issue(
        self,
        profile: LoadProfile,
        operation: str,
        request: OperationRequest,
        user: int,
        sequence: int,
    ) -> RequestOutcome:
        start = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                self._client.request(
                    request.method,
                    request.url,
                    json=request.json,
                    timeout=profile.timeout_s,
                ),
                timeout=profile.timeout_s,
            )
        except (TimeoutError, httpx.TimeoutException):
            return RequestOutcome(
                operation=operation,
                user=user,
                sequence=sequence,
                success=False,
                latency_s=time.perf_counter() - start,
                error_kind=ErrorKind.TIMEOUT,
                error=f"timeout after {profile.timeout_s}s",
            )
        except httpx.HTTPError as e:
            return RequestOutcome(
                operation=operation,
                user=user,
                sequence=sequence,
                success=False,
                latency_s=time.perf_counter() - start,
                error_kind=ErrorKind.TRANSPORT,
                error=f"{type(e).__name__}: {e}",
            )
        except Exception as e:
            # Malformed URLs and similar client-side faults still count as failed requests
            logger.debug("Unexpected error in %s: %s", operation, e)
            return RequestOutcome(
                operation=operation,
                user=user,
                sequence=sequence,
                success=False,
                latency_s=time.perf_counter() - start,
                error_kind=ErrorKind.UNEXPECTED,
                error=f"{type(e).__name__}: {e}",
            )

        latency = time.perf_counter() - start
        if 200 <= response.status_code < 300:
            return RequestOutcome(
                operation=operation,
                user=user,
                sequence=sequence,
                success=True,
                latency_s=latency,
                status_code=response.status_code,
            )
        return RequestOutcome(
            operation=operation,
            user=user,
            sequence=sequence,
            success=False,
            latency_s=latency,
            status_code=response.status_code,
            error_kind=ErrorKind.HTTP_STATUS,
            error=f"HTTP {response.status_code}",
        )


async def run_load(
    profile: LoadProfile,
    client: httpx.AsyncClient,
    cancel: asyncio.Event | None = None,
) -> LoadRunResult:
    """Run a single load profile with a throwaway generator."""
    return await LoadGenerator(client).run(profile, cancel)
