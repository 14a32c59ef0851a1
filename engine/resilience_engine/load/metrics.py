"""
Metrics aggregation over load outcomes.

All functions are pure and return zeros for empty input.
"""

import math
from collections import Counter
from collections.abc import Sequence

from resilience_engine.load.models import ErrorKind, LoadRunResult, LoadSummary, RequestOutcome

MAX_ERROR_MESSAGES = 20


def percentile(values: Sequence[float], pct: float) -> float:
    """
    Linear-interpolated percentile.

    Args:
        values: Sample values (any order)
        pct: Fraction in [0, 1]

    Returns:
        Percentile value, 0.0 for empty input
    """
    if not values:
        return 0.0
    ordered = sorted(values)
    k = (len(ordered) - 1) * pct
    lower = math.floor(k)
    upper = math.ceil(k)
    if lower == upper:
        return ordered[int(k)]
    weight = k - lower
    return ordered[lower] * (1.0 - weight) + ordered[upper] * weight


def success_rate(outcomes: Sequence[RequestOutcome]) -> float:
    """Fraction of successful outcomes."""
    if not outcomes:
        return 0.0
    return sum(1 for o in outcomes if o.success) / len(outcomes)


def summarize(outcomes: Sequence[RequestOutcome], duration_s: float) -> LoadSummary:
    """
    Aggregate request outcomes.

    Latency statistics cover every outcome; a failed request's latency is
    the time until it failed.

    Args:
        outcomes: Request outcomes from one or more load runs
        duration_s: Wall time of the run, used for throughput

    Returns:
        LoadSummary with latencies in milliseconds
    """
    total = len(outcomes)
    if total == 0:
        return LoadSummary(duration_s=max(0.0, duration_s))

    successes = sum(1 for o in outcomes if o.success)
    latencies_ms = [o.latency_s * 1000 for o in outcomes]

    kinds = Counter(o.error_kind.value for o in outcomes if o.error_kind != ErrorKind.NONE)
    messages: list[str] = []
    for o in outcomes:
        if o.error and o.error not in messages:
            messages.append(o.error)
            if len(messages) >= MAX_ERROR_MESSAGES:
                break

    return LoadSummary(
        total=total,
        successes=successes,
        failures=total - successes,
        success_rate=successes / total,
        avg_latency_ms=sum(latencies_ms) / total,
        min_latency_ms=min(latencies_ms),
        max_latency_ms=max(latencies_ms),
        p50_latency_ms=percentile(latencies_ms, 0.50),
        p95_latency_ms=percentile(latencies_ms, 0.95),
        p99_latency_ms=percentile(latencies_ms, 0.99),
        throughput_rps=total / duration_s if duration_s > 0 else 0.0,
        duration_s=duration_s,
        error_kinds=dict(kinds),
        error_messages=messages,
    )


def summarize_run(result: LoadRunResult) -> LoadSummary:
    return summarize(result.outcomes, result.duration_s)


def meets_threshold(summary: LoadSummary, min_success_rate: float) -> bool:
    """A run with no requests never meets a threshold."""
    return summary.total > 0 and summary.success_rate >= min_success_rate


def format_summary(name: str, summary: LoadSummary) -> list[str]:
    """Human-readable lines for logs and reports."""
    lines = [
        f"{name}: {summary.successes}/{summary.total} successful "
        f"({summary.success_rate * 100:.2f}%)",
        f"  latency avg={summary.avg_latency_ms:.2f}ms min={summary.min_latency_ms:.2f}ms "
        f"max={summary.max_latency_ms:.2f}ms p50={summary.p50_latency_ms:.2f}ms "
        f"p95={summary.p95_latency_ms:.2f}ms p99={summary.p99_latency_ms:.2f}ms",
        f"  throughput={summary.throughput_rps:.2f} req/s over {summary.duration_s:.2f}s",
    ]
    if summary.error_messages:
        lines.append(f"  errors: {', '.join(summary.error_messages)}")
    return lines
