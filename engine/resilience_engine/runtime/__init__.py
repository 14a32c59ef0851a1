"""Runtime plumbing shared by probes, load and scenarios."""

from resilience_engine.runtime.cancellation import is_cancelled, sleep_or_cancel

__all__ = ["is_cancelled", "sleep_or_cancel"]
