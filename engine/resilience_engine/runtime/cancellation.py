"""
Bounded, cancellable sleeps.

Every suspension point in the engine waits through sleep_or_cancel so a
caller holding the cancel event can stop a run promptly.
"""

import asyncio


def is_cancelled(cancel: asyncio.Event | None) -> bool:
    """Check whether a cancel event has been set."""
    return cancel is not None and cancel.is_set()


async def sleep_or_cancel(seconds: float, cancel: asyncio.Event | None = None) -> bool:
    """
    Sleep for up to `seconds`, waking early if `cancel` is set.

    Returns:
        True if the full delay elapsed, False if cancelled.
    """
    if cancel is None:
        if seconds > 0:
            await asyncio.sleep(seconds)
        return True

    if cancel.is_set():
        return False
    if seconds <= 0:
        return True

    try:
        await asyncio.wait_for(cancel.wait(), timeout=seconds)
    except TimeoutError:
        return True
    return False
