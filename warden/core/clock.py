"""
Warden - Clock
==============

Time source and deferred-callback scheduling for the core.

DESIGN:
    Every component reads time through a Clock so that window pruning,
    panic expiry and gateway unlocks can be driven deterministically in
    tests. call_later() returns a handle that can be cancelled; callers
    store it next to the record it expires and cancel it on replacement.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional, Protocol

from warden.core.logger import logger


Callback = Callable[[], Awaitable[None]]


# =============================================================================
# Interfaces
# =============================================================================

class ScheduledHandle(Protocol):
    """A cancelable deferred callback."""

    @property
    def cancelled(self) -> bool: ...

    def cancel(self) -> None: ...


class Clock(Protocol):
    """Time source used by the core."""

    def now(self) -> float:
        """Current time as epoch seconds."""
        ...

    def call_later(self, delay: float, callback: Callback, name: str = "") -> ScheduledHandle:
        """Run callback after delay seconds unless the handle is cancelled."""
        ...


# =============================================================================
# System Clock
# =============================================================================

class TaskHandle:
    """ScheduledHandle backed by an asyncio task."""

    def __init__(self, task: asyncio.Task) -> None:
        self._task = task
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> None:
        self._cancelled = True
        if not self._task.done():
            self._task.cancel()


class SystemClock:
    """Wall clock with asyncio-task scheduling."""

    def now(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callback, name: str = "") -> TaskHandle:
        task = asyncio.create_task(self._run_later(delay, callback, name), name=name or None)
        return TaskHandle(task)

    async def _run_later(self, delay: float, callback: Callback, name: str) -> None:
        try:
            await asyncio.sleep(max(0.0, delay))
            await callback()
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error("Scheduled Callback Failed", [
                ("Task", name or "unnamed"),
                ("Error", str(e)[:100]),
                ("Type", type(e).__name__),
            ])


_clock: Optional[SystemClock] = None


def get_clock() -> SystemClock:
    """Get the shared system clock."""
    global _clock
    if _clock is None:
        _clock = SystemClock()
    return _clock


__all__ = [
    "Callback",
    "Clock",
    "ScheduledHandle",
    "SystemClock",
    "TaskHandle",
    "get_clock",
]
