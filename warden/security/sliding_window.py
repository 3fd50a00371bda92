"""
Warden - Sliding Window Counter
===============================

Per-key timestamp queues with prune-by-age counting.

DESIGN:
    Timestamps are appended in clock order, so pruning only ever drops
    from the head of a deque. Keys are created on first record and may be
    evicted once idle, which keeps guilds that saw one burst long ago from
    holding memory forever.
"""

from collections import deque
from typing import Deque, Dict, Hashable, Optional

from warden.core.clock import Clock


class SlidingWindowCounter:
    """
    Counts events per key inside a trailing time window.

    An event recorded at time t is inside the window at time now when
    t >= now - window_seconds.
    """

    def __init__(self, window_seconds: float, clock: Clock) -> None:
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.window_seconds = window_seconds
        self._clock = clock
        self._events: Dict[Hashable, Deque[float]] = {}

    def __len__(self) -> int:
        return len(self._events)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._events

    def _prune(self, queue: Deque[float], now: float, window_seconds: float) -> None:
        cutoff = now - window_seconds
        while queue and queue[0] < cutoff:
            queue.popleft()

    def record(self, key: Hashable) -> int:
        """Record one event for key now and return the in-window count."""
        now = self._clock.now()
        queue = self._events.get(key)
        if queue is None:
            queue = deque()
            self._events[key] = queue
        self._prune(queue, now, self.window_seconds)
        queue.append(now)
        return len(queue)

    def count(self, key: Hashable, window_seconds: Optional[float] = None) -> int:
        """
        Return the number of events for key inside the window.

        A narrower window_seconds counts within that window without
        discarding older events still inside the counter's own window.
        """
        queue = self._events.get(key)
        if not queue:
            return 0
        now = self._clock.now()
        self._prune(queue, now, self.window_seconds)
        if window_seconds is None or window_seconds >= self.window_seconds:
            return len(queue)
        cutoff = now - window_seconds
        return sum(1 for ts in queue if ts >= cutoff)

    def reset(self, key: Hashable) -> None:
        self._events.pop(key, None)

    def evict_idle(self, idle_seconds: Optional[float] = None) -> int:
        """
        Drop keys with no events in the last idle_seconds.

        Defaults to the window length, which removes exactly the keys whose
        queues would be empty after pruning.

        Returns:
            Number of keys removed.
        """
        idle = self.window_seconds if idle_seconds is None else idle_seconds
        cutoff = self._clock.now() - idle
        stale = [key for key, queue in self._events.items() if not queue or queue[-1] < cutoff]
        for key in stale:
            del self._events[key]
        return len(stale)


__all__ = ["SlidingWindowCounter"]
