"""Timers and the binary min-heap that orders them by firing time."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

TIMER_ID_MAX = 1024 * 10
"""Number of timer slots; timer ids lie in ``[0, TIMER_ID_MAX)``."""


class EventError(Exception):
    """Base class for event loop and timer errors."""


class EventRangeError(EventError):
    """Raised when an id, descriptor or size is out of range."""


class EventNotFoundError(EventError):
    """Raised when a timer or event cannot be found."""


def time_now_ms() -> int:
    """Return the current wall-clock time in whole milliseconds."""
    return time.time_ns() // 1_000_000


@dataclass(eq=False)
class Timer:
    """A periodic timer.

    ``cb`` is called as ``cb(loop, id, data)`` each time the timer fires;
    ``interval`` and ``fire_at`` are in milliseconds.
    """

    id: int
    cb: Optional[Callable[[Any, int, Any], None]]
    interval: int
    fire_at: int
    data: Any = None


class TimerHeap:
    """A min-heap of timers ordered by ``fire_at``, holding at most
    ``TIMER_ID_MAX`` timers."""

    def __init__(self) -> None:
        self._timers: list[Timer] = []

    def _siftdown(self, start: int, idx: int) -> None:
        timers = self._timers
        timer = timers[idx]
        while idx > start:
            parent_idx = (idx - 1) >> 1
            parent = timers[parent_idx]
            if timer.fire_at < parent.fire_at:
                timers[idx] = parent
                idx = parent_idx
                continue
            break
        timers[idx] = timer

    def _siftup(self, idx: int) -> None:
        timers = self._timers
        size = len(timers)
        start = idx
        timer = timers[idx]
        child = 2 * idx + 1
        while child < size:
            right = child + 1
            if right < size and timers[child].fire_at >= timers[right].fire_at:
                child = right
            timers[idx] = timers[child]
            idx = child
            child = 2 * idx + 1
        timers[idx] = timer
        self._siftdown(start, idx)

    def push(self, timer: Timer) -> None:
        """Add ``timer``; raise ``EventRangeError`` if the heap is full."""
        if len(self._timers) >= TIMER_ID_MAX:
            raise EventRangeError("timer heap is full")
        self._timers.append(timer)
        self._siftdown(0, len(self._timers) - 1)

    def pop(self) -> Optional[Timer]:
        """Remove and return the earliest timer, or ``None`` if empty."""
        if not self._timers:
            return None
        tail = self._timers.pop()
        if not self._timers:
            return tail
        head = self._timers[0]
        self._timers[0] = tail
        self._siftup(0)
        return head

    def top(self) -> Optional[Timer]:
        """Return the earliest timer without removing it, or ``None``."""
        return self._timers[0] if self._timers else None

    def delete(self, timer_id: int) -> None:
        """Remove the timer with id ``timer_id``.

        Raises ``EventRangeError`` for an id outside the valid range and
        ``EventNotFoundError`` if no such timer is in the heap.
        """
        if not 0 <= timer_id < TIMER_ID_MAX:
            raise EventRangeError(f"timer id out of range: {timer_id}")
        for pos, timer in enumerate(self._timers):
            if timer.id == timer_id:
                last = self._timers.pop()
                if pos < len(self._timers):
                    self._timers[pos] = last
                    self._siftup(pos)
                return
        raise EventNotFoundError(f"timer not found: {timer_id}")

    def replace(self, timer: Timer) -> None:
        """Put ``timer`` in place of the top timer and restore heap order.

        Raises ``EventRangeError`` if the heap is empty.
        """
        if not self._timers:
            raise EventRangeError("timer heap is empty")
        self._timers[0] = timer
        self._siftup(0)

    def __len__(self) -> int:
        return len(self._timers)

    def __repr__(self) -> str:
        return f"TimerHeap(len={len(self._timers)})"