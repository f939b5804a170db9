"""Event loop that multiplexes file descriptors and periodic timers.

Descriptors are watched through epoll (edge-triggered) or kqueue
(``EV_CLEAR``) where the platform offers them, falling back to ``poll``
(level-triggered) elsewhere. Timers live in a min-heap and fire
periodically until they are removed.
"""

from __future__ import annotations

import enum
import heapq
import select
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Union

from corekit.timers import (
    TIMER_ID_MAX,
    EventError,
    EventNotFoundError,
    EventRangeError,
    Timer,
    TimerHeap,
    time_now_ms,
)

MIN_RESERVED_FDS = 32
"""Descriptors always reserved on top of the requested loop size."""

FDSET_INCR = 96
"""Extra descriptor slots added to the requested loop size."""


class EventMask(enum.IntFlag):
    """Kinds of descriptor events a callback may be registered for."""

    NONE = 0
    READABLE = 1
    WRITABLE = 2
    ERROR = 4


EventCallback = Callable[["EventLoop", int, EventMask, Any], None]
TimerCallback = Callable[["EventLoop", int, Any], None]
FileLike = Union[int, Any]


@dataclass
class _Event:
    mask: EventMask = EventMask.NONE
    rcb: Optional[EventCallback] = None
    wcb: Optional[EventCallback] = None
    ecb: Optional[EventCallback] = None
    data: Any = None


class _Backend(Protocol):
    def add(self, fd: int, old_mask: EventMask, mask: EventMask) -> None: ...

    def delete(self, fd: int, old_mask: EventMask, mask: EventMask) -> None: ...

    def wait(self, timeout_ms: int, max_events: int) -> list[tuple[int, EventMask]]: ...

    def close(self) -> None: ...


def _without(mask: EventMask, removed: EventMask) -> EventMask:
    return EventMask(int(mask) & ~int(removed))


class _EpollBackend:
    """Edge-triggered epoll."""

    def __init__(self, size: int) -> None:
        self._ep = select.epoll(size)

    @staticmethod
    def _bits(mask: EventMask) -> int:
        bits = select.EPOLLET
        if mask & EventMask.READABLE:
            bits |= select.EPOLLIN
        if mask & EventMask.WRITABLE:
            bits |= select.EPOLLOUT
        if mask & EventMask.ERROR:
            bits |= select.EPOLLERR
        return bits

    def add(self, fd: int, old_mask: EventMask, mask: EventMask) -> None:
        bits = self._bits(mask | old_mask)
        try:
            if old_mask == EventMask.NONE:
                self._ep.register(fd, bits)
            else:
                self._ep.modify(fd, bits)
        except (OSError, ValueError) as exc:
            raise EventError(f"cannot watch descriptor {fd}: {exc}") from exc

    def delete(self, fd: int, old_mask: EventMask, mask: EventMask) -> None:
        remaining = _without(old_mask, mask)
        try:
            if remaining != EventMask.NONE:
                self._ep.modify(fd, self._bits(remaining))
            else:
                self._ep.unregister(fd)
        except (OSError, ValueError):
            pass

    def wait(self, timeout_ms: int, max_events: int) -> list[tuple[int, EventMask]]:
        timeout = -1 if timeout_ms < 0 else timeout_ms / 1000
        fired = []
        for fd, bits in self._ep.poll(timeout, max_events):
            mask = EventMask.NONE
            if bits & select.EPOLLERR:
                mask |= EventMask.ERROR
            if bits & select.EPOLLIN:
                mask |= EventMask.READABLE
            if bits & select.EPOLLOUT:
                mask |= EventMask.WRITABLE
            fired.append((fd, mask))
        return fired

    def close(self) -> None:
        self._ep.close()


class _KqueueBackend:
    """kqueue with ``EV_CLEAR`` semantics."""

    def __init__(self, size: int) -> None:
        self._kq = select.kqueue()

    def _control(self, fd: int, mask: EventMask, flags: int) -> None:
        changes = []
        if mask & EventMask.READABLE:
            changes.append(select.kevent(fd, select.KQ_FILTER_READ, flags))
        if mask & EventMask.WRITABLE:
            changes.append(select.kevent(fd, select.KQ_FILTER_WRITE, flags))
        for change in changes:
            try:
                self._kq.control([change], 0, 0)
            except (OSError, ValueError) as exc:
                raise EventError(f"kqueue change failed for {fd}: {exc}") from exc

    def add(self, fd: int, old_mask: EventMask, mask: EventMask) -> None:
        self._control(fd, mask, select.KQ_EV_ADD | select.KQ_EV_CLEAR)

    def delete(self, fd: int, old_mask: EventMask, mask: EventMask) -> None:
        self._control(fd, mask, select.KQ_EV_DELETE | select.KQ_EV_CLEAR)

    def wait(self, timeout_ms: int, max_events: int) -> list[tuple[int, EventMask]]:
        timeout = None if timeout_ms < 0 else timeout_ms / 1000
        fired = []
        for ke in self._kq.control(None, max_events, timeout):
            mask = EventMask.NONE
            if ke.flags & select.KQ_EV_ERROR:
                mask |= EventMask.ERROR
            if ke.filter == select.KQ_FILTER_READ:
                mask |= EventMask.READABLE
            if ke.filter == select.KQ_FILTER_WRITE:
                mask |= EventMask.WRITABLE
            fired.append((ke.ident, mask))
        return fired

    def close(self) -> None:
        self._kq.close()


class _PollBackend:
    """Level-triggered poll, used where neither epoll nor kqueue exists."""

    def __init__(self, size: int) -> None:
        self._poll = select.poll()

    @staticmethod
    def _bits(mask: EventMask) -> int:
        bits = 0
        if mask & EventMask.READABLE:
            bits |= select.POLLIN
        if mask & EventMask.WRITABLE:
            bits |= select.POLLOUT
        if mask & EventMask.ERROR:
            bits |= select.POLLERR
        return bits

    def add(self, fd: int, old_mask: EventMask, mask: EventMask) -> None:
        try:
            self._poll.register(fd, self._bits(mask | old_mask))
        except (OSError, ValueError) as exc:
            raise EventError(f"cannot watch descriptor {fd}: {exc}") from exc

    def delete(self, fd: int, old_mask: EventMask, mask: EventMask) -> None:
        remaining = _without(old_mask, mask)
        try:
            if remaining != EventMask.NONE:
                self._poll.modify(fd, self._bits(remaining))
            else:
                self._poll.unregister(fd)
        except (OSError, KeyError, ValueError):
            pass

    def wait(self, timeout_ms: int, max_events: int) -> list[tuple[int, EventMask]]:
        timeout = None if timeout_ms < 0 else timeout_ms
        fired = []
        for fd, bits in self._poll.poll(timeout)[:max_events]:
            mask = EventMask.NONE
            if bits & select.POLLERR:
                mask |= EventMask.ERROR
            if bits & select.POLLIN:
                mask |= EventMask.READABLE
            if bits & select.POLLOUT:
                mask |= EventMask.WRITABLE
            fired.append((fd, mask))
        return fired

    def close(self) -> None:
        pass


def _make_backend(size: int) -> _Backend:
    if hasattr(select, "epoll"):
        return _EpollBackend(size)
    if hasattr(select, "kqueue"):
        return _KqueueBackend(size)
    if hasattr(select, "poll"):
        return _PollBackend(size)
    raise EventError("no event backend available on this platform")


def _fileno(fd: FileLike) -> int:
    return fd if isinstance(fd, int) else fd.fileno()


class EventLoop:
    """Dispatches descriptor events and periodic timers to callbacks.

    Descriptor callbacks are called as ``cb(loop, fd, mask, data)`` and
    timer callbacks as ``cb(loop, timer_id, data)``.
    """

    def __init__(self, size: int = 0) -> None:
        if size < 0:
            raise ValueError(f"loop size must not be negative: {size}")
        self.size = size + FDSET_INCR + MIN_RESERVED_FDS
        self._events: dict[int, _Event] = {}
        self._backend = _make_backend(self.size)
        self._timers: dict[int, Timer] = {}
        self._free_ids = list(range(TIMER_ID_MAX))
        self._heap = TimerHeap()
        self.running = False

    @property
    def num_timers(self) -> int:
        """Number of timers currently registered."""
        return len(self._timers)

    def close(self) -> None:
        """Release the underlying polling object."""
        self._backend.close()
        self._events.clear()

    def __enter__(self) -> EventLoop:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _check_fd(self, fd: int) -> None:
        if fd < 0 or fd > self.size:
            raise EventRangeError(f"descriptor {fd} outside loop size {self.size}")

    def add(
        self, fd: FileLike, mask: EventMask, cb: EventCallback, data: Any = None
    ) -> None:
        """Watch ``fd`` for ``mask``, merging with any events already watched."""
        if cb is None:
            raise ValueError("a callback is required")
        fd = _fileno(fd)
        mask = EventMask(mask)
        self._check_fd(fd)
        ev = self._events.get(fd) or _Event()
        self._backend.add(fd, ev.mask, mask)
        ev.mask |= mask
        if mask & EventMask.ERROR:
            ev.ecb = cb
        if mask & EventMask.READABLE:
            ev.rcb = cb
        if mask & EventMask.WRITABLE:
            ev.wcb = cb
        ev.data = data
        self._events[fd] = ev

    def add_in(self, fd: FileLike, cb: EventCallback, data: Any = None) -> None:
        """Watch ``fd`` for readability."""
        self.add(fd, EventMask.READABLE, cb, data)

    def add_out(self, fd: FileLike, cb: EventCallback, data: Any = None) -> None:
        """Watch ``fd`` for writability."""
        self.add(fd, EventMask.WRITABLE, cb, data)

    def remove(self, fd: FileLike, mask: EventMask) -> None:
        """Stop watching ``fd`` for the events in ``mask``."""
        fd = _fileno(fd)
        mask = EventMask(mask)
        self._check_fd(fd)
        ev = self._events.get(fd)
        if ev is None or ev.mask == EventMask.NONE:
            return
        self._backend.delete(fd, ev.mask, mask)
        ev.mask = _without(ev.mask, mask)

    def remove_in(self, fd: FileLike) -> None:
        """Stop watching ``fd`` for readability."""
        self.remove(fd, EventMask.READABLE)

    def remove_out(self, fd: FileLike) -> None:
        """Stop watching ``fd`` for writability."""
        self.remove(fd, EventMask.WRITABLE)

    def add_timer(self, interval: int, cb: TimerCallback, data: Any = None) -> int:
        """Register a timer firing every ``interval`` ms; return its id.

        The lowest free id is used. Raises ``EventRangeError`` when all
        ``TIMER_ID_MAX`` slots are taken.
        """
        if interval <= 0:
            raise ValueError(f"timer interval must be positive: {interval}")
        if not self._free_ids:
            raise EventRangeError("no free timer id")
        timer_id = heapq.heappop(self._free_ids)
        timer = Timer(timer_id, cb, interval, time_now_ms() + interval, data)
        self._timers[timer_id] = timer
        self._heap.push(timer)
        return timer_id

    def remove_timer(self, timer_id: int) -> None:
        """Remove the timer ``timer_id``.

        Raises ``EventRangeError`` for an invalid id and
        ``EventNotFoundError`` if no such timer is registered.
        """
        if not 0 <= timer_id < TIMER_ID_MAX:
            raise EventRangeError(f"timer id out of range: {timer_id}")
        timer = self._timers.get(timer_id)
        if timer is None:
            raise EventNotFoundError(f"timer not found: {timer_id}")
        self._heap.delete(timer_id)
        timer.id = -1
        del self._timers[timer_id]
        heapq.heappush(self._free_ids, timer_id)

    def _process_timers(self) -> None:
        while True:
            timer = self._heap.top()
            if timer is None or timer.fire_at > time_now_ms():
                break
            if timer.cb is not None:
                timer.cb(self, timer.id, timer.data)
            if timer.id < 0:
                continue
            timer.fire_at += timer.interval
            if self._heap.top() is timer:
                self._heap.replace(timer)
            else:
                self._heap.delete(timer.id)
                self._heap.push(timer)

    def _dispatch(self, fd: int, mask: EventMask) -> None:
        ev = self._events.get(fd)
        if ev is None:
            return
        ecb, rcb, wcb, data = ev.ecb, ev.rcb, ev.wcb, ev.data
        if mask & EventMask.ERROR and ecb is not None:
            ecb(self, fd, mask, data)
        if mask & EventMask.READABLE and rcb is not None:
            rcb(self, fd, mask, data)
        if mask & EventMask.WRITABLE and wcb is not None:
            wcb(self, fd, mask, data)

    def wait(self) -> None:
        """Wait for descriptor events or the nearest timer, then dispatch.

        Blocks forever when no timer is registered and nothing is ready.
        Raises ``EventError`` if polling fails.
        """
        timeout = -1
        nearest = self._heap.top()
        if nearest is not None:
            timeout = max(0, nearest.fire_at - time_now_ms())
        try:
            fired = self._backend.wait(timeout, self.size)
        except OSError as exc:
            self._process_timers()
            raise EventError(f"waiting for events failed: {exc}") from exc
        for fd, mask in fired:
            self._dispatch(fd, mask)
        self._process_timers()
        if not fired and timeout < 0:
            raise EventError("wait returned without events")

    def start(self) -> None:
        """Run ``wait`` repeatedly until ``stop`` is called."""
        self.running = True
        while self.running:
            self.wait()

    def stop(self) -> None:
        """Make ``start`` return after the current iteration."""
        self.running = False

    def __repr__(self) -> str:
        return (
            f"EventLoop(size={self.size}, fds={len(self._events)}, "
            f"timers={len(self._timers)})"
        )