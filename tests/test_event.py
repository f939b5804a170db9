import os

import pytest

from corekit.event import FDSET_INCR, MIN_RESERVED_FDS, EventLoop, EventMask
from corekit.timers import TIMER_ID_MAX, EventNotFoundError, EventRangeError


@pytest.fixture
def pipe():
    r, w = os.pipe()
    yield r, w
    os.close(r)
    os.close(w)


def _stopper(loop, timer_id, data):
    loop.stop()


def test_mask_values_match_source():
    assert EventMask(0) == EventMask.NONE
    assert EventMask(1) == EventMask.READABLE
    assert EventMask(2) == EventMask.WRITABLE
    assert EventMask(4) == EventMask.ERROR


def test_size_includes_reserved_slots():
    with EventLoop(0) as small, EventLoop(10) as big:
        assert small.size == FDSET_INCR + MIN_RESERVED_FDS
        assert small.size == 128
        assert big.size - small.size == 10


def test_negative_size_rejected():
    with pytest.raises(ValueError):
        EventLoop(-1)


def test_add_out_of_range_fd(pipe):
    with EventLoop(0) as loop:
        with pytest.raises(EventRangeError):
            loop.add(loop.size + 1, EventMask.READABLE, lambda *a: None)
        with pytest.raises(EventRangeError):
            loop.remove(loop.size + 1, EventMask.READABLE)


def test_readable_callback_receives_arguments(pipe):
    r, w = pipe
    os.write(w, b"x")
    calls = []

    def on_read(lp, fd, mask, data):
        calls.append((lp, fd, mask, data))
        lp.stop()

    with EventLoop(0) as loop:
        loop.add_in(r, on_read, "payload")
        loop.add_timer(5000, _stopper)
        loop.start()
    assert calls == [(loop, r, EventMask.READABLE, "payload")]


def test_writable_callback(pipe):
    r, w = pipe
    masks = []

    def on_write(lp, fd, mask, data):
        masks.append((fd, mask))
        lp.stop()

    with EventLoop(0) as loop:
        loop.add_out(w, on_write)
        loop.add_timer(5000, _stopper)
        loop.start()
    assert masks == [(w, EventMask.WRITABLE)]


def test_wait_dispatches_once(pipe):
    r, w = pipe
    os.write(w, b"abc")
    calls = []
    with EventLoop(0) as loop:
        loop.add_in(r, lambda lp, fd, mask, data: calls.append(fd))
        loop.add_timer(5000, _stopper)
        loop.wait()
    assert calls == [r]


def test_removed_fd_not_dispatched(pipe):
    r, w = pipe
    calls = []
    stops = []

    def stop(lp, timer_id, data):
        stops.append(timer_id)
        lp.stop()

    with EventLoop(0) as loop:
        loop.add_in(r, lambda *a: calls.append(a))
        loop.remove_in(r)
        loop.remove_in(r)
        os.write(w, b"x")
        loop.add_timer(20, stop)
        loop.start()
    assert calls == []
    assert stops == [0]


def test_remove_untracked_fd_is_noop(pipe):
    r, _ = pipe
    with EventLoop(0) as loop:
        loop.remove_out(r)
        loop.add_timer(5, _stopper)
        loop.start()
        assert loop.running is False


def test_timer_fires_periodically_with_data():
    fired = []

    def tick(lp, timer_id, data):
        fired.append((timer_id, data))
        if len(fired) == 3:
            lp.stop()

    with EventLoop(0) as loop:
        tid = loop.add_timer(5, tick, "d")
        loop.start()
        assert loop.num_timers == 1
    assert fired == [(tid, "d")] * 3


def test_timer_removing_itself_fires_once():
    once = []

    def fire_once(lp, timer_id, data):
        once.append(timer_id)
        lp.remove_timer(timer_id)

    with EventLoop(0) as loop:
        loop.add_timer(5, fire_once)
        loop.add_timer(60, _stopper)
        loop.start()
        assert loop.num_timers == 1
    assert once == [0]


def test_timer_ids_reuse_lowest_free_slot():
    with EventLoop(0) as loop:
        first = loop.add_timer(1000, _stopper)
        second = loop.add_timer(1000, _stopper)
        assert (first, second) == (0, 1)
        loop.remove_timer(first)
        assert loop.num_timers == 1
        assert loop.add_timer(1000, _stopper) == first
        assert loop.num_timers == 2


def test_remove_timer_errors():
    with EventLoop(0) as loop:
        with pytest.raises(EventRangeError):
            loop.remove_timer(-1)
        with pytest.raises(EventRangeError):
            loop.remove_timer(TIMER_ID_MAX)
        with pytest.raises(EventNotFoundError):
            loop.remove_timer(3)
        tid = loop.add_timer(1000, _stopper)
        loop.remove_timer(tid)
        with pytest.raises(EventNotFoundError):
            loop.remove_timer(tid)


def test_timer_interval_must_be_positive():
    with EventLoop(0) as loop:
        with pytest.raises(ValueError):
            loop.add_timer(0, _stopper)


def test_timer_slots_exhausted():
    with EventLoop(0) as loop:
        for _ in range(TIMER_ID_MAX):
            loop.add_timer(100000, _stopper)
        assert loop.num_timers == TIMER_ID_MAX
        with pytest.raises(EventRangeError):
            loop.add_timer(100000, _stopper)