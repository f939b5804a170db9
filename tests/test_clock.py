import time
from unittest import mock

from corekit.clock import stamp_now


def test_stamp_is_in_milliseconds():
    before = time.time() * 1000
    stamp = stamp_now()
    after = time.time() * 1000
    assert before - 1 <= stamp <= after + 1


def test_stamp_does_not_go_backwards_in_quick_succession():
    first = stamp_now()
    second = stamp_now()
    assert second >= first - 1


def test_stamp_keeps_sub_millisecond_precision():
    with mock.patch("time.time_ns", return_value=1_500_000_000):
        assert stamp_now() == 1500.0
    with mock.patch("time.time_ns", return_value=2_500_000):
        assert stamp_now() == 2.5