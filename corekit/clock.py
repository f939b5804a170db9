"""Wall-clock helpers."""

import time


def stamp_now() -> float:
    """Return the current wall-clock time in milliseconds."""
    return time.time_ns() / 1_000_000