"""Growable byte buffer with bounded, unit-based capacity growth."""

from __future__ import annotations

CAP_MAX = 64 * 1024 * 1024
"""Largest capacity a buffer may reach (64 MiB)."""

UNIT_MIN = 1
"""Smallest step by which the capacity grows."""

UNIT_MAX = 1024 * 1024
"""Largest step by which the capacity grows (1 MiB)."""


class BufferFullError(MemoryError):
    """Raised when a buffer would have to grow past ``CAP_MAX``."""


def _as_bytes(data: str | bytes | bytearray | memoryview) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


class Buffer:
    """A byte buffer that keeps track of an explicit capacity.

    The capacity grows in steps equal to the current capacity, clamped to
    ``[UNIT_MIN, UNIT_MAX]``, and never beyond ``CAP_MAX``.
    """

    def __init__(self, s: str | bytes | None = None) -> None:
        self._data = bytearray()
        self._cap = 0
        if s is not None:
            self.put(s)

    def grow(self, cap: int) -> None:
        """Make sure the capacity is at least ``cap``."""
        if cap > CAP_MAX:
            raise BufferFullError(
                f"requested capacity {cap} exceeds maximum {CAP_MAX}"
            )
        if cap <= self._cap:
            return
        unit = min(max(self._cap, UNIT_MIN), UNIT_MAX)
        steps = max(1, -(-(cap - self._cap) // unit))
        self._cap += steps * unit

    def put(self, data: str | bytes | bytearray | memoryview) -> None:
        """Append ``data`` to the end of the buffer."""
        raw = _as_bytes(data)
        self.grow(len(self._data) + len(raw))
        self._data += raw

    def putc(self, ch: str | bytes | int) -> None:
        """Append a single byte."""
        if isinstance(ch, int):
            if not 0 <= ch <= 0xFF:
                raise ValueError(f"byte value out of range: {ch}")
            raw = bytes((ch,))
        else:
            raw = _as_bytes(ch)
            if len(raw) != 1:
                raise ValueError(f"expected a single byte, got {ch!r}")
        self.grow(len(self._data) + 1)
        self._data += raw

    def sprintf(self, fmt: str | bytes, *args: object) -> None:
        """Append ``fmt % args`` to the buffer."""
        if len(self._data) >= self._cap:
            self.grow(len(self._data) + 1)
        raw = _as_bytes(fmt % args)
        if len(raw) >= self._cap - len(self._data):
            self.grow(len(self._data) + len(raw) + 1)
        self._data += raw

    def lrm(self, n: int) -> None:
        """Remove ``n`` bytes from the start of the buffer."""
        if n > len(self._data):
            self._data.clear()
            return
        del self._data[:n]

    def clear(self) -> None:
        """Drop all data and release the capacity."""
        self._data = bytearray()
        self._cap = 0

    def cap(self) -> int:
        """Return the current capacity."""
        return self._cap

    def __len__(self) -> int:
        return len(self._data)

    def __bool__(self) -> bool:
        return len(self._data) > 0

    def __bytes__(self) -> bytes:
        return bytes(self._data)

    def __str__(self) -> str:
        return self._data.decode("utf-8", errors="replace")

    def __repr__(self) -> str:
        return f"Buffer({bytes(self._data)!r}, cap={self._cap})"