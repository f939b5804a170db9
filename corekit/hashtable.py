"""Separate-chaining hash table keyed by strings or bytes.

The table grows through a fixed list of prime sizes once the load factor
would exceed ``LOAD_LIMIT``.
"""

from __future__ import annotations

from typing import Any, Iterator

TABLE_SIZES: tuple[int, ...] = (
    7, 17, 37, 79, 163, 331, 673,
    1361, 2729, 5471, 10949, 21911, 43853, 87719,
    175447, 350899, 701819, 1403641, 2807303, 5614657, 11229331,
    44917381, 89834777, 179669557, 359339171, 718678369, 1437356741,
    2147483647,
)
"""Bucket counts the table steps through as it grows."""

LOAD_LIMIT = 0.72
"""Largest ratio of entries to buckets before the table grows."""

_MASK32 = 0xFFFFFFFF
_MISSING = object()


class HashTableFullError(MemoryError):
    """Raised when the table would have to grow past its largest size."""


def _key_bytes(key: str | bytes | bytearray) -> bytes:
    if isinstance(key, str):
        return key.encode("utf-8")
    if isinstance(key, (bytes, bytearray, memoryview)):
        return bytes(key)
    raise TypeError(f"key must be str or bytes, not {type(key).__name__}")


def djb_hash(key: str | bytes | bytearray) -> int:
    """Return the 32-bit DJBX33A hash of ``key``.

    Bytes are taken as signed chars, as on platforms where ``char`` is signed.
    """
    h = 5381
    for b in _key_bytes(key):
        signed = b - 256 if b >= 128 else b
        h = (h * 33 + signed) & _MASK32
    return h


class HashTable:
    """A mapping from string or bytes keys to arbitrary values.

    ``str`` keys are compared by their UTF-8 encoding, so ``"a"`` and
    ``b"a"`` name the same entry. Iteration follows bucket order.
    """

    def __init__(self) -> None:
        self._idx = 0
        self._len = 0
        self._table: list[list[list[Any]]] = [[] for _ in range(TABLE_SIZES[0])]

    def _bucket(self, raw: bytes) -> list[list[Any]]:
        return self._table[djb_hash(raw) % TABLE_SIZES[self._idx]]

    def _resize(self) -> None:
        new_idx = self._idx + 1
        if new_idx >= len(TABLE_SIZES):
            raise HashTableFullError("hash table reached its maximum size")
        size = TABLE_SIZES[new_idx]
        table: list[list[list[Any]]] = [[] for _ in range(size)]
        for bucket in self._table:
            for node in bucket:
                table[djb_hash(node[0]) % size].append(node)
        self._table = table
        self._idx = new_idx

    def _find(self, key: str | bytes) -> tuple[list[list[Any]], int]:
        raw = _key_bytes(key)
        bucket = self._bucket(raw)
        for pos, node in enumerate(bucket):
            if node[0] == raw:
                return bucket, pos
        return bucket, -1

    def __setitem__(self, key: str | bytes, val: Any) -> None:
        if TABLE_SIZES[self._idx] * LOAD_LIMIT < self._len + 1:
            self._resize()
        raw = _key_bytes(key)
        bucket = self._bucket(raw)
        for node in bucket:
            if node[0] == raw:
                node[1] = key
                node[2] = val
                return
        bucket.append([raw, key, val])
        self._len += 1

    def __getitem__(self, key: str | bytes) -> Any:
        bucket, pos = self._find(key)
        if pos < 0:
            raise KeyError(key)
        return bucket[pos][2]

    def get(self, key: str | bytes, default: Any = None) -> Any:
        """Return the value for ``key``, or ``default`` if it is absent."""
        bucket, pos = self._find(key)
        return default if pos < 0 else bucket[pos][2]

    def pop(self, key: str | bytes, default: Any = _MISSING) -> Any:
        """Remove ``key`` and return its value.

        Returns ``default`` if the key is absent, or raises ``KeyError``
        when no default is given.
        """
        bucket, pos = self._find(key)
        if pos < 0:
            if default is _MISSING:
                raise KeyError(key)
            return default
        node = bucket.pop(pos)
        self._len -= 1
        return node[2]

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, (str, bytes, bytearray, memoryview)):
            return False
        return self._find(key)[1] >= 0

    def __delitem__(self, key: str | bytes) -> None:
        self.pop(key)

    def __len__(self) -> int:
        return self._len

    def __iter__(self) -> Iterator[str | bytes]:
        for bucket in self._table:
            for node in bucket:
                yield node[1]

    def items(self) -> Iterator[tuple[str | bytes, Any]]:
        """Yield ``(key, value)`` pairs in bucket order."""
        for bucket in self._table:
            for node in bucket:
                yield node[1], node[2]

    def clear(self) -> None:
        """Remove every entry; the bucket count is kept."""
        for bucket in self._table:
            bucket.clear()
        self._len = 0

    def cap(self) -> int:
        """Return the current number of buckets."""
        return TABLE_SIZES[self._idx]

    def __repr__(self) -> str:
        body = ", ".join(f"{k!r}: {v!r}" for k, v in self.items())
        return f"HashTable({{{body}}})"