"""Reader for simple whitespace-separated ``key value`` configuration text.

Each non-blank line holds a key and a value separated by spaces or tabs,
optionally followed by a ``#`` comment. A line is only taken once its
terminating newline has been seen.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator


class ConfigFormatError(ValueError):
    """Raised on a malformed configuration line."""

    def __init__(self, lineno: int) -> None:
        super().__init__(f"bad format on line {lineno}")
        self.lineno = lineno


@dataclass(frozen=True)
class Entry:
    """One ``key value`` pair and the line it was found on."""

    key: str
    val: str
    lineno: int


def iter_config(data: str | bytes) -> Iterator[Entry]:
    """Yield the entries of ``data`` in order.

    Raises ``ConfigFormatError`` on a line with a single word or with more
    than two words.
    """
    if isinstance(data, (bytes, bytearray)):
        data = bytes(data).decode("utf-8")

    n = len(data)
    lineno = 1
    key_start = key_end = val_start = val_end = None
    idx = 0

    while idx < n:
        ch = data[idx]
        if ch in " \t":
            if key_start is not None and key_end is None:
                key_end = idx
            if val_start is not None and val_end is None:
                val_end = idx
        elif ch == "\n":
            if val_start is not None and val_end is None:
                val_end = idx
            if key_end is not None and val_end is not None:
                yield Entry(
                    data[key_start:key_end], data[val_start:val_end], lineno
                )
                key_start = key_end = val_start = val_end = None
            elif key_start is not None and val_start is None:
                raise ConfigFormatError(lineno)
            lineno += 1
        elif ch == "#":
            if val_start is not None and val_end is None:
                val_end = idx
            newline = data.find("\n", idx + 1)
            idx = n if newline == -1 else newline
            continue
        else:
            if key_start is None:
                key_start = idx
            if val_start is None and key_end is not None:
                val_start = idx
            if key_end is not None and val_end is not None:
                raise ConfigFormatError(lineno)
        idx += 1