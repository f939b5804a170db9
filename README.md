# corekit

A handful of small building blocks for Python programs:

- `corekit.buf`: `Buffer`, a growable byte buffer that tracks its own
  capacity. The capacity grows in steps of the current capacity (at least 1
  byte, at most 1 MiB per step) and `grow` raises `BufferFullError` past
  64 MiB. `put`, `putc`, `sprintf` (`fmt % args`) append; `lrm(n)` drops
  bytes from the front; `clear()` empties it and releases the capacity.
- `corekit.cfg`: `iter_config(data)` yields an `Entry` (`key`, `val`,
  `lineno`) for each `key value` line of a config text, given as `str` or
  UTF-8 `bytes`. Keys and values are separated by spaces or tabs, and a `#`
  starts a comment that runs to the end of the line. A line is only taken
  once its newline has been read. A line with a single word, or with more
  than two words, raises `ConfigFormatError`, which carries `lineno`.
- `corekit.clock`: `stamp_now()` gives the current wall-clock time in
  milliseconds as a float.
- `corekit.hashtable`: `HashTable`, a chained hash table for `str` or
  `bytes` keys (a `str` key and its UTF-8 bytes name the same entry). It
  grows through a fixed series of prime bucket counts at a load factor of
  0.72 and raises `HashTableFullError` past the largest. `djb_hash` is its
  32-bit DJBX33A hash function.
- `corekit.timers`: `Timer` and `TimerHeap`, a min-heap of timers ordered by
  `fire_at`, holding at most `TIMER_ID_MAX` timers, plus `time_now_ms()`
  and the errors `EventError`, `EventRangeError` and `EventNotFoundError`.
- `corekit.event`: `EventLoop`, which calls back on readable, writable or
  error events of file descriptors (epoll, kqueue or `poll`, whichever the
  platform has) and runs periodic timers. `EventMask` names the event kinds.

## Install

```
pip install .
```

## Examples

```python
from corekit.buf import Buffer

buf = Buffer("example")
buf.put(b"abc")
buf.putc("d")
buf.sprintf("%s%d", "efg", 123)
print(str(buf))          # exampleabcdefg123
print(len(buf), buf.cap())
```

```python
from corekit.cfg import iter_config

text = """
# proxy port
port 8125
node 127.0.0.1:8126
"""
for entry in iter_config(text):
    print(entry.lineno, entry.key, "=>", entry.val)
```

```python
from corekit.hashtable import HashTable

table = HashTable()
table["key1"] = "val1"
table["key2"] = "val2"
print(len(table), table["key1"], "key2" in table)
for key, val in table.items():
    print(key, "=>", val)
```

```python
from corekit.event import EventLoop

def beat(loop, timer_id, data):
    print("heartbeat", data)
    loop.remove_timer(timer_id)
    loop.stop()

with EventLoop(0) as loop:
    loop.add_timer(1000, beat, "once")
    loop.start()
```

Descriptor callbacks are called as `cb(loop, fd, mask, data)` and timer
callbacks as `cb(loop, timer_id, data)`. `add_timer` returns the timer's id;
a timer keeps firing every `interval` milliseconds until `remove_timer` is
called for it.

## What it does not do

corekit is a library only: it has no command-line program. The event loop
needs epoll, kqueue or `poll`, so it does not run on platforms that have
none of them.

## Tests

```
pip install .[test]
pytest
```