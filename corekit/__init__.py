"""Small building blocks: a byte buffer, a config reader, a clock, a hash table, timers and an event loop."""

__version__ = "0.1.0"
__all__ = ["buf", "cfg", "clock", "hashtable", "timers", "event"]