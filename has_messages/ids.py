"""Identity allocators: opaque unique ids for messages and recipient rows."""

from __future__ import annotations

import itertools
import threading
import uuid
from typing import Protocol

from has_messages.config import ID_STRATEGY


class IdAllocator(Protocol):
    """Issues unique, opaque string identifiers."""

    def new_id(self) -> str:
        ...


class TimestampUuidAllocator:
    """Time-based UUID1 strings. Unique, but string order is not creation order."""

    def new_id(self) -> str:
        return str(uuid.uuid1())


class SequentialIdAllocator:
    """Zero-padded counter ids, so lexical order equals allocation order."""

    def __init__(self, prefix: str = "", width: int = 12, start: int = 1):
        self._prefix = prefix
        self._width = width
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def new_id(self) -> str:
        with self._lock:
            value = next(self._counter)
        return f"{self._prefix}{value:0{self._width}d}"


def default_allocator() -> IdAllocator:
    """Return the allocator selected by ID_STRATEGY."""
    if ID_STRATEGY == "sequential":
        return SequentialIdAllocator()
    if ID_STRATEGY == "uuid":
        return TimestampUuidAllocator()
    raise ValueError(f"Unknown ID_STRATEGY {ID_STRATEGY!r} (expected 'uuid' or 'sequential')")
