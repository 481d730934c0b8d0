"""
In-memory KeyValue store.

Used by tests, by short-lived sessions, and as the default backend when no
storage URI is configured. Prefix iteration returns a sorted snapshot, so
callers may write while iterating.
"""

from __future__ import annotations

import threading
from typing import Dict, Iterable, Optional, Tuple


class MemoryKeyValue:
    """Dict-backed implementation of the KeyValue protocol."""

    def __init__(self) -> None:
        self._data: Dict[bytes, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            return self._data.get(bytes(key))

    def put(self, key: bytes, value: bytes) -> None:
        if not isinstance(key, (bytes, bytearray)) or not isinstance(value, (bytes, bytearray)):
            raise TypeError("key and value must be bytes")
        with self._lock:
            self._data[bytes(key)] = bytes(value)

    def delete(self, key: bytes) -> None:
        with self._lock:
            self._data.pop(bytes(key), None)

    def has(self, key: bytes) -> bool:
        with self._lock:
            return bytes(key) in self._data

    def iter_prefix(self, prefix: bytes) -> Iterable[Tuple[bytes, bytes]]:
        with self._lock:
            items = sorted((k, v) for k, v in self._data.items() if k.startswith(prefix))
        return iter(items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def close(self) -> None:
        pass


__all__ = ["MemoryKeyValue"]
