"""
fairseed.store
==============

Byte-oriented key/value backends that the ledger adapter
(:mod:`fairseed.adapters.ledger`) persists records into.

Backends are pluggable (in-memory, SQLite). This module exposes the small
typing protocol higher layers depend on, and :func:`open_store` to pick a
backend from a storage URI:

    memory://              → MemoryKeyValue
    sqlite:///path/to.db   → SQLiteKeyValue(path)

Nothing here is cryptographic; only bytes go in/out and callers perform their
own hashing/validation.
"""

from __future__ import annotations

from typing import Iterable, Optional, Protocol, Tuple
from urllib.parse import urlparse


class KeyValue(Protocol):
    """Minimal byte-oriented KV interface.

    Keys and values are raw bytes. Namespaces are handled by the caller via
    prefixed keys (see :mod:`fairseed.store.kv`).
    """

    def get(self, key: bytes) -> Optional[bytes]:
        """Return value for key, or None if missing."""
        ...

    def put(self, key: bytes, value: bytes) -> None:
        """Insert or replace key with value."""
        ...

    def delete(self, key: bytes) -> None:
        """Remove key if present (no-op if absent)."""
        ...

    def has(self, key: bytes) -> bool:
        """Return True if key exists."""
        ...

    def iter_prefix(self, prefix: bytes) -> Iterable[Tuple[bytes, bytes]]:
        """Yield (key, value) pairs whose keys start with prefix, ordered by key."""
        ...

    def close(self) -> None:
        ...


def open_store(uri: str) -> KeyValue:
    """Open a KeyValue backend from a storage URI."""
    u = urlparse(uri)
    if u.scheme == "memory":
        from .memory import MemoryKeyValue

        return MemoryKeyValue()
    if u.scheme == "sqlite":
        from .sqlite import SQLiteKeyValue

        path = (u.netloc + u.path) if u.netloc else u.path
        if not path:
            raise ValueError("sqlite URI needs a path, e.g. sqlite:///var/lib/fairseed.db")
        return SQLiteKeyValue(path)
    raise ValueError(f"unsupported storage URI scheme: {u.scheme!r}")


__all__ = [
    "KeyValue",
    "open_store",
]
