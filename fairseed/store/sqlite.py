"""
SQLite-backed KeyValue store for fairseed's ledger records.

Features
--------
- Simple byte-oriented KV: (key BLOB PRIMARY KEY, value BLOB NOT NULL)
- Transactions via context manager: `with kv.transaction(): ...`
- Prefix iteration using range scans (lower/upper bound).
- WAL journal, synchronous=NORMAL.

Keys are arbitrary bytes. Prefix iteration relies on lexicographic byte
ordering of BLOBs. To iterate a prefix `p`, we select:
  key >= p AND key < next_prefix(p)
If `p` is all 0xFF bytes (no strict upper bound exists), we fall back to a
single-ended range and stop as soon as the prefix does not match.

The connection may be shared between threads (the coordinator and batch
ledger take their own locks); every statement is serialized by an internal
lock.
"""

from __future__ import annotations

import os
import sqlite3
import threading
from contextlib import contextmanager
from typing import Generator, Iterable, List, Optional, Tuple


def _ensure_dir(path: str) -> None:
    d = os.path.dirname(os.path.abspath(path))
    if d and not os.path.exists(d):
        os.makedirs(d, exist_ok=True)


def _apply_pragmas(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA temp_store=MEMORY;")


def _init_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS kv (
            key   BLOB PRIMARY KEY,
            value BLOB NOT NULL
        );
        """
    )


def _next_prefix(prefix: bytes) -> Optional[bytes]:
    """
    Smallest byte-string strictly greater than all keys starting with `prefix`.
    Returns None if prefix is empty or all 0xFF (no upper bound).
    """
    if not prefix:
        return None
    b = bytearray(prefix)
    for i in range(len(b) - 1, -1, -1):
        if b[i] != 0xFF:
            b[i] += 1
            return bytes(b[: i + 1])
    return None


class SQLiteKeyValue:
    """
    SQLite-backed implementation of the KeyValue protocol.

    Parameters
    ----------
    path : str
        File path to the SQLite database. Directories are created if needed.
        ":memory:" gives a private in-memory database.
    read_only : bool
        Open the file in read-only mode (e.g. for offline audits).

    Example
    -------
    >>> kv = SQLiteKeyValue("/tmp/fairseed.db")
    >>> with kv.transaction():
    ...     kv.put(b"hello", b"world")
    >>> kv.get(b"hello")
    b'world'
    >>> kv.close()
    """

    def __init__(self, path: str, *, read_only: bool = False):
        self.path = path
        self.read_only = read_only
        self._lock = threading.RLock()

        uri = False
        if read_only:
            db_path = f"file:{path}?mode=ro"
            uri = True
        else:
            if path != ":memory:":
                _ensure_dir(path)
            db_path = path

        # isolation_level=None -> autocommit mode; we manage BEGIN/COMMIT explicitly
        self._conn = sqlite3.connect(
            db_path,
            detect_types=0,
            isolation_level=None,
            uri=uri,
            timeout=30.0,
            check_same_thread=False,
        )
        if not read_only:
            if path != ":memory:":
                _apply_pragmas(self._conn)
            _init_schema(self._conn)

    def __enter__(self) -> "SQLiteKeyValue":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- KV API --------------------------------------------------------------

    def put(self, key: bytes, value: bytes) -> None:
        if not isinstance(key, (bytes, bytearray)) or not isinstance(value, (bytes, bytearray)):
            raise TypeError("key and value must be bytes")
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO kv(key, value) VALUES(?, ?)", (bytes(key), bytes(value))
            )

    def get(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (bytes(key),)).fetchone()
        return bytes(row[0]) if row else None

    def has(self, key: bytes) -> bool:
        with self._lock:
            row = self._conn.execute("SELECT 1 FROM kv WHERE key = ?", (bytes(key),)).fetchone()
        return row is not None

    def delete(self, key: bytes) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM kv WHERE key = ?", (bytes(key),))

    def iter_prefix(self, prefix: bytes) -> Iterable[Tuple[bytes, bytes]]:
        """
        Iterate (key, value) for keys that start with `prefix`, ordered by key.

        Rows are materialized under the lock, so the result is a snapshot.
        """
        upper = _next_prefix(prefix)
        if upper is not None:
            sql = "SELECT key, value FROM kv WHERE key >= ? AND key < ? ORDER BY key ASC"
            args: Tuple[bytes, ...] = (prefix, upper)
        else:
            sql = "SELECT key, value FROM kv WHERE key >= ? ORDER BY key ASC"
            args = (prefix,)

        out: List[Tuple[bytes, bytes]] = []
        with self._lock:
            for row in self._conn.execute(sql, args):
                k = bytes(row[0])
                if not k.startswith(prefix):
                    if upper is None:
                        break
                    continue
                out.append((k, bytes(row[1])))
        return iter(out)

    # --- Transactions --------------------------------------------------------

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        """
        Begin a write transaction (IMMEDIATE). Commits on success, rolls back on error.
        """
        with self._lock:
            self._conn.execute("BEGIN IMMEDIATE;")
            try:
                yield
            except BaseException:
                self._conn.execute("ROLLBACK;")
                raise
            else:
                self._conn.execute("COMMIT;")

    def close(self) -> None:
        with self._lock:
            self._conn.close()


__all__ = ["SQLiteKeyValue"]
