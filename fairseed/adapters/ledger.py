"""
Ledger sink adapter.

Everything a verifier needs to reproduce a past value is published through a
`Ledger`: round descriptors, commitments, reveals, event entropy, terminal
outcomes, misbehavior evidence, batch roots and leaf proofs. Records are kept
available after the party that produced them has gone away.

Design
------
We code against the tiny `Ledger` protocol (`publish` / `fetch`) so a real
deployment can plug in a blockchain, an append-only log or a DHT. The
reference implementation, `KVLedger`, stores a compact deterministic JSON
blob (stable separators + sorted keys) per record in a byte KV backend from
:mod:`fairseed.store`, under namespaced keys (:mod:`fairseed.store.kv`).

Each record is addressed by an `EntryHandle` = (kind, scope, item):

    round       scope=round_id   item=""
    commitment  scope=round_id   item=party
    reveal      scope=round_id   item=party
    entropy     scope=round_id   item=sha3(data) hex
    seed        scope=round_id   item=""
    evidence    scope=scope_id   item=party/kind/digest
    root        scope=batch_id   item=""
    proof       scope=batch_id   item=zero-padded index

Rules
-----
- Immutable: publishing a handle that already holds *identical* bytes is a
  no-op; different bytes raise `LedgerConflict`.
- Ordering: a commitment needs its round, a reveal needs the matching
  commitment, a proof needs its batch root; otherwise `LedgerOrderingError`.
- `fetch` of a missing handle raises `EntryNotFound` (data unavailable).
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, Mapping, Optional, Protocol, Tuple

from ..errors import EntryNotFound, LedgerConflict, LedgerOrderingError
from ..store import KeyValue
from ..store.kv import Buckets
from ..utils.bytes import from_hex
from ..utils.hash import sha3_256

logger = logging.getLogger(__name__)


class EntryKind(str, Enum):
    ROUND = "round"
    COMMITMENT = "commitment"
    REVEAL = "reveal"
    ENTROPY = "entropy"
    SEED = "seed"
    EVIDENCE = "evidence"
    ROOT = "root"
    PROOF = "proof"


@dataclass(frozen=True)
class EntryHandle:
    """Address of one published record."""

    kind: EntryKind
    scope: str
    item: str = ""

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.scope}/{self.item}" if self.item else f"{self.kind.value}:{self.scope}"


class Ledger(Protocol):
    """Append-only sink that keeps published records retrievable."""

    def publish(self, kind: EntryKind, payload: Mapping[str, Any]) -> EntryHandle: ...
    def fetch(self, handle: EntryHandle) -> Dict[str, Any]: ...
    def find(self, kind: EntryKind, scope_id: str, item: str = "") -> Optional[Dict[str, Any]]: ...
    def iter_kind(self, kind: EntryKind, scope_id: Optional[str] = None) -> Iterator[Dict[str, Any]]: ...


# -----------------------------
# Encoding helpers
# -----------------------------


def _dumps_stable(obj: Mapping[str, Any]) -> bytes:
    """Deterministic JSON encoding (stable separators & sorted keys)."""
    return json.dumps(obj, separators=(",", ":"), sort_keys=True).encode("utf-8")


def _loads_stable(data: bytes) -> Dict[str, Any]:
    return json.loads(data.decode("utf-8"))


def proof_item(index: int) -> str:
    """Zero-padded so proofs iterate in index order."""
    return f"{int(index):010d}"


def _require(payload: Mapping[str, Any], *fields: str) -> Tuple[Any, ...]:
    missing = [f for f in fields if f not in payload]
    if missing:
        raise ValueError(f"payload missing field(s): {', '.join(missing)}")
    return tuple(payload[f] for f in fields)


def handle_for(kind: EntryKind, payload: Mapping[str, Any]) -> EntryHandle:
    """Derive the handle a payload is stored under."""
    kind = EntryKind(kind)
    if kind in (EntryKind.ROUND, EntryKind.SEED):
        (rid,) = _require(payload, "round_id")
        return EntryHandle(kind, str(rid))
    if kind in (EntryKind.COMMITMENT, EntryKind.REVEAL):
        rid, party = _require(payload, "round_id", "party")
        return EntryHandle(kind, str(rid), str(party))
    if kind is EntryKind.ENTROPY:
        rid, data = _require(payload, "round_id", "data")
        return EntryHandle(kind, str(rid), sha3_256(from_hex(data)).hex())
    if kind is EntryKind.EVIDENCE:
        scope, party, what = _require(payload, "scope_id", "party", "kind")
        digest = sha3_256(_dumps_stable(payload)).hex()[:16]
        return EntryHandle(kind, str(scope), f"{party}/{what}/{digest}")
    if kind is EntryKind.ROOT:
        (bid,) = _require(payload, "batch_id")
        return EntryHandle(kind, str(bid))
    # PROOF
    bid, index = _require(payload, "batch_id", "index")
    return EntryHandle(kind, str(bid), proof_item(index))


def _dependency(handle: EntryHandle) -> Optional[EntryHandle]:
    if handle.kind is EntryKind.COMMITMENT:
        return EntryHandle(EntryKind.ROUND, handle.scope)
    if handle.kind is EntryKind.REVEAL:
        return EntryHandle(EntryKind.COMMITMENT, handle.scope, handle.item)
    if handle.kind is EntryKind.PROOF:
        return EntryHandle(EntryKind.ROOT, handle.scope)
    return None


# -----------------------------
# KV-backed reference ledger
# -----------------------------


class KVLedger:
    """
    `Ledger` over a byte KeyValue backend.

    Example
    -------
        from fairseed.store.memory import MemoryKeyValue
        ledger = KVLedger(MemoryKeyValue())
        h = ledger.publish(EntryKind.ROUND, {"round_id": "r1", "participants": ["a", "b"]})
        ledger.fetch(h)["participants"]   # ['a', 'b']
    """

    def __init__(self, kv: KeyValue) -> None:
        self.kv = kv
        self._buckets = Buckets(kv)
        self._lock = threading.Lock()

    def publish(self, kind: EntryKind, payload: Mapping[str, Any]) -> EntryHandle:
        handle = handle_for(kind, payload)
        blob = _dumps_stable(payload)
        dep = _dependency(handle)
        with self._lock:
            if dep is not None and not self._buckets.has(dep.kind.value, dep.scope, dep.item):
                raise LedgerOrderingError(handle.kind.value, str(handle), str(dep))
            existing = self._buckets.get(handle.kind.value, handle.scope, handle.item)
            if existing is not None:
                if existing == blob:
                    return handle
                raise LedgerConflict(handle.kind.value, str(handle))
            self._buckets.put(handle.kind.value, handle.scope, handle.item, blob)
        logger.debug("ledger: published %s", handle)
        return handle

    def fetch(self, handle: EntryHandle) -> Dict[str, Any]:
        raw = self._buckets.get(handle.kind.value, handle.scope, handle.item)
        if raw is None:
            raise EntryNotFound(handle.kind.value, str(handle))
        return _loads_stable(raw)

    def find(self, kind: EntryKind, scope_id: str, item: str = "") -> Optional[Dict[str, Any]]:
        raw = self._buckets.get(EntryKind(kind).value, scope_id, item)
        return None if raw is None else _loads_stable(raw)

    def iter_kind(self, kind: EntryKind, scope_id: Optional[str] = None) -> Iterator[Dict[str, Any]]:
        """Iterate payloads of `kind`, optionally only those under `scope_id`."""
        kind = EntryKind(kind)
        if scope_id is None:
            rows = self._buckets.iter_kind(kind.value)
        else:
            rows = self._buckets.iter_scope(kind.value, scope_id)
        for _key, raw in rows:
            yield _loads_stable(raw)

    def close(self) -> None:
        self.kv.close()


__all__ = [
    "EntryKind",
    "EntryHandle",
    "Ledger",
    "KVLedger",
    "handle_for",
    "proof_item",
]
