# Copyright (c) fairseed authors.
# SPDX-License-Identifier: MIT
"""
Batch ledger: sequenced, self-replenishing Merkle batches per key.

A *key* is whatever owns a stream of pre-committed secrets: a single party,
or a party pair ("alice|bob") when two players share a table. For each key
the ledger keeps:

- the current batch and its next-unused index,
- optionally a *pending* batch, built and published as soon as the current
  batch's remaining count drops to `low_water`, so the next root is already
  public when rotation happens,
- up to `retain` historical batches, to answer proof requests for leaves
  that were issued earlier.

Issuing
-------
`next_leaf(key)` is atomic under one lock. It hands out `(batch, index)`
pairs strictly in order; when the current batch is exhausted it rotates to
the pending (or a freshly generated) batch and continues at index 0. Indices
never wrap around and no leaf is issued twice.

Publishing
----------
Every root is published to the ledger sink *before* any of its leaves is
issued. Leaf proofs are published when requested through `prove()`, which
refuses indices that have not been issued yet.
"""

from __future__ import annotations

import logging
import secrets
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..adapters.ledger import EntryKind, Ledger
from ..constants import DEFAULT_BATCH_SIZE, MAX_BATCH_SIZE
from ..entropy.generator import SecretGenerator
from ..errors import BatchExhausted, EntropyUnavailable, EntryNotFound, IndexOutOfRange
from ..metrics import METRICS, Metrics
from ..types.core import BatchId, CapabilityToken, InclusionProof, LeafTicket
from ..utils.bytes import to_hex
from .tree import MerkleBatch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchInfo:
    """Public description of one batch (no secrets)."""

    batch_id: BatchId
    key: str
    seq: int
    root: bytes
    size: int
    issued: int

    @property
    def remaining(self) -> int:
        return self.size - self.issued

    def to_dict(self) -> Dict[str, object]:
        return {
            "batch_id": self.batch_id,
            "key": self.key,
            "seq": self.seq,
            "root": to_hex(self.root),
            "size": self.size,
            "issued": self.issued,
        }


class _Batch:
    __slots__ = ("batch_id", "key", "seq", "tree", "next_index")

    def __init__(self, batch_id: BatchId, key: str, seq: int, tree: MerkleBatch):
        self.batch_id = batch_id
        self.key = key
        self.seq = seq
        self.tree = tree
        self.next_index = 0

    @property
    def remaining(self) -> int:
        return self.tree.size - self.next_index

    def take(self) -> int:
        if self.next_index >= self.tree.size:
            raise BatchExhausted(batch_id=self.batch_id, size=self.tree.size)
        idx = self.next_index
        self.next_index += 1
        return idx

    def info(self) -> BatchInfo:
        return BatchInfo(
            batch_id=self.batch_id,
            key=self.key,
            seq=self.seq,
            root=self.tree.root,
            size=self.tree.size,
            issued=self.next_index,
        )


class _KeyState:
    __slots__ = ("current", "pending", "history", "next_seq")

    def __init__(self) -> None:
        self.current: Optional[_Batch] = None
        self.pending: Optional[_Batch] = None
        self.history: "OrderedDict[str, _Batch]" = OrderedDict()
        self.next_seq = 0


class BatchLedger:
    """
    Per-key Merkle batch issuer.

    Args:
        generator:  SecretGenerator used to fill new batches.
        batch_size: Leaves per batch (N).
        low_water:  Build and publish the next batch once this many leaves
                    remain in the current one (0 = only on exhaustion).
        retain:     Batches kept per key (current included) for proofs.
        ledger:     Optional ledger sink for roots and proofs.
        metrics:    Metrics instance (defaults to the process singleton).
    """

    def __init__(
        self,
        generator: Optional[SecretGenerator] = None,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        low_water: Optional[int] = None,
        retain: int = 8,
        ledger: Optional[Ledger] = None,
        metrics: Optional[Metrics] = None,
    ) -> None:
        if not (1 <= batch_size <= MAX_BATCH_SIZE):
            raise ValueError(f"batch_size must be in [1, {MAX_BATCH_SIZE}]")
        if low_water is None:
            low_water = batch_size // 8
        if not (0 <= low_water < batch_size):
            raise ValueError("low_water must be in [0, batch_size)")
        if retain < 1:
            raise ValueError("retain must be >= 1")
        self.generator = generator or SecretGenerator()
        self.batch_size = batch_size
        self.low_water = low_water
        self.retain = retain
        self.ledger = ledger
        self.metrics = metrics or METRICS
        # Batch ids are "<key>/<instance>.<seq>"; the random instance part keeps
        # them unique when a persistent ledger outlives this process.
        self.instance = secrets.token_hex(4)
        self._lock = threading.Lock()
        self._keys: Dict[str, _KeyState] = {}
        self._owners: Dict[str, str] = {}

    # ---- internals (call with lock held) ------------------------------------

    def _new_batch(self, key: str, st: _KeyState) -> _Batch:
        seq = st.next_seq
        tree = MerkleBatch.build(self.generator.generate(self.batch_size))
        st.next_seq += 1
        batch = _Batch(BatchId(f"{key}/{self.instance}.{seq}"), key, seq, tree)
        if self.ledger is not None:
            self.ledger.publish(
                EntryKind.ROOT,
                {
                    "batch_id": batch.batch_id,
                    "key": key,
                    "seq": seq,
                    "size": tree.size,
                    "root": to_hex(tree.root),
                },
            )
        self._owners[batch.batch_id] = key
        self.metrics.record_batch()
        logger.info("batch ledger: built %s size=%d root=%s", batch.batch_id, tree.size, tree.root.hex())
        return batch

    def _activate(self, st: _KeyState, batch: _Batch) -> None:
        st.current = batch
        st.history[batch.batch_id] = batch
        while len(st.history) > self.retain:
            old_id, _ = st.history.popitem(last=False)
            self._owners.pop(old_id, None)
            logger.debug("batch ledger: retired %s", old_id)

    def _rotate(self, key: str, st: _KeyState) -> None:
        nxt = st.pending if st.pending is not None else self._new_batch(key, st)
        st.pending = None
        prev = st.current.batch_id if st.current is not None else None
        self._activate(st, nxt)
        logger.info("batch ledger: key=%s rotated %s -> %s", key, prev, nxt.batch_id)

    def _state(self, key: str) -> _KeyState:
        if not isinstance(key, str) or not key:
            raise ValueError("key must be a non-empty str")
        st = self._keys.get(key)
        if st is None:
            # Registered only once its first batch exists.
            st = _KeyState()
            self._activate(st, self._new_batch(key, st))
            self._keys[key] = st
        return st

    # ---- public API ---------------------------------------------------------

    def next_leaf(self, key: str) -> LeafTicket:
        """Issue the next unused leaf for `key`, rotating batches as needed."""
        with self._lock:
            st = self._state(key)
            batch = st.current
            if batch.remaining == 0:
                logger.info("batch ledger: %s exhausted (size=%d)", batch.batch_id, batch.tree.size)
                self._rotate(key, st)
                batch = st.current
            # Pending batch first: a failed build must not consume an index.
            if st.pending is None and batch.remaining - 1 <= self.low_water:
                try:
                    st.pending = self._new_batch(key, st)
                except EntropyUnavailable as e:
                    logger.warning("batch ledger: key=%s next batch not built, retrying on next issue: %s", key, e)
            idx = batch.take()
            proof = batch.tree.prove_index(idx)
            ticket = LeafTicket(
                key=key,
                batch_id=batch.batch_id,
                root=batch.tree.root,
                index=idx,
                secret=batch.tree.secret(idx),
                proof=proof,
            )
        self.metrics.record_leaf()
        logger.debug("batch ledger: issued %s[%d]", ticket.batch_id, idx)
        return ticket

    def current(self, key: str) -> Optional[BatchInfo]:
        """Current batch of `key`, or None if nothing was issued for it yet."""
        with self._lock:
            st = self._keys.get(key)
            if st is None or st.current is None:
                return None
            return st.current.info()

    def pending(self, key: str) -> Optional[BatchInfo]:
        with self._lock:
            st = self._keys.get(key)
            if st is None or st.pending is None:
                return None
            return st.pending.info()

    def batches(self, key: str) -> List[BatchInfo]:
        """Retained batches of `key`, oldest first (current last)."""
        with self._lock:
            st = self._keys.get(key)
            if st is None:
                return []
            return [b.info() for b in st.history.values()]

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._keys)

    def prove(self, key: str, batch_id: str, index: int) -> InclusionProof:
        """
        Inclusion proof for an already-issued leaf, published to the ledger.

        Raises EntryNotFound for an unknown or retired batch and
        IndexOutOfRange for an index that has not been issued.
        """
        with self._lock:
            st = self._keys.get(key)
            batch = st.history.get(batch_id) if st is not None else None
            if batch is None:
                raise EntryNotFound(kind="batch", key=str(batch_id))
            if not (0 <= index < batch.next_index):
                raise IndexOutOfRange(index=index, size=batch.next_index)
            proof = batch.tree.prove_index(index)
            secret = batch.tree.secret(index)
            root = batch.tree.root
        if self.ledger is not None:
            self.ledger.publish(
                EntryKind.PROOF,
                {
                    "batch_id": batch_id,
                    "index": index,
                    "secret": to_hex(secret),
                    "root": to_hex(root),
                    "proof": proof.to_dict(),
                },
            )
        return proof

    def prove_token(self, token: CapabilityToken) -> InclusionProof:
        """Answer a capability-token proof request."""
        if token.kind != "batch":
            raise ValueError(f"token kind {token.kind!r} does not reference a batch")
        with self._lock:
            key = self._owners.get(token.scope_id)
        if key is None:
            raise EntryNotFound(kind="batch", key=token.scope_id)
        return self.prove(key, token.scope_id, token.leaf_index)


__all__ = ["BatchLedger", "BatchInfo"]
