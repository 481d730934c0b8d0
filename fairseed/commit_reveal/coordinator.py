# Copyright (c) fairseed authors.
# SPDX-License-Identifier: MIT
"""
Reveal coordinator: the round state machine.

    OPEN ──(all commitments in)──▶ AWAITING_REVEAL ──(quorum of valid reveals)──▶ COMBINED
      │                                   │
      └────────(deadline / policy)────────┴──────────────────────────────────▶ ABORTED

Rules enforced here
-------------------
- Commitments are accepted only while OPEN, once per participant. A value
  already committed by another participant is rejected as
  `DuplicateCommitment` (fraud evidence).
- Reveals are accepted only in AWAITING_REVEAL, i.e. after *every*
  participant's commitment is recorded. A party without a commitment gets
  `RevealBeforeCommitment`; a committed party revealing while others are still
  committing gets `RoundClosed(status="open")`.
- A reveal that does not open its commitment marks the party rejected,
  emits evidence and raises `CommitmentMismatch`. Under n-of-n (or once quorum
  is unreachable) the round aborts.
- Under a k-of-n policy the first k valid reveals are combined.
- Event entropy is accepted only between the last commitment and the first
  reveal, so no revealer can pick it after seeing other secrets.
- Each round has a monotonic deadline. Overdue rounds abort lazily on every
  call touching them, or in bulk through `expire()`. Aborting a round never
  touches any other round.
- Terminal rounds are immutable. Reveals arriving after an abort raise
  `RevealTooLate`; anything arriving after a combine raises `RoundClosed`.

Everything published to the ledger sink is enough for
:func:`fairseed.verifier.audit_round` to recompute the seed offline. Valid
reveals are published when the round terminates: always on COMBINED, and on
ABORTED only when the policy retains partial reveals.

All state transitions for all rounds are serialized behind one re-entrant
lock. Cryptographic checks are pure and run under it without blocking.
"""

from __future__ import annotations

import logging
import secrets as _secrets
import threading
import time
from typing import Callable, Dict, Iterable, List, Optional, Union

from ..adapters.ledger import EntryKind, Ledger
from ..constants import DEFAULT_SCHEME, MAX_ENTROPY_INPUT_BYTES, MAX_PARTICIPANTS, MAX_PARTY_ID_LEN
from ..errors import (CommitmentMismatch, DuplicateCommitment, DuplicateSubmission,
                      IncompleteReveals, NotAParticipant, RevealBeforeCommitment,
                      RevealTooLate, RoundClosed, UnknownRound)
from ..metrics import METRICS, Metrics
from ..types.core import CombinedSeed, PartyId, RoundId
from ..types.state import RoundPolicy, RoundState, RoundStatus, RoundView
from ..utils.bytes import BytesLike, as_bytes, consteq, to_hex
from . import evidence
from .combine import check_scheme, combine
from .commit import DEFAULT_COMMITMENT, HashCommitment, normalize_commitment

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

DEFAULT_ROUND_TIMEOUT_S = 60.0


def _check_id(name: str, v: object) -> str:
    if not isinstance(v, str) or not v or len(v) > MAX_PARTY_ID_LEN:
        raise ValueError(f"{name} must be a str of 1..{MAX_PARTY_ID_LEN} characters")
    return v


class RevealCoordinator:
    """
    Owns every open round and linearizes all submissions to them.

    Args:
        ledger:            Optional ledger sink; rounds, commitments, entropy,
                           evidence, reveals and outcomes are published to it.
        commitment:        Commitment scheme used to check reveals.
        default_timeout_s: Deadline for rounds opened without `timeout_s`.
        default_scheme:    Combine scheme for rounds opened without `scheme`.
        clock:             Monotonic clock (seconds). Injectable for tests.
        metrics:           Metrics instance (defaults to the process singleton).
    """

    def __init__(
        self,
        *,
        ledger: Optional[Ledger] = None,
        commitment: HashCommitment = DEFAULT_COMMITMENT,
        default_timeout_s: float = DEFAULT_ROUND_TIMEOUT_S,
        default_scheme: str = DEFAULT_SCHEME,
        clock: Clock = time.monotonic,
        metrics: Optional[Metrics] = None,
    ) -> None:
        if default_timeout_s <= 0:
            raise ValueError("default_timeout_s must be positive")
        self.ledger = ledger
        self.commitment = commitment
        self.default_timeout_s = float(default_timeout_s)
        self.default_scheme = check_scheme(default_scheme)
        self.clock = clock
        self.metrics = metrics or METRICS
        self._lock = threading.RLock()
        self._rounds: Dict[RoundId, RoundState] = {}

    # ------------------------------------------------------------------ helpers

    def _publish(self, kind: EntryKind, payload: dict) -> None:
        if self.ledger is not None:
            self.ledger.publish(kind, payload)

    def _get(self, round_id: str) -> RoundState:
        st = self._rounds.get(RoundId(round_id))
        if st is None:
            raise UnknownRound(round_id=str(round_id))
        return st

    def _touch(self, round_id: str) -> RoundState:
        """Fetch a round and abort it first if its deadline has passed."""
        st = self._get(round_id)
        self._expire_one(st, self.clock())
        return st

    def _expire_one(self, st: RoundState, now: float) -> bool:
        if st.status.terminal or now < st.deadline:
            return False
        missing = st.missing()
        err = IncompleteReveals(
            round_id=st.round_id,
            required=st.quorum,
            got=len(st.reveals),
            missing=missing,
        )
        self._abort(st, str(err), report_misses=True)
        return True

    def _abort(self, st: RoundState, reason: str, *, report_misses: bool) -> None:
        st.status = RoundStatus.ABORTED
        st.abort_reason = reason
        if report_misses:
            for p in st.participants:
                if p in st.reveals or p in st.rejected:
                    continue
                ev = evidence.record_miss(
                    party=p,
                    round_id=st.round_id,
                    commitment=st.commitments.get(p),
                    reason_suffix=None if p in st.commitments else "no commitment",
                    metrics=self.metrics,
                )
                self._publish(EntryKind.EVIDENCE, ev.to_dict())
        if st.policy.retain_partial:
            self._publish_reveals(st)
        self._publish(
            EntryKind.SEED,
            {"round_id": st.round_id, "status": st.status.value, "abort_reason": reason, "seed": None},
        )
        self.metrics.record_round("aborted")
        logger.warning("round %s aborted: %s", st.round_id, reason)

    def _publish_reveals(self, st: RoundState) -> None:
        for p, s in st.reveals.items():
            self._publish(EntryKind.REVEAL, {"round_id": st.round_id, "party": p, "secret": to_hex(s)})

    def _combine(self, st: RoundState) -> None:
        with self.metrics.combine_timer():
            value = combine(st.reveals.values(), round_id=st.round_id, scheme=st.scheme, extra=st.entropy)
        seed = CombinedSeed(
            round_id=st.round_id,
            value=value,
            contributors=tuple(sorted(st.reveals)),
            scheme=st.scheme,
            n_entropy=len(st.entropy),
        )
        self._publish_reveals(st)
        self._publish(
            EntryKind.SEED,
            {"round_id": st.round_id, "status": RoundStatus.COMBINED.value, "abort_reason": None, "seed": seed.to_dict()},
        )
        st.seed = seed
        st.status = RoundStatus.COMBINED
        self.metrics.record_round("combined")
        logger.info(
            "round %s combined: contributors=%d scheme=%s seed=%s",
            st.round_id, len(seed.contributors), seed.scheme, seed.hex(),
        )

    # ---------------------------------------------------------------- lifecycle

    def open_round(
        self,
        participants: Iterable[str],
        policy: Optional[RoundPolicy] = None,
        *,
        round_id: Optional[str] = None,
        timeout_s: Optional[float] = None,
        scheme: Optional[str] = None,
    ) -> RoundId:
        """
        Create a round in OPEN state and return its id.

        Raises ValueError on an empty/duplicated participant list, an invalid
        threshold, an unknown scheme, or a round id already in use.
        """
        parts = tuple(PartyId(_check_id("participant", p)) for p in participants)
        if not parts:
            raise ValueError("a round needs at least one participant")
        if len(parts) > MAX_PARTICIPANTS:
            raise ValueError(f"too many participants (max {MAX_PARTICIPANTS})")
        if len(set(parts)) != len(parts):
            raise ValueError("participants must be unique")
        policy = policy or RoundPolicy.n_of_n()
        policy.quorum(len(parts))
        scheme = check_scheme(scheme or self.default_scheme)
        timeout = self.default_timeout_s if timeout_s is None else float(timeout_s)
        if timeout <= 0:
            raise ValueError("timeout_s must be positive")
        rid = RoundId(_check_id("round_id", round_id) if round_id is not None else _secrets.token_hex(16))

        with self._lock:
            if rid in self._rounds:
                raise ValueError(f"round {rid} already exists")
            self._publish(
                EntryKind.ROUND,
                {
                    "round_id": rid,
                    "participants": list(parts),
                    "policy": policy.to_dict(),
                    "scheme": scheme,
                },
            )
            self._rounds[rid] = RoundState(
                round_id=rid,
                participants=parts,
                policy=policy,
                deadline=self.clock() + timeout,
                scheme=scheme,
            )
        logger.info(
            "round %s opened: participants=%d quorum=%d scheme=%s timeout=%.1fs",
            rid, len(parts), policy.quorum(len(parts)), scheme, timeout,
        )
        return rid

    def submit_commitment(self, round_id: str, party: str, commitment: Union[BytesLike, str]) -> RoundStatus:
        """Record `party`'s commitment. Returns the round status afterwards."""
        with self._lock:
            st = self._touch(round_id)
            if st.status is not RoundStatus.OPEN:
                self.metrics.record_commitment("rejected")
                raise RoundClosed(round_id=st.round_id, status=st.status.value, operation="commit")
            if party not in st.participants:
                self.metrics.record_commitment("rejected")
                raise NotAParticipant(round_id=st.round_id, party=str(party))
            try:
                c = normalize_commitment(commitment)
            except ValueError:
                self.metrics.record_commitment("rejected")
                raise
            pid = PartyId(party)
            if pid in st.commitments:
                self.metrics.record_commitment("duplicate")
                raise DuplicateSubmission(round_id=st.round_id, party=pid, what="commitment")
            for other, oc in st.commitments.items():
                if consteq(oc, c):
                    ev = evidence.record_duplicate_commitment(
                        party=pid, round_id=st.round_id, commitment=c, other_party=other, metrics=self.metrics
                    )
                    self._publish(EntryKind.EVIDENCE, ev.to_dict())
                    self.metrics.record_commitment("duplicate")
                    logger.warning("round %s: %s copied the commitment of %s", st.round_id, pid, other)
                    raise DuplicateCommitment(round_id=st.round_id, party=pid, other_party=other)

            self._publish(EntryKind.COMMITMENT, {"round_id": st.round_id, "party": pid, "commitment": to_hex(c)})
            st.commitments[pid] = c
            self.metrics.record_commitment("accepted")
            logger.debug("round %s: commitment from %s", st.round_id, pid)
            if len(st.commitments) == len(st.participants):
                st.status = RoundStatus.AWAITING_REVEAL
                logger.info("round %s: all %d commitments in, awaiting reveals", st.round_id, len(st.commitments))
            return st.status

    def submit_reveal(self, round_id: str, party: str, secret: BytesLike) -> RoundStatus:
        """
        Check `party`'s secret against its commitment and record it.

        Returns the round status afterwards (COMBINED once quorum is reached).
        """
        with self._lock:
            st = self._touch(round_id)
            if st.status is RoundStatus.ABORTED:
                self.metrics.record_reveal("late")
                raise RevealTooLate(round_id=st.round_id, party=str(party))
            if st.status is RoundStatus.COMBINED:
                self.metrics.record_reveal("rejected")
                raise RoundClosed(round_id=st.round_id, status=st.status.value, operation="reveal")
            if party not in st.participants:
                self.metrics.record_reveal("rejected")
                raise NotAParticipant(round_id=st.round_id, party=str(party))
            pid = PartyId(party)
            if pid not in st.commitments:
                self.metrics.record_reveal("early")
                logger.warning("round %s: reveal from %s before its commitment", st.round_id, pid)
                raise RevealBeforeCommitment(round_id=st.round_id, party=pid)
            if st.status is RoundStatus.OPEN:
                self.metrics.record_reveal("early")
                raise RoundClosed(round_id=st.round_id, status=st.status.value, operation="reveal")
            if pid in st.reveals or pid in st.rejected:
                self.metrics.record_reveal("rejected")
                raise DuplicateSubmission(round_id=st.round_id, party=pid, what="reveal")
            if not isinstance(secret, (bytes, bytearray, memoryview)):
                self.metrics.record_reveal("rejected")
                raise TypeError("secret must be bytes")
            s = as_bytes(secret)
            expected = st.commitments[pid]

            if not self.commitment.verify(s, expected):
                st.rejected.append(pid)
                ev = evidence.record_bad_reveal(
                    party=pid, round_id=st.round_id, commitment=expected, secret=s, metrics=self.metrics
                )
                self._publish(EntryKind.EVIDENCE, ev.to_dict())
                self.metrics.record_reveal("mismatch")
                logger.warning("round %s: reveal from %s does not match its commitment", st.round_id, pid)
                try:
                    got = to_hex(self.commitment.commit(s)) if s else ""
                except ValueError:
                    got = ""
                err = CommitmentMismatch(
                    round_id=st.round_id,
                    party=pid,
                    expected_commitment_hex=to_hex(expected),
                    got_commitment_hex=got,
                    reason="hash-mismatch",
                )
                if not st.reachable():
                    self._abort(st, str(err), report_misses=False)
                raise err

            st.reveals[pid] = s
            self.metrics.record_reveal("accepted")
            logger.debug("round %s: valid reveal from %s (%d/%d)", st.round_id, pid, len(st.reveals), st.quorum)
            if len(st.reveals) >= st.quorum:
                self._combine(st)
            return st.status

    def add_entropy(self, round_id: str, data: BytesLike) -> bool:
        """
        Mix published event entropy into a round awaiting reveals.

        Refused with `RoundClosed` once any reveal has been processed.

        Returns False if the same input was already added (inputs are a set).
        """
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError("entropy input must be bytes")
        d = as_bytes(data)
        if not d or len(d) > MAX_ENTROPY_INPUT_BYTES:
            raise ValueError(f"entropy input must be 1..{MAX_ENTROPY_INPUT_BYTES} bytes")
        with self._lock:
            st = self._touch(round_id)
            if st.status is not RoundStatus.AWAITING_REVEAL:
                raise RoundClosed(round_id=st.round_id, status=st.status.value, operation="entropy")
            if st.reveals or st.rejected:
                raise RoundClosed(round_id=st.round_id, status="revealing", operation="entropy")
            if d in st.entropy:
                return False
            self._publish(EntryKind.ENTROPY, {"round_id": st.round_id, "data": to_hex(d)})
            st.entropy.append(d)
            logger.debug("round %s: entropy input added (%d bytes)", st.round_id, len(d))
            return True

    def abort(self, round_id: str, reason: str) -> RoundView:
        """Abort a live round (e.g. the transport gave up). Terminal rounds are returned unchanged."""
        with self._lock:
            st = self._touch(round_id)
            if not st.status.terminal:
                self._abort(st, reason, report_misses=True)
            return st.snapshot()

    def expire(self, now: Optional[float] = None) -> List[RoundId]:
        """Abort every live round whose deadline has passed. Returns their ids."""
        with self._lock:
            t = self.clock() if now is None else now
            return [st.round_id for st in list(self._rounds.values()) if self._expire_one(st, t)]

    # ------------------------------------------------------------------ queries

    def round(self, round_id: str) -> RoundView:
        """Immutable snapshot of a round (after applying its deadline)."""
        with self._lock:
            return self._touch(round_id).snapshot()

    def seed(self, round_id: str) -> Optional[CombinedSeed]:
        with self._lock:
            return self._touch(round_id).seed

    def rounds(self, status: Optional[RoundStatus] = None) -> List[RoundId]:
        with self._lock:
            return [rid for rid, st in self._rounds.items() if status is None or st.status is status]

    def forget(self, round_id: str) -> RoundView:
        """Drop a terminal round from memory; its published records stay on the ledger."""
        with self._lock:
            st = self._get(round_id)
            if not st.status.terminal:
                raise RoundClosed(round_id=st.round_id, status=st.status.value, operation="forget")
            del self._rounds[st.round_id]
            return st.snapshot()


__all__ = ["RevealCoordinator", "DEFAULT_ROUND_TIMEOUT_S"]
