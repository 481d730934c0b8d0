"""
fairseed.commit_reveal.evidence
===============================

Misbehavior evidence emitted by the reveal coordinator.

This module **does not** punish anyone by itself. It builds typed, self-
contained `Evidence` records and hands them to a registered sink, so that
higher layers (reputation, stake, matchmaking bans) can apply their own
policy. The coordinator additionally publishes each record to its ledger so
auditors see the same evidence.

Typical usage
-------------
- Register a sink that implements ``EvidenceSink`` once during startup.
- The coordinator calls ``record_bad_reveal(...)`` when a reveal does not
  match the party's commitment, ``record_duplicate_commitment(...)`` when a
  party copies another party's commitment, and ``record_miss(...)`` for every
  party that had not revealed when a round aborted.

Fraud vs. liveness
------------------
``BAD_REVEAL`` and ``DUPLICATE_COMMITMENT`` are fraud: `verify_evidence`
re-checks them from the record alone. ``MISS`` is a liveness failure and
carries no cryptographic proof; the reveal may simply have been lost.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Protocol

from ..metrics import METRICS, Metrics
from ..utils.bytes import consteq, from_hex, to_hex
from .commit import verify as verify_commitment


class MisbehaviorKind(str, Enum):
    """Kinds of misbehavior a round can observe."""

    BAD_REVEAL = "bad_reveal"                      # reveal does not match commitment
    DUPLICATE_COMMITMENT = "duplicate_commitment"  # copied another party's commitment
    MISS = "miss"                                  # did not reveal before the round aborted


@dataclass(frozen=True)
class Evidence:
    """
    A structured misbehavior record.

    Attributes
    ----------
    party:
        The offending participant (opaque identifier).
    kind:
        The misbehavior category.
    scope_id:
        The round in which the infraction was observed.
    reason:
        Human-readable explanation for logs/audit trails.
    commitment:
        The party's commitment (or the copied one), if known.
    secret:
        The bad reveal, for ``BAD_REVEAL``.
    other_party:
        The party whose commitment was copied, for ``DUPLICATE_COMMITMENT``.
    """

    party: str
    kind: MisbehaviorKind
    scope_id: str
    reason: str
    commitment: Optional[bytes] = None
    secret: Optional[bytes] = None
    other_party: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "party": self.party,
            "kind": self.kind.value,
            "scope_id": self.scope_id,
            "reason": self.reason,
            "commitment": None if self.commitment is None else to_hex(self.commitment),
            "secret": None if self.secret is None else to_hex(self.secret),
            "other_party": self.other_party,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Evidence":
        c = d.get("commitment")
        s = d.get("secret")
        return cls(
            party=d["party"],
            kind=MisbehaviorKind(d["kind"]),
            scope_id=d["scope_id"],
            reason=d.get("reason", ""),
            commitment=None if c is None else from_hex(c),
            secret=None if s is None else from_hex(s),
            other_party=d.get("other_party"),
        )


class EvidenceSink(Protocol):
    """
    Consumer of misbehavior evidence.

    Implementations typically lower a reputation score, post a penalty
    transaction, or queue the record for moderation.
    """

    def on_evidence(self, event: Evidence) -> None:
        """Handle one evidence record."""


class _NoopSink:
    def on_evidence(self, _event: Evidence) -> None:  # pragma: no cover - trivial
        return


# The currently-registered sink. Defaults to a no-op.
_sink: EvidenceSink = _NoopSink()


def register_sink(sink: EvidenceSink) -> None:
    """
    Register a global evidence sink. Overwrites any previously-registered sink.

    Intended for early initialization.
    """
    global _sink
    _sink = sink


def clear_sink() -> None:
    """Restore the default no-op sink (useful in tests)."""
    register_sink(_NoopSink())


def _emit(event: Evidence, metrics: Optional[Metrics]) -> Evidence:
    _sink.on_evidence(event)
    (metrics or METRICS).record_evidence(event.kind.value)
    return event


# ------------------------------------------------------------------------------
# Event emitters (called by the coordinator)
# ------------------------------------------------------------------------------


def record_bad_reveal(
    *,
    party: str,
    round_id: str,
    commitment: bytes,
    secret: bytes,
    metrics: Optional[Metrics] = None,
) -> Evidence:
    """Emit evidence for a reveal that does not verify against its commitment."""
    return _emit(
        Evidence(
            party=party,
            kind=MisbehaviorKind.BAD_REVEAL,
            scope_id=round_id,
            reason="bad reveal: does not verify against prior commitment",
            commitment=commitment,
            secret=secret,
        ),
        metrics,
    )


def record_duplicate_commitment(
    *,
    party: str,
    round_id: str,
    commitment: bytes,
    other_party: str,
    metrics: Optional[Metrics] = None,
) -> Evidence:
    """Emit evidence for a commitment value already used by `other_party`."""
    return _emit(
        Evidence(
            party=party,
            kind=MisbehaviorKind.DUPLICATE_COMMITMENT,
            scope_id=round_id,
            reason=f"commitment copied from {other_party}",
            commitment=commitment,
            other_party=other_party,
        ),
        metrics,
    )


def record_miss(
    *,
    party: str,
    round_id: str,
    commitment: Optional[bytes],
    reason_suffix: Optional[str] = None,
    metrics: Optional[Metrics] = None,
) -> Evidence:
    """Emit a liveness record for a party that never revealed."""
    reason = "missed reveal before round closed"
    if reason_suffix:
        reason = f"{reason} ({reason_suffix})"
    return _emit(
        Evidence(
            party=party,
            kind=MisbehaviorKind.MISS,
            scope_id=round_id,
            reason=reason,
            commitment=commitment,
        ),
        metrics,
    )


def verify_evidence(event: Evidence, *, other_commitment: Optional[bytes] = None) -> bool:
    """
    Re-check fraud evidence from the record alone.

    - BAD_REVEAL: true iff `secret` does *not* open `commitment`.
    - DUPLICATE_COMMITMENT: true iff `other_commitment` (the copied party's
      published commitment) equals `commitment`.
    - MISS: not provable; always False.
    """
    if event.kind is MisbehaviorKind.BAD_REVEAL:
        if event.commitment is None or event.secret is None:
            return False
        return not verify_commitment(event.secret, event.commitment, strict_length=False)
    if event.kind is MisbehaviorKind.DUPLICATE_COMMITMENT:
        if event.commitment is None or other_commitment is None:
            return False
        return consteq(event.commitment, other_commitment)
    return False


__all__ = [
    "MisbehaviorKind",
    "Evidence",
    "EvidenceSink",
    "register_sink",
    "clear_sink",
    "record_bad_reveal",
    "record_duplicate_commitment",
    "record_miss",
    "verify_evidence",
]
