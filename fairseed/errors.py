"""
fairseed errors.

A small, typed hierarchy of exceptions raised by the commit-reveal protocol
and the Merkle batch engine. Callers can catch the base `FairseedError` to
handle everything, or one of the two families that matter to applications:

- `ProtocolViolation` — a named party broke the protocol (fraud evidence).
  Applications may disqualify or penalize `party`.
- `DataUnavailable` — something is missing or late. Nobody is to blame;
  retry with a fresh round if needed.

Cryptographic failures are never retried. Invalid Merkle proofs are not
errors at all: verifiers return False.

Errors are plain (non-frozen) dataclasses: `contextlib` writes
`__traceback__` on exceptions leaving a `@contextmanager` block.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class FairseedError(Exception):
    """Base class for all fairseed errors."""
    pass


class ProtocolViolation(FairseedError):
    """A participant misbehaved. Subclasses carry the offending `party`."""
    party: str


class DataUnavailable(FairseedError):
    """Data needed to proceed or verify is missing or arrived too late."""
    pass


class RoundStateError(FairseedError):
    """Operation not valid for the round's current state."""
    pass


class LedgerError(FairseedError):
    """Base class for ledger sink errors."""
    pass


# ---- Entropy -----------------------------------------------------------------


@dataclass(eq=False)
class EntropyUnavailable(FairseedError):
    """
    Raised when the secure random source cannot be sampled.

    Fatal to the generation call. Callers must not retry with a weaker source.
    """
    reason: str

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return f"EntropyUnavailable: {self.reason}"


# ---- Protocol violations -----------------------------------------------------


@dataclass(eq=False)
class CommitmentMismatch(ProtocolViolation):
    """
    Raised when a revealed secret does not hash to the party's commitment.

    Attributes:
        round_id: The round identifier.
        party: The party whose reveal failed.
        expected_commitment_hex: The published commitment.
        got_commitment_hex: Commitment recomputed from the reveal ('' if none).
        reason: Optional explanation ('hash-mismatch', 'no-commitment', 'length').
    """
    round_id: str
    party: str
    expected_commitment_hex: str = ""
    got_commitment_hex: str = ""
    reason: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        base = (
            f"CommitmentMismatch: round={self.round_id} party={self.party} "
            f"expected={self.expected_commitment_hex} got={self.got_commitment_hex}"
        )
        return f"{base} reason={self.reason}" if self.reason else base


@dataclass(eq=False)
class DuplicateCommitment(ProtocolViolation):
    """Raised when a party submits a commitment value already used by another party."""
    round_id: str
    party: str
    other_party: str

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return (
            f"DuplicateCommitment: round={self.round_id} party={self.party} "
            f"copies commitment of {self.other_party}"
        )


@dataclass(eq=False)
class RevealBeforeCommitment(ProtocolViolation):
    """Raised when a party reveals without a recorded commitment of its own."""
    round_id: str
    party: str

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return f"RevealBeforeCommitment: round={self.round_id} party={self.party}"


# ---- Data unavailable --------------------------------------------------------


@dataclass(eq=False)
class IncompleteReveals(DataUnavailable):
    """
    Raised when the policy quorum of valid reveals is not met.

    Attributes:
        round_id: The round identifier.
        required: Number of valid reveals the policy needs.
        got: Number of valid reveals available.
        missing: Parties that did not (validly) reveal.
    """
    round_id: str
    required: int
    got: int
    missing: tuple = ()

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return (
            f"IncompleteReveals: round={self.round_id} required={self.required} "
            f"got={self.got} missing={list(self.missing)}"
        )


@dataclass(eq=False)
class RevealTooLate(DataUnavailable):
    """Raised when a reveal arrives after its round was aborted."""
    round_id: str
    party: str

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return f"RevealTooLate: round={self.round_id} party={self.party}"


@dataclass(eq=False)
class EntryNotFound(DataUnavailable):
    """Raised when a ledger record cannot be fetched."""
    kind: str
    key: str

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return f"EntryNotFound: kind={self.kind} key={self.key}"


# ---- Batch / index -----------------------------------------------------------


@dataclass(eq=False)
class IndexOutOfRange(FairseedError):
    """Raised when a leaf index is outside [0, size)."""
    index: int
    size: int

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return f"IndexOutOfRange: index={self.index} size={self.size}"


@dataclass(eq=False)
class BatchExhausted(FairseedError):
    """Raised when every leaf of a batch has been issued."""
    batch_id: str
    size: int

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return f"BatchExhausted: batch={self.batch_id} size={self.size}"


# ---- Round state -------------------------------------------------------------


@dataclass(eq=False)
class UnknownRound(RoundStateError):
    round_id: str

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return f"UnknownRound: round={self.round_id}"


@dataclass(eq=False)
class NotAParticipant(RoundStateError):
    round_id: str
    party: str

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return f"NotAParticipant: round={self.round_id} party={self.party}"


@dataclass(eq=False)
class DuplicateSubmission(RoundStateError):
    round_id: str
    party: str
    what: str

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return f"DuplicateSubmission: round={self.round_id} party={self.party} what={self.what}"


@dataclass(eq=False)
class RoundClosed(RoundStateError):
    """Raised when a submission targets a round in the wrong phase."""
    round_id: str
    status: str
    operation: str

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return (
            f"RoundClosed: round={self.round_id} status={self.status} "
            f"operation={self.operation}"
        )


# ---- Ledger ------------------------------------------------------------------


@dataclass(eq=False)
class LedgerConflict(LedgerError):
    """Raised when an immutable record would be overwritten with different content."""
    kind: str
    key: str

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return f"LedgerConflict: kind={self.kind} key={self.key}"


@dataclass(eq=False)
class LedgerOrderingError(LedgerError):
    """Raised when a record is published before the record it depends on."""
    kind: str
    key: str
    requires: str

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return f"LedgerOrderingError: {self.kind} {self.key} requires {self.requires}"


__all__ = [
    "FairseedError",
    "ProtocolViolation",
    "DataUnavailable",
    "RoundStateError",
    "LedgerError",
    "EntropyUnavailable",
    "CommitmentMismatch",
    "DuplicateCommitment",
    "RevealBeforeCommitment",
    "IncompleteReveals",
    "RevealTooLate",
    "EntryNotFound",
    "IndexOutOfRange",
    "BatchExhausted",
    "UnknownRound",
    "NotAParticipant",
    "DuplicateSubmission",
    "RoundClosed",
    "LedgerConflict",
    "LedgerOrderingError",
]
