from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..constants import DEFAULT_SCHEME
from ..utils.bytes import to_hex
from .core import CombinedSeed, PartyId, RoundId


class RoundStatus(str, Enum):
    """Lifecycle of a commit-reveal round."""

    OPEN = "open"                        # collecting commitments
    AWAITING_REVEAL = "awaiting_reveal"  # all commitments in, collecting reveals
    COMBINED = "combined"                # terminal: seed produced
    ABORTED = "aborted"                  # terminal: policy violation or timeout

    @property
    def terminal(self) -> bool:
        return self in (RoundStatus.COMBINED, RoundStatus.ABORTED)


@dataclass(frozen=True, slots=True)
class RoundPolicy:
    """
    Quorum policy for a round.

    Fields:
      threshold       — None for n-of-n; otherwise k, the number of valid
                        reveals needed (1 <= k <= n)
      retain_partial  — keep (and publish) valid reveals of an aborted round
                        so auditors can check behavior up to the abort
    """

    threshold: Optional[int] = None
    retain_partial: bool = True

    @classmethod
    def n_of_n(cls) -> "RoundPolicy":
        return cls(threshold=None)

    @classmethod
    def k_of_n(cls, k: int) -> "RoundPolicy":
        return cls(threshold=k)

    def quorum(self, n: int) -> int:
        """Number of valid reveals required with `n` participants."""
        if self.threshold is None:
            return n
        if not (1 <= self.threshold <= n):
            raise ValueError(f"threshold must be in [1, {n}] (got {self.threshold})")
        return self.threshold

    def to_dict(self) -> Dict[str, Any]:
        return {"threshold": self.threshold, "retain_partial": self.retain_partial}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RoundPolicy":
        t = d.get("threshold")
        return cls(
            threshold=None if t is None else int(t),
            retain_partial=bool(d.get("retain_partial", True)),
        )


@dataclass(frozen=True, slots=True)
class RoundView:
    """Immutable snapshot of a round, safe to hand out to callers."""

    round_id: RoundId
    status: RoundStatus
    participants: Tuple[PartyId, ...]
    policy: RoundPolicy
    scheme: str
    commitments: Tuple[Tuple[PartyId, bytes], ...]
    reveals: Tuple[Tuple[PartyId, bytes], ...]
    rejected: Tuple[PartyId, ...]
    entropy: Tuple[bytes, ...]
    seed: Optional[CombinedSeed]
    abort_reason: Optional[str]

    def commitment_of(self, party: str) -> Optional[bytes]:
        return dict(self.commitments).get(PartyId(party))

    def to_dict(self) -> Dict[str, Any]:
        """Public description of the round (no unrevealed secrets exist here)."""
        return {
            "round_id": self.round_id,
            "status": self.status.value,
            "participants": list(self.participants),
            "policy": self.policy.to_dict(),
            "scheme": self.scheme,
            "commitments": {p: to_hex(c) for p, c in self.commitments},
            "reveals": {p: to_hex(s) for p, s in self.reveals},
            "rejected": list(self.rejected),
            "entropy": [to_hex(e) for e in self.entropy],
            "seed": None if self.seed is None else self.seed.to_dict(),
            "abort_reason": self.abort_reason,
        }


@dataclass(slots=True)
class RoundState:
    """
    Mutable per-round state owned by the RevealCoordinator.

    Only the coordinator mutates this, under its lock. `reveals` holds valid
    reveals in acceptance order; `rejected` holds parties whose reveal failed
    the commitment check (they can no longer contribute).
    """

    round_id: RoundId
    participants: Tuple[PartyId, ...]
    policy: RoundPolicy
    deadline: float
    scheme: str = DEFAULT_SCHEME
    status: RoundStatus = RoundStatus.OPEN
    commitments: Dict[PartyId, bytes] = field(default_factory=dict)
    reveals: Dict[PartyId, bytes] = field(default_factory=dict)
    rejected: List[PartyId] = field(default_factory=list)
    entropy: List[bytes] = field(default_factory=list)
    seed: Optional[CombinedSeed] = None
    abort_reason: Optional[str] = None

    @property
    def quorum(self) -> int:
        return self.policy.quorum(len(self.participants))

    def reachable(self) -> bool:
        """Can quorum still be reached given the rejected parties?"""
        return len(self.participants) - len(self.rejected) >= self.quorum

    def missing(self) -> Tuple[PartyId, ...]:
        return tuple(p for p in self.participants if p not in self.reveals)

    def snapshot(self) -> RoundView:
        reveals: Tuple[Tuple[PartyId, bytes], ...] = tuple(self.reveals.items())
        if self.status is RoundStatus.ABORTED and not self.policy.retain_partial:
            reveals = ()
        return RoundView(
            round_id=self.round_id,
            status=self.status,
            participants=self.participants,
            policy=self.policy,
            scheme=self.scheme,
            commitments=tuple(
                (p, self.commitments[p]) for p in self.participants if p in self.commitments
            ),
            reveals=reveals,
            rejected=tuple(self.rejected),
            entropy=tuple(self.entropy),
            seed=self.seed,
            abort_reason=self.abort_reason,
        )


__all__ = ["RoundStatus", "RoundPolicy", "RoundView", "RoundState"]
