"""
Core typed records for fairseed.

These are intentionally minimal and free of heavy dependencies so they can be
shared across submodules (commitments, Merkle batches, coordinator, ledger
adapters, verifier and tests). Every record has a codec-agnostic
`to_dict()` / `from_dict()` pair carrying bytes as 0x-hex.

Types provided:
  • RoundId, PartyId, BatchId — string identifiers
  • CommitRecord    — a party's commitment bound to a round
  • RevealRecord    — a party's revealed secret bound to a round
  • InclusionProof  — sibling path from a Merkle leaf to its batch root
  • CombinedSeed    — the combined output of a round
  • LeafTicket      — one issued leaf of a batch (secret + proof + root)
  • CapabilityToken — (scope id, leaf index) reference carried by app transactions
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, NewType, Tuple

from ..constants import DIGEST_BYTES, MAX_PARTY_ID_LEN
from ..utils.bytes import from_hex, to_hex


# ---- Simple newtypes ---------------------------------------------------------

RoundId = NewType("RoundId", str)
PartyId = NewType("PartyId", str)
BatchId = NewType("BatchId", str)


def _require_len(name: str, b: bytes, n: int) -> None:
    if len(b) != n:
        raise ValueError(f"{name} must be exactly {n} bytes (got {len(b)})")


def _require_bytes(name: str, v: Any) -> None:
    if not isinstance(v, (bytes, bytearray)):
        raise TypeError(f"{name} must be bytes")


def _require_id(name: str, v: Any) -> None:
    if not isinstance(v, str):
        raise TypeError(f"{name} must be a str")
    if not v or len(v) > MAX_PARTY_ID_LEN:
        raise ValueError(f"{name} must be 1..{MAX_PARTY_ID_LEN} characters")


# ---- Commit / reveal ---------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CommitRecord:
    """
    A party's commitment for a given round.

    Fields:
      round_id   — target round
      party      — opaque party identifier
      commitment — H(DOMAIN_COMMIT || secret), 32 bytes
    """

    round_id: RoundId
    party: PartyId
    commitment: bytes

    def __post_init__(self) -> None:  # type: ignore[override]
        _require_id("round_id", self.round_id)
        _require_id("party", self.party)
        _require_bytes("commitment", self.commitment)
        _require_len("commitment", self.commitment, DIGEST_BYTES)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "round_id": self.round_id,
            "party": self.party,
            "commitment": to_hex(self.commitment),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CommitRecord":
        return cls(
            round_id=RoundId(d["round_id"]),
            party=PartyId(d["party"]),
            commitment=from_hex(d["commitment"]),
        )


@dataclass(frozen=True, slots=True)
class RevealRecord:
    """
    A party's reveal for a given round.

    Only the secret's *type* is checked here; whether it matches the
    commitment is the coordinator's / verifier's job.
    """

    round_id: RoundId
    party: PartyId
    secret: bytes

    def __post_init__(self) -> None:  # type: ignore[override]
        _require_id("round_id", self.round_id)
        _require_id("party", self.party)
        _require_bytes("secret", self.secret)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "round_id": self.round_id,
            "party": self.party,
            "secret": to_hex(self.secret),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RevealRecord":
        return cls(
            round_id=RoundId(d["round_id"]),
            party=PartyId(d["party"]),
            secret=from_hex(d["secret"]),
        )


# ---- Merkle ------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class InclusionProof:
    """
    Sibling path from leaf `index` up to (but excluding) the batch root.

    `batch_size` is part of the proof because the root binds it; a verifier
    rejects any index >= batch_size and any path whose length does not match
    the tree depth for that size.
    """

    index: int
    batch_size: int
    siblings: Tuple[bytes, ...]

    def __post_init__(self) -> None:  # type: ignore[override]
        if not isinstance(self.index, int) or isinstance(self.index, bool):
            raise TypeError("index must be int")
        if not isinstance(self.batch_size, int) or self.batch_size <= 0:
            raise ValueError("batch_size must be a positive int")
        for s in self.siblings:
            _require_bytes("sibling", s)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "batch_size": self.batch_size,
            "siblings": [to_hex(s) for s in self.siblings],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "InclusionProof":
        return cls(
            index=int(d["index"]),
            batch_size=int(d["batch_size"]),
            siblings=tuple(from_hex(s) for s in d["siblings"]),
        )


@dataclass(frozen=True, slots=True)
class LeafTicket:
    """
    One issued leaf of a batch.

    `root` and `batch_id` say which batch the leaf belongs to; its proof is only
    valid against that root.
    """

    key: str
    batch_id: BatchId
    root: bytes
    index: int
    secret: bytes
    proof: InclusionProof

    def token(self) -> "CapabilityToken":
        return CapabilityToken(scope_id=self.batch_id, leaf_index=self.index, kind="batch")


@dataclass(frozen=True, slots=True)
class CapabilityToken:
    """
    Reference attached to an application transaction so a counterparty can
    later request the matching InclusionProof (kind="batch") or round data
    (kind="round", leaf_index unused and 0).
    """

    scope_id: str
    leaf_index: int = 0
    kind: str = "batch"

    def __post_init__(self) -> None:  # type: ignore[override]
        _require_id("scope_id", self.scope_id)
        if self.kind not in ("batch", "round"):
            raise ValueError("kind must be 'batch' or 'round'")
        if self.leaf_index < 0:
            raise ValueError("leaf_index must be non-negative")

    def to_dict(self) -> Dict[str, Any]:
        return {"scope_id": self.scope_id, "leaf_index": self.leaf_index, "kind": self.kind}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CapabilityToken":
        return cls(
            scope_id=d["scope_id"],
            leaf_index=int(d.get("leaf_index", 0)),
            kind=d.get("kind", "batch"),
        )


# ---- Combined output ---------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CombinedSeed:
    """
    Combined randomness for a round.

    Fields:
      round_id     — the round
      value        — 32-byte combined output
      contributors — parties whose secrets were combined (sorted)
      scheme       — combine scheme name
      n_entropy    — number of extra (event-derived) inputs mixed in
    """

    round_id: RoundId
    value: bytes
    contributors: Tuple[str, ...]
    scheme: str
    n_entropy: int = 0

    def __post_init__(self) -> None:  # type: ignore[override]
        _require_bytes("value", self.value)
        _require_len("value", self.value, DIGEST_BYTES)

    def hex(self) -> str:
        return to_hex(self.value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "round_id": self.round_id,
            "value": to_hex(self.value),
            "contributors": list(self.contributors),
            "scheme": self.scheme,
            "n_entropy": self.n_entropy,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CombinedSeed":
        return cls(
            round_id=RoundId(d["round_id"]),
            value=from_hex(d["value"]),
            contributors=tuple(d["contributors"]),
            scheme=d["scheme"],
            n_entropy=int(d.get("n_entropy", 0)),
        )


__all__ = [
    "RoundId",
    "PartyId",
    "BatchId",
    "CommitRecord",
    "RevealRecord",
    "InclusionProof",
    "LeafTicket",
    "CapabilityToken",
    "CombinedSeed",
]
