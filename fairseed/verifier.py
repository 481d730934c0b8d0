"""
fairseed.verifier
=================

Offline verification from published data only. No participant, coordinator
or batch owner needs to be reachable.

Checks:
  1) Every reveal opens its party's commitment (constant-time compare).
  2) No two parties share a commitment value.
  3) The policy quorum of valid reveals is present.
  4) Recombining the reveals (plus published event entropy) with the round's
     recorded scheme yields the published seed.
  5) A leaf secret, its index and inclusion proof hash up to the batch root.

Errors distinguish "protocol violation by party X" (`CommitmentMismatch`,
`DuplicateCommitment`) from "data unavailable" (`IncompleteReveals`,
`EntryNotFound`). Leaf checks never raise: they return False.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from .adapters.ledger import EntryHandle, EntryKind, Ledger, proof_item
from .commit_reveal.combine import check_scheme, combine
from .commit_reveal.commit import DEFAULT_COMMITMENT, HashCommitment, normalize_commitment
from .commit_reveal.evidence import Evidence
from .constants import DEFAULT_SCHEME
from .errors import CommitmentMismatch, DuplicateCommitment, IncompleteReveals
from .merkle.tree import verify_proof
from .metrics import METRICS, Metrics
from .types.core import CombinedSeed, CommitRecord, InclusionProof, RevealRecord, RoundId
from .types.state import RoundPolicy, RoundStatus
from .utils.bytes import BytesLike, as_bytes, consteq, from_hex, to_hex

Commitments = Union[Mapping[str, Union[BytesLike, str]], Iterable[CommitRecord]]
Reveals = Union[Mapping[str, Union[BytesLike, str]], Iterable[RevealRecord]]


def _commitment_map(commitments: Commitments) -> Dict[str, bytes]:
    if isinstance(commitments, Mapping):
        return {str(p): normalize_commitment(c) for p, c in commitments.items()}
    return {r.party: r.commitment for r in commitments}


def _reveal_map(reveals: Reveals) -> Dict[str, bytes]:
    if isinstance(reveals, Mapping):
        return {str(p): from_hex(s) if isinstance(s, str) else as_bytes(s) for p, s in reveals.items()}
    return {r.party: r.secret for r in reveals}


def verify_round(
    round_id: str,
    commitments: Commitments,
    reveals: Reveals,
    *,
    policy: Optional[RoundPolicy] = None,
    participants: Optional[Iterable[str]] = None,
    scheme: str = DEFAULT_SCHEME,
    extra_entropy: Iterable[BytesLike] = (),
    commitment: HashCommitment = DEFAULT_COMMITMENT,
) -> CombinedSeed:
    """
    Recompute a round's CombinedSeed from its commitments and reveals.

    `participants` defaults to the committed parties. Every supplied reveal
    must verify and is combined.

    Raises:
        CommitmentMismatch:  a reveal without a commitment, or one that does
                             not open its commitment.
        DuplicateCommitment: two parties published the same commitment.
        IncompleteReveals:   fewer valid reveals than the policy requires.
    """
    cmap = _commitment_map(commitments)
    rmap = _reveal_map(reveals)
    parts = tuple(participants) if participants is not None else tuple(sorted(cmap))
    policy = policy or RoundPolicy.n_of_n()
    scheme = check_scheme(scheme)

    seen: Dict[bytes, str] = {}
    for p in sorted(cmap):
        other = seen.get(cmap[p])
        if other is not None:
            raise DuplicateCommitment(round_id=round_id, party=p, other_party=other)
        seen[cmap[p]] = p

    for p in sorted(rmap):
        expected = cmap.get(p)
        if expected is None:
            raise CommitmentMismatch(round_id=round_id, party=p, reason="no-commitment")
        if not commitment.verify(rmap[p], expected):
            raise CommitmentMismatch(
                round_id=round_id,
                party=p,
                expected_commitment_hex=to_hex(expected),
                reason="hash-mismatch",
            )

    required = policy.quorum(len(parts))
    if len(rmap) < required:
        raise IncompleteReveals(
            round_id=round_id,
            required=required,
            got=len(rmap),
            missing=tuple(p for p in parts if p not in rmap),
        )

    extra = tuple({as_bytes(e) for e in extra_entropy})
    value = combine(rmap.values(), round_id=round_id, scheme=scheme, extra=extra)
    return CombinedSeed(
        round_id=RoundId(round_id),
        value=value,
        contributors=tuple(sorted(rmap)),
        scheme=scheme,
        n_entropy=len(extra),
    )


def verify_leaf(
    batch_root: Union[BytesLike, str],
    index: int,
    leaf_secret: Union[BytesLike, str],
    proof: InclusionProof,
    *,
    metrics: Optional[Metrics] = None,
) -> bool:
    """True iff `leaf_secret` sits at `index` of the batch committed by `batch_root`."""
    try:
        root = from_hex(batch_root) if isinstance(batch_root, str) else as_bytes(batch_root)
        secret = from_hex(leaf_secret) if isinstance(leaf_secret, str) else as_bytes(leaf_secret)
    except (TypeError, ValueError):
        ok = False
    else:
        ok = verify_proof(secret, index, proof, root)
    (metrics or METRICS).record_proof_check(ok)
    return ok


# ---------------------------------------------------------------------------
# Ledger audits
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuditReport:
    """
    Result of re-running a round's checks against the ledger.

    `matches` is True when the recomputed seed equals the published one (or,
    for an aborted round, when no seed was published).
    """

    round_id: str
    status: RoundStatus
    seed: Optional[CombinedSeed]
    published: Optional[bytes]
    matches: bool
    verified_reveals: Tuple[str, ...]
    abort_reason: Optional[str] = None
    evidence: Tuple[Evidence, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "round_id": self.round_id,
            "status": self.status.value,
            "seed": None if self.seed is None else self.seed.to_dict(),
            "published": None if self.published is None else to_hex(self.published),
            "matches": self.matches,
            "verified_reveals": list(self.verified_reveals),
            "abort_reason": self.abort_reason,
            "evidence": [e.to_dict() for e in self.evidence],
        }


def audit_round(ledger: Ledger, round_id: str) -> AuditReport:
    """
    Load a round's records from `ledger` and re-run every check.

    Raises EntryNotFound if the round descriptor or its outcome was never
    published, and the `verify_round` errors for bad data. For an aborted
    round the retained partial reveals are still checked against their
    commitments.
    """
    desc = ledger.fetch(EntryHandle(EntryKind.ROUND, round_id))
    outcome = ledger.fetch(EntryHandle(EntryKind.SEED, round_id))
    commitments = {d["party"]: from_hex(d["commitment"]) for d in ledger.iter_kind(EntryKind.COMMITMENT, round_id)}
    reveals = {d["party"]: from_hex(d["secret"]) for d in ledger.iter_kind(EntryKind.REVEAL, round_id)}
    entropy = [from_hex(d["data"]) for d in ledger.iter_kind(EntryKind.ENTROPY, round_id)]
    evidence = tuple(Evidence.from_dict(d) for d in ledger.iter_kind(EntryKind.EVIDENCE, round_id))
    policy = RoundPolicy.from_dict(desc.get("policy", {}))
    participants = tuple(desc["participants"])
    scheme = desc.get("scheme", DEFAULT_SCHEME)
    status = RoundStatus(outcome["status"])

    if status is RoundStatus.ABORTED:
        if reveals:
            # Partial reveals must still open their commitments.
            verify_round(
                round_id,
                commitments,
                reveals,
                participants=tuple(reveals),
                scheme=scheme,
                extra_entropy=entropy,
            )
        return AuditReport(
            round_id=round_id,
            status=status,
            seed=None,
            published=None,
            matches=outcome.get("seed") is None,
            verified_reveals=tuple(sorted(reveals)),
            abort_reason=outcome.get("abort_reason"),
            evidence=evidence,
        )

    seed = verify_round(
        round_id,
        commitments,
        reveals,
        policy=policy,
        participants=participants,
        scheme=scheme,
        extra_entropy=entropy,
    )
    published = from_hex(outcome["seed"]["value"]) if outcome.get("seed") else None
    return AuditReport(
        round_id=round_id,
        status=status,
        seed=seed,
        published=published,
        matches=published is not None and consteq(published, seed.value),
        verified_reveals=seed.contributors,
        evidence=evidence,
    )


def audit_leaf(ledger: Ledger, batch_id: str, index: int, *, metrics: Optional[Metrics] = None) -> bool:
    """
    Check a published leaf against its published batch root.

    Raises EntryNotFound if the root or the leaf proof is unavailable;
    returns False if the published data does not verify.
    """
    root_rec = ledger.fetch(EntryHandle(EntryKind.ROOT, batch_id))
    leaf_rec = ledger.fetch(EntryHandle(EntryKind.PROOF, batch_id, proof_item(index)))
    try:
        proof = InclusionProof.from_dict(leaf_rec["proof"])
        root = from_hex(root_rec["root"])
        if proof.batch_size != int(root_rec["size"]):
            (metrics or METRICS).record_proof_check(False)
            return False
    except (KeyError, TypeError, ValueError):
        (metrics or METRICS).record_proof_check(False)
        return False
    return verify_leaf(root, index, leaf_rec.get("secret", ""), proof, metrics=metrics)


__all__ = [
    "verify_round",
    "verify_leaf",
    "audit_round",
    "audit_leaf",
    "AuditReport",
]
