"""
Logical buckets over a raw byte-oriented KeyValue backend.

Thin, typed helpers for composing the namespaced keys the ledger adapter
writes to:

Buckets
-------
- ROUND:      per-round descriptor (participants, policy, scheme)
- COMMITMENT: per-(round, party) commitments
- REVEAL:     per-(round, party) reveals
- ENTROPY:    per-(round, digest) published event entropy
- SEED:       per-round terminal outcome (seed or abort reason)
- EVIDENCE:   per-(scope, party/kind) misbehavior evidence
- ROOT:       per-batch Merkle root (+ size, key, sequence)
- PROOF:      per-(batch, index) leaf reveal with inclusion proof

All values are bytes. Higher layers serialize records (canonical JSON).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

from . import KeyValue

# --- Bucket prefix constants (single-byte, domain-separated) -----------------

ROUND_PREFIX      = b"\x01"  # \x01 | len(round) | round | len("") |
COMMITMENT_PREFIX = b"\x02"  # \x02 | len(round) | round | len(party) | party
REVEAL_PREFIX     = b"\x03"  # \x03 | len(round) | round | len(party) | party
ENTROPY_PREFIX    = b"\x04"  # \x04 | len(round) | round | len(item) | item
SEED_PREFIX       = b"\x05"  # \x05 | len(round) | round | len("") |
EVIDENCE_PREFIX   = b"\x06"  # \x06 | len(scope) | scope | len(item) | item
ROOT_PREFIX       = b"\x07"  # \x07 | len(batch) | batch | len("") |
PROOF_PREFIX      = b"\x08"  # \x08 | len(batch) | batch | len(idx) | idx

PREFIXES: Dict[str, bytes] = {
    "round": ROUND_PREFIX,
    "commitment": COMMITMENT_PREFIX,
    "reveal": REVEAL_PREFIX,
    "entropy": ENTROPY_PREFIX,
    "seed": SEED_PREFIX,
    "evidence": EVIDENCE_PREFIX,
    "root": ROOT_PREFIX,
    "proof": PROOF_PREFIX,
}


# --- Key composition helpers -------------------------------------------------

def _be_u32(n: int) -> bytes:
    if n < 0 or n > 0xFFFFFFFF:
        raise ValueError("length out of range for u32")
    return n.to_bytes(4, "big")


def _k(prefix: bytes, *parts: bytes) -> bytes:
    """Prefix + 4-byte len for each part to avoid accidental collisions."""
    return prefix + b"".join(_be_u32(len(p)) + p for p in parts)


def _utf8(b: str | bytes) -> bytes:
    return b if isinstance(b, bytes) else b.encode("utf-8")


def _prefix(kind: str) -> bytes:
    try:
        return PREFIXES[kind]
    except KeyError:
        raise ValueError(f"unknown bucket kind {kind!r}") from None


# --- Public bucket API -------------------------------------------------------

@dataclass(frozen=True)
class Buckets:
    """
    Namespaced view over a byte KV store.

    Keys are constructed deterministically using:
      key = PREFIX || u32_be(len(scope)) || scope || u32_be(len(item)) || item
    """
    kv: KeyValue

    def key(self, kind: str, scope: str | bytes, item: str | bytes = b"") -> bytes:
        return _k(_prefix(kind), _utf8(scope), _utf8(item))

    def put(self, kind: str, scope: str | bytes, item: str | bytes, value: bytes) -> None:
        self.kv.put(self.key(kind, scope, item), value)

    def get(self, kind: str, scope: str | bytes, item: str | bytes = b"") -> Optional[bytes]:
        return self.kv.get(self.key(kind, scope, item))

    def has(self, kind: str, scope: str | bytes, item: str | bytes = b"") -> bool:
        return self.kv.has(self.key(kind, scope, item))

    def iter_scope(self, kind: str, scope: str | bytes) -> Iterable[Tuple[bytes, bytes]]:
        """Iterate all (key, value) entries of `kind` under `scope`."""
        return self.kv.iter_prefix(_k(_prefix(kind), _utf8(scope)))

    def iter_kind(self, kind: str) -> Iterable[Tuple[bytes, bytes]]:
        """Iterate all entries of `kind` (any scope)."""
        return self.kv.iter_prefix(_prefix(kind))


__all__ = [
    "Buckets",
    "PREFIXES",
    "ROUND_PREFIX",
    "COMMITMENT_PREFIX",
    "REVEAL_PREFIX",
    "ENTROPY_PREFIX",
    "SEED_PREFIX",
    "EVIDENCE_PREFIX",
    "ROOT_PREFIX",
    "PROOF_PREFIX",
]
