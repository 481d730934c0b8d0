"""
fairseed constants.

This module centralizes:
- Domain separation tags for commitments, Merkle batches and combination
- Secret sizing and default batch sizes
- Wire-level limits used when decoding published records

Networks may override operational knobs via `fairseed.config.FairseedConfig`,
but anything that affects a published digest lives here and must stay stable.
"""

from __future__ import annotations

# -----------------------------
# Domain separation (bytes tags)
# -----------------------------
# Keep these stable; changing them would invalidate historical transcripts.
DOMAIN_PREFIX: bytes = b"fairseed."

# Commitments to secrets
DOMAIN_COMMIT: bytes      = DOMAIN_PREFIX + b"commit.v1"

# Merkle batches (leaf / inner node / size-bound root)
DOMAIN_MERKLE_LEAF: bytes = DOMAIN_PREFIX + b"merkle.leaf.v1"
DOMAIN_MERKLE_NODE: bytes = DOMAIN_PREFIX + b"merkle.node.v1"
DOMAIN_MERKLE_ROOT: bytes = DOMAIN_PREFIX + b"merkle.root.v1"

# Combination of revealed secrets
DOMAIN_COMBINE: bytes     = DOMAIN_PREFIX + b"combine.v1"
DOMAIN_COMBINE_XOR: bytes = DOMAIN_PREFIX + b"combine.xor.v1"

# Digest of observed network events (secondary entropy)
DOMAIN_EVENTS: bytes      = DOMAIN_PREFIX + b"events.v1"

# Per-application derivations
DOMAIN_DICE: bytes        = DOMAIN_PREFIX + b"app.dice.v1"
DOMAIN_CARDS: bytes       = DOMAIN_PREFIX + b"app.cards.v1"

# Hash function used for every digest above (documentation aid)
HASH_FN: str = "sha3_256"
DIGEST_BYTES: int = 32

# -----------------------------
# Secrets & batches
# -----------------------------
# 256 bits of entropy per secret.
SECRET_BYTES: int = 32

DEFAULT_BATCH_SIZE: int = 1024
MAX_BATCH_SIZE: int = 1 << 20

# Combine schemes (see fairseed.commit_reveal.combine)
SCHEME_SORTED_HASH: str = "sorted-hash"
SCHEME_XOR_HASH: str = "xor-hash"
DEFAULT_SCHEME: str = SCHEME_SORTED_HASH

# -----------------------------
# Record limits
# -----------------------------
MAX_PARTICIPANTS: int = 1024
MAX_PARTY_ID_LEN: int = 256
MAX_ENTROPY_INPUT_BYTES: int = 4096

__all__ = [
    "DOMAIN_PREFIX",
    "DOMAIN_COMMIT",
    "DOMAIN_MERKLE_LEAF",
    "DOMAIN_MERKLE_NODE",
    "DOMAIN_MERKLE_ROOT",
    "DOMAIN_COMBINE",
    "DOMAIN_COMBINE_XOR",
    "DOMAIN_EVENTS",
    "DOMAIN_DICE",
    "DOMAIN_CARDS",
    "HASH_FN",
    "DIGEST_BYTES",
    "SECRET_BYTES",
    "DEFAULT_BATCH_SIZE",
    "MAX_BATCH_SIZE",
    "SCHEME_SORTED_HASH",
    "SCHEME_XOR_HASH",
    "DEFAULT_SCHEME",
    "MAX_PARTICIPANTS",
    "MAX_PARTY_ID_LEN",
    "MAX_ENTROPY_INPUT_BYTES",
]
