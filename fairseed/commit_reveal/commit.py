# Copyright (c) fairseed authors.
# SPDX-License-Identifier: MIT
"""
Hash commitments to secrets.

Definition
----------
C = H( domain_tag || secret )

- H is SHA3-256.
- `domain_tag` separates commitments from every other hash in the host system
  (Merkle leaves, combine output, application digests).
- `secret` is a random byte string of at least SECRET_BYTES.

Verification recomputes C and compares in constant time. Neither function has
side effects; `verify` never raises on a malformed commitment, it returns
False.
"""

from __future__ import annotations

import binascii
from dataclasses import dataclass
from typing import Union

from ..constants import DIGEST_BYTES, DOMAIN_COMMIT, SECRET_BYTES
from ..utils.bytes import BytesLike, as_bytes, consteq, from_hex
from ..utils.hash import tagged_hash


def _check_secret(secret: BytesLike, strict_length: bool) -> bytes:
    if not isinstance(secret, (bytes, bytearray, memoryview)):
        raise TypeError("secret must be bytes")
    s = as_bytes(secret)
    if strict_length and len(s) < SECRET_BYTES:
        raise ValueError(f"secret must be at least {SECRET_BYTES} bytes (got {len(s)})")
    if not s:
        raise ValueError("secret must be non-empty")
    return s


def normalize_commitment(commitment: Union[BytesLike, str]) -> bytes:
    """
    Normalize a commitment into 32 raw bytes.

    Accepts bytes-like (must be 32 bytes) or hex with/without 0x.
    """
    if isinstance(commitment, str):
        c = from_hex(commitment)
    else:
        c = as_bytes(commitment)
    if len(c) != DIGEST_BYTES:
        raise ValueError(f"commitment must be exactly {DIGEST_BYTES} bytes")
    return c


def commit(
    secret: BytesLike,
    *,
    domain_tag: bytes = DOMAIN_COMMIT,
    strict_length: bool = True,
) -> bytes:
    """
    Compute the commitment C = SHA3-256(domain_tag || secret).

    Parameters
    ----------
    secret : bytes
        The secret being committed to. Must be at least SECRET_BYTES long
        unless `strict_length=False`.
    domain_tag : bytes
        Domain separation tag. Defaults to DOMAIN_COMMIT.

    Returns
    -------
    bytes
        32-byte SHA3-256 digest.
    """
    if not domain_tag:
        raise ValueError("domain_tag must be non-empty")
    return tagged_hash(domain_tag, _check_secret(secret, strict_length))


def verify(
    secret: BytesLike,
    commitment: Union[BytesLike, str],
    *,
    domain_tag: bytes = DOMAIN_COMMIT,
    strict_length: bool = True,
) -> bool:
    """
    True iff `secret` opens `commitment`. Constant-time comparison.

    Malformed inputs (wrong types, wrong lengths, bad hex) yield False.
    """
    try:
        c_given = normalize_commitment(commitment)
        c_expected = commit(secret, domain_tag=domain_tag, strict_length=strict_length)
    except (TypeError, ValueError, binascii.Error):
        return False
    return consteq(c_expected, c_given)


@dataclass(frozen=True, slots=True)
class HashCommitment:
    """Commit/verify pair bound to one domain tag."""

    domain_tag: bytes = DOMAIN_COMMIT
    strict_length: bool = True

    def commit(self, secret: BytesLike) -> bytes:
        return commit(secret, domain_tag=self.domain_tag, strict_length=self.strict_length)

    def verify(self, secret: BytesLike, commitment: Union[BytesLike, str]) -> bool:
        return verify(
            secret, commitment, domain_tag=self.domain_tag, strict_length=self.strict_length
        )


DEFAULT_COMMITMENT = HashCommitment()

__all__ = [
    "HashCommitment",
    "DEFAULT_COMMITMENT",
    "commit",
    "verify",
    "normalize_commitment",
]
