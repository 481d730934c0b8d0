# Copyright (c) fairseed authors.
# SPDX-License-Identifier: MIT
"""
Combiners for revealed secrets.

Each participant's secret has already been checked against its commitment;
the combiner folds the *set* of valid secrets (plus any published
event-derived entropy) into one 32-byte CombinedSeed value.

Both schemes are pure functions of the input *sets*: arrival order and
duplicates never change the output. Both end with a tagged hash, so knowing
all-but-one input reveals nothing about the output before the last input is
known.

Schemes
-------
- ``sorted-hash`` (default):

      ctx = u32be(len(round_id)) || round_id
      H(TAG || ctx || u32be(n) || lp(s_1) || ... || lp(s_n)
              || u32be(m) || lp(e_1) || ... || lp(e_m))

  with secrets s_i and entropy inputs e_j each sorted bytewise, and
  lp(x) = u32be(len(x)) || x.

- ``xor-hash``:

      d_i = H(TAG_X || 0x01 || ctx || lp(s_i))      per secret
      f_j = H(TAG_X || 0x03 || ctx || lp(e_j))      per entropy input
      X   = d_1 ^ ... ^ d_n ^ f_1 ^ ... ^ f_m
      H(TAG_X || 0xFF || ctx || u32be(n) || u32be(m) || X)

Which scheme a round used is recorded in its CombinedSeed so verifiers rerun
the same one.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable, Optional, Tuple, Union

from ..constants import (DEFAULT_SCHEME, DOMAIN_COMBINE, DOMAIN_COMBINE_XOR,
                         SCHEME_SORTED_HASH, SCHEME_XOR_HASH)
from ..utils.bytes import BytesLike, as_bytes
from ..utils.hash import len_prefixed, tagged_hash, u32be

Combiner = Callable[[Tuple[bytes, ...], Tuple[bytes, ...], bytes], bytes]


# -------- helpers --------


def _canonical_set(items: Iterable[BytesLike]) -> Tuple[bytes, ...]:
    return tuple(sorted({as_bytes(x) for x in items}))


def _context(round_id: Optional[Union[str, BytesLike]]) -> bytes:
    if round_id is None:
        return len_prefixed(b"")
    if isinstance(round_id, str):
        return len_prefixed(round_id.encode("utf-8"))
    return len_prefixed(as_bytes(round_id))


def _xor32(a: bytes, b: bytes) -> bytes:
    if len(a) != 32 or len(b) != 32:
        raise ValueError("xor operands must be 32 bytes")
    return (int.from_bytes(a, "big") ^ int.from_bytes(b, "big")).to_bytes(32, "big")


# -------- schemes --------


def _sorted_hash(secrets: Tuple[bytes, ...], extra: Tuple[bytes, ...], ctx: bytes) -> bytes:
    parts = [ctx, u32be(len(secrets))]
    parts.extend(len_prefixed(s) for s in secrets)
    parts.append(u32be(len(extra)))
    parts.extend(len_prefixed(e) for e in extra)
    return tagged_hash(DOMAIN_COMBINE, *parts)


def _xor_hash(secrets: Tuple[bytes, ...], extra: Tuple[bytes, ...], ctx: bytes) -> bytes:
    acc = bytes(32)
    for s in secrets:
        acc = _xor32(acc, tagged_hash(DOMAIN_COMBINE_XOR, b"\x01", ctx, len_prefixed(s)))
    for e in extra:
        acc = _xor32(acc, tagged_hash(DOMAIN_COMBINE_XOR, b"\x03", ctx, len_prefixed(e)))
    return tagged_hash(
        DOMAIN_COMBINE_XOR, b"\xFF", ctx, u32be(len(secrets)), u32be(len(extra)), acc
    )


SCHEMES: Dict[str, Combiner] = {
    SCHEME_SORTED_HASH: _sorted_hash,
    SCHEME_XOR_HASH: _xor_hash,
}


def check_scheme(scheme: str) -> str:
    if scheme not in SCHEMES:
        raise ValueError(f"unknown combine scheme {scheme!r} (known: {sorted(SCHEMES)})")
    return scheme


# -------- public API --------


def combine(
    secrets: Iterable[BytesLike],
    *,
    round_id: Optional[Union[str, BytesLike]] = None,
    scheme: str = DEFAULT_SCHEME,
    extra: Iterable[BytesLike] = (),
) -> bytes:
    """
    Combine revealed secrets into a 32-byte value.

    Parameters
    ----------
    secrets : iterable of bytes
        Verified secrets. Treated as a set.
    round_id : str | bytes, optional
        Binds the output to a round so identical secrets in two rounds do not
        yield the same seed.
    scheme : str
        One of SCHEMES.
    extra : iterable of bytes
        Published secondary entropy (e.g. an event digest). Treated as a set.

    Raises
    ------
    ValueError if no secrets are provided or the scheme is unknown.
    """
    fn = SCHEMES[check_scheme(scheme)]
    ss = _canonical_set(secrets)
    if not ss:
        raise ValueError("combine requires at least one secret")
    return fn(ss, _canonical_set(extra), _context(round_id))


__all__ = [
    "SCHEMES",
    "check_scheme",
    "combine",
]
