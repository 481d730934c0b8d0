"""Unbiased integers from a 32-byte seed."""

from __future__ import annotations

from ..utils.bytes import BytesLike, as_bytes
from ..utils.hash import tagged_hash, u32be

_SPACE = 1 << 256


def uniform_int(seed: BytesLike, n: int, *, domain: bytes, label: int = 0) -> int:
    """
    Return an integer uniform in [0, n) derived from `seed`.

    Draws H(domain || seed || u32be(label) || u32be(counter)) for counter =
    0, 1, ... and rejects values above the largest multiple of n, so there is
    no modulo bias. `label` separates several draws from one seed.
    """
    if n <= 0:
        raise ValueError("n must be positive")
    s = as_bytes(seed)
    limit = _SPACE - (_SPACE % n)
    counter = 0
    while True:
        x = int.from_bytes(tagged_hash(domain, s, u32be(label), u32be(counter)), "big")
        if x < limit:
            return x % n
        counter += 1
