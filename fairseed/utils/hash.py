# Copyright (c) fairseed authors.
# SPDX-License-Identifier: MIT
"""
fairseed.utils.hash
===================

Thin SHA3 helpers plus domain-separated hashing used across fairseed.
Sticks to Python's stdlib `hashlib` (SHA3-256).

Key pieces
----------
- :func:`sha3_256`: raw one-shot wrapper.
- :func:`tagged_hash`: ``SHA3-256(tag || part_0 || part_1 ...)`` for fixed-width
  parts where the layout is already unambiguous (Merkle nodes, commitments).
- :func:`dsha3_256`: domain-separated hash of arbitrary, TLV-encoded parts, for
  variable-shape inputs (event digests, round contexts).
- :func:`u32be`, :func:`u64be`, :func:`len_prefixed`: small encoders.
"""

from __future__ import annotations

from hashlib import sha3_256 as _sha3_256
from typing import Any, Iterable

from ..constants import DOMAIN_PREFIX

__all__ = [
    "sha3_256",
    "tagged_hash",
    "dsha3_256",
    "u32be",
    "u64be",
    "len_prefixed",
    "encode_parts",
]


def sha3_256(data: bytes) -> bytes:
    """Return SHA3-256(data)."""
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError("sha3_256 expects a bytes-like object")
    return _sha3_256(bytes(data)).digest()


def tagged_hash(tag: bytes, *parts: bytes) -> bytes:
    """SHA3-256 over ``tag || parts...`` (no length framing)."""
    h = _sha3_256()
    h.update(tag)
    for p in parts:
        h.update(p)
    return h.digest()


def u32be(n: int) -> bytes:
    if n < 0 or n > 0xFFFFFFFF:
        raise ValueError("value out of range for u32")
    return n.to_bytes(4, "big")


def u64be(n: int) -> bytes:
    if n < 0 or n >= 1 << 64:
        raise ValueError("value out of range for u64")
    return n.to_bytes(8, "big")


def len_prefixed(b: bytes) -> bytes:
    """u32 big-endian length followed by the bytes."""
    return u32be(len(b)) + b


# --------------------------------
# Stable, self-delimiting encoding
# --------------------------------

_TT_BYTES = b"\x01"
_TT_STR = b"\x02"
_TT_INT = b"\x03"
_TT_BOOL = b"\x04"
_TT_SEQ = b"\x05"
_TT_NONE = b"\x06"


def _varint_u(n: int) -> bytes:
    """LEB128 unsigned varint."""
    if n < 0:
        raise ValueError("varint only supports non-negative integers")
    out = bytearray()
    while True:
        b = n & 0x7F
        n >>= 7
        if n:
            out.append(b | 0x80)
        else:
            out.append(b)
            break
    return bytes(out)


def _int_to_be(n: int) -> bytes:
    if n < 0:
        raise ValueError("only non-negative integers are supported")
    if n == 0:
        return b"\x00"
    return n.to_bytes((n.bit_length() + 7) // 8, "big")


def _encode_one(x: Any) -> bytes:
    if x is None:
        return _TT_NONE
    if isinstance(x, (bytes, bytearray, memoryview)):
        b = bytes(x)
        return _TT_BYTES + _varint_u(len(b)) + b
    if isinstance(x, str):
        b = x.encode("utf-8")
        return _TT_STR + _varint_u(len(b)) + b
    if isinstance(x, bool):
        return _TT_BOOL + (b"\x01" if x else b"\x00")
    if isinstance(x, int):
        b = _int_to_be(x)
        return _TT_INT + _varint_u(len(b)) + b
    if isinstance(x, (tuple, list)):
        items = b"".join(_encode_one(v) for v in x)
        return _TT_SEQ + _varint_u(len(items)) + items
    raise TypeError(f"unsupported part type: {type(x)!r}")


def encode_parts(parts: Iterable[Any]) -> bytes:
    enc_items = [_encode_one(p) for p in parts]
    payload = b"".join(enc_items)
    return _varint_u(len(enc_items)) + _varint_u(len(payload)) + payload


def dsha3_256(domain: bytes | str, *parts: Any) -> bytes:
    """
    Domain-separated SHA3-256 over *parts*:

        SHA3-256( DOMAIN_PREFIX || varint(len(tag)) || tag || '|' || ENCODE(parts) )
    """
    tag = domain if isinstance(domain, bytes) else domain.encode("ascii", "strict")
    h = _sha3_256()
    h.update(DOMAIN_PREFIX + _varint_u(len(tag)) + tag + b"|")
    h.update(encode_parts(parts))
    return h.digest()
