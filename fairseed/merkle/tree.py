"""
fairseed • Merkle batches

A batch commits to N secrets at once. The root is computed when the batch is
built and published before any leaf is used; each secret is later revealed
with an inclusion proof against that root.

Hashing (all SHA3-256)
----------------------
• leaf  = H(DOMAIN_MERKLE_LEAF || secret)
• node  = H(DOMAIN_MERKLE_NODE || left || right)
• root  = H(DOMAIN_MERKLE_ROOT || u64be(N) || top)

Padding rule
------------
An odd node at the end of any layer is paired with itself (duplicate-last).
Builder and verifier both follow this rule. Because the root binds N, the
duplicated position can never be proven as a real leaf: `verify_proof`
rejects every index >= N and every path whose length differs from the depth
of an N-leaf tree.

Key functions
-------------
- MerkleBatch.build(secrets)
- MerkleBatch.prove_index(i)
- verify_proof(leaf_secret, index, proof, root)   (never raises)
"""
from __future__ import annotations

from typing import List, Sequence

from ..constants import (DIGEST_BYTES, DOMAIN_MERKLE_LEAF, DOMAIN_MERKLE_NODE,
                         DOMAIN_MERKLE_ROOT, MAX_BATCH_SIZE)
from ..errors import IndexOutOfRange
from ..types.core import InclusionProof
from ..utils.bytes import as_bytes, consteq
from ..utils.hash import tagged_hash, u64be

Hash = bytes


def leaf_hash(secret: bytes) -> Hash:
    return tagged_hash(DOMAIN_MERKLE_LEAF, secret)


def node_hash(left: Hash, right: Hash) -> Hash:
    if len(left) != DIGEST_BYTES or len(right) != DIGEST_BYTES:
        raise ValueError("left/right must be 32-byte digests")
    return tagged_hash(DOMAIN_MERKLE_NODE, left, right)


def root_hash(size: int, top: Hash) -> Hash:
    return tagged_hash(DOMAIN_MERKLE_ROOT, u64be(size), top)


def tree_depth(size: int) -> int:
    """Number of sibling hashes in a proof for an N-leaf tree."""
    if size <= 0:
        raise ValueError("size must be positive")
    depth = 0
    while size > 1:
        size = (size + 1) // 2
        depth += 1
    return depth


class MerkleBatch:
    """
    An immutable Merkle tree over an ordered sequence of secrets.

    The secrets stay inside the object; only `root`, `size` and proofs are
    meant to be published.
    """

    __slots__ = ("_secrets", "_layers", "_root")

    def __init__(self, secrets: Sequence[bytes]):
        if not secrets:
            raise ValueError("cannot build a batch over an empty secret list")
        if len(secrets) > MAX_BATCH_SIZE:
            raise ValueError(f"batch size exceeds {MAX_BATCH_SIZE}")
        self._secrets: List[bytes] = [as_bytes(s) for s in secrets]
        layer: List[Hash] = [leaf_hash(s) for s in self._secrets]
        layers: List[List[Hash]] = [layer]
        while len(layer) > 1:
            nxt: List[Hash] = []
            for i in range(0, len(layer), 2):
                left = layer[i]
                right = layer[i + 1] if i + 1 < len(layer) else left
                nxt.append(node_hash(left, right))
            layers.append(nxt)
            layer = nxt
        self._layers = layers
        self._root = root_hash(len(self._secrets), layer[0])

    @classmethod
    def build(cls, secrets: Sequence[bytes]) -> "MerkleBatch":
        return cls(secrets)

    @property
    def root(self) -> Hash:
        return self._root

    @property
    def size(self) -> int:
        return len(self._secrets)

    def _check(self, index: int) -> None:
        if not (0 <= index < self.size):
            raise IndexOutOfRange(index=index, size=self.size)

    def secret(self, index: int) -> bytes:
        self._check(index)
        return self._secrets[index]

    def leaf(self, index: int) -> Hash:
        self._check(index)
        return self._layers[0][index]

    def prove_index(self, index: int) -> InclusionProof:
        """
        Sibling path from leaf `index` to the root.

        Raises IndexOutOfRange if index is not in [0, size).
        """
        self._check(index)
        siblings: List[Hash] = []
        idx = index
        for layer in self._layers[:-1]:
            sib = idx ^ 1
            if sib >= len(layer):
                sib = idx  # duplicate-last padding
            siblings.append(layer[sib])
            idx //= 2
        return InclusionProof(index=index, batch_size=self.size, siblings=tuple(siblings))

    def __repr__(self) -> str:
        return f"MerkleBatch(size={self.size}, root={self._root.hex()})"


def verify_proof(leaf_secret: bytes, index: int, proof: InclusionProof, root: Hash) -> bool:
    """
    Recompute the path from `leaf_secret` at `index` and compare with `root`.

    Returns False (never raises) on any mismatch or malformed input: wrong
    index, index >= batch size, wrong path length, corrupted sibling, bad types.
    """
    try:
        if not isinstance(index, int) or isinstance(index, bool):
            return False
        if not isinstance(proof, InclusionProof):
            return False
        if proof.index != index or not (0 <= index < proof.batch_size):
            return False
        if len(proof.siblings) != tree_depth(proof.batch_size):
            return False
        acc = leaf_hash(as_bytes(leaf_secret))
        idx = index
        for sib in proof.siblings:
            sib = as_bytes(sib)
            if idx & 1:
                acc = node_hash(sib, acc)
            else:
                acc = node_hash(acc, sib)
            idx >>= 1
        return consteq(root_hash(proof.batch_size, acc), as_bytes(root))
    except (TypeError, ValueError):
        return False


__all__ = [
    "Hash",
    "MerkleBatch",
    "leaf_hash",
    "node_hash",
    "root_hash",
    "tree_depth",
    "verify_proof",
]
