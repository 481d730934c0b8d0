"""
fairseed.merkle
===============

Progressive disclosure: commit to a block of secrets with one Merkle root,
then reveal them one by one with inclusion proofs.

  • tree    — MerkleBatch (build / prove_index) and verify_proof
  • ledger  — BatchLedger: per-key sequencing and automatic replenishment
"""

from __future__ import annotations

from .ledger import BatchInfo, BatchLedger
from .tree import MerkleBatch, verify_proof

__all__ = ["MerkleBatch", "verify_proof", "BatchLedger", "BatchInfo"]
