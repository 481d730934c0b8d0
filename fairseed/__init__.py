"""
fairseed — verifiable, bias-resistant shared randomness.

Two engines live here:

- commit → reveal → combine rounds between n parties
  (`fairseed.commit_reveal`), producing a CombinedSeed anyone can recompute;
- Merkle-batched progressive disclosure (`fairseed.merkle`), where a party
  commits to a whole block of secrets with one root and reveals them one at a
  time with inclusion proofs.

`fairseed.verifier` re-derives both from published data alone.

Only light, stable exports are surfaced here to avoid import cycles.
"""

from __future__ import annotations

from .version import __version__

__all__ = ["__version__"]
