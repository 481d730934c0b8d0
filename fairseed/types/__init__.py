"""
fairseed — types package

Typed primitives and dataclasses shared across fairseed:

  • core   — RoundId, PartyId, BatchId, CommitRecord, RevealRecord,
             InclusionProof, LeafTicket, CapabilityToken, CombinedSeed
  • state  — RoundStatus, RoundPolicy, RoundView, RoundState

Re-exported here for convenience:
    from fairseed.types import RoundPolicy, CombinedSeed
"""

from __future__ import annotations

from .core import (BatchId, CapabilityToken, CombinedSeed, CommitRecord,
                   InclusionProof, LeafTicket, PartyId, RevealRecord, RoundId)
from .state import RoundPolicy, RoundState, RoundStatus, RoundView

__all__ = [
    "RoundId",
    "PartyId",
    "BatchId",
    "CommitRecord",
    "RevealRecord",
    "InclusionProof",
    "LeafTicket",
    "CapabilityToken",
    "CombinedSeed",
    "RoundStatus",
    "RoundPolicy",
    "RoundView",
    "RoundState",
]
