# Copyright (c) fairseed authors.
# SPDX-License-Identifier: MIT
"""
fairseed.commit_reveal
======================

Commit-reveal combination protocol.

Typical flow:
    1) Every participant draws a secret and submits H(tag || secret) while the
       round is **open**.
    2) Once all commitments are recorded, participants reveal their secrets.
    3) Valid reveals (at quorum) are combined into one CombinedSeed.

Submodules:
    - commit.py      : HashCommitment (commit / verify).
    - combine.py     : order-independent combiners and the scheme registry.
    - coordinator.py : RevealCoordinator, the round state machine.
    - evidence.py    : misbehavior records and the pluggable evidence sink.
"""

from __future__ import annotations

from .combine import SCHEMES, combine
from .commit import DEFAULT_COMMITMENT, HashCommitment, commit, verify
from .coordinator import RevealCoordinator

__all__ = [
    "SCHEMES",
    "combine",
    "HashCommitment",
    "DEFAULT_COMMITMENT",
    "commit",
    "verify",
    "RevealCoordinator",
]
