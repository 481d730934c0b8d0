"""
fairseed.protocol
=================

The capability set every way of running a round offers, and the
ledger-pushed implementation of it.

`RandomnessProtocol` is what applications code against:

    c    = await proto.commit(round_id)    # draw + publish my commitment
    s    = await proto.reveal(round_id)    # after *all* commitments are visible
    seed = await proto.combine(round_id)   # after all reveals are visible

Two independent implementations exist:

- :class:`fairseed.adapters.transport.PeerSession` — n2n, messages exchanged
  directly between two parties over a `Transport`.
- :class:`LedgerSession` — DHT-style: every party pushes its records to a
  shared `Ledger` and polls it for everyone else's. Nobody coordinates; the
  ledger's ordering rules (no reveal before its commitment) and the
  immutability of entries do the work. Every party computes the same seed
  and publishes it; identical publications are idempotent.

LedgerSession only runs n-of-n rounds: with a threshold, two parties polling
at different moments could combine different subsets of reveals.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, Optional, Protocol

from .adapters.ledger import EntryKind, Ledger
from .commit_reveal.combine import check_scheme
from .commit_reveal.commit import DEFAULT_COMMITMENT, HashCommitment
from .constants import DEFAULT_SCHEME
from .entropy.generator import SecretGenerator
from .errors import IncompleteReveals
from .types.core import CombinedSeed
from .types.state import RoundPolicy, RoundStatus
from .utils.bytes import from_hex, to_hex
from .verifier import verify_round

logger = logging.getLogger(__name__)


class RandomnessProtocol(Protocol):
    """Common commit / reveal / combine capability set."""

    async def commit(self, round_id: str) -> bytes: ...
    async def reveal(self, round_id: str) -> bytes: ...
    async def combine(self, round_id: str) -> CombinedSeed: ...


class LedgerSession:
    """
    One party's view of ledger-pushed n-of-n rounds.

    Args:
        ledger:        shared ledger sink all parties publish to.
        me:            this party's identifier (must be in `participants`).
        participants:  every party of the round.
        generator:     source of this party's secrets.
        timeout_s:     how long to wait for the other parties at each step.
        poll_interval_s: ledger polling period.
        scheme:        combine scheme recorded in the round descriptor.
    """

    def __init__(
        self,
        ledger: Ledger,
        *,
        me: str,
        participants: Iterable[str],
        generator: Optional[SecretGenerator] = None,
        commitment: HashCommitment = DEFAULT_COMMITMENT,
        timeout_s: float = 10.0,
        poll_interval_s: float = 0.05,
        scheme: str = DEFAULT_SCHEME,
    ) -> None:
        parts = sorted(set(participants))
        if me not in parts:
            raise ValueError(f"{me!r} is not one of the participants")
        if timeout_s <= 0 or poll_interval_s <= 0:
            raise ValueError("timeout_s and poll_interval_s must be positive")
        self.ledger = ledger
        self.me = me
        self.participants = tuple(parts)
        self.generator = generator or SecretGenerator()
        self.commitment = commitment
        self.timeout_s = float(timeout_s)
        self.poll_interval_s = float(poll_interval_s)
        self.scheme = check_scheme(scheme)
        self._secrets: Dict[str, bytes] = {}

    def _collect(self, kind: EntryKind, round_id: str, field: str) -> Dict[str, bytes]:
        return {
            d["party"]: from_hex(d[field])
            for d in self.ledger.iter_kind(kind, round_id)
            if d.get("party") in self.participants
        }

    async def _wait_all(self, kind: EntryKind, round_id: str, field: str) -> Dict[str, bytes]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout_s
        while True:
            got = self._collect(kind, round_id, field)
            if len(got) == len(self.participants):
                return got
            if loop.time() >= deadline:
                missing = tuple(p for p in self.participants if p not in got)
                logger.warning("ledger session %s: round %s timed out waiting for %s of %s", self.me, round_id, kind.value, missing)
                raise IncompleteReveals(
                    round_id=round_id,
                    required=len(self.participants),
                    got=len(got),
                    missing=missing,
                )
            await asyncio.sleep(self.poll_interval_s)

    async def commit(self, round_id: str) -> bytes:
        if round_id in self._secrets:
            raise ValueError(f"already committed to round {round_id}")
        self.ledger.publish(
            EntryKind.ROUND,
            {
                "round_id": round_id,
                "participants": list(self.participants),
                "policy": RoundPolicy.n_of_n().to_dict(),
                "scheme": self.scheme,
            },
        )
        secret = self.generator.generate_one()
        c = self.commitment.commit(secret)
        self.ledger.publish(EntryKind.COMMITMENT, {"round_id": round_id, "party": self.me, "commitment": to_hex(c)})
        self._secrets[round_id] = secret
        logger.debug("ledger session %s: committed to %s", self.me, round_id)
        return c

    async def reveal(self, round_id: str) -> bytes:
        secret = self._secrets.get(round_id)
        if secret is None:
            raise ValueError(f"no commitment made for round {round_id}")
        await self._wait_all(EntryKind.COMMITMENT, round_id, "commitment")
        self.ledger.publish(EntryKind.REVEAL, {"round_id": round_id, "party": self.me, "secret": to_hex(secret)})
        return secret

    async def combine(self, round_id: str) -> CombinedSeed:
        reveals = await self._wait_all(EntryKind.REVEAL, round_id, "secret")
        commitments = self._collect(EntryKind.COMMITMENT, round_id, "commitment")
        entropy = [from_hex(d["data"]) for d in self.ledger.iter_kind(EntryKind.ENTROPY, round_id)]
        seed = verify_round(
            round_id,
            commitments,
            reveals,
            participants=self.participants,
            scheme=self.scheme,
            extra_entropy=entropy,
            commitment=self.commitment,
        )
        self.ledger.publish(
            EntryKind.SEED,
            {"round_id": round_id, "status": RoundStatus.COMBINED.value, "abort_reason": None, "seed": seed.to_dict()},
        )
        self._secrets.pop(round_id, None)
        logger.info("ledger session %s: round %s combined seed=%s", self.me, round_id, seed.hex())
        return seed

    async def run(self, round_id: str) -> CombinedSeed:
        await self.commit(round_id)
        await self.reveal(round_id)
        return await self.combine(round_id)


__all__ = ["RandomnessProtocol", "LedgerSession"]
