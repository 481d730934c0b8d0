"""
Two-party (n2n) transport and the peer session running a round over it.

This module wires the commit-reveal protocol to a point-to-point link:
- `Transport` is the tiny async protocol a link must offer
  (`send(party, data)` / `receive() -> (sender, data)`).
- `MemoryTransport.pair(a, b)` returns two connected in-process endpoints
  backed by asyncio queues (tests, local games, the CLI demo).
- `PeerSession` runs one n-of-n round between `me` and `peer`: each side keeps
  its own `RevealCoordinator`, so the "every commitment before any reveal"
  rule is enforced locally on both ends.

Delivery failures are liveness problems, not protocol violations: if the peer
stays silent past the per-message timeout, the local round is aborted and
`IncompleteReveals` is raised. A peer that *does* answer with a bad reveal or
a copied commitment surfaces as the coordinator's `ProtocolViolation`.

Encoding
--------
Messages are small JSON objects (stable separators); binary fields travel as
0x-hex:

    {"type": "commit", "v": 1, "round_id": "...", "party": "...", "commitment": "0x.."}
    {"type": "reveal", "v": 1, "round_id": "...", "party": "...", "secret": "0x.."}

Usage
-----
    ta, tb = MemoryTransport.pair("alice", "bob")
    alice = PeerSession(ta, me="alice", peer="bob")
    bob = PeerSession(tb, me="bob", peer="alice")
    sa, sb = await asyncio.gather(alice.run("game-7"), bob.run("game-7"))
    assert sa.value == sb.value
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

from ..commit_reveal.commit import DEFAULT_COMMITMENT, HashCommitment
from ..commit_reveal.coordinator import RevealCoordinator
from ..entropy.generator import SecretGenerator
from ..errors import IncompleteReveals
from ..types.core import CombinedSeed
from ..types.state import RoundStatus, RoundView
from ..utils.bytes import from_hex, to_hex

logger = logging.getLogger(__name__)

MSG_VERSION = 1
DEFAULT_MESSAGE_TIMEOUT_S = 10.0


# ---- Message types ----
@dataclass
class CommitMsg:
    type: str  # "commit"
    v: int
    round_id: str
    party: str
    commitment: str  # 0x-hex (32 bytes)


@dataclass
class RevealMsg:
    type: str  # "reveal"
    v: int
    round_id: str
    party: str
    secret: str  # 0x-hex


def encode_message(msg: Any) -> bytes:
    return json.dumps(asdict(msg), separators=(",", ":"), sort_keys=True).encode("utf-8")


def decode_message(data: bytes) -> Any:
    """Decode a frame into CommitMsg / RevealMsg. Raises ValueError on anything else."""
    try:
        obj = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError("undecodable frame") from e
    if not isinstance(obj, dict):
        raise ValueError("frame must be a JSON object")
    try:
        if obj.get("type") == "commit":
            return CommitMsg(**obj)
        if obj.get("type") == "reveal":
            return RevealMsg(**obj)
    except TypeError as e:
        raise ValueError(f"malformed {obj.get('type')} frame") from e
    raise ValueError(f"unknown frame type {obj.get('type')!r}")


# ---- Protocol for external links ----
class Transport(Protocol):
    async def send(self, party: str, data: bytes) -> None: ...
    async def receive(self) -> Tuple[str, bytes]: ...


class MemoryTransport:
    """One endpoint of an in-process link. Build connected endpoints with `pair()`."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.inbox: "asyncio.Queue[Tuple[str, bytes]]" = asyncio.Queue()
        self._peers: Dict[str, "MemoryTransport"] = {}
        self.sent = 0
        self.dropping = False

    @classmethod
    def pair(cls, a: str, b: str) -> Tuple["MemoryTransport", "MemoryTransport"]:
        ta, tb = cls(a), cls(b)
        ta._peers[b] = tb
        tb._peers[a] = ta
        return ta, tb

    async def send(self, party: str, data: bytes) -> None:
        peer = self._peers.get(party)
        if peer is None:
            raise ConnectionError(f"{self.name}: no link to {party!r}")
        self.sent += 1
        if self.dropping:
            logger.debug("transport %s: dropping frame to %s", self.name, party)
            return
        await peer.inbox.put((self.name, bytes(data)))

    async def receive(self) -> Tuple[str, bytes]:
        return await self.inbox.get()


# ---- Peer session ----
class PeerSession:
    """
    Runs n-of-n commit-reveal rounds between `me` and `peer` over a transport.

    Implements :class:`fairseed.protocol.RandomnessProtocol`.

    Args:
        transport:   link to the peer.
        me, peer:    party identifiers.
        generator:   source of this side's secrets.
        timeout_s:   max wait for each expected peer message.
        round_timeout_s: deadline of the local round (defaults to 4x timeout_s).
        coordinator: local coordinator (a fresh one by default); pass one with
                     a ledger to publish the round.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        me: str,
        peer: str,
        generator: Optional[SecretGenerator] = None,
        commitment: HashCommitment = DEFAULT_COMMITMENT,
        timeout_s: float = DEFAULT_MESSAGE_TIMEOUT_S,
        round_timeout_s: Optional[float] = None,
        coordinator: Optional[RevealCoordinator] = None,
    ) -> None:
        if me == peer:
            raise ValueError("me and peer must differ")
        if timeout_s <= 0:
            raise ValueError("timeout_s must be positive")
        self.transport = transport
        self.me = me
        self.peer = peer
        self.generator = generator or SecretGenerator()
        self.commitment = commitment
        self.timeout_s = float(timeout_s)
        self.round_timeout_s = float(round_timeout_s) if round_timeout_s is not None else 4 * self.timeout_s
        self.coordinator = coordinator or RevealCoordinator(commitment=commitment)
        self._secrets: Dict[str, bytes] = {}

    # ---- internals ----

    def _ensure_round(self, round_id: str) -> None:
        if round_id not in self.coordinator.rounds():
            self.coordinator.open_round(
                [self.me, self.peer], round_id=round_id, timeout_s=self.round_timeout_s
            )

    def _dispatch(self, sender: str, data: bytes, round_id: str) -> None:
        if sender != self.peer:
            logger.warning("session %s: frame from unexpected sender %r ignored", self.me, sender)
            return
        try:
            msg = decode_message(data)
        except ValueError as e:
            logger.warning("session %s: bad frame from %s: %s", self.me, sender, e)
            return
        if msg.party != self.peer or msg.round_id != round_id:
            logger.warning(
                "session %s: frame for party=%s round=%s ignored (expected %s/%s)",
                self.me, msg.party, msg.round_id, self.peer, round_id,
            )
            return
        if isinstance(msg, CommitMsg):
            self.coordinator.submit_commitment(round_id, self.peer, msg.commitment)
        else:
            self.coordinator.submit_reveal(round_id, self.peer, from_hex(msg.secret))

    async def _pump(self, round_id: str, until: Callable[[RoundView], bool]) -> RoundView:
        """Feed peer frames into the local round until `until(view)` holds."""
        while True:
            view = self.coordinator.round(round_id)
            if until(view):
                return view
            if view.status is RoundStatus.ABORTED:
                raise IncompleteReveals(
                    round_id=round_id,
                    required=2,
                    got=len(view.reveals),
                    missing=tuple(p for p in view.participants if p not in dict(view.reveals)),
                )
            try:
                sender, data = await asyncio.wait_for(self.transport.receive(), timeout=self.timeout_s)
            except asyncio.TimeoutError:
                logger.warning("session %s: no message from %s within %.1fs", self.me, self.peer, self.timeout_s)
                self.coordinator.abort(round_id, f"timeout waiting for {self.peer}")
                continue
            self._dispatch(sender, data, round_id)

    # ---- RandomnessProtocol ----

    async def commit(self, round_id: str) -> bytes:
        """Draw this side's secret, record and send its commitment."""
        self._ensure_round(round_id)
        if round_id in self._secrets:
            raise ValueError(f"already committed to round {round_id}")
        secret = self.generator.generate_one()
        c = self.commitment.commit(secret)
        self.coordinator.submit_commitment(round_id, self.me, c)
        self._secrets[round_id] = secret
        await self.transport.send(
            self.peer, encode_message(CommitMsg("commit", MSG_VERSION, round_id, self.me, to_hex(c)))
        )
        return c

    async def reveal(self, round_id: str) -> bytes:
        """Wait for the peer's commitment, then record and send this side's secret."""
        secret = self._secrets.get(round_id)
        if secret is None:
            raise ValueError(f"no commitment made for round {round_id}")
        await self._pump(round_id, lambda v: v.status is RoundStatus.AWAITING_REVEAL)
        self.coordinator.submit_reveal(round_id, self.me, secret)
        await self.transport.send(
            self.peer, encode_message(RevealMsg("reveal", MSG_VERSION, round_id, self.me, to_hex(secret)))
        )
        return secret

    async def combine(self, round_id: str) -> CombinedSeed:
        """Wait for the peer's reveal and return the combined seed."""
        view = await self._pump(round_id, lambda v: v.status is RoundStatus.COMBINED)
        self._secrets.pop(round_id, None)
        assert view.seed is not None
        return view.seed

    async def run(self, round_id: str) -> CombinedSeed:
        await self.commit(round_id)
        await self.reveal(round_id)
        return await self.combine(round_id)


__all__ = [
    "Transport",
    "MemoryTransport",
    "PeerSession",
    "CommitMsg",
    "RevealMsg",
    "encode_message",
    "decode_message",
]
