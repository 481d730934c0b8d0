"""
Dice rolling with progressive disclosure.

Every player owns a stream of pre-committed secrets (a key in a
`BatchLedger`). A roll consumes the next leaf of each player's stream and
combines the revealed secrets, so no single player can choose the outcome:
each secret was fixed by its published batch root before the roll.

    table = DiceTable(batches, players=["alice", "bob"], sides=6)
    r = table.roll()
    verify_roll(r, roots={t.batch_id: t.root for t in r.tickets})
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from ..commit_reveal.combine import combine
from ..constants import DOMAIN_DICE
from ..merkle.ledger import BatchLedger
from ..types.core import LeafTicket
from ..utils.bytes import consteq, to_hex
from ..verifier import verify_leaf
from .sampling import uniform_int


def _context(tickets: Sequence[LeafTicket]) -> str:
    return "|".join(sorted(f"{t.batch_id}#{t.index}" for t in tickets))


def roll_value(tickets: Sequence[LeafTicket], sides: int) -> int:
    """Face in [1, sides] determined by the tickets' secrets and positions."""
    if not tickets:
        raise ValueError("a roll needs at least one leaf")
    if sides < 2:
        raise ValueError("a die needs at least two sides")
    seed = combine([t.secret for t in tickets], round_id=_context(tickets))
    return uniform_int(seed, sides, domain=DOMAIN_DICE) + 1


@dataclass(frozen=True)
class DiceRoll:
    sides: int
    value: int
    tickets: Tuple[LeafTicket, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sides": self.sides,
            "value": self.value,
            "leaves": [
                {
                    "key": t.key,
                    "batch_id": t.batch_id,
                    "root": to_hex(t.root),
                    "index": t.index,
                    "secret": to_hex(t.secret),
                    "proof": t.proof.to_dict(),
                }
                for t in self.tickets
            ],
        }


class DiceTable:
    """Rolls dice for a fixed set of players, one leaf per player per roll."""

    def __init__(self, batches: BatchLedger, *, players: Sequence[str], sides: int = 6) -> None:
        if not players:
            raise ValueError("at least one player is required")
        if len(set(players)) != len(players):
            raise ValueError("players must be unique")
        if sides < 2:
            raise ValueError("a die needs at least two sides")
        self.batches = batches
        self.players = tuple(players)
        self.sides = sides

    def roll(self) -> DiceRoll:
        tickets = tuple(self.batches.next_leaf(p) for p in self.players)
        return DiceRoll(sides=self.sides, value=roll_value(tickets, self.sides), tickets=tickets)


def verify_roll(roll: DiceRoll, *, roots: Optional[Mapping[str, bytes]] = None) -> bool:
    """
    Re-check a roll from its public data.

    Every leaf must verify against its root (and, when `roots` is given, that
    root must be the one published for its batch), and the face must follow
    from the revealed secrets.
    """
    for t in roll.tickets:
        if roots is not None:
            published = roots.get(t.batch_id)
            if published is None or not consteq(published, t.root):
                return False
        if not verify_leaf(t.root, t.index, t.secret, t.proof):
            return False
    try:
        return roll_value(roll.tickets, roll.sides) == roll.value
    except ValueError:
        return False


__all__ = ["DiceTable", "DiceRoll", "roll_value", "verify_roll"]
