"""
Card shuffling from a round's combined seed.

One commit-reveal round among all players produces a CombinedSeed; the deck
order follows from it by a Fisher-Yates shuffle whose swap positions come
from `uniform_int`. Anyone holding the published seed re-derives the same
order.
"""

from __future__ import annotations

from typing import List, Sequence, TypeVar, Union

from ..constants import DOMAIN_CARDS
from ..types.core import CombinedSeed
from .sampling import uniform_int

T = TypeVar("T")

RANKS = ("A", "2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K")
SUITS = ("S", "H", "D", "C")


def standard_deck() -> List[str]:
    """52 cards, e.g. "AS", "10H", "KC"."""
    return [r + s for s in SUITS for r in RANKS]


def _seed_bytes(seed: Union[CombinedSeed, bytes]) -> bytes:
    if isinstance(seed, CombinedSeed):
        return seed.value
    if isinstance(seed, (bytes, bytearray)) and len(seed) == 32:
        return bytes(seed)
    raise TypeError("seed must be a CombinedSeed or 32 bytes")


def shuffle(seed: Union[CombinedSeed, bytes], deck: Sequence[T]) -> List[T]:
    out = list(deck)
    s = _seed_bytes(seed)
    for i in range(len(out) - 1, 0, -1):
        j = uniform_int(s, i + 1, domain=DOMAIN_CARDS, label=i)
        out[i], out[j] = out[j], out[i]
    return out


def deal(seed: Union[CombinedSeed, bytes], hands: int, per_hand: int, deck: Sequence[T] = ()) -> List[List[T]]:
    """Shuffle `deck` (standard deck by default) and deal round-robin."""
    cards = shuffle(seed, list(deck) if deck else standard_deck())
    if hands <= 0 or per_hand <= 0:
        raise ValueError("hands and per_hand must be positive")
    if hands * per_hand > len(cards):
        raise ValueError("not enough cards")
    return [[cards[h + k * hands] for k in range(per_hand)] for h in range(hands)]


__all__ = ["standard_deck", "shuffle", "deal", "RANKS", "SUITS"]
