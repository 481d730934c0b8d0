import dataclasses
from collections import Counter

import pytest
from prometheus_client import CollectorRegistry

from fairseed.apps.cards import deal, shuffle, standard_deck
from fairseed.apps.dice import DiceTable, roll_value, verify_roll
from fairseed.apps.sampling import uniform_int
from fairseed.constants import DOMAIN_DICE
from fairseed.merkle.ledger import BatchLedger
from fairseed.metrics import Metrics
from fairseed.types.core import CombinedSeed

SEED = bytes(range(32))


def test_uniform_int_range_and_determinism():
    vals = [uniform_int(SEED, 6, domain=DOMAIN_DICE, label=i) for i in range(600)]
    assert all(0 <= v < 6 for v in vals)
    assert vals == [uniform_int(SEED, 6, domain=DOMAIN_DICE, label=i) for i in range(600)]
    # Every face shows up; a grossly biased sampler would miss some.
    assert set(Counter(vals)) == set(range(6))
    assert uniform_int(SEED, 1, domain=DOMAIN_DICE) == 0
    with pytest.raises(ValueError):
        uniform_int(SEED, 0, domain=DOMAIN_DICE)


def test_shuffle_is_a_permutation_bound_to_the_seed():
    deck = standard_deck()
    assert len(deck) == 52 and len(set(deck)) == 52
    a = shuffle(SEED, deck)
    assert sorted(a) == sorted(deck)
    assert a == shuffle(SEED, deck)
    assert a != shuffle(bytes(32), deck)
    seed = CombinedSeed(round_id="r", value=SEED, contributors=("a",), scheme="sorted-hash")
    assert shuffle(seed, deck) == a
    with pytest.raises(TypeError):
        shuffle(b"short", deck)


def test_deal():
    hands = deal(SEED, hands=4, per_hand=5)
    assert [len(h) for h in hands] == [5, 5, 5, 5]
    flat = [c for h in hands for c in h]
    assert len(set(flat)) == 20
    with pytest.raises(ValueError):
        deal(SEED, hands=11, per_hand=5)
    with pytest.raises(ValueError):
        deal(SEED, hands=0, per_hand=5)


@pytest.fixture()
def batches():
    return BatchLedger(batch_size=4, metrics=Metrics(registry=CollectorRegistry()))


def test_dice_rolls_verify(batches):
    table = DiceTable(batches, players=["alice", "bob"], sides=6)
    rolls = [table.roll() for _ in range(6)]
    for r in rolls:
        assert 1 <= r.value <= 6
        assert verify_roll(r)
        assert verify_roll(r, roots={t.batch_id: t.root for t in r.tickets})
    # Leaves are never reused across rolls.
    used = [(t.batch_id, t.index) for r in rolls for t in r.tickets]
    assert len(used) == len(set(used))
    assert rolls[0].to_dict()["leaves"][0]["key"] == "alice"


def test_dice_tampering_detected(batches):
    r = DiceTable(batches, players=["alice", "bob"], sides=20).roll()
    other = (r.value % 20) + 1
    assert not verify_roll(dataclasses.replace(r, value=other))
    assert not verify_roll(r, roots={})
    t0 = dataclasses.replace(r.tickets[0], secret=b"\x00" * 32)
    assert not verify_roll(dataclasses.replace(r, tickets=(t0,) + r.tickets[1:]))


def test_dice_arguments(batches):
    with pytest.raises(ValueError):
        DiceTable(batches, players=[])
    with pytest.raises(ValueError):
        DiceTable(batches, players=["a", "a"])
    with pytest.raises(ValueError):
        DiceTable(batches, players=["a"], sides=1)
    with pytest.raises(ValueError):
        roll_value((), 6)
