import asyncio

import pytest

from fairseed.adapters.ledger import EntryKind, KVLedger
from fairseed.commit_reveal.combine import combine
from fairseed.entropy.generator import SecretGenerator
from fairseed.errors import IncompleteReveals
from fairseed.protocol import LedgerSession
from fairseed.store.memory import MemoryKeyValue
from fairseed.verifier import audit_round


class FixedSource:
    def __init__(self, fill: int):
        self.fill = fill

    def random_bytes(self, n: int) -> bytes:
        return bytes([self.fill]) * n


PARTIES = ["alice", "bob", "carol"]


def sessions(ledger, **kw):
    return [
        LedgerSession(
            ledger,
            me=p,
            participants=PARTIES,
            generator=SecretGenerator(FixedSource(i + 1)),
            poll_interval_s=0.005,
            **kw,
        )
        for i, p in enumerate(PARTIES)
    ]


@pytest.mark.asyncio
async def test_everyone_computes_the_same_seed():
    ledger = KVLedger(MemoryKeyValue())
    seeds = await asyncio.gather(*(s.run("table-9") for s in sessions(ledger)))
    assert len({s.value for s in seeds}) == 1
    expected = combine([bytes([i]) * 32 for i in (1, 2, 3)], round_id="table-9")
    assert seeds[0].value == expected
    report = audit_round(ledger, "table-9")
    assert report.matches


@pytest.mark.asyncio
async def test_missing_party_times_out():
    ledger = KVLedger(MemoryKeyValue())
    alice, bob, _carol = sessions(ledger, timeout_s=0.05)
    await alice.commit("r")
    await bob.commit("r")
    with pytest.raises(IncompleteReveals) as ei:
        await alice.reveal("r")
    assert ei.value.missing == ("carol",)
    assert list(ledger.iter_kind(EntryKind.REVEAL, "r")) == []


@pytest.mark.asyncio
async def test_reveal_requires_own_commitment():
    ledger = KVLedger(MemoryKeyValue())
    alice = sessions(ledger)[0]
    with pytest.raises(ValueError):
        await alice.reveal("r")
    await alice.commit("r")
    with pytest.raises(ValueError):
        await alice.commit("r")


def test_session_arguments():
    ledger = KVLedger(MemoryKeyValue())
    with pytest.raises(ValueError):
        LedgerSession(ledger, me="mallory", participants=PARTIES)
    with pytest.raises(ValueError):
        LedgerSession(ledger, me="alice", participants=PARTIES, timeout_s=0)
