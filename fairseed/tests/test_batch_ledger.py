import threading

import pytest
from prometheus_client import CollectorRegistry

from fairseed.adapters.ledger import EntryHandle, EntryKind, KVLedger, proof_item
from fairseed.entropy.generator import SecretGenerator
from fairseed.errors import EntropyUnavailable, EntryNotFound, IndexOutOfRange
from fairseed.merkle.ledger import BatchLedger
from fairseed.merkle.tree import verify_proof
from fairseed.metrics import Metrics
from fairseed.store.memory import MemoryKeyValue
from fairseed.utils.bytes import from_hex


class CountingSource:
    def __init__(self):
        self.counter = 0

    def random_bytes(self, n: int) -> bytes:
        out = bytearray()
        while len(out) < n:
            self.counter += 1
            out += self.counter.to_bytes(32, "big")
        return bytes(out[:n])


@pytest.fixture()
def registry():
    return CollectorRegistry()


@pytest.fixture()
def metrics(registry):
    return Metrics(registry=registry)


@pytest.fixture()
def ledger():
    return KVLedger(MemoryKeyValue())


def mk(ledger=None, metrics=None, **kw):
    return BatchLedger(SecretGenerator(CountingSource()), ledger=ledger, metrics=metrics, **kw)


class FlakySource(CountingSource):
    """Counting source that raises OSError while `down` is set."""

    def __init__(self):
        super().__init__()
        self.down = False

    def random_bytes(self, n: int) -> bytes:
        if self.down:
            raise OSError("rng offline")
        return super().random_bytes(n)


def test_issues_in_order_and_proofs_verify(ledger, metrics):
    bl = mk(ledger, metrics, batch_size=4, low_water=0)
    tickets = [bl.next_leaf("alice") for _ in range(4)]
    assert [t.index for t in tickets] == [0, 1, 2, 3]
    assert len({t.batch_id for t in tickets}) == 1
    for t in tickets:
        assert verify_proof(t.secret, t.index, t.proof, t.root)
    assert len({t.secret for t in tickets}) == 4


def test_rotation_after_exhaustion(ledger, metrics):
    bl = mk(ledger, metrics, batch_size=3, low_water=0)
    tickets = [bl.next_leaf("k") for _ in range(7)]
    assert [t.index for t in tickets] == [0, 1, 2, 0, 1, 2, 0]
    ids = [t.batch_id for t in tickets]
    assert ids[0] == ids[2] != ids[3] == ids[5] != ids[6]
    assert tickets[2].root != tickets[3].root != tickets[6].root
    assert bl.current("k").seq == 2
    assert [b.seq for b in bl.batches("k")] == [0, 1, 2]


def test_root_published_before_first_leaf(ledger, metrics):
    bl = mk(ledger, metrics, batch_size=4)
    t = bl.next_leaf("k")
    rec = ledger.fetch(EntryHandle(EntryKind.ROOT, t.batch_id))
    assert from_hex(rec["root"]) == t.root
    assert rec["size"] == 4 and rec["key"] == "k"


def test_low_water_builds_and_publishes_next_root_early(ledger, metrics):
    bl = mk(ledger, metrics, batch_size=8, low_water=2)
    for _ in range(5):
        bl.next_leaf("k")
    assert bl.pending("k") is None
    bl.next_leaf("k")  # 2 remaining
    pending = bl.pending("k")
    assert pending is not None
    assert ledger.find(EntryKind.ROOT, pending.batch_id) is not None
    bl.next_leaf("k")
    bl.next_leaf("k")
    t = bl.next_leaf("k")  # rotates onto the pre-built batch
    assert t.batch_id == pending.batch_id and t.index == 0
    assert t.root == pending.root


def test_entropy_failure_on_first_batch_is_not_sticky(ledger, metrics):
    src = FlakySource()
    bl = BatchLedger(SecretGenerator(src), batch_size=4, low_water=0, ledger=ledger, metrics=metrics)
    src.down = True
    with pytest.raises(EntropyUnavailable):
        bl.next_leaf("k")
    assert bl.keys() == []
    assert bl.current("k") is None
    src.down = False
    assert [bl.next_leaf("k").index for _ in range(2)] == [0, 1]
    assert bl.current("k").seq == 0


def test_failed_pending_build_does_not_skip_an_index(ledger, metrics):
    src = FlakySource()
    bl = BatchLedger(SecretGenerator(src), batch_size=4, low_water=1, ledger=ledger, metrics=metrics)
    issued = [bl.next_leaf("k").index for _ in range(2)]
    src.down = True
    issued.append(bl.next_leaf("k").index)  # next batch would be built here
    assert bl.pending("k") is None
    src.down = False
    issued.append(bl.next_leaf("k").index)  # retried on this call
    assert issued == [0, 1, 2, 3]
    pending = bl.pending("k")
    assert pending is not None and pending.seq == 1
    t = bl.next_leaf("k")
    assert t.batch_id == pending.batch_id and t.index == 0


def test_failed_rotation_consumes_nothing(ledger, metrics):
    src = FlakySource()
    bl = BatchLedger(SecretGenerator(src), batch_size=2, low_water=0, ledger=ledger, metrics=metrics)
    first = bl.next_leaf("k")
    src.down = True
    assert bl.next_leaf("k").index == 1
    with pytest.raises(EntropyUnavailable):
        bl.next_leaf("k")
    src.down = False
    t = bl.next_leaf("k")
    assert t.index == 0 and t.batch_id != first.batch_id
    assert [b.issued for b in bl.batches("k")] == [2, 1]


def test_keys_are_independent(metrics):
    bl = mk(metrics=metrics, batch_size=4)
    a = bl.next_leaf("alice|bob")
    b = bl.next_leaf("carol")
    assert a.index == b.index == 0
    assert a.batch_id != b.batch_id
    assert bl.keys() == ["alice|bob", "carol"]
    assert bl.current("nobody") is None


def test_concurrent_issuers_never_share_a_leaf(metrics):
    bl = mk(metrics=metrics, batch_size=16, low_water=4)
    seen = []
    lock = threading.Lock()

    def worker():
        local = [bl.next_leaf("shared") for _ in range(25)]
        with lock:
            seen.extend((t.batch_id, t.index) for t in local)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()
    assert len(seen) == 200
    assert len(set(seen)) == 200


def test_prove_publishes_issued_leaves_only(ledger, metrics):
    bl = mk(ledger, metrics, batch_size=4)
    t0 = bl.next_leaf("k")
    proof = bl.prove("k", t0.batch_id, 0)
    assert proof == t0.proof
    rec = ledger.fetch(EntryHandle(EntryKind.PROOF, t0.batch_id, proof_item(0)))
    assert from_hex(rec["secret"]) == t0.secret
    with pytest.raises(IndexOutOfRange):
        bl.prove("k", t0.batch_id, 1)
    with pytest.raises(EntryNotFound):
        bl.prove("k", "k/unknown.9", 0)


def test_prove_token_and_retention(metrics):
    bl = mk(metrics=metrics, batch_size=1, low_water=0, retain=2)
    first = bl.next_leaf("k")
    assert bl.prove_token(first.token()) == first.proof
    bl.next_leaf("k")
    bl.next_leaf("k")  # first batch now retired
    with pytest.raises(EntryNotFound):
        bl.prove_token(first.token())
    assert len(bl.batches("k")) == 2


def test_metrics_count_batches_and_leaves(metrics, registry):
    bl = mk(metrics=metrics, batch_size=2, low_water=0)
    for _ in range(5):
        bl.next_leaf("k")
    assert registry.get_sample_value("fairseed_core_leaves_issued_total") == 5
    assert registry.get_sample_value("fairseed_core_batches_generated_total") == 3


def test_bad_parameters():
    with pytest.raises(ValueError):
        BatchLedger(batch_size=0)
    with pytest.raises(ValueError):
        BatchLedger(batch_size=4, low_water=4)
    with pytest.raises(ValueError):
        BatchLedger(batch_size=4, retain=0)
    with pytest.raises(ValueError):
        mk(batch_size=2).next_leaf("")
