import pytest
from prometheus_client import CollectorRegistry

from fairseed.adapters.ledger import EntryKind, KVLedger
from fairseed.commit_reveal.combine import combine
from fairseed.commit_reveal.commit import commit
from fairseed.commit_reveal.coordinator import RevealCoordinator
from fairseed.entropy.generator import SecretGenerator
from fairseed.errors import (CommitmentMismatch, DuplicateCommitment, EntryNotFound,
                             IncompleteReveals)
from fairseed.merkle.ledger import BatchLedger
from fairseed.metrics import Metrics
from fairseed.store.memory import MemoryKeyValue
from fairseed.types.core import CommitRecord, RevealRecord
from fairseed.types.state import RoundPolicy, RoundStatus
from fairseed.utils.bytes import to_hex
from fairseed.verifier import audit_leaf, audit_round, verify_leaf, verify_round


def sec(fill: int) -> bytes:
    return bytes([fill]) * 32


S = {"a": sec(1), "b": sec(2), "c": sec(3)}
C = {p: commit(s) for p, s in S.items()}


@pytest.fixture()
def registry():
    return CollectorRegistry()


@pytest.fixture()
def metrics(registry):
    return Metrics(registry=registry)


def test_verify_round_recomputes_seed():
    seed = verify_round("r1", C, S)
    assert seed.value == combine(S.values(), round_id="r1")
    assert seed.contributors == ("a", "b", "c")


def test_verify_round_accepts_hex_and_records():
    hex_c = {p: to_hex(c) for p, c in C.items()}
    hex_s = {p: to_hex(s) for p, s in S.items()}
    commits = [CommitRecord(round_id="r1", party=p, commitment=c) for p, c in C.items()]
    reveals = [RevealRecord(round_id="r1", party=p, secret=s) for p, s in S.items()]
    assert verify_round("r1", hex_c, hex_s) == verify_round("r1", commits, reveals)


def test_verify_round_names_the_cheater():
    with pytest.raises(CommitmentMismatch) as ei:
        verify_round("r1", C, {**S, "b": sec(9)})
    assert ei.value.party == "b" and ei.value.reason == "hash-mismatch"
    with pytest.raises(CommitmentMismatch) as ei:
        verify_round("r1", {"a": C["a"]}, {"a": S["a"], "z": sec(7)})
    assert ei.value.reason == "no-commitment"


def test_verify_round_duplicate_commitment():
    with pytest.raises(DuplicateCommitment):
        verify_round("r1", {"a": C["a"], "b": C["a"]}, {"a": S["a"]})


def test_verify_round_quorum():
    partial = {"a": S["a"], "c": S["c"]}
    with pytest.raises(IncompleteReveals) as ei:
        verify_round("r1", C, partial)
    assert ei.value.missing == ("b",)
    seed = verify_round("r1", C, partial, policy=RoundPolicy.k_of_n(2), participants=["a", "b", "c"])
    assert seed.contributors == ("a", "c")


def test_verify_leaf_records_metric(metrics, registry):
    bl = BatchLedger(batch_size=4, metrics=metrics)
    t = bl.next_leaf("k")
    assert verify_leaf(t.root, t.index, t.secret, t.proof, metrics=metrics)
    assert verify_leaf(to_hex(t.root), t.index, to_hex(t.secret), t.proof, metrics=metrics)
    assert not verify_leaf(t.root, t.index, sec(0), t.proof, metrics=metrics)
    assert not verify_leaf("0xnothex", t.index, t.secret, t.proof, metrics=metrics)
    assert registry.get_sample_value("fairseed_core_proof_checks_total", {"result": "valid"}) == 2
    assert registry.get_sample_value("fairseed_core_proof_checks_total", {"result": "invalid"}) == 2


def _run_round(coord, parties, secrets, **kw):
    rid = coord.open_round(parties, **kw)
    for p in parties:
        coord.submit_commitment(rid, p, commit(secrets[p]))
    return rid


def test_audit_combined_round_from_ledger_only(metrics):
    ledger = KVLedger(MemoryKeyValue())
    coord = RevealCoordinator(ledger=ledger, metrics=metrics)
    rid = _run_round(coord, ["a", "b", "c"], S)
    coord.add_entropy(rid, b"event-digest")
    for p in ("c", "a", "b"):
        coord.submit_reveal(rid, p, S[p])
    expected = coord.seed(rid)

    report = audit_round(ledger, rid)
    assert report.status is RoundStatus.COMBINED
    assert report.matches
    assert report.seed == expected
    assert report.to_dict()["published"] == expected.hex()


def test_audit_aborted_round_checks_partial_reveals(metrics):
    ledger = KVLedger(MemoryKeyValue())
    coord = RevealCoordinator(ledger=ledger, metrics=metrics)
    rid = _run_round(coord, ["a", "b", "c"], S)
    coord.submit_reveal(rid, "a", S["a"])
    with pytest.raises(CommitmentMismatch):
        coord.submit_reveal(rid, "b", sec(0x66))
    report = audit_round(ledger, rid)
    assert report.status is RoundStatus.ABORTED
    assert report.matches and report.seed is None
    assert report.verified_reveals == ("a",)
    assert [e.party for e in report.evidence] == ["b"]


def test_audit_detects_a_forged_outcome(metrics):
    ledger = KVLedger(MemoryKeyValue())
    ledger.publish(EntryKind.ROUND, {"round_id": "r", "participants": ["a"], "policy": {}, "scheme": "sorted-hash"})
    ledger.publish(EntryKind.COMMITMENT, {"round_id": "r", "party": "a", "commitment": to_hex(C["a"])})
    ledger.publish(EntryKind.REVEAL, {"round_id": "r", "party": "a", "secret": to_hex(S["a"])})
    forged = {"round_id": "r", "value": to_hex(sec(0xAB)), "contributors": ["a"], "scheme": "sorted-hash"}
    ledger.publish(EntryKind.SEED, {"round_id": "r", "status": "combined", "abort_reason": None, "seed": forged})
    assert not audit_round(ledger, "r").matches


def test_audit_missing_round():
    with pytest.raises(EntryNotFound):
        audit_round(KVLedger(MemoryKeyValue()), "ghost")


def test_audit_leaf(metrics):
    ledger = KVLedger(MemoryKeyValue())
    bl = BatchLedger(SecretGenerator(), batch_size=5, ledger=ledger, metrics=metrics)
    tickets = [bl.next_leaf("k") for _ in range(3)]
    bl.prove("k", tickets[2].batch_id, 2)
    assert audit_leaf(ledger, tickets[2].batch_id, 2, metrics=metrics)
    with pytest.raises(EntryNotFound):
        audit_leaf(ledger, tickets[0].batch_id, 0, metrics=metrics)
