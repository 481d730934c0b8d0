import json

import pytest
from prometheus_client import CollectorRegistry
from typer.testing import CliRunner

from fairseed.adapters.ledger import KVLedger
from fairseed.cli import app
from fairseed.commit_reveal.commit import commit
from fairseed.commit_reveal.coordinator import RevealCoordinator
from fairseed.merkle.ledger import BatchLedger
from fairseed.metrics import Metrics
from fairseed.store.sqlite import SQLiteKeyValue
from fairseed.utils.bytes import from_hex, to_hex
from fairseed.version import __version__

runner = CliRunner()


def run(*args):
    return runner.invoke(app, list(args))


def out(result):
    return json.loads(result.stdout)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("FAIRSEED_BATCH_SIZE", "FAIRSEED_ROUND_THRESHOLD", "FAIRSEED_ENTROPY_DEVICE"):
        monkeypatch.delenv(name, raising=False)


def test_version():
    r = run("version")
    assert r.exit_code == 0
    assert out(r) == {"version": __version__}


def test_secret_and_commit():
    r = run("secret", "--count", "3")
    assert r.exit_code == 0, r.output
    items = out(r)["secrets"]
    assert len(items) == 3
    s = from_hex(items[0]["secret"])
    assert len(s) == 32
    assert from_hex(items[0]["commitment"]) == commit(s)

    r = run("commit", items[0]["secret"], "--check", items[0]["commitment"])
    assert r.exit_code == 0
    assert out(r) == {"commitment": items[0]["commitment"], "matches": True}
    r = run("commit", items[0]["secret"], "--check", items[1]["commitment"])
    assert out(r)["matches"] is False


def test_commit_rejects_bad_hex():
    r = run("commit", "0xnothex")
    assert r.exit_code == 2


def test_batch_and_verify_leaf(tmp_path):
    r = run("batch", "--size", "8", "--prove", "3", "--prove", "7")
    assert r.exit_code == 0, r.output
    data = out(r)
    assert data["size"] == 8
    assert [leaf["index"] for leaf in data["leaves"]] == [3, 7]

    leaf = tmp_path / "leaf.json"
    leaf.write_text(json.dumps(data["leaves"][0]))
    r = run("verify-leaf", str(leaf))
    assert r.exit_code == 0
    assert out(r) == {"valid": True}

    forged = dict(data["leaves"][0], index=4)
    leaf.write_text(json.dumps(forged))
    r = run("verify-leaf", str(leaf))
    assert r.exit_code == 1
    assert out(r) == {"valid": False}


def test_batch_index_out_of_range():
    r = run("batch", "--size", "2", "--prove", "2")
    assert r.exit_code == 1
    assert out(r)["error"] == "IndexOutOfRange"


def test_batch_size_from_config_file(tmp_path):
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text("batch:\n  size: 5\n  low_water: 1\n")
    r = run("--config", str(cfg), "batch")
    assert r.exit_code == 0, r.output
    assert out(r)["size"] == 5


@pytest.mark.parametrize("extra", [[], ["--threshold", "2"]])
def test_simulate_then_verify_round(tmp_path, extra):
    r = run("simulate", "--parties", "alice,bob,carol", "--round", "demo", *extra)
    assert r.exit_code == 0, r.output
    transcript = out(r)
    assert transcript["round_id"] == "demo"
    assert transcript["seed"]

    path = tmp_path / "round.json"
    path.write_text(json.dumps(transcript))
    r = run("verify-round", str(path))
    assert r.exit_code == 0, r.output
    res = out(r)
    assert res["ok"] and res["matches"]
    assert res["seed"]["value"] == transcript["seed"]


def test_verify_round_reports_forgery_and_cheater(tmp_path):
    transcript = out(run("simulate", "--parties", "alice,bob"))
    path = tmp_path / "round.json"

    path.write_text(json.dumps(dict(transcript, seed="0x" + "00" * 32)))
    r = run("verify-round", str(path))
    assert r.exit_code == 1
    assert out(r)["matches"] is False

    reveals = dict(transcript["reveals"], bob="0x" + "ab" * 32)
    path.write_text(json.dumps(dict(transcript, reveals=reveals)))
    r = run("verify-round", str(path))
    assert r.exit_code == 1
    err = out(r)
    assert err["error"] == "CommitmentMismatch" and err["party"] == "bob"


def test_verify_round_malformed(tmp_path):
    path = tmp_path / "round.json"
    path.write_text(json.dumps({"commitments": {}}))
    assert run("verify-round", str(path)).exit_code == 2
    path.write_text("not json")
    assert run("verify-round", str(path)).exit_code == 2


def _seed_ledger(path):
    ledger = KVLedger(SQLiteKeyValue(str(path)))
    metrics = Metrics(registry=CollectorRegistry())
    coord = RevealCoordinator(ledger=ledger, metrics=metrics)
    secrets = {"a": b"\x01" * 32, "b": b"\x02" * 32}
    rid = coord.open_round(secrets, round_id="r1")
    for p, s in secrets.items():
        coord.submit_commitment(rid, p, to_hex(commit(s)))
    for p, s in secrets.items():
        coord.submit_reveal(rid, p, s)
    bl = BatchLedger(batch_size=4, ledger=ledger, metrics=metrics)
    t = bl.next_leaf("a")
    bl.prove("a", t.batch_id, t.index)
    ledger.close()
    return t


def test_audit_sqlite_ledger(tmp_path):
    db = tmp_path / "ledger.db"
    t = _seed_ledger(db)

    r = run("audit", str(db))
    assert r.exit_code == 0, r.output
    res = out(r)
    assert res["ok"] and [rep["round_id"] for rep in res["rounds"]] == ["r1"]

    r = run("audit", str(db), "--round", "r1")
    assert r.exit_code == 0

    r = run("audit", str(db), "--batch", t.batch_id, "--index", str(t.index))
    assert r.exit_code == 0
    assert out(r)["valid"] is True

    r = run("audit", str(db), "--round", "ghost")
    assert r.exit_code == 1
    assert out(r)["error"] == "EntryNotFound"


def test_audit_missing_database(tmp_path):
    assert run("audit", str(tmp_path / "none.db")).exit_code == 2
