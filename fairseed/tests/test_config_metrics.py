import json

import pytest
from prometheus_client import CollectorRegistry

from fairseed.config import DEFAULT, FairseedConfig
from fairseed.constants import DEFAULT_BATCH_SIZE, SCHEME_XOR_HASH
from fairseed.metrics import Metrics


def test_defaults_are_valid():
    DEFAULT.validate()
    assert DEFAULT.secret_bytes == 32
    assert DEFAULT.batch.size == DEFAULT_BATCH_SIZE
    assert DEFAULT.round.threshold is None
    assert json.loads(DEFAULT.to_json())["storage"]["ledger_uri"] == "memory://"


def test_from_env(monkeypatch):
    monkeypatch.setenv("FAIRSEED_SECRET_BYTES", "48")
    monkeypatch.setenv("FAIRSEED_ROUND_SCHEME", SCHEME_XOR_HASH)
    monkeypatch.setenv("FAIRSEED_ROUND_THRESHOLD", "2")
    monkeypatch.setenv("FAIRSEED_ROUND_RETAIN_PARTIAL", "no")
    monkeypatch.setenv("FAIRSEED_BATCH_SIZE", "64")
    monkeypatch.setenv("FAIRSEED_LEDGER_URI", "sqlite:///var/lib/fairseed/ledger.db")
    cfg = FairseedConfig.from_env()
    assert cfg.secret_bytes == 48
    assert cfg.round.scheme == SCHEME_XOR_HASH
    assert cfg.round.threshold == 2
    assert cfg.round.retain_partial is False
    assert cfg.batch.size == 64
    assert cfg.storage.ledger_uri.startswith("sqlite:")


@pytest.mark.parametrize(
    "name,value",
    [
        ("FAIRSEED_SECRET_BYTES", "sixteen"),
        ("FAIRSEED_SECRET_BYTES", "16"),
        ("FAIRSEED_ROUND_SCHEME", "md5"),
        ("FAIRSEED_BATCH_LOW_WATER", "5000"),
        ("FAIRSEED_LEDGER_URI", "redis://x"),
        ("FAIRSEED_ROUND_TIMEOUT_S", "0"),
    ],
)
def test_from_env_rejects_bad_values(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError):
        FairseedConfig.from_env()


def test_from_yaml_file(tmp_path):
    p = tmp_path / "fairseed.yaml"
    p.write_text(
        "secret_bytes: 32\n"
        "transport_timeout_s: 5\n"
        "round:\n"
        "  timeout_s: 30\n"
        "  threshold: 2\n"
        "batch:\n"
        "  size: 256\n"
        "  low_water: 32\n"
    )
    cfg = FairseedConfig.from_file(str(p))
    assert cfg.transport_timeout_s == 5
    assert cfg.round.timeout_s == 30 and cfg.round.threshold == 2
    assert cfg.batch.size == 256 and cfg.batch.low_water == 32


def test_from_json_file_and_errors(tmp_path):
    p = tmp_path / "fairseed.json"
    p.write_text(json.dumps({"storage": {"ledger_uri": "sqlite:///tmp/l.db"}}))
    assert FairseedConfig.from_file(str(p)).storage.ledger_uri == "sqlite:///tmp/l.db"

    bad = tmp_path / "bad.yaml"
    bad.write_text("round: [unclosed\n")
    with pytest.raises(ValueError):
        FairseedConfig.from_file(str(bad))

    listy = tmp_path / "list.json"
    listy.write_text("[1, 2]")
    with pytest.raises(ValueError):
        FairseedConfig.from_file(str(listy))


def test_metrics_private_registry():
    reg = CollectorRegistry()
    m = Metrics(registry=reg)
    m.record_commitment("accepted")
    m.record_commitment("weird")  # folded into "rejected"
    m.record_reveal("late")
    m.record_round("aborted")
    m.record_proof_check(False)
    with m.combine_timer():
        pass
    assert reg.get_sample_value("fairseed_core_commitments_total", {"outcome": "accepted"}) == 1
    assert reg.get_sample_value("fairseed_core_commitments_total", {"outcome": "rejected"}) == 1
    assert reg.get_sample_value("fairseed_core_reveals_total", {"outcome": "late"}) == 1
    assert reg.get_sample_value("fairseed_core_rounds_total", {"status": "aborted"}) == 1
    assert reg.get_sample_value("fairseed_core_proof_checks_total", {"result": "invalid"}) == 1
    assert reg.get_sample_value("fairseed_core_combine_seconds_count") == 1
    with pytest.raises(ValueError):
        m.record_round("paused")
