import pytest

from fairseed.entropy import EntropySource
from fairseed.entropy.events import DigestEventSource
from fairseed.entropy.generator import FileEntropy, OSEntropy, SecretGenerator
from fairseed.errors import EntropyUnavailable


class CountingSource:
    """Deterministic byte source: 0, 1, 2, ... (mod 256)."""

    def __init__(self):
        self.calls = []

    def random_bytes(self, n: int) -> bytes:
        self.calls.append(n)
        return bytes(i % 256 for i in range(n))


class BrokenSource:
    def random_bytes(self, n: int) -> bytes:
        raise OSError("device unplugged")


class ShortSource:
    def random_bytes(self, n: int) -> bytes:
        return b"\x00" * (n - 1)


def test_generator_splits_one_draw_into_secrets():
    src = CountingSource()
    gen = SecretGenerator(src, secret_bytes=32)
    out = gen.generate(3)
    assert src.calls == [96]
    assert [len(s) for s in out] == [32, 32, 32]
    assert out[1][0] == 32 and out[2][0] == 64


def test_default_source_gives_distinct_secrets():
    gen = SecretGenerator()
    a, b = gen.generate(2)
    assert len(a) == 32 and a != b
    assert isinstance(OSEntropy(), EntropySource)


def test_secret_length_floor():
    with pytest.raises(ValueError):
        SecretGenerator(secret_bytes=16)
    assert len(SecretGenerator(secret_bytes=48).generate_one()) == 48


def test_count_must_be_positive():
    with pytest.raises(ValueError):
        SecretGenerator().generate(0)


def test_failing_source_raises_entropy_unavailable():
    with pytest.raises(EntropyUnavailable) as ei:
        SecretGenerator(BrokenSource()).generate_one()
    assert "device unplugged" in ei.value.reason


def test_short_read_raises_entropy_unavailable():
    with pytest.raises(EntropyUnavailable):
        SecretGenerator(ShortSource()).generate(2)


def test_file_entropy_reads_and_runs_dry(tmp_path):
    p = tmp_path / "rng.bin"
    p.write_bytes(bytes(range(64)))
    src = FileEntropy(str(p))
    assert src.random_bytes(40) == bytes(range(40))
    # Each call reopens the file.
    assert src.random_bytes(8) == bytes(range(8))
    with pytest.raises(EntropyUnavailable):
        SecretGenerator(src).generate(3)


def test_missing_device_raises_entropy_unavailable(tmp_path):
    gen = SecretGenerator(FileEntropy(str(tmp_path / "nope")))
    with pytest.raises(EntropyUnavailable):
        gen.generate_one()


def test_event_digest_is_order_independent_and_labelled():
    events = [{"peer": "a", "ts": 10}, b"gossip-1", "sig:abc"]
    src = DigestEventSource("round-1")
    d1 = src.observe(events)
    d2 = src.observe(list(reversed(events)))
    assert d1 == d2 and len(d1) == 32
    assert DigestEventSource("round-2").observe(events) != d1
    assert src.observe(events[:2]) != d1


def test_event_digest_minimum_and_bad_types():
    with pytest.raises(ValueError):
        DigestEventSource(min_events=3).observe([b"a", b"b"])
    with pytest.raises(TypeError):
        DigestEventSource().observe([1.5])  # type: ignore[list-item]
    with pytest.raises(ValueError):
        DigestEventSource(min_events=0)
