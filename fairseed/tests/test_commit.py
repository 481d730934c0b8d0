import hashlib

import pytest

from fairseed.commit_reveal.commit import (DEFAULT_COMMITMENT, HashCommitment, commit,
                                           normalize_commitment, verify)
from fairseed.constants import DOMAIN_COMMIT


def hb(n: int, fill: int = 0x11) -> bytes:
    return bytes([fill]) * n


def test_commit_is_sha3_of_tag_and_secret():
    s = hb(32)
    assert commit(s) == hashlib.sha3_256(DOMAIN_COMMIT + s).digest()
    assert len(commit(s)) == 32


def test_verify_accepts_opening_and_hex_forms():
    s = hb(32, 0x42)
    c = commit(s)
    assert verify(s, c)
    assert verify(s, "0x" + c.hex())
    assert verify(s, c.hex())
    assert verify(bytearray(s), memoryview(c))


def test_verify_rejects_wrong_secret_and_malformed_commitments():
    s = hb(32, 0x01)
    c = commit(s)
    assert not verify(hb(32, 0x02), c)
    # Malformed inputs never raise
    assert not verify(s, c[:31])
    assert not verify(s, "0xzz")
    assert not verify(s, "abc")
    assert not verify("not-bytes", c)  # type: ignore[arg-type]
    assert not verify(hb(8), commit(hb(8), strict_length=False))


def test_short_secret_rejected_unless_relaxed():
    with pytest.raises(ValueError):
        commit(hb(16))
    relaxed = HashCommitment(strict_length=False)
    c = relaxed.commit(hb(16))
    assert relaxed.verify(hb(16), c)


def test_longer_secrets_are_allowed():
    s = hb(64, 0x7F)
    assert DEFAULT_COMMITMENT.verify(s, DEFAULT_COMMITMENT.commit(s))


def test_empty_and_non_bytes_secret_rejected():
    with pytest.raises(ValueError):
        commit(b"", strict_length=False)
    with pytest.raises(TypeError):
        commit("a" * 32)  # type: ignore[arg-type]


def test_domain_tag_separates_commitments():
    s = hb(32)
    other = HashCommitment(domain_tag=b"other.app.v1")
    assert other.commit(s) != DEFAULT_COMMITMENT.commit(s)
    assert not DEFAULT_COMMITMENT.verify(s, other.commit(s))
    with pytest.raises(ValueError):
        commit(s, domain_tag=b"")


def test_normalize_commitment():
    c = commit(hb(32))
    assert normalize_commitment(c) == c
    assert normalize_commitment("0x" + c.hex()) == c
    with pytest.raises(ValueError):
        normalize_commitment(b"\x00" * 31)
