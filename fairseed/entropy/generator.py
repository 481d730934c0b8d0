"""
fairseed.entropy.generator
==========================

Secret generation on top of pluggable `EntropySource` implementations.

Sources included
----------------
- OSEntropy   : the operating system CSPRNG via :func:`secrets.token_bytes`.
- FileEntropy : read bytes from a character device or FIFO (e.g. a hardware
                RNG exposed as /dev/hwrng).

:class:`SecretGenerator` draws fixed-length secrets from one source. If the
source cannot be sampled, generation fails with `EntropyUnavailable`; there
is no fallback to another source.
"""

from __future__ import annotations

import io
import logging
import secrets
import threading
from typing import List, Optional

from ..constants import SECRET_BYTES
from ..errors import EntropyUnavailable
from . import EntropySource

logger = logging.getLogger(__name__)


def _read_exact(f: io.BufferedReader, n: int, *, chunk_size: int = 1 << 16) -> bytes:
    """Read exactly n bytes, raising EOFError if the source runs dry."""
    out = bytearray()
    remaining = n
    while remaining:
        chunk = f.read(min(remaining, chunk_size))
        if not chunk:
            raise EOFError(f"unexpected EOF: needed {remaining} more bytes")
        out.extend(chunk)
        remaining -= len(chunk)
    return bytes(out)


class OSEntropy:
    """Operating-system CSPRNG."""

    def random_bytes(self, n: int) -> bytes:
        if n < 0:
            raise ValueError("n must be non-negative")
        return secrets.token_bytes(n)


class FileEntropy:
    """
    Read entropy bytes from a file path (character device or FIFO).

    The file is opened per call, so rotated or re-attached devices are picked
    up without restarting. Reads are serialized by a lock.
    """

    def __init__(self, path: str, *, block_size: int = 1 << 16):
        if not path or not isinstance(path, str):
            raise ValueError("path must be a non-empty string")
        self._path = path
        self._block = block_size
        self._lock = threading.Lock()

    def random_bytes(self, n: int) -> bytes:
        if n < 0:
            raise ValueError("n must be non-negative")
        if n == 0:
            return b""
        with self._lock, open(self._path, "rb", buffering=0) as fh:
            buf = io.BufferedReader(fh, buffer_size=self._block)
            return _read_exact(buf, n, chunk_size=self._block)


class SecretGenerator:
    """
    Produce fixed-length secrets from a secure source.

    Args:
        source: EntropySource to draw from (default: OSEntropy).
        secret_bytes: length of each secret; at least 32 (256 bits).
    """

    def __init__(self, source: Optional[EntropySource] = None, *, secret_bytes: int = SECRET_BYTES):
        if secret_bytes < 32:
            raise ValueError("secret_bytes must be >= 32 (256 bits)")
        self._source: EntropySource = source if source is not None else OSEntropy()
        self.secret_bytes = secret_bytes

    def generate_one(self) -> bytes:
        return self.generate(1)[0]

    def generate(self, count: int) -> List[bytes]:
        """
        Return `count` fresh secrets.

        Raises
        ------
        ValueError if count <= 0.
        EntropyUnavailable if the source fails or returns short/non-bytes output.
        """
        if count <= 0:
            raise ValueError("count must be positive")
        need = count * self.secret_bytes
        try:
            raw = self._source.random_bytes(need)
        except (OSError, NotImplementedError, EOFError) as e:
            logger.error("entropy source %s failed: %s", type(self._source).__name__, e)
            raise EntropyUnavailable(f"{type(self._source).__name__}: {e}") from e
        if not isinstance(raw, (bytes, bytearray)) or len(raw) != need:
            got = len(raw) if isinstance(raw, (bytes, bytearray)) else type(raw).__name__
            raise EntropyUnavailable(f"source returned {got}, expected {need} bytes")
        raw = bytes(raw)
        n = self.secret_bytes
        return [raw[i * n:(i + 1) * n] for i in range(count)]


__all__ = ["OSEntropy", "FileEntropy", "SecretGenerator"]
