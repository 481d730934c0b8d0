"""
fairseed.entropy
================

Where secrets come from.

- :class:`EntropySource` — the tiny protocol every byte source implements:
  ``random_bytes(n) -> bytes``.
- :mod:`fairseed.entropy.generator` — :class:`SecretGenerator` plus the OS
  CSPRNG and file/device sources.
- :mod:`fairseed.entropy.events` — optional *secondary* entropy derived from
  observed network events. It is later verifiable but its unpredictability
  is not analysed here; never use it in place of committed secrets.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class EntropySource(Protocol):
    """A source of secure random bytes."""

    def random_bytes(self, n: int) -> bytes:
        """Return exactly `n` bytes or raise."""
        ...


__all__ = ["EntropySource"]
