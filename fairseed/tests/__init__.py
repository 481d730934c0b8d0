"""
fairseed.tests
--------------
Test package initializer for fairseed.

Notes:
- Secrets used in tests are fixed byte patterns so digests are reproducible;
  they are obviously not secret and MUST NOT be used outside tests.
"""

from __future__ import annotations

__all__: tuple[str, ...] = ()
