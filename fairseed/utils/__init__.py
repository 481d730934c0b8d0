"""
fairseed.utils
--------------

Light helpers shared across fairseed: byte/hex conversion with strict length
guards, and SHA3 / domain-separated hashing wrappers.

This package file deliberately avoids eager imports to keep dependency order
simple.
"""

__all__: list[str] = []
