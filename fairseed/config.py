"""
fairseed configuration.

This file defines typed configuration objects and helpers for:
- Secret generation (secret length, entropy source)
- Commit-reveal rounds (default timeout, combine scheme, quorum policy)
- Merkle batches (batch size, low-water mark, retention)
- Storage and transport (ledger URI, per-message timeout)

It provides:
- Dataclass-based configs with validation
- Loading from environment variables (prefix configurable)
- Loading from a JSON or YAML file
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import yaml

from .commit_reveal.combine import SCHEMES
from .constants import DEFAULT_BATCH_SIZE, DEFAULT_SCHEME, MAX_BATCH_SIZE, SECRET_BYTES

# -------------------------
# Sub-configs
# -------------------------


@dataclass
class RoundConfig:
    """
    Commit-reveal round defaults.

    timeout_s: deadline for a round opened without an explicit timeout
    scheme: combine scheme ("sorted-hash" or "xor-hash")
    threshold: None for n-of-n, otherwise k for k-of-n rounds
    retain_partial: keep valid reveals of aborted rounds on the ledger
    """

    timeout_s: float = 60.0
    scheme: str = DEFAULT_SCHEME
    threshold: Optional[int] = None
    retain_partial: bool = True

    def validate(self) -> None:
        if self.timeout_s <= 0:
            raise ValueError("round.timeout_s must be > 0")
        if self.scheme not in SCHEMES:
            raise ValueError(f"round.scheme must be one of {sorted(SCHEMES)}")
        if self.threshold is not None and self.threshold < 1:
            raise ValueError("round.threshold must be >= 1 (or unset for n-of-n)")


@dataclass
class BatchConfig:
    """
    Merkle batch engine.

    size: leaves per batch
    low_water: pre-build the next batch when this many leaves remain
               (None -> size // 8)
    retain: batches kept per key to answer proof requests
    """

    size: int = DEFAULT_BATCH_SIZE
    low_water: Optional[int] = None
    retain: int = 8

    def validate(self) -> None:
        if not (1 <= self.size <= MAX_BATCH_SIZE):
            raise ValueError(f"batch.size must be in [1, {MAX_BATCH_SIZE}]")
        if self.low_water is not None and not (0 <= self.low_water < self.size):
            raise ValueError("batch.low_water must be in [0, size)")
        if self.retain < 1:
            raise ValueError("batch.retain must be >= 1")


@dataclass
class StorageConfig:
    """
    Where published records live.

    ledger_uri: "memory://" or "sqlite:///path/to/ledger.db"
    """

    ledger_uri: str = "memory://"

    def validate(self) -> None:
        u = urlparse(self.ledger_uri)
        if u.scheme not in {"memory", "sqlite"}:
            raise ValueError("storage.ledger_uri must be memory:// or sqlite:///path")
        if u.scheme == "sqlite" and not (u.netloc + u.path):
            raise ValueError("storage.ledger_uri needs a path for sqlite")


# -------------------------
# Top-level config
# -------------------------


@dataclass
class FairseedConfig:
    """
    secret_bytes: length of each generated secret (>= 32)
    entropy_device: optional path of a hardware RNG device; None uses the OS CSPRNG
    transport_timeout_s: per-message wait in two-party sessions

    Round / Batch / Storage: nested sub-configs
    """

    secret_bytes: int = SECRET_BYTES
    entropy_device: Optional[str] = None
    transport_timeout_s: float = 10.0

    round: RoundConfig = field(default_factory=RoundConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    def validate(self) -> None:
        if self.secret_bytes < SECRET_BYTES:
            raise ValueError(f"secret_bytes must be >= {SECRET_BYTES}")
        if self.transport_timeout_s <= 0:
            raise ValueError("transport_timeout_s must be > 0")
        if self.entropy_device is not None and not self.entropy_device:
            raise ValueError("entropy_device must be a path or unset")
        self.round.validate()
        self.batch.validate()
        self.storage.validate()

    # -------------------------
    # Serialization helpers
    # -------------------------

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    # -------------------------
    # Loaders
    # -------------------------

    @staticmethod
    def from_env(prefix: str = "FAIRSEED_") -> "FairseedConfig":
        """
        Load configuration from environment variables. All variables are optional.

        Supported keys (examples):
          - FAIRSEED_SECRET_BYTES=32
          - FAIRSEED_ENTROPY_DEVICE=/dev/hwrng
          - FAIRSEED_TRANSPORT_TIMEOUT_S=10

          - FAIRSEED_ROUND_TIMEOUT_S=60
          - FAIRSEED_ROUND_SCHEME=sorted-hash
          - FAIRSEED_ROUND_THRESHOLD=3
          - FAIRSEED_ROUND_RETAIN_PARTIAL=true

          - FAIRSEED_BATCH_SIZE=1024
          - FAIRSEED_BATCH_LOW_WATER=128
          - FAIRSEED_BATCH_RETAIN=8

          - FAIRSEED_LEDGER_URI=sqlite:///var/lib/fairseed/ledger.db
        """

        def _get(name: str, cast: Any, default: Any) -> Any:
            key = prefix + name
            raw = os.getenv(key)
            if raw is None:
                return default
            try:
                if cast is bool:
                    return raw.lower() in {"1", "true", "yes", "on"}
                return cast(raw)
            except (TypeError, ValueError) as e:
                raise ValueError(f"Invalid value for {key}: {raw!r}") from e

        cfg = FairseedConfig(
            secret_bytes=_get("SECRET_BYTES", int, SECRET_BYTES),
            entropy_device=_get("ENTROPY_DEVICE", str, None),
            transport_timeout_s=_get("TRANSPORT_TIMEOUT_S", float, 10.0),
            round=RoundConfig(
                timeout_s=_get("ROUND_TIMEOUT_S", float, 60.0),
                scheme=_get("ROUND_SCHEME", str, DEFAULT_SCHEME),
                threshold=_get("ROUND_THRESHOLD", int, None),
                retain_partial=_get("ROUND_RETAIN_PARTIAL", bool, True),
            ),
            batch=BatchConfig(
                size=_get("BATCH_SIZE", int, DEFAULT_BATCH_SIZE),
                low_water=_get("BATCH_LOW_WATER", int, None),
                retain=_get("BATCH_RETAIN", int, 8),
            ),
            storage=StorageConfig(
                ledger_uri=_get("LEDGER_URI", str, "memory://"),
            ),
        )
        cfg.validate()
        return cfg

    @staticmethod
    def from_file(path: str) -> "FairseedConfig":
        """
        Load configuration from a JSON or YAML file. Keys mirror the dataclass
        structure. Example (YAML):

            secret_bytes: 32
            transport_timeout_s: 5
            round:
              timeout_s: 30
              scheme: sorted-hash
              threshold: 2
            batch:
              size: 256
              low_water: 32
            storage:
              ledger_uri: "sqlite:///var/lib/fairseed/ledger.db"
        """
        text = _read_text(path)
        data = _parse_json_or_yaml(text, path)
        if not isinstance(data, dict):
            raise ValueError(f"{path!r} must contain a mapping at the top level")

        def _pop(d: Dict[str, Any], key: str, default: Any) -> Any:
            return d.pop(key, default) if isinstance(d, dict) else default

        round_d = _pop(data, "round", {}) or {}
        batch_d = _pop(data, "batch", {}) or {}
        storage_d = _pop(data, "storage", {}) or {}

        cfg = FairseedConfig(
            secret_bytes=_pop(data, "secret_bytes", SECRET_BYTES),
            entropy_device=_pop(data, "entropy_device", None),
            transport_timeout_s=_pop(data, "transport_timeout_s", 10.0),
            round=RoundConfig(
                timeout_s=_pop(round_d, "timeout_s", 60.0),
                scheme=_pop(round_d, "scheme", DEFAULT_SCHEME),
                threshold=_pop(round_d, "threshold", None),
                retain_partial=_pop(round_d, "retain_partial", True),
            ),
            batch=BatchConfig(
                size=_pop(batch_d, "size", DEFAULT_BATCH_SIZE),
                low_water=_pop(batch_d, "low_water", None),
                retain=_pop(batch_d, "retain", 8),
            ),
            storage=StorageConfig(
                ledger_uri=_pop(storage_d, "ledger_uri", "memory://"),
            ),
        )
        cfg.validate()
        return cfg


# -------------------------
# Utilities
# -------------------------


def _read_text(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _parse_json_or_yaml(text: str, path_hint: str) -> Dict[str, Any]:
    # First try JSON
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    # Then YAML (a superset of JSON, but with a slower parser)
    try:
        return yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse {path_hint!r} as JSON or YAML: {e}") from e


DEFAULT: FairseedConfig = FairseedConfig()


__all__ = [
    "RoundConfig",
    "BatchConfig",
    "StorageConfig",
    "FairseedConfig",
    "DEFAULT",
]
