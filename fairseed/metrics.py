"""
Prometheus metrics for fairseed.

Counters and histograms for both engines:
  • commitments_total{outcome}   — commitment submissions per outcome
  • reveals_total{outcome}       — reveal submissions per outcome
  • rounds_total{status}         — rounds reaching a terminal state
  • batches_generated_total      — Merkle batches built by BatchLedger
  • leaves_issued_total          — leaves handed out by BatchLedger
  • proof_checks_total{result}   — inclusion-proof verifications
  • evidence_total{kind}         — misbehavior evidence records
  • combine_seconds              — time spent in the Combiner

Label cardinality is intentionally low: only small, fixed vocabularies, never
round ids or party ids.

Usage
-----
    from fairseed.metrics import METRICS

    METRICS.record_commitment("accepted")
    METRICS.record_reveal("mismatch")
    with METRICS.combine_timer():
        combine(...)

Construct your own `Metrics(registry=CollectorRegistry())` for tests or a
custom namespace.
"""

from __future__ import annotations

from contextlib import contextmanager
from time import perf_counter
from typing import Iterable

from prometheus_client import REGISTRY, Counter, Histogram

# --------- Vocabularies (kept small for bounded cardinality) ---------

_COMMIT_OUTCOMES = (
    "accepted",     # recorded for the round
    "duplicate",    # party already committed / value reused by another party
    "rejected",     # wrong phase, unknown party, malformed
)

_REVEAL_OUTCOMES = (
    "accepted",     # matched the commitment
    "mismatch",     # hash(secret) != commitment (fraud evidence)
    "early",        # no commitment from that party / commit phase still open
    "late",         # round already aborted
    "rejected",     # wrong phase, duplicate, unknown party, malformed
)

_ROUND_STATUSES = ("combined", "aborted")

_PROOF_RESULTS = ("valid", "invalid")

_EVIDENCE_KINDS = ("bad_reveal", "duplicate_commitment", "miss")

_COMBINE_BUCKETS = (
    0.00005, 0.0001, 0.00025, 0.0005,
    0.001, 0.0025, 0.005, 0.01,
    0.025, 0.05, 0.1,
)


class Metrics:
    """
    Container for all fairseed Prometheus instruments.

    Args:
        namespace: Prometheus metric namespace (prefix).
        subsystem: Prometheus metric subsystem.
        registry:  Prometheus registry to register the metrics with.
    """

    def __init__(
        self,
        *,
        namespace: str = "fairseed",
        subsystem: str = "core",
        registry=REGISTRY,
        combine_buckets: Iterable[float] = _COMBINE_BUCKETS,
    ) -> None:
        self.commitments_total = Counter(
            "commitments_total",
            "Commitment submissions processed, labeled by outcome.",
            labelnames=("outcome",),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.reveals_total = Counter(
            "reveals_total",
            "Reveal submissions processed, labeled by outcome.",
            labelnames=("outcome",),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.rounds_total = Counter(
            "rounds_total",
            "Rounds that reached a terminal state, labeled by status.",
            labelnames=("status",),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.batches_generated_total = Counter(
            "batches_generated_total",
            "Merkle batches generated by the batch ledger.",
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.leaves_issued_total = Counter(
            "leaves_issued_total",
            "Batch leaves issued by the batch ledger.",
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.proof_checks_total = Counter(
            "proof_checks_total",
            "Inclusion proof verifications, labeled by result.",
            labelnames=("result",),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.evidence_total = Counter(
            "evidence_total",
            "Misbehavior evidence records emitted, labeled by kind.",
            labelnames=("kind",),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.combine_seconds = Histogram(
            "combine_seconds",
            "Time spent combining revealed secrets (seconds).",
            buckets=tuple(combine_buckets),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )

    # ----- Recording helpers -------------------------------------------------

    def record_commitment(self, outcome: str) -> None:
        if outcome not in _COMMIT_OUTCOMES:
            outcome = "rejected"
        self.commitments_total.labels(outcome=outcome).inc()

    def record_reveal(self, outcome: str) -> None:
        if outcome not in _REVEAL_OUTCOMES:
            outcome = "rejected"
        self.reveals_total.labels(outcome=outcome).inc()

    def record_round(self, status: str) -> None:
        if status not in _ROUND_STATUSES:
            raise ValueError(f"unknown round status {status!r}")
        self.rounds_total.labels(status=status).inc()

    def record_batch(self) -> None:
        self.batches_generated_total.inc()

    def record_leaf(self) -> None:
        self.leaves_issued_total.inc()

    def record_proof_check(self, ok: bool) -> None:
        self.proof_checks_total.labels(result="valid" if ok else "invalid").inc()

    def record_evidence(self, kind: str) -> None:
        if kind not in _EVIDENCE_KINDS:
            raise ValueError(f"unknown evidence kind {kind!r}")
        self.evidence_total.labels(kind=kind).inc()

    # ----- Context managers --------------------------------------------------

    @contextmanager
    def combine_timer(self):
        """
        Time a combine call.

            with METRICS.combine_timer():
                combine(...)
        """
        start = perf_counter()
        try:
            yield
        finally:
            self.combine_seconds.observe(perf_counter() - start)


# Singleton used by most components
METRICS = Metrics()

__all__ = [
    "Metrics",
    "METRICS",
]
