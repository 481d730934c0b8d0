"""
fairseed.apps
=============

Thin application callers built on the two engines:

  • dice  — progressive disclosure: one pre-committed Merkle leaf per roll
            (BatchLedger), verifiable roll by roll.
  • cards — one-shot: a round's CombinedSeed drives a deterministic shuffle.

Both turn 32-byte randomness into small integers with `sampling.uniform_int`
(rejection sampling, no modulo bias).
"""
