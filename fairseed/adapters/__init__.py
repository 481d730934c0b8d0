"""
fairseed adapters.

Integration seams between the protocol engines and the outside world. The
core only ever talks to these small interfaces, so a deployment can swap in
its own ledger or network without touching the commit-reveal or Merkle code.

  - ledger:     `Ledger` sink protocol (publish / fetch) + `KVLedger` over a
                byte KeyValue store.
  - transport:  async `Transport` protocol + in-memory pair, and `PeerSession`
                running a two-party commit-reveal round over it.

Nothing is imported here so that importing one adapter does not pull in the
other's dependencies (asyncio machinery, storage backends).
"""

__all__: list[str] = []
