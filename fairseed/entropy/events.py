"""
fairseed.entropy.events
=======================

Secondary entropy from observed network events (gossip arrival, validation
signatures, timestamps).

An :class:`EventEntropySource` turns an event stream into bytes that can be
published and fed into a round's Combiner next to the committed secrets.
Anybody holding the same events can recompute the digest, so the value is
auditable; how *unpredictable* it is depends entirely on the events and has
not been analysed here. Treat it as an addition to committed secrets, never a
replacement.

Events are dicts (str keys) or raw bytes/str. Each event is encoded with the
stable TLV encoding from :mod:`fairseed.utils.hash`, and the encodings are
sorted before hashing so two observers that saw the same events in a
different order agree on the digest.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Protocol, Union

from ..constants import DOMAIN_EVENTS
from ..utils.hash import dsha3_256, encode_parts

Event = Union[Mapping[str, Any], bytes, str]


class EventEntropySource(Protocol):
    """Derives later-verifiable bytes from a stream of observed events."""

    def observe(self, events: Iterable[Event]) -> bytes:
        ...


def _encode_event(ev: Event) -> bytes:
    if isinstance(ev, Mapping):
        items = sorted(ev.items())
        return encode_parts([("map", [[str(k), v] for k, v in items])])
    if isinstance(ev, (bytes, bytearray, memoryview, str)):
        return encode_parts([ev])
    raise TypeError(f"unsupported event type: {type(ev)!r}")


class DigestEventSource:
    """
    Hash a canonical, order-independent encoding of the observed events.

    Args:
        label: extra context bound into the digest (e.g. a round id), so the
            same events never yield the same bytes in two contexts.
        min_events: refuse to produce output from fewer events.
    """

    def __init__(self, label: str = "", *, min_events: int = 1):
        if min_events < 1:
            raise ValueError("min_events must be >= 1")
        self.label = label
        self.min_events = min_events

    def observe(self, events: Iterable[Event]) -> bytes:
        encoded: List[bytes] = sorted(_encode_event(e) for e in events)
        if len(encoded) < self.min_events:
            raise ValueError(
                f"need at least {self.min_events} events, observed {len(encoded)}"
            )
        return dsha3_256(DOMAIN_EVENTS, self.label, encoded)


__all__ = ["Event", "EventEntropySource", "DigestEventSource"]
