"""
Bus Message
===========

Internal representation of one sample received from the bus.

Design Rules:
    - This is the ONLY message format passed to the dispatch loop
    - Payload is kept as opaque bytes; decoding happens in handlers
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class BusMessage:
    """
    Sample received on a subscription.

    Attributes:
        topic: Key expression the sample was published on
        payload: Encoded message bytes
        received_at: UNIX time the sample reached the subscriber
    """

    topic: str
    payload: bytes
    received_at: float

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the payload."""
        return (
            f"BusMessage(topic={self.topic!r}, "
            f"bytes={len(self.payload)}, "
            f"received_at={self.received_at:.3f})"
        )
