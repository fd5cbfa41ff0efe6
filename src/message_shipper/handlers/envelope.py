"""
Message Envelope
================

Extracts the common header (entity path + capture time) from a decoded
message and stamps the sink's timeline with it.

Rules:
    - header present, timestamp set   -> seconds + nanos / 1e9
    - header present, no timestamp    -> wall-clock now
    - header absent                   -> path "/", wall-clock now
    - entity path always starts with "/"

The timeline cursor is set before anything else is forwarded, so every
artifact from one message shares one timestamp.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from message_shipper.sink.base import TIMELINE_NAME, Sink


ROOT_PATH = "/"


@dataclass(frozen=True, slots=True)
class Envelope:
    path: str
    time_seconds: float


def timestamp_to_seconds(timestamp: Any) -> float:
    """Convert a protobuf Timestamp to fractional seconds."""
    return timestamp.seconds + timestamp.nanos / 1_000_000_000.0


def ensure_leading_slash(path: str) -> str:
    if path.startswith("/"):
        return path
    return f"/{path}"


def decode_envelope(
    header: Optional[Any],
    sink: Sink,
    clock: Callable[[], float] = time.time,
) -> Envelope:
    """
    Resolve path and time for a message and set the sink's timeline cursor.

    Args:
        header: Decoded Header message, or None when the message has none
        sink: Sink whose timeline cursor is set
        clock: Wall-clock source, seconds since epoch

    Returns:
        Envelope with the normalized path and time in seconds
    """
    if header is None:
        envelope = Envelope(path=ROOT_PATH, time_seconds=clock())
    else:
        if header.HasField("timestamp"):
            time_seconds = timestamp_to_seconds(header.timestamp)
        else:
            time_seconds = clock()
        envelope = Envelope(
            path=ensure_leading_slash(header.entity_path),
            time_seconds=time_seconds,
        )

    sink.set_timeline_cursor(TIMELINE_NAME, envelope.time_seconds)
    return envelope
