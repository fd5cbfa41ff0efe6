"""
Sink Interface
==============

Contract between the shipper core and the visualization sink.

The core only ever talks to a Sink through these five calls. The Rerun
implementation lives in rerun_sink.py; tests use an in-memory fake.
"""

from dataclasses import dataclass
from typing import Protocol

from message_shipper.models.artifacts import Artifact
from message_shipper.models.connection import ConnectionState


# Timeline every artifact of a message is stamped on
TIMELINE_NAME = "header_time"

DEFAULT_URL_TEMPLATE = "rerun+http://{host}:{port}/proxy"


@dataclass(frozen=True, slots=True)
class SinkAddress:
    """Network location of the sink."""

    host: str
    port: int

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


class Sink(Protocol):
    """
    Protocol for visualization sinks.

    Implementations:
        - RerunSink (production)
    """

    def set_timeline_cursor(self, timeline: str, time_seconds: float) -> None:
        """Set the time at which following artifacts are recorded."""
        ...

    def forward(self, path: str, artifact: Artifact) -> None:
        """
        Send one artifact to an entity path.

        Raises:
            SinkError: If the sink rejects the write
        """
        ...

    def health_snapshot(self) -> ConnectionState:
        """Probe the connection and report its current state."""
        ...

    def reconnect(self, address: SinkAddress) -> "Sink":
        """
        Open a fresh connection to address.

        Returns:
            New sink handle to use from now on

        Raises:
            SinkConnectionError: If the connection cannot be opened
        """
        ...

    def close(self) -> None:
        """Flush and release the connection."""
        ...
