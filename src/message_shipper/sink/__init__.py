"""
Sink Module
===========

Outbound side of the shipper.

    - Sink, SinkAddress: interface the core forwards through
    - ConnectionSupervisor: health checks and transparent reconnects
    - RerunSink: Rerun gRPC implementation (message_shipper.sink.rerun_sink)

RerunSink is not imported here so the core can be used without loading
the Rerun SDK.
"""

from message_shipper.sink.base import TIMELINE_NAME, Sink, SinkAddress
from message_shipper.sink.supervisor import ConnectionSupervisor, SupervisorMetrics


__all__ = [
    "TIMELINE_NAME",
    "Sink",
    "SinkAddress",
    "ConnectionSupervisor",
    "SupervisorMetrics",
]
