"""
make87 Messages Shipper
=======================

Forwards messages from a Zenoh bus to a Rerun visualization sink.

The shipper subscribes to one topic, picks a decoder from the schema name
embedded in the topic, normalizes images/text/detections into renderable
artifacts and logs them to Rerun, reconnecting when the sink goes away.

Components:
    - handlers: topic routing, envelope decoding, per-schema handlers
    - imaging: YUV/NV12/RGB conversion and JPEG re-encoding
    - stream: Zenoh subscriber and bounded message buffer
    - dispatch: single consumer loop with diagnostics
    - sink: sink protocol, Rerun sink, connection supervisor

Example:
    python -m message_shipper.main
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
