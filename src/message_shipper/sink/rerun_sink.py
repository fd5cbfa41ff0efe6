"""
Rerun Sink
==========

Sink implementation backed by a Rerun recording stream over gRPC.

Artifact mapping:
    TensorArtifact      -> rr.Image (color model RGB / RGBA)
    CompressedArtifact  -> rr.EncodedImage (media type preserved)
    TextArtifact        -> rr.TextDocument
    ShapeArtifact       -> rr.Boxes2D (centers + half sizes)

Health is probed with a plain TCP connect to the proxy port, bounded by a
short timeout. Reconnecting reuses the recording id so the viewer keeps
showing one continuous recording.
"""

import logging
import socket
import uuid
from typing import Optional

import rerun as rr

from message_shipper.errors import SinkConnectionError, SinkError
from message_shipper.models.artifacts import (
    Artifact,
    CompressedArtifact,
    ShapeArtifact,
    TensorArtifact,
    TextArtifact,
)
from message_shipper.models.connection import ConnectionState
from message_shipper.sink.base import DEFAULT_URL_TEMPLATE, SinkAddress


logger = logging.getLogger(__name__)


def to_archetype(artifact: Artifact):
    """Map a renderable artifact onto the matching Rerun archetype."""
    if isinstance(artifact, TensorArtifact):
        return rr.Image(artifact.data, color_model=artifact.color_model)
    if isinstance(artifact, CompressedArtifact):
        return rr.EncodedImage(contents=artifact.data, media_type=artifact.media_type)
    if isinstance(artifact, TextArtifact):
        return rr.TextDocument(artifact.text, media_type=artifact.media_type)
    if isinstance(artifact, ShapeArtifact):
        return rr.Boxes2D(centers=artifact.centers, half_sizes=artifact.half_sizes)
    raise TypeError(f"Unsupported artifact type: {type(artifact).__name__}")


class RerunSink:
    """
    Rerun recording stream wrapped in the Sink protocol.

    Attributes:
        address: Host/port of the Rerun gRPC proxy
        application_id: Rerun application id
        recording_id: Shared across reconnects

    Example:
        sink = RerunSink.connect(SinkAddress("localhost", 9876))
        sink.set_timeline_cursor("header_time", 1700000000.0)
        sink.forward("/camera", TextArtifact("hello"))
    """

    def __init__(
        self,
        address: SinkAddress,
        recording: "rr.RecordingStream",
        application_id: str,
        recording_id: str,
        url_template: str = DEFAULT_URL_TEMPLATE,
        probe_timeout: float = 0.1,
    ) -> None:
        self.address = address
        self.application_id = application_id
        self.recording_id = recording_id
        self.url_template = url_template
        self.probe_timeout = probe_timeout
        self._recording = recording

    @classmethod
    def connect(
        cls,
        address: SinkAddress,
        application_id: str = "make87_messages_shipper",
        recording_id: Optional[str] = None,
        url_template: str = DEFAULT_URL_TEMPLATE,
        probe_timeout: float = 0.1,
    ) -> "RerunSink":
        """
        Open a recording stream to the sink.

        Raises:
            SinkConnectionError: If the stream cannot be created
        """
        recording_id = recording_id or str(uuid.uuid4())
        url = url_template.format(host=address.host, port=address.port)

        try:
            recording = rr.RecordingStream(application_id, recording_id=recording_id)
            recording.connect_grpc(url)
        except Exception as e:
            raise SinkConnectionError(f"Failed to connect to {url}: {e}") from e

        logger.info(f"Connected to Rerun at {url} (recording {recording_id})")
        return cls(
            address=address,
            recording=recording,
            application_id=application_id,
            recording_id=recording_id,
            url_template=url_template,
            probe_timeout=probe_timeout,
        )

    @property
    def url(self) -> str:
        return self.url_template.format(host=self.address.host, port=self.address.port)

    def set_timeline_cursor(self, timeline: str, time_seconds: float) -> None:
        self._recording.set_time(timeline, timestamp=time_seconds)

    def forward(self, path: str, artifact: Artifact) -> None:
        archetype = to_archetype(artifact)
        try:
            self._recording.log(path, archetype)
        except Exception as e:
            raise SinkError(f"Rerun rejected {artifact!r} at {path}: {e}") from e

    def health_snapshot(self) -> ConnectionState:
        try:
            with socket.create_connection(
                (self.address.host, self.address.port),
                timeout=self.probe_timeout,
            ):
                return ConnectionState.connected()
        except OSError as e:
            return ConnectionState.disconnected(f"{self.address} unreachable: {e}")

    def reconnect(self, address: SinkAddress) -> "RerunSink":
        return RerunSink.connect(
            address,
            application_id=self.application_id,
            recording_id=self.recording_id,
            url_template=self.url_template,
            probe_timeout=self.probe_timeout,
        )

    def close(self) -> None:
        try:
            self._recording.disconnect()
        except Exception as e:
            logger.warning(f"Error while closing Rerun stream: {e}")
