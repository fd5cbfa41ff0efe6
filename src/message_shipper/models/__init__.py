"""
Data Models
===========

Typed values passed between the shipper's components.

Models:
    Image:
        - PixelFormat: Uncompressed pixel layouts
        - RawImage: Uncompressed image payload

    Artifacts:
        - TensorArtifact, CompressedArtifact, TextArtifact, ShapeArtifact

    Connection:
        - ConnectionStatus, ConnectionState

Protobuf message classes live in message_shipper.models.schemas and are not
re-exported here.
"""

from message_shipper.models.image import PixelFormat, RawImage
from message_shipper.models.artifacts import (
    Artifact,
    CompressedArtifact,
    ShapeArtifact,
    TensorArtifact,
    TextArtifact,
)
from message_shipper.models.connection import ConnectionState, ConnectionStatus

__all__ = [
    # Image
    "PixelFormat",
    "RawImage",
    # Artifacts
    "Artifact",
    "TensorArtifact",
    "CompressedArtifact",
    "TextArtifact",
    "ShapeArtifact",
    # Connection
    "ConnectionStatus",
    "ConnectionState",
]
