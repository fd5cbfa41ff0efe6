"""
Renderable Artifacts
====================

The normalized units handed to the sink.

Each incoming message produces at most one artifact:
    - TensorArtifact: dense uint8 pixel tensor tagged with a color model
    - CompressedArtifact: encoded image bytes tagged with a media type
    - TextArtifact: plain text document
    - ShapeArtifact: batch of axis-aligned 2D boxes

Sinks map these onto their own primitives; nothing upstream of the sink
knows about the sink's types.
"""

from dataclasses import dataclass
from typing import List, Tuple, Union

import numpy as np


MEDIA_TYPE_JPEG = "image/jpeg"
MEDIA_TYPE_TEXT = "text/plain"


@dataclass(frozen=True, eq=False)
class TensorArtifact:
    """
    Decoded image as an (H, W, C) uint8 array.

    The array may be a read-only view over the original message bytes.

    Attributes:
        data: Pixel array, shape (height, width, channels)
        color_model: "RGB" or "RGBA"
    """

    data: np.ndarray
    color_model: str

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def channels(self) -> int:
        return int(self.data.shape[2])

    @property
    def strides(self) -> Tuple[int, int, int]:
        """Byte strides as (row, column, channel)."""
        row, column, channel = self.data.strides
        return int(row), int(column), int(channel)

    def __repr__(self) -> str:
        return (
            f"TensorArtifact({self.color_model}, "
            f"{self.width}x{self.height}, strides={self.strides})"
        )


@dataclass(frozen=True)
class CompressedArtifact:
    """Encoded image bytes (e.g. JPEG)."""

    data: bytes
    media_type: str = MEDIA_TYPE_JPEG

    def __repr__(self) -> str:
        return f"CompressedArtifact({self.media_type}, bytes={len(self.data)})"


@dataclass(frozen=True)
class TextArtifact:
    """Plain text document."""

    text: str
    media_type: str = MEDIA_TYPE_TEXT


@dataclass(frozen=True)
class ShapeArtifact:
    """
    Axis-aligned 2D boxes given as centers and half sizes.

    Attributes:
        centers: [(cx, cy), ...]
        half_sizes: [(hw, hh), ...], same length as centers
    """

    centers: List[Tuple[float, float]]
    half_sizes: List[Tuple[float, float]]

    def __len__(self) -> int:
        return len(self.centers)


ImageArtifact = Union[TensorArtifact, CompressedArtifact]
Artifact = Union[TensorArtifact, CompressedArtifact, TextArtifact, ShapeArtifact]
