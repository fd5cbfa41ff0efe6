"""
Imaging Module
==============

Pixel layout handling for uncompressed images.

Components:
    - colorspace: plane slicing, NV12 de-interleaving, YUV -> RGB math
    - PixelNormalizer: RawImage -> TensorArtifact | CompressedArtifact
"""

from message_shipper.imaging.colorspace import (
    ChromaInterpolation,
    YuvMatrix,
    YuvRange,
)
from message_shipper.imaging.normalizer import NormalizationMode, PixelNormalizer


__all__ = [
    "ChromaInterpolation",
    "YuvMatrix",
    "YuvRange",
    "NormalizationMode",
    "PixelNormalizer",
]
