"""
Pixel Normalization
===================

Turns raw image payloads into renderable artifacts.

This is the ONLY place in the codebase that converts or encodes pixels.
Both the per-format image handlers and the ImageRawAny handler go through
one PixelNormalizer, so every format follows a single code path.

Modes:
    TENSOR  RGB888/RGBA8888 are reinterpreted in place (no copy);
            YUV420/NV12 are converted to packed RGB with the configured
            range and matrix (default limited-range BT.709).
            YUV422/YUV444 are unsupported.
    JPEG    Any raw format is encoded to JPEG straight from its own
            layout. YUV planes go to the encoder as YCbCr with matching
            chroma subsampling (no RGB intermediate), rematrixed to the
            BT.601 coefficients JPEG decoders assume; RGB/RGBA are encoded
            without subsampling.

Already-compressed payloads are passed through unchanged.

Design Rules:
    - Size is validated before any conversion (no partial output)
    - Library failures surface as ConversionError
    - Unsupported layouts surface as UnsupportedFormatError
"""

import io
import logging
from enum import Enum

import cv2
import numpy as np
from PIL import Image

from message_shipper.errors import (
    ConversionError,
    MalformedPayloadError,
    UnsupportedFormatError,
)
from message_shipper.imaging.colorspace import (
    DEFAULT_MATRIX,
    DEFAULT_RANGE,
    ChromaInterpolation,
    YuvMatrix,
    YuvRange,
    expand_range,
    planes_to_rgb,
    rematrix,
    split_planes,
    upsample_chroma,
)
from message_shipper.models.artifacts import (
    MEDIA_TYPE_JPEG,
    CompressedArtifact,
    ImageArtifact,
    TensorArtifact,
)
from message_shipper.models.image import PixelFormat, RawImage


logger = logging.getLogger(__name__)


class NormalizationMode(str, Enum):
    """Which artifact kind raw images are normalized into."""

    TENSOR = "tensor"
    JPEG = "jpeg"


# Pillow JPEG subsampling codes: 0 = 4:4:4, 1 = 4:2:2, 2 = 4:2:0
_JPEG_SUBSAMPLING = {
    PixelFormat.YUV420: 2,
    PixelFormat.NV12: 2,
    PixelFormat.YUV422: 1,
    PixelFormat.YUV444: 0,
    PixelFormat.RGB888: 0,
    PixelFormat.RGBA8888: 0,
}

_PACKED_CHANNELS = {
    PixelFormat.RGB888: (3, "RGB"),
    PixelFormat.RGBA8888: (4, "RGBA"),
}


class PixelNormalizer:
    """
    Converts RawImage payloads into TensorArtifact or CompressedArtifact.

    Attributes:
        mode: Output artifact kind for raw images
        jpeg_quality: Encoder quality in JPEG mode (1-100)
        yuv_range: Signal range assumed for YUV input
        yuv_matrix: Matrix used for YUV -> RGB
        chroma_interpolation: Chroma upsampling filter

    Example:
        normalizer = PixelNormalizer()
        artifact = normalizer.normalize(
            RawImage(640, 480, data, PixelFormat.NV12)
        )
    """

    def __init__(
        self,
        mode: NormalizationMode = NormalizationMode.TENSOR,
        jpeg_quality: int = 85,
        yuv_range: YuvRange = DEFAULT_RANGE,
        yuv_matrix: YuvMatrix = DEFAULT_MATRIX,
        chroma_interpolation: ChromaInterpolation = ChromaInterpolation.NEAREST,
    ) -> None:
        if not 1 <= jpeg_quality <= 100:
            raise ValueError("jpeg_quality must be within 1..100")

        self.mode = NormalizationMode(mode)
        self.jpeg_quality = jpeg_quality
        self.yuv_range = YuvRange(yuv_range)
        self.yuv_matrix = YuvMatrix(yuv_matrix)
        self.chroma_interpolation = ChromaInterpolation(chroma_interpolation)

    def __repr__(self) -> str:
        return (
            f"PixelNormalizer(mode={self.mode.value}, "
            f"range={self.yuv_range.value}, matrix={self.yuv_matrix.value})"
        )

    def normalize(self, image: RawImage) -> ImageArtifact:
        """
        Normalize a raw image according to the configured mode.

        Raises:
            MalformedPayloadError: Payload size does not match its format
            UnsupportedFormatError: Format not handled in TENSOR mode
            ConversionError: Conversion or encoding failed
        """
        if self.mode is NormalizationMode.JPEG:
            return self.to_jpeg(image)
        return self.to_tensor(image)

    @staticmethod
    def validate(image: RawImage) -> None:
        """Check the payload length against the format's expected size."""
        if image.width <= 0 or image.height <= 0:
            raise MalformedPayloadError(
                f"Invalid {image.pixel_format.value} dimensions "
                f"{image.width}x{image.height}"
            )
        expected = image.expected_size
        if len(image.data) != expected:
            raise MalformedPayloadError(
                f"{image.pixel_format.value} {image.width}x{image.height} "
                f"expects {expected} bytes, got {len(image.data)}"
            )

    def to_tensor(self, image: RawImage) -> TensorArtifact:
        """Decode a raw image into an RGB or RGBA tensor."""
        self.validate(image)
        fmt = image.pixel_format

        if fmt in _PACKED_CHANNELS:
            channels, color_model = _PACKED_CHANNELS[fmt]
            pixels = np.frombuffer(image.data, dtype=np.uint8).reshape(
                image.height, image.width, channels
            )
            return TensorArtifact(data=pixels, color_model=color_model)

        if fmt in (PixelFormat.YUV422, PixelFormat.YUV444):
            raise UnsupportedFormatError(
                f"{fmt.value} is not supported for tensor output"
            )

        try:
            y, u, v = split_planes(image.data, fmt, image.width, image.height)
            rgb = planes_to_rgb(
                y, u, v,
                yuv_range=self.yuv_range,
                matrix=self.yuv_matrix,
                interpolation=self.chroma_interpolation,
            )
        except (ValueError, cv2.error) as e:
            raise ConversionError(f"{fmt.value} -> RGB conversion failed: {e}") from e

        return TensorArtifact(data=rgb, color_model="RGB")

    def to_jpeg(self, image: RawImage) -> CompressedArtifact:
        """Encode a raw image to JPEG without an RGB intermediate for YUV."""
        self.validate(image)
        fmt = image.pixel_format
        size = (image.width, image.height)

        try:
            if fmt in _PACKED_CHANNELS:
                channels, _ = _PACKED_CHANNELS[fmt]
                pixels = np.frombuffer(image.data, dtype=np.uint8).reshape(
                    image.height, image.width, channels
                )
                # JPEG has no alpha channel
                rgb = np.ascontiguousarray(pixels[..., :3])
                pil_image = Image.frombytes("RGB", size, rgb.tobytes())
            else:
                pil_image = self._ycbcr_image(image)

            buffer = io.BytesIO()
            pil_image.save(
                buffer,
                format="JPEG",
                quality=self.jpeg_quality,
                subsampling=_JPEG_SUBSAMPLING[fmt],
            )
        except (ValueError, OSError, cv2.error) as e:
            raise ConversionError(f"{fmt.value} -> JPEG encode failed: {e}") from e

        return CompressedArtifact(data=buffer.getvalue(), media_type=MEDIA_TYPE_JPEG)

    def _ycbcr_image(self, image: RawImage) -> Image.Image:
        y, u, v = split_planes(image.data, image.pixel_format, image.width, image.height)

        # JPEG expects full-range samples
        if self.yuv_range is YuvRange.LIMITED:
            y = expand_range(y, luma=True)
            u = expand_range(u, luma=False)
            v = expand_range(v, luma=False)

        u = upsample_chroma(u, image.width, image.height, self.chroma_interpolation)
        v = upsample_chroma(v, image.width, image.height, self.chroma_interpolation)
        y, u, v = rematrix(y, u, v, source=self.yuv_matrix, target=YuvMatrix.BT601)

        size = (image.width, image.height)
        bands = [Image.frombytes("L", size, plane.tobytes()) for plane in (y, u, v)]
        return Image.merge("YCbCr", bands)

    @staticmethod
    def passthrough(data: bytes, media_type: str = MEDIA_TYPE_JPEG) -> CompressedArtifact:
        """Wrap already-compressed bytes without touching them."""
        return CompressedArtifact(data=bytes(data), media_type=media_type)
