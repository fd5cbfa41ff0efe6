"""
Raw Image Model
===============

Internal representation of an uncompressed image payload.

A RawImage is what every uncompressed image schema decodes to before it
reaches the normalization engine, regardless of whether it arrived as a
per-format message or inside an ImageRawAny oneof.

Plane layout (all 8-bit):
    RGB888    packed, 3 bytes per pixel
    RGBA8888  packed, 4 bytes per pixel
    YUV420    planar Y, U, V; chroma at half width and half height
    NV12      planar Y, interleaved UV; chroma at half width and half height
    YUV422    planar Y, U, V; chroma at half width, full height
    YUV444    planar Y, U, V; chroma at full resolution

Odd dimensions round the chroma plane size up.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple


class PixelFormat(str, Enum):
    """Pixel layouts carried by uncompressed image messages."""

    RGB888 = "RGB888"
    RGBA8888 = "RGBA8888"
    YUV420 = "YUV420"
    NV12 = "NV12"
    YUV422 = "YUV422"
    YUV444 = "YUV444"

    @property
    def is_yuv(self) -> bool:
        return self not in (PixelFormat.RGB888, PixelFormat.RGBA8888)

    def chroma_shape(self, width: int, height: int) -> Tuple[int, int]:
        """
        Size of one chroma plane as (height, width).

        Raises:
            ValueError: For packed RGB formats, which have no chroma plane.
        """
        half_w = (width + 1) // 2
        half_h = (height + 1) // 2
        if self in (PixelFormat.YUV420, PixelFormat.NV12):
            return half_h, half_w
        if self is PixelFormat.YUV422:
            return height, half_w
        if self is PixelFormat.YUV444:
            return height, width
        raise ValueError(f"{self.value} has no chroma plane")

    def expected_size(self, width: int, height: int) -> int:
        """Number of bytes a payload of this format must carry."""
        if self is PixelFormat.RGB888:
            return width * height * 3
        if self is PixelFormat.RGBA8888:
            return width * height * 4
        chroma_h, chroma_w = self.chroma_shape(width, height)
        return width * height + 2 * chroma_w * chroma_h


@dataclass(frozen=True, slots=True)
class RawImage:
    """
    Uncompressed image payload.

    Attributes:
        width: Image width in pixels
        height: Image height in pixels
        data: Pixel bytes in the layout named by pixel_format
        pixel_format: Layout of data
    """

    width: int
    height: int
    data: bytes
    pixel_format: PixelFormat

    @property
    def expected_size(self) -> int:
        return self.pixel_format.expected_size(self.width, self.height)

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the pixel buffer."""
        return (
            f"RawImage({self.pixel_format.value}, "
            f"{self.width}x{self.height}, "
            f"bytes={len(self.data)})"
        )
