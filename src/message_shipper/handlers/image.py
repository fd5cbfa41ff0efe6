"""
Image Handlers
==============

Decode image messages and forward them through the PixelNormalizer.

    - CompressedJpegHandler: ImageJPEG, forwarded verbatim
    - RawImageHandler: one per-format message type (ImageRGB888, ImageNV12, ...)
    - RawAnyImageHandler: ImageRawAny, format chosen by its oneof

All raw handlers share the same normalizer instance; none of them converts
pixels itself.
"""

import logging
import time
from typing import Any, Callable, Optional

from message_shipper.errors import DecodeError
from message_shipper.handlers.base import MessageHandler
from message_shipper.imaging.normalizer import PixelNormalizer
from message_shipper.models.artifacts import (
    MEDIA_TYPE_JPEG,
    CompressedArtifact,
    ImageArtifact,
)
from message_shipper.models.image import PixelFormat, RawImage
from message_shipper.models.schemas import ImageJPEG, ImageRawAny
from message_shipper.sink.base import Sink


logger = logging.getLogger(__name__)


# ImageRawAny oneof field -> pixel format
RAW_ANY_FORMATS = {
    "rgb888": PixelFormat.RGB888,
    "rgba8888": PixelFormat.RGBA8888,
    "yuv420": PixelFormat.YUV420,
    "yuv422": PixelFormat.YUV422,
    "yuv444": PixelFormat.YUV444,
    "nv12": PixelFormat.NV12,
}


def raw_image_from_message(message: Any, pixel_format: PixelFormat) -> RawImage:
    """Build a RawImage from a decoded Image<Format> message."""
    return RawImage(
        width=message.width,
        height=message.height,
        data=message.data,
        pixel_format=pixel_format,
    )


class CompressedJpegHandler(MessageHandler):
    """Forwards JPEG bytes unchanged."""

    schema = ImageJPEG

    def handle(self, payload: bytes, sink: Sink) -> Optional[CompressedArtifact]:
        message = self.decode(payload)
        envelope = self.envelope(message, sink)
        artifact = PixelNormalizer.passthrough(message.data, MEDIA_TYPE_JPEG)
        sink.forward(envelope.path, artifact)
        return artifact


class _NormalizingHandler(MessageHandler):
    def __init__(
        self,
        normalizer: PixelNormalizer,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(clock=clock)
        self.normalizer = normalizer

    def _forward(self, image: RawImage, path: str, sink: Sink) -> ImageArtifact:
        logger.debug(f"Processing {image.pixel_format.value} image ({image!r})")
        artifact = self.normalizer.normalize(image)
        sink.forward(path, artifact)
        return artifact


class RawImageHandler(_NormalizingHandler):
    """
    Handler for a single-format raw image message.

    Args:
        schema: Protobuf class (e.g. ImageRGB888)
        pixel_format: Layout of the message's data field
        normalizer: Shared PixelNormalizer
    """

    def __init__(
        self,
        schema: Any,
        pixel_format: PixelFormat,
        normalizer: PixelNormalizer,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(normalizer, clock=clock)
        self.schema = schema
        self.pixel_format = pixel_format

    def handle(self, payload: bytes, sink: Sink) -> Optional[ImageArtifact]:
        message = self.decode(payload)
        envelope = self.envelope(message, sink)
        image = raw_image_from_message(message, self.pixel_format)
        return self._forward(image, envelope.path, sink)


class RawAnyImageHandler(_NormalizingHandler):
    """Handler for ImageRawAny; the oneof picks the pixel format."""

    schema = ImageRawAny

    def handle(self, payload: bytes, sink: Sink) -> Optional[ImageArtifact]:
        message = self.decode(payload)
        envelope = self.envelope(message, sink)

        field = message.WhichOneof("image")
        if field is None:
            raise DecodeError("No image format found in ImageRawAny message")

        image = raw_image_from_message(getattr(message, field), RAW_ANY_FORMATS[field])
        return self._forward(image, envelope.path, sink)
