"""
Handler Registry
================

Maps schema-type identifiers to handler factories and resolves topics.

Topic convention:
    <seg>/<seg>/<seg>/[make87_messages-]<namespace>-<Type>/<suffix...>

The identifier is the fourth segment with the optional package marker
removed, e.g.

    robot/node/camera/make87_messages-image-uncompressed-ImageNV12/front
        -> "image-uncompressed-ImageNV12"

Identifiers are exact, case-sensitive strings. A topic that does not match
the convention, or names an unregistered identifier, resolves to None;
callers treat that as "cannot build a pipeline" at startup.

Example:
    registry = build_default_registry(PixelNormalizer())
    handler = registry.resolve(settings.bus.topic)
    if handler is None:
        raise RoutingError(...)
"""

import logging
import re
from typing import Callable, Dict, List, Optional

from message_shipper.handlers.base import MessageHandler
from message_shipper.handlers.detection import Boxes2DAxisAlignedHandler
from message_shipper.handlers.image import (
    CompressedJpegHandler,
    RawAnyImageHandler,
    RawImageHandler,
)
from message_shipper.handlers.text import PlainTextHandler
from message_shipper.imaging.normalizer import PixelNormalizer
from message_shipper.models import schemas
from message_shipper.models.image import PixelFormat


logger = logging.getLogger(__name__)


SCHEMA_MARKER = "make87_messages-"

# Three fixed prefix segments, then the schema segment up to the next "/"
TOPIC_PATTERN = re.compile(
    r"^[^/]+/[^/]+/[^/]+/(?:" + re.escape(SCHEMA_MARKER) + r")?([^/]+)/"
)

HandlerFactory = Callable[[], MessageHandler]


class HandlerRegistry:
    """Schema-type identifier -> handler factory."""

    def __init__(self) -> None:
        self._factories: Dict[str, HandlerFactory] = {}

    def register(self, type_id: str, factory: HandlerFactory) -> None:
        """Register a factory, replacing any previous one for type_id."""
        if type_id in self._factories:
            logger.debug(f"Overwriting handler factory for {type_id}")
        self._factories[type_id] = factory

    def __contains__(self, type_id: str) -> bool:
        return type_id in self._factories

    def __len__(self) -> int:
        return len(self._factories)

    @property
    def type_ids(self) -> List[str]:
        return sorted(self._factories)

    @staticmethod
    def extract_type_id(topic: str) -> Optional[str]:
        """Return the schema-type identifier encoded in topic, if any."""
        match = TOPIC_PATTERN.match(topic)
        if match is None:
            return None
        return match.group(1)

    def resolve(self, topic: str) -> Optional[MessageHandler]:
        """
        Build the handler for a topic.

        Returns:
            A fresh handler, or None if the topic does not follow the naming
            convention or names an unknown schema type.
        """
        type_id = self.extract_type_id(topic)
        if type_id is None:
            logger.debug(f"Topic does not follow the naming convention: {topic}")
            return None

        factory = self._factories.get(type_id)
        if factory is None:
            logger.debug(f"No handler registered for {type_id} (topic {topic})")
            return None

        return factory()


def build_default_registry(normalizer: PixelNormalizer) -> HandlerRegistry:
    """Registry with every supported schema wired to one shared normalizer."""
    registry = HandlerRegistry()

    registry.register("text-PlainText", PlainTextHandler)
    registry.register("image-compressed-ImageJPEG", CompressedJpegHandler)
    registry.register(
        "image-uncompressed-ImageRawAny",
        lambda: RawAnyImageHandler(normalizer),
    )

    raw_formats = {
        "image-uncompressed-ImageRGB888": (schemas.ImageRGB888, PixelFormat.RGB888),
        "image-uncompressed-ImageRGBA8888": (schemas.ImageRGBA8888, PixelFormat.RGBA8888),
        "image-uncompressed-ImageYUV420": (schemas.ImageYUV420, PixelFormat.YUV420),
        "image-uncompressed-ImageNV12": (schemas.ImageNV12, PixelFormat.NV12),
        "image-uncompressed-ImageYUV422": (schemas.ImageYUV422, PixelFormat.YUV422),
        "image-uncompressed-ImageYUV444": (schemas.ImageYUV444, PixelFormat.YUV444),
    }
    for type_id, (schema, pixel_format) in raw_formats.items():
        registry.register(
            type_id,
            lambda schema=schema, pixel_format=pixel_format: RawImageHandler(
                schema, pixel_format, normalizer
            ),
        )

    registry.register("detection-box-Boxes2DAxisAligned", Boxes2DAxisAlignedHandler)

    return registry
