"""
Detection Handlers
==================

Axis-aligned 2D box detections.

Each box geometry (top-left x/y, width, height) becomes a center and half
size; all boxes of one message are forwarded as a single batch.
"""

import logging
from typing import Optional

from message_shipper.handlers.base import MessageHandler
from message_shipper.models.artifacts import ShapeArtifact
from message_shipper.models.schemas import Boxes2DAxisAligned
from message_shipper.sink.base import Sink


logger = logging.getLogger(__name__)


class Boxes2DAxisAlignedHandler(MessageHandler):
    """Forwards Boxes2DAxisAligned as one batch of 2D boxes."""

    schema = Boxes2DAxisAligned

    def handle(self, payload: bytes, sink: Sink) -> Optional[ShapeArtifact]:
        message = self.decode(payload)
        envelope = self.envelope(message, sink)

        if not message.boxes:
            logger.info("No boxes to log in Boxes2DAxisAligned message")
            return None

        centers = []
        half_sizes = []
        for box in message.boxes:
            if not box.HasField("geometry"):
                continue
            geometry = box.geometry
            centers.append((geometry.x + geometry.width / 2.0, geometry.y + geometry.height / 2.0))
            half_sizes.append((geometry.width / 2.0, geometry.height / 2.0))

        if not centers:
            logger.debug("Boxes2DAxisAligned message had no box geometry")
            return None

        artifact = ShapeArtifact(centers=centers, half_sizes=half_sizes)
        sink.forward(envelope.path, artifact)
        return artifact
