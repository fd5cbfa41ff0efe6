"""
Handler Tests
=============

Envelope decoding and per-schema decode-and-forward behaviour.
"""

import time

import pytest

from message_shipper.errors import DecodeError, MalformedPayloadError
from message_shipper.handlers.detection import Boxes2DAxisAlignedHandler
from message_shipper.handlers.envelope import (
    decode_envelope,
    ensure_leading_slash,
    timestamp_to_seconds,
)
from message_shipper.handlers.image import (
    CompressedJpegHandler,
    RawAnyImageHandler,
    RawImageHandler,
)
from message_shipper.handlers.text import PlainTextHandler
from message_shipper.imaging import NormalizationMode, PixelNormalizer
from message_shipper.models import schemas
from message_shipper.models.artifacts import (
    CompressedArtifact,
    ShapeArtifact,
    TensorArtifact,
    TextArtifact,
)
from message_shipper.models.image import PixelFormat
from message_shipper.sink.base import TIMELINE_NAME


# Tag 1, length 5, but only two bytes follow
TRUNCATED_PAYLOAD = b"\x0a\x05ab"


class TestEnvelope:

    def test_header_time_and_path(self, fake_sink, make_header):
        """Verify header time and entity path drive the envelope."""
        header = make_header("cam0/front", seconds=1700000000, nanos=500_000_000)
        envelope = decode_envelope(header, fake_sink)

        assert envelope.path == "/cam0/front"
        assert envelope.time_seconds == pytest.approx(1700000000.5)
        assert fake_sink.cursors == [(TIMELINE_NAME, envelope.time_seconds)]

    def test_missing_header_uses_root_and_now(self, fake_sink):
        """Verify a missing header falls back to root and wall clock."""
        before = time.time()
        envelope = decode_envelope(None, fake_sink)

        assert envelope.path == "/"
        assert abs(envelope.time_seconds - before) < 1.0
        assert len(fake_sink.cursors) == 1

    def test_header_without_timestamp_uses_clock(self, fake_sink, make_header):
        """Verify a header without timestamp uses the wall clock."""
        header = make_header("/lidar", seconds=None)
        envelope = decode_envelope(header, fake_sink, clock=lambda: 42.0)
        assert envelope.path == "/lidar"
        assert envelope.time_seconds == 42.0

    def test_empty_entity_path_is_root(self, fake_sink, make_header):
        """Verify an empty entity path maps to root."""
        assert decode_envelope(make_header(""), fake_sink).path == "/"

    def test_helpers(self, make_header):
        """Verify path and timestamp helpers."""
        assert ensure_leading_slash("/a") == "/a"
        assert ensure_leading_slash("a/b") == "/a/b"
        header = make_header(seconds=3, nanos=250_000_000)
        assert timestamp_to_seconds(header.timestamp) == 3.25


class TestPlainText:

    def test_forwards_text(self, fake_sink, plain_text_payload):
        """Verify PlainText is forwarded as a text artifact."""
        artifact = PlainTextHandler().handle(plain_text_payload, fake_sink)

        assert isinstance(artifact, TextArtifact)
        assert artifact.text == "hello"
        assert fake_sink.forwarded == [("/logs", artifact)]
        assert fake_sink.cursors == [(TIMELINE_NAME, 1700000000.0)]

    def test_no_header(self, fake_sink):
        """Verify PlainText without header still forwards."""
        payload = schemas.PlainText(body="bare").SerializeToString()
        PlainTextHandler(clock=lambda: 7.0).handle(payload, fake_sink)
        assert fake_sink.forwarded[0][0] == "/"
        assert fake_sink.cursors == [(TIMELINE_NAME, 7.0)]

    def test_invalid_payload(self, fake_sink):
        """Verify a corrupt payload raises DecodeError."""
        with pytest.raises(DecodeError):
            PlainTextHandler().handle(TRUNCATED_PAYLOAD, fake_sink)
        assert fake_sink.forwarded == []


class TestImageHandlers:

    def test_jpeg_passthrough(self, fake_sink, make_header):
        """Verify JPEG bytes are forwarded untouched."""
        data = b"\xff\xd8\xff\xdbjpeg-bytes"
        payload = schemas.ImageJPEG(header=make_header("/cam"), data=data).SerializeToString()

        artifact = CompressedJpegHandler().handle(payload, fake_sink)

        assert isinstance(artifact, CompressedArtifact)
        assert artifact.data == data
        assert fake_sink.forwarded == [("/cam", artifact)]

    def test_raw_rgb(self, fake_sink, make_raw_payload):
        """Verify raw RGB images become tensors."""
        data = bytes(range(12))
        payload = make_raw_payload("ImageRGB888", 2, 2, data)
        handler = RawImageHandler(schemas.ImageRGB888, PixelFormat.RGB888, PixelNormalizer())

        artifact = handler.handle(payload, fake_sink)

        assert isinstance(artifact, TensorArtifact)
        assert artifact.data.tobytes() == data
        assert fake_sink.forwarded[0][0] == "/camera"

    def test_raw_size_mismatch(self, fake_sink, make_raw_payload):
        """Verify a raw size mismatch is malformed."""
        payload = make_raw_payload("ImageYUV420", 4, 4, bytes(10))
        handler = RawImageHandler(schemas.ImageYUV420, PixelFormat.YUV420, PixelNormalizer())

        with pytest.raises(MalformedPayloadError):
            handler.handle(payload, fake_sink)
        assert fake_sink.forwarded == []

    def test_raw_jpeg_mode(self, fake_sink, make_raw_payload):
        """Verify raw images are encoded in JPEG mode."""
        payload = make_raw_payload("ImageNV12", 8, 8, bytes([128]) * 96)
        normalizer = PixelNormalizer(mode=NormalizationMode.JPEG)
        handler = RawImageHandler(schemas.ImageNV12, PixelFormat.NV12, normalizer)

        artifact = handler.handle(payload, fake_sink)
        assert isinstance(artifact, CompressedArtifact)
        assert artifact.data[:2] == b"\xff\xd8"

    def test_raw_any_picks_oneof(self, fake_sink, make_header):
        """Verify ImageRawAny routes on its populated variant."""
        message = schemas.ImageRawAny(header=make_header("/any"))
        message.nv12.width = 4
        message.nv12.height = 2
        message.nv12.data = bytes([235]) * 8 + bytes([128]) * 4

        artifact = RawAnyImageHandler(PixelNormalizer()).handle(
            message.SerializeToString(), fake_sink
        )

        assert artifact.data.shape == (2, 4, 3)
        assert (artifact.data == 255).all()
        assert fake_sink.forwarded[0][0] == "/any"

    def test_raw_any_empty_oneof(self, fake_sink, make_header):
        """Verify ImageRawAny without a variant is refused."""
        payload = schemas.ImageRawAny(header=make_header()).SerializeToString()
        with pytest.raises(DecodeError, match="No image format"):
            RawAnyImageHandler(PixelNormalizer()).handle(payload, fake_sink)


class TestBoxes:

    def _payload(self, make_header, *geometries):
        message = schemas.Boxes2DAxisAligned(header=make_header("/detections"))
        for x, y, w, h in geometries:
            box = message.boxes.add()
            box.geometry.x = x
            box.geometry.y = y
            box.geometry.width = w
            box.geometry.height = h
        return message.SerializeToString()

    def test_centers_and_half_sizes(self, fake_sink, make_header):
        """Verify boxes convert to centers and half sizes."""
        payload = self._payload(make_header, (10.0, 20.0, 4.0, 6.0), (0.0, 0.0, 2.0, 2.0))

        artifact = Boxes2DAxisAlignedHandler().handle(payload, fake_sink)

        assert isinstance(artifact, ShapeArtifact)
        assert artifact.centers == [(12.0, 23.0), (1.0, 1.0)]
        assert artifact.half_sizes == [(2.0, 3.0), (1.0, 1.0)]
        assert fake_sink.forwarded == [("/detections", artifact)]

    def test_empty_batch_forwards_nothing(self, fake_sink, make_header):
        """Verify an empty box batch forwards nothing."""
        payload = self._payload(make_header)
        assert Boxes2DAxisAlignedHandler().handle(payload, fake_sink) is None
        assert fake_sink.forwarded == []

    def test_box_without_geometry_is_skipped(self, fake_sink, make_header):
        """Verify boxes without geometry are skipped."""
        message = schemas.Boxes2DAxisAligned(header=make_header("/d"))
        message.boxes.add(confidence=0.5)
        box = message.boxes.add()
        box.geometry.width = 2.0
        box.geometry.height = 2.0

        artifact = Boxes2DAxisAlignedHandler().handle(message.SerializeToString(), fake_sink)
        assert len(artifact) == 1
