"""
Message Schemas
===============

Protobuf message classes for the payloads published on the bus.

The schemas are declared here as a FileDescriptorProto and registered in a
private descriptor pool, so no generated *_pb2 modules are needed. Field
numbers must match the publisher's .proto definitions.

Shapes:
    Header              { timestamp, reference_id, entity_path }
    PlainText           { header, body }
    ImageJPEG           { header, data }
    Image<Format>       { header, width, height, data }
    ImageRawAny         { header, oneof image { rgb888 .. nv12 } }
    Box2DAxisAligned    { header, geometry { x, y, width, height },
                          confidence, class_id }
    Boxes2DAxisAligned  { header, boxes[] }

Example:
    from message_shipper.models.schemas import ImageRGB888

    msg = ImageRGB888.FromString(payload)
    print(msg.width, msg.height, len(msg.data))
"""

from google.protobuf import descriptor_pb2, descriptor_pool, timestamp_pb2
from google.protobuf.message_factory import GetMessageClass


PACKAGE = "make87_messages"

_F = descriptor_pb2.FieldDescriptorProto
_TIMESTAMP = ".google.protobuf.Timestamp"

# Per-format raw image messages share one layout
RAW_IMAGE_MESSAGES = (
    "ImageRGB888",
    "ImageRGBA8888",
    "ImageYUV420",
    "ImageYUV422",
    "ImageYUV444",
    "ImageNV12",
)

# ImageRawAny oneof members, in field-number order
RAW_ANY_FIELDS = (
    ("rgb888", "ImageRGB888"),
    ("rgba8888", "ImageRGBA8888"),
    ("yuv420", "ImageYUV420"),
    ("yuv422", "ImageYUV422"),
    ("yuv444", "ImageYUV444"),
    ("nv12", "ImageNV12"),
)


def _ref(name: str) -> str:
    return f".{PACKAGE}.{name}"


def _add_field(message, name, number, kind, type_name=None, repeated=False, oneof_index=None):
    field = message.field.add(
        name=name,
        number=number,
        type=kind,
        label=_F.LABEL_REPEATED if repeated else _F.LABEL_OPTIONAL,
    )
    if type_name is not None:
        field.type_name = type_name
    if oneof_index is not None:
        field.oneof_index = oneof_index
    return field


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    proto = descriptor_pb2.FileDescriptorProto(
        name="make87_messages/shipper_schemas.proto",
        package=PACKAGE,
        syntax="proto3",
    )
    proto.dependency.append("google/protobuf/timestamp.proto")

    header = proto.message_type.add(name="Header")
    _add_field(header, "timestamp", 1, _F.TYPE_MESSAGE, _TIMESTAMP)
    _add_field(header, "reference_id", 2, _F.TYPE_INT64)
    _add_field(header, "entity_path", 3, _F.TYPE_STRING)

    text = proto.message_type.add(name="PlainText")
    _add_field(text, "header", 1, _F.TYPE_MESSAGE, _ref("Header"))
    _add_field(text, "body", 2, _F.TYPE_STRING)

    jpeg = proto.message_type.add(name="ImageJPEG")
    _add_field(jpeg, "header", 1, _F.TYPE_MESSAGE, _ref("Header"))
    _add_field(jpeg, "data", 2, _F.TYPE_BYTES)

    for name in RAW_IMAGE_MESSAGES:
        image = proto.message_type.add(name=name)
        _add_field(image, "header", 1, _F.TYPE_MESSAGE, _ref("Header"))
        _add_field(image, "width", 2, _F.TYPE_UINT32)
        _add_field(image, "height", 3, _F.TYPE_UINT32)
        _add_field(image, "data", 4, _F.TYPE_BYTES)

    raw_any = proto.message_type.add(name="ImageRawAny")
    _add_field(raw_any, "header", 1, _F.TYPE_MESSAGE, _ref("Header"))
    raw_any.oneof_decl.add(name="image")
    for number, (field_name, type_name) in enumerate(RAW_ANY_FIELDS, start=2):
        _add_field(raw_any, field_name, number, _F.TYPE_MESSAGE, _ref(type_name), oneof_index=0)

    geometry = proto.message_type.add(name="Box2DAxisAlignedGeometry")
    _add_field(geometry, "x", 1, _F.TYPE_FLOAT)
    _add_field(geometry, "y", 2, _F.TYPE_FLOAT)
    _add_field(geometry, "width", 3, _F.TYPE_FLOAT)
    _add_field(geometry, "height", 4, _F.TYPE_FLOAT)

    box = proto.message_type.add(name="Box2DAxisAligned")
    _add_field(box, "header", 1, _F.TYPE_MESSAGE, _ref("Header"))
    _add_field(box, "geometry", 2, _F.TYPE_MESSAGE, _ref("Box2DAxisAlignedGeometry"))
    _add_field(box, "confidence", 3, _F.TYPE_FLOAT)
    _add_field(box, "class_id", 4, _F.TYPE_INT32)

    boxes = proto.message_type.add(name="Boxes2DAxisAligned")
    _add_field(boxes, "header", 1, _F.TYPE_MESSAGE, _ref("Header"))
    _add_field(boxes, "boxes", 2, _F.TYPE_MESSAGE, _ref("Box2DAxisAligned"), repeated=True)

    return proto


_POOL = descriptor_pool.DescriptorPool()
_POOL.AddSerializedFile(timestamp_pb2.DESCRIPTOR.serialized_pb)
_POOL.AddSerializedFile(_build_file().SerializeToString())


def message_class(name: str):
    """Return the message class for a schema name (e.g. "ImageNV12")."""
    return GetMessageClass(_POOL.FindMessageTypeByName(f"{PACKAGE}.{name}"))


Header = message_class("Header")
PlainText = message_class("PlainText")
ImageJPEG = message_class("ImageJPEG")
ImageRGB888 = message_class("ImageRGB888")
ImageRGBA8888 = message_class("ImageRGBA8888")
ImageYUV420 = message_class("ImageYUV420")
ImageYUV422 = message_class("ImageYUV422")
ImageYUV444 = message_class("ImageYUV444")
ImageNV12 = message_class("ImageNV12")
ImageRawAny = message_class("ImageRawAny")
Box2DAxisAlignedGeometry = message_class("Box2DAxisAlignedGeometry")
Box2DAxisAligned = message_class("Box2DAxisAligned")
Boxes2DAxisAligned = message_class("Boxes2DAxisAligned")
