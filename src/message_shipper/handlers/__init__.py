"""
Handlers Module
===============

Topic routing and per-schema decode-and-forward logic.

    - HandlerRegistry / build_default_registry: topic -> handler
    - MessageHandler: abstract handler
    - decode_envelope: header -> (path, time) + timeline cursor
"""

from message_shipper.handlers.base import MessageHandler
from message_shipper.handlers.envelope import Envelope, decode_envelope
from message_shipper.handlers.registry import HandlerRegistry, build_default_registry


__all__ = [
    "MessageHandler",
    "Envelope",
    "decode_envelope",
    "HandlerRegistry",
    "build_default_registry",
]
