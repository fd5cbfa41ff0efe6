"""
Error Types
===========

Exception hierarchy for the shipper.

Every failure that can happen while handling one bus message maps to exactly
one of these classes, so the dispatch loop can count and log each kind
separately and keep consuming.

Fatal (startup only):
    - RoutingError: subscription topic cannot be mapped to a handler
    - SinkConnectionError: sink unreachable on first connect

Per-message (logged, message skipped):
    - DecodeError: payload does not parse as the expected schema
    - MalformedPayloadError: size/shape invariant violated
    - UnsupportedFormatError: recognized but unimplemented variant
    - ConversionError: pixel conversion or encoding failed
    - SinkError: sink rejected a write
"""


class ShipperError(Exception):
    """Base class for all shipper errors."""
    pass


class RoutingError(ShipperError):
    """Raised when a topic does not resolve to a registered handler."""
    pass


class DecodeError(ShipperError):
    """Raised when a payload cannot be decoded as its schema."""
    pass


class MalformedPayloadError(ShipperError):
    """Raised when a decoded payload violates its size invariant."""
    pass


class UnsupportedFormatError(ShipperError):
    """Raised for pixel formats that are recognized but not handled."""
    pass


class ConversionError(ShipperError):
    """Raised when a color conversion or image encode fails."""
    pass


class SinkError(ShipperError):
    """Raised when forwarding an artifact to the sink fails."""
    pass


class SinkConnectionError(ShipperError):
    """Raised when the sink connection cannot be (re)established."""
    pass
