"""Diagnostics counters owned by the dispatch loop."""


class DispatchMetrics:
    """Metrics for Dispatcher observability."""

    __slots__ = (
        "messages_received",
        "messages_forwarded",
        "messages_skipped",
        "bytes_received",
        "decode_errors",
        "malformed_payloads",
        "unsupported_formats",
        "conversion_failures",
        "forward_errors",
        "unexpected_errors",
        "last_message_at",
    )

    def __init__(self) -> None:
        self.messages_received: int = 0
        self.messages_forwarded: int = 0
        self.messages_skipped: int = 0
        self.bytes_received: int = 0
        self.decode_errors: int = 0
        self.malformed_payloads: int = 0
        self.unsupported_formats: int = 0
        self.conversion_failures: int = 0
        self.forward_errors: int = 0
        self.unexpected_errors: int = 0
        self.last_message_at: float = 0.0

    @property
    def failures(self) -> int:
        return (
            self.decode_errors
            + self.malformed_payloads
            + self.unsupported_formats
            + self.conversion_failures
            + self.forward_errors
            + self.unexpected_errors
        )

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "messages_received": self.messages_received,
            "messages_forwarded": self.messages_forwarded,
            "messages_skipped": self.messages_skipped,
            "bytes_received": self.bytes_received,
            "decode_errors": self.decode_errors,
            "malformed_payloads": self.malformed_payloads,
            "unsupported_formats": self.unsupported_formats,
            "conversion_failures": self.conversion_failures,
            "forward_errors": self.forward_errors,
            "unexpected_errors": self.unexpected_errors,
            "failures": self.failures,
            "last_message_at": self.last_message_at,
        }
