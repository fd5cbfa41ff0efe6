"""Plain text handler."""

from typing import Optional

from message_shipper.handlers.base import MessageHandler
from message_shipper.models.artifacts import TextArtifact
from message_shipper.models.schemas import PlainText
from message_shipper.sink.base import Sink


class PlainTextHandler(MessageHandler):
    """Forwards PlainText bodies as text documents."""

    schema = PlainText

    def handle(self, payload: bytes, sink: Sink) -> Optional[TextArtifact]:
        message = self.decode(payload)
        envelope = self.envelope(message, sink)
        artifact = TextArtifact(text=message.body)
        sink.forward(envelope.path, artifact)
        return artifact
