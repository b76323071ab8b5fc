"""Append-only message timeline."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Sender(str, Enum):
    USER = "user"
    BOT = "bot"


class MessageKind(str, Enum):
    """How the presentation layer should render a message."""

    PLAIN_TEXT = "plain-text"
    OPTION_CHOICES = "option-choices"
    IMAGE_COLLECTION_WIDGET = "image-collection-widget"
    STYLE_INPUTS_WIDGET = "style-inputs-widget"
    RESULT_DISPLAY = "result-display"


class Option(BaseModel):
    """Selectable option carried in an option-choices payload."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str


class Message(BaseModel):
    """Single conversation turn. Never mutated after it is appended."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    sender: Sender
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    kind: MessageKind = MessageKind.PLAIN_TEXT
    payload: dict[str, Any] | None = None

    @property
    def options(self) -> list[Option]:
        """Get options of an option-choices (or result) message."""
        if not self.payload:
            return []
        return [Option.model_validate(raw) for raw in self.payload.get("options", [])]


class MessageTimeline:
    """Ordered log of conversation turns."""

    def __init__(self) -> None:
        self._messages: list[Message] = []

    def __len__(self) -> int:
        return len(self._messages)

    def append(
        self,
        sender: Sender,
        content: str,
        kind: MessageKind = MessageKind.PLAIN_TEXT,
        payload: dict[str, Any] | None = None,
    ) -> Message:
        message = Message(sender=sender, content=content, kind=kind, payload=payload)
        self._messages.append(message)
        return message

    def bot(
        self,
        content: str,
        kind: MessageKind = MessageKind.PLAIN_TEXT,
        payload: dict[str, Any] | None = None,
    ) -> Message:
        """Append a bot message."""
        return self.append(Sender.BOT, content, kind, payload)

    def user(self, content: str) -> Message:
        """Append a plain user message."""
        return self.append(Sender.USER, content)

    def snapshot(self) -> tuple[Message, ...]:
        """Get a read-only copy of all messages in insertion order."""
        return tuple(self._messages)

    def last(self) -> Message | None:
        return self._messages[-1] if self._messages else None
