"""Message, recipient and owner models."""

from datetime import datetime
from typing import Optional, Protocol

from pydantic import BaseModel, Field

from has_messages.domain.state_machine import MessageState


class MessageOwner(Protocol):
    """Anything that can send or receive messages: only an opaque id is required."""

    id: str


class User(BaseModel):
    """Minimal owner used by the CLI and tests."""

    id: str
    name: Optional[str] = None


class Recipient(BaseModel):
    """Per-addressee delivery record of a sent message."""

    id: str
    message_id: str
    receiver_id: str
    read_at: Optional[datetime] = None
    hidden_at: Optional[datetime] = None

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

    @property
    def is_unread(self) -> bool:
        return self.read_at is None

    @property
    def is_hidden(self) -> bool:
        return self.hidden_at is not None


class Message(BaseModel):
    """A composed message. Recipients exist only once the message is sent."""

    id: str
    sender_id: str
    subject: str = ""
    body: str = ""
    state: MessageState = MessageState.UNSENT
    created_at: datetime
    original_message_id: Optional[str] = None
    hidden_at: Optional[datetime] = None
    recipients: list[Recipient] = Field(default_factory=list)

    @property
    def is_original(self) -> bool:
        return self.original_message_id is None

    @property
    def thread_id(self) -> str:
        """Thread root id: coalesce(original_message_id, id)."""
        return self.original_message_id or self.id

    @property
    def is_hidden(self) -> bool:
        return self.hidden_at is not None

    @property
    def receiver_ids(self) -> list[str]:
        return [r.receiver_id for r in self.recipients]


class InboxEntry(BaseModel):
    """A receiver's recipient row together with the message it points at."""

    recipient: Recipient
    message: Message
