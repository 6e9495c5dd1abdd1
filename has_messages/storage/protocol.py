"""Storage collaborator protocol used by the delivery engine and query service."""

from contextlib import AbstractContextManager
from datetime import datetime
from typing import Iterable, Protocol

from has_messages.domain.models import InboxEntry, Message, Recipient
from has_messages.domain.state_machine import MessageState


class MessageStore(Protocol):
    """Narrow persistence interface. Ids come from the store's allocator."""

    def transaction(self) -> AbstractContextManager[None]:
        """Atomic unit: commit on normal exit, roll back on any exception. Nested calls join the outer one."""
        ...

    def create_message(
        self,
        sender_id: str,
        subject: str,
        body: str,
        original_message_id: str | None = None,
    ) -> Message:
        """Persist a new unsent message with a freshly allocated id and created_at."""
        ...

    def create_recipient_rows(self, message_id: str, receiver_ids: Iterable[str]) -> list[Recipient]:
        """Create one unread, visible row per receiver id. Only the delivery engine calls this."""
        ...

    def update_message_state(
        self,
        message_id: str,
        new_state: MessageState,
        expected_states: Iterable[MessageState],
    ) -> bool:
        """Set state only if the stored state is in expected_states. Returns False otherwise or if missing."""
        ...

    def mark_read(self, recipient_id: str, at: datetime) -> Recipient:
        ...

    def hide_recipient_row(self, recipient_id: str, at: datetime) -> Recipient:
        ...

    def hide_message(self, message_id: str, at: datetime) -> Message:
        ...

    def get_message(self, message_id: str) -> Message | None:
        ...

    def find_recipient_row(self, message_id: str, receiver_id: str) -> Recipient | None:
        ...

    def messages_by_sender(
        self,
        sender_id: str,
        states: Iterable[MessageState] | None = None,
        include_hidden: bool = False,
    ) -> list[Message]:
        """Messages authored by sender_id, optionally restricted to states. Unordered."""
        ...

    def inbox_entries(
        self,
        receiver_id: str,
        states: Iterable[MessageState] | None = (MessageState.SENT,),
        include_hidden: bool = False,
    ) -> list[InboxEntry]:
        """Recipient rows of receiver_id joined with their message. states=None means any state. Unordered."""
        ...
