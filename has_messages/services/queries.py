"""Inbox, outbox and thread views over a MessageStore.

Every method is read-only. Stores filter; this module owns ordering and
grouping so the contracts below hold for any store:

- "newest first" means descending Message.created_at, ties broken by
  descending id.
- A thread is keyed by coalesce(original_message_id, id). Replies always
  point at the root, so grouping is one level deep.
"""

from __future__ import annotations

from typing import Iterable

from has_messages.domain.models import InboxEntry, Message, MessageOwner
from has_messages.domain.state_machine import OUTGOING_STATES, MessageState
from has_messages.storage.protocol import MessageStore


def _newest_first(messages: Iterable[Message]) -> list[Message]:
    return sorted(messages, key=lambda m: (m.created_at, m.id), reverse=True)


def _entries_newest_first(entries: Iterable[InboxEntry]) -> list[InboxEntry]:
    return sorted(entries, key=lambda e: (e.message.created_at, e.recipient.id), reverse=True)


def _unique_by_id(messages: Iterable[Message]) -> list[Message]:
    seen: set[str] = set()
    unique = []
    for message in messages:
        if message.id not in seen:
            seen.add(message.id)
            unique.append(message)
    return unique


class MessageQueryService:
    """Named, read-only message views for an owner."""

    def __init__(self, store: MessageStore):
        self._store = store

    # -- sender side --------------------------------------------------------

    def messages(self, user: MessageOwner) -> list[Message]:
        """Everything user authored and has not hidden, any state, newest first."""
        return _newest_first(self._store.messages_by_sender(user.id))

    def unsent_messages(self, user: MessageOwner) -> list[Message]:
        """Drafts: authored, state unsent, not hidden, newest first."""
        return _newest_first(self._store.messages_by_sender(user.id, states=[MessageState.UNSENT]))

    def sent_messages(self, user: MessageOwner) -> list[Message]:
        """Authored, state queued or sent, not hidden, newest first."""
        return _newest_first(self._store.messages_by_sender(user.id, states=OUTGOING_STATES))

    # -- receiver side ------------------------------------------------------

    def received_entries(self, user: MessageOwner) -> list[InboxEntry]:
        """user's visible recipient rows of sent messages, newest message first."""
        return _entries_newest_first(self._store.inbox_entries(user.id, states=[MessageState.SENT]))

    def received_messages(self, user: MessageOwner) -> list[Message]:
        return [entry.message for entry in self.received_entries(user)]

    def unread_messages(self, user: MessageOwner) -> list[Message]:
        """Received messages whose recipient row has no read_at."""
        return [entry.message for entry in self.received_entries(user) if entry.recipient.is_unread]

    def last_message_per_thread(self, user: MessageOwner) -> list[InboxEntry]:
        """One entry per thread: the user's most recently created visible message in it.

        Groups are ordered by recipient row id, descending. That is creation
        order only when the id allocator is monotonic; with UUID1 ids it is not.
        """
        latest: dict[str, InboxEntry] = {}
        for entry in _entries_newest_first(self._store.inbox_entries(user.id, states=None)):
            latest.setdefault(entry.message.thread_id, entry)
        return sorted(latest.values(), key=lambda e: e.recipient.id, reverse=True)

    # -- conversations ------------------------------------------------------

    def conversations(self, user: MessageOwner) -> list[Message]:
        """Authored (visible, any state) then received messages, each message once."""
        return _unique_by_id(self.messages(user) + self.received_messages(user))

    def original_conversations(self, user: MessageOwner) -> list[Message]:
        """Conversations that are thread roots."""
        return [m for m in self.conversations(user) if m.is_original]

    def find_conversation_by_id(self, user: MessageOwner, message_id: str) -> Message | None:
        """The conversation with this id, or None when user cannot see it."""
        message_id = str(message_id)
        for message in self.conversations(user):
            if message.id == message_id:
                return message
        return None

    def thread(self, user: MessageOwner, root_id: str) -> list[Message]:
        """Visible conversation messages in the thread rooted at root_id, oldest first."""
        members = [m for m in self.conversations(user) if m.thread_id == str(root_id)]
        return sorted(members, key=lambda m: (m.created_at, m.id))
