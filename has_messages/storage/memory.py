"""In-memory message store.

Keeps the same contract as the relational store: a transaction is atomic
(every write records an undo step, replayed in reverse on error) and
readers block on the store lock, so they never observe a half-applied
delivery.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Generator, Iterable

from has_messages.domain.models import InboxEntry, Message, Recipient
from has_messages.domain.state_machine import INITIAL_STATE, MessageState
from has_messages.errors import NotFoundError, StorageFailure
from has_messages.ids import IdAllocator, SequentialIdAllocator
from has_messages.utils.clock import Clock, utcnow
from has_messages.utils.logger import get_logger

logger = get_logger("has_messages.storage.memory")


def _restore(entity, **fields) -> Callable[[], None]:
    """Undo step that puts the given field values back on entity."""

    def step() -> None:
        for name, value in fields.items():
            setattr(entity, name, value)

    return step


class InMemoryMessageStore:
    """MessageStore held in dicts; useful for tests and embedding without a database."""

    def __init__(self, allocator: IdAllocator | None = None, clock: Clock | None = None):
        self._allocator = allocator or SequentialIdAllocator()
        self._clock = clock or utcnow
        self._lock = threading.RLock()
        self._undo: list[Callable[[], None]] | None = None
        self._messages: dict[str, Message] = {}
        self._recipients: dict[str, Recipient] = {}

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        with self._lock:
            if self._undo is not None:
                yield
                return
            self._undo = []
            try:
                yield
            except Exception as e:
                for step in reversed(self._undo):
                    step()
                logger.debug("store.transaction.rollback", error_type=type(e).__name__, undone=len(self._undo))
                raise
            finally:
                self._undo = None

    def _on_rollback(self, step: Callable[[], None]) -> None:
        """Register an undo step. Only valid inside transaction()."""
        self._undo.append(step)

    # -- writes -------------------------------------------------------------

    def create_message(
        self,
        sender_id: str,
        subject: str,
        body: str,
        original_message_id: str | None = None,
    ) -> Message:
        with self.transaction():
            message = Message(
                id=self._allocator.new_id(),
                sender_id=sender_id,
                subject=subject,
                body=body,
                state=INITIAL_STATE,
                created_at=self._clock(),
                original_message_id=original_message_id,
            )
            self._messages[message.id] = message
            self._on_rollback(lambda: self._messages.pop(message.id, None))
            logger.debug("store.message.created", message_id=message.id, sender_id=sender_id)
            return message.model_copy(deep=True)

    def create_recipient_rows(self, message_id: str, receiver_ids: Iterable[str]) -> list[Recipient]:
        with self.transaction():
            if message_id not in self._messages:
                raise NotFoundError("Message", message_id)
            existing = {r.receiver_id for r in self._recipients.values() if r.message_id == message_id}
            created = []
            for receiver_id in receiver_ids:
                if receiver_id in existing:
                    raise StorageFailure(
                        f"Duplicate recipient row for message {message_id!r} and receiver {receiver_id!r}"
                    )
                existing.add(receiver_id)
                row = Recipient(id=self._allocator.new_id(), message_id=message_id, receiver_id=receiver_id)
                self._recipients[row.id] = row
                self._on_rollback(lambda row_id=row.id: self._recipients.pop(row_id, None))
                created.append(row.model_copy())
            logger.debug("store.recipients.created", message_id=message_id, count=len(created))
            return created

    def update_message_state(
        self,
        message_id: str,
        new_state: MessageState,
        expected_states: Iterable[MessageState],
    ) -> bool:
        expected = {MessageState(s) for s in expected_states}
        with self.transaction():
            message = self._messages.get(message_id)
            swapped = message is not None and message.state in expected
            if swapped:
                self._on_rollback(_restore(message, state=message.state, created_at=message.created_at))
                message.state = MessageState(new_state)
                if message.created_at is None:
                    message.created_at = self._clock()
            logger.debug(
                "store.message.state_update",
                message_id=message_id,
                new_state=MessageState(new_state).value,
                swapped=swapped,
            )
            return swapped

    def mark_read(self, recipient_id: str, at: datetime) -> Recipient:
        with self.transaction():
            row = self._recipient_or_raise(recipient_id)
            self._on_rollback(_restore(row, read_at=row.read_at))
            row.read_at = at
            return row.model_copy()

    def hide_recipient_row(self, recipient_id: str, at: datetime) -> Recipient:
        with self.transaction():
            row = self._recipient_or_raise(recipient_id)
            self._on_rollback(_restore(row, hidden_at=row.hidden_at))
            row.hidden_at = at
            return row.model_copy()

    def hide_message(self, message_id: str, at: datetime) -> Message:
        with self.transaction():
            message = self._messages.get(message_id)
            if message is None:
                raise NotFoundError("Message", message_id)
            self._on_rollback(_restore(message, hidden_at=message.hidden_at))
            message.hidden_at = at
            return self._materialize(message)

    def _recipient_or_raise(self, recipient_id: str) -> Recipient:
        row = self._recipients.get(recipient_id)
        if row is None:
            raise NotFoundError("Recipient", recipient_id)
        return row

    # -- reads --------------------------------------------------------------

    def _materialize(self, message: Message) -> Message:
        """Copy of message with its recipient rows attached, in id order."""
        rows = sorted(
            (r.model_copy() for r in self._recipients.values() if r.message_id == message.id),
            key=lambda r: r.id,
        )
        return message.model_copy(update={"recipients": rows}, deep=True)

    def get_message(self, message_id: str) -> Message | None:
        with self._lock:
            message = self._messages.get(message_id)
            return self._materialize(message) if message is not None else None

    def find_recipient_row(self, message_id: str, receiver_id: str) -> Recipient | None:
        with self._lock:
            for row in self._recipients.values():
                if row.message_id == message_id and row.receiver_id == receiver_id:
                    return row.model_copy()
            return None

    def messages_by_sender(
        self,
        sender_id: str,
        states: Iterable[MessageState] | None = None,
        include_hidden: bool = False,
    ) -> list[Message]:
        wanted = {MessageState(s) for s in states} if states is not None else None
        with self._lock:
            return [
                self._materialize(m)
                for m in self._messages.values()
                if m.sender_id == sender_id
                and (wanted is None or m.state in wanted)
                and (include_hidden or m.hidden_at is None)
            ]

    def inbox_entries(
        self,
        receiver_id: str,
        states: Iterable[MessageState] | None = (MessageState.SENT,),
        include_hidden: bool = False,
    ) -> list[InboxEntry]:
        wanted = {MessageState(s) for s in states} if states is not None else None
        with self._lock:
            entries = []
            for row in self._recipients.values():
                if row.receiver_id != receiver_id or (row.hidden_at is not None and not include_hidden):
                    continue
                message = self._messages[row.message_id]
                if wanted is not None and message.state not in wanted:
                    continue
                entries.append(InboxEntry(recipient=row.model_copy(), message=self._materialize(message)))
            return entries
