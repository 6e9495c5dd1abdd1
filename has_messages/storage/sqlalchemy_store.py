"""Relational message store on SQLAlchemy sessions.

One session per thread is held open for the duration of ``transaction()``;
every other method joins that session when present, or opens its own
short-lived one (commit on success, rollback on error) otherwise.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Generator, Iterable

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload, sessionmaker

from has_messages.db import get_session_factory
from has_messages.db.models import MessageRecipientRecord, MessageRecord
from has_messages.domain.models import InboxEntry, Message, Recipient
from has_messages.domain.state_machine import INITIAL_STATE, MessageState
from has_messages.errors import NotFoundError, StorageFailure
from has_messages.ids import IdAllocator, default_allocator
from has_messages.storage.mapping import record_to_message, record_to_recipient, records_to_inbox_entry
from has_messages.utils.clock import Clock, utcnow
from has_messages.utils.logger import get_logger

logger = get_logger("has_messages.storage.sqlalchemy")


class SqlAlchemyMessageStore:
    """MessageStore backed by the messages / message_recipients tables."""

    def __init__(
        self,
        session_factory: sessionmaker | None = None,
        allocator: IdAllocator | None = None,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._allocator = allocator or default_allocator()
        self._clock = clock or utcnow
        self._local = threading.local()

    def _new_session(self) -> Session:
        factory = self._session_factory or get_session_factory()
        return factory()

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        if getattr(self._local, "session", None) is not None:
            yield
            return
        session = self._new_session()
        self._local.session = session
        try:
            yield
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("store.transaction.storage_error", error=str(e))
            raise StorageFailure(f"Database error: {e}") from e
        except Exception as e:
            session.rollback()
            logger.debug("store.transaction.rollback", error_type=type(e).__name__)
            raise
        finally:
            self._local.session = None
            session.close()

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        active = getattr(self._local, "session", None)
        if active is None:
            with self.transaction():
                yield self._local.session
            return
        try:
            yield active
        except SQLAlchemyError as e:
            logger.error("store.session.storage_error", error=str(e))
            raise StorageFailure(f"Database error: {e}") from e

    # -- writes -------------------------------------------------------------

    def create_message(
        self,
        sender_id: str,
        subject: str,
        body: str,
        original_message_id: str | None = None,
    ) -> Message:
        with self._session() as session:
            row = MessageRecord(
                id=self._allocator.new_id(),
                sender_id=sender_id,
                subject=subject,
                body=body,
                state=INITIAL_STATE.value,
                created_at=self._clock(),
                original_message_id=original_message_id,
            )
            session.add(row)
            session.flush()
            logger.debug("store.message.created", message_id=row.id, sender_id=sender_id)
            return record_to_message(row, with_recipients=False)

    def create_recipient_rows(self, message_id: str, receiver_ids: Iterable[str]) -> list[Recipient]:
        with self._session() as session:
            if session.get(MessageRecord, message_id) is None:
                raise NotFoundError("Message", message_id)
            rows = [
                MessageRecipientRecord(id=self._allocator.new_id(), message_id=message_id, receiver_id=receiver_id)
                for receiver_id in receiver_ids
            ]
            session.add_all(rows)
            session.flush()
            logger.debug("store.recipients.created", message_id=message_id, count=len(rows))
            return [record_to_recipient(r) for r in rows]

    def update_message_state(
        self,
        message_id: str,
        new_state: MessageState,
        expected_states: Iterable[MessageState],
    ) -> bool:
        expected = [MessageState(s).value for s in expected_states]
        with self._session() as session:
            result = session.execute(
                update(MessageRecord)
                .where(MessageRecord.id == message_id)
                .where(MessageRecord.state.in_(expected))
                .values(
                    state=MessageState(new_state).value,
                    created_at=func.coalesce(MessageRecord.created_at, self._clock()),
                )
                .execution_options(synchronize_session=False)
            )
            swapped = result.rowcount == 1
            logger.debug(
                "store.message.state_update",
                message_id=message_id,
                new_state=MessageState(new_state).value,
                swapped=swapped,
            )
            return swapped

    def mark_read(self, recipient_id: str, at: datetime) -> Recipient:
        with self._session() as session:
            row = self._recipient_or_raise(session, recipient_id)
            row.read_at = at
            session.flush()
            return record_to_recipient(row)

    def hide_recipient_row(self, recipient_id: str, at: datetime) -> Recipient:
        with self._session() as session:
            row = self._recipient_or_raise(session, recipient_id)
            row.hidden_at = at
            session.flush()
            return record_to_recipient(row)

    def hide_message(self, message_id: str, at: datetime) -> Message:
        with self._session() as session:
            row = session.get(MessageRecord, message_id)
            if row is None:
                raise NotFoundError("Message", message_id)
            row.hidden_at = at
            session.flush()
            return record_to_message(row)

    @staticmethod
    def _recipient_or_raise(session: Session, recipient_id: str) -> MessageRecipientRecord:
        row = session.get(MessageRecipientRecord, recipient_id)
        if row is None:
            raise NotFoundError("Recipient", recipient_id)
        return row

    # -- reads --------------------------------------------------------------

    def get_message(self, message_id: str) -> Message | None:
        with self._session() as session:
            row = session.get(MessageRecord, message_id, options=[selectinload(MessageRecord.recipients)])
            return record_to_message(row) if row is not None else None

    def find_recipient_row(self, message_id: str, receiver_id: str) -> Recipient | None:
        with self._session() as session:
            row = session.scalars(
                select(MessageRecipientRecord)
                .where(MessageRecipientRecord.message_id == message_id)
                .where(MessageRecipientRecord.receiver_id == receiver_id)
            ).first()
            return record_to_recipient(row) if row is not None else None

    def messages_by_sender(
        self,
        sender_id: str,
        states: Iterable[MessageState] | None = None,
        include_hidden: bool = False,
    ) -> list[Message]:
        q = (
            select(MessageRecord)
            .where(MessageRecord.sender_id == sender_id)
            .options(selectinload(MessageRecord.recipients))
            .order_by(MessageRecord.created_at.desc(), MessageRecord.id.desc())
        )
        if states is not None:
            q = q.where(MessageRecord.state.in_([MessageState(s).value for s in states]))
        if not include_hidden:
            q = q.where(MessageRecord.hidden_at.is_(None))
        with self._session() as session:
            return [record_to_message(row) for row in session.scalars(q).all()]

    def inbox_entries(
        self,
        receiver_id: str,
        states: Iterable[MessageState] | None = (MessageState.SENT,),
        include_hidden: bool = False,
    ) -> list[InboxEntry]:
        q = (
            select(MessageRecipientRecord, MessageRecord)
            .join(MessageRecord, MessageRecipientRecord.message_id == MessageRecord.id)
            .where(MessageRecipientRecord.receiver_id == receiver_id)
            .options(selectinload(MessageRecord.recipients))
            .order_by(MessageRecord.created_at.desc(), MessageRecipientRecord.id.desc())
        )
        if states is not None:
            q = q.where(MessageRecord.state.in_([MessageState(s).value for s in states]))
        if not include_hidden:
            q = q.where(MessageRecipientRecord.hidden_at.is_(None))
        with self._session() as session:
            return [records_to_inbox_entry(recipient, message) for recipient, message in session.execute(q).all()]
