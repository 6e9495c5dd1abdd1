"""Map ORM records to domain entities."""

from datetime import datetime, timezone

from has_messages.db.models import MessageRecipientRecord, MessageRecord
from has_messages.domain.models import InboxEntry, Message, Recipient
from has_messages.domain.state_machine import MessageState


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo; treat naive datetimes as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def record_to_recipient(row: MessageRecipientRecord) -> Recipient:
    return Recipient(
        id=row.id,
        message_id=row.message_id,
        receiver_id=row.receiver_id,
        read_at=as_utc(row.read_at),
        hidden_at=as_utc(row.hidden_at),
    )


def record_to_message(row: MessageRecord, with_recipients: bool = True) -> Message:
    return Message(
        id=row.id,
        sender_id=row.sender_id,
        subject=row.subject,
        body=row.body,
        state=MessageState(row.state),
        created_at=as_utc(row.created_at),
        original_message_id=row.original_message_id,
        hidden_at=as_utc(row.hidden_at),
        recipients=[record_to_recipient(r) for r in row.recipients] if with_recipients else [],
    )


def records_to_inbox_entry(recipient: MessageRecipientRecord, message: MessageRecord) -> InboxEntry:
    return InboxEntry(recipient=record_to_recipient(recipient), message=record_to_message(message))
