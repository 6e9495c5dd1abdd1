"""Re-export all ORM models so Base.metadata has all tables."""

from has_messages.db.models.message import MessageRecipientRecord, MessageRecord

__all__ = [
    "MessageRecord",
    "MessageRecipientRecord",
]
