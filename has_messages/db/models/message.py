"""ORM models for messages and their per-receiver recipient rows."""

from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from has_messages.db.base import Base


class MessageRecord(Base):
    """One row per composed message. State is one of unsent/queued/sent."""

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_sender_state", "sender_id", "state"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    sender_id: Mapped[str] = mapped_column(String(256), nullable=False, index=True)
    subject: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    state: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, index=True)
    original_message_id: Mapped[Optional[str]] = mapped_column(
        String(64), ForeignKey("messages.id"), nullable=True, index=True
    )
    hidden_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    recipients: Mapped[list["MessageRecipientRecord"]] = relationship(
        "MessageRecipientRecord",
        back_populates="message",
        cascade="all, delete-orphan",
        order_by="MessageRecipientRecord.id",
    )


class MessageRecipientRecord(Base):
    """Delivery record of a sent message for one receiver."""

    __tablename__ = "message_recipients"
    __table_args__ = (
        UniqueConstraint("message_id", "receiver_id", name="uq_message_recipients_message_receiver"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    message_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("messages.id", ondelete="CASCADE"), nullable=False, index=True
    )
    receiver_id: Mapped[str] = mapped_column(String(256), nullable=False, index=True)
    read_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    hidden_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    message: Mapped[MessageRecord] = relationship("MessageRecord", back_populates="recipients")
