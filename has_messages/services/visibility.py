"""Read and hide mutations for senders and receivers."""

from has_messages.domain.models import Message, MessageOwner, Recipient
from has_messages.errors import NotFoundError
from has_messages.storage.protocol import MessageStore
from has_messages.utils.clock import Clock, utcnow
from has_messages.utils.logger import get_logger

logger = get_logger("has_messages.visibility")


class VisibilityService:
    """Timestamp setters. Repeated calls overwrite the timestamp (last writer wins)."""

    def __init__(self, store: MessageStore, clock: Clock | None = None):
        self._store = store
        self._clock = clock or utcnow

    def _recipient_row(self, user: MessageOwner, message_id: str) -> Recipient:
        row = self._store.find_recipient_row(message_id, user.id)
        if row is None:
            raise NotFoundError("Recipient", f"{message_id}/{user.id}")
        return row

    def mark_read(self, user: MessageOwner, message_id: str) -> Recipient:
        row = self._store.mark_read(self._recipient_row(user, message_id).id, self._clock())
        logger.info("visibility.mark_read", message_id=message_id, receiver_id=user.id)
        return row

    def hide_received(self, user: MessageOwner, message_id: str) -> Recipient:
        """Remove message from user's inbox views only. Other recipients and the sender are unaffected."""
        row = self._store.hide_recipient_row(self._recipient_row(user, message_id).id, self._clock())
        logger.info("visibility.hide_received", message_id=message_id, receiver_id=user.id)
        return row

    def hide_message(self, user: MessageOwner, message_id: str) -> Message:
        """Remove an authored message from the sender's lists. Only the sender may do this."""
        message = self._store.get_message(message_id)
        if message is None or message.sender_id != user.id:
            raise NotFoundError("Message", message_id)
        hidden = self._store.hide_message(message_id, self._clock())
        logger.info("visibility.hide_message", message_id=message_id, sender_id=user.id)
        return hidden
