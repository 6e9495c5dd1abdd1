"""Delivery engine: validates addressees and performs the atomic -> sent transition."""

from __future__ import annotations

from typing import Iterable

from has_messages.domain.models import Message, MessageOwner
from has_messages.domain.state_machine import MessageEvent, source_states, transition
from has_messages.errors import (
    InvalidStateTransitionError,
    NoRecipientsError,
    NotFoundError,
    UnresolvableRecipientError,
)
from has_messages.storage.protocol import MessageStore
from has_messages.utils.logger import get_logger

logger = get_logger("has_messages.delivery")


def resolve_receiver_ids(message_id: str, addressees: Iterable[MessageOwner]) -> list[str]:
    """Addressee ids, deduplicated in first-seen order. Raises on empty or unresolvable input."""
    receiver_ids: list[str] = []
    seen: set[str] = set()
    for addressee in addressees:
        receiver_id = getattr(addressee, "id", None)
        if receiver_id is None or str(receiver_id) == "":
            raise UnresolvableRecipientError(addressee)
        receiver_id = str(receiver_id)
        if receiver_id not in seen:
            seen.add(receiver_id)
            receiver_ids.append(receiver_id)
    if not receiver_ids:
        raise NoRecipientsError(message_id)
    return receiver_ids


class DeliveryEngine:
    """Runs lifecycle transitions against a MessageStore.

    ``deliver`` is all-or-nothing: the state flip and the recipient fan-out
    share one store transaction, and the state flip is a compare-and-set so
    a concurrent or repeated delivery of the same message fails instead of
    fanning out twice.
    """

    def __init__(self, store: MessageStore):
        self._store = store

    def deliver(self, message: Message, addressees: Iterable[MessageOwner]) -> Message:
        """Send message to addressees and return it reloaded in the sent state."""
        log = logger.bind(message_id=message.id)
        receiver_ids = resolve_receiver_ids(message.id, addressees)
        target = transition(message.state, MessageEvent.DELIVER, message.id)

        with self._store.transaction():
            if not self._store.update_message_state(message.id, target, source_states(MessageEvent.DELIVER)):
                self._raise_rejected(message.id, MessageEvent.DELIVER)
            self._store.create_recipient_rows(message.id, receiver_ids)

        delivered = self._store.get_message(message.id)
        log.info("delivery.sent", recipient_count=len(receiver_ids))
        return delivered

    def queue(self, message: Message) -> Message:
        """Mark a draft as queued for deferred dispatch. No recipients are created."""
        target = transition(message.state, MessageEvent.QUEUE, message.id)
        with self._store.transaction():
            if not self._store.update_message_state(message.id, target, source_states(MessageEvent.QUEUE)):
                self._raise_rejected(message.id, MessageEvent.QUEUE)
        logger.info("delivery.queued", message_id=message.id)
        return self._store.get_message(message.id)

    def _raise_rejected(self, message_id: str, event: MessageEvent) -> None:
        """The stored state did not allow event: report why."""
        current = self._store.get_message(message_id)
        if current is None:
            raise NotFoundError("Message", message_id)
        logger.warning(
            "delivery.rejected",
            message_id=message_id,
            lifecycle_event=event.value,
            current_state=current.state.value,
        )
        raise InvalidStateTransitionError(current.state, event, message_id)
