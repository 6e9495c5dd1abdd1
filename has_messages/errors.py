"""Errors raised by the delivery engine, query service and stores."""

from __future__ import annotations

from typing import Any


class MessagingError(Exception):
    """Base class for all has_messages errors."""


class NoRecipientsError(MessagingError):
    """Delivery was requested with an empty addressee set."""

    def __init__(self, message_id: str):
        self.message_id = message_id
        super().__init__(f"Message {message_id!r} has no recipients to deliver to")


class UnresolvableRecipientError(MessagingError):
    """An addressee could not be resolved to an owner id."""

    def __init__(self, addressee: Any):
        self.addressee = addressee
        super().__init__(f"Cannot resolve addressee {addressee!r} to an id")


class InvalidStateTransitionError(MessagingError):
    """A lifecycle event is not allowed from the message's current state."""

    def __init__(self, current: Any, event: Any, message_id: str | None = None):
        self.current = current
        self.event = event
        self.message_id = message_id
        where = f" for message {message_id!r}" if message_id else ""
        super().__init__(f"Cannot {getattr(event, 'value', event)} from state {getattr(current, 'value', current)!r}{where}")


class NotFoundError(MessagingError):
    """A message or recipient row does not exist (or is not visible to the caller)."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} {identifier!r} not found")


class StorageFailure(MessagingError):
    """The storage collaborator failed; the original error is chained as __cause__."""
