"""Message composition, delivery and inbox/thread views for any user-like owner."""

from has_messages.domain.models import InboxEntry, Message, MessageOwner, Recipient, User
from has_messages.domain.state_machine import MessageEvent, MessageState, transition
from has_messages.errors import (
    InvalidStateTransitionError,
    MessagingError,
    NoRecipientsError,
    NotFoundError,
    StorageFailure,
    UnresolvableRecipientError,
)
from has_messages.services.compose import compose, compose_reply
from has_messages.services.delivery import DeliveryEngine
from has_messages.services.queries import MessageQueryService
from has_messages.services.visibility import VisibilityService

__all__ = [
    "Message",
    "Recipient",
    "InboxEntry",
    "MessageOwner",
    "User",
    "MessageState",
    "MessageEvent",
    "transition",
    "MessagingError",
    "NoRecipientsError",
    "UnresolvableRecipientError",
    "InvalidStateTransitionError",
    "NotFoundError",
    "StorageFailure",
    "compose",
    "compose_reply",
    "DeliveryEngine",
    "MessageQueryService",
    "VisibilityService",
]
