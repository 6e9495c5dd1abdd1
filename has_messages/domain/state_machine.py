"""Message lifecycle: unsent -> queued -> sent.

The transition table is the single source of truth for which lifecycle
events are legal. Persistence never decides this; stores only perform a
compare-and-set against ``source_states(event)``.
"""

from __future__ import annotations

from enum import Enum

from has_messages.errors import InvalidStateTransitionError


class MessageState(str, Enum):
    """Lifecycle state of a message."""

    UNSENT = "unsent"
    QUEUED = "queued"
    SENT = "sent"


class MessageEvent(str, Enum):
    """Lifecycle events a caller can request."""

    QUEUE = "queue"
    DELIVER = "deliver"


INITIAL_STATE = MessageState.UNSENT

TRANSITIONS: dict[tuple[MessageState, MessageEvent], MessageState] = {
    (MessageState.UNSENT, MessageEvent.QUEUE): MessageState.QUEUED,
    (MessageState.UNSENT, MessageEvent.DELIVER): MessageState.SENT,
    (MessageState.QUEUED, MessageEvent.DELIVER): MessageState.SENT,
}

# States that show up in the sender's "sent" view
OUTGOING_STATES = frozenset({MessageState.QUEUED, MessageState.SENT})


def transition(current: MessageState | str, event: MessageEvent | str, message_id: str | None = None) -> MessageState:
    """Return the state reached by applying event to current, or raise InvalidStateTransitionError."""
    current = MessageState(current)
    event = MessageEvent(event)
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidStateTransitionError(current, event, message_id) from None


def source_states(event: MessageEvent | str) -> frozenset[MessageState]:
    """States from which event is a legal transition."""
    event = MessageEvent(event)
    return frozenset(state for (state, ev) in TRANSITIONS if ev is event)

