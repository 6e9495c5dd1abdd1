"""Draft composition: new messages and replies, flattened to one thread level."""

from has_messages.domain.models import Message, MessageOwner
from has_messages.errors import NotFoundError
from has_messages.storage.protocol import MessageStore
from has_messages.utils.logger import get_logger

logger = get_logger("has_messages.compose")

REPLY_PREFIX = "Re: "


def resolve_thread_root(store: MessageStore, message_id: str) -> str:
    """Return the root id of the thread message_id belongs to. Raises NotFoundError if missing."""
    message = store.get_message(message_id)
    if message is None:
        raise NotFoundError("Message", message_id)
    return message.thread_id


def compose(
    store: MessageStore,
    sender: MessageOwner,
    subject: str,
    body: str,
    original_message_id: str | None = None,
) -> Message:
    """Create an unsent draft authored by sender.

    When original_message_id is given the draft joins that message's thread;
    a reply to a reply is attached to the thread root, never to the reply.
    """
    root_id = resolve_thread_root(store, original_message_id) if original_message_id else None
    message = store.create_message(sender.id, subject, body, original_message_id=root_id)
    logger.info(
        "compose.draft_created",
        message_id=message.id,
        sender_id=sender.id,
        original_message_id=root_id,
    )
    return message


def reply_subject(subject: str) -> str:
    if subject.lower().startswith(REPLY_PREFIX.lower()):
        return subject
    return f"{REPLY_PREFIX}{subject}"


def compose_reply(
    store: MessageStore,
    sender: MessageOwner,
    original: Message,
    body: str,
    subject: str | None = None,
) -> Message:
    """Draft a reply to original in original's thread. Subject defaults to "Re: <subject>"."""
    return compose(
        store,
        sender,
        subject if subject is not None else reply_subject(original.subject),
        body,
        original_message_id=original.id,
    )
