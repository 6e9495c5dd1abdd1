"""Compose, queue and deliver commands."""

from typing import Optional

import typer

from has_messages.domain.models import Message
from has_messages.errors import MessagingError, NotFoundError
from has_messages.services.compose import compose as compose_message
from has_messages.services.compose import compose_reply

from .shared import as_user, console, fail, get_engine, get_store, logger, messages_table


def _load(message_id: str) -> Message:
    message = get_store().get_message(message_id)
    if message is None:
        raise NotFoundError("Message", message_id)
    return message


def compose(
    sender: str = typer.Option(..., "--from", "-f", help="Sender id"),
    subject: Optional[str] = typer.Option(None, "--subject", "-s", help="Subject line (replies default to 'Re: ...')"),
    body: str = typer.Option("", "--body", "-b", help="Message body"),
    reply_to: Optional[str] = typer.Option(None, "--reply-to", "-r", help="Message id this replies to"),
    to: Optional[list[str]] = typer.Option(None, "--to", "-t", help="Receiver id; repeat for several. Sends immediately."),
) -> None:
    """Create a draft; with --to, deliver it right away."""
    log = logger.bind(command="compose", sender_id=sender)
    try:
        if reply_to:
            message = compose_reply(get_store(), as_user(sender), _load(reply_to), body, subject=subject)
        else:
            message = compose_message(get_store(), as_user(sender), subject or "", body)
        if to:
            message = get_engine().deliver(message, [as_user(r) for r in to])
    except MessagingError as e:
        fail(e, command="compose")
    console.print(messages_table("Message", [message]))
    log.info("compose.complete", message_id=message.id, state=message.state.value)


def queue(message_id: str = typer.Argument(..., help="Draft message id")) -> None:
    """Mark a draft as queued for later delivery."""
    try:
        message = get_engine().queue(_load(message_id))
    except MessagingError as e:
        fail(e, command="queue", message_id=message_id)
    console.print(f"[green]Queued {message.id}[/green]")


def deliver(
    message_id: str = typer.Argument(..., help="Unsent or queued message id"),
    to: list[str] = typer.Option([], "--to", "-t", help="Receiver id; repeat for several"),
) -> None:
    """Deliver a draft or queued message to one or more receivers."""
    try:
        message = get_engine().deliver(_load(message_id), [as_user(r) for r in to])
    except MessagingError as e:
        fail(e, command="deliver", message_id=message_id)
    console.print(f"[green]Delivered {message.id} to {len(message.recipients)} recipient(s)[/green]")
