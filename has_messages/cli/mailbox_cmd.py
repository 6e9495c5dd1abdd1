"""Mailbox views (inbox, unread, threads, outbox, drafts) and read/hide commands."""

import typer

from has_messages.errors import MessagingError

from .shared import as_user, console, entries_table, fail, get_queries, get_visibility, messages_table


def inbox(user: str = typer.Argument(..., help="Receiver id")) -> None:
    """Visible received messages, newest first."""
    try:
        entries = get_queries().received_entries(as_user(user))
    except MessagingError as e:
        fail(e, command="inbox", user_id=user)
    console.print(entries_table(f"Inbox: {user}", entries))


def unread(user: str = typer.Argument(..., help="Receiver id")) -> None:
    """Visible received messages not yet read."""
    try:
        messages = get_queries().unread_messages(as_user(user))
    except MessagingError as e:
        fail(e, command="unread", user_id=user)
    console.print(messages_table(f"Unread: {user}", messages))


def threads(user: str = typer.Argument(..., help="Receiver id")) -> None:
    """Latest received message of each thread."""
    try:
        entries = get_queries().last_message_per_thread(as_user(user))
    except MessagingError as e:
        fail(e, command="threads", user_id=user)
    console.print(entries_table(f"Threads: {user}", entries))


def outbox(user: str = typer.Argument(..., help="Sender id")) -> None:
    """Queued and sent messages authored by user."""
    try:
        messages = get_queries().sent_messages(as_user(user))
    except MessagingError as e:
        fail(e, command="outbox", user_id=user)
    console.print(messages_table(f"Sent: {user}", messages))


def drafts(user: str = typer.Argument(..., help="Sender id")) -> None:
    """Unsent messages authored by user."""
    try:
        messages = get_queries().unsent_messages(as_user(user))
    except MessagingError as e:
        fail(e, command="drafts", user_id=user)
    console.print(messages_table(f"Drafts: {user}", messages))


def conversation(
    user: str = typer.Argument(..., help="User id"),
    message_id: str = typer.Argument(..., help="Any message id in the thread"),
) -> None:
    """Show the thread a conversation message belongs to, oldest first."""
    queries = get_queries()
    try:
        found = queries.find_conversation_by_id(as_user(user), message_id)
        thread = queries.thread(as_user(user), found.thread_id) if found is not None else []
    except MessagingError as e:
        fail(e, command="conversation", message_id=message_id)
    if found is None:
        console.print(f"[red]No conversation {message_id} for {user}[/red]")
        raise typer.Exit(1)
    console.print(messages_table(f"Thread {found.thread_id}", thread))


def read(
    user: str = typer.Argument(..., help="Receiver id"),
    message_id: str = typer.Argument(..., help="Received message id"),
) -> None:
    """Mark a received message as read."""
    try:
        get_visibility().mark_read(as_user(user), message_id)
    except MessagingError as e:
        fail(e, command="read", message_id=message_id)
    console.print(f"[green]Marked {message_id} read[/green]")


def hide(
    user: str = typer.Argument(..., help="User id"),
    message_id: str = typer.Argument(..., help="Message id"),
    sent: bool = typer.Option(False, "--sent", help="Hide an authored message instead of a received one"),
) -> None:
    """Hide a message from the user's views (received by default, authored with --sent)."""
    visibility = get_visibility()
    try:
        if sent:
            visibility.hide_message(as_user(user), message_id)
        else:
            visibility.hide_received(as_user(user), message_id)
    except MessagingError as e:
        fail(e, command="hide", message_id=message_id)
    console.print(f"[green]Hid {message_id}[/green]")
