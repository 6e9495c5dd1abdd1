"""Shared CLI helpers: console, logger, store/service wiring, table rendering, error exit."""

from typing import NoReturn

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from has_messages.domain.models import InboxEntry, Message, User
from has_messages.errors import MessagingError
from has_messages.services.delivery import DeliveryEngine
from has_messages.services.queries import MessageQueryService
from has_messages.services.visibility import VisibilityService
from has_messages.storage.sqlalchemy_store import SqlAlchemyMessageStore
from has_messages.utils.logger import get_logger

console = Console()
logger = get_logger("has_messages.cli")

_store: SqlAlchemyMessageStore | None = None


def get_store() -> SqlAlchemyMessageStore:
    """Return the process-wide store on the configured DATABASE_URL."""
    global _store
    if _store is None:
        _store = SqlAlchemyMessageStore()
    return _store


def get_queries() -> MessageQueryService:
    return MessageQueryService(get_store())


def get_engine() -> DeliveryEngine:
    return DeliveryEngine(get_store())


def get_visibility() -> VisibilityService:
    return VisibilityService(get_store())


def as_user(user_id: str) -> User:
    return User(id=user_id)


def fail(error: MessagingError, **context) -> NoReturn:
    """Print the error and exit with status 1."""
    console.print(f"[red]{type(error).__name__}: {escape(str(error))}[/red]")
    logger.error("cli.command_failed", error_type=type(error).__name__, error=str(error), **context)
    raise typer.Exit(1)


def messages_table(title: str, messages: list[Message]) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan")
    table.add_column("Thread", style="dim")
    table.add_column("From")
    table.add_column("To")
    table.add_column("Subject")
    table.add_column("State", style="green")
    table.add_column("Created", style="dim")
    for m in messages:
        table.add_row(
            m.id,
            m.thread_id,
            m.sender_id,
            ", ".join(m.receiver_ids) or "-",
            m.subject,
            m.state.value,
            m.created_at.isoformat(timespec="seconds"),
        )
    return table


def entries_table(title: str, entries: list[InboxEntry]) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan")
    table.add_column("Thread", style="dim")
    table.add_column("From")
    table.add_column("Subject")
    table.add_column("Read", justify="center")
    table.add_column("Created", style="dim")
    for e in entries:
        table.add_row(
            e.message.id,
            e.message.thread_id,
            e.message.sender_id,
            e.message.subject,
            "yes" if e.recipient.is_read else "[bold]no[/bold]",
            e.message.created_at.isoformat(timespec="seconds"),
        )
    return table
