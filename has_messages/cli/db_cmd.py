"""Database bootstrap command."""

from has_messages.config import DATABASE_URL
from has_messages.db import init_db

from .shared import console, logger


def init_db_command() -> None:
    """Create the messages and message_recipients tables if missing."""
    init_db()
    console.print(f"[green]Database ready:[/green] {DATABASE_URL}")
    logger.info("init_db.complete", database_url=DATABASE_URL)
