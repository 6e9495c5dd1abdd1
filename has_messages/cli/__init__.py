"""CLI commands: one module per concern (db, compose/deliver, mailbox views)."""

from typer import Context, Typer

from has_messages.cli import compose_cmd, db_cmd, mailbox_cmd
from has_messages.utils.logger import bind_context, clear_context, configure_logging

app = Typer(help="Compose, deliver and read messages between users")


@app.callback()
def bind_command_context(ctx: Context) -> None:
    """Set up console + file logging and tag every entry with the subcommand name."""
    configure_logging()
    clear_context()
    bind_context(command=ctx.invoked_subcommand)


def register_commands() -> None:
    """Register all CLI commands on the global app."""
    app.command(name="init-db")(db_cmd.init_db_command)
    app.command()(compose_cmd.compose)
    app.command()(compose_cmd.queue)
    app.command()(compose_cmd.deliver)
    app.command()(mailbox_cmd.inbox)
    app.command()(mailbox_cmd.unread)
    app.command()(mailbox_cmd.threads)
    app.command()(mailbox_cmd.outbox)
    app.command()(mailbox_cmd.drafts)
    app.command()(mailbox_cmd.conversation)
    app.command()(mailbox_cmd.read)
    app.command()(mailbox_cmd.hide)


register_commands()
