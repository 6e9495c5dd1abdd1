"""Structured logging on structlog, routed through stdlib ``logging``.

Library modules only ever call ``get_logger``: each logger carries its own
processor chain and hands events to the stdlib logger of the same name, so
importing has_messages never touches the host's root logger or structlog's
global configuration. ``configure_logging`` installs console + JSONL
handlers and is called by the CLI only.
"""

from __future__ import annotations

import logging
from typing import Any

import structlog

from has_messages.config import LOG_DIR, LOG_FILE, LOG_LEVEL, VERBOSE_LOGGING

BoundLogger = structlog.stdlib.BoundLogger

_LIBRARY_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.format_exc_info,
    structlog.stdlib.render_to_log_kwargs,
]

_configured = False


def _coerce_level(level_name: str) -> int:
    """Translate a string/int environment value into a logging level."""
    if level_name.isdigit():
        return int(level_name)
    return getattr(logging, level_name.upper(), logging.INFO)


def configure_logging() -> None:
    """Send all records to the console and output/logs/app.jsonl. For CLI entry points."""
    global _configured
    if _configured:
        return

    effective_level = logging.DEBUG if VERBOSE_LOGGING else _coerce_level(LOG_LEVEL)
    # event dicts arrive as LogRecord extras; lift them back out before rendering
    pre_chain = [
        structlog.stdlib.ExtraAdder(),
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=True),
            foreign_pre_chain=pre_chain,
        )
    )

    LOG_DIR.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(LOG_FILE, encoding="utf-8")
    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=pre_chain,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(effective_level)
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)
    logging.captureWarnings(True)

    # SQL statement logging is driven by SQL_ECHO, not by the app level
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str = "has_messages", **bindings: Any) -> BoundLogger:
    """Return a structured logger writing to the stdlib logger ``name``."""
    logger = structlog.wrap_logger(
        logging.getLogger(name),
        processors=_LIBRARY_PROCESSORS,
        wrapper_class=structlog.stdlib.BoundLogger,
    )
    if bindings:
        logger = logger.bind(**bindings)
    return logger


def bind_context(**context: Any) -> None:
    """Bind context variables to be included with every log entry."""
    structlog.contextvars.bind_contextvars(**context)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()
