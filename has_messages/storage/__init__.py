"""Storage collaborators: SQLAlchemy-backed and in-memory message stores."""

from has_messages.storage.memory import InMemoryMessageStore
from has_messages.storage.protocol import MessageStore
from has_messages.storage.sqlalchemy_store import SqlAlchemyMessageStore

__all__ = [
    "MessageStore",
    "InMemoryMessageStore",
    "SqlAlchemyMessageStore",
]
