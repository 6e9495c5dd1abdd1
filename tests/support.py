"""Shared test helpers: deterministic clock, store factories, a base case with users."""

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Set in-memory DB before any has_messages import
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from has_messages.db.base import Base
from has_messages.domain.models import User
from has_messages.ids import SequentialIdAllocator
from has_messages.services.compose import compose
from has_messages.services.delivery import DeliveryEngine
from has_messages.services.queries import MessageQueryService
from has_messages.services.visibility import VisibilityService
from has_messages.storage.memory import InMemoryMessageStore
from has_messages.storage.sqlalchemy_store import SqlAlchemyMessageStore


class TickingClock:
    """Returns a strictly increasing UTC time, one step per call."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)):
        self._now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        self._step = step

    def __call__(self) -> datetime:
        self._now += self._step
        return self._now


def sqlite_session_factory(url: str = "sqlite://") -> sessionmaker:
    """Fresh database per call. The default URL is a private in-memory database."""
    if url == "sqlite://":
        engine = create_engine(url, poolclass=StaticPool, connect_args={"check_same_thread": False})
    else:
        engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def make_memory_store(clock=None) -> InMemoryMessageStore:
    return InMemoryMessageStore(allocator=SequentialIdAllocator(), clock=clock or TickingClock())


def make_sqlalchemy_store(clock=None, url: str = "sqlite://") -> SqlAlchemyMessageStore:
    return SqlAlchemyMessageStore(
        session_factory=sqlite_session_factory(url),
        allocator=SequentialIdAllocator(),
        clock=clock or TickingClock(),
    )


class MessagingCase:
    """Mixin for unittest.TestCase: subclasses set make_store to pick the backend."""

    make_store = staticmethod(make_memory_store)

    def setUp(self):
        self.clock = TickingClock()
        self.store = self.make_store(clock=self.clock)
        self.engine = DeliveryEngine(self.store)
        self.queries = MessageQueryService(self.store)
        self.visibility = VisibilityService(self.store, clock=self.clock)
        self.alice = User(id="alice", name="Alice")
        self.bob = User(id="bob", name="Bob")
        self.carol = User(id="carol", name="Carol")

    def draft(self, sender, subject="Hello", body="How are you?", original_message_id=None):
        return compose(self.store, sender, subject, body, original_message_id=original_message_id)

    def send(self, sender, to, subject="Hello", body="How are you?", original_message_id=None):
        return self.engine.deliver(self.draft(sender, subject, body, original_message_id), to)

    @staticmethod
    def ids(messages):
        return [m.id for m in messages]
