"""Tests for the delivery engine against both stores: fan-out, guards, atomicity, concurrency."""

import tempfile
import threading
import unittest
from pathlib import Path

from tests.support import MessagingCase, make_memory_store, make_sqlalchemy_store

from has_messages.domain.models import User
from has_messages.domain.state_machine import MessageState
from has_messages.errors import (
    InvalidStateTransitionError,
    NoRecipientsError,
    NotFoundError,
    StorageFailure,
    UnresolvableRecipientError,
)
from has_messages.services.delivery import DeliveryEngine


class DeliveryContract(MessagingCase):
    def recipient_count(self, message_id):
        return len(self.store.get_message(message_id).recipients)

    def test_draft_has_no_recipients(self):
        draft = self.draft(self.alice)
        self.assertEqual(draft.state, MessageState.UNSENT)
        self.assertEqual(self.recipient_count(draft.id), 0)

    def test_deliver_fans_out_one_unread_row_per_addressee(self):
        draft = self.draft(self.alice)
        sent = self.engine.deliver(draft, [self.alice, self.bob, self.carol])
        self.assertEqual(sent.state, MessageState.SENT)
        self.assertEqual(sorted(sent.receiver_ids), ["alice", "bob", "carol"])
        self.assertEqual(len(sent.recipients), 3)
        for row in sent.recipients:
            self.assertIsNone(row.read_at)
            self.assertIsNone(row.hidden_at)
            self.assertEqual(row.message_id, draft.id)
        self.assertEqual(sent.created_at, draft.created_at)

    def test_duplicate_addressees_get_a_single_row(self):
        sent = self.engine.deliver(self.draft(self.alice), [self.bob, User(id="bob"), self.carol])
        self.assertEqual(sorted(sent.receiver_ids), ["bob", "carol"])

    def test_empty_addressees_fail_without_side_effects(self):
        draft = self.draft(self.alice)
        with self.assertRaises(NoRecipientsError):
            self.engine.deliver(draft, [])
        stored = self.store.get_message(draft.id)
        self.assertEqual(stored.state, MessageState.UNSENT)
        self.assertEqual(stored.recipients, [])

    def test_unresolvable_addressee(self):
        draft = self.draft(self.alice)
        with self.assertRaises(UnresolvableRecipientError):
            self.engine.deliver(draft, [self.bob, User(id="")])
        with self.assertRaises(UnresolvableRecipientError):
            self.engine.deliver(draft, [object()])
        self.assertEqual(self.recipient_count(draft.id), 0)

    def test_second_delivery_fails_and_does_not_duplicate(self):
        draft = self.draft(self.alice)
        sent = self.engine.deliver(draft, [self.bob])
        # both the stale draft and the returned sent copy are rejected
        with self.assertRaises(InvalidStateTransitionError):
            self.engine.deliver(draft, [self.bob, self.carol])
        with self.assertRaises(InvalidStateTransitionError):
            self.engine.deliver(sent, [self.carol])
        self.assertEqual(self.store.get_message(draft.id).receiver_ids, ["bob"])

    def test_queue_then_deliver(self):
        queued = self.engine.queue(self.draft(self.alice))
        self.assertEqual(queued.state, MessageState.QUEUED)
        self.assertEqual(queued.recipients, [])
        with self.assertRaises(InvalidStateTransitionError):
            self.engine.queue(queued)
        sent = self.engine.deliver(queued, [self.bob])
        self.assertEqual(sent.state, MessageState.SENT)
        self.assertEqual(sent.receiver_ids, ["bob"])

    def test_queue_after_sent_fails(self):
        sent = self.send(self.alice, [self.bob])
        with self.assertRaises(InvalidStateTransitionError):
            self.engine.queue(sent)

    def test_deliver_unknown_message(self):
        ghost = self.draft(self.alice).model_copy(update={"id": "does-not-exist"})
        with self.assertRaises(NotFoundError):
            self.engine.deliver(ghost, [self.bob])

    def test_failed_fan_out_rolls_back_state(self):
        draft = self.draft(self.alice)
        original_create = self.store.create_recipient_rows

        def create_then_fail(message_id, receiver_ids):
            original_create(message_id, receiver_ids)
            raise StorageFailure("disk full")

        self.store.create_recipient_rows = create_then_fail
        with self.assertRaises(StorageFailure):
            self.engine.deliver(draft, [self.bob, self.carol])
        del self.store.create_recipient_rows

        stored = self.store.get_message(draft.id)
        self.assertEqual(stored.state, MessageState.UNSENT)
        self.assertEqual(stored.recipients, [])
        # still deliverable afterwards
        self.assertEqual(self.engine.deliver(draft, [self.bob]).receiver_ids, ["bob"])

    def test_unsent_messages_never_have_recipients(self):
        self.send(self.alice, [self.bob])
        self.engine.queue(self.draft(self.alice))
        self.draft(self.bob)
        for user in (self.alice, self.bob):
            for message in self.queries.messages(user):
                if message.state != MessageState.SENT:
                    self.assertEqual(message.recipients, [])


class TestDeliveryInMemory(DeliveryContract, unittest.TestCase):
    pass


class TestDeliverySqlAlchemy(DeliveryContract, unittest.TestCase):
    make_store = staticmethod(make_sqlalchemy_store)


class ConcurrentDeliveryContract:
    """Many threads deliver the same draft: exactly one wins, one fan-out."""

    def build_store(self):
        raise NotImplementedError

    def test_only_one_concurrent_delivery_succeeds(self):
        store = self.build_store()
        engine = DeliveryEngine(store)
        alice = User(id="alice")
        draft = store.create_message("alice", "race", "body")
        receivers = [User(id="bob"), User(id="carol")]
        outcomes = []
        lock = threading.Lock()
        barrier = threading.Barrier(6)

        def attempt():
            barrier.wait()
            try:
                engine.deliver(draft, receivers)
                result = "sent"
            except InvalidStateTransitionError:
                result = "rejected"
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=attempt) for _ in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(outcomes.count("sent"), 1)
        self.assertEqual(outcomes.count("rejected"), 5)
        self.assertEqual(sorted(store.get_message(draft.id).receiver_ids), ["bob", "carol"])
        self.assertEqual(store.get_message(draft.id).sender_id, alice.id)


class TestConcurrentDeliveryInMemory(ConcurrentDeliveryContract, unittest.TestCase):
    def build_store(self):
        return make_memory_store()


class TestConcurrentDeliverySqlite(ConcurrentDeliveryContract, unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()

    def tearDown(self):
        self._tmp.cleanup()

    def build_store(self):
        return make_sqlalchemy_store(url=f"sqlite:///{Path(self._tmp.name) / 'race.sqlite'}")
