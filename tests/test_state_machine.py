"""Tests for the message lifecycle transition table and id allocators."""

import unittest

from tests import support  # noqa: F401  (sets DATABASE_URL / sys.path)

from has_messages.domain.state_machine import (
    MessageEvent,
    MessageState,
    source_states,
    transition,
)
from has_messages.errors import InvalidStateTransitionError
from has_messages.ids import SequentialIdAllocator, TimestampUuidAllocator


class TestTransitions(unittest.TestCase):
    def test_legal_transitions(self):
        self.assertEqual(transition(MessageState.UNSENT, MessageEvent.QUEUE), MessageState.QUEUED)
        self.assertEqual(transition(MessageState.UNSENT, MessageEvent.DELIVER), MessageState.SENT)
        self.assertEqual(transition(MessageState.QUEUED, MessageEvent.DELIVER), MessageState.SENT)

    def test_accepts_plain_strings(self):
        self.assertEqual(transition("unsent", "deliver"), MessageState.SENT)

    def test_nothing_leaves_sent(self):
        for event in MessageEvent:
            with self.assertRaises(InvalidStateTransitionError) as ctx:
                transition(MessageState.SENT, event, message_id="m-1")
            self.assertEqual(ctx.exception.current, MessageState.SENT)
            self.assertEqual(ctx.exception.event, event)
            self.assertIn("m-1", str(ctx.exception))

    def test_queued_cannot_be_queued_again(self):
        with self.assertRaises(InvalidStateTransitionError):
            transition(MessageState.QUEUED, MessageEvent.QUEUE)

    def test_source_states(self):
        self.assertEqual(source_states(MessageEvent.DELIVER), {MessageState.UNSENT, MessageState.QUEUED})
        self.assertEqual(source_states(MessageEvent.QUEUE), {MessageState.UNSENT})

    def test_unknown_state_rejected(self):
        with self.assertRaises(ValueError):
            transition("failed", MessageEvent.DELIVER)


class TestIdAllocators(unittest.TestCase):
    def test_sequential_ids_sort_in_allocation_order(self):
        alloc = SequentialIdAllocator(prefix="m-", width=4, start=9)
        ids = [alloc.new_id() for _ in range(3)]
        self.assertEqual(ids, ["m-0009", "m-0010", "m-0011"])
        self.assertEqual(sorted(ids), ids)

    def test_uuid_ids_are_unique(self):
        alloc = TimestampUuidAllocator()
        ids = {alloc.new_id() for _ in range(100)}
        self.assertEqual(len(ids), 100)
