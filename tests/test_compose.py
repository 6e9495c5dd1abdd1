"""Tests for draft and reply composition."""

import unittest

from tests.support import MessagingCase

from has_messages.domain.state_machine import MessageState
from has_messages.errors import NotFoundError
from has_messages.services.compose import compose, compose_reply, reply_subject


class TestCompose(MessagingCase, unittest.TestCase):
    def test_compose_creates_unsent_root_draft(self):
        draft = compose(self.store, self.alice, "Hello", "How are you?")
        self.assertEqual(draft.state, MessageState.UNSENT)
        self.assertEqual(draft.sender_id, "alice")
        self.assertTrue(draft.is_original)
        self.assertEqual(draft.thread_id, draft.id)
        self.assertIsNotNone(draft.created_at.tzinfo)

    def test_reply_to_unknown_message(self):
        with self.assertRaises(NotFoundError):
            compose(self.store, self.alice, "Re: ?", "", original_message_id="nope")
        self.assertEqual(self.queries.messages(self.alice), [])

    def test_reply_chain_is_flattened_to_root(self):
        root = self.send(self.alice, [self.bob], subject="Plans")
        reply = compose_reply(self.store, self.bob, root, "Sounds good")
        self.assertEqual(reply.original_message_id, root.id)
        self.assertEqual(reply.subject, "Re: Plans")

        nested = compose_reply(self.store, self.alice, reply, "Great")
        self.assertEqual(nested.original_message_id, root.id)
        self.assertEqual(nested.subject, "Re: Plans")

    def test_explicit_reply_subject(self):
        root = self.send(self.alice, [self.bob], subject="Plans")
        reply = compose_reply(self.store, self.bob, root, "ok", subject="Changed topic")
        self.assertEqual(reply.subject, "Changed topic")

    def test_reply_subject_prefix_not_doubled(self):
        self.assertEqual(reply_subject("Lunch"), "Re: Lunch")
        self.assertEqual(reply_subject("RE: Lunch"), "RE: Lunch")
