"""Tests for the conversation store."""

from __future__ import annotations

import json
import random
import unittest

from llm_webchat.exceptions import ConversationNotFoundError, PersistenceError
from llm_webchat.kv_store import MemoryKeyValueStore
from llm_webchat.managers.conversation import (
    CONVERSATIONS_KEY,
    ConversationStore,
    derive_title,
    deserialize_conversations,
    serialize_conversations,
)
from llm_webchat.models import ImagePart, Message, TextPart


class FailingWriteStore(MemoryKeyValueStore):
    def set(self, key: str, value: str) -> None:
        raise PersistenceError("disk full")


def user(text: str) -> Message:
    return Message(role="user", content=text)


def assistant(text: str) -> Message:
    return Message(role="assistant", content=text)


class TitleTests(unittest.TestCase):
    def test_long_title_is_truncated_with_ellipsis(self) -> None:
        title = derive_title(user("A" * 40))
        self.assertEqual(title, "A" * 30 + "...")

    def test_short_title_is_kept(self) -> None:
        self.assertEqual(derive_title(user("Hello")), "Hello")

    def test_image_only_message_title(self) -> None:
        message = Message(
            role="user", content=[ImagePart.from_url("data:image/png;base64,AAAA")]
        )
        self.assertEqual(derive_title(message), "Image message")


class ConversationStoreTests(unittest.TestCase):
    """Validate ordering, current-selection and persistence rules."""

    def setUp(self) -> None:
        self.kv = MemoryKeyValueStore()
        self.store = ConversationStore(self.kv)

    def test_create_prepends_and_marks_current(self) -> None:
        first = self.store.create_conversation()
        second = self.store.create_conversation()
        self.assertEqual([c.id for c in self.store.list()], [second, first])
        self.assertEqual(self.store.current_id, second)
        self.assertEqual(self.store.get(first).title, "New Chat")

    def test_every_mutation_persists_full_list(self) -> None:
        conversation_id = self.store.create_conversation()
        self.store.append_message(conversation_id, user("Hi"))
        stored = json.loads(self.kv.get(CONVERSATIONS_KEY))
        self.assertEqual(len(stored), 1)
        self.assertEqual(stored[0]["messages"][0]["content"], "Hi")
        self.assertIn("lastMessageAt", stored[0])

    def test_first_user_message_sets_title_once(self) -> None:
        conversation_id = self.store.create_conversation()
        self.store.append_message(conversation_id, user("First question"))
        self.store.append_message(conversation_id, assistant("Answer"))
        self.store.append_message(conversation_id, user("Second question"))
        self.assertEqual(self.store.get(conversation_id).title, "First question")

    def test_append_updates_last_message_at(self) -> None:
        conversation_id = self.store.create_conversation()
        message = user("Hi")
        self.store.append_message(conversation_id, message)
        self.assertEqual(self.store.get(conversation_id).last_message_at, message.timestamp)

    def test_append_keeps_fifo_order(self) -> None:
        conversation_id = self.store.create_conversation()
        texts = [f"message {index}" for index in range(20)]
        for index, text in enumerate(texts):
            message = user(text) if index % 2 == 0 else assistant(text)
            self.store.append_message(conversation_id, message)
        self.assertEqual(
            [m.text for m in self.store.load_conversation(conversation_id)], texts
        )

    def test_missing_ids_raise_not_found_without_mutation(self) -> None:
        conversation_id = self.store.create_conversation()
        before = self.store.serialize()
        with self.assertRaises(ConversationNotFoundError):
            self.store.append_message("missing", user("Hi"))
        with self.assertRaises(ConversationNotFoundError):
            self.store.load_conversation("missing")
        with self.assertRaises(ConversationNotFoundError):
            self.store.delete_conversation("missing")
        with self.assertRaises(ConversationNotFoundError):
            self.store.rename_conversation("missing", "x")
        self.assertEqual(self.store.serialize(), before)
        self.assertEqual(self.store.current_id, conversation_id)

    def test_delete_current_selects_most_recent(self) -> None:
        older = self.store.create_conversation()
        newer = self.store.create_conversation()
        self.assertEqual(self.store.delete_conversation(newer), older)
        self.assertEqual(self.store.current_id, older)

    def test_delete_last_creates_fresh_conversation(self) -> None:
        only = self.store.create_conversation()
        replacement = self.store.delete_conversation(only)
        self.assertNotEqual(replacement, only)
        self.assertEqual(len(self.store), 1)
        self.assertEqual(self.store.current_id, replacement)

    def test_delete_other_keeps_current(self) -> None:
        older = self.store.create_conversation()
        newer = self.store.create_conversation()
        self.assertEqual(self.store.delete_conversation(older), newer)

    def test_current_always_references_existing_entry(self) -> None:
        rng = random.Random(1234)
        for _ in range(200):
            ids = [c.id for c in self.store.list()]
            if ids and rng.random() < 0.5:
                self.store.delete_conversation(rng.choice(ids))
            else:
                self.store.create_conversation()
            current = self.store.current_id
            self.assertIsNotNone(current)
            self.assertIn(current, [c.id for c in self.store.list()])

    def test_rename_blank_falls_back_to_default(self) -> None:
        conversation_id = self.store.create_conversation()
        self.store.rename_conversation(conversation_id, "  Trip plans ")
        self.assertEqual(self.store.get(conversation_id).title, "Trip plans")
        self.store.rename_conversation(conversation_id, "   ")
        self.assertEqual(self.store.get(conversation_id).title, "New Chat")

    def test_load_restores_persisted_list(self) -> None:
        first = self.store.create_conversation()
        self.store.append_message(first, user("Hello"))
        second = self.store.create_conversation()

        reloaded = ConversationStore(self.kv)
        self.assertEqual(reloaded.load(), 2)
        self.assertEqual([c.id for c in reloaded.list()], [second, first])
        self.assertEqual(reloaded.current_id, second)

    def test_delete_after_load_keeps_current_valid(self) -> None:
        first = self.store.create_conversation()
        second = self.store.create_conversation()

        reloaded = ConversationStore(self.kv)
        reloaded.load()
        self.assertEqual(reloaded.delete_conversation(first), second)
        self.assertEqual(reloaded.current_id, second)
        self.assertEqual(reloaded.delete_conversation(second), reloaded.current_id)
        self.assertEqual(len(reloaded), 1)

    def test_delete_without_current_selects_list_head(self) -> None:
        first = self.store.create_conversation()
        second = self.store.create_conversation()
        third = self.store.create_conversation()

        reloaded = ConversationStore(self.kv)
        reloaded.load()
        reloaded._current_id = None
        self.assertEqual(reloaded.delete_conversation(first), third)
        self.assertEqual([c.id for c in reloaded.list()], [third, second])

    def test_corrupt_payload_loads_empty(self) -> None:
        self.kv.set(CONVERSATIONS_KEY, "not json")
        with self.assertLogs("llm_webchat.managers.conversation", level="ERROR"):
            self.assertEqual(self.store.load(), 0)

    def test_persist_failure_keeps_memory_state(self) -> None:
        store = ConversationStore(FailingWriteStore())
        with self.assertLogs("llm_webchat.managers.conversation", level="ERROR") as logs:
            conversation_id = store.create_conversation()
            store.append_message(conversation_id, user("Hi"))
        self.assertEqual(len(store.get(conversation_id).messages), 1)
        self.assertTrue(any("store.persist_failed" in line for line in logs.output))

    def test_summaries_preview(self) -> None:
        empty = self.store.create_conversation()
        chatty = self.store.create_conversation()
        self.store.append_message(chatty, user("Hi"))
        self.store.append_message(chatty, assistant("B" * 60))

        rows = {row.id: row for row in self.store.summaries()}
        self.assertEqual(rows[empty].preview, "No messages yet")
        self.assertEqual(rows[chatty].preview, "AI: " + "B" * 50 + "...")
        self.assertTrue(rows[chatty].active)
        self.assertFalse(rows[empty].active)


class SerializationTests(unittest.TestCase):
    def test_round_trip_preserves_order_and_content(self) -> None:
        store = ConversationStore(MemoryKeyValueStore())
        first = store.create_conversation()
        store.append_message(first, user("Hello"))
        store.append_message(first, assistant("**Hi** there"))
        second = store.create_conversation()
        store.append_message(
            second,
            Message(
                role="user",
                content=[
                    TextPart(text="What is this?"),
                    ImagePart.from_url("data:image/png;base64,iVBORw0KGgo="),
                ],
            ),
        )

        original = store.list()
        restored = deserialize_conversations(serialize_conversations(original))
        self.assertEqual(
            [c.model_dump() for c in restored], [c.model_dump() for c in original]
        )

    def test_invalid_entries_are_skipped(self) -> None:
        payload = json.dumps([{"id": "ok", "title": "Fine"}, {"messages": "nope"}])
        with self.assertLogs("llm_webchat.managers.conversation", level="WARNING"):
            restored = deserialize_conversations(payload)
        self.assertEqual([c.id for c in restored], ["ok"])

    def test_non_list_payload_raises(self) -> None:
        with self.assertRaises(PersistenceError):
            deserialize_conversations(json.dumps({"id": "x"}))


if __name__ == "__main__":
    unittest.main()
