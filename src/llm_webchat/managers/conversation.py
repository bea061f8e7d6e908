"""Conversation list ownership, title derivation and persistence.

All mutation of the conversation list goes through ``ConversationStore``.
Each mutating call re-serializes the whole list into the key/value store;
there are no partial writes, and a failed write leaves the in-memory state
authoritative for the rest of the session.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import json
import logging

from pydantic import TypeAdapter, ValidationError

from ..exceptions import ConversationNotFoundError, PersistenceError
from ..kv_store import KeyValueStore
from ..models import DEFAULT_TITLE, Conversation, Message

LOGGER = logging.getLogger(__name__)

CONVERSATIONS_KEY = "chat_conversations"
TITLE_MAX_CHARS = 30
PREVIEW_MAX_CHARS = 50
ELLIPSIS = "..."
IMAGE_ONLY_TITLE = "Image message"

_CONVERSATION_LIST = TypeAdapter(list[Conversation])


def derive_title(message: Message) -> str:
    """Build a conversation title from its first user message."""
    text = message.text or IMAGE_ONLY_TITLE
    if len(text) > TITLE_MAX_CHARS:
        return text[:TITLE_MAX_CHARS] + ELLIPSIS
    return text


def serialize_conversations(conversations: list[Conversation]) -> str:
    return _CONVERSATION_LIST.dump_json(conversations, by_alias=True).decode("utf-8")


def deserialize_conversations(payload: str) -> list[Conversation]:
    """Decode a serialized conversation list, skipping entries that fail validation."""
    try:
        rows = json.loads(payload)
    except ValueError as exc:
        raise PersistenceError(f"Stored conversations are not valid JSON: {exc}") from exc
    if not isinstance(rows, list):
        raise PersistenceError("Stored conversations must be a JSON array.")

    conversations: list[Conversation] = []
    for row in rows:
        try:
            conversations.append(Conversation.model_validate(row))
        except ValidationError as exc:
            LOGGER.warning(
                "store.conversation.skipped",
                extra={"event": "store.conversation.skipped", "reason": str(exc)},
            )
    return conversations


@dataclass(frozen=True)
class ConversationSummary:
    """Sidebar row for one conversation."""

    id: str
    title: str
    preview: str
    last_message_at: datetime
    active: bool


class ConversationStore:
    """In-memory conversation list, most recently created first."""

    def __init__(self, kv_store: KeyValueStore) -> None:
        self._kv_store = kv_store
        self._conversations: list[Conversation] = []
        self._current_id: str | None = None

    @property
    def current_id(self) -> str | None:
        return self._current_id

    @property
    def current(self) -> Conversation | None:
        if self._current_id is None:
            return None
        return self._find(self._current_id)

    def __len__(self) -> int:
        return len(self._conversations)

    def load(self) -> int:
        """Replace the in-memory list with the persisted one; returns its size."""
        try:
            payload = self._kv_store.get(CONVERSATIONS_KEY)
            conversations = deserialize_conversations(payload) if payload else []
        except PersistenceError as exc:
            LOGGER.error(
                "store.load_failed",
                extra={"event": "store.load_failed", "reason": str(exc)},
            )
            conversations = []
        self._conversations = conversations
        self._current_id = conversations[0].id if conversations else None
        LOGGER.info(
            "store.loaded",
            extra={"event": "store.loaded", "count": len(conversations)},
        )
        return len(conversations)

    def list(self) -> list[Conversation]:
        """Return conversations ordered most recently created first."""
        return list(self._conversations)

    def get(self, conversation_id: str) -> Conversation:
        conversation = self._find(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    def create_conversation(self) -> str:
        """Prepend a fresh conversation, mark it current and return its id."""
        conversation = Conversation()
        self._conversations.insert(0, conversation)
        self._current_id = conversation.id
        self._persist()
        LOGGER.info(
            "store.conversation.created",
            extra={"event": "store.conversation.created", "conversation_id": conversation.id},
        )
        return conversation.id

    def load_conversation(self, conversation_id: str) -> list[Message]:
        """Mark a conversation current and return its message log."""
        conversation = self.get(conversation_id)
        self._current_id = conversation_id
        return list(conversation.messages)

    def append_message(self, conversation_id: str, message: Message) -> Conversation:
        conversation = self.get(conversation_id)
        conversation.messages.append(message)
        conversation.last_message_at = message.timestamp
        if message.role == "user" and conversation.user_message_count == 1:
            conversation.title = derive_title(message)
        self._persist()
        return conversation

    def rename_conversation(self, conversation_id: str, title: str) -> None:
        conversation = self.get(conversation_id)
        conversation.title = title.strip() or DEFAULT_TITLE
        self._persist()

    def delete_conversation(self, conversation_id: str) -> str:
        """Remove a conversation and return the id that is current afterwards."""
        conversation = self.get(conversation_id)
        self._conversations.remove(conversation)
        LOGGER.info(
            "store.conversation.deleted",
            extra={"event": "store.conversation.deleted", "conversation_id": conversation_id},
        )
        if not self._conversations:
            # create_conversation persists and marks the new entry current.
            return self.create_conversation()
        current = self.current
        if current is None:
            current = self._conversations[0]
            self._current_id = current.id
        self._persist()
        return current.id

    def summaries(self) -> list[ConversationSummary]:
        rows: list[ConversationSummary] = []
        for conversation in self._conversations:
            last = conversation.last_message
            if last is None:
                preview = "No messages yet"
            else:
                prefix = "You: " if last.role == "user" else "AI: "
                preview = prefix + last.text[:PREVIEW_MAX_CHARS] + ELLIPSIS
            rows.append(
                ConversationSummary(
                    id=conversation.id,
                    title=conversation.title,
                    preview=preview,
                    last_message_at=conversation.last_message_at,
                    active=conversation.id == self._current_id,
                )
            )
        return rows

    def serialize(self) -> str:
        return serialize_conversations(self._conversations)

    def _find(self, conversation_id: str) -> Conversation | None:
        for conversation in self._conversations:
            if conversation.id == conversation_id:
                return conversation
        return None

    def _persist(self) -> None:
        try:
            self._kv_store.set(CONVERSATIONS_KEY, self.serialize())
        except PersistenceError as exc:
            LOGGER.error(
                "store.persist_failed",
                extra={"event": "store.persist_failed", "reason": str(exc)},
            )
