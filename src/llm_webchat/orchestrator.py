"""Conversation lifecycle controller.

``ChatOrchestrator`` is constructed with its collaborators and never touches a
rendering surface directly: every visible change is published on the event
bus, and a presentation layer subscribes to the events it draws.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
import logging
from typing import Any

from .completions import CompletionsClient
from .events import EventBus, EventName
from .exceptions import (
    ConversationNotFoundError,
    RemoteCallError,
    WebChatError,
)
from .kv_store import JsonFileKeyValueStore
from .managers.attachment import Attachment, AttachmentManager
from .managers.conversation import ConversationStore
from .managers.message_renderer import ContentRenderer, RenderedMessage
from .mirror import ConfigMirrorClient
from .models import Message
from .preferences import Preferences
from .request_builder import (
    DEFAULT_POLICY_TABLE,
    SamplingPolicyTable,
    build_request,
    image_count,
)
from .state import SendGuard

LOGGER = logging.getLogger(__name__)

MISSING_API_KEY_TEXT = "Please configure your OpenAI API key first"
MISSING_MODEL_TEXT = "Please enter a model name"
BUSY_TEXT = "Busy. Wait for current request to finish."


class SendOutcome(str, Enum):
    """Result of one ``send_message`` call."""

    SENT = "sent"
    CONFIG_MISSING = "config_missing"
    NO_CONVERSATION = "no_conversation"
    EMPTY = "empty"
    BUSY = "busy"
    FAILED = "failed"


class ChatOrchestrator:
    """Create/select/delete conversations and drive the send workflow."""

    def __init__(
        self,
        store: ConversationStore,
        attachments: AttachmentManager,
        renderer: ContentRenderer,
        completions: CompletionsClient,
        preferences: Preferences,
        bus: EventBus | None = None,
        mirror: ConfigMirrorClient | None = None,
        policies: SamplingPolicyTable = DEFAULT_POLICY_TABLE,
        send_guard: SendGuard | None = None,
    ) -> None:
        self.store = store
        self.attachments = attachments
        self.renderer = renderer
        self.completions = completions
        self.preferences = preferences
        self.bus = bus or EventBus()
        self.mirror = mirror
        self.policies = policies
        self.send_guard = send_guard or SendGuard()

    async def aclose(self) -> None:
        await self.completions.aclose()
        if self.mirror is not None:
            await self.mirror.aclose()

    async def _publish(self, name: EventName, **data: Any) -> None:
        await self.bus.publish(name.value, data, source="orchestrator")

    async def startup(self) -> str:
        """Load config and history; ensure a current conversation exists."""
        await self.load_saved_config()
        if self.store.load() == 0:
            LOGGER.info(
                "orchestrator.startup.empty", extra={"event": "orchestrator.startup.empty"}
            )
            return await self.create_conversation()
        await self._publish_conversations()
        most_recent = self.store.list()[0].id
        await self.select_conversation(most_recent)
        return most_recent

    async def load_saved_config(self) -> None:
        """Prefer a complete mirrored config, else the persisted scalars."""
        self.preferences.load()
        if self.mirror is None:
            return
        mirrored = await self.mirror.fetch()
        if mirrored is not None and mirrored.complete:
            self.preferences.api_key = mirrored.api_key
            self.preferences.model = mirrored.model
            LOGGER.info(
                "orchestrator.config.mirrored",
                extra={"event": "orchestrator.config.mirrored", "model": mirrored.model},
            )

    async def _publish_conversations(self) -> None:
        await self._publish(
            EventName.CONVERSATIONS_CHANGED, conversations=self.store.summaries()
        )

    async def create_conversation(self) -> str:
        conversation_id = self.store.create_conversation()
        await self._publish_conversations()
        await self.select_conversation(conversation_id)
        return conversation_id

    async def select_conversation(self, conversation_id: str) -> bool:
        try:
            messages = self.store.load_conversation(conversation_id)
        except ConversationNotFoundError as exc:
            LOGGER.error(
                "orchestrator.conversation.not_found",
                extra={"event": "orchestrator.conversation.not_found", "reason": str(exc)},
            )
            return False
        conversation = self.store.get(conversation_id)
        await self._publish(
            EventName.CONVERSATION_LOADED,
            conversation_id=conversation_id,
            title=conversation.title,
            rendered=self.renderer.render_transcript(messages),
        )
        return True

    async def delete_conversation(self, conversation_id: str) -> bool:
        previous_id = self.store.current_id
        try:
            current_id = self.store.delete_conversation(conversation_id)
        except ConversationNotFoundError as exc:
            LOGGER.error(
                "orchestrator.conversation.not_found",
                extra={"event": "orchestrator.conversation.not_found", "reason": str(exc)},
            )
            return False
        self.send_guard.forget(conversation_id)
        await self._publish_conversations()
        if current_id != previous_id:
            await self.select_conversation(current_id)
        return True

    async def rename_conversation(self, conversation_id: str, title: str) -> bool:
        try:
            self.store.rename_conversation(conversation_id, title)
        except ConversationNotFoundError as exc:
            LOGGER.error(
                "orchestrator.conversation.not_found",
                extra={"event": "orchestrator.conversation.not_found", "reason": str(exc)},
            )
            return False
        await self._publish_conversations()
        return True

    async def add_attachments(self, files: Iterable[Attachment]) -> list[str]:
        """Queue files for the next send; returns rejection messages."""
        errors = self.attachments.add_files(files)
        for error in errors:
            await self._publish(EventName.STATUS, message=error, level="error")
        await self._publish_attachments()
        return errors

    async def remove_attachment(self, index: int) -> None:
        if self.attachments.remove(index):
            await self._publish_attachments()

    async def _publish_attachments(self) -> None:
        await self._publish(
            EventName.ATTACHMENTS_CHANGED,
            attachments=self.attachments.pending,
            previews=self.attachments.previews(),
        )

    async def send_message(self, text: str) -> SendOutcome:
        """Send pending text and attachments to the current conversation.

        Pending attachments are cleared once a send attempt has started,
        whatever its result.
        """
        api_key = self.preferences.api_key
        if not api_key:
            LOGGER.warning(
                "orchestrator.send.config_missing",
                extra={"event": "orchestrator.send.config_missing"},
            )
            await self._publish(EventName.CONFIG_MISSING, message=MISSING_API_KEY_TEXT)
            return SendOutcome.CONFIG_MISSING

        conversation_id = self.store.current_id
        if conversation_id is None:
            LOGGER.error(
                "orchestrator.send.no_conversation",
                extra={"event": "orchestrator.send.no_conversation"},
            )
            return SendOutcome.NO_CONVERSATION

        text = text.strip()
        if not text and not self.attachments.has_any():
            return SendOutcome.EMPTY

        if not await self.send_guard.try_acquire(conversation_id):
            await self._publish(EventName.STATUS, message=BUSY_TEXT, level="info")
            return SendOutcome.BUSY

        try:
            return await self._send(conversation_id, text, api_key)
        finally:
            self.attachments.clear()
            await self._publish_attachments()
            await self.send_guard.release(conversation_id)

    async def _send(self, conversation_id: str, text: str, api_key: str) -> SendOutcome:
        summary = self.attachments.summary()
        display_text = f"{text}\n\n{summary}" if text and summary else text or summary
        pending = self.renderer.render_message(Message(role="user", content=display_text))
        await self._publish(
            EventName.MESSAGE_PENDING, conversation_id=conversation_id, rendered=pending
        )
        await self._publish(EventName.REQUEST_STARTED, conversation_id=conversation_id)

        model = self.preferences.model
        try:
            conversation = self.store.get(conversation_id)
            payload = await self.attachments.to_request_parts()
            request = build_request(
                conversation.messages, text, model, payload, self.policies
            )
            LOGGER.info(
                "orchestrator.send.start",
                extra={
                    "event": "orchestrator.send.start",
                    "conversation_id": conversation_id,
                    "model": model,
                    "images": image_count(request.user_message),
                },
            )
            reply_text = await self.completions.complete(request, api_key)
            self.store.append_message(conversation_id, request.user_message)
            reply = Message(role="assistant", content=reply_text)
            self.store.append_message(conversation_id, reply)
        except (WebChatError, OSError) as exc:
            await self._report_failure(conversation_id, exc)
            return SendOutcome.FAILED

        await self._publish(EventName.REQUEST_FINISHED, conversation_id=conversation_id)
        rendered = self.renderer.render_message(reply)
        await self._publish(
            EventName.MESSAGE_APPENDED,
            conversation_id=conversation_id,
            message=reply,
            rendered=rendered,
        )
        await self._publish_conversations()
        self._typeset(rendered)
        LOGGER.info(
            "orchestrator.send.complete",
            extra={"event": "orchestrator.send.complete", "conversation_id": conversation_id},
        )
        return SendOutcome.SENT

    async def _report_failure(self, conversation_id: str, exc: Exception) -> None:
        LOGGER.error(
            "orchestrator.send.failed",
            extra={
                "event": "orchestrator.send.failed",
                "conversation_id": conversation_id,
                "error_type": type(exc).__name__,
                "status_code": exc.status_code if isinstance(exc, RemoteCallError) else None,
                "reason": str(exc),
            },
        )
        await self._publish(EventName.REQUEST_FINISHED, conversation_id=conversation_id)
        await self._publish(
            EventName.REQUEST_FAILED,
            conversation_id=conversation_id,
            error=str(exc),
            html=self.renderer.render_error(str(exc)),
        )

    def _typeset(self, rendered: RenderedMessage) -> None:
        if rendered.needs_typeset:
            self.renderer.schedule_typeset(rendered)

    async def save_config(self, api_key: str, model: str) -> bool:
        """Validate and persist the API key and model, then mirror them."""
        api_key = api_key.strip()
        model = model.strip()
        if not api_key:
            await self._publish(EventName.STATUS, message=MISSING_API_KEY_TEXT, level="error")
            return False
        if not model:
            await self._publish(EventName.STATUS, message=MISSING_MODEL_TEXT, level="error")
            return False

        self.preferences.set_api_key(api_key)
        self.preferences.set_model(model)
        mirrored = await self.mirror.push(api_key, model) if self.mirror else False
        await self._publish(EventName.CONFIG_SAVED, model=model, mirrored=mirrored)
        return True

    async def set_model(self, model: str) -> None:
        model = model.strip()
        if not model:
            return
        self.preferences.set_model(model)
        await self._publish(EventName.MODEL_CHANGED, model=model)

    async def toggle_sidebar(self) -> bool:
        visible = not self.preferences.sidebar_visible
        self.preferences.set_sidebar_visible(visible)
        await self._publish(EventName.SIDEBAR_TOGGLED, visible=visible)
        return visible


def build_orchestrator(
    config: dict[str, dict[str, Any]],
    bus: EventBus | None = None,
    renderer: ContentRenderer | None = None,
) -> ChatOrchestrator:
    """Wire an orchestrator from a validated ``load_config`` result."""
    api = config["api"]
    mirror = config["mirror"]
    kv_store = JsonFileKeyValueStore(config["storage"]["path"])
    return ChatOrchestrator(
        store=ConversationStore(kv_store),
        attachments=AttachmentManager(max_bytes=config["attachments"]["max_bytes"]),
        renderer=renderer or ContentRenderer(),
        completions=CompletionsClient(base_url=api["base_url"], timeout=api["timeout"]),
        preferences=Preferences(kv_store, default_model=api["default_model"]),
        bus=bus,
        mirror=ConfigMirrorClient(base_url=mirror["url"]) if mirror["enabled"] else None,
    )
