"""Names of the events the orchestrator publishes."""

from __future__ import annotations

from enum import Enum


class EventName(str, Enum):
    CONVERSATIONS_CHANGED = "conversations.changed"
    CONVERSATION_LOADED = "conversation.loaded"
    MESSAGE_PENDING = "message.pending"
    MESSAGE_APPENDED = "message.appended"
    REQUEST_STARTED = "request.started"
    REQUEST_FINISHED = "request.finished"
    REQUEST_FAILED = "request.failed"
    ATTACHMENTS_CHANGED = "attachments.changed"
    CONFIG_MISSING = "config.missing"
    CONFIG_SAVED = "config.saved"
    MODEL_CHANGED = "model.changed"
    SIDEBAR_TOGGLED = "sidebar.toggled"
    STATUS = "status"
