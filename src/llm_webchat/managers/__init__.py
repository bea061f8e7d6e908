"""Conversation, attachment and rendering managers."""

from .attachment import Attachment, AttachmentManager, AttachmentPreview
from .conversation import ConversationStore, ConversationSummary
from .message_renderer import ContentRenderer, RenderedMessage

__all__ = [
    "Attachment",
    "AttachmentManager",
    "AttachmentPreview",
    "ContentRenderer",
    "ConversationStore",
    "ConversationSummary",
    "RenderedMessage",
]
