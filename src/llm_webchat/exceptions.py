"""Domain exception hierarchy for the chat client."""

from __future__ import annotations


class WebChatError(RuntimeError):
    """Base class for all domain-level chat errors."""


class ConfigurationMissingError(WebChatError):
    """Raised when no API key is configured for the completion call."""


class MessageValidationError(WebChatError):
    """Raised when an outgoing message or attachment is rejected."""


class AttachmentTooLargeError(MessageValidationError):
    """Raised when an attachment exceeds the configured size limit."""

    def __init__(self, name: str, size_bytes: int, max_bytes: int) -> None:
        max_mb = max_bytes / (1024 * 1024)
        super().__init__(
            f"File {name} is too large. Maximum size is {max_mb:g}MB."
        )
        self.name = name
        self.size_bytes = size_bytes
        self.max_bytes = max_bytes


class ConversationNotFoundError(WebChatError):
    """Raised when an operation references a conversation id that does not exist."""

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation not found: {conversation_id}")
        self.conversation_id = conversation_id


class RemoteCallError(WebChatError):
    """Raised when the completion call fails or returns a non-success status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PersistenceError(WebChatError):
    """Raised when the key/value store cannot be read or written."""


class RenderError(WebChatError):
    """Raised when markdown or math rendering fails."""


class ConfigValidationError(WebChatError):
    """Raised when configuration cannot be validated safely."""
