"""Top-level package for llm-webchat."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .config import ensure_config_dir, load_config
    from .exceptions import (
        AttachmentTooLargeError,
        ConfigValidationError,
        ConversationNotFoundError,
        RemoteCallError,
        WebChatError,
    )
    from .managers.conversation import ConversationStore
    from .models import Conversation, Message
    from .orchestrator import ChatOrchestrator, SendOutcome, build_orchestrator
    from .state import ConversationState, SendGuard, StateManager

__all__ = [
    "AttachmentTooLargeError",
    "ChatOrchestrator",
    "ConfigValidationError",
    "Conversation",
    "ConversationNotFoundError",
    "ConversationState",
    "ConversationStore",
    "Message",
    "RemoteCallError",
    "SendGuard",
    "SendOutcome",
    "StateManager",
    "WebChatError",
    "build_orchestrator",
    "ensure_config_dir",
    "load_config",
]

_LAZY_MODULES = {
    "ensure_config_dir": ".config",
    "load_config": ".config",
    "AttachmentTooLargeError": ".exceptions",
    "ConfigValidationError": ".exceptions",
    "ConversationNotFoundError": ".exceptions",
    "RemoteCallError": ".exceptions",
    "WebChatError": ".exceptions",
    "ConversationStore": ".managers.conversation",
    "Conversation": ".models",
    "Message": ".models",
    "ChatOrchestrator": ".orchestrator",
    "SendOutcome": ".orchestrator",
    "build_orchestrator": ".orchestrator",
    "ConversationState": ".state",
    "SendGuard": ".state",
    "StateManager": ".state",
}


def __getattr__(name: str) -> Any:
    """Lazily import symbols so the server can start without the rendering stack."""
    module_name = _LAZY_MODULES.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    from importlib import import_module

    return getattr(import_module(module_name, __name__), name)
