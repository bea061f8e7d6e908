"""Per-conversation send state machine with lock-protected transitions."""

from __future__ import annotations

import asyncio
from enum import Enum


class ConversationState(str, Enum):
    """Finite state machine for a conversation's send lifecycle."""

    IDLE = "IDLE"
    SENDING = "SENDING"


class StateManager:
    """Manage state transitions with async lock semantics."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._state = ConversationState.IDLE

    async def get_state(self) -> ConversationState:
        """Return the current state under lock."""
        async with self._lock:
            return self._state

    async def transition_to(self, new_state: ConversationState) -> ConversationState:
        """Transition to a new state and return it."""
        async with self._lock:
            self._state = new_state
            return self._state

    async def transition_if(
        self,
        expected_state: ConversationState,
        new_state: ConversationState,
    ) -> bool:
        """Transition only when current state matches expected state."""
        async with self._lock:
            if self._state != expected_state:
                return False
            self._state = new_state
            return True

    async def can_send_message(self) -> bool:
        """Return True when message submission is allowed."""
        async with self._lock:
            return self._state == ConversationState.IDLE


class SendGuard:
    """Track one StateManager per conversation id."""

    def __init__(self) -> None:
        self._states: dict[str, StateManager] = {}

    def for_conversation(self, conversation_id: str) -> StateManager:
        manager = self._states.get(conversation_id)
        if manager is None:
            manager = StateManager()
            self._states[conversation_id] = manager
        return manager

    async def try_acquire(self, conversation_id: str) -> bool:
        """Atomically move a conversation from IDLE to SENDING."""
        return await self.for_conversation(conversation_id).transition_if(
            ConversationState.IDLE, ConversationState.SENDING
        )

    async def release(self, conversation_id: str) -> None:
        manager = self._states.get(conversation_id)
        if manager is not None:
            await manager.transition_to(ConversationState.IDLE)

    async def is_sending(self, conversation_id: str) -> bool:
        manager = self._states.get(conversation_id)
        if manager is None:
            return False
        return await manager.get_state() == ConversationState.SENDING

    def forget(self, conversation_id: str) -> None:
        """Drop state for a deleted conversation."""
        self._states.pop(conversation_id, None)
