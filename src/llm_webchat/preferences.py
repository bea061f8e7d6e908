"""Scalar client settings persisted next to the conversation list."""

from __future__ import annotations

import json
import logging

from .exceptions import PersistenceError
from .kv_store import KeyValueStore

LOGGER = logging.getLogger(__name__)

API_KEY_KEY = "openai_api_key"
MODEL_KEY = "openai_model"
SIDEBAR_KEY = "sidebar_visible"


class Preferences:
    """API key, model name and sidebar visibility backed by a key/value store.

    Values are cached in memory; a failed write is logged and the in-memory
    value still applies for the rest of the session.
    """

    def __init__(self, store: KeyValueStore, default_model: str = "gpt-3.5-turbo") -> None:
        self._store = store
        self.api_key = ""
        self.model = default_model
        self.sidebar_visible = True

    def load(self) -> None:
        """Read persisted values, keeping defaults for anything missing."""
        try:
            saved_key = self._store.get(API_KEY_KEY)
            saved_model = self._store.get(MODEL_KEY)
            saved_sidebar = self._store.get(SIDEBAR_KEY)
        except PersistenceError as exc:
            LOGGER.warning(
                "preferences.load_failed",
                extra={"event": "preferences.load_failed", "reason": str(exc)},
            )
            return
        if saved_key:
            self.api_key = saved_key
        if saved_model:
            self.model = saved_model
        if saved_sidebar is not None:
            try:
                self.sidebar_visible = bool(json.loads(saved_sidebar))
            except ValueError:
                LOGGER.warning(
                    "preferences.sidebar_invalid",
                    extra={"event": "preferences.sidebar_invalid", "value": saved_sidebar},
                )

    def _write(self, key: str, value: str) -> None:
        try:
            self._store.set(key, value)
        except PersistenceError as exc:
            LOGGER.warning(
                "preferences.save_failed",
                extra={"event": "preferences.save_failed", "key": key, "reason": str(exc)},
            )

    def set_api_key(self, api_key: str) -> None:
        self.api_key = api_key
        self._write(API_KEY_KEY, api_key)

    def set_model(self, model: str) -> None:
        self.model = model
        self._write(MODEL_KEY, model)

    def set_sidebar_visible(self, visible: bool) -> None:
        self.sidebar_visible = visible
        self._write(SIDEBAR_KEY, json.dumps(visible))
