"""String key/value persistence, the local-storage equivalent for the client."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Protocol

from .exceptions import PersistenceError


class KeyValueStore(Protocol):
    """Get/set string values by key."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """Volatile store, used by tests and when no storage path is configured."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileKeyValueStore:
    """Persist all keys as one JSON object in a private file.

    Every ``set`` rewrites the whole file through a temporary sibling and an
    atomic rename. Read and write failures raise ``PersistenceError``.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()
        self._cache: dict[str, str] | None = None

    def _enforce_permissions(self, path: Path, mode: int = 0o600) -> None:
        """Set POSIX permissions on a file or directory; silently ignores failures."""
        if os.name != "posix":
            return
        try:
            path.chmod(mode)
        except OSError:
            pass

    def _load(self) -> dict[str, str]:
        if self._cache is not None:
            return self._cache
        if not self.path.exists():
            self._cache = {}
            return self._cache
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Unable to read {self.path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise PersistenceError(f"Storage file {self.path} is not a JSON object.")
        self._cache = {
            str(key): value for key, value in payload.items() if isinstance(value, str)
        }
        return self._cache

    def _flush(self, data: dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._enforce_permissions(self.path.parent, 0o700)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp_path.write_text(
                json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True),
                encoding="utf-8",
            )
            self._enforce_permissions(tmp_path)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise PersistenceError(f"Unable to write {self.path}: {exc}") from exc

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = dict(self._load())
        data[key] = value
        self._flush(data)
        self._cache = data

    def remove(self, key: str) -> None:
        data = dict(self._load())
        if data.pop(key, None) is None:
            return
        self._flush(data)
        self._cache = data
