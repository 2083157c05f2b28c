"""String-keyed persistent storage used for session, history and window blobs.

The workspace engine treats the store as opaque last-write-wins storage: it
writes whole JSON blobs under a handful of well-known keys and never relies on
transactions.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Protocol

__all__ = [
    "KeyValueStore",
    "JsonFileStore",
    "MemoryStore",
    "SESSION_KEY",
    "HISTORY_KEY",
    "WINDOW_KEY",
]

LOGGER = logging.getLogger(__name__)

SESSION_KEY = "lightpad-session"
HISTORY_KEY = "lightpad-history"
WINDOW_KEY = "lightpad-window"
_STORE_VERSION = 1


class KeyValueStore(Protocol):
    """Minimal persistent key/value contract."""

    def get(self, key: str) -> str | None:  # pragma: no cover - protocol
        ...

    def set(self, key: str, value: str) -> None:  # pragma: no cover - protocol
        ...

    def delete(self, key: str) -> None:  # pragma: no cover - protocol
        ...


class MemoryStore:
    """In-process store; used for tests and when no storage path is writable."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._values: Dict[str, str] = dict(initial or {})
        self.writes = 0

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value
        self.writes += 1

    def delete(self, key: str) -> None:
        self._values.pop(key, None)


class JsonFileStore:
    """Persistence adapter keeping every key in a single JSON document.

    Values are loaded lazily on first access and written back atomically on
    every ``set``/``delete`` so a crash never leaves a half-written file.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._values: Dict[str, str] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        values = self._load()
        values[key] = value
        self._write(values)

    def delete(self, key: str) -> None:
        values = self._load()
        if values.pop(key, None) is not None:
            self._write(values)

    def _load(self) -> Dict[str, str]:
        if self._values is None:
            self._values = self._read_payload()
        return self._values

    def _read_payload(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data: Any = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as exc:
            LOGGER.warning("Workspace store %s is unreadable: %s", self._path, exc)
            return {}
        values = data.get("values") if isinstance(data, Mapping) else None
        if not isinstance(values, Mapping):
            LOGGER.warning("Workspace store %s has no values mapping; starting empty", self._path)
            return {}
        return {key: value for key, value in values.items() if isinstance(key, str) and isinstance(value, str)}

    def _write(self, values: Mapping[str, str]) -> None:
        body = json.dumps({"version": _STORE_VERSION, "values": dict(values)}, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
