"""Most-recently-used index of opened and saved file paths."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, List

from ..errors import HistoryBlobCorrupt
from .storage import HISTORY_KEY, KeyValueStore

__all__ = ["FileHistoryIndex", "DEFAULT_HISTORY_LIMIT"]

LOGGER = logging.getLogger(__name__)
DEFAULT_HISTORY_LIMIT = 50

HistoryListener = Callable[[tuple[str, ...]], None]


class FileHistoryIndex:
    """Capped, deduplicated, MRU-ordered list of paths persisted in a key/value store."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        limit: int = DEFAULT_HISTORY_LIMIT,
        key: str = HISTORY_KEY,
    ) -> None:
        self._store = store
        self._key = key
        self._limit = max(1, limit)
        self._entries: List[str] = []
        self._listeners: list[HistoryListener] = []
        self.reload()

    def reload(self) -> None:
        """Re-read the persisted list; corrupt data resets the index to empty."""

        try:
            self._entries = _parse_history(self._store.get(self._key))[: self._limit]
        except HistoryBlobCorrupt as exc:
            LOGGER.warning("Discarding corrupt file history: %s", exc)
            self._entries = []

    def add(self, path: str) -> None:
        if not path:
            return
        self._entries = [path, *(entry for entry in self._entries if entry != path)][: self._limit]
        self._persist()

    def remove(self, path: str) -> bool:
        if path not in self._entries:
            return False
        self._entries = [entry for entry in self._entries if entry != path]
        self._persist()
        return True

    def clear(self) -> None:
        self._entries = []
        self._persist()

    def entries(self) -> tuple[str, ...]:
        return tuple(self._entries)

    def add_listener(self, listener: HistoryListener) -> None:
        self._listeners.append(listener)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def _persist(self) -> None:
        try:
            self._store.set(self._key, json.dumps(self._entries))
        except OSError as exc:
            LOGGER.warning("Unable to persist file history: %s", exc)
        snapshot = self.entries()
        for listener in list(self._listeners):
            listener(snapshot)


def _parse_history(raw: str | None) -> List[str]:
    if raw is None:
        return []
    try:
        data: Any = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise HistoryBlobCorrupt(f"invalid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise HistoryBlobCorrupt(f"expected a list, got {type(data).__name__}")
    seen: set[str] = set()
    entries: List[str] = []
    for item in data:
        if isinstance(item, str) and item and item not in seen:
            seen.add(item)
            entries.append(item)
    return entries
