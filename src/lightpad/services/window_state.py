"""Main-window geometry persisted under the ``lightpad-window`` key."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, replace
from typing import Any, Mapping

from .storage import WINDOW_KEY, KeyValueStore

__all__ = ["WindowGeometry", "WindowStateStore", "MIN_WIDTH", "MIN_HEIGHT", "DEFAULT_WIDTH", "DEFAULT_HEIGHT"]

LOGGER = logging.getLogger(__name__)

MIN_WIDTH = 400
MIN_HEIGHT = 300
DEFAULT_WIDTH = 900
DEFAULT_HEIGHT = 650


@dataclass(slots=True, frozen=True)
class WindowGeometry:
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    x: int | None = None
    y: int | None = None
    maximized: bool = False

    @property
    def has_position(self) -> bool:
        return self.x is not None and self.y is not None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "WindowGeometry":
        width = _as_int(payload.get("width"))
        height = _as_int(payload.get("height"))
        if width is None or height is None or width < MIN_WIDTH or height < MIN_HEIGHT:
            width, height = DEFAULT_WIDTH, DEFAULT_HEIGHT
        return cls(
            width=width,
            height=height,
            x=_as_int(payload.get("x")),
            y=_as_int(payload.get("y")),
            maximized=bool(payload.get("maximized", False)),
        )


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


class WindowStateStore:
    """Reads and records window geometry.

    Undersized or unreadable geometry restores as the default size.
    Recording a maximized window only flips the flag so that un-maximizing
    returns to the last normal size.
    """

    def __init__(self, store: KeyValueStore, *, key: str = WINDOW_KEY) -> None:
        self._store = store
        self._key = key

    def load(self) -> WindowGeometry:
        raw = self._store.get(self._key)
        if not raw:
            return WindowGeometry()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            LOGGER.warning("Ignoring corrupt window geometry: %s", exc)
            return WindowGeometry()
        if not isinstance(data, Mapping):
            return WindowGeometry()
        return WindowGeometry.from_payload(data)

    def record(self, width: int, height: int, x: int, y: int, *, maximized: bool) -> WindowGeometry | None:
        """Persist the current geometry; returns what was written, if anything."""

        if maximized:
            geometry = replace(self.load(), maximized=True)
        elif width >= MIN_WIDTH and height >= MIN_HEIGHT:
            geometry = WindowGeometry(width=width, height=height, x=x, y=y, maximized=False)
        else:
            return None
        self._store.set(self._key, json.dumps(asdict(geometry)))
        return geometry
