"""Pointer-driven tab reordering, independent of any widget toolkit.

The view forwards raw pointer coordinates plus the geometry of the tabs it
currently renders; the engine turns them into an insertion index and, on
release, either commits a reorder in the :class:`TabRegistry` or reports a
plain activation.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from .workspace import TabRegistry

__all__ = ["TabRect", "DragAction", "DragResult", "DragReorderEngine", "insertion_index"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class TabRect:
    """Horizontal extent of a rendered tab element."""

    tab_id: str
    left: float
    width: float

    @property
    def midpoint(self) -> float:
        return self.left + self.width / 2

    @property
    def right(self) -> float:
        return self.left + self.width


class DragAction(Enum):
    NONE = "none"
    ACTIVATE = "activate"
    REORDER = "reorder"


@dataclass(slots=True, frozen=True)
class DragResult:
    action: DragAction
    tab_id: str | None = None
    index: int | None = None


def insertion_index(rects: Sequence[TabRect], x: float) -> int:
    """Index of the first tab whose midpoint is at or after ``x``; end of list otherwise."""

    for index, rect in enumerate(rects):
        if rect.midpoint >= x:
            return index
    return len(rects)


@dataclass(slots=True)
class _DragState:
    tab_id: str
    start_x: float
    start_y: float
    moved: bool = False
    insert_index: int | None = None
    indicator_x: float | None = None


class DragReorderEngine:
    """Tracks one drag gesture at a time over the tab strip."""

    def __init__(self, registry: TabRegistry, *, threshold: float = 4.0) -> None:
        self._registry = registry
        self._threshold = threshold
        self._state: _DragState | None = None

    @property
    def dragging(self) -> bool:
        return self._state is not None

    @property
    def source_id(self) -> str | None:
        return self._state.tab_id if self._state else None

    @property
    def indicator_x(self) -> float | None:
        """Where the view should draw the drop indicator, if anywhere."""

        if self._state is None or not self._state.moved:
            return None
        return self._state.indicator_x

    def press(self, tab_id: str, x: float, y: float = 0.0) -> None:
        if tab_id not in self._registry:
            LOGGER.debug("Ignoring drag start on unknown tab %s", tab_id)
            return
        self._state = _DragState(tab_id=tab_id, start_x=x, start_y=y)

    def move(self, x: float, y: float, rects: Sequence[TabRect]) -> int | None:
        state = self._state
        if state is None:
            return None
        if not state.moved and math.hypot(x - state.start_x, y - state.start_y) > self._threshold:
            state.moved = True
        index = insertion_index(rects, x)
        state.insert_index = index
        if rects:
            state.indicator_x = rects[index].left if index < len(rects) else rects[-1].right
        return index

    def release(self) -> DragResult:
        state = self._state
        self._state = None
        if state is None:
            return DragResult(DragAction.NONE)
        if not state.moved:
            return DragResult(DragAction.ACTIVATE, tab_id=state.tab_id)
        if state.insert_index is None:
            return DragResult(DragAction.NONE, tab_id=state.tab_id)
        if not self._registry.move_to(state.tab_id, state.insert_index):
            return DragResult(DragAction.NONE, tab_id=state.tab_id)
        index = self._registry.index_of(state.tab_id)
        return DragResult(DragAction.REORDER, tab_id=state.tab_id, index=index)

    def cancel(self) -> None:
        self._state = None
