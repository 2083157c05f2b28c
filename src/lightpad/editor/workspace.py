"""Ordered registry of open tabs and the active-tab pointer."""

from __future__ import annotations

import itertools
import logging
from typing import Dict, Iterator, List

from .document_model import Tab

__all__ = ["TabRegistry", "TabIdAllocator"]

LOGGER = logging.getLogger(__name__)
_ID_PREFIX = "tab-"


class TabIdAllocator:
    """Hands out ``tab-N`` identifiers that are never reused within a process."""

    def __init__(self, start: int = 0) -> None:
        self._last = start

    def allocate(self) -> str:
        self._last += 1
        return f"{_ID_PREFIX}{self._last}"

    def observe(self, tab_id: str) -> None:
        """Advance past an externally supplied id (e.g. restored from a session)."""

        if not tab_id.startswith(_ID_PREFIX):
            return
        try:
            number = int(tab_id[len(_ID_PREFIX):])
        except ValueError:
            return
        if number > self._last:
            self._last = number


class TabRegistry:
    """Ground-truth tab collection: ordered ids, id map and active pointer.

    The registry has no side effects beyond its own state; rendering and
    persistence are the caller's responsibility.
    """

    def __init__(self) -> None:
        self._tabs: Dict[str, Tab] = {}
        self._order: List[str] = []
        self._active_tab_id: str | None = None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def register(self, tab: Tab) -> Tab:
        """Append ``tab`` unless its id is already present, and make it active."""

        if tab.id not in self._tabs:
            self._tabs[tab.id] = tab
            self._order.append(tab.id)
        self._active_tab_id = tab.id
        return self._tabs[tab.id]

    def unregister(self, tab_id: str) -> bool:
        """Remove a tab, choosing the preceding tab as fallback when it was active."""

        if tab_id not in self._tabs:
            return False
        index = self._order.index(tab_id)
        self._order.pop(index)
        del self._tabs[tab_id]
        if self._active_tab_id == tab_id:
            if self._order:
                self._active_tab_id = self._order[max(0, index - 1)]
            else:
                self._active_tab_id = None
        return True

    def set_active(self, tab_id: str | None) -> None:
        if tab_id is not None and tab_id not in self._tabs:
            raise KeyError(f"Unknown tab_id: {tab_id}")
        self._active_tab_id = tab_id

    def move_to(self, tab_id: str, target_index: int) -> bool:
        """Relocate a tab so it lands before the tab currently at ``target_index``.

        ``target_index`` is expressed against the order *before* the move; when
        it lies after the source the left shift caused by removing the source
        is compensated for.
        """

        if tab_id not in self._tabs:
            return False
        source_index = self._order.index(tab_id)
        target_index = max(0, min(target_index, len(self._order)))
        if target_index in (source_index, source_index + 1):
            return False
        self._order.pop(source_index)
        if target_index > source_index:
            target_index -= 1
        self._order.insert(target_index, tab_id)
        LOGGER.debug("Moved %s from %d to %d", tab_id, source_index, target_index)
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def find(self, tab_id: str | None) -> Tab | None:
        if tab_id is None:
            return None
        return self._tabs.get(tab_id)

    def find_by_path(self, path: str) -> Tab | None:
        for tab in self:
            if tab.path == path:
                return tab
        return None

    def index_of(self, tab_id: str) -> int:
        try:
            return self._order.index(tab_id)
        except ValueError:
            return -1

    @property
    def active_id(self) -> str | None:
        return self._active_tab_id

    @property
    def active_tab(self) -> Tab | None:
        return self.find(self._active_tab_id)

    def ids(self) -> tuple[str, ...]:
        return tuple(self._order)

    def tabs(self) -> list[Tab]:
        return [self._tabs[tab_id] for tab_id in self._order]

    def tabs_after(self, tab_id: str) -> list[Tab]:
        index = self.index_of(tab_id)
        if index < 0:
            return []
        return [self._tabs[item] for item in itertools.islice(self._order, index + 1, None)]

    def __iter__(self) -> Iterator[Tab]:
        for tab_id in self._order:
            yield self._tabs[tab_id]

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, tab_id: object) -> bool:
        return tab_id in self._tabs
