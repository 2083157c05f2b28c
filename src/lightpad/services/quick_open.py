"""Scoring of file-history entries for the quick-open palette."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from ..editor.document_model import display_name
from .file_history import FileHistoryIndex

__all__ = ["QuickOpenMatch", "QuickOpenSearch", "rank_paths", "FILENAME_SCORE", "PATH_SCORE"]

FILENAME_SCORE = 10
PATH_SCORE = 5


@dataclass(slots=True, frozen=True)
class QuickOpenMatch:
    """A ranked history entry."""

    path: str
    name: str
    score: int
    highlight: tuple[int, int] | None = None

    def segments(self) -> tuple[str, str, str]:
        """Split ``name`` into (before, matched, after) around the highlight."""

        if self.highlight is None:
            return self.name, "", ""
        start, end = self.highlight
        return self.name[:start], self.name[start:end], self.name[end:]


def rank_paths(paths: Iterable[str], query: str) -> list[QuickOpenMatch]:
    """Rank ``paths`` against ``query``; filename hits outrank directory hits."""

    needle = query.lower()
    if not needle:
        return [QuickOpenMatch(path=path, name=display_name(path), score=0) for path in paths]

    matches: list[QuickOpenMatch] = []
    for path in paths:
        name = display_name(path)
        position = name.lower().find(needle)
        if position >= 0:
            matches.append(
                QuickOpenMatch(path, name, FILENAME_SCORE, (position, position + len(needle)))
            )
        elif needle in path.lower():
            matches.append(QuickOpenMatch(path, name, PATH_SCORE))
    # sorted() is stable, so equal scores keep their MRU order
    return sorted(matches, key=lambda match: -match.score)


class QuickOpenSearch:
    """Quick-open palette model bound to a :class:`FileHistoryIndex`."""

    def __init__(self, history: FileHistoryIndex) -> None:
        self._history = history
        self._matches: list[QuickOpenMatch] = []
        self._selected = -1

    def search(self, query: str) -> list[QuickOpenMatch]:
        self._matches = rank_paths(self._history.entries(), query)
        self._selected = 0 if self._matches else -1
        return list(self._matches)

    @property
    def matches(self) -> Sequence[QuickOpenMatch]:
        return tuple(self._matches)

    @property
    def selected_index(self) -> int:
        return self._selected

    @property
    def selected(self) -> QuickOpenMatch | None:
        if 0 <= self._selected < len(self._matches):
            return self._matches[self._selected]
        return None

    def select_next(self) -> None:
        if self._selected < len(self._matches) - 1:
            self._selected += 1

    def select_previous(self) -> None:
        if self._selected > 0:
            self._selected -= 1

    def select(self, index: int) -> None:
        if 0 <= index < len(self._matches):
            self._selected = index
