"""Dataclasses describing open tabs and the kinds of document they hold."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

__all__ = [
    "DocumentKind",
    "Tab",
    "UNTITLED",
    "display_name",
    "kind_for_path",
    "cursor_line_column",
]

UNTITLED = "Untitled"
_SEGMENT_SPLIT = re.compile(r"[\\/]")


class DocumentKind(Enum):
    """Closed set of document kinds a tab can host."""

    PLAIN_TEXT = "plain"
    CHECKLIST = "checklist"
    RICH_DOCUMENT = "rich"

    @property
    def uses_text_engine(self) -> bool:
        return self is not DocumentKind.RICH_DOCUMENT


_KIND_BY_SUFFIX: dict[str, DocumentKind] = {
    ".todo": DocumentKind.CHECKLIST,
    ".doc": DocumentKind.RICH_DOCUMENT,
}


def kind_for_path(path: str | None) -> DocumentKind:
    """Infer the document kind from a file extension."""

    if not path:
        return DocumentKind.PLAIN_TEXT
    name = display_name(path).lower()
    for suffix, kind in _KIND_BY_SUFFIX.items():
        if name.endswith(suffix):
            return kind
    return DocumentKind.PLAIN_TEXT


def display_name(path: str | None) -> str:
    """Return the last path segment, accepting both separator styles."""

    if not path:
        return UNTITLED
    return _SEGMENT_SPLIT.split(path)[-1]


def cursor_line_column(text: str, offset: int) -> tuple[int, int]:
    """Return the 1-based ``(line, column)`` of ``offset`` inside ``text``."""

    offset = max(0, min(offset, len(text)))
    line_start = text.rfind("\n", 0, offset) + 1
    line = text.count("\n", 0, offset) + 1
    return line, offset - line_start + 1


@dataclass(slots=True, eq=False)
class Tab:
    """A single open document inside the workspace.

    ``live_state`` belongs to the editing engine: the workspace only stores it
    while the tab is inactive and hands it back on activation.
    """

    id: str
    kind: DocumentKind
    path: str | None = None
    title: str = UNTITLED
    is_unsaved: bool = False
    saved_content: str | None = None
    live_state: Any = None

    @property
    def display_name(self) -> str:
        """Filename when backed by a file, ``title`` otherwise."""

        if self.path:
            return display_name(self.path)
        return self.title or UNTITLED

    def recompute_dirty(self, current_text: str) -> bool:
        """Update ``is_unsaved`` against ``saved_content``; return ``True`` on change."""

        unsaved = not (self.saved_content is not None and current_text == self.saved_content)
        if unsaved == self.is_unsaved:
            return False
        self.is_unsaved = unsaved
        return True

    def mark_saved(self, content: str, path: str | None = None) -> None:
        if path is not None:
            self.path = path
        self.saved_content = content
        self.is_unsaved = False
