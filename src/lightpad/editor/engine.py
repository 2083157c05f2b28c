"""Editing engine contracts and the in-process text buffer implementation.

The workspace never inspects engine state. It asks the engine to build a state
for new tabs, attaches that state to the single visible view when a tab is
activated and takes it back (``detach_state``) before another tab borrows the
view. Edit and cursor notifications travel through :class:`EditListener`
extensions handed to :meth:`EditingEngine.create_state`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Protocol, Sequence

from .document_model import DocumentKind, display_name

__all__ = [
    "EditingEngine",
    "RichDocumentEngine",
    "EditListener",
    "LanguageExtension",
    "TextBufferState",
    "TextView",
    "TextBufferEngine",
    "HtmlDocumentEngine",
    "language_extensions",
]

RichChangeListener = Callable[[str], None]


class EditingEngine(Protocol):
    """Engine owning the live state of plain-text and checklist tabs."""

    def create_state(self, content: str, extensions: Sequence[Any] = ()) -> Any:  # pragma: no cover - protocol
        ...

    def attach(self, state: Any) -> Any:  # pragma: no cover - protocol
        ...

    def detach_state(self, view: Any) -> Any:  # pragma: no cover - protocol
        ...

    def current_text(self, view: Any) -> str:  # pragma: no cover - protocol
        ...

    def state_text(self, state: Any) -> str:  # pragma: no cover - protocol
        ...

    def cursor_offset(self, view: Any) -> int:  # pragma: no cover - protocol
        ...

    def set_cursor(self, view: Any, offset: int) -> None:  # pragma: no cover - protocol
        ...

    def destroy_view(self, view: Any) -> None:  # pragma: no cover - protocol
        ...


class RichDocumentEngine(Protocol):
    """Engine that owns rich-document state outside of the workspace."""

    def load(self, content: str) -> None:  # pragma: no cover - protocol
        ...

    def serialize(self) -> str:  # pragma: no cover - protocol
        ...

    def add_change_listener(self, listener: RichChangeListener) -> None:  # pragma: no cover - protocol
        ...


@dataclass(slots=True)
class EditListener:
    """Extension receiving text and cursor notifications for one tab."""

    on_text: Callable[[str], None] | None = None
    on_cursor: Callable[[int], None] | None = None


@dataclass(slots=True, frozen=True)
class LanguageExtension:
    """Marker telling the view which highlighting mode to use."""

    language: str


_LANGUAGE_BY_SUFFIX: dict[str, str] = {
    ".md": "markdown",
    ".markdown": "markdown",
    ".py": "python",
    ".js": "javascript",
    ".ts": "typescript",
    ".json": "json",
    ".css": "css",
    ".html": "html",
    ".csv": "csv",
}


def language_extensions(kind: DocumentKind, path: str | None) -> list[LanguageExtension]:
    if kind is DocumentKind.CHECKLIST:
        return [LanguageExtension("checklist")]
    name = display_name(path).lower()
    for suffix, language in _LANGUAGE_BY_SUFFIX.items():
        if name.endswith(suffix):
            return [LanguageExtension(language)]
    return [LanguageExtension("text")]


@dataclass(slots=True)
class TextBufferState:
    text: str = ""
    cursor: int = 0
    extensions: tuple[Any, ...] = ()

    def listeners(self) -> list[EditListener]:
        return [ext for ext in self.extensions if isinstance(ext, EditListener)]


@dataclass(slots=True, eq=False)
class TextView:
    """Handle for the single visible text view."""

    state: TextBufferState | None = None
    destroyed: bool = False


class TextBufferEngine:
    """Headless :class:`EditingEngine` backed by plain Python strings.

    The Qt presentation layer mirrors the attached state into a text widget;
    tests drive edits directly through :meth:`replace_text` and
    :meth:`insert_text`.
    """

    def __init__(self) -> None:
        self._view: TextView | None = None

    @property
    def view(self) -> TextView | None:
        return self._view

    def create_state(self, content: str, extensions: Sequence[Any] = ()) -> TextBufferState:
        return TextBufferState(text=content, cursor=0, extensions=tuple(extensions))

    def attach(self, state: TextBufferState) -> TextView:
        if self._view is None or self._view.destroyed:
            self._view = TextView()
        self._view.state = state
        return self._view

    def detach_state(self, view: TextView) -> TextBufferState:
        state = self._require_state(view)
        view.state = None
        return state

    def current_text(self, view: TextView) -> str:
        return self._require_state(view).text

    def state_text(self, state: TextBufferState | None) -> str:
        return state.text if state is not None else ""

    def cursor_offset(self, view: TextView) -> int:
        return self._require_state(view).cursor

    def set_cursor(self, view: TextView, offset: int) -> None:
        state = self._require_state(view)
        state.cursor = max(0, min(offset, len(state.text)))
        for listener in state.listeners():
            if listener.on_cursor is not None:
                listener.on_cursor(state.cursor)

    def destroy_view(self, view: TextView) -> None:
        view.state = None
        view.destroyed = True
        if self._view is view:
            self._view = None

    # ------------------------------------------------------------------
    # Editing (user input)
    # ------------------------------------------------------------------
    def replace_text(self, view: TextView, text: str) -> None:
        state = self._require_state(view)
        if text == state.text:
            return
        state.text = text
        state.cursor = min(state.cursor, len(text))
        self._emit_text(state)

    def insert_text(self, view: TextView, text: str, position: int | None = None) -> None:
        state = self._require_state(view)
        at = state.cursor if position is None else max(0, min(position, len(state.text)))
        state.text = state.text[:at] + text + state.text[at:]
        state.cursor = at + len(text)
        self._emit_text(state)

    def _emit_text(self, state: TextBufferState) -> None:
        for listener in state.listeners():
            if listener.on_text is not None:
                listener.on_text(state.text)

    @staticmethod
    def _require_state(view: TextView) -> TextBufferState:
        if view.state is None:
            raise RuntimeError("Text view has no attached state")
        return view.state


class HtmlDocumentEngine:
    """Headless :class:`RichDocumentEngine` holding serialized HTML."""

    def __init__(self) -> None:
        self._content = ""
        self._listeners: List[RichChangeListener] = []

    def load(self, content: str) -> None:
        # loading is not an edit; listeners stay quiet
        self._content = content

    def serialize(self) -> str:
        return self._content

    def add_change_listener(self, listener: RichChangeListener) -> None:
        self._listeners.append(listener)

    def set_content(self, content: str) -> None:
        if content == self._content:
            return
        self._content = content
        for listener in list(self._listeners):
            listener(content)
