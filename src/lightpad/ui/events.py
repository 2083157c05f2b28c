"""Typed event bus connecting the workspace engine to its views.

The engine never calls into widgets. It publishes the events below and the
presentation layer (or a test) subscribes to the ones it renders.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import (
    Callable,
    Generic,
    TypeVar,
    TYPE_CHECKING,
)
from weakref import WeakMethod

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from typing import DefaultDict

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for every workspace event.

    Subclasses are ``@dataclass(slots=True)`` records::

        @dataclass(slots=True)
        class TabClosed(Event):
            tab_id: str
    """


# Published on every keystroke or caret move; not worth a debug line each
_QUIET_EVENT_TYPES: set[type] = set()


# =============================================================================
# Tab Events
# =============================================================================


@dataclass(slots=True)
class TabCreated(Event):
    """Emitted after a tab is registered.

    Attributes:
        tab_id: Identifier of the new tab (``tab-N``).
        path: Backing file, or ``None`` for untitled tabs.
    """

    tab_id: str
    path: str | None = None


@dataclass(slots=True)
class TabClosed(Event):
    """Emitted after a tab has been removed from the registry."""

    tab_id: str
    path: str | None = None


@dataclass(slots=True)
class ActiveTabChanged(Event):
    """Emitted when the active pointer moves.

    Attributes:
        tab_id: The newly active tab, or ``None`` once the last tab closed.
    """

    tab_id: str | None


@dataclass(slots=True)
class TabDirtyChanged(Event):
    """Emitted when a tab flips between clean and unsaved."""

    tab_id: str
    is_unsaved: bool


@dataclass(slots=True)
class TabsReordered(Event):
    """Emitted after a drag gesture committed a new tab order."""

    order: tuple[str, ...]


@dataclass(slots=True)
class TabBarChanged(Event):
    """Request to re-render the tab strip.

    Attributes:
        order: Tab ids left to right.
        active_tab_id: Highlighted tab, if any.
        unsaved: Ids of tabs that should show the unsaved marker.
    """

    order: tuple[str, ...]
    active_tab_id: str | None
    unsaved: frozenset[str] = frozenset()


@dataclass(slots=True)
class DocumentSaved(Event):
    """Emitted after a tab's content reached disk."""

    tab_id: str
    path: str


# =============================================================================
# Window Events
# =============================================================================


@dataclass(slots=True)
class StatusMessage(Event):
    """Emitted to display a message in the status bar.

    Attributes:
        message: Text to show.
        timeout_ms: Auto-dismiss delay; ``0`` keeps the message until replaced.
    """

    message: str
    timeout_ms: int = 0


@dataclass(slots=True)
class WindowTitleChanged(Event):
    title: str


@dataclass(slots=True)
class CursorMoved(Event):
    """Caret position of the active text tab, 1-based.

    Both fields are ``None`` when no text tab is active and the status
    field should be cleared.
    """

    line: int | None
    column: int | None

    @property
    def label(self) -> str:
        if self.line is None or self.column is None:
            return ""
        return f"Ln {self.line}, Col {self.column}"


_QUIET_EVENT_TYPES.add(CursorMoved)
_QUIET_EVENT_TYPES.add(TabDirtyChanged)


# =============================================================================
# Persistence Events
# =============================================================================


@dataclass(slots=True)
class SessionSaved(Event):
    tab_count: int


@dataclass(slots=True)
class WorkspaceRestored(Event):
    """Emitted once the previous session has been rebuilt.

    Attributes:
        tab_count: Number of tabs restored.
        active_tab_id: Active tab after restore, or ``None`` for an empty workspace.
    """

    tab_count: int
    active_tab_id: str | None


@dataclass(slots=True)
class FileHistoryChanged(Event):
    entries: tuple[str, ...]


class EventBus(Generic[E]):
    """Publish/subscribe hub keyed by event class.

    Bound-method handlers are held weakly so a discarded widget stops
    receiving events without unsubscribing. Plain functions and lambdas are
    held strongly.

    Thread Safety:
        Not thread-safe. Publish from the event loop thread only.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Register ``handler`` for events of exactly ``event_type``.

        Subscribing the same handler twice delivers each event twice.
        """
        self._handlers[event_type].append(_HandlerRef.create(handler))
        logger.debug("Subscribed %s to %s", _handler_name(handler), event_type.__name__)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""
        handlers = self._handlers.get(event_type)
        if handlers is None:
            return
        for index, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(index)
                logger.debug("Unsubscribed %s from %s", _handler_name(handler), event_type.__name__)
                return

    def publish(self, event: E) -> None:
        """Deliver ``event`` synchronously in subscription order.

        A handler that raises is logged and the remaining handlers still run.
        """
        event_type = type(event)
        handlers = self._handlers.get(event_type)
        is_quiet = event_type in _QUIET_EVENT_TYPES
        if not handlers:
            return

        if not is_quiet:
            logger.debug("Publishing %s to %d handler(s)", event_type.__name__, len(handlers))

        dead_indices: list[int] = []
        for index, handler_ref in enumerate(list(handlers)):
            handler = handler_ref.resolve()
            if handler is None:
                dead_indices.append(index)
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised exception for event %s",
                    _handler_name(handler),
                    event_type.__name__,
                )

        for index in reversed(dead_indices):
            if index < len(handlers):
                handlers.pop(index)

    def clear(self) -> None:
        self._handlers.clear()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Weak reference for bound methods, strong reference for everything else."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        return resolved is not None and resolved == handler


def _handler_name(handler: Handler) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        return f"{type(handler.__self__).__name__}.{handler.__func__.__name__}"
    return getattr(handler, "__name__", repr(handler))


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    # Tab events
    "TabCreated",
    "TabClosed",
    "ActiveTabChanged",
    "TabDirtyChanged",
    "TabsReordered",
    "TabBarChanged",
    "DocumentSaved",
    # Window events
    "StatusMessage",
    "WindowTitleChanged",
    "CursorMoved",
    # Persistence events
    "SessionSaved",
    "WorkspaceRestored",
    "FileHistoryChanged",
]
