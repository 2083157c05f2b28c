"""Reactive updaters translating workspace events into status-bar calls."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ..events import CursorMoved, EventBus, StatusMessage

LOGGER = logging.getLogger(__name__)


class StatusBarProtocol(Protocol):
    """Protocol for status bar widgets."""

    def set_message(self, message: str, *, timeout_ms: int | None = None) -> None:
        """Show a primary status message."""
        ...

    def set_cursor_label(self, label: str) -> None:
        """Show the caret position (``Ln N, Col M``) or clear it with ``""``."""
        ...


class StatusBarUpdater:
    """Subscribes to status and cursor events and forwards them to a status bar.

    Events Handled:
        - StatusMessage: Updates the main status message
        - CursorMoved: Updates the caret position label

    Example:
        updater = StatusBarUpdater(status_bar, event_bus)
        # ...
        updater.dispose()
    """

    __slots__ = ("_status_bar", "_event_bus", "_subscribed", "_last_message")

    def __init__(self, status_bar: StatusBarProtocol, event_bus: "EventBus") -> None:
        self._status_bar = status_bar
        self._event_bus = event_bus
        self._subscribed = True
        self._last_message = ""
        self._subscribe()

    @property
    def last_message(self) -> str:
        return self._last_message

    def _subscribe(self) -> None:
        from ..events import CursorMoved, StatusMessage

        self._event_bus.subscribe(StatusMessage, self._on_status_message)
        self._event_bus.subscribe(CursorMoved, self._on_cursor_moved)

    def dispose(self) -> None:
        """Unsubscribe from all events."""
        if not self._subscribed:
            return
        from ..events import CursorMoved, StatusMessage

        self._event_bus.unsubscribe(StatusMessage, self._on_status_message)
        self._event_bus.unsubscribe(CursorMoved, self._on_cursor_moved)
        self._subscribed = False

    # ------------------------------------------------------------------
    # Event Handlers
    # ------------------------------------------------------------------

    def _on_status_message(self, event: "StatusMessage") -> None:
        self._last_message = event.message
        timeout = event.timeout_ms if event.timeout_ms > 0 else None
        self._status_bar.set_message(event.message, timeout_ms=timeout)

    def _on_cursor_moved(self, event: "CursorMoved") -> None:
        self._status_bar.set_cursor_label(event.label)


__all__ = ["StatusBarProtocol", "StatusBarUpdater"]
