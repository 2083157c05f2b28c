"""Tab strip widget: renders :class:`TabBarChanged` and forwards pointer gestures."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Sequence

from ...editor.tab_drag import DragAction, TabRect

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ..events import EventBus, TabBarChanged
    from ..tab_controller import TabLifecycleController

LOGGER = logging.getLogger(__name__)

UNSAVED_MARKER = " •"

try:  # pragma: no cover - PySide6 optional in CI
    from PySide6.QtCore import Qt
    from PySide6.QtGui import QPainter, QPen
    from PySide6.QtWidgets import QTabBar

    _QT_AVAILABLE = True
except Exception:  # pragma: no cover - runtime stubs keep tests headless
    _QT_AVAILABLE = False
    Qt = None  # type: ignore[assignment,misc]
    QPainter = None  # type: ignore[assignment,misc]
    QPen = None  # type: ignore[assignment,misc]

    class QTabBar:  # type: ignore[no-redef]
        """Stub for headless testing."""

        def __init__(self, *args: object, **kwargs: object) -> None:
            pass


def tab_label(name: str, unsaved: bool) -> str:
    return f"{name}{UNSAVED_MARKER}" if unsaved else name


class TabStrip(QTabBar):
    """Thin tab bar; the controller owns order, activation and closing."""

    def __init__(
        self,
        controller: "TabLifecycleController",
        event_bus: "EventBus",
        *,
        schedule: Callable[[Any], Any],
        parent: Any = None,
    ) -> None:
        super().__init__(parent)
        self._controller = controller
        self._event_bus = event_bus
        self._schedule = schedule
        self._ids: list[str] = []
        if _QT_AVAILABLE:  # pragma: no cover - Qt specific
            self.setTabsClosable(True)
            self.setMovable(False)
            self.setExpanding(False)
            self.tabCloseRequested.connect(self._on_close_requested)
        from ..events import TabBarChanged

        event_bus.subscribe(TabBarChanged, self._on_tab_bar_changed)

    @property
    def tab_ids(self) -> Sequence[str]:
        return tuple(self._ids)

    def labels_for(self, event: "TabBarChanged") -> list[str]:
        labels: list[str] = []
        for tab_id in event.order:
            tab = self._controller.registry.find(tab_id)
            name = tab.display_name if tab is not None else tab_id
            labels.append(tab_label(name, tab_id in event.unsaved))
        return labels

    def _on_tab_bar_changed(self, event: "TabBarChanged") -> None:
        labels = self.labels_for(event)
        self._ids = list(event.order)
        if not _QT_AVAILABLE:
            return
        self._render(labels, event.active_tab_id)  # pragma: no cover - Qt specific

    # ------------------------------------------------------------------
    # Qt plumbing
    # ------------------------------------------------------------------
    def _render(self, labels: list[str], active_id: str | None) -> None:  # pragma: no cover - Qt specific
        self.blockSignals(True)
        try:
            while self.count() > len(labels):
                self.removeTab(self.count() - 1)
            for index, label in enumerate(labels):
                if index < self.count():
                    self.setTabText(index, label)
                else:
                    self.addTab(label)
            if active_id in self._ids:
                self.setCurrentIndex(self._ids.index(active_id))
        finally:
            self.blockSignals(False)
        self.update()

    def _rects(self) -> list[TabRect]:  # pragma: no cover - Qt specific
        rects = []
        for index, tab_id in enumerate(self._ids):
            rect = self.tabRect(index)
            rects.append(TabRect(tab_id=tab_id, left=float(rect.left()), width=float(rect.width())))
        return rects

    def _on_close_requested(self, index: int) -> None:  # pragma: no cover - Qt specific
        if 0 <= index < len(self._ids):
            self._schedule(self._controller.close_tab(self._ids[index]))

    def mousePressEvent(self, event: Any) -> None:  # pragma: no cover - Qt specific
        if event.button() != Qt.MouseButton.LeftButton:
            super().mousePressEvent(event)
            return
        index = self.tabAt(event.position().toPoint())
        if 0 <= index < len(self._ids):
            self._controller.press_tab(self._ids[index], event.position().x(), event.position().y())
        else:
            super().mousePressEvent(event)

    def mouseMoveEvent(self, event: Any) -> None:  # pragma: no cover - Qt specific
        if self._controller.drag.dragging:
            self._controller.drag_tab(event.position().x(), event.position().y(), self._rects())
            self.update()
            return
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event: Any) -> None:  # pragma: no cover - Qt specific
        if not self._controller.drag.dragging:
            super().mouseReleaseEvent(event)
            return
        result = self._controller.release_tab()
        LOGGER.debug("Tab gesture ended: %s", result.action.value)
        if result.action is DragAction.NONE:
            self.update()

    def paintEvent(self, event: Any) -> None:  # pragma: no cover - Qt specific
        super().paintEvent(event)
        indicator = self._controller.drag.indicator_x
        if indicator is None:
            return
        painter = QPainter(self)
        painter.setPen(QPen(self.palette().highlight().color(), 2))
        painter.drawLine(int(indicator), 0, int(indicator), self.height())
        painter.end()


__all__ = ["TabStrip", "tab_label", "UNSAVED_MARKER"]
