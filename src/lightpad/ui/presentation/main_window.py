"""Main window: hosts the tab strip and editors and mirrors engine state.

The window holds no lifecycle logic. Menu actions schedule controller
coroutines, and event handlers copy engine state into the Qt widgets.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Iterable, List

from ...editor.engine import HtmlDocumentEngine, TextBufferEngine
from ...services.window_state import MIN_HEIGHT, MIN_WIDTH, WindowStateStore
from ..tab_controller import APP_NAME
from .dialogs import QuickOpenDialog
from .status_updaters import StatusBarUpdater
from .tab_bar import TabStrip

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ..events import ActiveTabChanged, EventBus, WindowTitleChanged
    from ..tab_controller import TabLifecycleController

LOGGER = logging.getLogger(__name__)

try:  # pragma: no cover - PySide6 optional in CI
    from PySide6.QtCore import Qt
    from PySide6.QtGui import QAction, QKeySequence, QTextCursor
    from PySide6.QtWidgets import (
        QLabel,
        QMainWindow,
        QPlainTextEdit,
        QStackedWidget,
        QTextEdit,
        QVBoxLayout,
        QWidget,
    )

    _QT_AVAILABLE = True
except Exception:  # pragma: no cover - runtime stubs keep tests headless
    _QT_AVAILABLE = False
    Qt = None  # type: ignore[assignment,misc]
    QAction = None  # type: ignore[assignment,misc]
    QKeySequence = None  # type: ignore[assignment,misc]
    QTextCursor = None  # type: ignore[assignment,misc]
    QLabel = None  # type: ignore[assignment,misc]
    QPlainTextEdit = None  # type: ignore[assignment,misc]
    QStackedWidget = None  # type: ignore[assignment,misc]
    QTextEdit = None  # type: ignore[assignment,misc]
    QVBoxLayout = None  # type: ignore[assignment,misc]
    QWidget = None  # type: ignore[assignment,misc]

    class QMainWindow:  # type: ignore[no-redef]
        """Stub for headless testing."""

        def __init__(self, *args: object, **kwargs: object) -> None:
            pass

        def setWindowTitle(self, title: str) -> None:
            pass


def dropped_local_paths(urls: Iterable[Any]) -> List[str]:
    """Return the local file paths among dropped ``QUrl`` objects, in drop order."""

    paths: List[str] = []
    for url in urls:
        if not url.isLocalFile():
            continue
        path = url.toLocalFile()
        if path and path not in paths:
            paths.append(path)
    return paths


class _QtStatusBar:
    """Adapts ``QStatusBar`` plus a permanent caret label to :class:`StatusBarProtocol`."""

    def __init__(self, status_bar: Any, cursor_label: Any) -> None:  # pragma: no cover - Qt specific
        self._status_bar = status_bar
        self._cursor_label = cursor_label

    def set_message(self, message: str, *, timeout_ms: int | None = None) -> None:  # pragma: no cover - Qt specific
        self._status_bar.showMessage(message, timeout_ms or 0)

    def set_cursor_label(self, label: str) -> None:  # pragma: no cover - Qt specific
        self._cursor_label.setText(label)


class LightPadWindow(QMainWindow):
    """Top-level window wired to a :class:`TabLifecycleController`."""

    def __init__(
        self,
        controller: "TabLifecycleController",
        event_bus: "EventBus",
        *,
        text_engine: TextBufferEngine,
        rich_engine: HtmlDocumentEngine,
        window_state: WindowStateStore,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        super().__init__()
        self._controller = controller
        self._event_bus = event_bus
        self._text_engine = text_engine
        self._rich_engine = rich_engine
        self._window_state = window_state
        self._loop = loop
        self._syncing = False
        self._status_updater: StatusBarUpdater | None = None

        self._tab_strip = TabStrip(controller, event_bus, schedule=self.schedule_coroutine, parent=self)
        if _QT_AVAILABLE:  # pragma: no cover - Qt specific
            self._build_widgets()
            self._build_actions()
            self._restore_geometry()
        self._subscribe_to_events()
        self.setWindowTitle(APP_NAME)

    @property
    def tab_strip(self) -> TabStrip:
        return self._tab_strip

    # ------------------------------------------------------------------
    # Widget Creation
    # ------------------------------------------------------------------

    def _build_widgets(self) -> None:  # pragma: no cover - Qt specific
        self.setMinimumSize(MIN_WIDTH, MIN_HEIGHT)
        central = QWidget(self)
        layout = QVBoxLayout(central)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)
        self._text_editor = QPlainTextEdit(central)
        self._rich_editor = QTextEdit(central)
        # File drops open tabs instead of pasting the URL into the editor
        self._text_editor.setAcceptDrops(False)
        self._rich_editor.setAcceptDrops(False)
        self.setAcceptDrops(True)
        self._stack = QStackedWidget(central)
        self._stack.addWidget(self._text_editor)
        self._stack.addWidget(self._rich_editor)
        layout.addWidget(self._tab_strip)
        layout.addWidget(self._stack)
        self.setCentralWidget(central)

        self._cursor_label = QLabel("", self)
        self.statusBar().addPermanentWidget(self._cursor_label)
        self._status_updater = StatusBarUpdater(
            _QtStatusBar(self.statusBar(), self._cursor_label), self._event_bus
        )

        self._text_editor.textChanged.connect(self._on_text_edited)
        self._text_editor.cursorPositionChanged.connect(self._on_cursor_edited)
        self._rich_editor.textChanged.connect(self._on_rich_edited)

    def _build_actions(self) -> None:  # pragma: no cover - Qt specific
        controller = self._controller
        file_menu = self.menuBar().addMenu("&File")
        entries = [
            ("New Tab", QKeySequence.StandardKey.New, lambda: controller.new_tab()),
            ("New Checklist", "Ctrl+Shift+T", controller.new_checklist),
            ("New Document", "Ctrl+Shift+D", controller.new_rich_document),
            ("Open...", QKeySequence.StandardKey.Open, lambda: self.schedule_coroutine(controller.open_file())),
            ("Quick Open...", "Ctrl+P", self._show_quick_open),
            ("Save", QKeySequence.StandardKey.Save, lambda: self.schedule_coroutine(controller.save_active())),
            ("Save As...", QKeySequence.StandardKey.SaveAs, lambda: self.schedule_coroutine(controller.save_active_as())),
            ("Close Tab", QKeySequence.StandardKey.Close, self._close_active),
            ("Close All Tabs", "Ctrl+Shift+W", lambda: self.schedule_coroutine(controller.close_all())),
            ("Delete File", "Ctrl+Shift+Del", lambda: self.schedule_coroutine(controller.delete_active_file())),
        ]
        for label, shortcut, callback in entries:
            action = QAction(label, self)
            action.setShortcut(QKeySequence(shortcut))
            action.triggered.connect(callback)
            file_menu.addAction(action)

    def _restore_geometry(self) -> None:  # pragma: no cover - Qt specific
        geometry = self._window_state.load()
        self.resize(geometry.width, geometry.height)
        if geometry.has_position:
            self.move(geometry.x, geometry.y)
        if geometry.maximized:
            self.setWindowState(self.windowState() | Qt.WindowState.WindowMaximized)

    # ------------------------------------------------------------------
    # Event Subscriptions
    # ------------------------------------------------------------------

    def _subscribe_to_events(self) -> None:
        from ..events import ActiveTabChanged, WindowTitleChanged

        self._event_bus.subscribe(WindowTitleChanged, self._on_window_title_changed)
        self._event_bus.subscribe(ActiveTabChanged, self._on_active_tab_changed)

    def _on_window_title_changed(self, event: "WindowTitleChanged") -> None:
        self.setWindowTitle(event.title)

    def _on_active_tab_changed(self, event: "ActiveTabChanged") -> None:
        if not _QT_AVAILABLE:
            return
        self._load_active_into_widgets(event.tab_id)  # pragma: no cover - Qt specific

    def _load_active_into_widgets(self, tab_id: str | None) -> None:  # pragma: no cover - Qt specific
        tab = self._controller.registry.find(tab_id)
        self._syncing = True
        try:
            if tab is None:
                self._text_editor.setPlainText("")
                self._text_editor.setEnabled(False)
                self._stack.setCurrentWidget(self._text_editor)
                return
            self._text_editor.setEnabled(True)
            if tab.kind.uses_text_engine:
                view = self._controller.view
                self._text_editor.setPlainText(self._text_engine.current_text(view))
                cursor = self._text_editor.textCursor()
                cursor.setPosition(self._text_engine.cursor_offset(view))
                self._text_editor.setTextCursor(cursor)
                self._stack.setCurrentWidget(self._text_editor)
                self._text_editor.setFocus()
            else:
                self._rich_editor.setHtml(self._rich_engine.serialize())
                self._rich_editor.moveCursor(QTextCursor.MoveOperation.End)
                self._stack.setCurrentWidget(self._rich_editor)
                self._rich_editor.setFocus()
        finally:
            self._syncing = False

    # ------------------------------------------------------------------
    # Widget -> engine
    # ------------------------------------------------------------------

    def _on_text_edited(self) -> None:  # pragma: no cover - Qt specific
        view = self._controller.view
        if self._syncing or view is None or view.state is None:
            return
        self._text_engine.replace_text(view, self._text_editor.toPlainText())

    def _on_cursor_edited(self) -> None:  # pragma: no cover - Qt specific
        view = self._controller.view
        if self._syncing or view is None or view.state is None:
            return
        self._text_engine.set_cursor(view, self._text_editor.textCursor().position())

    def _on_rich_edited(self) -> None:  # pragma: no cover - Qt specific
        if self._syncing:
            return
        self._rich_engine.set_content(self._rich_editor.toHtml())

    def _show_quick_open(self) -> None:  # pragma: no cover - Qt specific
        dialog = QuickOpenDialog(self._controller.quick_open, self)
        if dialog.exec():
            self.schedule_coroutine(self._controller.open_quick_open_selection())

    def _close_active(self) -> None:  # pragma: no cover - Qt specific
        active = self._controller.registry.active_id
        if active is not None:
            self.schedule_coroutine(self._controller.close_tab(active))

    # ------------------------------------------------------------------
    # File drops
    # ------------------------------------------------------------------

    def dragEnterEvent(self, event: Any) -> None:  # pragma: no cover - Qt specific
        if event.mimeData().hasUrls():
            event.acceptProposedAction()
        else:
            event.ignore()

    def dragMoveEvent(self, event: Any) -> None:  # pragma: no cover - Qt specific
        if event.mimeData().hasUrls():
            event.acceptProposedAction()

    def dropEvent(self, event: Any) -> None:  # pragma: no cover - Qt specific
        paths = dropped_local_paths(event.mimeData().urls())
        if not paths:
            event.ignore()
            return
        event.acceptProposedAction()
        LOGGER.debug("Opening %d dropped file(s)", len(paths))
        self.schedule_coroutine(self._controller.open_paths(paths))

    # ------------------------------------------------------------------
    # Async Support
    # ------------------------------------------------------------------

    def schedule_coroutine(self, coro: Any) -> Any:
        loop = self._loop
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = asyncio.get_event_loop()
        return asyncio.ensure_future(coro, loop=loop)

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def record_geometry(self) -> None:  # pragma: no cover - Qt specific
        size = self.size()
        pos = self.pos()
        self._window_state.record(
            size.width(), size.height(), pos.x(), pos.y(), maximized=self.isMaximized()
        )

    def closeEvent(self, event: Any) -> None:  # pragma: no cover - Qt specific
        LOGGER.debug("LightPadWindow: close event")
        self.record_geometry()
        self._controller.shutdown()
        if self._status_updater is not None:
            self._status_updater.dispose()
        super().closeEvent(event)


__all__ = ["LightPadWindow", "dropped_local_paths"]
