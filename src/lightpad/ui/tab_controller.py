"""Tab lifecycle orchestration: create, switch, edit, save, close and restore.

The controller is the only writer of :class:`TabRegistry` besides the drag
engine. It talks to the outside world through injected collaborators (editing
engines, filesystem provider, confirmation prompt) and reports everything the
views need through :class:`~lightpad.ui.events.EventBus` events.
"""

from __future__ import annotations

import logging
from enum import Enum
from functools import partial
from typing import Any, Dict, Iterable, List, Sequence

from ..editor.document_model import (
    DocumentKind,
    Tab,
    UNTITLED,
    cursor_line_column,
    display_name,
    kind_for_path,
)
from ..editor.engine import (
    EditingEngine,
    EditListener,
    HtmlDocumentEngine,
    RichDocumentEngine,
    TextBufferEngine,
    language_extensions,
)
from ..editor.tab_drag import DragAction, DragReorderEngine, DragResult, TabRect
from ..editor.workspace import TabIdAllocator, TabRegistry
from ..errors import SaveDialogCancelled, WorkspaceError
from ..services.file_history import FileHistoryIndex
from ..services.filesystem import (
    ALL_FILES,
    CHECKLIST_FILES,
    RICH_DOCUMENT_FILES,
    FileFilter,
    FilesystemProvider,
)
from ..services.quick_open import QuickOpenSearch
from ..services.session import RestoredSession, SessionPersistence, SessionRecord, TabSnapshot
from ..services.settings import Settings
from ..services.storage import MemoryStore
from .events import (
    ActiveTabChanged,
    CursorMoved,
    DocumentSaved,
    EventBus,
    FileHistoryChanged,
    SessionSaved,
    StatusMessage,
    TabBarChanged,
    TabClosed,
    TabCreated,
    TabDirtyChanged,
    TabsReordered,
    WindowTitleChanged,
    WorkspaceRestored,
)
from .prompts import ConfirmChoice, ConfirmationPrompt, LinkDetails, normalize_link_details

__all__ = ["TabLifecycleController", "CloseOutcome", "SaveOutcome", "APP_NAME"]

LOGGER = logging.getLogger(__name__)

APP_NAME = "LightPad"
CHECKLIST_TITLE = "tasks.todo"
CHECKLIST_TEMPLATE = "- [ ] "
RICH_DOCUMENT_TITLE = "document.doc"


class CloseOutcome(Enum):
    CLOSED = "closed"
    KEPT = "kept"
    CANCELLED = "cancelled"
    SAVE_ABORTED = "save_aborted"
    SAVE_FAILED = "save_failed"
    FORCE_ALL = "force_all"
    NOT_FOUND = "not_found"

    @property
    def closed(self) -> bool:
        return self in (CloseOutcome.CLOSED, CloseOutcome.FORCE_ALL)

    @property
    def stops_batch(self) -> bool:
        return self in (CloseOutcome.CANCELLED, CloseOutcome.SAVE_ABORTED)


class SaveOutcome(Enum):
    SAVED = "saved"
    UNCHANGED = "unchanged"
    CANCELLED = "cancelled"
    FAILED = "failed"
    UNAVAILABLE = "unavailable"
    NO_TAB = "no_tab"


def _save_filters(kind: DocumentKind) -> list[FileFilter]:
    if kind is DocumentKind.CHECKLIST:
        return [CHECKLIST_FILES]
    if kind is DocumentKind.RICH_DOCUMENT:
        return [RICH_DOCUMENT_FILES]
    return [ALL_FILES]


class TabLifecycleController:
    """Owns the workspace state machine for every open tab."""

    def __init__(
        self,
        *,
        prompt: ConfirmationPrompt,
        filesystem: FilesystemProvider | None = None,
        registry: TabRegistry | None = None,
        engine: EditingEngine | None = None,
        rich_engine: RichDocumentEngine | None = None,
        history: FileHistoryIndex | None = None,
        session: SessionPersistence | None = None,
        bus: EventBus | None = None,
        settings: Settings | None = None,
        id_allocator: TabIdAllocator | None = None,
    ) -> None:
        self._settings = settings if settings is not None else Settings()
        self._prompt = prompt
        self._filesystem = filesystem
        self._registry = registry if registry is not None else TabRegistry()
        self._engine: EditingEngine = engine if engine is not None else TextBufferEngine()
        self._rich_engine: RichDocumentEngine = (
            rich_engine if rich_engine is not None else HtmlDocumentEngine()
        )
        if history is None:
            history = FileHistoryIndex(MemoryStore(), limit=self._settings.history_limit)
        self._history = history
        if session is None:
            session = SessionPersistence(MemoryStore(), delay_ms=self._settings.session_debounce_ms)
        self._session = session
        self._bus = bus if bus is not None else EventBus()
        self._ids = id_allocator if id_allocator is not None else TabIdAllocator()
        self._drag = DragReorderEngine(self._registry, threshold=self._settings.drag_threshold)
        self._quick_open = QuickOpenSearch(self._history)
        self._view: Any = None
        self._attached_id: str | None = None

        self._session.bind(self.snapshot)
        self._session.add_saved_callback(self._on_session_saved)
        self._history.add_listener(self._on_history_changed)
        self._rich_engine.add_change_listener(self._on_rich_content_changed)

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------
    @property
    def registry(self) -> TabRegistry:
        return self._registry

    @property
    def engine(self) -> EditingEngine:
        return self._engine

    @property
    def rich_engine(self) -> RichDocumentEngine:
        return self._rich_engine

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def history(self) -> FileHistoryIndex:
        return self._history

    @property
    def session(self) -> SessionPersistence:
        return self._session

    @property
    def quick_open(self) -> QuickOpenSearch:
        return self._quick_open

    @property
    def drag(self) -> DragReorderEngine:
        return self._drag

    @property
    def view(self) -> Any:
        """The editing engine's view for the active text tab, if one is attached."""

        return self._view

    @property
    def active_tab(self) -> Tab | None:
        return self._registry.active_tab

    def set_filesystem(self, filesystem: FilesystemProvider | None) -> None:
        self._filesystem = filesystem

    # ------------------------------------------------------------------
    # Creation & switching
    # ------------------------------------------------------------------
    def new_tab(
        self,
        path: str | None = None,
        content: str = "",
        *,
        kind: DocumentKind | None = None,
        title: str | None = None,
    ) -> Tab:
        """Register a clean tab holding ``content`` and make it active."""

        tab = Tab(
            id=self._ids.allocate(),
            kind=kind or kind_for_path(path),
            path=path,
            title=title or UNTITLED,
            saved_content=content,
        )
        tab.live_state = self._build_state(tab, content)
        self._registry.register(tab)
        LOGGER.debug("Created %s (%s, path=%s)", tab.id, tab.kind.value, path)
        self._bus.publish(TabCreated(tab_id=tab.id, path=path))
        self.switch_to(tab.id)
        return tab

    def new_checklist(self) -> Tab:
        tab = self.new_tab(content=CHECKLIST_TEMPLATE, kind=DocumentKind.CHECKLIST, title=CHECKLIST_TITLE)
        if self._view is not None:
            self._engine.set_cursor(self._view, len(CHECKLIST_TEMPLATE))
        return tab

    def new_rich_document(self) -> Tab:
        return self.new_tab(kind=DocumentKind.RICH_DOCUMENT, title=RICH_DOCUMENT_TITLE)

    def switch_to(self, tab_id: str | None) -> bool:
        """Activate ``tab_id``; ``None`` tears the editing view down."""

        if tab_id is not None and tab_id not in self._registry:
            LOGGER.debug("Ignoring switch to unknown tab %s", tab_id)
            return False

        self._stash_active()
        if tab_id is None:
            self._registry.set_active(None)
            if self._view is not None:
                self._engine.destroy_view(self._view)
                self._view = None
        else:
            self._registry.set_active(tab_id)
            tab = self._registry.find(tab_id)
            assert tab is not None
            self._attach(tab)

        self._bus.publish(ActiveTabChanged(tab_id=tab_id))
        self._publish_title()
        self._publish_cursor()
        self._publish_tab_bar()
        self._session.request_save()
        return True

    def tab_text(self, tab_id: str) -> str:
        """Live content of a tab, whether or not it is attached to the view."""

        tab = self._registry.find(tab_id)
        if tab is None:
            raise KeyError(f"Unknown tab_id: {tab_id}")
        return self._tab_text(tab)

    @property
    def window_title(self) -> str:
        tab = self._registry.active_tab
        if tab is None:
            return APP_NAME
        return f"{tab.display_name} - {APP_NAME}"

    # ------------------------------------------------------------------
    # Closing
    # ------------------------------------------------------------------
    async def close_tab(self, tab_id: str, *, force: bool = False, batch: bool = False) -> CloseOutcome:
        """Close one tab, asking about unsaved changes when that matters.

        ``force`` replaces the prompt with a silent save. ``batch`` offers the
        "yes to all" answer to the user.
        """

        tab = self._registry.find(tab_id)
        if tab is None:
            return CloseOutcome.NOT_FOUND

        outcome = CloseOutcome.CLOSED
        if tab.is_unsaved and await self._needs_confirmation(tab):
            if force:
                choice = ConfirmChoice.YES
            else:
                choice = await self._prompt.ask_confirm(
                    f'Save changes to "{tab.display_name}"?',
                    allow_yes_to_all=batch,
                    allow_cancel=True,
                )
            if choice is ConfirmChoice.NO:
                return CloseOutcome.KEPT
            if choice is ConfirmChoice.CANCEL:
                return CloseOutcome.CANCELLED
            if tab.id not in self._registry:
                return CloseOutcome.NOT_FOUND
            saved = await self._save_tab(tab)
            if saved is SaveOutcome.CANCELLED:
                return CloseOutcome.SAVE_ABORTED
            if saved not in (SaveOutcome.SAVED, SaveOutcome.UNCHANGED):
                return CloseOutcome.SAVE_FAILED
            if choice is ConfirmChoice.YES_TO_ALL:
                outcome = CloseOutcome.FORCE_ALL

        # The tab may have gone away while we were awaiting
        if tab.id not in self._registry:
            return CloseOutcome.NOT_FOUND
        self._remove_tab(tab)
        return outcome

    async def close_tabs(self, tab_ids: Iterable[str]) -> Dict[str, CloseOutcome]:
        """Close tabs strictly one after another; a cancel stops the rest."""

        targets = [tab for tab in (self._registry.find(tab_id) for tab_id in tab_ids) if tab is not None]
        batch = sum(1 for tab in targets if tab.is_unsaved) > 1
        force = False
        outcomes: Dict[str, CloseOutcome] = {}
        for tab in targets:
            outcome = await self.close_tab(tab.id, force=force, batch=batch)
            outcomes[tab.id] = outcome
            if outcome is CloseOutcome.FORCE_ALL:
                force = True
            elif outcome.stops_batch:
                LOGGER.debug("Close batch stopped at %s (%s)", tab.id, outcome.value)
                break
        return outcomes

    async def close_all(self) -> Dict[str, CloseOutcome]:
        return await self.close_tabs(self._registry.ids())

    async def close_others(self, tab_id: str) -> Dict[str, CloseOutcome]:
        return await self.close_tabs([item for item in self._registry.ids() if item != tab_id])

    async def close_to_right(self, tab_id: str) -> Dict[str, CloseOutcome]:
        return await self.close_tabs([tab.id for tab in self._registry.tabs_after(tab_id)])

    async def close_saved(self) -> Dict[str, CloseOutcome]:
        return await self.close_tabs([tab.id for tab in self._registry if not tab.is_unsaved])

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------
    async def open_file(self) -> Tab | None:
        if self._filesystem is None:
            self._status("Opening files is only supported in the desktop app.")
            return None
        try:
            path = await self._filesystem.open_dialog([ALL_FILES])
            if not path:
                return None
            existing = self._registry.find_by_path(path)
            if existing is not None:
                self.switch_to(existing.id)
                return existing
            content = await self._filesystem.read_text(path)
        except WorkspaceError as exc:
            LOGGER.warning("Error opening file: %s", exc)
            self._status("Error opening file")
            return None

        tab = self.new_tab(path, content)
        self._history.add(path)
        self._status("File loaded")
        return tab

    async def open_from_history(self, path: str) -> Tab | None:
        existing = self._registry.find_by_path(path)
        if existing is not None:
            self.switch_to(existing.id)
            return existing
        if self._filesystem is None:
            self._status("Opening files is only supported in the desktop app.")
            return None

        try:
            if not await self._filesystem.exists(path):
                self._status(
                    f"File no longer exists: {display_name(path)}",
                    self._settings.restore_warning_timeout_ms,
                )
                self._history.remove(path)
                return None
            content = await self._filesystem.read_text(path)
        except WorkspaceError as exc:
            LOGGER.warning("Error opening %s from history: %s", path, exc)
            self._status("Error opening file from history")
            self._history.remove(path)
            return None

        tab = self.new_tab(path, content)
        self._status("File loaded")
        self._history.add(path)
        return tab

    async def open_quick_open_selection(self) -> Tab | None:
        match = self._quick_open.selected
        if match is None:
            return None
        return await self.open_from_history(match.path)

    async def open_paths(self, paths: Sequence[str]) -> List[Tab]:
        """Open dropped files in order, focusing those that are already open."""

        opened: List[Tab] = []
        if self._filesystem is None:
            self._status("Opening files is only supported in the desktop app.")
            return opened
        for path in paths:
            existing = self._registry.find_by_path(path)
            if existing is not None:
                self.switch_to(existing.id)
                opened.append(existing)
                continue
            try:
                content = await self._filesystem.read_text(path)
            except WorkspaceError as exc:
                LOGGER.warning("Error opening dropped file %s: %s", path, exc)
                self._status(f"Error opening: {display_name(path)}")
                continue
            opened.append(self.new_tab(path, content))
            self._history.add(path)
            self._status(f"Opened: {display_name(path)}")
        return opened

    async def save_active(self) -> SaveOutcome:
        tab = self._registry.active_tab
        if tab is None:
            return SaveOutcome.NO_TAB
        return await self._save_tab(tab)

    async def save_active_as(self) -> SaveOutcome:
        tab = self._registry.active_tab
        if tab is None:
            return SaveOutcome.NO_TAB
        return await self._save_tab(tab, save_as=True)

    async def delete_active_file(self) -> bool:
        """Delete the active tab's file after confirmation and close the tab unprompted."""

        tab = self._registry.active_tab
        if tab is None:
            return False
        choice = await self._prompt.ask_confirm(
            f'Permanently delete "{tab.display_name}"?',
            allow_yes_to_all=False,
            allow_cancel=False,
        )
        if choice is not ConfirmChoice.YES:
            return False

        if tab.path:
            if self._filesystem is None:
                self._status("Deleting files is only supported in the desktop app.")
            else:
                try:
                    await self._filesystem.delete(tab.path)
                except WorkspaceError as exc:
                    LOGGER.warning("Failed to delete %s: %s", tab.path, exc)
                    self._status("Error deleting file")
                else:
                    self._history.remove(tab.path)
        if tab.id in self._registry:
            self._remove_tab(tab)
        return True

    async def request_link(self, default_text: str = "", default_url: str = "") -> LinkDetails | None:
        details = await self._prompt.ask_link_details(default_text, default_url)
        if details is None:
            return None
        return normalize_link_details(details.text, details.url, default_url=default_url)

    # ------------------------------------------------------------------
    # Reordering
    # ------------------------------------------------------------------
    def press_tab(self, tab_id: str, x: float, y: float = 0.0) -> None:
        self._drag.press(tab_id, x, y)

    def drag_tab(self, x: float, y: float, rects: Sequence[TabRect]) -> int | None:
        return self._drag.move(x, y, rects)

    def release_tab(self) -> DragResult:
        result = self._drag.release()
        if result.action is DragAction.ACTIVATE and result.tab_id is not None:
            self.switch_to(result.tab_id)
        elif result.action is DragAction.REORDER:
            self._after_reorder()
        return result

    def cancel_drag(self) -> None:
        self._drag.cancel()

    def move_tab(self, tab_id: str, target_index: int) -> bool:
        if not self._registry.move_to(tab_id, target_index):
            return False
        self._after_reorder()
        return True

    def _after_reorder(self) -> None:
        self._bus.publish(TabsReordered(order=self._registry.ids()))
        self._publish_tab_bar()
        self._session.request_save()

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------
    def snapshot(self) -> SessionRecord:
        """Serializable view of the workspace; clean file-backed tabs carry no content."""

        tabs: List[TabSnapshot] = []
        for tab in self._registry:
            content = self._tab_text(tab) if tab.path is None or tab.is_unsaved else None
            tabs.append(
                TabSnapshot(
                    id=tab.id,
                    path=tab.path,
                    title=tab.title,
                    is_unsaved=tab.is_unsaved,
                    kind=tab.kind,
                    content=content,
                )
            )
        cursor = 0
        active = self._registry.active_tab
        if active is not None and active.kind.uses_text_engine and self._attached_id == active.id:
            cursor = self._engine.cursor_offset(self._view)
        return SessionRecord(tabs=tabs, active_tab_id=self._registry.active_id, cursor_pos=cursor)

    async def restore_session(self) -> RestoredSession:
        restored = await self._session.restore(
            self._filesystem,
            self._history,
            drop_empty_untitled=self._settings.drop_empty_untitled_on_restore,
        )
        for item in restored.tabs:
            self._ids.observe(item.id)
            if item.id in self._registry:
                continue
            tab = Tab(
                id=item.id,
                kind=item.kind,
                path=item.path,
                title=item.title,
                is_unsaved=item.is_unsaved,
                saved_content=item.saved_content,
            )
            tab.live_state = self._build_state(tab, item.content)
            self._registry.register(tab)
            self._bus.publish(TabCreated(tab_id=tab.id, path=tab.path))

        self.switch_to(restored.active_tab_id)
        active = self._registry.active_tab
        if active is not None and active.kind.uses_text_engine and self._view is not None:
            self._engine.set_cursor(self._view, restored.cursor_pos)
        for warning in restored.warnings:
            self._status(warning, self._settings.restore_warning_timeout_ms)
        self._bus.publish(WorkspaceRestored(tab_count=len(restored.tabs), active_tab_id=self._registry.active_id))
        return restored

    def shutdown(self) -> None:
        """Write the session synchronously; call on application teardown."""

        self._session.flush_now()

    # ------------------------------------------------------------------
    # Engine notifications
    # ------------------------------------------------------------------
    def _on_text_changed(self, tab_id: str, text: str) -> None:
        tab = self._registry.find(tab_id)
        if tab is None:
            return
        self._refresh_dirty(tab, text)
        self._session.request_save()

    def _on_cursor_moved(self, tab_id: str, offset: int) -> None:
        if tab_id == self._registry.active_id:
            self._publish_cursor()

    def _on_rich_content_changed(self, content: str) -> None:
        tab = self._registry.active_tab
        if tab is None or tab.kind is not DocumentKind.RICH_DOCUMENT or self._attached_id != tab.id:
            return
        self._refresh_dirty(tab, content)
        self._session.request_save()

    def _on_session_saved(self, record: SessionRecord) -> None:
        self._bus.publish(SessionSaved(tab_count=len(record.tabs)))

    def _on_history_changed(self, entries: tuple[str, ...]) -> None:
        self._bus.publish(FileHistoryChanged(entries=entries))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _build_state(self, tab: Tab, content: str) -> Any:
        if not tab.kind.uses_text_engine:
            return content
        listener = EditListener(
            on_text=partial(self._on_text_changed, tab.id),
            on_cursor=partial(self._on_cursor_moved, tab.id),
        )
        return self._engine.create_state(content, [*language_extensions(tab.kind, tab.path), listener])

    def _attach(self, tab: Tab) -> None:
        if tab.kind.uses_text_engine:
            self._view = self._engine.attach(tab.live_state)
        else:
            content = tab.live_state if tab.live_state is not None else tab.saved_content
            self._rich_engine.load(content or "")
        self._attached_id = tab.id

    def _stash_active(self) -> None:
        """Hand the attached tab's live state back to its record."""

        tab = self._registry.find(self._attached_id)
        self._attached_id = None
        if tab is None:
            return
        if tab.kind.uses_text_engine:
            if self._view is not None:
                tab.live_state = self._engine.detach_state(self._view)
        else:
            tab.live_state = self._rich_engine.serialize()

    def _tab_text(self, tab: Tab) -> str:
        attached = self._attached_id == tab.id
        if tab.kind.uses_text_engine:
            if attached and self._view is not None:
                return self._engine.current_text(self._view)
            return self._engine.state_text(tab.live_state)
        if attached:
            return self._rich_engine.serialize()
        if tab.live_state is not None:
            return tab.live_state
        return tab.saved_content or ""

    async def _needs_confirmation(self, tab: Tab) -> bool:
        if tab.path is None:
            return bool(self._tab_text(tab).strip())
        if self._filesystem is None:
            return True
        try:
            exists = await self._filesystem.exists(tab.path)
        except WorkspaceError as exc:
            LOGGER.debug("Existence check failed for %s: %s", tab.path, exc)
            exists = False
        if not exists:
            self._history.remove(tab.path)
        return exists

    async def _save_tab(self, tab: Tab, *, save_as: bool = False) -> SaveOutcome:
        if self._filesystem is None:
            self._status("Saving files is only supported in the desktop app.")
            return SaveOutcome.UNAVAILABLE

        content = self._tab_text(tab)
        if not save_as and tab.path and not tab.is_unsaved and content == tab.saved_content:
            return SaveOutcome.UNCHANGED

        try:
            path = await self._resolve_save_path(tab, save_as=save_as)
            await self._filesystem.write_text(path, content)
        except SaveDialogCancelled:
            return SaveOutcome.CANCELLED
        except WorkspaceError as exc:
            LOGGER.warning("Error saving %s: %s", tab.id, exc)
            self._status("Error saving file")
            return SaveOutcome.FAILED

        was_unsaved = tab.is_unsaved
        tab.mark_saved(content, path)
        LOGGER.info("Saved %s to %s", tab.id, path)
        self._history.add(path)
        self._bus.publish(DocumentSaved(tab_id=tab.id, path=path))
        if was_unsaved:
            self._bus.publish(TabDirtyChanged(tab_id=tab.id, is_unsaved=False))
        self._publish_tab_bar()
        if tab.id == self._registry.active_id:
            self._publish_title()
        self._status("Saved successfully")
        self._session.request_save()
        return SaveOutcome.SAVED

    async def _resolve_save_path(self, tab: Tab, *, save_as: bool) -> str:
        assert self._filesystem is not None
        if tab.path and not save_as:
            return tab.path
        path = await self._filesystem.save_dialog(_save_filters(tab.kind))
        if not path:
            raise SaveDialogCancelled("save dialog dismissed")
        return path

    def _remove_tab(self, tab: Tab) -> None:
        was_active = self._registry.active_id == tab.id
        if was_active:
            self._stash_active()
        self._registry.unregister(tab.id)
        LOGGER.debug("Closed %s", tab.id)
        self._bus.publish(TabClosed(tab_id=tab.id, path=tab.path))
        if was_active:
            self.switch_to(self._registry.active_id)
        else:
            self._publish_tab_bar()
            self._session.request_save()

    def _refresh_dirty(self, tab: Tab, text: str) -> None:
        if tab.recompute_dirty(text):
            self._bus.publish(TabDirtyChanged(tab_id=tab.id, is_unsaved=tab.is_unsaved))
            self._publish_tab_bar()

    def _status(self, message: str, timeout_ms: int | None = None) -> None:
        timeout = self._settings.status_timeout_ms if timeout_ms is None else timeout_ms
        self._bus.publish(StatusMessage(message=message, timeout_ms=timeout))

    def _publish_title(self) -> None:
        self._bus.publish(WindowTitleChanged(title=self.window_title))

    def _publish_cursor(self) -> None:
        tab = self._registry.active_tab
        if tab is None or not tab.kind.uses_text_engine or self._view is None or self._attached_id != tab.id:
            self._bus.publish(CursorMoved(line=None, column=None))
            return
        text = self._engine.current_text(self._view)
        line, column = cursor_line_column(text, self._engine.cursor_offset(self._view))
        self._bus.publish(CursorMoved(line=line, column=column))

    def _publish_tab_bar(self) -> None:
        self._bus.publish(
            TabBarChanged(
                order=self._registry.ids(),
                active_tab_id=self._registry.active_id,
                unsaved=frozenset(tab.id for tab in self._registry if tab.is_unsaved),
            )
        )
