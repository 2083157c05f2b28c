"""Debounced persistence and restoration of the open-tab session."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping

from ..editor.document_model import DocumentKind, display_name, kind_for_path, UNTITLED
from ..errors import FileMissing, SessionBlobCorrupt, WorkspaceError
from .file_history import FileHistoryIndex
from .filesystem import FilesystemProvider
from .storage import SESSION_KEY, KeyValueStore

__all__ = [
    "TabSnapshot",
    "SessionRecord",
    "RestoredTab",
    "RestoredSession",
    "SessionPersistence",
    "DEFAULT_DEBOUNCE_MS",
]

LOGGER = logging.getLogger(__name__)
DEFAULT_DEBOUNCE_MS = 1000

SnapshotProvider = Callable[[], "SessionRecord"]
SavedCallback = Callable[["SessionRecord"], None]


@dataclass(slots=True)
class TabSnapshot:
    """Persisted form of one tab.

    ``content`` is only embedded for untitled or unsaved tabs; clean
    file-backed tabs are re-read from disk on restore.
    """

    id: str
    path: str | None = None
    title: str = UNTITLED
    is_unsaved: bool = False
    kind: DocumentKind = DocumentKind.PLAIN_TEXT
    content: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "path": self.path,
            "title": self.title,
            "isUnsaved": self.is_unsaved,
            "documentKind": self.kind.value,
            "content": self.content,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TabSnapshot":
        tab_id = payload.get("id")
        if not isinstance(tab_id, str) or not tab_id:
            raise SessionBlobCorrupt(f"tab entry without id: {payload!r}")
        path = payload.get("path") if isinstance(payload.get("path"), str) else None
        content = payload.get("content") if isinstance(payload.get("content"), str) else None
        title = payload.get("title")
        try:
            kind = DocumentKind(payload.get("documentKind"))
        except ValueError:
            kind = kind_for_path(path)
        return cls(
            id=tab_id,
            path=path or None,
            title=title if isinstance(title, str) and title else display_name(path),
            is_unsaved=bool(payload.get("isUnsaved", False)),
            kind=kind,
            content=content,
        )


@dataclass(slots=True)
class SessionRecord:
    """Ordered tab snapshots plus the active tab and its caret offset."""

    tabs: List[TabSnapshot] = field(default_factory=list)
    active_tab_id: str | None = None
    cursor_pos: int = 0

    def to_payload(self) -> dict[str, Any]:
        return {
            "tabs": [tab.to_payload() for tab in self.tabs],
            "activeTabId": self.active_tab_id,
            "cursorPos": self.cursor_pos,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_payload())

    @classmethod
    def from_json(cls, raw: str) -> "SessionRecord":
        try:
            data: Any = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise SessionBlobCorrupt(f"invalid JSON: {exc}") from exc
        if not isinstance(data, Mapping) or not isinstance(data.get("tabs"), list):
            raise SessionBlobCorrupt("session payload has no tab list")
        tabs: List[TabSnapshot] = []
        seen: set[str] = set()
        for entry in data["tabs"]:
            if not isinstance(entry, Mapping):
                raise SessionBlobCorrupt(f"tab entry is not an object: {entry!r}")
            snapshot = TabSnapshot.from_payload(entry)
            if snapshot.id in seen:
                LOGGER.warning("Skipping duplicate session tab %s", snapshot.id)
                continue
            seen.add(snapshot.id)
            tabs.append(snapshot)
        active = data.get("activeTabId")
        cursor = data.get("cursorPos")
        return cls(
            tabs=tabs,
            active_tab_id=active if isinstance(active, str) else None,
            cursor_pos=cursor if isinstance(cursor, int) and not isinstance(cursor, bool) else 0,
        )


@dataclass(slots=True)
class RestoredTab:
    id: str
    path: str | None
    title: str
    kind: DocumentKind
    is_unsaved: bool
    content: str
    saved_content: str | None


@dataclass(slots=True)
class RestoredSession:
    """Everything the controller needs to rebuild the workspace."""

    tabs: List[RestoredTab] = field(default_factory=list)
    active_tab_id: str | None = None
    cursor_pos: int = 0
    warnings: List[str] = field(default_factory=list)

    @property
    def active_tab(self) -> RestoredTab | None:
        for tab in self.tabs:
            if tab.id == self.active_tab_id:
                return tab
        return None


class SessionPersistence:
    """Writes the session blob at most once per quiet period.

    ``request_save`` re-arms a single timer on the event loop; the snapshot
    is taken when the timer fires, so a burst of edits costs one write.
    ``flush_now`` is for teardown and writes synchronously.
    """

    def __init__(
        self,
        store: KeyValueStore,
        snapshot_provider: SnapshotProvider | None = None,
        *,
        delay_ms: int = DEFAULT_DEBOUNCE_MS,
        loop: asyncio.AbstractEventLoop | None = None,
        key: str = SESSION_KEY,
    ) -> None:
        self._store = store
        self._snapshot_provider = snapshot_provider
        self._delay = max(0, delay_ms) / 1000.0
        self._loop = loop
        self._key = key
        self._handle: asyncio.TimerHandle | None = None
        self._pending = False
        self._saved_callbacks: list[SavedCallback] = []

    def bind(self, snapshot_provider: SnapshotProvider) -> None:
        self._snapshot_provider = snapshot_provider

    def add_saved_callback(self, callback: SavedCallback) -> None:
        self._saved_callbacks.append(callback)

    @property
    def pending(self) -> bool:
        return self._pending

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------
    def request_save(self) -> None:
        self._pending = True
        self._cancel_timer()
        loop = self._resolve_loop()
        if loop is None:
            # No loop yet (startup, sync tests); flush_now() picks it up
            return
        self._handle = loop.call_later(self._delay, self._on_timer)

    def flush_now(self) -> SessionRecord | None:
        """Cancel any pending timer and write the current snapshot immediately."""

        self._cancel_timer()
        return self._write()

    def cancel(self) -> None:
        self._cancel_timer()
        self._pending = False

    def _on_timer(self) -> None:
        self._handle = None
        self._write()

    def _write(self) -> SessionRecord | None:
        if self._snapshot_provider is None:
            LOGGER.debug("Session save requested before a snapshot provider was bound")
            return None
        record = self._snapshot_provider()
        try:
            self._store.set(self._key, record.to_json())
        except OSError as exc:
            LOGGER.warning("Unable to persist session: %s", exc)
            return None
        self._pending = False
        LOGGER.debug("Session saved (%d tabs)", len(record.tabs))
        for callback in list(self._saved_callbacks):
            callback(record)
        return record

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _resolve_loop(self) -> asyncio.AbstractEventLoop | None:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    def load(self) -> SessionRecord | None:
        """Return the persisted record; absent or corrupt blobs yield ``None``."""

        raw = self._store.get(self._key)
        if not raw:
            return None
        try:
            return SessionRecord.from_json(raw)
        except SessionBlobCorrupt as exc:
            LOGGER.warning("Ignoring corrupt session blob: %s", exc)
            return None

    async def restore(
        self,
        filesystem: FilesystemProvider | None,
        history: FileHistoryIndex | None = None,
        *,
        drop_empty_untitled: bool = False,
    ) -> RestoredSession:
        """Rebuild tab contents from the persisted record.

        Content priority per tab: embedded content, then the file on disk,
        then the empty string. A tab whose file cannot be read keeps whatever
        was embedded, is marked unsaved and produces a warning; a file that
        is gone is also dropped from ``history``.
        """

        record = self.load()
        if record is None:
            return RestoredSession()

        restored = RestoredSession()
        for snapshot in record.tabs:
            tab = await self._restore_tab(snapshot, filesystem, history, restored.warnings)
            if drop_empty_untitled and tab.path is None and not tab.content.strip():
                LOGGER.debug("Dropping empty untitled tab %s on restore", tab.id)
                continue
            restored.tabs.append(tab)

        ids = [tab.id for tab in restored.tabs]
        if record.active_tab_id in ids:
            restored.active_tab_id = record.active_tab_id
        else:
            restored.active_tab_id = ids[0] if ids else None

        active = restored.active_tab
        length = len(active.content) if active is not None else 0
        restored.cursor_pos = max(0, min(record.cursor_pos, length))
        LOGGER.info("Restored %d tab(s) from session", len(restored.tabs))
        return restored

    async def _restore_tab(
        self,
        snapshot: TabSnapshot,
        filesystem: FilesystemProvider | None,
        history: FileHistoryIndex | None,
        warnings: List[str],
    ) -> RestoredTab:
        tab = RestoredTab(
            id=snapshot.id,
            path=snapshot.path,
            title=snapshot.title,
            kind=snapshot.kind,
            is_unsaved=snapshot.is_unsaved,
            content=snapshot.content or "",
            saved_content=None,
        )

        if snapshot.path is None:
            if not snapshot.is_unsaved:
                tab.saved_content = tab.content
            return tab

        if snapshot.content is not None and not snapshot.is_unsaved:
            tab.saved_content = snapshot.content
            return tab

        try:
            if filesystem is None:
                raise WorkspaceError("no filesystem provider")
            disk_text = await filesystem.read_text(snapshot.path)
        except WorkspaceError as exc:
            LOGGER.warning("Could not load %s on restore: %s", snapshot.path, exc)
            if snapshot.content is None:
                # Nothing to show but an empty buffer; keep it dirty so it is not lost silently
                tab.is_unsaved = True
                warnings.append(f"Error: Could not load {display_name(snapshot.path)}")
            if isinstance(exc, FileMissing) and history is not None:
                history.remove(snapshot.path)
            return tab

        tab.saved_content = disk_text
        if snapshot.content is None:
            tab.content = disk_text
            tab.is_unsaved = False
        return tab
