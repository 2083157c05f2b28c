from __future__ import annotations

import asyncio
import json
import logging

import pytest

from lightpad.editor.document_model import DocumentKind
from lightpad.errors import SessionBlobCorrupt
from lightpad.services.file_history import FileHistoryIndex
from lightpad.services.session import SessionPersistence, SessionRecord, TabSnapshot
from lightpad.services.storage import HISTORY_KEY, SESSION_KEY, MemoryStore

from tests.helpers import FakeFilesystem


def _stored(*tabs: dict, active: str | None = None, cursor: int = 0, **extra: str) -> MemoryStore:
    payload = {"tabs": list(tabs), "activeTabId": active, "cursorPos": cursor}
    return MemoryStore({SESSION_KEY: json.dumps(payload), **extra})


# ---------------------------------------------------------------------------
# Record serialization
# ---------------------------------------------------------------------------


def test_record_payload_uses_persisted_field_names() -> None:
    record = SessionRecord(
        tabs=[TabSnapshot(id="tab-1", path="/a.todo", title="a.todo", is_unsaved=True, kind=DocumentKind.CHECKLIST, content="- [ ] x")],
        active_tab_id="tab-1",
        cursor_pos=3,
    )

    payload = json.loads(record.to_json())

    assert payload == {
        "tabs": [
            {
                "id": "tab-1",
                "path": "/a.todo",
                "title": "a.todo",
                "isUnsaved": True,
                "documentKind": "checklist",
                "content": "- [ ] x",
            }
        ],
        "activeTabId": "tab-1",
        "cursorPos": 3,
    }
    assert SessionRecord.from_json(record.to_json()) == record


def test_from_json_infers_kind_when_missing() -> None:
    record = SessionRecord.from_json(json.dumps({"tabs": [{"id": "tab-1", "path": "/x/notes.doc"}]}))

    tab = record.tabs[0]
    assert tab.kind is DocumentKind.RICH_DOCUMENT
    assert tab.title == "notes.doc"
    assert tab.content is None
    assert record.active_tab_id is None
    assert record.cursor_pos == 0


def test_from_json_skips_duplicate_ids() -> None:
    record = SessionRecord.from_json(json.dumps({"tabs": [{"id": "tab-1"}, {"id": "tab-1", "path": "/b"}]}))

    assert [tab.path for tab in record.tabs] == [None]


@pytest.mark.parametrize(
    "raw",
    ["not json", json.dumps([]), json.dumps({"tabs": "nope"}), json.dumps({"tabs": [{"path": "/x"}]})],
)
def test_from_json_rejects_malformed_payloads(raw: str) -> None:
    with pytest.raises(SessionBlobCorrupt):
        SessionRecord.from_json(raw)


def test_load_treats_corrupt_blob_as_empty(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="lightpad.services.session")
    persistence = SessionPersistence(MemoryStore({SESSION_KEY: "{broken"}))

    assert persistence.load() is None
    assert "corrupt session blob" in caplog.text


# ---------------------------------------------------------------------------
# Saving
# ---------------------------------------------------------------------------


def test_flush_now_writes_snapshot_and_notifies() -> None:
    store = MemoryStore()
    record = SessionRecord(tabs=[TabSnapshot(id="tab-1", content="hi")], active_tab_id="tab-1")
    persistence = SessionPersistence(store, lambda: record)
    saved: list[SessionRecord] = []
    persistence.add_saved_callback(saved.append)

    persistence.request_save()
    assert persistence.pending is True
    assert store.writes == 0

    assert persistence.flush_now() is record
    assert persistence.pending is False
    assert store.writes == 1
    assert saved == [record]
    assert json.loads(store.get(SESSION_KEY))["activeTabId"] == "tab-1"


def test_flush_without_provider_writes_nothing() -> None:
    store = MemoryStore()

    assert SessionPersistence(store).flush_now() is None
    assert store.writes == 0


@pytest.mark.asyncio
async def test_request_save_coalesces_bursts() -> None:
    store = MemoryStore()
    calls = 0

    def provider() -> SessionRecord:
        nonlocal calls
        calls += 1
        return SessionRecord()

    persistence = SessionPersistence(store, provider, delay_ms=50)
    for _ in range(5):
        persistence.request_save()
        await asyncio.sleep(0.005)

    assert store.writes == 0
    await asyncio.sleep(0.2)

    assert store.writes == 1
    assert calls == 1
    assert persistence.pending is False


@pytest.mark.asyncio
async def test_cancel_drops_pending_save() -> None:
    store = MemoryStore()
    persistence = SessionPersistence(store, SessionRecord, delay_ms=10)

    persistence.request_save()
    persistence.cancel()
    await asyncio.sleep(0.05)

    assert store.writes == 0
    assert persistence.pending is False


# ---------------------------------------------------------------------------
# Restoring
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_restore_empty_store_yields_empty_session() -> None:
    restored = await SessionPersistence(MemoryStore()).restore(FakeFilesystem())

    assert restored.tabs == []
    assert restored.active_tab_id is None
    assert restored.cursor_pos == 0


@pytest.mark.asyncio
async def test_restore_reads_clean_file_tabs_from_disk() -> None:
    store = _stored({"id": "tab-1", "path": "/notes.txt", "title": "notes.txt"}, active="tab-1", cursor=2)
    filesystem = FakeFilesystem({"/notes.txt": "from disk"})

    restored = await SessionPersistence(store).restore(filesystem)

    tab = restored.tabs[0]
    assert tab.content == "from disk"
    assert tab.saved_content == "from disk"
    assert tab.is_unsaved is False
    assert restored.cursor_pos == 2


@pytest.mark.asyncio
async def test_restore_prefers_embedded_unsaved_content() -> None:
    store = _stored(
        {"id": "tab-1", "path": "/notes.txt", "isUnsaved": True, "content": "edited"},
        active="tab-1",
    )
    filesystem = FakeFilesystem({"/notes.txt": "original"})

    restored = await SessionPersistence(store).restore(filesystem)

    tab = restored.tabs[0]
    assert tab.content == "edited"
    assert tab.saved_content == "original"
    assert tab.is_unsaved is True


@pytest.mark.asyncio
async def test_restore_missing_file_marks_tab_unsaved_and_prunes_history() -> None:
    store = _stored(
        {"id": "tab-1", "path": "/gone.txt", "title": "gone.txt"},
        active="tab-1",
        cursor=40,
        **{HISTORY_KEY: json.dumps(["/gone.txt", "/kept.txt"])},
    )
    history = FileHistoryIndex(store)

    restored = await SessionPersistence(store).restore(FakeFilesystem(), history)

    tab = restored.tabs[0]
    assert tab.content == ""
    assert tab.is_unsaved is True
    assert restored.warnings == ["Error: Could not load gone.txt"]
    assert restored.cursor_pos == 0
    assert history.entries() == ("/kept.txt",)


@pytest.mark.asyncio
async def test_restore_unreadable_file_keeps_history() -> None:
    store = _stored({"id": "tab-1", "path": "/locked.txt"}, **{HISTORY_KEY: json.dumps(["/locked.txt"])})
    filesystem = FakeFilesystem({"/locked.txt": "secret"})
    filesystem.unreadable.add("/locked.txt")
    history = FileHistoryIndex(store)

    restored = await SessionPersistence(store).restore(filesystem, history)

    assert restored.tabs[0].is_unsaved is True
    assert history.entries() == ("/locked.txt",)


@pytest.mark.asyncio
async def test_restore_falls_back_to_first_tab_and_clamps_cursor() -> None:
    store = _stored(
        {"id": "tab-3", "content": "abc"},
        {"id": "tab-4", "content": "longer text"},
        active="tab-9",
        cursor=50,
    )

    restored = await SessionPersistence(store).restore(None)

    assert restored.active_tab_id == "tab-3"
    assert restored.cursor_pos == 3
    assert [tab.saved_content for tab in restored.tabs] == ["abc", "longer text"]


@pytest.mark.asyncio
async def test_restore_can_drop_empty_untitled_tabs() -> None:
    store = _stored({"id": "tab-1", "content": "  "}, {"id": "tab-2", "content": "keep"}, active="tab-1")

    restored = await SessionPersistence(store).restore(None, drop_empty_untitled=True)

    assert [tab.id for tab in restored.tabs] == ["tab-2"]
    assert restored.active_tab_id == "tab-2"
