"""Shared test helpers and stub collaborators.

Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

from typing import Any, Sequence

from lightpad.errors import FileMissing, FileUnreadable, WriteFailed
from lightpad.services.filesystem import FileFilter
from lightpad.services.storage import MemoryStore
from lightpad.ui.events import Event, EventBus
from lightpad.ui.prompts import ConfirmChoice, LinkDetails


class FakeFilesystem:
    """In-memory :class:`FilesystemProvider` with scripted dialog answers.

    Example:
        fs = FakeFilesystem({"/notes.txt": "hello"})
        fs.save_results.append("/new.txt")
    """

    def __init__(self, files: dict[str, str] | None = None) -> None:
        self.files: dict[str, str] = dict(files or {})
        self.unreadable: set[str] = set()
        self.fail_writes = False
        self.fail_exists = False
        self.open_results: list[str | None] = []
        self.save_results: list[str | None] = []
        self.writes: list[tuple[str, str]] = []
        self.deleted: list[str] = []
        self.save_filters: list[list[FileFilter]] = []

    async def exists(self, path: str) -> bool:
        if self.fail_exists:
            raise FileUnreadable(path)
        return path in self.files

    async def read_text(self, path: str) -> str:
        if path in self.unreadable:
            raise FileUnreadable(path)
        if path not in self.files:
            raise FileMissing(path)
        return self.files[path]

    async def write_text(self, path: str, content: str) -> None:
        if self.fail_writes:
            raise WriteFailed(path)
        self.files[path] = content
        self.writes.append((path, content))

    async def delete(self, path: str) -> None:
        self.files.pop(path, None)
        self.deleted.append(path)

    async def open_dialog(self, filters: Sequence[FileFilter]) -> str | None:
        return self.open_results.pop(0) if self.open_results else None

    async def save_dialog(self, filters: Sequence[FileFilter]) -> str | None:
        self.save_filters.append(list(filters))
        return self.save_results.pop(0) if self.save_results else None


class ScriptedPrompt:
    """Answers confirmations from a queue and records every question asked."""

    def __init__(self, *answers: ConfirmChoice) -> None:
        self.answers: list[ConfirmChoice] = list(answers)
        self.calls: list[tuple[str, bool, bool]] = []
        self.link_result: LinkDetails | None = None
        self.link_calls: list[tuple[str, str]] = []

    async def ask_confirm(
        self,
        message: str,
        *,
        allow_yes_to_all: bool = False,
        allow_cancel: bool = True,
    ) -> ConfirmChoice:
        self.calls.append((message, allow_yes_to_all, allow_cancel))
        if not self.answers:
            raise AssertionError(f"Unexpected confirmation: {message}")
        return self.answers.pop(0)

    async def ask_link_details(self, default_text: str = "", default_url: str = "") -> LinkDetails | None:
        self.link_calls.append((default_text, default_url))
        return self.link_result


class EventRecorder:
    """Collects published events of the given types, in order."""

    def __init__(self, bus: EventBus, *event_types: type[Event]) -> None:
        self.events: list[Any] = []
        for event_type in event_types:
            bus.subscribe(event_type, self.events.append)

    def of_type(self, event_type: type[Event]) -> list[Any]:
        return [event for event in self.events if isinstance(event, event_type)]

    def clear(self) -> None:
        self.events.clear()


class ReadOnlyStore(MemoryStore):
    """Key/value store whose writes always fail, like a full or read-only disk."""

    def set(self, key: str, value: str) -> None:
        raise OSError("disk full")
