"""Filesystem provider contract and the local-disk implementation.

Every operation is a coroutine: file IO and dialogs are the suspension points
of the workspace engine. Failures are raised as :mod:`lightpad.errors` types so
callers never have to know about ``OSError`` subclasses.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Protocol, Sequence

from ..errors import FileMissing, FileUnreadable, FilesystemUnavailable, WriteFailed
from ..utils import file_io

__all__ = [
    "FileFilter",
    "FilesystemProvider",
    "FileDialogs",
    "LocalFilesystem",
    "ALL_FILES",
    "CHECKLIST_FILES",
    "RICH_DOCUMENT_FILES",
]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class FileFilter:
    """Named group of extensions offered by open/save dialogs."""

    name: str
    extensions: tuple[str, ...]

    def as_qt_filter(self) -> str:
        patterns = " ".join(f"*.{ext}" if ext != "*" else "*" for ext in self.extensions)
        return f"{self.name} ({patterns})"


ALL_FILES = FileFilter("All Files", ("*",))
CHECKLIST_FILES = FileFilter("Todo Checklist", ("todo",))
RICH_DOCUMENT_FILES = FileFilter("LightPad Document", ("doc",))


class FilesystemProvider(Protocol):
    async def exists(self, path: str) -> bool:  # pragma: no cover - protocol
        ...

    async def read_text(self, path: str) -> str:  # pragma: no cover - protocol
        ...

    async def write_text(self, path: str, content: str) -> None:  # pragma: no cover - protocol
        ...

    async def delete(self, path: str) -> None:  # pragma: no cover - protocol
        ...

    async def open_dialog(self, filters: Sequence[FileFilter]) -> str | None:  # pragma: no cover - protocol
        ...

    async def save_dialog(self, filters: Sequence[FileFilter]) -> str | None:  # pragma: no cover - protocol
        ...


class FileDialogs(Protocol):
    """Blocking OS dialogs supplied by the presentation layer."""

    def open_path(self, filters: Sequence[FileFilter]) -> str | None:  # pragma: no cover - protocol
        ...

    def save_path(self, filters: Sequence[FileFilter]) -> str | None:  # pragma: no cover - protocol
        ...


class LocalFilesystem:
    """:class:`FilesystemProvider` for the local disk.

    Blocking IO runs in the default executor so the Qt/asyncio loop stays
    responsive; dialogs run on the loop thread because Qt widgets must.
    Saving to a path that was read earlier keeps that file's encoding and
    line endings. New paths are written as UTF-8 with ``\\n`` line endings.
    """

    def __init__(self, dialogs: FileDialogs | None = None) -> None:
        self._dialogs = dialogs
        self._formats: Dict[str, file_io.TextFormat] = {}

    def set_dialogs(self, dialogs: FileDialogs | None) -> None:
        self._dialogs = dialogs

    async def exists(self, path: str) -> bool:
        try:
            return await asyncio.to_thread(file_io.is_readable_file, path)
        except OSError as exc:
            raise FileUnreadable(path, f"Cannot stat {path}: {exc}") from exc

    async def read_text(self, path: str) -> str:
        try:
            text, text_format = await asyncio.to_thread(file_io.read_text, path)
        except FileNotFoundError as exc:
            raise FileMissing(path) from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise FileUnreadable(path, f"Cannot read {path}: {exc}") from exc
        self._formats[path] = text_format
        return text

    async def write_text(self, path: str, content: str) -> None:
        try:
            text_format = self._formats.get(path, file_io.DEFAULT_FORMAT)
            await asyncio.to_thread(file_io.write_text, path, content, text_format)
        except OSError as exc:
            raise WriteFailed(path, f"Cannot write {path}: {exc}") from exc
        LOGGER.debug("Wrote %d characters to %s", len(content), path)

    async def delete(self, path: str) -> None:
        try:
            await asyncio.to_thread(file_io.delete_file, path)
        except OSError as exc:
            raise WriteFailed(path, f"Cannot delete {path}: {exc}") from exc
        self._formats.pop(path, None)

    async def open_dialog(self, filters: Sequence[FileFilter]) -> str | None:
        return self._require_dialogs().open_path(filters)

    async def save_dialog(self, filters: Sequence[FileFilter]) -> str | None:
        return self._require_dialogs().save_path(filters)

    def _require_dialogs(self) -> FileDialogs:
        if self._dialogs is None:
            raise FilesystemUnavailable("File dialogs are not available")
        return self._dialogs
