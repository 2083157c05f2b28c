"""Tests for the local filesystem provider and the file IO helpers beneath it."""

from __future__ import annotations

import codecs
from pathlib import Path
from typing import Sequence

import pytest

from lightpad.errors import FileMissing, FileUnreadable, FilesystemUnavailable
from lightpad.services.filesystem import ALL_FILES, CHECKLIST_FILES, FileFilter, LocalFilesystem
from lightpad.utils import file_io


class _Dialogs:
    def __init__(self, answer: str | None) -> None:
        self.answer = answer
        self.seen: list[list[FileFilter]] = []

    def open_path(self, filters: Sequence[FileFilter]) -> str | None:
        self.seen.append(list(filters))
        return self.answer

    def save_path(self, filters: Sequence[FileFilter]) -> str | None:
        self.seen.append(list(filters))
        return self.answer


def test_filter_strings() -> None:
    assert ALL_FILES.as_qt_filter() == "All Files (*)"
    assert CHECKLIST_FILES.as_qt_filter() == "Todo Checklist (*.todo)"


# ---------------------------------------------------------------------------
# file_io helpers
# ---------------------------------------------------------------------------


def test_write_text_is_atomic_and_defaults_to_utf8_lf(tmp_path: Path) -> None:
    target = tmp_path / "sub" / "notes.txt"

    file_io.write_text(target, "a\r\nb\rcé")

    assert target.read_bytes() == "a\nb\ncé".encode("utf-8")
    assert [entry.name for entry in target.parent.iterdir()] == ["notes.txt"]


def test_crlf_file_keeps_line_endings(tmp_path: Path) -> None:
    target = tmp_path / "dos.txt"
    target.write_bytes(b"one\r\ntwo\r\n")

    text, text_format = file_io.read_text(target)
    file_io.write_text(target, text + "three\n", text_format)

    assert text == "one\ntwo\n"
    assert text_format.newline == "\r\n"
    assert target.read_bytes() == b"one\r\ntwo\r\nthree\r\n"


def test_bom_is_stripped_and_written_back(tmp_path: Path) -> None:
    target = tmp_path / "bom.txt"
    target.write_bytes(codecs.BOM_UTF8 + "héllo\r\n".encode("utf-8"))

    text, text_format = file_io.read_text(target)
    file_io.write_text(target, text, text_format)

    assert text == "héllo\n"
    assert target.read_bytes() == codecs.BOM_UTF8 + "héllo\r\n".encode("utf-8")


@pytest.mark.parametrize(
    ("bom", "encoding"),
    [(codecs.BOM_UTF32_LE, "utf-32-le"), (codecs.BOM_UTF16_LE, "utf-16-le"), (codecs.BOM_UTF16_BE, "utf-16-be")],
)
def test_wide_encodings_detected_from_bom(tmp_path: Path, bom: bytes, encoding: str) -> None:
    target = tmp_path / "wide.txt"
    target.write_bytes(bom + "wide".encode(encoding))

    text, text_format = file_io.read_text(target)

    assert text == "wide"
    assert text_format == file_io.TextFormat(encoding=encoding, newline="\n", bom=bom)


def test_non_utf8_file_keeps_its_encoding(tmp_path: Path) -> None:
    target = tmp_path / "legacy.txt"
    target.write_bytes("café".encode("latin-1"))

    text, text_format = file_io.read_text(target)
    file_io.write_text(target, text + " crème", text_format)

    assert text == "café"
    assert target.read_bytes() == "café crème".encode("latin-1")


def test_unencodable_text_falls_back_to_utf8(tmp_path: Path) -> None:
    target = tmp_path / "legacy.txt"
    legacy = file_io.TextFormat(encoding="latin-1")

    file_io.write_text(target, "price: €5", legacy)

    assert target.read_bytes() == "price: €5".encode("utf-8")


def test_delete_file_tolerates_missing(tmp_path: Path) -> None:
    target = tmp_path / "gone.txt"
    target.write_text("x", encoding="utf-8")

    file_io.delete_file(target)
    file_io.delete_file(target)

    assert not target.exists()
    assert file_io.is_readable_file(target) is False


# ---------------------------------------------------------------------------
# LocalFilesystem
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_local_filesystem_roundtrip(tmp_path: Path) -> None:
    filesystem = LocalFilesystem()
    path = str(tmp_path / "notes.todo")

    await filesystem.write_text(path, "- [ ] ship")

    assert await filesystem.exists(path) is True
    assert await filesystem.read_text(path) == "- [ ] ship"

    await filesystem.delete(path)
    assert await filesystem.exists(path) is False


@pytest.mark.asyncio
async def test_missing_file_raises_file_missing(tmp_path: Path) -> None:
    with pytest.raises(FileMissing) as excinfo:
        await LocalFilesystem().read_text(str(tmp_path / "nope.txt"))

    assert excinfo.value.path.endswith("nope.txt")


@pytest.mark.asyncio
async def test_directory_is_unreadable(tmp_path: Path) -> None:
    assert await LocalFilesystem().exists(str(tmp_path)) is False
    with pytest.raises(FileUnreadable):
        await LocalFilesystem().read_text(str(tmp_path))


@pytest.mark.asyncio
async def test_dialogs_are_required() -> None:
    filesystem = LocalFilesystem()

    with pytest.raises(FilesystemUnavailable):
        await filesystem.open_dialog([ALL_FILES])

    dialogs = _Dialogs("/picked.todo")
    filesystem.set_dialogs(dialogs)
    assert await filesystem.save_dialog([CHECKLIST_FILES]) == "/picked.todo"
    assert dialogs.seen == [[CHECKLIST_FILES]]


@pytest.mark.asyncio
async def test_saving_a_read_file_keeps_its_format(tmp_path: Path) -> None:
    filesystem = LocalFilesystem()
    existing = tmp_path / "dos.txt"
    existing.write_bytes("naïve\r\n".encode("latin-1"))
    copy = tmp_path / "copy.txt"

    text = await filesystem.read_text(str(existing))
    await filesystem.write_text(str(existing), text + "edit\n")
    await filesystem.write_text(str(copy), text)

    assert existing.read_bytes() == "naïve\r\nedit\r\n".encode("latin-1")
    assert copy.read_bytes() == "naïve\n".encode("utf-8")
