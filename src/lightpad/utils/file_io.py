"""Text file IO for the local filesystem provider.

Editors work on ``\\n``-only text. :func:`read_text` reports the on-disk
encoding, byte-order mark and line ending alongside the decoded text so
:func:`write_text` can put a saved file back in the same shape.
"""

from __future__ import annotations

import codecs
import locale
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

__all__ = ["TextFormat", "DEFAULT_FORMAT", "read_text", "write_text", "delete_file", "is_readable_file"]

# UTF-32 first: its little-endian BOM starts with the UTF-16 one
_BOMS: tuple[tuple[bytes, str], ...] = (
    (codecs.BOM_UTF32_LE, "utf-32-le"),
    (codecs.BOM_UTF32_BE, "utf-32-be"),
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
)


@dataclass(slots=True, frozen=True)
class TextFormat:
    """How a text file is laid out on disk."""

    encoding: str = "utf-8"
    newline: str = "\n"
    bom: bytes = b""


DEFAULT_FORMAT = TextFormat()


def read_text(path: Path | str) -> tuple[str, TextFormat]:
    """Decode ``path`` and normalise its line endings to ``\\n``."""

    raw = Path(path).read_bytes()
    bom, encoding = _detect_encoding(raw)
    text = raw[len(bom):].decode(encoding)
    return _normalize_newlines(text), TextFormat(encoding=encoding, newline=_detect_newline(text), bom=bom)


def write_text(path: Path | str, content: str, text_format: TextFormat = DEFAULT_FORMAT) -> Path:
    """Atomically replace ``path`` with ``content`` laid out as ``text_format``.

    Text the original encoding cannot represent is written as UTF-8 instead.
    """

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    body = _encode(_normalize_newlines(content).replace("\n", text_format.newline), text_format)

    descriptor, tmp_name = tempfile.mkstemp(
        dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(descriptor, "wb") as handle:
            handle.write(body)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, target)
    finally:
        if os.path.exists(tmp_name):  # pragma: no cover - cleanup path
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
    return target


def delete_file(path: Path | str) -> None:
    """Remove ``path`` from disk; a file that is already gone is not an error."""

    Path(path).unlink(missing_ok=True)


def is_readable_file(path: Path | str) -> bool:
    target = Path(path)
    return target.is_file() and os.access(target, os.R_OK)


def _detect_encoding(raw: bytes) -> tuple[bytes, str]:
    for bom, encoding in _BOMS:
        if raw.startswith(bom):
            return bom, encoding

    preferred = locale.getpreferredencoding(False) or "utf-8"
    for candidate in dict.fromkeys(("utf-8", preferred, "latin-1")):
        try:
            raw.decode(candidate)
        except (UnicodeDecodeError, LookupError):
            continue
        return b"", codecs.lookup(candidate).name
    return b"", "utf-8"


def _detect_newline(text: str) -> str:
    index = text.find("\r")
    if index == -1:
        return "\n"
    return "\r\n" if text.startswith("\r\n", index) else "\r"


def _normalize_newlines(text: str) -> str:
    if "\r" not in text:
        return text
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _encode(text: str, text_format: TextFormat) -> bytes:
    try:
        return text_format.bom + text.encode(text_format.encoding)
    except UnicodeEncodeError:
        return text.encode("utf-8")
