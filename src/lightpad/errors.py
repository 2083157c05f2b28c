"""Error taxonomy shared by the workspace engine.

Collaborator failures (filesystem, dialogs) are raised as these types by the
service layer and converted into status messages by
:class:`~lightpad.ui.tab_controller.TabLifecycleController`; none of them is
meant to reach the UI unhandled.
"""

from __future__ import annotations

from pathlib import Path

__all__ = [
    "WorkspaceError",
    "FileMissing",
    "FileUnreadable",
    "SaveDialogCancelled",
    "WriteFailed",
    "SessionBlobCorrupt",
    "HistoryBlobCorrupt",
    "FilesystemUnavailable",
]


class WorkspaceError(Exception):
    """Base class for every error raised by the workspace engine."""


class _PathError(WorkspaceError):
    """Error tied to a single filesystem path."""

    def __init__(self, path: Path | str, message: str | None = None) -> None:
        self.path = str(path)
        super().__init__(message or f"{self.path}")


class FileMissing(_PathError):
    """The backing file of a tab no longer exists."""


class FileUnreadable(_PathError):
    """The backing file exists but could not be read or decoded."""


class WriteFailed(_PathError):
    """Writing a document to disk failed."""


class SaveDialogCancelled(WorkspaceError):
    """The user dismissed the save dialog without choosing a path."""


class SessionBlobCorrupt(WorkspaceError):
    """The persisted session payload is not valid session JSON."""


class HistoryBlobCorrupt(WorkspaceError):
    """The persisted file history payload is not a JSON list of paths."""


class FilesystemUnavailable(WorkspaceError):
    """No filesystem provider is available (non-desktop context)."""
