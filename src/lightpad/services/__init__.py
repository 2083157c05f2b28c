"""Service layer helpers (settings, storage, filesystem, history, session)."""

from .file_history import FileHistoryIndex
from .quick_open import QuickOpenMatch, QuickOpenSearch
from .session import SessionPersistence, SessionRecord, TabSnapshot

__all__ = [
    "FileHistoryIndex",
    "QuickOpenMatch",
    "QuickOpenSearch",
    "SessionPersistence",
    "SessionRecord",
    "TabSnapshot",
]
