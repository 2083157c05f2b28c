"""Shared pytest fixtures."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from lightpad.editor.engine import HtmlDocumentEngine, TextBufferEngine
from lightpad.services.file_history import FileHistoryIndex
from lightpad.services.session import SessionPersistence
from lightpad.services.settings import Settings
from lightpad.services.storage import MemoryStore
from lightpad.ui.events import EventBus
from lightpad.ui.tab_controller import TabLifecycleController

from tests.helpers import FakeFilesystem, ScriptedPrompt


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def filesystem() -> FakeFilesystem:
    return FakeFilesystem()


@pytest.fixture
def prompt() -> ScriptedPrompt:
    return ScriptedPrompt()


@pytest.fixture
def make_controller(
    store: MemoryStore, filesystem: FakeFilesystem, prompt: ScriptedPrompt
) -> Callable[..., TabLifecycleController]:
    def _build(**overrides: Any) -> TabLifecycleController:
        settings = overrides.pop("settings", None) or Settings()
        kwargs: dict[str, Any] = {
            "prompt": prompt,
            "filesystem": filesystem,
            "engine": TextBufferEngine(),
            "rich_engine": HtmlDocumentEngine(),
            "history": FileHistoryIndex(store, limit=settings.history_limit),
            "session": SessionPersistence(store, delay_ms=settings.session_debounce_ms),
            "bus": EventBus(),
            "settings": settings,
        }
        kwargs.update(overrides)
        return TabLifecycleController(**kwargs)

    return _build


@pytest.fixture
def controller(make_controller: Callable[..., TabLifecycleController]) -> TabLifecycleController:
    return make_controller()
