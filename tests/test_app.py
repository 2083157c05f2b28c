"""Tests for the application bootstrap helpers."""

from __future__ import annotations

import io
import json
import logging
import sys
from pathlib import Path
from typing import Iterator

import pytest

from lightpad import app
from lightpad.services.settings import Settings, SettingsStore
from lightpad.services.storage import SESSION_KEY, MemoryStore
from lightpad.utils import logging as logging_utils

from tests.helpers import ScriptedPrompt


@pytest.fixture
def restore_root_logging(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    root = logging.getLogger()
    level = root.level
    monkeypatch.setattr(logging_utils, "_CONFIGURED", False)
    monkeypatch.setattr(logging_utils, "_LOG_PATH", None)
    yield
    # pytest re-installs its own capture handlers per phase; drop only ours
    for handler in list(root.handlers):
        if not type(handler).__module__.startswith("_pytest"):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    logging.captureWarnings(False)
    for name in ("asyncio", "qasync", "lightpad.ui.events"):
        logging.getLogger(name).setLevel(logging.NOTSET)


def test_coerce_cli_overrides_uses_field_types() -> None:
    overrides = app._coerce_cli_overrides(
        [
            "history_limit=5",
            "drop_empty_untitled_on_restore=yes",
            "storage_path=none",
            "drag_threshold= 2.5 ",
        ]
    )

    assert overrides == {
        "history_limit": 5,
        "drop_empty_untitled_on_restore": True,
        "storage_path": None,
        "drag_threshold": 2.5,
    }


@pytest.mark.parametrize("entry", ["history_limit", "=3", "theme=dark", "debug_logging=maybe", "history_limit=ten"])
def test_coerce_cli_overrides_rejects_bad_entries(entry: str) -> None:
    with pytest.raises(ValueError):
        app._coerce_cli_overrides([entry])


def test_dump_settings_reports_effective_values(tmp_path: Path) -> None:
    stream = io.StringIO()
    store = SettingsStore(tmp_path / "settings.json")

    app._dump_settings(Settings(history_limit=9), store, overrides={"history_limit": 9}, stream=stream)

    payload = json.loads(stream.getvalue())
    assert payload["settings"]["history_limit"] == 9
    assert payload["meta"]["path"] == str(tmp_path / "settings.json")
    assert payload["meta"]["cli_overrides"] == ["history_limit"]


def test_main_dump_settings(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
    restore_root_logging: None,
) -> None:
    monkeypatch.setenv("LIGHTPAD_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setattr(sys, "argv", ["lightpad"])
    settings_path = tmp_path / "settings.json"

    app.main(["--dump-settings", "--settings", str(settings_path), "--set", "history_limit=7"])

    payload = json.loads(capsys.readouterr().out)
    assert payload["settings"]["history_limit"] == 7
    assert payload["meta"]["path"] == str(settings_path)


def test_main_rejects_invalid_override(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, restore_root_logging: None
) -> None:
    monkeypatch.setenv("LIGHTPAD_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setattr(sys, "argv", ["lightpad"])

    with pytest.raises(SystemExit) as excinfo:
        app.main(["--dump-settings", "--set", "nope"])

    assert excinfo.value.code == 2


def test_load_settings_uses_given_store(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")
    store.save(Settings(history_limit=3))

    assert app.load_settings(store=store).history_limit == 3


def test_build_workspace_shares_one_store() -> None:
    store = MemoryStore()
    workspace = app.build_workspace(Settings(history_limit=2), prompt=ScriptedPrompt(), store=store)

    assert workspace.controller.history is workspace.history
    assert workspace.controller.session is workspace.session
    assert workspace.controller.engine is workspace.text_engine

    workspace.controller.new_tab(content="hello")
    workspace.controller.shutdown()
    workspace.window_state.record(800, 600, 1, 2, maximized=False)

    assert json.loads(store.get(SESSION_KEY))["tabs"][0]["content"] == "hello"
    assert workspace.window_state.load().width == 800


def test_setup_logging_writes_rotating_file(tmp_path: Path, restore_root_logging: None) -> None:
    log_path = logging_utils.setup_logging(logging.INFO, log_dir=tmp_path / "logs", console=False, force=True)

    logging.getLogger("lightpad.tests").info("Logging smoke test")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert log_path == tmp_path / "logs" / "lightpad.log"
    assert logging_utils.get_log_path() == log_path
    assert "Logging smoke test" in log_path.read_text(encoding="utf-8")


def test_setup_logging_falls_back_to_console(tmp_path: Path, restore_root_logging: None) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")

    log_path = logging_utils.setup_logging(logging.INFO, log_dir=blocker / "logs", console=False, force=True)

    assert log_path is None
    assert [type(handler) for handler in logging.getLogger().handlers] == [logging.StreamHandler]


def test_event_bus_logging_is_quiet_unless_traced(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, restore_root_logging: None
) -> None:
    logging_utils.setup_logging(logging.DEBUG, log_dir=tmp_path, console=False, force=True)
    assert logging.getLogger("lightpad.ui.events").level == logging.INFO

    monkeypatch.setenv("LIGHTPAD_TRACE_EVENTS", "1")
    logging_utils.setup_logging(logging.DEBUG, log_dir=tmp_path, console=False, force=True)
    assert logging.getLogger("lightpad.ui.events").level == logging.DEBUG
