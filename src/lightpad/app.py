"""Application bootstrap helpers for the LightPad desktop app."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import os
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, cast, get_args, get_origin, get_type_hints

from .editor.engine import HtmlDocumentEngine, TextBufferEngine
from .editor.workspace import TabRegistry
from .services.file_history import FileHistoryIndex
from .services.filesystem import FilesystemProvider, LocalFilesystem
from .services.session import SessionPersistence
from .services.settings import Settings, SettingsStore
from .services.storage import JsonFileStore, KeyValueStore
from .services.window_state import WindowStateStore
from .ui.events import EventBus
from .ui.prompts import ConfirmationPrompt
from .ui.tab_controller import TabLifecycleController
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_LOGGER = logging.getLogger(__name__)
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}


@dataclass(slots=True)
class QtRuntime:
    """Container returned by :func:`create_qapp`."""

    app: Any
    loop: asyncio.AbstractEventLoop


@dataclass(slots=True)
class Workspace:
    """Wired engine objects shared by the window and the shutdown path."""

    settings: Settings
    store: KeyValueStore
    bus: EventBus
    text_engine: TextBufferEngine
    rich_engine: HtmlDocumentEngine
    history: FileHistoryIndex
    session: SessionPersistence
    window_state: WindowStateStore
    controller: TabLifecycleController


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure structured logging for the application."""

    level = logging.DEBUG if debug else logging.INFO
    logging_utils.setup_logging(level, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))
    _install_qt_message_handler()


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store if store is not None else SettingsStore(path)
    try:
        settings = active_store.load(overrides=overrides)
    except OSError as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        settings = Settings()
    return settings


def build_workspace(
    settings: Settings,
    *,
    prompt: ConfirmationPrompt,
    store: KeyValueStore | None = None,
    filesystem: FilesystemProvider | None = None,
    loop: asyncio.AbstractEventLoop | None = None,
) -> Workspace:
    """Assemble registry, engines, persistence and the controller around one store."""

    active_store = store if store is not None else JsonFileStore(settings.resolved_storage_path())
    bus = EventBus()
    text_engine = TextBufferEngine()
    rich_engine = HtmlDocumentEngine()
    history = FileHistoryIndex(active_store, limit=settings.history_limit)
    session = SessionPersistence(active_store, delay_ms=settings.session_debounce_ms, loop=loop)
    controller = TabLifecycleController(
        prompt=prompt,
        filesystem=filesystem,
        registry=TabRegistry(),
        engine=text_engine,
        rich_engine=rich_engine,
        history=history,
        session=session,
        bus=bus,
        settings=settings,
    )
    return Workspace(
        settings=settings,
        store=active_store,
        bus=bus,
        text_engine=text_engine,
        rich_engine=rich_engine,
        history=history,
        session=session,
        window_state=WindowStateStore(active_store),
        controller=controller,
    )


def create_qapp(settings: Settings) -> QtRuntime:
    """Create a qasync-powered QApplication instance."""

    try:  # Local import to avoid mandatory PySide6 dependency at import time.
        from PySide6.QtWidgets import QApplication
    except ImportError as exc:  # pragma: no cover - depends on desktop stack
        raise RuntimeError("PySide6 must be installed to launch the LightPad UI.") from exc

    try:
        from qasync import QEventLoop
    except ImportError as exc:  # pragma: no cover - depends on env setup
        raise RuntimeError("qasync is required to run the async Qt event loop.") from exc

    os.environ.setdefault("QT_ENABLE_HIGHDPI_SCALING", "1")
    app = cast(Any, QApplication.instance() or QApplication(sys.argv))
    app.setApplicationName("LightPad")
    app.setApplicationDisplayName("LightPad")

    loop = QEventLoop(app)
    asyncio.set_event_loop(loop)
    try:
        app.aboutToQuit.connect(loop.stop)  # type: ignore[attr-defined]
    except AttributeError:  # pragma: no cover - in case of mock QApplication
        pass
    _LOGGER.debug("Qt runtime ready (debounce=%sms)", settings.session_debounce_ms)
    return QtRuntime(app=app, loop=loop)


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point invoked by the `lightpad` console script."""

    args, passthrough = _parse_cli_args(argv)
    _rewrite_sys_argv(passthrough)

    debug = _env_flag("LIGHTPAD_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("LIGHTPAD_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc

    overrides_mapping: Dict[str, Any] | None = cli_overrides or None
    settings = load_settings(resolved_path, store=settings_store, overrides=overrides_mapping)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return

    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    runtime = create_qapp(settings)
    _run_desktop(settings, runtime, open_paths=args.paths)


def _run_desktop(settings: Settings, runtime: QtRuntime, *, open_paths: Sequence[str]) -> None:  # pragma: no cover - Qt specific
    from .ui.presentation import LightPadWindow, QtFileDialogs, QtPrompt

    prompt = QtPrompt()
    filesystem = LocalFilesystem()
    workspace = build_workspace(settings, prompt=prompt, filesystem=filesystem, loop=runtime.loop)
    window = LightPadWindow(
        workspace.controller,
        workspace.bus,
        text_engine=workspace.text_engine,
        rich_engine=workspace.rich_engine,
        window_state=workspace.window_state,
        loop=runtime.loop,
    )
    prompt.parent = window
    filesystem.set_dialogs(QtFileDialogs(window))
    runtime.app.aboutToQuit.connect(workspace.controller.shutdown)

    async def _startup() -> None:
        await workspace.controller.restore_session()
        if open_paths:
            await workspace.controller.open_paths([str(Path(path).resolve()) for path in open_paths])

    window.show()
    loop = runtime.loop
    loop.create_task(_startup())
    try:
        loop.run_forever()
    except KeyboardInterrupt:
        _LOGGER.info("Shutdown requested by user.")
    finally:
        workspace.controller.shutdown()
        _drain_event_loop(loop)
        loop.close()


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _drain_event_loop(loop: asyncio.AbstractEventLoop) -> None:
    """Cancel outstanding tasks and shutdown async machinery before closing."""

    if loop.is_closed():
        return

    async def _cleanup() -> None:
        current_task = None
        with contextlib.suppress(RuntimeError):
            current_task = asyncio.current_task(loop=loop)

        tasks = [task for task in asyncio.all_tasks(loop) if not task.done() and task is not current_task]
        if tasks:
            _LOGGER.debug("Canceling %s pending asyncio task(s) before shutdown.", len(tasks))
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        with contextlib.suppress(RuntimeError, NotImplementedError):
            await loop.shutdown_default_executor()

    try:
        loop.run_until_complete(_cleanup())
    except RuntimeError as exc:  # pragma: no cover - loop already stopped by Qt
        _LOGGER.debug("Unable to drain asyncio loop: %s", exc)


def _install_qt_message_handler() -> None:
    """Redirect Qt warnings to the Python logging stack when available."""

    try:
        from PySide6.QtCore import QtMsgType, qInstallMessageHandler
    except Exception:  # pragma: no cover - PySide6 optional during tests
        return

    level_map = {
        QtMsgType.QtDebugMsg: logging.DEBUG,
        QtMsgType.QtInfoMsg: logging.INFO,
        QtMsgType.QtWarningMsg: logging.WARNING,
        QtMsgType.QtCriticalMsg: logging.ERROR,
        QtMsgType.QtFatalMsg: logging.CRITICAL,
    }

    def _handler(mode, context, message):  # type: ignore[no-untyped-def]
        del context
        logging.getLogger("PySide6").log(level_map.get(mode, logging.INFO), message)

    qInstallMessageHandler(_handler)


def _parse_cli_args(argv: Sequence[str] | None) -> tuple[argparse.Namespace, list[str]]:
    parser = argparse.ArgumentParser(
        prog="lightpad",
        add_help=True,
        description="Launch the LightPad editor or inspect its configuration.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload and exit.",
    )
    parser.add_argument(
        "--settings",
        dest="settings_path",
        metavar="PATH",
        help="Override the default ~/.lightpad/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings before launch (repeatable).",
    )
    parser.add_argument("paths", nargs="*", help="Files to open after the session is restored.")
    return parser.parse_known_args(argv)


def _rewrite_sys_argv(passthrough: Sequence[str]) -> None:
    program = sys.argv[0] if sys.argv else "lightpad"
    sys.argv = [program, *passthrough]


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        annotation = type_hints.get(key, fields[key].type)
        overrides[key] = _coerce_value(annotation, raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    normalized = raw_value.strip()

    if normalized.lower() in {"none", "null"} and _is_optional(annotation):
        return None
    if target is str or target is Any:
        return normalized
    if target is bool:
        return _parse_bool(normalized)
    if target is int:
        return int(normalized, 10)
    if target is float:
        return float(normalized)
    return normalized


def _is_optional(annotation: Any) -> bool:
    return type(None) in get_args(annotation)


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if not args:
        return origin
    return args[0]


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    metadata = {
        "path": str(store.path),
        "storage_path": str(settings.resolved_storage_path()),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    json.dump({"settings": asdict(settings), "meta": metadata}, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("LIGHTPAD_"))


if __name__ == "__main__":  # pragma: no cover - manual launch
    main()
