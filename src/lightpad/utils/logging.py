"""Logging setup for the LightPad desktop app.

Records go to a rotating ``lightpad.log`` under ``~/.lightpad/logs`` (or
``LIGHTPAD_LOG_DIR``) and to stderr. When the log directory cannot be
created the app keeps running with console logging only.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

__all__ = ["setup_logging", "get_log_path", "LOG_FORMAT"]

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_DEFAULT_LOG_DIR = Path.home() / ".lightpad" / "logs"
_LOG_FILENAME = "lightpad.log"
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "qasync")
# Every tab bar refresh and subscription is a debug line here
_EVENT_LOGGER = "lightpad.ui.events"
_CONFIGURED = False
_LOG_PATH: Path | None = None


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path | None:
    """Install the root handlers once; returns the log file, if one could be opened."""

    global _CONFIGURED, _LOG_PATH
    if _CONFIGURED and not force:
        return _LOG_PATH

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=_DATE_FORMAT)
    handlers: list[logging.Handler] = []

    log_path = _open_log_file(_resolve_log_dir(log_dir))
    if log_path is not None:
        file_handler = logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        handlers.append(file_handler)
    if console or not handlers:
        handlers.append(logging.StreamHandler())

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    _tune_loggers(level)

    _CONFIGURED = True
    _LOG_PATH = log_path
    if log_path is None:
        logging.getLogger(__name__).warning("File logging disabled; using console only")
    return log_path


def get_log_path() -> Path | None:
    """Return the active log file, or ``None`` when logging to the console only."""

    return _LOG_PATH


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    env_override = os.environ.get("LIGHTPAD_LOG_DIR")
    return Path(log_dir or env_override or _DEFAULT_LOG_DIR).expanduser()


def _open_log_file(directory: Path) -> Path | None:
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError:
        return None
    return directory / _LOG_FILENAME


def _tune_loggers(root_level: int) -> None:
    quiet_level = max(root_level, logging.WARNING)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)
    trace_events = os.environ.get("LIGHTPAD_TRACE_EVENTS", "").strip().lower() in {"1", "true", "yes", "on"}
    logging.getLogger(_EVENT_LOGGER).setLevel(root_level if trace_events else max(root_level, logging.INFO))
