"""Qt presentation layer.

Widgets here subscribe to workspace events and forward user gestures to the
:class:`~lightpad.ui.tab_controller.TabLifecycleController`. Every module
imports cleanly without PySide6 so the headless parts stay testable.
"""

from __future__ import annotations

from .dialogs import QtFileDialogs, QtPrompt, QuickOpenDialog, qt_filter_string
from .main_window import LightPadWindow
from .status_updaters import StatusBarProtocol, StatusBarUpdater
from .tab_bar import TabStrip, tab_label

__all__: list[str] = [
    "StatusBarProtocol",
    "StatusBarUpdater",
    "QtPrompt",
    "QtFileDialogs",
    "QuickOpenDialog",
    "qt_filter_string",
    "LightPadWindow",
    "TabStrip",
    "tab_label",
]
