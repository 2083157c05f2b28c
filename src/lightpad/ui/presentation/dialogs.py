"""Qt implementations of the prompt and file-dialog contracts."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from ...services.filesystem import FileFilter
from ..prompts import ConfirmChoice, LinkDetails

LOGGER = logging.getLogger(__name__)

try:  # pragma: no cover - PySide6 optional in CI
    from PySide6.QtCore import Qt
    from PySide6.QtWidgets import (
        QDialog,
        QDialogButtonBox,
        QFileDialog,
        QFormLayout,
        QLineEdit,
        QListWidget,
        QListWidgetItem,
        QMessageBox,
        QVBoxLayout,
    )

    _QT_AVAILABLE = True
except Exception:  # pragma: no cover - runtime stubs keep tests headless
    _QT_AVAILABLE = False
    Qt = None  # type: ignore[assignment,misc]
    QDialog = None  # type: ignore[assignment,misc]
    QDialogButtonBox = None  # type: ignore[assignment,misc]
    QFileDialog = None  # type: ignore[assignment,misc]
    QFormLayout = None  # type: ignore[assignment,misc]
    QLineEdit = None  # type: ignore[assignment,misc]
    QListWidget = None  # type: ignore[assignment,misc]
    QListWidgetItem = None  # type: ignore[assignment,misc]
    QMessageBox = None  # type: ignore[assignment,misc]
    QVBoxLayout = None  # type: ignore[assignment,misc]


def qt_filter_string(filters: Sequence[FileFilter]) -> str:
    """Join filters into the ``;;`` separated string Qt file dialogs expect."""

    return ";;".join(item.as_qt_filter() for item in filters)


class QtPrompt:
    """:class:`~lightpad.ui.prompts.ConfirmationPrompt` backed by modal Qt dialogs."""

    def __init__(self, parent: Any = None) -> None:
        self.parent = parent

    async def ask_confirm(  # pragma: no cover - Qt specific
        self,
        message: str,
        *,
        allow_yes_to_all: bool = False,
        allow_cancel: bool = True,
    ) -> ConfirmChoice:
        buttons = QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No
        if allow_yes_to_all:
            buttons |= QMessageBox.StandardButton.YesToAll
        if allow_cancel:
            buttons |= QMessageBox.StandardButton.Cancel
        box = QMessageBox(QMessageBox.Icon.Question, "LightPad", message, buttons, self.parent)
        box.setDefaultButton(QMessageBox.StandardButton.Yes)
        answer = box.exec()
        mapping = {
            QMessageBox.StandardButton.Yes: ConfirmChoice.YES,
            QMessageBox.StandardButton.No: ConfirmChoice.NO,
            QMessageBox.StandardButton.YesToAll: ConfirmChoice.YES_TO_ALL,
            QMessageBox.StandardButton.Cancel: ConfirmChoice.CANCEL,
        }
        # Escape without a Cancel button lands on No
        fallback = ConfirmChoice.CANCEL if allow_cancel else ConfirmChoice.NO
        return mapping.get(QMessageBox.StandardButton(answer), fallback)

    async def ask_link_details(  # pragma: no cover - Qt specific
        self, default_text: str = "", default_url: str = ""
    ) -> LinkDetails | None:
        dialog = QDialog(self.parent)
        dialog.setWindowTitle("Insert Link")
        form = QFormLayout(dialog)
        text_input = QLineEdit(default_text, dialog)
        url_input = QLineEdit(default_url, dialog)
        form.addRow("Text", text_input)
        form.addRow("URL", url_input)
        box = QDialogButtonBox(QDialogButtonBox.StandardButton.Ok | QDialogButtonBox.StandardButton.Cancel)
        box.accepted.connect(dialog.accept)
        box.rejected.connect(dialog.reject)
        form.addRow(box)
        (url_input if default_text and not default_url else text_input).setFocus()
        if dialog.exec() != QDialog.DialogCode.Accepted:
            return None
        return LinkDetails(text=text_input.text(), url=url_input.text())


class QtFileDialogs:
    """:class:`~lightpad.services.filesystem.FileDialogs` using native Qt dialogs."""

    def __init__(self, parent: Any = None) -> None:
        self.parent = parent

    def open_path(self, filters: Sequence[FileFilter]) -> str | None:  # pragma: no cover - Qt specific
        path, _ = QFileDialog.getOpenFileName(self.parent, "Open File", "", qt_filter_string(filters))
        return path or None

    def save_path(self, filters: Sequence[FileFilter]) -> str | None:  # pragma: no cover - Qt specific
        path, _ = QFileDialog.getSaveFileName(self.parent, "Save File", "", qt_filter_string(filters))
        return path or None


class QuickOpenDialog(QDialog if _QT_AVAILABLE else object):  # type: ignore[misc]
    """Filter-as-you-type list over the file history."""

    def __init__(self, search: Any, parent: Any = None) -> None:  # pragma: no cover - Qt specific
        super().__init__(parent)
        self._search = search
        self.setWindowTitle("Quick Open")
        layout = QVBoxLayout(self)
        self._input = QLineEdit(self)
        self._input.setPlaceholderText("Search recent files")
        self._list = QListWidget(self)
        layout.addWidget(self._input)
        layout.addWidget(self._list)
        self._input.textChanged.connect(self._refresh)
        self._input.returnPressed.connect(self.accept)
        self._list.itemActivated.connect(lambda _item: self.accept())
        self._list.currentRowChanged.connect(self._search.select)
        self._refresh("")

    def keyPressEvent(self, event: Any) -> None:  # pragma: no cover - Qt specific
        if event.key() == Qt.Key.Key_Down:
            self._search.select_next()
            self._list.setCurrentRow(self._search.selected_index)
            return
        if event.key() == Qt.Key.Key_Up:
            self._search.select_previous()
            self._list.setCurrentRow(self._search.selected_index)
            return
        super().keyPressEvent(event)

    def _refresh(self, query: str) -> None:  # pragma: no cover - Qt specific
        self._list.clear()
        for match in self._search.search(query):
            item = QListWidgetItem(f"{match.name}    {match.path}")
            item.setToolTip(match.path)
            self._list.addItem(item)
        self._list.setCurrentRow(self._search.selected_index)


__all__ = ["QtPrompt", "QtFileDialogs", "QuickOpenDialog", "qt_filter_string"]
