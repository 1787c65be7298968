from __future__ import annotations

from typing import Iterable

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QLabel,
    QListWidget,
    QListWidgetItem,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from ..models import Entry, entry_preview, relative_time


class HistoryPanel(QWidget):
    entry_selected = Signal(str)
    new_entry_requested = Signal()
    delete_requested = Signal(str)
    export_requested = Signal()

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._entries: list[Entry] = []
        self._active_id: str | None = None

        header = QLabel("MY ENTRIES", self)
        header.setStyleSheet("font-weight: 600; font-size: 12px; letter-spacing: 1px;")

        self._list = QListWidget(self)
        self._list.setWordWrap(True)
        self._list.itemSelectionChanged.connect(self._on_selection_changed)

        self._new_button = QPushButton("New Entry", self)
        self._new_button.clicked.connect(self.new_entry_requested.emit)

        self._delete_button = QPushButton("Delete Entry", self)
        self._delete_button.clicked.connect(self._on_delete_clicked)
        self._delete_button.setEnabled(False)

        self._export_button = QPushButton("Export Active Entry", self)
        self._export_button.clicked.connect(self.export_requested.emit)

        layout = QVBoxLayout()
        layout.addWidget(header)
        layout.addWidget(self._new_button)
        layout.addWidget(self._delete_button)
        layout.addWidget(self._export_button)
        layout.addWidget(self._list, stretch=1)
        layout.setContentsMargins(4, 4, 4, 4)
        layout.setSpacing(8)
        self.setLayout(layout)

    def set_entries(self, entries: Iterable[Entry], active_id: str | None) -> None:
        self._entries = list(entries)
        self._active_id = active_id
        # Rebuilding must not re-trigger entry switching
        self._list.blockSignals(True)
        self._list.clear()
        for entry in self._entries:
            item = QListWidgetItem(self._format_entry(entry))
            item.setData(Qt.UserRole, entry.id)
            self._list.addItem(item)
            if entry.id == active_id:
                self._list.setCurrentItem(item)
        self._list.blockSignals(False)
        self._update_button_states()

    @property
    def selected_entry_id(self) -> str | None:
        item = self._list.currentItem()
        if not item:
            return None
        return item.data(Qt.UserRole)

    def _format_entry(self, entry: Entry) -> str:
        marker = "● " if entry.id == self._active_id else ""
        mood = f"  · mood {entry.mood_score}/10" if entry.mood_score is not None else ""
        return (
            f"{marker}{entry.title}\n"
            f"{entry_preview(entry)}\n"
            f"{relative_time(entry.updated_at)} · {len(entry.messages)} messages{mood}"
        )

    def _on_selection_changed(self) -> None:
        entry_id = self.selected_entry_id
        self._update_button_states()
        if entry_id and entry_id != self._active_id:
            self.entry_selected.emit(entry_id)

    def _on_delete_clicked(self) -> None:
        entry_id = self.selected_entry_id
        if entry_id:
            self.delete_requested.emit(entry_id)

    def _update_button_states(self) -> None:
        self._delete_button.setEnabled(self.selected_entry_id is not None)
