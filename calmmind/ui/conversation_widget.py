from __future__ import annotations

import html
from typing import Iterable

import markdown
from PySide6.QtCore import Signal
from PySide6.QtGui import QTextCursor
from PySide6.QtWidgets import (
    QHBoxLayout,
    QLabel,
    QPlainTextEdit,
    QPushButton,
    QSizePolicy,
    QTextEdit,
    QVBoxLayout,
    QWidget,
)

from ..constants import APP_NAME
from ..models import Message

MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "nl2br"]


def render_message_html(message: Message, assistant_label: str = APP_NAME) -> str:
    if message.sender == "user":
        role_label = "👤 You"
        color = "#2563eb"
        # User text is shown as typed, not as markdown
        content = html.escape(message.text).replace("\n", "<br>")
    else:
        role_label = f"🌿 {assistant_label}"
        color = "#16a34a"
        content = markdown.markdown(message.text, extensions=MARKDOWN_EXTENSIONS)
        # QTextEdit adds its own paragraph spacing around inserted HTML
        if content.startswith("<p>") and content.endswith("</p>") and content.count("<p>") == 1:
            content = content[3:-4]

    stamp = message.timestamp.astimezone().strftime("%H:%M")
    role_html = (
        f'<p style="margin-bottom:0px;"><b style="color:{color}">{role_label}</b>'
        f' <span style="color:#888888; font-size:small;">{stamp}</span></p>'
    )
    return f'<div style="margin-bottom: 10px;">{role_html}{content}</div>'


class ConversationWidget(QWidget):
    message_submitted = Signal(str)

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._is_busy = False
        self._is_configured = True

        self._title_label = QLabel("", self)
        self._title_label.setStyleSheet("font-weight: 600; font-size: 15px;")
        self._title_label.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Preferred)

        self._transcript = QTextEdit(self)
        self._transcript.setReadOnly(True)
        self._transcript.setMinimumHeight(300)

        header = QHBoxLayout()
        header.addWidget(self._title_label)
        header.addStretch()

        self._status_label = QLabel("", self)
        self._status_label.setWordWrap(True)
        self._status_label.setStyleSheet("color: #666666;")

        self._input = QPlainTextEdit(self)
        self._input.setPlaceholderText("Share what's on your mind...")
        self._input.setFixedHeight(100)

        self._send_button = QPushButton("Send", self)
        self._send_button.clicked.connect(self._handle_submit)

        input_row = QHBoxLayout()
        input_row.addWidget(self._input, stretch=1)
        input_row.addWidget(self._send_button)
        input_row.setSpacing(8)

        layout = QVBoxLayout()
        layout.addLayout(header)
        layout.addWidget(self._transcript, stretch=1)
        layout.addWidget(self._status_label)
        layout.addLayout(input_row)
        layout.setContentsMargins(8, 8, 8, 8)
        layout.setSpacing(10)
        self.setLayout(layout)
        self._refresh_controls()

    # Public API ---------------------------------------------------------
    def set_title(self, title: str) -> None:
        self._title_label.setText(title)

    def show_messages(self, messages: Iterable[Message]) -> None:
        self._transcript.clear()
        for message in messages:
            self._transcript.insertHtml(render_message_html(message))
            self._transcript.insertPlainText("\n")
        self._transcript.moveCursor(QTextCursor.End)

    def append_message(self, message: Message) -> None:
        self._transcript.moveCursor(QTextCursor.End)
        self._transcript.insertHtml(render_message_html(message))
        self._transcript.insertPlainText("\n")
        self._transcript.moveCursor(QTextCursor.End)

    def set_busy(self, is_busy: bool, status_text: str | None = None) -> None:
        self._is_busy = is_busy
        self._refresh_controls()
        if status_text:
            self._status_label.setText(status_text)
        elif not is_busy:
            self._status_label.clear()

    def set_configured(self, is_configured: bool) -> None:
        self._is_configured = is_configured
        self._refresh_controls()

    def set_status_text(self, text: str) -> None:
        self._status_label.setText(text)

    # Internal helpers ---------------------------------------------------
    def _handle_submit(self) -> None:
        if self._is_busy:
            return
        text = self._input.toPlainText().strip()
        if not text:
            return
        self._input.clear()
        self.message_submitted.emit(text)

    def _refresh_controls(self) -> None:
        self._send_button.setDisabled(self._is_busy)
        self._input.setReadOnly(self._is_busy)
        if not self._is_configured:
            self._send_button.setToolTip("API key missing")
        else:
            self._send_button.setToolTip("")
