from __future__ import annotations

import markdown
from PySide6.QtCore import Signal
from PySide6.QtWidgets import (
    QHBoxLayout,
    QLabel,
    QPushButton,
    QTabWidget,
    QVBoxLayout,
    QWidget,
)

from ..constants import CRISIS_NOTICE
from ..support_flows import CBTFlow, GroundingDeck


class SupportPanel(QWidget):
    """CBT walkthrough and grounding exercises; sends prompts into the chat."""

    send_to_chat = Signal(str)

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._flow = CBTFlow()
        self._deck = GroundingDeck()

        self._tabs = QTabWidget(self)
        self._tabs.addTab(self._build_cbt_tab(), "CBT")
        self._tabs.addTab(self._build_grounding_tab(), "Grounding")

        notice = QLabel(CRISIS_NOTICE, self)
        notice.setWordWrap(True)
        notice.setStyleSheet("color: #b45309; font-size: 11px;")

        layout = QVBoxLayout()
        layout.addWidget(self._tabs)
        layout.addWidget(notice)
        layout.setContentsMargins(0, 0, 0, 0)
        self.setLayout(layout)
        self._refresh_cbt()

    def _build_cbt_tab(self) -> QWidget:
        tab = QWidget(self)
        self._step_title = QLabel("", tab)
        self._step_title.setStyleSheet("font-weight: 600;")
        self._step_description = QLabel("", tab)
        self._step_question = QLabel("", tab)
        self._step_question.setWordWrap(True)
        self._progress = QLabel("", tab)

        self._chat_button = QPushButton("Chat", tab)
        self._chat_button.clicked.connect(lambda: self.send_to_chat.emit(self._flow.chat_prompt()))
        self._back_button = QPushButton("Back", tab)
        self._back_button.clicked.connect(self._on_back)
        self._next_button = QPushButton("Next", tab)
        self._next_button.clicked.connect(self._on_next)

        buttons = QHBoxLayout()
        buttons.addWidget(self._chat_button)
        buttons.addStretch()
        buttons.addWidget(self._back_button)
        buttons.addWidget(self._next_button)

        layout = QVBoxLayout()
        layout.addWidget(self._step_description)
        layout.addWidget(self._step_title)
        layout.addWidget(self._step_question)
        layout.addWidget(self._progress)
        layout.addLayout(buttons)
        tab.setLayout(layout)
        return tab

    def _build_grounding_tab(self) -> QWidget:
        tab = QWidget(self)
        self._exercise_label = QLabel("", tab)
        self._exercise_label.setWordWrap(True)
        self._exercise_label.setText(markdown.markdown(self._deck.current))

        another = QPushButton("Try another", tab)
        another.clicked.connect(
            lambda: self._exercise_label.setText(markdown.markdown(self._deck.next()))
        )

        layout = QVBoxLayout()
        layout.addWidget(self._exercise_label)
        layout.addWidget(another)
        tab.setLayout(layout)
        return tab

    def _on_next(self) -> None:
        if self._flow.is_last:
            self._flow.restart()
        else:
            self._flow.next()
        self._refresh_cbt()

    def _on_back(self) -> None:
        self._flow.back()
        self._refresh_cbt()

    def _refresh_cbt(self) -> None:
        step = self._flow.current
        self._step_title.setText(step.title)
        self._step_description.setText(step.description)
        self._step_question.setText(step.question)
        self._progress.setText(
            " ".join("●" if i == self._flow.index else "○" for i in range(len(self._flow.steps)))
        )
        self._back_button.setVisible(not self._flow.is_first)
        self._next_button.setText("Restart" if self._flow.is_last else "Next")
