from __future__ import annotations

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QPushButton,
    QSlider,
    QVBoxLayout,
    QWidget,
)

from ..controller import EntryStats
from ..mood import DEFAULT_MOOD_SCORE, mood_emoji


class MoodPanel(QGroupBox):
    mood_saved = Signal(int)

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__("Mood Tracker", parent)

        self._score_label = QLabel("", self)
        self._score_label.setAlignment(Qt.AlignRight | Qt.AlignVCenter)

        prompt = QLabel("How are you feeling right now?", self)

        # The slider is what keeps scores inside 1-10
        self._slider = QSlider(Qt.Horizontal, self)
        self._slider.setRange(1, 10)
        self._slider.setValue(DEFAULT_MOOD_SCORE)
        self._slider.setTickPosition(QSlider.TicksBelow)
        self._slider.valueChanged.connect(self._update_score_label)

        scale = QHBoxLayout()
        scale.addWidget(QLabel("Low", self))
        scale.addStretch()
        scale.addWidget(QLabel("Okay", self))
        scale.addStretch()
        scale.addWidget(QLabel("High", self))

        self._save_button = QPushButton("Save Mood", self)
        self._save_button.clicked.connect(lambda: self.mood_saved.emit(self._slider.value()))

        self._total_label = QLabel("", self)
        self._average_label = QLabel("", self)
        self._history_label = QLabel("", self)
        self._history_label.setWordWrap(True)
        self._history_label.setStyleSheet("color: #666666;")

        layout = QVBoxLayout()
        layout.addWidget(self._score_label)
        layout.addWidget(prompt)
        layout.addWidget(self._slider)
        layout.addLayout(scale)
        layout.addWidget(self._save_button)
        layout.addWidget(self._total_label)
        layout.addWidget(self._average_label)
        layout.addWidget(self._history_label)
        self.setLayout(layout)
        self._update_score_label(self._slider.value())

    def set_score(self, score: int) -> None:
        self._slider.blockSignals(True)
        self._slider.setValue(score)
        self._slider.blockSignals(False)
        self._update_score_label(score)

    def set_stats(self, stats: EntryStats) -> None:
        self._total_label.setText(f"Total entries: {stats.total}")
        average = "-" if stats.average_mood is None else f"{stats.average_mood}/10"
        self._average_label.setText(f"Average mood: {average}")

    def set_history(self, scores: list[int]) -> None:
        if not scores:
            self._history_label.clear()
            return
        recent = " → ".join(str(score) for score in scores[-7:])
        self._history_label.setText(f"This session: {recent}")

    def _update_score_label(self, score: int) -> None:
        self._score_label.setText(f"{mood_emoji(score)} {score}/10")
