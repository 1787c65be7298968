from __future__ import annotations

import logging

from PySide6.QtCore import QThread, Qt
from PySide6.QtWidgets import (
    QLabel,
    QMainWindow,
    QMessageBox,
    QScrollArea,
    QSplitter,
    QVBoxLayout,
    QWidget,
)

from ..config import AppConfig
from ..constants import APP_NAME, PRIVACY_MESSAGE
from ..context import DEFAULT_CONTEXT_LENGTH
from ..controller import (
    ConfigurationError,
    ConversationBusyError,
    ConversationController,
    ModelReply,
)
from ..llm_client import GeminiClient, ModelFailure
from ..storage import DEFAULT_MAX_ENTRIES, EntryStore, JsonFileStorage
from .conversation_widget import ConversationWidget
from .history_panel import HistoryPanel
from .mood_panel import MoodPanel
from .support_panel import SupportPanel
from .workers import ReplyWorker

logger = logging.getLogger(__name__)


def build_controller(config: AppConfig) -> ConversationController:
    settings = config.settings
    store = EntryStore(
        JsonFileStorage(config.paths.storage_file),
        max_entries=settings.get_int("history.max_entries", DEFAULT_MAX_ENTRIES),
    )
    client = GeminiClient(config.api_key, settings) if config.api_key else None
    if client is None:
        logger.warning("No Gemini API key configured; sending is disabled")
    return ConversationController(
        store,
        client,
        context_length=settings.get_int("history.context_length", DEFAULT_CONTEXT_LENGTH),
    )


class MainWindow(QMainWindow):
    def __init__(self, config: AppConfig) -> None:
        super().__init__()
        self._config = config
        self._controller = build_controller(config)
        self._thread: QThread | None = None
        self._worker: ReplyWorker | None = None

        self.setWindowTitle(f"{APP_NAME} - Mental Wellness")
        self.resize(1280, 800)

        self._history_panel = HistoryPanel(self)
        self._conversation = ConversationWidget(self)
        self._mood_panel = MoodPanel(self)
        self._support_panel = SupportPanel(self)

        privacy = QLabel(PRIVACY_MESSAGE, self)
        privacy.setWordWrap(True)
        privacy.setStyleSheet("font-size: 11px; color: #0f766e;")

        tools = QWidget(self)
        tools_layout = QVBoxLayout()
        if not config.is_configured:
            missing = QLabel("⚠️ API Key Missing", self)
            missing.setStyleSheet("color: #b91c1c; font-weight: 600;")
            tools_layout.addWidget(missing)
        tools_layout.addWidget(self._mood_panel)
        tools_layout.addWidget(self._support_panel)
        tools_layout.addWidget(privacy)
        tools_layout.addStretch()
        tools.setLayout(tools_layout)
        tools_scroll = QScrollArea(self)
        tools_scroll.setWidgetResizable(True)
        tools_scroll.setWidget(tools)

        splitter = QSplitter(Qt.Horizontal, self)
        splitter.addWidget(self._history_panel)
        splitter.addWidget(self._conversation)
        splitter.addWidget(tools_scroll)
        splitter.setStretchFactor(1, 1)
        splitter.setSizes([288, 672, 320])
        self.setCentralWidget(splitter)

        self._history_panel.entry_selected.connect(self._on_entry_selected)
        self._history_panel.new_entry_requested.connect(self._on_new_entry)
        self._history_panel.delete_requested.connect(self._on_delete_entry)
        self._history_panel.export_requested.connect(self._on_export)
        self._conversation.message_submitted.connect(self._on_message_submitted)
        self._mood_panel.mood_saved.connect(self._on_mood_saved)
        self._support_panel.send_to_chat.connect(self._on_message_submitted)

        self._conversation.set_configured(config.is_configured)
        self._controller.start()
        self._refresh_all()

    # Slots --------------------------------------------------------------
    def _on_message_submitted(self, text: str) -> None:
        try:
            pending = self._controller.begin_send(text)
        except (ConfigurationError, ConversationBusyError, ValueError) as exc:
            self._conversation.set_status_text(str(exc))
            return

        self._conversation.show_messages(self._controller.messages)
        self._conversation.set_busy(True, f"{APP_NAME} is thinking...")

        # Model call off the GUI thread; state changes happen back in _on_reply
        thread = QThread(self)
        worker = ReplyWorker(self._controller, pending)
        worker.moveToThread(thread)
        thread.started.connect(worker.run)
        worker.finished.connect(self._on_reply)
        worker.failed.connect(self._on_worker_failed)
        worker.finished.connect(thread.quit)
        worker.failed.connect(thread.quit)
        thread.finished.connect(worker.deleteLater)
        thread.finished.connect(thread.deleteLater)
        thread.finished.connect(self._clear_worker)
        self._thread = thread
        self._worker = worker
        thread.start()

    def _on_reply(self, reply: ModelReply) -> None:
        message = self._controller.complete_send(reply)
        self._conversation.append_message(message)
        self._conversation.set_busy(False)
        self._refresh_history()

    def _on_worker_failed(self, error: str) -> None:
        self._on_reply(ModelReply(failure=ModelFailure.UNKNOWN, detail=error))

    def _clear_worker(self) -> None:
        self._thread = None
        self._worker = None

    def _on_mood_saved(self, score: int) -> None:
        change = self._controller.record_mood(score)
        if change.changed:
            arrow = "📈" if change.direction == "up" else "📉"
            self._conversation.set_status_text(f"{arrow} Mood updated to {score}/10")
        self._refresh_mood()
        self._refresh_history()

    def _on_new_entry(self) -> None:
        if self._is_busy():
            return
        self._controller.new_entry()
        self._refresh_all()

    def _on_entry_selected(self, entry_id: str) -> None:
        if self._is_busy():
            self._refresh_history()
            return
        self._controller.switch_entry(entry_id)
        self._refresh_all()

    def _on_delete_entry(self, entry_id: str) -> None:
        if self._is_busy():
            return
        answer = QMessageBox.question(self, APP_NAME, "Are you sure you want to delete this entry?")
        if answer != QMessageBox.Yes:
            return
        self._controller.delete_entry(entry_id)
        self._refresh_all()

    def _on_export(self) -> None:
        path = self._controller.export_current(self._config.paths.export_dir)
        if path is None:
            self._conversation.set_status_text("Could not export this entry.")
        else:
            self._conversation.set_status_text(f"Exported to {path}")

    # Helpers ------------------------------------------------------------
    def _is_busy(self) -> bool:
        return self._thread is not None

    def _refresh_all(self) -> None:
        self._conversation.show_messages(self._controller.messages)
        self._refresh_mood()
        self._refresh_history()

    def _refresh_mood(self) -> None:
        tracker = self._controller.mood_tracker
        self._mood_panel.set_score(tracker.current)
        self._mood_panel.set_history([entry.score for entry in tracker.history])
        self._mood_panel.set_stats(self._controller.stats())

    def _refresh_history(self) -> None:
        entries = self._controller.list_entries()
        active_id = self._controller.current_entry_id
        self._history_panel.set_entries(entries, active_id)
        for entry in entries:
            if entry.id == active_id:
                self._conversation.set_title(entry.title)
                break
        self._mood_panel.set_stats(self._controller.stats())
