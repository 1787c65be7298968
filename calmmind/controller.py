from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .constants import (
    CURRENT_ENTRY_SENTINEL,
    INITIAL_MESSAGE,
    INVALID_KEY_MESSAGE,
    NETWORK_ERROR_MESSAGE,
    NOT_CONFIGURED_MESSAGE,
    QUOTA_EXCEEDED_MESSAGE,
    TIMEOUT_MESSAGE,
    UNKNOWN_ERROR_TEMPLATE,
)
from .context import DEFAULT_CONTEXT_LENGTH, recent_window
from .llm_client import ModelClient, ModelClientError, ModelFailure, classify_error
from .models import Entry, Message
from .mood import MoodChange, MoodState, MoodTracker, average_mood, total_entry_count
from .storage import EntryStore

logger = logging.getLogger(__name__)

_FAILURE_MESSAGES = {
    ModelFailure.QUOTA: QUOTA_EXCEEDED_MESSAGE,
    ModelFailure.CREDENTIAL: INVALID_KEY_MESSAGE,
    ModelFailure.NETWORK: NETWORK_ERROR_MESSAGE,
    ModelFailure.TIMEOUT: TIMEOUT_MESSAGE,
}


class ConfigurationError(RuntimeError):
    """Raised by ``send_message`` while no API key is configured."""


class ConversationBusyError(RuntimeError):
    """Raised when a send is attempted while another is still awaiting the model."""


class ControllerState(str, Enum):
    IDLE = "idle"
    AWAITING_MODEL_RESPONSE = "awaiting_model_response"


@dataclass(frozen=True)
class EntryStats:
    total: int
    average_mood: int | None


@dataclass(frozen=True)
class PendingSend:
    text: str
    history: list[Message]
    mood_changed: bool
    mood: MoodState


@dataclass(frozen=True)
class ModelReply:
    text: str | None = None
    failure: ModelFailure | None = None
    detail: str = ""


def failure_message(kind: ModelFailure, detail: str) -> str:
    if kind in _FAILURE_MESSAGES:
        return _FAILURE_MESSAGES[kind]
    return UNKNOWN_ERROR_TEMPLATE.format(detail=detail or "Unknown error occurred")


def greeting_message() -> Message:
    return Message.bot(INITIAL_MESSAGE)


class ConversationController:
    """
    Orchestrates the active conversation: sending, mood changes and entry switching.

    Not reentrant. Only one ``send_message`` may be in flight; the UI disables
    sending while the controller is awaiting the model and a second call is
    rejected with ``ConversationBusyError`` rather than queued. The model call
    has no timeout at this layer.
    """

    def __init__(
        self,
        store: EntryStore,
        client: ModelClient | None,
        mood: MoodTracker | None = None,
        context_length: int = DEFAULT_CONTEXT_LENGTH,
    ) -> None:
        self._store = store
        self._client = client
        self._mood = mood or MoodTracker()
        self._context_length = context_length
        self._state = ControllerState.IDLE
        self._current_entry_id: str | None = None
        self._messages: list[Message] = [greeting_message()]
        self._mood_changed = False
        self._last_failure: ModelFailure | None = None

    # Public state ------------------------------------------------------
    @property
    def is_configured(self) -> bool:
        return self._client is not None

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def current_entry_id(self) -> str | None:
        return self._current_entry_id

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    @property
    def mood_state(self) -> MoodState:
        return self._mood.state

    @property
    def mood_tracker(self) -> MoodTracker:
        return self._mood

    @property
    def mood_changed(self) -> bool:
        return self._mood_changed

    @property
    def last_failure(self) -> ModelFailure | None:
        return self._last_failure

    def list_entries(self) -> list[Entry]:
        return self._store.list_all()

    def stats(self) -> EntryStats:
        entries = self._store.list_all()
        return EntryStats(total=total_entry_count(entries), average_mood=average_mood(entries))

    # Actions -----------------------------------------------------------
    def start(self) -> Entry:
        saved_id = self._store.get_current_id()
        if saved_id:
            entry = self._store.get(saved_id)
            if entry is not None:
                self._load(entry)
                return entry
            logger.info("Current entry %s is gone; starting a new one", saved_id)
        return self.new_entry()

    def send_message(self, text: str) -> Message:
        pending = self.begin_send(text)
        return self.complete_send(self.request_reply(pending))

    def begin_send(self, text: str) -> PendingSend:
        """Append the user message and move to ``AWAITING_MODEL_RESPONSE``."""

        if self._client is None:
            raise ConfigurationError(NOT_CONFIGURED_MESSAGE)
        if self._state is ControllerState.AWAITING_MODEL_RESPONSE:
            raise ConversationBusyError("A message is already being answered.")
        if not text.strip():
            raise ValueError("Message text is empty.")

        history = recent_window(self._messages, self._context_length)
        self._messages.append(Message.user(text))
        self._state = ControllerState.AWAITING_MODEL_RESPONSE
        return PendingSend(text, history, self._mood_changed, self._mood.state)

    def request_reply(self, pending: PendingSend) -> ModelReply:
        """
        Call the model for a pending send.

        Touches no controller state, so the UI runs it on a worker thread.
        Every failure comes back as a ``ModelReply`` carrying its kind.
        """

        if self._client is None:
            return ModelReply(failure=ModelFailure.CREDENTIAL, detail=NOT_CONFIGURED_MESSAGE)
        try:
            text = self._client.send(pending.text, pending.history, pending.mood_changed, pending.mood)
        except ModelClientError as exc:
            return ModelReply(failure=exc.kind, detail=exc.detail)
        except Exception as exc:
            logger.exception("Model client raised an unexpected error")
            return ModelReply(failure=classify_error(exc), detail=str(exc))
        return ModelReply(text=text)

    def complete_send(self, reply: ModelReply) -> Message:
        """Append the bot answer (or the failure notice), persist and return to ``IDLE``."""

        if self._state is not ControllerState.AWAITING_MODEL_RESPONSE:
            raise RuntimeError("No message is awaiting a reply.")
        if reply.failure is None:
            self._last_failure = None
            self._mood_changed = False
            bot_message = Message.bot(reply.text or "")
        else:
            logger.warning("Model request failed (%s)", reply.failure.value)
            self._last_failure = reply.failure
            bot_message = Message.bot(failure_message(reply.failure, reply.detail))
        self._state = ControllerState.IDLE
        self._messages.append(bot_message)
        self._persist_messages()
        return bot_message

    def record_mood(self, score: int) -> MoodChange:
        change = self._mood.record_mood(score)
        self._mood_changed = change.changed
        if self._current_entry_id:
            self._store.set_mood(self._current_entry_id, score)
        if change.changed:
            # Next request rebuilds its instruction from the new mood
            self._invalidate_client_session()
        return change

    def new_entry(self) -> Entry:
        self._save_current_if_started()
        entry = self._store.create_entry(self._mood.current)
        entry.messages = [greeting_message()]
        self._store.save(entry)
        self._activate(entry.id)
        self._messages = list(entry.messages)
        self._mood_changed = False
        self._invalidate_client_session()
        return entry

    def switch_entry(self, entry_id: str) -> Entry | None:
        if entry_id == CURRENT_ENTRY_SENTINEL:
            return None
        self._save_current_if_started()
        entry = self._store.get(entry_id)
        if entry is None:
            logger.warning("Cannot switch to missing entry %s", entry_id)
            return None
        self._load(entry)
        self._invalidate_client_session()
        return entry

    def delete_entry(self, entry_id: str) -> None:
        self._store.delete(entry_id)
        if entry_id == self._current_entry_id:
            self.new_entry()

    def export_current(self, directory: Path) -> Path | None:
        if not self._current_entry_id:
            return None
        self._save_current_if_started()
        return self._store.export_to_file(self._current_entry_id, directory)

    # Internal helpers --------------------------------------------------
    def _load(self, entry: Entry) -> None:
        self._activate(entry.id)
        self._messages = list(entry.messages) if entry.messages else [greeting_message()]
        if entry.mood_score is not None:
            self._mood.seed(entry.mood_score)
        self._mood_changed = False

    def _activate(self, entry_id: str) -> None:
        self._current_entry_id = entry_id
        self._store.set_current_id(entry_id)

    def _save_current_if_started(self) -> None:
        if self._current_entry_id and len(self._messages) > 1:
            self._store.update_messages(self._current_entry_id, self._messages, self._mood.current)

    def _persist_messages(self) -> None:
        entry = None
        if self._current_entry_id:
            entry = self._store.update_messages(
                self._current_entry_id, self._messages, self._mood.current
            )
        if entry is None:
            entry = self._store.create_entry(self._mood.current)
            entry.replace_messages(self._messages)
            self._store.save(entry)
            self._activate(entry.id)

    def _invalidate_client_session(self) -> None:
        if self._client is not None:
            self._client.invalidate_session()
