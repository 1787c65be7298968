from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Protocol, Sequence

from google.api_core import exceptions as google_exceptions

from .constants import EMPTY_RESPONSE_FALLBACK, SYSTEM_INSTRUCTION
from .context import DEFAULT_CONTEXT_LENGTH, build_prompt
from .models import Message
from .mood import MoodState
from .settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash"


class ModelFailure(str, Enum):
    QUOTA = "quota"
    CREDENTIAL = "credential"
    NETWORK = "network"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class ModelClientError(RuntimeError):
    """Raised when the hosted model call fails; ``kind`` says how."""

    def __init__(self, kind: ModelFailure, detail: str) -> None:
        super().__init__(detail)
        self.kind = kind
        self.detail = detail


class ModelClient(Protocol):
    def send(
        self,
        message: str,
        history: Sequence[Message],
        mood_changed: bool,
        mood: MoodState,
    ) -> str: ...

    def invalidate_session(self) -> None: ...


_QUOTA_MARKERS = ("quota", "429", "resource_exhausted", "rate limit")
_CREDENTIAL_MARKERS = ("api key", "api_key_invalid", "permission denied", "unauthenticated")
_NETWORK_MARKERS = ("network", "fetch", "connection", "unreachable", "dns")
_TIMEOUT_MARKERS = ("timeout", "timed out", "deadline")


def classify_error(exc: BaseException) -> ModelFailure:
    if isinstance(exc, (google_exceptions.ResourceExhausted, google_exceptions.TooManyRequests)):
        return ModelFailure.QUOTA
    if isinstance(exc, (google_exceptions.Unauthenticated, google_exceptions.PermissionDenied)):
        return ModelFailure.CREDENTIAL
    if isinstance(exc, (google_exceptions.DeadlineExceeded, TimeoutError)):
        return ModelFailure.TIMEOUT
    if isinstance(exc, (google_exceptions.ServiceUnavailable, ConnectionError)):
        return ModelFailure.NETWORK

    # InvalidArgument covers bad keys too, so fall back to the message text
    text = str(exc).lower()
    if any(marker in text for marker in _QUOTA_MARKERS):
        return ModelFailure.QUOTA
    if any(marker in text for marker in _CREDENTIAL_MARKERS):
        return ModelFailure.CREDENTIAL
    if any(marker in text for marker in _NETWORK_MARKERS):
        return ModelFailure.NETWORK
    if any(marker in text for marker in _TIMEOUT_MARKERS):
        return ModelFailure.TIMEOUT
    return ModelFailure.UNKNOWN


class GeminiClient:
    """Google Gemini through ``google-generativeai``, with a lazily cached model handle."""

    def __init__(
        self,
        api_key: str,
        settings: Settings | None = None,
        base_instruction: str = SYSTEM_INSTRUCTION,
    ) -> None:
        settings = settings or Settings()
        self._api_key = api_key
        self._base_instruction = base_instruction
        self._model_name = settings.get_str("llm.model", DEFAULT_MODEL)
        self._context_length = settings.get_int("history.context_length", DEFAULT_CONTEXT_LENGTH)
        self._generation_config = {
            "temperature": settings.get_float("llm.temperature", 0.7),
            "top_p": settings.get_float("llm.top_p", 0.9),
            "top_k": settings.get_int("llm.top_k", 40),
            "max_output_tokens": settings.get_int("llm.max_output_tokens", 2048),
        }
        self._model: object | None = None
        self._lock = threading.Lock()

    @property
    def model_name(self) -> str:
        return self._model_name

    def send(
        self,
        message: str,
        history: Sequence[Message],
        mood_changed: bool,
        mood: MoodState,
    ) -> str:
        prompt = build_prompt(
            self._base_instruction,
            message,
            history,
            mood,
            mood_changed=mood_changed,
            context_length=self._context_length,
        )
        model = self._ensure_model()
        try:
            response = model.generate_content(prompt, generation_config=self._generation_config)
            text = response.text
        except Exception as exc:
            kind = classify_error(exc)
            logger.error("Gemini request failed (%s): %s", kind.value, exc)
            raise ModelClientError(kind, str(exc)) from exc
        return text or EMPTY_RESPONSE_FALLBACK

    def invalidate_session(self) -> None:
        with self._lock:
            if self._model is not None:
                logger.debug("Discarding cached Gemini model handle")
            self._model = None

    def _ensure_model(self):
        with self._lock:
            if self._model is not None:
                return self._model
            try:
                import google.generativeai as genai

                genai.configure(api_key=self._api_key)
                self._model = genai.GenerativeModel(self._model_name)
            except Exception as exc:
                kind = classify_error(exc)
                raise ModelClientError(kind, f"Failed to initialize Gemini: {exc}") from exc
            logger.info("Initialized Gemini model: model=%s", self._model_name)
            return self._model
