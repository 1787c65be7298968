from __future__ import annotations

import json
import logging
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

logger = logging.getLogger(__name__)

SETTINGS_FILENAME = "calmmind_settings.json"

DEFAULT_SETTINGS: dict[str, Any] = {
    "app": {
        "log_level": "INFO",
    },
    "llm": {
        "api_key": None,
        "model": "gemini-2.0-flash",
        "temperature": 0.7,
        "top_p": 0.9,
        "top_k": 40,
        "max_output_tokens": 2048,
    },
    "history": {
        "max_entries": 50,
        "context_length": 5,
    },
}


@dataclass(frozen=True)
class Settings:
    """User overrides from ``calmmind_settings.json`` layered over the defaults."""

    values: Mapping[str, Any] = field(default_factory=lambda: deepcopy(DEFAULT_SETTINGS))

    @classmethod
    def load(cls, root: Path) -> "Settings":
        path = root / SETTINGS_FILENAME
        if not path.exists():
            return cls()

        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
            return cls()

        if not isinstance(payload, Mapping):
            logger.warning("Ignoring settings file %s: top level is not an object", path)
            return cls()
        return cls(_deep_merge(DEFAULT_SETTINGS, payload))

    def get(self, dotted_key: str, default: Any = None) -> Any:
        current: Any = self.values
        for part in dotted_key.split("."):
            if not isinstance(current, Mapping) or part not in current:
                return default
            current = current[part]
        return current

    def get_int(self, dotted_key: str, default: int) -> int:
        value = self.get(dotted_key, default)
        if value is None or isinstance(value, bool):
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def get_float(self, dotted_key: str, default: float) -> float:
        value = self.get(dotted_key, default)
        try:
            return float(value)
        except (TypeError, ValueError):
            return default

    def get_str(self, dotted_key: str, default: str) -> str:
        value = self.get(dotted_key, default)
        if not isinstance(value, str) or not value.strip():
            return default
        return value.strip()

    def get_optional_str(self, dotted_key: str) -> str | None:
        value = self.get(dotted_key)
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = deepcopy(dict(base))
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged
