from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from .settings import Settings

HOME_ENV_VAR = "CALMMIND_HOME"
API_KEY_ENV_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY")


@dataclass(frozen=True)
class AppPaths:
    root: Path

    @property
    def storage_file(self) -> Path:
        return self.root / "storage.json"

    @property
    def export_dir(self) -> Path:
        return self.root / "exports"

    @classmethod
    def resolve(cls, override: Path | None = None) -> "AppPaths":
        if override is not None:
            return cls(Path(override).expanduser().resolve())
        env_root = os.getenv(HOME_ENV_VAR)
        if env_root:
            return cls(Path(env_root).expanduser().resolve())
        return cls(Path.home() / ".calmmind")


@dataclass
class AppConfig:
    """Paths, settings and credentials resolved once at startup."""

    paths: AppPaths = field(default_factory=AppPaths.resolve)
    settings: Settings | None = None
    api_key: str | None = None
    load_env: bool = True

    def __post_init__(self) -> None:
        if self.load_env:
            load_dotenv()
        self.paths.root.mkdir(parents=True, exist_ok=True)
        if self.settings is None:
            self.settings = Settings.load(self.paths.root)
        if self.api_key is None:
            self.api_key = self._resolve_api_key()

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _resolve_api_key(self) -> str | None:
        for name in API_KEY_ENV_VARS:
            value = os.getenv(name, "").strip()
            if value:
                return value
        # Missing key is not fatal; sending is blocked until one is configured
        return self.settings.get_optional_str("llm.api_key")
