from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from dotenv import dotenv_values

from interview_scribe.contracts.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_ENV_FILE = Path(".env.local")
DEFAULT_LANGUAGE = "ko"
DEFAULT_MAX_RETRIES = 5
DEFAULT_BASE_DELAY_S = 2.0
DEFAULT_POLL_INTERVAL_S = 10.0
DEFAULT_SECONDARY_MAX_FILE_MB = 24


@dataclass(frozen=True, slots=True)
class Settings:
    google_api_key: str | None = None
    openai_api_key: str | None = None
    language: str = DEFAULT_LANGUAGE
    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay_s: float = DEFAULT_BASE_DELAY_S
    poll_interval_s: float = DEFAULT_POLL_INTERVAL_S
    poll_timeout_s: float | None = None
    secondary_max_file_mb: int = DEFAULT_SECONDARY_MAX_FILE_MB

    @property
    def secondary_max_file_bytes(self) -> int:
        return self.secondary_max_file_mb * 1024 * 1024

    def require_google_api_key(self) -> str:
        if not self.google_api_key:
            raise ConfigError("GOOGLE_API_KEY is not set")
        return self.google_api_key


def _read_env_file(env_file: Path | None, base_env: Mapping[str, str]) -> dict[str, str]:
    if base_env.get("APP_ENV", "").strip().lower() == "production":
        return {}
    path = Path(env_file) if env_file is not None else DEFAULT_ENV_FILE
    if not path.is_file():
        if env_file is not None:
            raise ConfigError(f"env file not found: {path}")
        return {}
    logger.debug("Loading settings from %s", path)
    return {key: value for key, value in dotenv_values(path).items() if value is not None}


def _optional_str(values: Mapping[str, str], key: str) -> str | None:
    value = values.get(key, "").strip()
    return value or None


def _number(values: Mapping[str, str], key: str, default: float, cast: type, *, minimum: float) -> float:
    raw = values.get(key, "").strip()
    if not raw:
        return default
    try:
        parsed = cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from exc
    if parsed < minimum:
        raise ConfigError(f"{key} must be >= {minimum}, got {raw!r}")
    return parsed


def load_settings(env: Mapping[str, str] | None = None, env_file: Path | None = None) -> Settings:
    """
    Build Settings from the process environment layered over a dotenv file.

    Environment variables win over the file. The dotenv file (``.env.local``
    unless ``env_file`` is given) is ignored when ``APP_ENV=production``.
    """
    base_env = dict(os.environ if env is None else env)
    values = {**_read_env_file(env_file, base_env), **base_env}

    poll_timeout = _number(values, "TRANSCRIPTION_POLL_TIMEOUT_S", 0.0, float, minimum=0.0)
    return Settings(
        google_api_key=_optional_str(values, "GOOGLE_API_KEY"),
        openai_api_key=_optional_str(values, "OPENAI_API_KEY"),
        language=_optional_str(values, "TRANSCRIPTION_LANGUAGE") or DEFAULT_LANGUAGE,
        max_retries=int(_number(values, "TRANSCRIPTION_MAX_RETRIES", DEFAULT_MAX_RETRIES, int, minimum=1)),
        base_delay_s=_number(values, "TRANSCRIPTION_BASE_DELAY_S", DEFAULT_BASE_DELAY_S, float, minimum=0.0),
        poll_interval_s=_number(values, "TRANSCRIPTION_POLL_INTERVAL_S", DEFAULT_POLL_INTERVAL_S, float, minimum=0.0),
        poll_timeout_s=poll_timeout or None,
        secondary_max_file_mb=int(
            _number(values, "SECONDARY_MAX_FILE_MB", DEFAULT_SECONDARY_MAX_FILE_MB, int, minimum=1)
        ),
    )


__all__ = ["DEFAULT_ENV_FILE", "Settings", "load_settings"]
