from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

from uniconvert.errors import ConfigError

API_KEY_ENV_VARS = ("UNICONVERT_API_KEY", "GEMINI_API_KEY", "API_KEY")
DEFAULT_MODEL = "gemini-3-flash-preview"
DEFAULT_API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_REQUEST_TIMEOUT = 60.0
DEFAULT_LOG_LEVEL = "WARNING"
LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"

_HANDLER_MARKER = "_uniconvert_handler"


@dataclass(frozen=True)
class Settings:
    api_key: str | None = None
    model: str = DEFAULT_MODEL
    api_base_url: str = DEFAULT_API_BASE_URL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)


def _first_env(environ: Mapping[str, str], names: tuple[str, ...]) -> str | None:
    for name in names:
        value = (environ.get(name) or "").strip()
        if value:
            return value
    return None


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ

    raw_timeout = (env.get("UNICONVERT_REQUEST_TIMEOUT") or "").strip()
    timeout = DEFAULT_REQUEST_TIMEOUT
    if raw_timeout:
        try:
            timeout = float(raw_timeout)
        except ValueError as exc:
            raise ConfigError(f"UNICONVERT_REQUEST_TIMEOUT must be a number of seconds, got {raw_timeout!r}") from exc
        if timeout <= 0:
            raise ConfigError("UNICONVERT_REQUEST_TIMEOUT must be greater than zero")

    log_level = (env.get("UNICONVERT_LOG_LEVEL") or DEFAULT_LOG_LEVEL).strip().upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ConfigError(f"Unknown log level: {log_level}")

    return Settings(
        api_key=_first_env(env, API_KEY_ENV_VARS),
        model=(env.get("UNICONVERT_GEMINI_MODEL") or DEFAULT_MODEL).strip(),
        api_base_url=(env.get("UNICONVERT_GEMINI_BASE_URL") or DEFAULT_API_BASE_URL).strip().rstrip("/"),
        request_timeout=timeout,
        log_level=log_level,
    )


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> logging.Logger:
    """Attach one stderr handler to the package logger. Calling it again only updates the level."""
    logger = logging.getLogger("uniconvert")
    logger.setLevel(level)
    if not any(getattr(handler, _HANDLER_MARKER, False) for handler in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        setattr(handler, _HANDLER_MARKER, True)
        logger.addHandler(handler)
    return logger
