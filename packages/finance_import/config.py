"""Runtime settings read from the environment.

Entrypoints load a local ``.env`` (``python-dotenv``, never overriding already
set variables) before calling :func:`load_settings`. Library code receives a
``Settings`` instance or falls back to the module-level defaults below.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .logging_setup import get_logger

logger = get_logger("finance_import.config")

DEFAULT_MAX_ROWS = 5000
DEFAULT_MAX_FILE_BYTES = 10 * 1024 * 1024
DEFAULT_SPLITWISE_BASE_URL = "https://secure.splitwise.com/api/v3.0"


@dataclass(frozen=True, slots=True)
class Settings:
    database_url: str | None = None
    splitwise_api_key: str | None = None
    splitwise_base_url: str = DEFAULT_SPLITWISE_BASE_URL
    max_rows: int = DEFAULT_MAX_ROWS
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES

    @property
    def splitwise_configured(self) -> bool:
        return bool(self.splitwise_api_key)


def _positive_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        logger.warning("config:invalid_int name=%s value=%r using=%d", name, raw, default)
        return default
    if value <= 0:
        logger.warning("config:non_positive name=%s value=%d using=%d", name, value, default)
        return default
    return value


def load_settings() -> Settings:
    """Build :class:`Settings` from the current process environment.

    Recognized variables: ``DATABASE_URL``, ``SPLITWISE_API_KEY``,
    ``SPLITWISE_API_BASE_URL``, ``FINANCE_IMPORT_MAX_ROWS`` and
    ``FINANCE_IMPORT_MAX_FILE_BYTES``. Invalid limits fall back to defaults.
    """

    api_key = (os.getenv("SPLITWISE_API_KEY") or "").strip() or None
    base_url = (os.getenv("SPLITWISE_API_BASE_URL") or "").strip() or DEFAULT_SPLITWISE_BASE_URL
    return Settings(
        database_url=os.getenv("DATABASE_URL") or None,
        splitwise_api_key=api_key,
        splitwise_base_url=base_url.rstrip("/"),
        max_rows=_positive_int_env("FINANCE_IMPORT_MAX_ROWS", DEFAULT_MAX_ROWS),
        max_file_bytes=_positive_int_env("FINANCE_IMPORT_MAX_FILE_BYTES", DEFAULT_MAX_FILE_BYTES),
    )


__all__ = [
    "DEFAULT_MAX_FILE_BYTES",
    "DEFAULT_MAX_ROWS",
    "DEFAULT_SPLITWISE_BASE_URL",
    "Settings",
    "load_settings",
]
