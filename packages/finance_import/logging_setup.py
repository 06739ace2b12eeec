"""Logging for the import pipelines.

Importers, adapters and the persistence layer log through
``get_logger("finance_import.<module>")`` with event-style messages such as
``expense_import:done user_id=7 total=3 ...`` and never attach handlers.
The two hosts do that once at startup:

- the ``finance-import`` Typer app, from its root callback;
- ``web.create_app()``, before the FastAPI routes are mounted.

Both call :func:`configure_logging` with no arguments, so the level comes from
``FINANCE_IMPORT_LOG_LEVEL`` (``INFO`` when unset). Embedding the package
without calling it leaves the ``finance_import`` logger silent.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "finance_import"
_LEVEL_ENV = "FINANCE_IMPORT_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_CONFIGURED = False


def _level_from(value: int | str | None) -> int | None:
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        return None
    name = value.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = getattr(logging, name, None)
    return numeric if isinstance(numeric, int) else None


def _resolve_level(level: int | str | None) -> int:
    resolved = _level_from(level)
    if resolved is None:
        resolved = _level_from(os.getenv(_LEVEL_ENV))
    return logging.INFO if resolved is None else resolved


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Send ``finance_import.*`` records to ``stream``; later calls are no-ops.

    ``level`` wins over ``FINANCE_IMPORT_LOG_LEVEL``; an unrecognised name
    falls through to the variable and then to ``INFO``. Records do not
    propagate to the root logger, so a host with its own root handler (uvicorn,
    for one) does not print import events twice.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    resolved = _resolve_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Logger for an import module; a ``NullHandler`` covers unconfigured hosts."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
