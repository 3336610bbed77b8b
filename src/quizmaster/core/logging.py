"""JSON-lines logging for quizmaster.

Components log through children of the ``quizmaster`` logger
(``get_logger("session")`` is ``quizmaster.session``). The log file under
``<workspace>/logs/quizmaster.log`` holds one JSON object per record::

    {"timestamp": ..., "level": "INFO", "component": "session",
     "message": "Session submitted", "quiz_id": "3f2a...",
     "context": {"score": 2, "total": 3}}

``component`` is the logger name below ``quizmaster`` (``"app"`` for the
root logger itself). ``quiz_id`` and ``set_id`` passed through ``extra=`` are
lifted to the top level so one quiz can be followed across the session,
gateway and analysis records; every other ``extra=`` key lands in
``context``.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

__all__ = [
    "ROOT_LOGGER",
    "LOG_FILENAME",
    "TRACE_KEYS",
    "JsonLogFormatter",
    "component_name",
    "configure_logger",
    "get_logger",
]

ROOT_LOGGER = "quizmaster"
LOG_FILENAME = "quizmaster.log"
TRACE_KEYS = ("quiz_id", "set_id")

# Attributes every LogRecord carries; anything else came from ``extra=``.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}


def component_name(logger_name: str) -> str:
    if logger_name == ROOT_LOGGER:
        return "app"
    prefix = ROOT_LOGGER + "."
    if logger_name.startswith(prefix):
        return logger_name[len(prefix):]
    return logger_name


def get_logger(component: str) -> logging.Logger:
    """Return the ``quizmaster.<component>`` logger."""

    return logging.getLogger(f"{ROOT_LOGGER}.{component}")


class JsonLogFormatter(logging.Formatter):
    """Render records in the quizmaster log shape described above."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "component": component_name(record.name),
            "message": record.getMessage(),
        }
        context = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS
        }
        for key in TRACE_KEYS:
            if key in context:
                entry[key] = context.pop(key)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=_json_default)


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    return repr(value)


class _LogFileHandler(RotatingFileHandler):
    pass


class _ConsoleHandler(logging.StreamHandler):
    pass


def configure_logger(
    log_dir: Path,
    *,
    level: str = "INFO",
    verbose: bool = False,
    name: str = ROOT_LOGGER,
    filename: str = LOG_FILENAME,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> tuple[logging.Logger, Path]:
    """Point the ``quizmaster`` logger at ``log_dir`` and return it.

    Calling it again replaces the handlers it installed earlier. ``verbose``
    logs everything and echoes records to stderr.
    """

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    for handler in list(logger.handlers):
        if isinstance(handler, (_LogFileHandler, _ConsoleHandler)):
            logger.removeHandler(handler)
            handler.close()

    log_dir.mkdir(parents=True, exist_ok=True)
    path = log_dir / filename
    path.touch(mode=0o600, exist_ok=True)
    file_handler = _LogFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG if verbose else _parse_level(level))
    file_handler.setFormatter(JsonLogFormatter())
    logger.addHandler(file_handler)

    if verbose:
        console = _ConsoleHandler(stream=sys.stderr)
        console.setFormatter(
            logging.Formatter("%(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(console)
    return logger, path


def _parse_level(level: str) -> int:
    return logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
