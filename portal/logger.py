"""
Structured JSON Logging Module.

Every log line is one JSON object.  Auth events (login, logout,
restore, role changes) pass ``extra={"event": ...}``; the formatter
lifts ``event`` to a top-level key so a session's history can be
filtered with a single field match, and masks any extra whose name
suggests a credential so tokens and passwords never reach the log file.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, TextIO, Union

JSONScalar = Union[str, int, float, bool, None]

REDACTED: str = "***"

# Substrings of extra-field names whose values are masked.
_SENSITIVE_KEYS: tuple[str, ...] = ("password", "token", "secret", "key")


class JSONFormatter(logging.Formatter):
    """Formats log records as structured JSON objects.

    Keys: ``timestamp`` (ISO-8601, UTC), ``level``, ``logger_name``,
    ``message``, ``event`` when supplied, ``extra`` for the remaining
    caller fields and ``exception`` when exc_info is attached.
    Scalar extras keep their JSON type; anything else is ``str()``-ed.
    """

    _STANDARD_ATTRS: frozenset[str] = frozenset(
        logging.LogRecord(
            name="", level=0, pathname="", lineno=0, msg="", args=(), exc_info=None
        ).__dict__.keys()
    ) | {"message", "asctime", "taskName"}

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger_name": record.name,
            "message": record.getMessage(),
        }

        extra_fields: dict[str, JSONScalar] = {}
        for key, value in record.__dict__.items():
            if key in self._STANDARD_ATTRS:
                continue
            if key == "event":
                entry["event"] = str(value)
            elif any(marker in key.lower() for marker in _SENSITIVE_KEYS):
                extra_fields[key] = REDACTED
            elif value is None or isinstance(value, (str, int, float, bool)):
                extra_fields[key] = value
            else:
                extra_fields[key] = str(value)
        if extra_fields:
            entry["extra"] = extra_fields

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            entry["exception"] = record.exc_text

        return json.dumps(entry, ensure_ascii=False)


class StructuredLogger:
    """Injectable logger wrapper used by every portal component.

    Writes to *stream* (stdout by default) and to a rotating file sized
    by ``LOG_MAX_BYTES`` / ``LOG_BACKUP_COUNT``.  When the file cannot be
    opened the logger stays console-only instead of failing startup.

    Usage::

        log = StructuredLogger(name="portal.session")
        log.info("User logged out: %s", email, extra={"event": "LOGOUT"})

    Handlers are attached once per logger name; constructing a second
    ``StructuredLogger`` with the same name reuses them.
    """

    def __init__(
        self,
        name: str = "portal",
        level: int = logging.INFO,
        stream: Union[TextIO, None] = None,
        log_file: Optional[str] = None,
        max_bytes: Optional[int] = None,
        backup_count: Optional[int] = None,
    ) -> None:
        # portal.config logs through the stdlib logger; import lazily.
        from portal.config import get_config
        config = get_config()

        self._logger: logging.Logger = logging.getLogger(name)
        self._logger.setLevel(level)
        if self._logger.handlers:
            return

        formatter = JSONFormatter()
        console = logging.StreamHandler(stream or sys.stdout)
        console.setLevel(level)
        console.setFormatter(formatter)
        self._logger.addHandler(console)

        log_path = Path(log_file or config.LOG_FILE)
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                filename=str(log_path),
                maxBytes=max_bytes if max_bytes is not None else config.LOG_MAX_BYTES,
                backupCount=backup_count if backup_count is not None else config.LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
        except OSError as exc:
            self._logger.warning(
                "Cannot write log file '%s' (%s); logging to the console only.",
                log_path, exc,
            )
            return
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        self._logger.addHandler(file_handler)

    @property
    def logger(self) -> logging.Logger:
        """The wrapped ``logging.Logger``."""
        return self._logger

    def debug(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.error(msg, *args, **kwargs)

    def critical(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.critical(msg, *args, **kwargs)

    def exception(self, msg: str, *args: object, **kwargs: object) -> None:
        """Log at ERROR with the active exception's traceback attached."""
        self._logger.exception(msg, *args, **kwargs)


def get_logger(name: str = "portal") -> StructuredLogger:
    """Return a ``StructuredLogger`` for the ``portal.<name>`` channel."""
    return StructuredLogger(name=name if name.startswith("portal") else f"portal.{name}")
