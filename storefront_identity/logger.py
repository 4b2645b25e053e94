"""
Structured JSON Logging Module.

Every identity event (login, refresh fallback, profile update) is written
as one JSON object per line, to stdout and to a size-rotated file.
Caller context passed through ``extra=`` is kept under an ``"extra"`` key
with its JSON type preserved.  Values under personal-data keys (phone
numbers, platform tokens) are masked before they reach any handler.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional, TextIO

_REDACTED: str = "***"

# Keys whose values must never appear in a log line.
SENSITIVE_KEYS: frozenset[str] = frozenset(
    {"phone", "phone_number", "token", "phone_token", "access_token"}
)


def _mask(value: Any) -> str:
    text = str(value)
    if len(text) <= 4:
        return _REDACTED
    return f"{_REDACTED}{text[-3:]}"


def _json_safe(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


class JSONFormatter(logging.Formatter):
    """Render a ``LogRecord`` as a single-line JSON object.

    Keys: ``timestamp`` (UTC ISO-8601), ``level``, ``logger_name``,
    ``message``, plus ``extra`` and ``exception`` when present.
    """

    _RECORD_ATTRS: frozenset[str] = frozenset(
        logging.LogRecord(
            name="", level=0, pathname="", lineno=0, msg="", args=(), exc_info=None
        ).__dict__
    ) | {"message", "asctime", "taskName"}

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger_name": record.name,
            "message": record.getMessage(),
        }

        extra = self._extract_extra(record)
        if extra:
            entry["extra"] = extra

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            entry["exception"] = record.exc_text

        return json.dumps(entry, ensure_ascii=False)

    def _extract_extra(self, record: logging.LogRecord) -> dict[str, Any]:
        extra: dict[str, Any] = {}
        for key, value in record.__dict__.items():
            if key in self._RECORD_ATTRS:
                continue
            if key in SENSITIVE_KEYS and value is not None:
                extra[key] = _mask(value)
            else:
                extra[key] = _json_safe(value)
        return extra


class StructuredLogger:
    """Injectable wrapper around a named ``logging.Logger``.

    Handlers are attached once per logger name, so building several
    ``StructuredLogger`` objects for the same name is cheap and does not
    duplicate output.

    Parameters
    ----------
    name:
        Logger name; dotted names nest under ``storefront_identity``.
    level:
        Minimum level.  Defaults to ``LOG_LEVEL`` from config.
    stream:
        Console target.  Defaults to ``sys.stdout``.
    log_file / max_bytes / backup_count:
        Rotating file settings.  Default to the ``LOG_*`` config values.
    """

    def __init__(
        self,
        name: str = "storefront_identity",
        level: Optional[int] = None,
        stream: Optional[TextIO] = None,
        log_file: Optional[str] = None,
        max_bytes: Optional[int] = None,
        backup_count: Optional[int] = None,
    ) -> None:
        # Imported here: config logs through the stdlib during validation.
        from storefront_identity.config import get_config
        cfg = get_config()

        resolved_level: int = level if level is not None else logging.getLevelName(cfg.LOG_LEVEL.upper())
        if not isinstance(resolved_level, int):
            resolved_level = logging.INFO

        self._logger: logging.Logger = logging.getLogger(name)
        self._logger.setLevel(resolved_level)

        if not self._logger.handlers:
            self._attach_handlers(
                level=resolved_level,
                stream=stream or sys.stdout,
                log_file=log_file or cfg.LOG_FILE,
                max_bytes=max_bytes if max_bytes is not None else cfg.LOG_MAX_BYTES,
                backup_count=backup_count if backup_count is not None else cfg.LOG_BACKUP_COUNT,
            )

    def _attach_handlers(
        self,
        level: int,
        stream: TextIO,
        log_file: str,
        max_bytes: int,
        backup_count: int,
    ) -> None:
        formatter = JSONFormatter()

        console = logging.StreamHandler(stream)
        console.setLevel(level)
        console.setFormatter(formatter)
        self._logger.addHandler(console)

        try:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            rotating = RotatingFileHandler(
                filename=str(log_path),
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
        except OSError as exc:
            self._logger.warning(
                "Log file %s unavailable (%s); logging to console only.",
                log_file,
                exc,
            )
            return

        rotating.setLevel(level)
        rotating.setFormatter(formatter)
        self._logger.addHandler(rotating)

    @property
    def logger(self) -> logging.Logger:
        """The underlying ``logging.Logger``."""
        return self._logger

    def debug(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.error(msg, *args, **kwargs)

    def critical(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.critical(msg, *args, **kwargs)


def get_logger(name: str = "storefront_identity") -> StructuredLogger:
    """Return a ``StructuredLogger`` for *name* with config-driven defaults."""
    return StructuredLogger(name=name)
