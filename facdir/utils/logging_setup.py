"""JSON log lines for the ``facdir`` logger.

Store requests carry the Supabase API key, so anything that looks like a
credential is masked before a line is written.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Any

LOGGER_NAME = "facdir"
REDACTED = "***"

# Fields of a LogRecord itself; anything else arrived through ``extra=``.
_RECORD_FIELDS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}

_SECRET_KEYS = frozenset(
    {"apikey", "api_key", "authorization", "anon_key", "service_key", "access_token"}
)
_BEARER = re.compile(r"(Bearer\s+)[\w\-.~+/=]+", re.IGNORECASE)


def redact(value: Any) -> Any:
    """Mask credential-looking entries in *value*, recursing into containers."""
    if isinstance(value, dict):
        return {
            k: REDACTED if str(k).lower() in _SECRET_KEYS else redact(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    if isinstance(value, str):
        return _BEARER.sub(rf"\1{REDACTED}", value)
    return value


class JSONFormatter(logging.Formatter):
    """One JSON object per record: fixed fields, then ``extra=`` context."""

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "message": redact(record.getMessage()),
        }
        line.update(
            (key, REDACTED if key.lower() in _SECRET_KEYS else redact(value))
            for key, value in vars(record).items()
            if key not in _RECORD_FIELDS and not key.startswith("_")
        )

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            # DirectoryError and its subclasses
            if hasattr(exc, "kind"):
                line.setdefault("kind", exc.kind)
                line.setdefault("code", getattr(exc, "code", None))
            line["exception"] = redact(self.formatException(record.exc_info))

        return json.dumps(line, default=str)


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    library_level: str | None = "WARNING",
) -> logging.Logger:
    """Send ``facdir`` logs to stderr (and optionally *log_file*) as JSON.

    Args:
        level: Level name for the ``facdir`` logger.
        log_file: Extra file to append the same lines to.
        library_level: Level applied to ``urllib3``, whose connection chatter
            would otherwise drown the store logs; ``None`` leaves it alone.

    Returns:
        The ``facdir`` logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    formatter = JSONFormatter()
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    if library_level is not None:
        logging.getLogger("urllib3").setLevel(
            getattr(logging, str(library_level).upper(), logging.WARNING)
        )
    return logger


def setup_logging_from_config(config: dict[str, Any]) -> logging.Logger:
    """Apply the ``logging`` section of a loaded config."""
    section = config.get("logging") or {}
    return setup_logging(
        level=section.get("level") or "INFO",
        log_file=section.get("file"),
        library_level=section.get("library_level", "WARNING"),
    )
