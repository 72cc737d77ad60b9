"""Logging setup for leanapi applications.

Modules log through ``logging.getLogger("leanapi.<area>")``. Structured
context travels in ``extra={"context": {...}}`` and is rendered after the
message; sensitive keys are redacted before anything is written.

    configure_logging(AppConfig.from_env())
    logger.info("Incoming request", extra={"context": {"path": "/users"}})
"""

import json
import logging
import os
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from leanapi.config import AppConfig
from leanapi.context import request_id_var

ROOT_LOGGER = "leanapi"
REDACTED = "[REDACTED]"
SENSITIVE_KEYS: tuple[str, ...] = ("authorization", "bearer", "token", "password", "secret", "key")

_HANDLER_MARK = "_leanapi_handler"


def redact(context: Any) -> Any:
    """Return a copy of *context* with sensitive values replaced.

    A key is sensitive when its lowercased name contains any of
    ``SENSITIVE_KEYS``. Nested mappings and lists are walked.
    """
    if isinstance(context, Mapping):
        cleaned: dict[str, Any] = {}
        for key, value in context.items():
            lowered = str(key).lower()
            if any(marker in lowered for marker in SENSITIVE_KEYS):
                cleaned[key] = REDACTED
            else:
                cleaned[key] = redact(value)
        return cleaned
    if isinstance(context, list | tuple):
        return [redact(item) for item in context]
    return context


class RequestIdFilter(logging.Filter):
    """Stamp every record with the current request id (or ``"-"``)."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get() or "-"
        return True


def _record_context(record: logging.LogRecord) -> dict[str, Any]:
    context = getattr(record, "context", None)
    if not isinstance(context, Mapping):
        return {}
    return redact(context)


class TextFormatter(logging.Formatter):
    """``[2024-01-01 12:00:00] INFO: message {"k": "v"}``"""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, UTC).strftime("%Y-%m-%d %H:%M:%S")
        line = f"[{timestamp}] {record.levelname}: {record.getMessage()}"
        context = _record_context(record)
        request_id = getattr(record, "request_id", "-")
        if request_id != "-":
            context = {"request_id": request_id, **context}
        if context:
            line = f"{line} {json.dumps(context, default=str)}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", "-")
        if request_id != "-":
            entry["request_id"] = request_id
        context = _record_context(record)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(config: AppConfig | None = None) -> logging.Logger:
    """Attach one handler to the ``leanapi`` logger according to *config*.

    Safe to call repeatedly: a handler installed by an earlier call is
    replaced, handlers added by the host application are left alone.
    """
    config = config or AppConfig()
    logger = logging.getLogger(ROOT_LOGGER)
    for existing in list(logger.handlers):
        if getattr(existing, _HANDLER_MARK, False):
            logger.removeHandler(existing)
            existing.close()

    handler: logging.Handler
    if config.log_path:
        directory = os.path.dirname(config.log_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        handler = logging.FileHandler(config.log_path, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)

    handler.setFormatter(JsonFormatter() if config.log_format == "json" else TextFormatter())
    handler.addFilter(RequestIdFilter())
    setattr(handler, _HANDLER_MARK, True)

    logger.addHandler(handler)
    logger.setLevel(getattr(logging, config.log_level.upper(), logging.INFO))
    return logger
