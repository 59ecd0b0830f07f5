from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import IO, Any

# Loaded alongside the model runtimes; chatty at INFO.
_QUIET_LOGGERS = ("PIL", "tensorflow", "absl", "onnxruntime", "dynaconf")
_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(threadName)s] - %(message)s"
_RESERVED_KEYS = frozenset({"ts", "level", "logger", "thread", "message", "exc_info"})


def log_context(**fields: Any) -> dict[str, dict[str, Any]]:
    """Build an ``extra=`` mapping whose fields become top-level JSON keys."""
    return {"context": fields}


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Fields passed through ``log_context`` are merged into the object. A field
    that collides with a core key is kept under ``ctx_<name>``.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        context = getattr(record, "context", None)
        if isinstance(context, dict):
            for key, value in context.items():
                payload[f"ctx_{key}" if key in _RESERVED_KEYS else key] = value
        return json.dumps(payload, ensure_ascii=True, default=str)


def _build_formatter(json_logs: bool) -> logging.Formatter:
    if json_logs:
        return JsonFormatter()
    return logging.Formatter(fmt=_TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    stream: IO[str] | None = None,
) -> logging.Handler:
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(_build_formatter(json_logs))
    root.addHandler(handler)

    if root.getEffectiveLevel() > logging.DEBUG:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
    return handler
