"""Structured JSON logging for every bot process, with Telegram bot tokens redacted."""

import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Any

_RESERVED = set(logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys())
_BOT_TOKEN = re.compile(r"\d{5,}:[A-Za-z0-9_-]{30,}")
_REDACTED = "<redacted>"


def redact(text: str) -> str:
    return _BOT_TOKEN.sub(_REDACTED, text)


class JsonFormatter(logging.Formatter):
    """Serialize log records as compact JSON lines tagged with the emitting service."""

    def __init__(self, service: str | None = None) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": redact(record.getMessage()),
        }
        if self.service:
            payload["service"] = self.service

        extras = {
            key: redact(value) if isinstance(value, str) else value
            for key, value in record.__dict__.items()
            if key not in _RESERVED and not key.startswith("_")
        }
        if extras:
            payload["context"] = extras

        if record.exc_info:
            payload["exception"] = redact(self.formatException(record.exc_info))

        return json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str)


def configure_logging(level: str = "INFO", service: str | None = None) -> None:
    """Configure process-wide JSON logging once; later calls are no-ops."""

    root = logging.getLogger()
    if getattr(root, "_cryptobot_configured", False):
        return

    root.handlers.clear()
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonFormatter(service))

    root.addHandler(handler)
    root.setLevel(level.upper())
    logging.getLogger("httpx").setLevel(logging.WARNING)
    setattr(root, "_cryptobot_configured", True)
