"""Logging setup for the client library and the command line."""

from __future__ import annotations

import json
import logging
import os
import re
from threading import Lock

_CONFIG_LOCK = Lock()
_CONFIGURED = False

# OpenAI errors echo part of the rejected key back in their message.
_API_KEY_PATTERN = re.compile(r"sk-[A-Za-z0-9_\-*]{6,}")
_NOISY_LOGGERS = ("httpx", "httpcore", "chromadb", "openai")


def redact_secrets(text: str) -> str:
    return _API_KEY_PATTERN.sub("sk-***", text)


class SecretRedactionFilter(logging.Filter):
    """Masks API keys in messages and arguments before they are formatted."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact_secrets(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(
                redact_secrets(arg) if isinstance(arg, str) else arg for arg in record.args
            )
        elif isinstance(record.args, dict):
            record.args = {
                key: redact_secrets(value) if isinstance(value, str) else value
                for key, value in record.args.items()
            }
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for attr in ("event", "payload"):
            if hasattr(record, attr):
                payload[attr] = getattr(record, attr)
        if record.exc_info:
            payload["exc_info"] = redact_secrets(self.formatException(record.exc_info))
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: int = logging.INFO) -> None:
    """Install root handlers once; ``PROJECT_VECTORDB_LOG_FORMAT=json`` switches to JSON lines."""

    global _CONFIGURED
    with _CONFIG_LOCK:
        if _CONFIGURED:
            return

        handler = logging.StreamHandler()
        if os.getenv("PROJECT_VECTORDB_LOG_FORMAT", "plain").lower() == "json":
            handler.setFormatter(JSONFormatter())
        else:
            handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s - %(message)s"))
        handler.addFilter(SecretRedactionFilter())
        logging.basicConfig(level=level, handlers=[handler])

        # per-request INFO lines from the HTTP stack drown out progress output
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
        _CONFIGURED = True


def log_event(event: str, payload: dict | None = None, level: int = logging.INFO) -> None:
    """Emit a structured event on ``project_vectordb.events``."""
    payload = payload or {}
    logging.getLogger("project_vectordb.events").log(
        level,
        "%s %s",
        event,
        json.dumps(payload, ensure_ascii=False, default=str),
        extra={"event": event, "payload": payload},
    )


__all__ = ["JSONFormatter", "SecretRedactionFilter", "configure_logging", "log_event", "redact_secrets"]
