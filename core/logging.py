import contextvars
import json
import logging
import logging.config
from datetime import datetime, timezone

_BUILTIN_ATTRS = {
    "args",
    "asctime",
    "created",
    "exc_info",
    "exc_text",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "message",
    "msg",
    "name",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "taskName",
    "thread",
    "threadName",
}

_topic_var = contextvars.ContextVar("topic", default=None)
_message_id_var = contextvars.ContextVar("message_id", default=None)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "severity": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "time": datetime.now(timezone.utc).isoformat(),
        }

        topic = _topic_var.get()
        message_id = _message_id_var.get()
        if topic:
            payload["topic"] = topic
        if message_id:
            payload["messageId"] = message_id

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _BUILTIN_ATTRS:
                continue
            payload[key] = _safe_json_value(value)

        return json.dumps(payload, ensure_ascii=False)


def _safe_json_value(value):
    try:
        json.dumps(value)
        return value
    except TypeError:
        return str(value)


def setup_logging(level: str = "INFO") -> None:
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": "core.logging.JsonFormatter"},
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
                "formatter": "json",
            }
        },
        "root": {"level": level, "handlers": ["stdout"]},
        "loggers": {
            "uvicorn": {"level": level, "handlers": ["stdout"], "propagate": False},
            "uvicorn.error": {"level": level, "handlers": ["stdout"], "propagate": False},
            "uvicorn.access": {"level": "WARNING", "handlers": ["stdout"], "propagate": False},
            "httpx": {"level": "WARNING", "handlers": ["stdout"], "propagate": False},
        },
    }

    logging.config.dictConfig(config)


def set_event_context(topic: str | None, message_id: str | None) -> None:
    """Stamp topic and message id onto every record logged in this context.

    Tasks created afterwards inherit a copy, so forwards spawned for an event
    keep logging with its identifiers.
    """
    _topic_var.set(topic)
    _message_id_var.set(message_id)


def clear_event_context() -> None:
    _topic_var.set(None)
    _message_id_var.set(None)
