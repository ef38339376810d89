"""JSON logging for the assistant bridge.

Each record is one JSON line. Structured fields travel in
``extra={"context": {...}}``; the conversation identifiers among them
(user, thread, run, message) are also lifted to the top level so one
turn can be followed across the webhook, orchestrator and poll loop.
"""

import json
import logging
import sys
from datetime import datetime, timezone

SERVICE_NAME = "assistant-bridge"
LOGGER_PREFIX = "bridge"

CORRELATION_KEYS = ("user_id", "thread_id", "run_id", "message_id")

NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine")


class JSONFormatter(logging.Formatter):
    """Format log records as JSON lines with correlation ids on top."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            for key in CORRELATION_KEYS:
                if context.get(key) is not None:
                    log_data[key] = context[key]
            log_data["context"] = context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Exceptions and enums end up in context; stringify anything json can't encode.
        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Send JSON lines to stdout; unknown level names fall back to INFO."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")
