"""
Structured JSON logging for the learning engine.

One JSON object per line: timestamp, level, correlation_id, module, message,
plus any learning fields passed through `extra=`. A correlation ID covers one
feedback call (or one batch recalculation), so the ledger write, the insight
update and the stability rescore for a single edit can be read together.
"""
import json
import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Iterator, Optional, TextIO

correlation_id_ctx: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Learning fields lifted from `extra=` into the JSON line when present
LOG_EXTRA_FIELDS = (
    "pattern_type",
    "pattern_value",
    "user_id",
    "response_id",
    "validation_status",
    "stability_score",
    "error_code",
)

NOISY_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "aiosqlite", "asyncpg")


def get_correlation_id() -> Optional[str]:
    return correlation_id_ctx.get()


def set_correlation_id(cid: str) -> None:
    correlation_id_ctx.set(cid)


def generate_correlation_id() -> str:
    """New correlation ID (UUID4 hex, 32 chars)."""
    return uuid.uuid4().hex


@contextmanager
def correlation_scope(cid: Optional[str] = None) -> Iterator[str]:
    """
    Run a block under a correlation ID, restoring the previous one afterwards.

    An ID already set by the caller is reused unless `cid` is given, so a
    feedback handler's ID flows into the learning writes it triggers.
    """
    current = correlation_id_ctx.get()
    scoped = cid or current or generate_correlation_id()
    token = correlation_id_ctx.set(scoped)
    try:
        yield scoped
    finally:
        correlation_id_ctx.reset(token)


class StructuredJsonFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    {"timestamp": "...", "level": "INFO", "correlation_id": "...", "module": "...",
     "message": "...", "pattern_value": "tone", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "correlation_id": get_correlation_id(),
            "module": record.name,
            "message": record.getMessage(),
        }
        entry.update(self._learning_fields(record))

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)

    @staticmethod
    def _learning_fields(record: logging.LogRecord) -> dict:
        fields = {}
        for key in LOG_EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                fields[key] = value
        return fields


def configure_structured_logging(log_level: str = "INFO", stream: Optional[TextIO] = None) -> None:
    """
    Route the root logger through a single JSON handler.
    Call once at startup, before the first learning call logs anything.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredJsonFormatter())
    root_logger.addHandler(handler)

    # Third-party loggers stay at WARNING
    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)
