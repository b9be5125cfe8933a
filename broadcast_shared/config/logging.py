"""
Centralized structured logging for the relay server and client.

Loggers accept keyword fields that are rendered next to the message:

    logger.info("Client connected", identity="Client#1", total=3)

Records emitted while a connection is bound (see `bind_connection`) carry
that connection's identity, so every line produced on behalf of one client
can be grepped by `Client#N` without passing it explicitly.
"""

import json
import logging
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any

from broadcast_shared.config.settings import settings

_current_connection: ContextVar[str | None] = ContextVar("current_connection", default=None)


def bind_connection(identity: str | None) -> Token:
    """
    Tag log records from the current task (and tasks it spawns later)
    with a connection identity.

    Returns:
        Token for `unbind_connection`.
    """
    return _current_connection.set(identity)


def unbind_connection(token: Token) -> None:
    _current_connection.reset(token)


class ConnectionContextFilter(logging.Filter):
    """Copies the bound connection identity onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.connection = _current_connection.get()
        return True


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per line, for log aggregation in production.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        connection = getattr(record, "connection", None)
        if connection:
            entry["connection"] = connection

        fields = getattr(record, "extra_data", None)
        if fields:
            entry["fields"] = fields

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        if settings.debug:
            entry["at"] = f"{record.pathname}:{record.lineno}"

        return json.dumps(entry, default=str, ensure_ascii=False)


class DevelopmentFormatter(logging.Formatter):
    """Colored single-line output for a terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    DIM = "\033[2m"
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)
        parts = [
            f"{color}{datetime.now():%H:%M:%S} {record.levelname:<8}{self.RESET}",
        ]

        connection = getattr(record, "connection", None)
        if connection:
            parts.append(f"{self.DIM}[{connection}]{self.RESET}")

        parts.append(f"{record.name}: {record.getMessage()}")

        fields = getattr(record, "extra_data", None)
        if fields:
            parts.append("(" + ", ".join(f"{k}={v}" for k, v in fields.items()) + ")")

        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class StructuredLogger(logging.Logger):
    """
    Logger whose level methods take arbitrary keyword fields.

    Standard keywords (exc_info, extra, stack_info, stacklevel) keep their
    usual meaning; everything else ends up in `record.extra_data`.
    """

    def _log(  # type: ignore[override]
        self,
        level: int,
        msg: object,
        args: Any,
        exc_info: Any = None,
        extra: dict[str, Any] | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        **fields: Any,
    ) -> None:
        extra = dict(extra) if extra else {}
        extra["extra_data"] = fields or None
        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )


# Every logger created after this import is a StructuredLogger
logging.setLoggerClass(StructuredLogger)


def setup_logging(level: int | None = None) -> None:
    """
    Configure the root logger. Call once at process startup.

    Production (ENVIRONMENT=production) gets JSON lines, anything else gets
    the colored development format.
    """
    if level is None:
        level = logging.DEBUG if settings.debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(ConnectionContextFilter())
    if settings.environment == "production":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(DevelopmentFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # Third-party noise
    for name in ("uvicorn.access", "websockets", "asyncio"):
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)


def get_logger(name: str) -> StructuredLogger:
    """
    Get a structured logger.

    Usage:
        from broadcast_shared.config.logging import get_logger
        logger = get_logger(__name__)

        logger.info("Message relayed", sender="Client#1", recipients=4)
        logger.error("Endpoint failed", identity="Client#2", exc_info=True)
    """
    return logging.getLogger(name)  # type: ignore[return-value]


def preview_body(body: str, limit: int = 80) -> str:
    """Shorten a message body for log output."""
    if len(body) <= limit:
        return body
    return f"{body[:limit]}... ({len(body)} chars)"
