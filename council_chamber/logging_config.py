"""Structured logging configuration for the Council Chamber.

JSON output for production environments, human-readable output for local
development.

Environment Variables:
    LOG_FORMAT: Set to "json" for JSON output, anything else for human-readable.
    LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR). Defaults to INFO.
"""

import copy
import logging
import os
import sys
from contextvars import ContextVar
from typing import Any

from pythonjsonlogger import jsonlogger

# Deliberation session the current task is working on
_session_id: ContextVar[str | None] = ContextVar("session_id", default=None)
# Agent (or synthesis node) holding the floor
_agent_id: ContextVar[str | None] = ContextVar("agent_id", default=None)

LOG_FORMAT = os.getenv("LOG_FORMAT", "").lower()
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def get_session_id() -> str | None:
    """Get the current session ID from context."""
    return _session_id.get()


def set_session_id(session_id: str | None) -> None:
    """Set the session ID in context."""
    _session_id.set(session_id)


def get_agent_id() -> str | None:
    """Get the active agent ID from context."""
    return _agent_id.get()


def set_agent_id(agent_id: str | None) -> None:
    """Set the active agent ID in context."""
    _agent_id.set(agent_id)


class ContextAwareJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that includes the session and agent IDs."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        """Add standard fields and context to log record."""
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["message"] = record.getMessage()

        session_id = get_session_id()
        if session_id:
            log_record["session_id"] = session_id

        agent_id = get_agent_id()
        if agent_id:
            log_record["agent_id"] = agent_id

        if hasattr(record, "extra_fields"):
            log_record.update(record.extra_fields)


class ContextAwareFormatter(logging.Formatter):
    """Human-readable formatter that prefixes the session and agent IDs."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with context information."""
        session_id = get_session_id()
        if not session_id:
            return super().format(record)

        # Work on a copy so other handlers see the original message
        record = copy.copy(record)
        agent_id = get_agent_id()
        prefix = f"{session_id[:8]}/{agent_id}" if agent_id else session_id[:8]
        record.msg = f"[{prefix}] {record.getMessage()}"
        record.args = ()
        return super().format(record)


def setup_logging() -> None:
    """Configure structured logging based on environment.

    Call this once at application startup before any logging occurs.
    """
    level = getattr(logging, LOG_LEVEL, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if LOG_FORMAT == "json":
        formatter = ContextAwareJsonFormatter(
            fmt="%(timestamp)s %(level)s %(logger)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
    else:
        formatter = ContextAwareFormatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # httpx logs every request at INFO; one deliberation makes dozens
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))

    logger = logging.getLogger(__name__)
    logger.info(
        "Logging configured. Format: %s, Level: %s",
        "json" if LOG_FORMAT == "json" else "human-readable",
        LOG_LEVEL,
    )
