"""
SleepSense - Structured Logging

Provides structured JSON logging with context injection for turn IDs.
Journal and chat content is masked before it can reach a log line.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional


# =============================================================================
# Context Variables
# =============================================================================

turn_id_var: ContextVar[Optional[str]] = ContextVar('turn_id', default=None)
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)


# =============================================================================
# Masking Utilities
# =============================================================================

SENSITIVE_KEYS = {
    'content', 'text', 'thoughts', 'gratitude', 'details',
    'email', 'name', 'voice',
}


def mask_text(value: Optional[str]) -> str:
    """Replace free text with its length."""
    if not value:
        return "[EMPTY]"
    return f"[REDACTED, {len(value)} chars]"


def mask_sensitive_data(data: dict) -> dict:
    """
    Recursively mask sensitive fields in a dictionary.

    Sensitive fields: message content, journal text, contact details.
    """
    masked = {}
    for key, value in data.items():
        key_lower = key.lower()

        if any(s in key_lower for s in SENSITIVE_KEYS):
            if isinstance(value, str):
                masked[key] = mask_text(value)
            else:
                masked[key] = "[REDACTED]"
        elif isinstance(value, dict):
            masked[key] = mask_sensitive_data(value)
        else:
            masked[key] = value

    return masked


# =============================================================================
# Formatters
# =============================================================================

class StructuredFormatter(logging.Formatter):
    """
    JSON formatter that injects context variables and masks sensitive data.

    Output format:
    {
        "timestamp": "2024-11-30T00:00:00.000000+00:00",
        "level": "INFO",
        "logger": "module.submodule",
        "turn_id": "turn_abc123",
        "message": "Human-readable message",
        "data": { ... }
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_var.get()
        if request_id:
            log_entry["request_id"] = request_id

        turn_id = turn_id_var.get()
        if turn_id:
            log_entry["turn_id"] = turn_id

        if hasattr(record, 'data') and record.data:
            log_entry["data"] = mask_sensitive_data(record.data)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


class HumanReadableFormatter(logging.Formatter):
    """
    Human-readable formatter for development.
    Includes timestamp, level, logger, and message with context.
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        context = [
            f"{label}={value}"
            for label, value in (("req", request_id_var.get()), ("turn", turn_id_var.get()))
            if value
        ]
        context_str = f" [{' '.join(context)}]" if context else ""

        message = f"{timestamp} | {record.levelname:<8} | {record.name}{context_str} | {record.getMessage()}"

        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return message


# =============================================================================
# Logger Setup
# =============================================================================

def setup_structured_logging(
    level: str = "INFO",
    json_format: bool = False,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Use JSON format (True for production, False for development)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(HumanReadableFormatter())

    root_logger.addHandler(handler)

    # Suppress noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("watchfiles").setLevel(logging.WARNING)


# =============================================================================
# Context Manager
# =============================================================================

class LogContext:
    """
    Context manager for setting log context variables.

    Usage:
        with LogContext(turn_id="turn_abc123"):
            logger.info("Selecting response")
    """

    def __init__(
        self,
        turn_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        self._turn_id = turn_id
        self._request_id = request_id
        self._tokens = []

    def __enter__(self):
        if self._turn_id:
            self._tokens.append((turn_id_var, turn_id_var.set(self._turn_id)))
        if self._request_id:
            self._tokens.append((request_id_var, request_id_var.set(self._request_id)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
        return False
