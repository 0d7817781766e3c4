"""Structured JSON logging configuration.

Configures Python logging to emit JSON-formatted log entries with the fields
timestamp, level, logger and message. Request-specific fields are added
contextually (method, url, authenticated for outgoing calls; status_code,
error_code for failures).

SECURITY: Never logs bearer tokens, passwords or other credentials.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone


# Patterns that should be redacted from log output
_SENSITIVE_PATTERNS = re.compile(
    r"(authtoken|token|password|secret|credential|authorization)"
    r"[\s]*[=:]\s*\S+",
    re.IGNORECASE,
)
_BEARER_PATTERN = re.compile(r"Bearer\s+[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE)

_CONTEXT_FIELDS = ("method", "url", "authenticated", "status_code", "error_code")


class JsonFormatter(logging.Formatter):
    """Formats log records as JSON with structured fields.

    Each entry contains at minimum: timestamp, level, logger, message.
    Additional fields can be attached via the ``extra`` dict on log calls.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": self._sanitize(record.getMessage()),
        }

        for field in _CONTEXT_FIELDS:
            if hasattr(record, field):
                value = getattr(record, field)
                entry[field] = self._sanitize(value) if isinstance(value, str) else value

        # Exception info
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self._sanitize(
                self.formatException(record.exc_info)
            )

        return json.dumps(entry, default=str)

    @staticmethod
    def _sanitize(text: str) -> str:
        """Remove sensitive values from log text."""
        text = _BEARER_PATTERN.sub("Bearer [REDACTED]", text)
        return _SENSITIVE_PATTERNS.sub("[REDACTED]", text)


def configure_logging(level: str = "INFO", logger_name: str = "erp_client") -> logging.Logger:
    """Send the client's own log records to stderr as JSON.

    Only the ``logger_name`` tree is configured; handlers a host application
    installed on the root logger are left alone, and records stop propagating
    to them so each line is written once. Calling this again replaces the JSON
    handler installed earlier.

    Parameters
    ----------
    level:
        Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    logger_name:
        Logger tree to configure.
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for existing in [h for h in logger.handlers if isinstance(h.formatter, JsonFormatter)]:
        logger.removeHandler(existing)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger
