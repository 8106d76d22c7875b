"""
RepoGate Structured Logging

Diagnostic logging for the RepoGate server using stdlib logging with
structured context. Everything goes to stderr: stdout carries the
JSON-RPC channel and must never receive log lines.

Usage:
    from repogate.logging import get_logger

    logger = get_logger("repogate.safety")
    logger.info("Operation authorized", extra={"operation": "delete_webhook", "risk_level": "HIGH"})

For machine-readable output:
    from repogate.logging import configure_logging
    configure_logging(json_output=True, level="DEBUG")

The defaults can also be set through REPOGATE_LOG_LEVEL and REPOGATE_LOG_JSON.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import UTC, datetime
from typing import Any

_STRUCTURED_KEYS = (
    "operation",
    "risk_level",
    "tool_name",
    "outcome",
    "result",
    "duration_ms",
    "request_id",
    "method",
)

_BASE_KEYS = ("timestamp", "level", "logger", "message")


class RepoGateFormatter(logging.Formatter):
    """Structured log formatter for RepoGate.

    Outputs either human-readable or JSON format depending on configuration.
    """

    def __init__(self, json_output: bool = False):
        super().__init__()
        self._json_output = json_output

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in _STRUCTURED_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                log_data[key] = value

        extra = getattr(record, "_extra", None)
        if extra and isinstance(extra, dict):
            log_data.update(extra)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self._json_output:
            return json.dumps(log_data, default=str)

        extra_keys = {
            k: v for k, v in log_data.items() if k not in _BASE_KEYS and k != "exception"
        }
        extra_str = ""
        if extra_keys:
            extra_str = " | " + " ".join(f"{k}={v}" for k, v in extra_keys.items())

        line = (
            f"[{log_data['timestamp']}] {record.levelname:8s} "
            f"{record.name}: {record.getMessage()}{extra_str}"
        )
        if "exception" in log_data:
            line = f"{line}\n{log_data['exception']}"
        return line


def configure_logging(
    level: str | None = None,
    json_output: bool | None = None,
) -> None:
    """Configure RepoGate logging.

    Args:
        level: Log level name. Falls back to REPOGATE_LOG_LEVEL, then INFO.
        json_output: Emit JSON lines. Falls back to REPOGATE_LOG_JSON.
    """
    if level is None:
        level = os.environ.get("REPOGATE_LOG_LEVEL", "INFO")
    if json_output is None:
        json_output = os.environ.get("REPOGATE_LOG_JSON", "").lower() in ("1", "true", "yes")

    root_logger = logging.getLogger("repogate")
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(RepoGateFormatter(json_output=json_output))
    root_logger.addHandler(handler)

    root_logger.propagate = False


def get_logger(name: str = "repogate") -> logging.Logger:
    """Get a RepoGate logger instance.

    Args:
        name: Logger name, usually the module path ("repogate.safety.audit").
    """
    return logging.getLogger(name)


configure_logging()
