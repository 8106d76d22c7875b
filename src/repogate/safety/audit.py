"""
RepoGate Audit Log

Append-only JSON-lines record of every administrative tool invocation.
Properties:
- One JSON object per line, UTF-8, newline-delimited
- Sensitive arguments redacted, confirmation tokens truncated
- Size-triggered rotation before the write that would overflow:
  path -> path.1 -> ... -> path.N, the oldest backup dropped
- All writes, rotation decisions and renames under one lock per logger

Query helpers read the current file only (not rotated backups) and skip
malformed lines.
"""

from __future__ import annotations

import os
import threading
from collections import Counter
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from repogate.core.models import AuditEntry, AuditResult, RiskLevel
from repogate.exceptions import AuditIOError
from repogate.logging import get_logger
from repogate.safety.redaction import sanitize_parameters

logger = get_logger("repogate.safety.audit")

DEFAULT_AUDIT_LOG_PATH = "./mcp-admin-audit.log"
DEFAULT_MAX_SIZE_BYTES = 10 * 1024 * 1024
DEFAULT_MAX_BACKUPS = 5
TOKEN_DISPLAY_LENGTH = 10


def truncate_token(token: str | None) -> str | None:
    """Keep the first characters of a token so it can be correlated but not replayed."""
    if token and len(token) > TOKEN_DISPLAY_LENGTH:
        return token[:TOKEN_DISPLAY_LENGTH] + "…"
    return token


class AuditLogger:
    """Writes audit entries to a rotating JSON-lines file."""

    def __init__(
        self,
        path: str | os.PathLike[str] = DEFAULT_AUDIT_LOG_PATH,
        max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES,
        max_backups: int = DEFAULT_MAX_BACKUPS,
        enabled: bool = True,
    ):
        self._path = Path(path)
        self._max_size_bytes = max_size_bytes
        self._max_backups = max_backups
        self._enabled = enabled
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def max_size_bytes(self) -> int:
        return self._max_size_bytes

    @property
    def max_backups(self) -> int:
        return self._max_backups

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        with self._lock:
            self._enabled = enabled

    def backup_path(self, index: int) -> Path:
        return self._path.with_name(f"{self._path.name}.{index}")

    def log(self, entry: AuditEntry) -> AuditEntry | None:
        """Append an entry. Returns the entry as written, or None when disabled.

        Raises:
            AuditIOError: The file could not be rotated or written.
        """
        with self._lock:
            if not self._enabled:
                return None

            prepared = entry.model_copy(update={
                "arguments": sanitize_parameters(entry.arguments),
                "confirmation_token": truncate_token(entry.confirmation_token),
            })
            line = prepared.to_json_line() + "\n"

            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                if self._path.exists() and self._path.stat().st_size >= self._max_size_bytes:
                    self._rotate()
                with self._path.open("a", encoding="utf-8") as fh:
                    fh.write(line)
            except OSError as e:
                raise AuditIOError(f"failed to write audit log: {e}", path=str(self._path)) from e

        return prepared

    def _rotate(self) -> None:
        """Shift backups up by one and move the live file to ``.1``. Caller holds the lock."""
        if self._max_backups <= 0:
            self._path.unlink()
            return

        oldest = self.backup_path(self._max_backups)
        if oldest.exists():
            oldest.unlink()
        for index in range(self._max_backups - 1, 0, -1):
            source = self.backup_path(index)
            if source.exists():
                os.replace(source, self.backup_path(index + 1))
        os.replace(self._path, self.backup_path(1))
        logger.info("Audit log rotated", extra={"_extra": {"path": str(self._path)}})


# ─── Query helpers ───────────────────────────────────────────

def read_all(path: str | os.PathLike[str]) -> list[AuditEntry]:
    """Parse every well-formed entry in the live log file, oldest first.

    Raises:
        AuditIOError: The file does not exist or cannot be read.
    """
    log_path = Path(path)
    try:
        raw = log_path.read_bytes()
    except OSError as e:
        raise AuditIOError(f"failed to read audit log: {e}", path=str(log_path)) from e

    entries: list[AuditEntry] = []
    for raw_line in raw.splitlines():
        try:
            line = raw_line.decode("utf-8")
        except UnicodeDecodeError:
            continue
        if not line.strip():
            continue
        try:
            entries.append(AuditEntry.model_validate_json(line))
        except ValidationError:
            continue
    return entries


def recent(path: str | os.PathLike[str], n: int) -> list[AuditEntry]:
    """The last ``n`` entries in chronological order."""
    if n <= 0:
        return []
    return read_all(path)[-n:]


def filter_by_operation(path: str | os.PathLike[str], operation: str) -> list[AuditEntry]:
    return [e for e in read_all(path) if e.operation == operation]


def filter_by_risk_level(path: str | os.PathLike[str], level: RiskLevel | str) -> list[AuditEntry]:
    wanted = level.value if isinstance(level, RiskLevel) else str(level).upper()
    return [e for e in read_all(path) if e.risk_level == wanted]


def filter_by_result(path: str | os.PathLike[str], result: AuditResult | str) -> list[AuditEntry]:
    wanted = AuditResult(result)
    return [e for e in read_all(path) if e.result == wanted]


def statistics(path: str | os.PathLike[str]) -> dict[str, Any]:
    """Entry counts overall and grouped by risk level, result, and operation."""
    entries = read_all(path)
    return {
        "total_entries": len(entries),
        "by_risk_level": dict(Counter(e.risk_level for e in entries)),
        "by_result": dict(Counter(e.result.value for e in entries)),
        "by_operation": dict(Counter(e.operation for e in entries)),
    }


def cleanup_old(directory: str | os.PathLike[str], days_to_keep: int) -> int:
    """Delete ``*.log`` files under ``directory`` last modified before the cutoff.

    Returns the number of files removed.
    """
    cutoff = (datetime.now(UTC) - timedelta(days=days_to_keep)).timestamp()
    removed = 0
    try:
        for log_file in Path(directory).rglob("*.log"):
            if log_file.is_file() and log_file.stat().st_mtime < cutoff:
                log_file.unlink()
                removed += 1
    except OSError as e:
        raise AuditIOError(f"failed to clean up audit logs: {e}", path=str(directory)) from e
    if removed:
        logger.info("Old audit logs removed", extra={"_extra": {"count": removed}})
    return removed


# ─── Default logger ──────────────────────────────────────────

_default_logger: AuditLogger | None = None
_default_lock = threading.Lock()


def get_default_logger() -> AuditLogger:
    """Process-wide logger used when no logger is injected."""
    global _default_logger
    with _default_lock:
        if _default_logger is None:
            _default_logger = AuditLogger()
        return _default_logger


def set_default_logger(audit_logger: AuditLogger) -> None:
    global _default_logger
    with _default_lock:
        _default_logger = audit_logger


def log_operation(entry: AuditEntry) -> AuditEntry | None:
    """Write an entry through the default logger."""
    return get_default_logger().log(entry)
