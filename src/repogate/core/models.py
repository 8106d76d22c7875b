"""
RepoGate Core Data Models

Shared types for the safety subsystem. This module is the foundation
every other component imports from; it depends on nothing internal
beyond the exception hierarchy.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from repogate.exceptions import RepoGateError


# ─── Enums ───────────────────────────────────────────────────

_RISK_RANK = {"LOW": 0, "MEDIUM": 1, "HIGH": 2, "CRITICAL": 3}


class RiskLevel(str, Enum):
    """Risk classification for administrative operations.

    Totally ordered: LOW < MEDIUM < HIGH < CRITICAL.
    """
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _RISK_RANK[self.value]

    @classmethod
    def parse(cls, text: str) -> RiskLevel:
        """Parse a level name case-insensitively. Raises ValueError."""
        try:
            return cls(text.strip().upper())
        except ValueError:
            raise ValueError(f"invalid risk level: {text}") from None

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank >= other.rank

    def __str__(self) -> str:
        return self.value


class SafetyMode(str, Enum):
    """Composition strategy for per-operation guard contracts."""
    STRICT = "strict"
    MODERATE = "moderate"
    PERMISSIVE = "permissive"
    DISABLED = "disabled"

    @classmethod
    def parse(cls, text: str) -> SafetyMode:
        """Parse a mode name case-insensitively. Raises ValueError."""
        try:
            return cls(text.strip().lower())
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise ValueError(f"invalid safety mode: {text} (allowed: {allowed})") from None


class AuditResult(str, Enum):
    """Outcome recorded for one audited invocation."""
    SUCCESS = "success"
    FAILED = "failed"
    PARTIAL = "partial"


class CheckOutcome(str, Enum):
    """Why a safety check allowed or stopped a call."""
    BYPASSED = "bypassed"
    NOT_ADMIN = "not_admin"
    VALIDATION_FAILED = "validation_failed"
    DRY_RUN_REQUIRED = "dry_run_required"
    DRY_RUN_PREVIEW = "dry_run_preview"
    CONFIRMATION_REQUIRED = "confirmation_required"
    CONFIRMATION_REJECTED = "confirmation_rejected"
    AUTHORIZED = "authorized"


# ─── Risk Table Records ──────────────────────────────────────

class OperationRisk(BaseModel):
    """Static risk profile for one administrative operation."""
    model_config = ConfigDict(frozen=True)

    level: RiskLevel
    category: str
    description: str
    requires_dry_run: bool = False
    requires_confirmation: bool = False
    requires_backup: bool = False
    requires_audit: bool = True


# ─── Configuration ───────────────────────────────────────────

class SafetyConfig(BaseModel):
    """Process-wide safety configuration. Replaced as a whole, never mutated."""
    model_config = ConfigDict(frozen=True)

    mode: SafetyMode = SafetyMode.MODERATE
    enable_audit_log: bool = True
    audit_log_path: str = "./mcp-admin-audit.log"
    require_confirmation_above: RiskLevel = RiskLevel.HIGH
    require_dry_run_above: RiskLevel = RiskLevel.MEDIUM
    enable_auto_backup: bool = True
    backup_path: str = "./.mcp-backups"


# ─── Confirmation Tokens ─────────────────────────────────────

class ConfirmationToken(BaseModel):
    """Short-lived single-use capability bound to an operation and its parameters."""
    token: str
    operation: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    risk_level: RiskLevel
    created_at: datetime
    expires_at: datetime
    used: bool = False

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


# ─── Audit ───────────────────────────────────────────────────

_OPTIONAL_AUDIT_KEYS = ("changes", "rollback_cmd", "confirmation_token", "error_message")


class AuditEntry(BaseModel):
    """One audited tool invocation, serialized as a single JSON line."""
    model_config = ConfigDict(populate_by_name=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    operation: str
    risk_level: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    result: AuditResult
    changes: list[str] | None = None
    rollback_command: str | None = Field(default=None, alias="rollback_cmd")
    confirmation_token: str | None = None
    execution_time_ms: int = 0
    error_message: str | None = None

    def to_json_line(self) -> str:
        """Serialize to one JSON line, omitting fields that carry no value."""
        data = self.model_dump(mode="json", by_alias=True)
        for key in _OPTIONAL_AUDIT_KEYS:
            if not data.get(key):
                data.pop(key, None)
        return json.dumps(data, ensure_ascii=False, default=str)


# ─── Decisions ───────────────────────────────────────────────

class SafetyCheck(BaseModel):
    """Decision record returned by the policy engine for every call.

    If ``can_proceed`` is false, ``message`` is the exact text to hand
    back to the caller and nothing may be executed.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    operation: str
    risk: OperationRisk | None = None
    requires_dry_run: bool = False
    requires_confirmation: bool = False
    requires_backup: bool = False
    validation_errors: list[str] = Field(default_factory=list)
    can_proceed: bool = False
    message: str = ""
    outcome: CheckOutcome = CheckOutcome.AUTHORIZED
    confirmation_token: str | None = None
    error: RepoGateError | None = Field(default=None, exclude=True)

    @property
    def safeguards(self) -> int:
        """Number of distinct safeguards in the effective contract."""
        return sum((self.requires_dry_run, self.requires_confirmation, self.requires_backup))
