"""
RepoGate Safety & Risk Governance

Every administrative tool call is mediated here before execution:

    Dispatcher → SafetyEngine.check_operation → execute → log_operation_result

Components:
- risk_classifier: static operation → risk profile table
- validators: per-operation argument validation
- confirmation: single-use confirmation tokens
- audit: rotating JSON-lines audit log
- engine: SafetyEngine composing the above per safety mode

The module-level functions below use a process-wide default engine for
callers that do not manage their own.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from typing import Any

from repogate.core.models import AuditEntry, SafetyCheck
from repogate.safety.audit import AuditLogger, get_default_logger
from repogate.safety.confirmation import ConfirmationTokenStore, get_default_store
from repogate.safety.engine import NO_ROLLBACK, SafetyEngine, format_rollback_command
from repogate.safety.risk_classifier import classify, is_admin

_default_engine: SafetyEngine | None = None
_default_lock = threading.Lock()


def get_default_engine() -> SafetyEngine:
    """Process-wide engine sharing the default token store and audit logger."""
    global _default_engine
    with _default_lock:
        if _default_engine is None:
            _default_engine = SafetyEngine(
                token_store=get_default_store(),
                audit_logger=get_default_logger(),
            )
        return _default_engine


def set_default_engine(engine: SafetyEngine | None) -> None:
    global _default_engine
    with _default_lock:
        _default_engine = engine


def check_operation(operation: str, parameters: Mapping[str, Any] | None = None) -> SafetyCheck:
    return get_default_engine().check_operation(operation, parameters)


def preview_operation(operation: str, parameters: Mapping[str, Any] | None = None) -> str:
    return get_default_engine().preview_operation(operation, parameters)


def log_operation_result(operation: str, parameters: Mapping[str, Any] | None, result: str, **kwargs: Any) -> AuditEntry | None:
    return get_default_engine().log_operation_result(operation, None, parameters, result, **kwargs)


__all__ = [
    "NO_ROLLBACK",
    "AuditLogger",
    "ConfirmationTokenStore",
    "SafetyEngine",
    "check_operation",
    "classify",
    "format_rollback_command",
    "get_default_engine",
    "is_admin",
    "log_operation_result",
    "preview_operation",
    "set_default_engine",
]
