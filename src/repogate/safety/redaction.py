"""
RepoGate Parameter Redaction

Every persisted copy of tool arguments (confirmation-token snapshots,
audit entries, backups) passes through ``sanitize_parameters`` so that
secrets never reach disk or a second caller.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

REDACTED = "[REDACTED]"

SENSITIVE_KEYS = frozenset({
    "token",
    "password",
    "secret",
    "api_key",
    "private_key",
    "confirmation_token",
})


def sanitize_parameters(params: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return a deep copy of ``params`` with sensitive values replaced.

    Nested mappings are sanitized too; lists are copied as-is.
    """
    if not params:
        return {}
    sanitized: dict[str, Any] = {}
    for key, value in params.items():
        if key in SENSITIVE_KEYS:
            sanitized[key] = REDACTED
        elif isinstance(value, Mapping):
            sanitized[key] = sanitize_parameters(value)
        else:
            sanitized[key] = copy.deepcopy(value)
    return sanitized
