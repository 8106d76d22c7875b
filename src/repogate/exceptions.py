"""
RepoGate Custom Exceptions

Structured exception hierarchy for RepoGate.
All RepoGate-specific exceptions inherit from RepoGateError.

Exception hierarchy:
    RepoGateError
    +-- UnknownOperationError          (operation not in the risk table)
    +-- ParameterValidationError       (tool argument rejected by a validator)
    +-- ConfirmationError              (confirmation token rejected)
    |   +-- ConfirmationInvalidError   (unknown token)
    |   +-- ConfirmationExpiredError   (token past its expiry)
    |   +-- ConfirmationUsedError      (token already consumed)
    |   +-- ConfirmationMismatchError  (operation or bound parameters differ)
    +-- OperationCancelledError        (check aborted before any state change)
    +-- AuditIOError                   (audit log could not be written or read)
    +-- ConfigError                    (configuration file unreadable or invalid)
    +-- ForgeAPIError                  (forge REST call failed)
    +-- GitCommandError                (git subprocess failed)
    +-- JSONRPCError                   (protocol-level error with a JSON-RPC code)
"""

from __future__ import annotations

from typing import Any


class RepoGateError(Exception):
    """Base exception for all RepoGate errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class UnknownOperationError(RepoGateError):
    """Raised when an operation has no entry in the risk classification table."""

    def __init__(self, operation: str):
        super().__init__(f"unknown operation: {operation}", details={"operation": operation})
        self.operation = operation


class ParameterValidationError(RepoGateError):
    """Raised when a tool argument fails validation.

    Carries the parameter name, the rejected value and a short reason.
    """

    def __init__(self, parameter: str, value: Any, reason: str):
        super().__init__(
            f"validation failed for parameter '{parameter}': {reason} (value: {value})",
            details={"parameter": parameter, "reason": reason},
        )
        self.parameter = parameter
        self.value = value
        self.reason = reason


class ConfirmationError(RepoGateError):
    """Base class for confirmation-token rejections.

    ``reason`` is a stable machine-readable code.
    """

    reason = "invalid"

    def __init__(self, message: str, token: str = "", details: dict | None = None):
        super().__init__(message, details={"reason": self.reason, **(details or {})})
        self.token = token


class ConfirmationInvalidError(ConfirmationError):
    reason = "invalid"

    def __init__(self, token: str = ""):
        super().__init__("invalid confirmation token", token=token)


class ConfirmationExpiredError(ConfirmationError):
    reason = "expired"

    def __init__(self, token: str = ""):
        super().__init__("confirmation token has expired", token=token)


class ConfirmationUsedError(ConfirmationError):
    reason = "already_used"

    def __init__(self, token: str = ""):
        super().__init__("confirmation token has already been used", token=token)


class ConfirmationMismatchError(ConfirmationError):
    """Raised when a token is presented for another operation or other parameters."""

    def __init__(self, message: str, reason: str, token: str = "", mismatched: list[str] | None = None):
        self.reason = reason
        super().__init__(message, token=token, details={"mismatched": mismatched or []})
        self.mismatched = mismatched or []

    @classmethod
    def for_operation(cls, token: str, expected: str, actual: str) -> ConfirmationMismatchError:
        return cls(
            f"confirmation token is for a different operation ({expected} != {actual})",
            reason="operation_mismatch",
            token=token,
        )

    @classmethod
    def for_parameters(cls, token: str, keys: list[str]) -> ConfirmationMismatchError:
        return cls(
            "confirmation token parameters do not match current request",
            reason="parameters_mismatch",
            token=token,
            mismatched=keys,
        )


class OperationCancelledError(RepoGateError):
    """Raised when a safety check is cancelled before it mutates any state."""

    def __init__(self, operation: str):
        super().__init__(f"safety check cancelled: {operation}", details={"operation": operation})
        self.operation = operation


class AuditIOError(RepoGateError):
    """Raised when the audit log cannot be written, rotated, or read.

    Callers on the dispatch path log this as a warning and carry on;
    the audited operation is never failed because of it.
    """

    def __init__(self, message: str, path: str = "", details: dict | None = None):
        super().__init__(message, details={"path": path, **(details or {})})
        self.path = path


class ConfigError(RepoGateError):
    """Raised when a configuration file cannot be parsed or holds invalid values."""

    def __init__(self, message: str, path: str = "", details: dict | None = None):
        super().__init__(message, details={"path": path, **(details or {})})
        self.path = path


class ForgeAPIError(RepoGateError):
    """Raised when the forge REST API returns an error or is unreachable.

    ``status_code`` is 0 for transport failures.
    """

    def __init__(self, status_code: int, message: str, details: dict | None = None):
        prefix = f"forge API error ({status_code})" if status_code else "forge API unreachable"
        super().__init__(
            f"{prefix}: {message}",
            details={"status_code": status_code, **(details or {})},
        )
        self.status_code = status_code


class GitCommandError(RepoGateError):
    """Raised when a git subprocess exits non-zero or times out."""

    def __init__(self, args: list[str], returncode: int, stderr: str):
        command = " ".join(["git", *args])
        super().__init__(
            f"{command} failed (exit {returncode}): {stderr.strip()}",
            details={"args": args, "returncode": returncode},
        )
        self.returncode = returncode
        self.stderr = stderr


class JSONRPCError(RepoGateError):
    """Protocol-level error carrying a JSON-RPC error code."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(message, details={"code": code})
        self.code = code
        self.data = data
