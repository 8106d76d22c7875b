"""
RepoGate Safety Engine

Policy engine that decides whether, and under which contract, an
administrative operation may run. For each call it:

1. Short-circuits when safety is disabled or the operation is not administrative
2. Validates the parameters
3. Composes the guard contract from the safety mode and the risk profile
4. Applies the dry-run gate
5. Applies the confirmation gate (issuing or consuming a token)

Contract by mode:
  STRICT      dry-run >= MEDIUM    confirmation >= MEDIUM      backup >= HIGH
  MODERATE    dry-run from table   confirmation >= threshold   backup from table
  PERMISSIVE  never                confirmation >= CRITICAL    backup >= CRITICAL
  DISABLED    nothing is checked
"""

from __future__ import annotations

import json
import os
import threading
import time
from collections.abc import Mapping
from datetime import timedelta
from pathlib import Path
from typing import Any

from repogate.config import load_config
from repogate.core.models import (
    AuditEntry,
    AuditResult,
    CheckOutcome,
    OperationRisk,
    RiskLevel,
    SafetyCheck,
    SafetyConfig,
    SafetyMode,
)
from repogate.exceptions import (
    ConfigError,
    ConfirmationError,
    OperationCancelledError,
    ParameterValidationError,
)
from repogate.logging import get_logger
from repogate.safety.audit import AuditLogger
from repogate.safety.audit import statistics as audit_statistics
from repogate.safety.confirmation import ConfirmationTokenStore, confirmation_message
from repogate.safety.redaction import SENSITIVE_KEYS, sanitize_parameters
from repogate.safety.risk_classifier import classify, get_operation_risk
from repogate.safety.validators import validate_parameters

logger = get_logger("repogate.safety.engine")

NO_ROLLBACK = "# No automatic rollback available"

MESSAGE_DISABLED = "⚠️ safety checks disabled - proceeding without validation"
MESSAGE_NOT_ADMIN = "not an administrative operation - no safety checks apply"
MESSAGE_PREVIEW = "🔍 dry-run mode - preview only"
MESSAGE_AUTHORIZED = "✅ safety checks passed - operation authorized"

_ROLLBACK_INVERSES = {
    "add_collaborator": "remove_collaborator",
    "remove_collaborator": "add_collaborator",
    "create_webhook": "delete_webhook",
    "update_repo_settings": "update_repo_settings",
}

# Operations whose inverse is only meaningful with the pre-change state.
_ROLLBACK_NEEDS_SNAPSHOT = frozenset({"update_repo_settings"})

_ROLLBACK_SKIP_KEYS = SENSITIVE_KEYS | {"dry_run"}


class SafetyEngine:
    """Computes guard contracts and records results for administrative operations.

    The token store and audit logger are injected so that tests and
    embedders can own their lifetime; both default to fresh instances
    derived from the configuration.
    """

    def __init__(
        self,
        config: SafetyConfig | None = None,
        token_store: ConfirmationTokenStore | None = None,
        audit_logger: AuditLogger | None = None,
    ):
        self._config = config or SafetyConfig()
        self._tokens = token_store or ConfirmationTokenStore()
        self._audit = audit_logger or AuditLogger(
            path=self._config.audit_log_path,
            enabled=self._config.enable_audit_log,
        )
        self._swap_lock = threading.Lock()

    @property
    def config(self) -> SafetyConfig:
        return self._config

    @property
    def token_store(self) -> ConfirmationTokenStore:
        return self._tokens

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit

    # ─── Decisions ───

    def check_operation(
        self,
        operation: str,
        parameters: Mapping[str, Any] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> SafetyCheck:
        """Decide whether ``operation`` may run with ``parameters``.

        If the returned check has ``can_proceed`` false, its message is
        the exact text to return to the caller.

        Raises:
            OperationCancelledError: ``cancel_event`` was set before any
                token was issued or consumed.
        """
        params = dict(parameters or {})
        _raise_if_cancelled(operation, cancel_event)

        config = self._config
        check = self._assess(operation, params, config)
        if (
            check.risk is None
            or check.outcome != CheckOutcome.AUTHORIZED
            or not check.requires_confirmation
        ):
            self._log_decision(check)
            return check

        _raise_if_cancelled(operation, cancel_event)

        presented = params.get("confirmation_token")
        if not presented:
            token = self._tokens.generate(operation, params, check.risk.level)
            check.can_proceed = False
            check.outcome = CheckOutcome.CONFIRMATION_REQUIRED
            check.confirmation_token = token.token
            check.message = confirmation_message(token, check.risk.description)
            self._log_decision(check)
            return check

        try:
            self._tokens.validate(presented, operation, params)
        except ConfirmationError as e:
            check.can_proceed = False
            check.outcome = CheckOutcome.CONFIRMATION_REJECTED
            check.error = e
            check.message = f"❌ confirmation token validation failed: {e}"
            self._log_decision(check)
            return check

        self._log_decision(check)
        return check

    def preview_operation(self, operation: str, parameters: Mapping[str, Any] | None = None) -> str:
        """Summarize risk, parameters and requirements without touching any token."""
        params = dict(parameters or {})
        check = self._assess(operation, params, self._config)

        risk = check.risk
        if risk is None:
            return f"Operation: {operation}\nNot an administrative operation - no safety checks apply"

        lines = [
            f"Operation: {operation}",
            f"Risk Level: {risk.level.value}",
            f"Description: {risk.description}",
            f"Category: {risk.category}",
            "",
            "Parameters:",
        ]
        shown = sanitize_parameters(params)
        if shown:
            lines.extend(f"  - {key}: {shown[key]}" for key in sorted(shown))
        else:
            lines.append("  (none)")

        lines.extend(["", "Safety Requirements:"])
        if check.requires_dry_run:
            lines.append("  - Dry-run preview required")
        if check.requires_confirmation:
            lines.append("  - Confirmation token required")
        if check.requires_backup:
            lines.append("  - Backup will be created")
        if not check.safeguards:
            lines.append("  (none)")

        lines.append("")
        if check.can_proceed or check.outcome == CheckOutcome.BYPASSED:
            if check.requires_confirmation and not params.get("confirmation_token"):
                lines.append("⚠️  Cannot proceed: a confirmation token will be issued on execution")
            else:
                lines.append("✅ Ready to execute")
        else:
            lines.append(f"⚠️  Cannot proceed: {check.message}")
        return "\n".join(lines)

    def _assess(self, operation: str, params: dict[str, Any], config: SafetyConfig) -> SafetyCheck:
        """Every step of a check except the confirmation gate. Never mutates state."""
        risk = classify(operation)

        if config.mode == SafetyMode.DISABLED:
            return SafetyCheck(
                operation=operation,
                risk=risk,
                can_proceed=True,
                outcome=CheckOutcome.BYPASSED,
                message=MESSAGE_DISABLED,
            )

        if risk is None:
            return SafetyCheck(
                operation=operation,
                can_proceed=True,
                outcome=CheckOutcome.NOT_ADMIN,
                message=MESSAGE_NOT_ADMIN,
            )

        try:
            validate_parameters(operation, params)
        except ParameterValidationError as e:
            return SafetyCheck(
                operation=operation,
                risk=risk,
                validation_errors=[str(e)],
                can_proceed=False,
                outcome=CheckOutcome.VALIDATION_FAILED,
                message=f"❌ parameter validation failed: {e}",
                error=e,
            )

        dry_run, confirmation, backup = self.compose_contract(risk, config)
        check = SafetyCheck(
            operation=operation,
            risk=risk,
            requires_dry_run=dry_run,
            requires_confirmation=confirmation,
            requires_backup=backup,
            can_proceed=True,
            outcome=CheckOutcome.AUTHORIZED,
            message=MESSAGE_AUTHORIZED,
        )

        if dry_run:
            if "dry_run" not in params:
                check.can_proceed = False
                check.outcome = CheckOutcome.DRY_RUN_REQUIRED
                check.message = (
                    f"🔍 dry-run required for {operation} (risk: {risk.level.value})\n\n"
                    f"{risk.description}\n\n"
                    "Call again with dry_run=true to preview the changes, "
                    "or dry_run=false to execute."
                )
            elif params["dry_run"] is True:
                check.can_proceed = False
                check.outcome = CheckOutcome.DRY_RUN_PREVIEW
                check.message = MESSAGE_PREVIEW

        return check

    @staticmethod
    def compose_contract(risk: OperationRisk, config: SafetyConfig) -> tuple[bool, bool, bool]:
        """(requires_dry_run, requires_confirmation, requires_backup) for a mode."""
        level = risk.level
        if config.mode == SafetyMode.STRICT:
            return level >= RiskLevel.MEDIUM, level >= RiskLevel.MEDIUM, level >= RiskLevel.HIGH
        if config.mode == SafetyMode.MODERATE:
            return (
                risk.requires_dry_run or level > config.require_dry_run_above,
                level >= config.require_confirmation_above,
                risk.requires_backup,
            )
        if config.mode == SafetyMode.PERMISSIVE:
            return False, level >= RiskLevel.CRITICAL, level >= RiskLevel.CRITICAL
        return False, False, False

    def _log_decision(self, check: SafetyCheck) -> None:
        if check.outcome in (CheckOutcome.NOT_ADMIN, CheckOutcome.BYPASSED):
            return
        logger.info(
            "Safety check evaluated",
            extra={
                "operation": check.operation,
                "risk_level": check.risk.level.value if check.risk else None,
                "outcome": check.outcome.value,
            },
        )

    # ─── Results ───

    def log_operation_result(
        self,
        operation: str,
        risk: OperationRisk | None,
        parameters: Mapping[str, Any] | None,
        result: AuditResult | str,
        changes: list[str] | None = None,
        rollback_command: str = "",
        duration: timedelta = timedelta(0),
        error: BaseException | str | None = None,
    ) -> AuditEntry | None:
        """Record the outcome of an executed operation in the audit log.

        Returns the entry as written, or None when auditing is disabled.

        Raises:
            UnknownOperationError: ``risk`` is None and the operation is unknown.
            AuditIOError: The audit log could not be written.
        """
        if not self._config.enable_audit_log:
            return None

        risk = risk or get_operation_risk(operation)
        params = dict(parameters or {})
        outcome = AuditResult(result)
        if error is not None and outcome == AuditResult.SUCCESS:
            outcome = AuditResult.FAILED

        error_message = None
        if error is not None:
            error_message = str(error) or type(error).__name__
        elif outcome != AuditResult.SUCCESS:
            error_message = f"operation finished with result '{outcome.value}'"

        entry = AuditEntry(
            operation=operation,
            risk_level=risk.level.value,
            arguments=params,
            result=outcome,
            changes=changes or None,
            rollback_command=rollback_command or None,
            confirmation_token=params.get("confirmation_token") or None,
            execution_time_ms=int(duration.total_seconds() * 1000),
            error_message=error_message,
        )
        return self._audit.log(entry)

    def statistics(self) -> dict[str, Any]:
        """Aggregate counts over the active audit log."""
        return audit_statistics(self._audit.path)

    # ─── Backups ───

    def create_backup(self, operation: str, data: Any) -> Path | None:
        """Write a JSON snapshot under the backup directory.

        Returns the file path, or None when auto-backup is off or the write failed.
        """
        config = self._config
        if not config.enable_auto_backup:
            return None

        backup_dir = Path(config.backup_path)
        path = backup_dir / f"{operation}-{int(time.time())}.json"
        suffix = 1
        while path.exists():
            path = backup_dir / f"{operation}-{int(time.time())}-{suffix}.json"
            suffix += 1
        try:
            backup_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(data, indent=2, default=str) + "\n", encoding="utf-8")
        except OSError as e:
            logger.warning(
                "Backup write failed: %s", e,
                extra={"operation": operation, "_extra": {"path": str(path)}},
            )
            return None
        logger.info("Backup written", extra={"operation": operation, "_extra": {"path": str(path)}})
        return path

    # ─── Configuration ───

    def update_config(self, new_config: SafetyConfig) -> None:
        """Swap the configuration; rebind the audit logger if its settings changed."""
        with self._swap_lock:
            old = self._config
            if new_config.audit_log_path != old.audit_log_path:
                self._audit = AuditLogger(
                    path=new_config.audit_log_path,
                    max_size_bytes=self._audit.max_size_bytes,
                    max_backups=self._audit.max_backups,
                    enabled=new_config.enable_audit_log,
                )
            elif new_config.enable_audit_log != old.enable_audit_log:
                self._audit.set_enabled(new_config.enable_audit_log)
            self._config = new_config
        logger.info(
            "Safety configuration updated",
            extra={"_extra": {"mode": new_config.mode.value, "audit": new_config.enable_audit_log}},
        )

    def reload_config(self, path: str | os.PathLike[str] | None = None) -> bool:
        """Reload from disk. On ConfigError the current configuration stays active."""
        try:
            new_config = load_config(path)
        except ConfigError as e:
            logger.error("Config reload failed, keeping previous configuration: %s", e)
            return False
        self.update_config(new_config)
        return True


def format_rollback_command(
    operation: str,
    parameters: Mapping[str, Any] | None,
    previous: Mapping[str, Any] | None = None,
) -> str:
    """Suggest the command that undoes ``operation``.

    ``previous`` is the pre-change state where one was captured; it is
    required for operations whose inverse restores old values.
    """
    inverse = _ROLLBACK_INVERSES.get(operation)
    if inverse is None:
        return NO_ROLLBACK

    params = dict(parameters or {})
    if operation in _ROLLBACK_NEEDS_SNAPSHOT:
        if not previous:
            return NO_ROLLBACK
        restored = {
            key: previous[key]
            for key in params
            if key not in ("owner", "repo") and key not in _ROLLBACK_SKIP_KEYS and key in previous
        }
        if not restored:
            return NO_ROLLBACK
        params = {"owner": params.get("owner"), "repo": params.get("repo"), **restored}

    args = "".join(
        f" --{key}={_format_arg(params[key])}"
        for key in sorted(params)
        if key not in _ROLLBACK_SKIP_KEYS and params[key] is not None
    )
    return f"{inverse}{args}"


def _format_arg(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return ",".join(str(v) for v in value)
    return str(value)


def _raise_if_cancelled(operation: str, cancel_event: threading.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelledError(operation)
