"""
RepoGate Safety Middleware

Sits between a tools/call request and the forge client. Every
administrative call is:

1. Checked by the SafetyEngine (validation, dry-run gate, confirmation gate)
2. Previewed instead of executed when dry_run=true
3. Backed up first when the contract requires it and a snapshot is available
4. Executed and timed
5. Written to the audit log (failures there are warnings, never errors)

Executor errors are audited and then re-raised unchanged.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from repogate.core.models import AuditResult, CheckOutcome, RiskLevel, SafetyCheck
from repogate.exceptions import AuditIOError, RepoGateError
from repogate.logging import get_logger
from repogate.safety.engine import NO_ROLLBACK, SafetyEngine, format_rollback_command
from repogate.safety.redaction import sanitize_parameters

logger = get_logger("repogate.server.middleware")


@dataclass
class ExecutionOutcome:
    """What an executor reports back: display text plus audit deltas."""
    text: str
    changes: list[str] = field(default_factory=list)
    partial: bool = False


Executor = Callable[[], Awaitable[ExecutionOutcome | str] | ExecutionOutcome | str]
Preview = Callable[[], Awaitable[str] | str]
Snapshot = Callable[[], Awaitable[Any] | Any]


class SafetyMiddleware:
    """Wraps tool execution with the safety engine's decisions and audit trail."""

    def __init__(self, engine: SafetyEngine):
        self._engine = engine

    @property
    def engine(self) -> SafetyEngine:
        return self._engine

    async def wrap_execution(
        self,
        operation: str,
        params: Mapping[str, Any],
        executor: Executor,
        preview: Preview | None = None,
        snapshot: Snapshot | None = None,
    ) -> str:
        """Run ``executor`` only if the engine authorizes ``operation``.

        Returns the text to hand back to the caller: a governance
        message, a dry-run preview, or the executor's output.
        """
        check = self._engine.check_operation(operation, params)

        if not check.can_proceed:
            if check.outcome == CheckOutcome.DRY_RUN_PREVIEW and preview is not None:
                return self.handle_dry_run(check, await _resolve(preview()))
            return check.message

        previous = None
        if check.requires_backup and snapshot is not None:
            previous = await self._backup(operation, params, snapshot)

        start = time.monotonic()
        outcome: ExecutionOutcome | None = None
        error: Exception | None = None
        try:
            outcome = _coerce(await _resolve(executor()))
        except Exception as e:
            error = e
        duration = timedelta(seconds=time.monotonic() - start)

        if error is not None:
            result = AuditResult.FAILED
        elif outcome is not None and outcome.partial:
            result = AuditResult.PARTIAL
        else:
            result = AuditResult.SUCCESS

        rollback = format_rollback_command(operation, params, previous)
        self._audit(check, params, result, outcome, rollback, duration, error)

        if outcome is None:
            raise error if error is not None else RuntimeError(f"{operation} produced no outcome")

        text = outcome.text
        if check.risk is not None and check.risk.level >= RiskLevel.HIGH and rollback != NO_ROLLBACK:
            text += f"\n\n🔄 Rollback command:\n{rollback}"
        return text

    def handle_dry_run(self, check: SafetyCheck, preview_text: str) -> str:
        """Format a dry-run preview for the caller."""
        risk = check.risk
        level = risk.level.value if risk else "UNKNOWN"
        category = risk.category if risk else "unknown"
        return (
            f"🔍 DRY-RUN PREVIEW: {check.operation}\n\n"
            f"Risk Level: {level}\n"
            f"Category: {category}\n\n"
            f"{preview_text}\n\n"
            "To execute this operation:\n"
            "  dry_run=false\n\n"
            "⚠️  This is a preview only - no changes have been made."
        )

    async def _backup(self, operation: str, params: Mapping[str, Any], snapshot: Snapshot) -> Any:
        try:
            previous = await _resolve(snapshot())
        except RepoGateError as e:
            logger.warning(
                "Pre-change snapshot failed, continuing without backup: %s", e,
                extra={"operation": operation},
            )
            return None
        self._engine.create_backup(operation, {
            "operation": operation,
            "parameters": sanitize_parameters(params),
            "state": previous,
        })
        return previous

    def _audit(
        self,
        check: SafetyCheck,
        params: Mapping[str, Any],
        result: AuditResult,
        outcome: ExecutionOutcome | None,
        rollback: str,
        duration: timedelta,
        error: Exception | None,
    ) -> None:
        if check.risk is None:
            return
        try:
            self._engine.log_operation_result(
                check.operation,
                check.risk,
                params,
                result,
                changes=outcome.changes if outcome else None,
                rollback_command=rollback,
                duration=duration,
                error=error,
            )
        except AuditIOError as e:
            logger.warning(
                "Audit log write failed: %s", e,
                extra={"operation": check.operation, "result": result.value},
            )
        logger.info(
            "Operation executed",
            extra={
                "operation": check.operation,
                "risk_level": check.risk.level.value,
                "result": result.value,
                "duration_ms": int(duration.total_seconds() * 1000),
            },
        )


async def _resolve(value: Any) -> Any:
    """Support both sync and async callables."""
    if asyncio.iscoroutine(value) or asyncio.isfuture(value):
        return await value
    return value


def _coerce(value: ExecutionOutcome | str) -> ExecutionOutcome:
    if isinstance(value, ExecutionOutcome):
        return value
    return ExecutionOutcome(text=str(value))
