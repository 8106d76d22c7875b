"""Tests for the RepoGate safety engine.

Covers the end-to-end governance scenarios, contract composition per
safety mode, previews, result logging, rollback synthesis, backups and
configuration swaps.
"""

import json
import re
import threading
from datetime import timedelta

import pytest

from repogate.core.models import AuditResult, CheckOutcome, RiskLevel, SafetyConfig, SafetyMode
from repogate.exceptions import (
    ConfirmationExpiredError,
    ConfirmationMismatchError,
    OperationCancelledError,
    ParameterValidationError,
    UnknownOperationError,
)
from repogate.safety import audit
from repogate.safety.engine import NO_ROLLBACK, SafetyEngine, format_rollback_command
from repogate.safety.risk_classifier import OPERATION_RISKS, classify

TOKEN_LINE = re.compile(r"^  confirmation_token=(CONF:[0-9a-f]{12})$", re.MULTILINE)

ADD_ALICE = {"owner": "acme", "repo": "demo", "username": "alice", "permission": "push"}
DELETE_HOOK = {"owner": "acme", "repo": "demo", "hook_id": 123, "dry_run": False}


def _token_from(message: str) -> str:
    match = TOKEN_LINE.search(message)
    assert match, message
    return match.group(1)


# ─── End-to-end scenarios ────────────────────────────────────

class TestScenarios:
    def test_low_read_proceeds_and_is_audited(self, engine, audit_path):
        params = {"owner": "acme", "repo": "demo"}
        check = engine.check_operation("get_repo_settings", params)
        assert check.can_proceed
        assert check.confirmation_token is None
        assert check.outcome == CheckOutcome.AUTHORIZED
        assert engine.token_store.active_count() == 0

        engine.log_operation_result("get_repo_settings", check.risk, params, AuditResult.SUCCESS)
        entries = audit.read_all(audit_path)
        assert entries[-1].risk_level == "LOW"
        assert entries[-1].result == AuditResult.SUCCESS

    def test_medium_write_requires_dry_run(self, engine):
        check = engine.check_operation("add_collaborator", ADD_ALICE)
        assert not check.can_proceed
        assert check.outcome == CheckOutcome.DRY_RUN_REQUIRED
        assert "dry-run required" in check.message

        retry = engine.check_operation("add_collaborator", {**ADD_ALICE, "dry_run": False})
        assert retry.can_proceed
        assert not retry.requires_confirmation

    def test_dry_run_true_is_preview(self, engine):
        check = engine.check_operation("add_collaborator", {**ADD_ALICE, "dry_run": True})
        assert not check.can_proceed
        assert check.outcome == CheckOutcome.DRY_RUN_PREVIEW
        assert "dry-run mode - preview only" in check.message

    def test_high_two_call_handshake(self, engine):
        first = engine.check_operation("delete_webhook", DELETE_HOOK)
        assert not first.can_proceed
        assert first.outcome == CheckOutcome.CONFIRMATION_REQUIRED
        token = _token_from(first.message)
        assert token == first.confirmation_token

        second = engine.check_operation("delete_webhook", {**DELETE_HOOK, "confirmation_token": token})
        assert second.can_proceed
        assert second.outcome == CheckOutcome.AUTHORIZED

        third = engine.check_operation("delete_webhook", {**DELETE_HOOK, "confirmation_token": token})
        assert not third.can_proceed
        assert third.outcome == CheckOutcome.CONFIRMATION_REJECTED
        assert "already been used" in third.message or "invalid" in third.message

    def test_token_parameter_binding(self, token_store):
        bound = {"owner": "acme", "repo": "demo", "hook_id": 123}
        token = token_store.generate("delete_webhook", bound, RiskLevel.HIGH).token
        with pytest.raises(ConfirmationMismatchError):
            token_store.validate(token, "delete_webhook", {**bound, "owner": "evil"})
        token_store.validate(token, "delete_webhook", {**bound, "dry_run": False})

    def test_path_traversal_rejected(self, engine):
        check = engine.check_operation("add_collaborator", {**ADD_ALICE, "owner": "../etc"})
        assert not check.can_proceed
        assert check.outcome == CheckOutcome.VALIDATION_FAILED
        assert "path traversal" in check.message
        assert isinstance(check.error, ParameterValidationError)
        assert len(check.validation_errors) == 1

    def test_audit_rotation(self, tmp_path):
        from repogate.safety.audit import AuditLogger

        path = tmp_path / "audit.log"
        logger = AuditLogger(path=path, max_size_bytes=100, max_backups=5)
        engine = SafetyEngine(
            config=SafetyConfig(audit_log_path=str(path)),
            audit_logger=logger,
        )
        for _ in range(20):
            engine.log_operation_result("list_webhooks", None, {"owner": "acme"}, AuditResult.SUCCESS)

        assert path.exists() and path.stat().st_size > 0
        assert logger.backup_path(1).exists() and logger.backup_path(1).stat().st_size > 0
        assert not logger.backup_path(6).exists()


# ─── Short circuits and errors ───────────────────────────────

class TestShortCircuits:
    def test_disabled_mode_bypasses_everything(self, make_engine):
        engine = make_engine(SafetyMode.DISABLED)
        check = engine.check_operation("delete_repository", {"owner": "../etc"})
        assert check.can_proceed
        assert check.outcome == CheckOutcome.BYPASSED
        assert "safety checks disabled" in check.message

    def test_non_admin_operation(self, engine):
        check = engine.check_operation("git_status", {"path": "../../"})
        assert check.can_proceed
        assert check.outcome == CheckOutcome.NOT_ADMIN
        assert check.risk is None

    def test_unknown_operation_result_logging_raises(self, engine):
        with pytest.raises(UnknownOperationError):
            engine.log_operation_result("frobnicate", None, {}, AuditResult.SUCCESS)

    def test_expired_token_rejected(self, engine, clock):
        token = engine.check_operation("delete_webhook", DELETE_HOOK).confirmation_token
        clock.advance(minutes=6)
        check = engine.check_operation("delete_webhook", {**DELETE_HOOK, "confirmation_token": token})
        assert not check.can_proceed
        assert isinstance(check.error, ConfirmationExpiredError)
        assert "expired" in check.message

    def test_token_for_other_operation_rejected(self, engine):
        token = engine.check_operation("delete_webhook", DELETE_HOOK).confirmation_token
        check = engine.check_operation(
            "remove_collaborator",
            {"owner": "acme", "repo": "demo", "username": "bob", "dry_run": False, "confirmation_token": token},
        )
        assert not check.can_proceed
        assert isinstance(check.error, ConfirmationMismatchError)

    def test_cancelled_before_token_issue(self, engine):
        event = threading.Event()
        event.set()
        with pytest.raises(OperationCancelledError):
            engine.check_operation("delete_webhook", DELETE_HOOK, cancel_event=event)
        assert engine.token_store.active_count() == 0

    def test_dry_run_must_be_boolean(self, engine):
        check = engine.check_operation("add_collaborator", {**ADD_ALICE, "dry_run": "false"})
        assert check.outcome == CheckOutcome.VALIDATION_FAILED

    def test_trailing_newline_in_owner_rejected(self, engine):
        check = engine.check_operation("get_repo_settings", {"owner": "acme\n", "repo": "demo"})
        assert not check.can_proceed
        assert check.outcome == CheckOutcome.VALIDATION_FAILED


# ─── Contracts per mode ──────────────────────────────────────

class TestContracts:
    @pytest.mark.parametrize("operation", sorted(OPERATION_RISKS))
    def test_mode_monotonicity(self, operation):
        risk = classify(operation)
        counts = [
            sum(SafetyEngine.compose_contract(risk, SafetyConfig(mode=mode)))
            for mode in (SafetyMode.STRICT, SafetyMode.MODERATE, SafetyMode.PERMISSIVE, SafetyMode.DISABLED)
        ]
        assert counts == sorted(counts, reverse=True)
        assert counts[-1] == 0

    def test_strict_requires_confirmation_at_medium(self, make_engine):
        engine = make_engine(SafetyMode.STRICT)
        check = engine.check_operation("accept_invitation", {"invitation_id": 7, "dry_run": False})
        assert not check.can_proceed
        assert check.outcome == CheckOutcome.CONFIRMATION_REQUIRED
        assert check.confirmation_token.startswith("CONF:")

    def test_strict_dry_run_gate(self, make_engine):
        engine = make_engine(SafetyMode.STRICT)
        check = engine.check_operation("accept_invitation", {"invitation_id": 7})
        assert check.outcome == CheckOutcome.DRY_RUN_REQUIRED

    def test_moderate_threshold_configurable(self, make_engine):
        engine = make_engine(SafetyMode.MODERATE, require_confirmation_above=RiskLevel.MEDIUM)
        check = engine.check_operation("add_collaborator", {**ADD_ALICE, "dry_run": False})
        assert check.outcome == CheckOutcome.CONFIRMATION_REQUIRED

    def test_moderate_accept_invitation_needs_nothing(self, engine):
        check = engine.check_operation("accept_invitation", {"invitation_id": 7})
        assert check.can_proceed
        assert check.safeguards == 0

    def test_permissive_high_proceeds(self, make_engine):
        engine = make_engine(SafetyMode.PERMISSIVE)
        check = engine.check_operation("delete_webhook", {"owner": "acme", "repo": "demo", "hook_id": 1})
        assert check.can_proceed
        assert not check.requires_dry_run

    def test_permissive_critical_needs_confirmation(self, make_engine):
        engine = make_engine(SafetyMode.PERMISSIVE)
        check = engine.check_operation("delete_repository", {"owner": "acme", "repo": "demo"})
        assert check.outcome == CheckOutcome.CONFIRMATION_REQUIRED
        assert check.requires_backup
        assert check.message.startswith("💣 CRITICAL RISK OPERATION: delete_repository")


# ─── Preview ─────────────────────────────────────────────────

class TestPreview:
    def test_preview_does_not_issue_tokens(self, engine):
        text = engine.preview_operation("delete_webhook", {**DELETE_HOOK, "secret": "s"})
        assert engine.token_store.active_count() == 0
        assert "Operation: delete_webhook" in text
        assert "Risk Level: HIGH" in text
        assert "Category: webhooks" in text
        assert "  - secret: [REDACTED]" in text
        assert "  - Confirmation token required" in text
        assert "  - Backup will be created" in text

    def test_preview_parameters_sorted(self, engine):
        text = engine.preview_operation("add_collaborator", {"username": "alice", "owner": "acme", "repo": "demo"})
        lines = [line for line in text.splitlines() if line.startswith("  - ") and ":" in line]
        keys = [line[4:].split(":")[0] for line in lines if not line.startswith("  - Dry")]
        assert keys == ["owner", "repo", "username"]

    def test_preview_blocked_message(self, engine):
        text = engine.preview_operation("add_collaborator", ADD_ALICE)
        assert "⚠️  Cannot proceed: 🔍 dry-run required" in text

    def test_preview_ready(self, engine):
        text = engine.preview_operation("list_webhooks", {"owner": "acme", "repo": "demo"})
        assert text.endswith("✅ Ready to execute")

    def test_preview_non_admin(self, engine):
        assert engine.preview_operation("git_log") == (
            "Operation: git_log\nNot an administrative operation - no safety checks apply"
        )

    def test_preview_non_admin_when_disabled(self, make_engine):
        engine = make_engine(SafetyMode.DISABLED)
        assert engine.preview_operation("git_status", {}) == (
            "Operation: git_status\nNot an administrative operation - no safety checks apply"
        )

    def test_preview_admin_when_disabled(self, make_engine):
        engine = make_engine(SafetyMode.DISABLED)
        text = engine.preview_operation("delete_webhook", DELETE_HOOK)
        assert "Risk Level: HIGH" in text
        assert "Safety Requirements:\n  (none)" in text
        assert text.endswith("✅ Ready to execute")
        assert engine.token_store.active_count() == 0


# ─── Result logging ──────────────────────────────────────────

class TestLogOperationResult:
    def test_entry_contents(self, engine, audit_path):
        entry = engine.log_operation_result(
            "delete_webhook",
            classify("delete_webhook"),
            {**DELETE_HOOK, "confirmation_token": "CONF:0123456789ab", "secret": "x"},
            AuditResult.SUCCESS,
            changes=["webhook 123 deleted"],
            rollback_command=NO_ROLLBACK,
            duration=timedelta(milliseconds=250),
        )
        assert entry.execution_time_ms == 250
        assert entry.confirmation_token == "CONF:01234…"
        assert len(entry.confirmation_token) <= 13
        data = json.loads(audit_path.read_text(encoding="utf-8").splitlines()[-1])
        assert data["arguments"]["secret"] == "[REDACTED]"
        assert data["arguments"]["confirmation_token"] == "[REDACTED]"
        assert data["changes"] == ["webhook 123 deleted"]

    def test_error_forces_failed(self, engine):
        entry = engine.log_operation_result(
            "list_webhooks", None, {}, AuditResult.SUCCESS, error=RuntimeError("boom"),
        )
        assert entry.result == AuditResult.FAILED
        assert entry.error_message == "boom"

    def test_partial_without_error_gets_message(self, engine):
        entry = engine.log_operation_result("list_webhooks", None, {}, "partial")
        assert entry.result == AuditResult.PARTIAL
        assert entry.error_message == "operation finished with result 'partial'"

    def test_disabled_audit_is_noop(self, make_engine, audit_path):
        engine = make_engine(enable_audit_log=False)
        assert engine.log_operation_result("list_webhooks", None, {}, AuditResult.SUCCESS) is None
        assert not audit_path.exists()

    def test_statistics(self, engine):
        engine.log_operation_result("list_webhooks", None, {}, AuditResult.SUCCESS)
        engine.log_operation_result("delete_webhook", None, {}, AuditResult.FAILED)
        stats = engine.statistics()
        assert stats["total_entries"] == 2
        assert stats["by_result"] == {"success": 1, "failed": 1}


# ─── Rollback synthesis ──────────────────────────────────────

class TestRollback:
    def test_add_collaborator_inverse(self):
        cmd = format_rollback_command("add_collaborator", {**ADD_ALICE, "dry_run": False})
        assert cmd == "remove_collaborator --owner=acme --permission=push --repo=demo --username=alice"

    def test_remove_collaborator_inverse(self):
        cmd = format_rollback_command("remove_collaborator", {"owner": "acme", "repo": "demo", "username": "bob"})
        assert cmd == "add_collaborator --owner=acme --repo=demo --username=bob"

    def test_create_webhook_inverse_excludes_sensitive(self):
        cmd = format_rollback_command("create_webhook", {
            "owner": "acme", "repo": "demo", "url": "https://x.example", "events": ["push", "release"],
            "secret": "s", "confirmation_token": "CONF:0123456789ab", "active": True,
        })
        assert cmd == (
            "delete_webhook --active=true --events=push,release --owner=acme --repo=demo --url=https://x.example"
        )

    def test_no_inverse(self):
        assert format_rollback_command("delete_repository", {"owner": "acme"}) == NO_ROLLBACK
        assert format_rollback_command("delete_webhook", DELETE_HOOK) == NO_ROLLBACK

    def test_repo_settings_needs_snapshot(self):
        params = {"owner": "acme", "repo": "demo", "has_wiki": False}
        assert format_rollback_command("update_repo_settings", params) == NO_ROLLBACK

    def test_repo_settings_restores_previous_values(self):
        params = {"owner": "acme", "repo": "demo", "has_wiki": False, "visibility": "private", "dry_run": False}
        previous = {"has_wiki": True, "visibility": "public", "has_issues": True, "name": "demo"}
        assert format_rollback_command("update_repo_settings", params, previous) == (
            "update_repo_settings --has_wiki=true --owner=acme --repo=demo --visibility=public"
        )


# ─── Backups ─────────────────────────────────────────────────

class TestBackups:
    def test_writes_json_snapshot(self, engine, tmp_path):
        path = engine.create_backup("delete_webhook", {"id": 123, "config": {"url": "https://x"}})
        assert path is not None
        assert path.parent == tmp_path / "backups"
        assert path.name.startswith("delete_webhook-")
        assert json.loads(path.read_text(encoding="utf-8"))["id"] == 123

    def test_unique_names(self, engine):
        first = engine.create_backup("delete_webhook", {})
        second = engine.create_backup("delete_webhook", {})
        assert first != second

    def test_disabled(self, make_engine):
        engine = make_engine(enable_auto_backup=False)
        assert engine.create_backup("delete_webhook", {}) is None

    def test_unwritable_directory_returns_none(self, make_engine, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        engine = make_engine(backup_path=str(blocker / "sub"))
        assert engine.create_backup("delete_webhook", {}) is None


# ─── Configuration swaps ─────────────────────────────────────

class TestConfiguration:
    def test_update_config_changes_contract(self, engine):
        engine.update_config(engine.config.model_copy(update={"mode": SafetyMode.PERMISSIVE}))
        assert engine.check_operation("add_collaborator", ADD_ALICE).can_proceed

    def test_update_config_rebinds_audit_path(self, engine, tmp_path):
        new_path = tmp_path / "elsewhere.log"
        engine.update_config(engine.config.model_copy(update={"audit_log_path": str(new_path)}))
        assert engine.audit_logger.path == new_path
        engine.log_operation_result("list_webhooks", None, {}, AuditResult.SUCCESS)
        assert new_path.exists()

    def test_update_config_toggles_audit(self, engine, audit_path):
        engine.update_config(engine.config.model_copy(update={"enable_audit_log": False}))
        assert not engine.audit_logger.enabled

    def test_reload_config(self, engine, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"safetyMode": "strict"}), encoding="utf-8")
        assert engine.reload_config(path) is True
        assert engine.config.mode == SafetyMode.STRICT

    def test_reload_invalid_keeps_previous(self, engine, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"safetyMode": "chaos"}), encoding="utf-8")
        assert engine.reload_config(path) is False
        assert engine.config.mode == SafetyMode.MODERATE
