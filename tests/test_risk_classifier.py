"""Tests for the RepoGate risk classification table."""

import pytest

from repogate.core.models import RiskLevel
from repogate.exceptions import UnknownOperationError
from repogate.safety.risk_classifier import (
    OPERATION_RISKS,
    categories,
    classify,
    get_operation_risk,
    is_admin,
    list_by_category,
    list_by_level,
)

EXPECTED_LEVELS = {
    "get_repo_settings": RiskLevel.LOW,
    "update_repo_settings": RiskLevel.MEDIUM,
    "archive_repository": RiskLevel.CRITICAL,
    "delete_repository": RiskLevel.CRITICAL,
    "get_branch_protection": RiskLevel.LOW,
    "update_branch_protection": RiskLevel.HIGH,
    "delete_branch_protection": RiskLevel.CRITICAL,
    "list_webhooks": RiskLevel.LOW,
    "create_webhook": RiskLevel.MEDIUM,
    "update_webhook": RiskLevel.MEDIUM,
    "delete_webhook": RiskLevel.HIGH,
    "test_webhook": RiskLevel.LOW,
    "list_collaborators": RiskLevel.LOW,
    "check_collaborator": RiskLevel.LOW,
    "add_collaborator": RiskLevel.MEDIUM,
    "update_collaborator_permission": RiskLevel.MEDIUM,
    "remove_collaborator": RiskLevel.HIGH,
    "list_invitations": RiskLevel.LOW,
    "accept_invitation": RiskLevel.MEDIUM,
    "cancel_invitation": RiskLevel.MEDIUM,
    "list_repo_teams": RiskLevel.LOW,
    "add_repo_team": RiskLevel.MEDIUM,
}


class TestRiskTable:
    def test_covers_all_administrative_operations(self):
        assert set(OPERATION_RISKS) == set(EXPECTED_LEVELS)
        assert len(OPERATION_RISKS) == 22

    @pytest.mark.parametrize("operation,level", sorted(EXPECTED_LEVELS.items()))
    def test_levels(self, operation, level):
        assert classify(operation).level == level

    def test_every_entry_is_audited(self):
        assert all(risk.requires_audit for risk in OPERATION_RISKS.values())

    def test_confirmation_hint_on_high_and_critical(self):
        for operation, risk in OPERATION_RISKS.items():
            if risk.level >= RiskLevel.HIGH:
                assert risk.requires_confirmation, operation
                assert risk.requires_backup, operation
            else:
                assert not risk.requires_confirmation, operation

    def test_read_only_operations_have_no_safeguards(self):
        for operation in list_by_level(RiskLevel.LOW):
            risk = classify(operation)
            assert not (risk.requires_dry_run or risk.requires_confirmation or risk.requires_backup)

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            OPERATION_RISKS["new_op"] = classify("list_webhooks")  # type: ignore[index]


class TestLookups:
    def test_classify_unknown_returns_none(self):
        assert classify("git_status") is None
        assert not is_admin("git_status")

    def test_get_operation_risk_raises(self):
        with pytest.raises(UnknownOperationError, match="unknown operation: frobnicate"):
            get_operation_risk("frobnicate")

    def test_is_admin(self):
        assert is_admin("delete_repository")

    def test_list_by_category(self):
        assert set(list_by_category("webhooks")) == {
            "list_webhooks", "create_webhook", "update_webhook", "delete_webhook", "test_webhook",
        }
        assert list_by_category("teams") == ["list_repo_teams", "add_repo_team"]

    def test_lifecycle_category(self):
        assert set(list_by_category("repository_lifecycle")) == {"archive_repository", "delete_repository"}

    def test_categories_unique(self):
        cats = categories()
        assert len(cats) == len(set(cats))
        assert "collaborators" in cats

    def test_critical_operations(self):
        assert set(list_by_level(RiskLevel.CRITICAL)) == {
            "archive_repository", "delete_repository", "delete_branch_protection",
        }
