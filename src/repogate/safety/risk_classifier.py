"""
RepoGate Risk Classifier

Static table mapping every administrative forge operation to its risk
profile. Operations missing from the table are not administrative and
bypass governance entirely.

Classification by category:
  repository_settings   LOW get_repo_settings       MEDIUM update_repo_settings
  repository_lifecycle  CRITICAL archive_repository, delete_repository
  branch_protection     LOW get_branch_protection   HIGH update_branch_protection
                        CRITICAL delete_branch_protection
  webhooks              LOW list_webhooks, test_webhook
                        MEDIUM create_webhook, update_webhook   HIGH delete_webhook
  collaborators         LOW list_collaborators, check_collaborator, list_invitations
                        MEDIUM add_collaborator, update_collaborator_permission,
                               accept_invitation, cancel_invitation
                        HIGH remove_collaborator
  teams                 LOW list_repo_teams         MEDIUM add_repo_team
"""

from __future__ import annotations

from types import MappingProxyType

from repogate.core.models import OperationRisk, RiskLevel
from repogate.exceptions import UnknownOperationError

CATEGORY_REPOSITORY_SETTINGS = "repository_settings"
CATEGORY_REPOSITORY_LIFECYCLE = "repository_lifecycle"
CATEGORY_BRANCH_PROTECTION = "branch_protection"
CATEGORY_WEBHOOKS = "webhooks"
CATEGORY_COLLABORATORS = "collaborators"
CATEGORY_TEAMS = "teams"


def _risk(
    level: RiskLevel,
    category: str,
    description: str,
    dry_run: bool = False,
    confirmation: bool = False,
    backup: bool = False,
) -> OperationRisk:
    return OperationRisk(
        level=level,
        category=category,
        description=description,
        requires_dry_run=dry_run,
        requires_confirmation=confirmation,
        requires_backup=backup,
        requires_audit=True,
    )


_TABLE: dict[str, OperationRisk] = {
    # ─── Repository settings ───
    "get_repo_settings": _risk(
        RiskLevel.LOW, CATEGORY_REPOSITORY_SETTINGS, "View repository configuration",
    ),
    "update_repo_settings": _risk(
        RiskLevel.MEDIUM, CATEGORY_REPOSITORY_SETTINGS, "Modify repository configuration",
        dry_run=True, backup=True,
    ),
    "archive_repository": _risk(
        RiskLevel.CRITICAL, CATEGORY_REPOSITORY_LIFECYCLE, "Archive repository (difficult to reverse)",
        dry_run=True, confirmation=True, backup=True,
    ),
    "delete_repository": _risk(
        RiskLevel.CRITICAL, CATEGORY_REPOSITORY_LIFECYCLE, "Delete repository PERMANENTLY",
        dry_run=True, confirmation=True, backup=True,
    ),
    # ─── Branch protection ───
    "get_branch_protection": _risk(
        RiskLevel.LOW, CATEGORY_BRANCH_PROTECTION, "View branch protection rules",
    ),
    "update_branch_protection": _risk(
        RiskLevel.HIGH, CATEGORY_BRANCH_PROTECTION, "Configure branch protection rules",
        dry_run=True, confirmation=True, backup=True,
    ),
    "delete_branch_protection": _risk(
        RiskLevel.CRITICAL, CATEGORY_BRANCH_PROTECTION, "Remove branch protection (dangerous)",
        dry_run=True, confirmation=True, backup=True,
    ),
    # ─── Webhooks ───
    "list_webhooks": _risk(
        RiskLevel.LOW, CATEGORY_WEBHOOKS, "List repository webhooks",
    ),
    "test_webhook": _risk(
        RiskLevel.LOW, CATEGORY_WEBHOOKS, "Trigger webhook test delivery",
    ),
    "create_webhook": _risk(
        RiskLevel.MEDIUM, CATEGORY_WEBHOOKS, "Create repository webhook",
        dry_run=True,
    ),
    "update_webhook": _risk(
        RiskLevel.MEDIUM, CATEGORY_WEBHOOKS, "Modify webhook configuration",
        dry_run=True, backup=True,
    ),
    "delete_webhook": _risk(
        RiskLevel.HIGH, CATEGORY_WEBHOOKS, "Delete webhook (breaks integrations)",
        dry_run=True, confirmation=True, backup=True,
    ),
    # ─── Collaborators ───
    "list_collaborators": _risk(
        RiskLevel.LOW, CATEGORY_COLLABORATORS, "List repository collaborators",
    ),
    "list_invitations": _risk(
        RiskLevel.LOW, CATEGORY_COLLABORATORS, "View pending invitations",
    ),
    "check_collaborator": _risk(
        RiskLevel.LOW, CATEGORY_COLLABORATORS, "Check collaboration status",
    ),
    "add_collaborator": _risk(
        RiskLevel.MEDIUM, CATEGORY_COLLABORATORS, "Invite collaborator with permissions",
        dry_run=True,
    ),
    "update_collaborator_permission": _risk(
        RiskLevel.MEDIUM, CATEGORY_COLLABORATORS, "Change collaborator access level",
        dry_run=True, backup=True,
    ),
    "accept_invitation": _risk(
        RiskLevel.MEDIUM, CATEGORY_COLLABORATORS, "Accept repository invitation",
    ),
    "cancel_invitation": _risk(
        RiskLevel.MEDIUM, CATEGORY_COLLABORATORS, "Cancel pending invitation",
        dry_run=True,
    ),
    "remove_collaborator": _risk(
        RiskLevel.HIGH, CATEGORY_COLLABORATORS, "Remove collaborator access (loss of access)",
        dry_run=True, confirmation=True, backup=True,
    ),
    # ─── Teams ───
    "list_repo_teams": _risk(
        RiskLevel.LOW, CATEGORY_TEAMS, "List teams with repo access",
    ),
    "add_repo_team": _risk(
        RiskLevel.MEDIUM, CATEGORY_TEAMS, "Grant team access to repository",
        dry_run=True,
    ),
}

OPERATION_RISKS = MappingProxyType(_TABLE)


def classify(operation: str) -> OperationRisk | None:
    """Return the risk profile for an operation, or None if it is not administrative."""
    return OPERATION_RISKS.get(operation)


def get_operation_risk(operation: str) -> OperationRisk:
    """Like classify(), but raises UnknownOperationError for unknown operations."""
    risk = OPERATION_RISKS.get(operation)
    if risk is None:
        raise UnknownOperationError(operation)
    return risk


def is_admin(operation: str) -> bool:
    return operation in OPERATION_RISKS


def list_by_level(level: RiskLevel) -> list[str]:
    return [op for op, risk in OPERATION_RISKS.items() if risk.level == level]


def list_by_category(category: str) -> list[str]:
    return [op for op, risk in OPERATION_RISKS.items() if risk.category == category]


def categories() -> list[str]:
    """Distinct categories in table order."""
    return list(dict.fromkeys(risk.category for risk in OPERATION_RISKS.values()))
