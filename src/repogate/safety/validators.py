"""
RepoGate Parameter Validators

Per-operation validation of tool arguments before any safety gate runs.
Checks cover format, safe strings, shell injection, SSRF and semantic
ranges. Missing keys are not validated here; the tool schema decides
what is required.

Every failure raises ParameterValidationError with the parameter name,
the rejected value, and a short reason.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from typing import Any

from repogate.exceptions import ParameterValidationError

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,100}$")
_USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9-]{0,38}$")

MAX_NAME_LENGTH = 100
MAX_USERNAME_LENGTH = 39
MAX_BRANCH_LENGTH = 255
MAX_URL_LENGTH = 2000
MAX_EVENTS = 50
MAX_REQUIRED_REVIEWERS = 6

SHELL_METACHARACTERS = (";", "|", "&", "`", "$", "(", ")", "\n", "\r")

VALID_PERMISSIONS = ("pull", "triage", "push", "maintain", "admin")
VALID_CONTENT_TYPES = ("json", "form")
VALID_VISIBILITIES = ("public", "private", "internal")

WEBHOOK_EVENTS = frozenset({
    "*",
    "push",
    "pull_request",
    "pull_request_review",
    "pull_request_review_comment",
    "issues",
    "issue_comment",
    "release",
    "create",
    "delete",
    "fork",
    "watch",
    "star",
    "workflow_run",
    "workflow_job",
    "check_run",
    "check_suite",
    "deployment",
    "deployment_status",
    "repository",
    "repository_vulnerability_alert",
    "status",
    "member",
    "public",
    "gollum",
    "label",
    "milestone",
})

_BLOCKED_HOSTS = ("localhost", "127.0.0.1", "0.0.0.0", "[::1]", "169.254.169.254")

_TRAVERSAL_PATTERNS = ("../", "..\\", "..%2f", "..%5c", "//", "\\\\", "%2e%2e", "%252e%252e")
_WINDOWS_ABSOLUTE = re.compile(r"^[A-Za-z]:[\\/]")


# ─── Helpers ─────────────────────────────────────────────────

def _require_string(parameter: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ParameterValidationError(parameter, value, "must be a string")
    if not value:
        raise ParameterValidationError(parameter, value, "cannot be empty")
    return value


def validate_safe_path(path: str, parameter: str = "path") -> None:
    """Reject traversal sequences (raw and URL-encoded) and absolute paths."""
    if not isinstance(path, str):
        raise ParameterValidationError(parameter, path, "must be a string")
    lowered = path.lower()
    for pattern in _TRAVERSAL_PATTERNS:
        if pattern in lowered:
            raise ParameterValidationError(parameter, path, f"path traversal attempt detected: {path}")
    if path.startswith("/") or path.startswith("\\") or _WINDOWS_ABSOLUTE.match(path):
        raise ParameterValidationError(parameter, path, f"absolute paths not allowed: {path}")


def validate_safe_input(value: str, parameter: str = "input") -> None:
    """Reject shell metacharacters in values that may reach a command line."""
    if not isinstance(value, str):
        raise ParameterValidationError(parameter, value, "must be a string")
    for char in SHELL_METACHARACTERS:
        if char in value:
            raise ParameterValidationError(parameter, value, f"input contains dangerous character: {char!r}")


# ─── Field validators ────────────────────────────────────────

def validate_name(parameter: str, value: Any) -> None:
    """Owner, repository, organization, and team-slug names."""
    name = _require_string(parameter, value)
    if ".." in name:
        raise ParameterValidationError(parameter, value, "path traversal attempt detected")
    if "/" in name or "\\" in name:
        raise ParameterValidationError(parameter, value, "path separators are not allowed")
    if len(name) > MAX_NAME_LENGTH:
        raise ParameterValidationError(parameter, value, f"too long (max {MAX_NAME_LENGTH} characters)")
    if not _NAME_PATTERN.fullmatch(name):
        raise ParameterValidationError(
            parameter, value, "invalid format (allowed: letters, numbers, hyphens, underscores)"
        )


def validate_username(parameter: str, value: Any) -> None:
    username = _require_string(parameter, value)
    if len(username) > MAX_USERNAME_LENGTH:
        raise ParameterValidationError(
            parameter, value, f"too long (max {MAX_USERNAME_LENGTH} characters)"
        )
    if not _USERNAME_PATTERN.fullmatch(username):
        raise ParameterValidationError(parameter, value, "invalid GitHub username format")


def validate_branch(parameter: str, value: Any) -> None:
    branch = _require_string(parameter, value)
    if len(branch) > MAX_BRANCH_LENGTH:
        raise ParameterValidationError(
            parameter, value, f"too long (max {MAX_BRANCH_LENGTH} characters)"
        )
    for char in SHELL_METACHARACTERS:
        if char in branch:
            raise ParameterValidationError(parameter, value, f"contains dangerous character: {char!r}")
    if branch.startswith("-"):
        raise ParameterValidationError(parameter, value, "invalid branch name: cannot start with '-'")
    if branch.endswith(".lock"):
        raise ParameterValidationError(parameter, value, "invalid branch name: cannot end with '.lock'")
    if ".." in branch:
        raise ParameterValidationError(parameter, value, "invalid branch name: cannot contain '..'")


def _one_of(allowed: tuple[str, ...], label: str) -> Callable[[str, Any], None]:
    def validate(parameter: str, value: Any) -> None:
        if not isinstance(value, str) or value not in allowed:
            raise ParameterValidationError(
                parameter, value, f"invalid {label} (allowed: {', '.join(allowed)})"
            )
    return validate


validate_permission = _one_of(VALID_PERMISSIONS, "permission")
validate_content_type = _one_of(VALID_CONTENT_TYPES, "content type")
validate_visibility = _one_of(VALID_VISIBILITIES, "visibility")


def validate_url(parameter: str, value: Any) -> None:
    url = _require_string(parameter, value)
    lowered = url.lower()
    if not (lowered.startswith("http://") or lowered.startswith("https://")):
        raise ParameterValidationError(parameter, value, "must be a valid HTTP/HTTPS URL")
    if any(host in lowered for host in _BLOCKED_HOSTS):
        raise ParameterValidationError(parameter, value, "cannot use localhost or internal IPs")
    if len(url) > MAX_URL_LENGTH:
        raise ParameterValidationError(parameter, value, f"too long (max {MAX_URL_LENGTH} characters)")


def validate_events(parameter: str, value: Any) -> None:
    if isinstance(value, str):
        events: list[Any] = [value]
    elif isinstance(value, list):
        events = value
    else:
        raise ParameterValidationError(parameter, value, "must be a string or array of strings")

    if not events:
        raise ParameterValidationError(parameter, value, "must specify at least one event")
    if len(events) > MAX_EVENTS:
        raise ParameterValidationError(parameter, value, f"too many events (max {MAX_EVENTS})")
    for index, event in enumerate(events):
        if not isinstance(event, str):
            raise ParameterValidationError(parameter, value, f"event {index} must be a string")
        if event not in WEBHOOK_EVENTS:
            raise ParameterValidationError(parameter, value, f"unknown webhook event: {event}")


def coerce_positive_int(parameter: str, value: Any) -> int:
    """Accept ints and integral floats greater than zero; reject bools and strings."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ParameterValidationError(parameter, value, "must be a number")
    if isinstance(value, float):
        if not value.is_integer():
            raise ParameterValidationError(parameter, value, "must be a positive integer")
        value = int(value)
    if value <= 0:
        raise ParameterValidationError(parameter, value, "must be a positive integer")
    return value


def validate_positive_int(parameter: str, value: Any) -> None:
    coerce_positive_int(parameter, value)


def validate_review_count(parameter: str, value: Any) -> None:
    count = coerce_positive_int(parameter, value)
    if count > MAX_REQUIRED_REVIEWERS:
        raise ParameterValidationError(
            parameter, value, f"too high (max {MAX_REQUIRED_REVIEWERS} required reviewers)"
        )


def validate_boolean(parameter: str, value: Any) -> None:
    if not isinstance(value, bool):
        raise ParameterValidationError(parameter, value, "must be a boolean (true/false)")


# ─── Operation table ─────────────────────────────────────────

Validator = Callable[[str, Any], None]

_COMMON: dict[str, Validator] = {
    "owner": validate_name,
    "repo": validate_name,
    "org": validate_name,
    "team_slug": validate_name,
    "username": validate_username,
    "branch": validate_branch,
    "dry_run": validate_boolean,
}

_WEBHOOK: dict[str, Validator] = {
    "url": validate_url,
    "content_type": validate_content_type,
    "events": validate_events,
    "active": validate_boolean,
}

OPERATION_VALIDATORS: dict[str, dict[str, Validator]] = {
    "update_repo_settings": {
        "visibility": validate_visibility,
        "has_issues": validate_boolean,
        "has_wiki": validate_boolean,
        "has_projects": validate_boolean,
    },
    "update_branch_protection": {
        "required_approving_review_count": validate_review_count,
        "enforce_admins": validate_boolean,
    },
    "create_webhook": dict(_WEBHOOK),
    "update_webhook": {"hook_id": validate_positive_int, **_WEBHOOK},
    "delete_webhook": {"hook_id": validate_positive_int},
    "test_webhook": {"hook_id": validate_positive_int},
    "add_collaborator": {"permission": validate_permission},
    "update_collaborator_permission": {"permission": validate_permission},
    "accept_invitation": {"invitation_id": validate_positive_int},
    "cancel_invitation": {"invitation_id": validate_positive_int},
    "add_repo_team": {"team_id": validate_positive_int, "permission": validate_permission},
}


def validate_parameters(operation: str, params: Mapping[str, Any]) -> None:
    """Validate every recognised key present in ``params`` for ``operation``.

    Raises ParameterValidationError on the first failure.
    """
    validators = {**_COMMON, **OPERATION_VALIDATORS.get(operation, {})}
    for key, validator in validators.items():
        if key in params:
            validator(key, params[key])
