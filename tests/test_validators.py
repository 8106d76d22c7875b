"""Tests for RepoGate parameter validation.

Covers name formats, injection and traversal rejection, SSRF blocking,
and the per-operation validator table.
"""

import pytest

from repogate.exceptions import ParameterValidationError
from repogate.safety.validators import (
    coerce_positive_int,
    validate_boolean,
    validate_branch,
    validate_events,
    validate_name,
    validate_parameters,
    validate_permission,
    validate_review_count,
    validate_safe_input,
    validate_safe_path,
    validate_url,
    validate_username,
)


class TestNames:
    @pytest.mark.parametrize("value", ["acme", "my-repo", "repo_2", "A" * 100])
    def test_valid(self, value):
        validate_name("repo", value)

    def test_traversal_reported_before_format(self):
        with pytest.raises(ParameterValidationError) as exc_info:
            validate_name("repo", "../etc")
        assert exc_info.value.reason == "path traversal attempt detected"
        assert exc_info.value.parameter == "repo"

    def test_separator(self):
        with pytest.raises(ParameterValidationError, match="path separators"):
            validate_name("owner", "acme/demo")

    def test_too_long(self):
        with pytest.raises(ParameterValidationError, match="too long"):
            validate_name("repo", "a" * 101)

    @pytest.mark.parametrize("value", ["has space", "dot.name", "semi;colon"])
    def test_bad_format(self, value):
        with pytest.raises(ParameterValidationError, match="invalid format"):
            validate_name("repo", value)

    def test_empty(self):
        with pytest.raises(ParameterValidationError, match="cannot be empty"):
            validate_name("repo", "")

    def test_non_string(self):
        with pytest.raises(ParameterValidationError, match="must be a string"):
            validate_name("repo", 42)

    @pytest.mark.parametrize("parameter", ["owner", "repo"])
    def test_trailing_newline_rejected(self, parameter):
        with pytest.raises(ParameterValidationError, match="invalid format"):
            validate_name(parameter, "acme\n")


class TestUsernames:
    @pytest.mark.parametrize("value", ["octocat", "a", "user-1", "a" * 39])
    def test_valid(self, value):
        validate_username("username", value)

    @pytest.mark.parametrize("value", ["-leading", "under_score", "a" * 40, ""])
    def test_invalid(self, value):
        with pytest.raises(ParameterValidationError):
            validate_username("username", value)

    def test_trailing_newline_rejected(self):
        with pytest.raises(ParameterValidationError, match="invalid GitHub username format"):
            validate_parameters("add_collaborator", {"username": "alice\n"})


class TestBranches:
    @pytest.mark.parametrize("value", ["main", "feature/login", "release-1.2"])
    def test_valid(self, value):
        validate_branch("branch", value)

    @pytest.mark.parametrize("value", ["-x", "main.lock", "a..b", "x;rm -rf", "b$(id)", "a" * 256])
    def test_invalid(self, value):
        with pytest.raises(ParameterValidationError):
            validate_branch("branch", value)


class TestUrls:
    def test_valid(self):
        validate_url("url", "https://hooks.example.com/payload")

    @pytest.mark.parametrize("value", [
        "http://localhost:8080/hook",
        "http://127.0.0.1/hook",
        "http://0.0.0.0/hook",
        "http://[::1]/hook",
        "http://169.254.169.254/latest/meta-data",
    ])
    def test_internal_hosts_blocked(self, value):
        with pytest.raises(ParameterValidationError, match="localhost or internal IPs"):
            validate_url("url", value)

    def test_scheme_required(self):
        with pytest.raises(ParameterValidationError, match="HTTP/HTTPS"):
            validate_url("url", "ftp://example.com")

    def test_length(self):
        with pytest.raises(ParameterValidationError, match="too long"):
            validate_url("url", "https://example.com/" + "a" * 2000)


class TestEvents:
    def test_single_string(self):
        validate_events("events", "push")

    def test_list(self):
        validate_events("events", ["push", "pull_request", "*"])

    def test_empty_list(self):
        with pytest.raises(ParameterValidationError, match="at least one event"):
            validate_events("events", [])

    def test_unknown(self):
        with pytest.raises(ParameterValidationError, match="unknown webhook event: nope"):
            validate_events("events", ["push", "nope"])

    def test_too_many(self):
        with pytest.raises(ParameterValidationError, match="too many events"):
            validate_events("events", ["push"] * 51)

    def test_wrong_type(self):
        with pytest.raises(ParameterValidationError):
            validate_events("events", 5)


class TestNumbers:
    def test_integral_float_accepted(self):
        assert coerce_positive_int("hook_id", 12.0) == 12

    @pytest.mark.parametrize("value", [0, -1, 1.5, "12", True])
    def test_rejected(self, value):
        with pytest.raises(ParameterValidationError):
            coerce_positive_int("hook_id", value)

    def test_review_count_range(self):
        validate_review_count("required_approving_review_count", 6)
        with pytest.raises(ParameterValidationError, match="max 6"):
            validate_review_count("required_approving_review_count", 7)
        with pytest.raises(ParameterValidationError):
            validate_review_count("required_approving_review_count", 0)


class TestEnumerations:
    def test_permission(self):
        validate_permission("permission", "maintain")
        with pytest.raises(ParameterValidationError, match="invalid permission"):
            validate_permission("permission", "owner")

    def test_boolean_is_strict(self):
        validate_boolean("dry_run", False)
        with pytest.raises(ParameterValidationError, match="must be a boolean"):
            validate_boolean("dry_run", "true")


class TestSafeStrings:
    @pytest.mark.parametrize("value", ["a;b", "a|b", "a&b", "`id`", "$HOME", "a\nb"])
    def test_shell_metacharacters(self, value):
        with pytest.raises(ParameterValidationError, match="dangerous character"):
            validate_safe_input(value)

    @pytest.mark.parametrize("value", ["../secret", "a/..%2fb", "%2e%2e/x", "/etc/passwd", "C:\\Windows"])
    def test_unsafe_paths(self, value):
        with pytest.raises(ParameterValidationError):
            validate_safe_path(value)

    def test_relative_path_ok(self):
        validate_safe_path("src/app.py")


class TestValidateParameters:
    def test_first_failure_raised(self):
        with pytest.raises(ParameterValidationError) as exc_info:
            validate_parameters("delete_webhook", {"owner": "acme", "repo": "demo", "hook_id": -3})
        assert exc_info.value.parameter == "hook_id"

    def test_message_format(self):
        with pytest.raises(ParameterValidationError) as exc_info:
            validate_parameters("create_webhook", {"owner": "acme", "repo": "demo", "url": "http://localhost"})
        assert str(exc_info.value) == (
            "validation failed for parameter 'url': cannot use localhost or internal IPs "
            "(value: http://localhost)"
        )

    def test_unknown_keys_pass_through(self):
        validate_parameters("list_webhooks", {"owner": "acme", "repo": "demo", "per_page": "anything"})

    def test_operation_specific_keys_only_checked_for_that_operation(self):
        validate_parameters("list_webhooks", {"owner": "acme", "repo": "demo", "hook_id": "not-checked"})

    def test_dry_run_checked_everywhere(self):
        with pytest.raises(ParameterValidationError):
            validate_parameters("list_webhooks", {"owner": "acme", "dry_run": "yes"})

    def test_team_parameters(self):
        validate_parameters("add_repo_team", {
            "owner": "acme", "repo": "demo", "org": "acme", "team_slug": "core-devs", "permission": "push",
        })
        with pytest.raises(ParameterValidationError):
            validate_parameters("add_repo_team", {"org": "acme", "team_slug": "../x"})

    def test_metadata_endpoint_webhook_rejected(self):
        with pytest.raises(ParameterValidationError) as exc_info:
            validate_parameters("create_webhook", {
                "owner": "acme", "repo": "demo", "url": "http://169.254.169.254/latest/meta-data", "events": ["push"],
            })
        assert exc_info.value.parameter == "url"

    @pytest.mark.parametrize("slug", ["core devs", "core.devs", "core;devs"])
    def test_team_slug_format_rejected(self, slug):
        with pytest.raises(ParameterValidationError) as exc_info:
            validate_parameters("add_repo_team", {"owner": "acme", "repo": "demo", "org": "acme", "team_slug": slug})
        assert exc_info.value.parameter == "team_slug"
