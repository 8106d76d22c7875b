"""
RepoGate Administrative Tools

Tool schemas and handlers for the 22 administrative forge operations.
Every handler routes through SafetyMiddleware, so reads are audited and
writes pass the dry-run and confirmation gates before the forge client
is called.

Tool names carry the ``github_`` prefix; the safety engine sees the
bare operation name.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from repogate.exceptions import ParameterValidationError
from repogate.forge.client import ForgeClient
from repogate.server.middleware import ExecutionOutcome, SafetyMiddleware
from repogate.server.tools import RegisteredTool, ToolDefinition, admin_tool_name
from repogate.safety.validators import (
    VALID_CONTENT_TYPES,
    VALID_PERMISSIONS,
    VALID_VISIBILITIES,
    coerce_positive_int,
)

REPO_SETTING_KEYS = (
    "description",
    "homepage",
    "visibility",
    "default_branch",
    "has_issues",
    "has_wiki",
    "has_projects",
    "allow_squash_merge",
    "allow_merge_commit",
    "allow_rebase_merge",
    "delete_branch_on_merge",
)


# ─── Schemas ─────────────────────────────────────────────────

def _string(description: str, **extra: Any) -> dict[str, Any]:
    return {"type": "string", "description": description, **extra}


def _boolean(description: str) -> dict[str, Any]:
    return {"type": "boolean", "description": description}


def _integer(description: str, **extra: Any) -> dict[str, Any]:
    return {"type": "integer", "description": description, **extra}


_OWNER = _string("Repository owner (user or organization)")
_REPO = _string("Repository name")
_DRY_RUN = _boolean("Preview the change without applying it (true) or execute it (false)")
_CONFIRMATION = _string("Confirmation token returned by a previous call (CONF:...)")
_PERMISSION = _string("Permission level", enum=list(VALID_PERMISSIONS))
_HOOK_ID = _integer("Webhook ID", minimum=1)
_EVENTS = {
    "type": "array",
    "items": {"type": "string"},
    "description": "Events that trigger the webhook (e.g. push, pull_request, *)",
}


def _schema(
    properties: dict[str, Any] | None = None,
    required: tuple[str, ...] = (),
    repo_scoped: bool = True,
    guarded: bool = True,
) -> dict[str, Any]:
    props: dict[str, Any] = {}
    base_required: list[str] = []
    if repo_scoped:
        props.update({"owner": _OWNER, "repo": _REPO})
        base_required = ["owner", "repo"]
    props.update(properties or {})
    if guarded:
        props.update({"dry_run": _DRY_RUN, "confirmation_token": _CONFIRMATION})
    return {"type": "object", "properties": props, "required": [*base_required, *required]}


def _require(args: dict[str, Any], *keys: str) -> None:
    for key in keys:
        if args.get(key) in (None, ""):
            raise ParameterValidationError(key, args.get(key), "is required")


def _events(value: Any) -> list[str]:
    if isinstance(value, list):
        return list(value)
    return [value]


def _yes_no(value: Any) -> str:
    return "yes" if value else "no"


# ─── Handlers ────────────────────────────────────────────────

class AdminTools:
    """Binds the forge client and safety middleware into tool handlers."""

    def __init__(self, client: ForgeClient, middleware: SafetyMiddleware):
        self._client = client
        self._middleware = middleware

    def tools(self) -> list[RegisteredTool]:
        return [
            self._tool(op, description, schema, handler)
            for op, description, schema, handler in self._specs()
        ]

    def _tool(
        self,
        operation: str,
        description: str,
        schema: dict[str, Any],
        handler: Callable[[dict[str, Any]], Awaitable[str]],
    ) -> RegisteredTool:
        return RegisteredTool(
            definition=ToolDefinition(
                name=admin_tool_name(operation),
                description=description,
                input_schema=schema,
            ),
            handler=handler,
            operation=operation,
        )

    def _specs(self) -> list[tuple[str, str, dict[str, Any], Callable[[dict[str, Any]], Awaitable[str]]]]:
        branch = {"branch": _string("Branch name")}
        username = {"username": _string("GitHub username")}
        invitation = {"invitation_id": _integer("Invitation ID", minimum=1)}
        webhook_fields = {
            "url": _string("Payload URL (http or https)"),
            "events": _EVENTS,
            "content_type": _string("Payload format", enum=list(VALID_CONTENT_TYPES)),
            "secret": _string("Shared secret used to sign payloads"),
            "active": _boolean("Deliver events (default true)"),
        }
        repo_settings = {
            "description": _string("Repository description"),
            "homepage": _string("Homepage URL"),
            "visibility": _string("Repository visibility", enum=list(VALID_VISIBILITIES)),
            "default_branch": _string("Default branch"),
            "has_issues": _boolean("Enable issues"),
            "has_wiki": _boolean("Enable the wiki"),
            "has_projects": _boolean("Enable projects"),
            "allow_squash_merge": _boolean("Allow squash merging"),
            "allow_merge_commit": _boolean("Allow merge commits"),
            "allow_rebase_merge": _boolean("Allow rebase merging"),
            "delete_branch_on_merge": _boolean("Delete head branches after merge"),
        }
        protection = {
            **branch,
            "required_approving_review_count": _integer("Required approving reviews (1-6)", minimum=1, maximum=6),
            "dismiss_stale_reviews": _boolean("Dismiss approvals when new commits are pushed"),
            "enforce_admins": _boolean("Apply the rules to administrators"),
            "status_checks": {
                "type": "array", "items": {"type": "string"},
                "description": "Status check contexts that must pass",
            },
            "require_up_to_date": _boolean("Require branches to be up to date before merging"),
        }
        return [
            ("get_repo_settings", "View repository configuration.",
             _schema(guarded=False), self.get_repo_settings),
            ("update_repo_settings", "Modify repository configuration (MEDIUM risk, dry-run required).",
             _schema(repo_settings), self.update_repo_settings),
            ("archive_repository", "Archive a repository (CRITICAL risk, confirmation required).",
             _schema(), self.archive_repository),
            ("delete_repository", "Delete a repository PERMANENTLY (CRITICAL risk, confirmation required).",
             _schema(), self.delete_repository),
            ("get_branch_protection", "View branch protection rules.",
             _schema(branch, ("branch",), guarded=False), self.get_branch_protection),
            ("update_branch_protection", "Configure branch protection rules (HIGH risk, confirmation required).",
             _schema(protection, ("branch",)), self.update_branch_protection),
            ("delete_branch_protection", "Remove branch protection (CRITICAL risk, confirmation required).",
             _schema(branch, ("branch",)), self.delete_branch_protection),
            ("list_webhooks", "List repository webhooks.",
             _schema(guarded=False), self.list_webhooks),
            ("create_webhook", "Create a repository webhook (MEDIUM risk, dry-run required).",
             _schema(webhook_fields, ("url", "events")), self.create_webhook),
            ("update_webhook", "Modify a webhook (MEDIUM risk, dry-run required).",
             _schema({"hook_id": _HOOK_ID, **webhook_fields}, ("hook_id",)), self.update_webhook),
            ("delete_webhook", "Delete a webhook (HIGH risk, confirmation required).",
             _schema({"hook_id": _HOOK_ID}, ("hook_id",)), self.delete_webhook),
            ("test_webhook", "Trigger a test delivery for a webhook.",
             _schema({"hook_id": _HOOK_ID}, ("hook_id",), guarded=False), self.test_webhook),
            ("list_collaborators", "List repository collaborators.",
             _schema({"affiliation": _string("Filter: outside, direct or all")}, guarded=False),
             self.list_collaborators),
            ("check_collaborator", "Check whether a user is a collaborator.",
             _schema(username, ("username",), guarded=False), self.check_collaborator),
            ("add_collaborator", "Invite a collaborator (MEDIUM risk, dry-run required).",
             _schema({**username, "permission": _PERMISSION}, ("username",)), self.add_collaborator),
            ("update_collaborator_permission", "Change a collaborator's permission (MEDIUM risk, dry-run required).",
             _schema({**username, "permission": _PERMISSION}, ("username", "permission")),
             self.update_collaborator_permission),
            ("remove_collaborator", "Remove a collaborator (HIGH risk, confirmation required).",
             _schema(username, ("username",)), self.remove_collaborator),
            ("list_invitations", "List pending repository invitations.",
             _schema(guarded=False), self.list_invitations),
            ("accept_invitation", "Accept a repository invitation for the authenticated user.",
             _schema(invitation, ("invitation_id",), repo_scoped=False), self.accept_invitation),
            ("cancel_invitation", "Cancel a pending invitation (MEDIUM risk, dry-run required).",
             _schema(invitation, ("invitation_id",)), self.cancel_invitation),
            ("list_repo_teams", "List teams with access to the repository.",
             _schema(guarded=False), self.list_repo_teams),
            ("add_repo_team", "Grant a team access to the repository (MEDIUM risk, dry-run required).",
             _schema({
                 "org": _string("Organization that owns the team"),
                 "team_slug": _string("Team slug"),
                 "permission": _PERMISSION,
             }, ("org", "team_slug")), self.add_repo_team),
        ]

    # ─── Repository settings ───

    async def get_repo_settings(self, args: dict[str, Any]) -> str:
        _require(args, "owner", "repo")
        owner, repo = args["owner"], args["repo"]

        async def execute() -> str:
            data = await self._client.get_repo_settings(owner, repo)
            return (
                f"📋 Repository Settings: {owner}/{repo}\n\n"
                f"Description: {data.get('description') or '(none)'}\n"
                f"Visibility: {data.get('visibility', 'unknown')}\n"
                f"Default branch: {data.get('default_branch', 'unknown')}\n"
                f"Archived: {_yes_no(data.get('archived'))}\n"
                f"Issues: {_yes_no(data.get('has_issues'))}  "
                f"Wiki: {_yes_no(data.get('has_wiki'))}  "
                f"Projects: {_yes_no(data.get('has_projects'))}\n"
                f"Merge: squash={_yes_no(data.get('allow_squash_merge'))} "
                f"merge-commit={_yes_no(data.get('allow_merge_commit'))} "
                f"rebase={_yes_no(data.get('allow_rebase_merge'))}"
            )

        return await self._middleware.wrap_execution("get_repo_settings", args, execute)

    async def update_repo_settings(self, args: dict[str, Any]) -> str:
        _require(args, "owner", "repo")
        owner, repo = args["owner"], args["repo"]
        settings = {k: args[k] for k in REPO_SETTING_KEYS if k in args}
        if not settings:
            raise ParameterValidationError("settings", None, "no settings to update")

        async def current() -> dict[str, Any]:
            return await self._client.get_repo_settings(owner, repo)

        async def preview() -> str:
            data = await current()
            lines = [f"Repository {owner}/{repo} settings would change:"]
            lines.extend(f"  {k}: {data.get(k)!r} → {v!r}" for k, v in settings.items())
            return "\n".join(lines)

        async def execute() -> ExecutionOutcome:
            await self._client.update_repo_settings(owner, repo, settings)
            changes = [f"{k} = {v!r}" for k, v in settings.items()]
            return ExecutionOutcome(
                text=f"✅ Updated settings for {owner}/{repo}:\n" + "\n".join(f"  {c}" for c in changes),
                changes=changes,
            )

        return await self._middleware.wrap_execution(
            "update_repo_settings", args, execute, preview=preview, snapshot=current,
        )

    async def archive_repository(self, args: dict[str, Any]) -> str:
        _require(args, "owner", "repo")
        owner, repo = args["owner"], args["repo"]

        async def execute() -> ExecutionOutcome:
            await self._client.archive_repository(owner, repo)
            return ExecutionOutcome(
                text=f"📦 Repository {owner}/{repo} archived. It is now read-only.",
                changes=[f"archived {owner}/{repo}"],
            )

        return await self._middleware.wrap_execution(
            "archive_repository", args, execute,
            preview=lambda: f"Repository {owner}/{repo} would be archived and become read-only.",
            snapshot=lambda: self._client.get_repo_settings(owner, repo),
        )

    async def delete_repository(self, args: dict[str, Any]) -> str:
        _require(args, "owner", "repo")
        owner, repo = args["owner"], args["repo"]

        async def execute() -> ExecutionOutcome:
            await self._client.delete_repository(owner, repo)
            return ExecutionOutcome(
                text=f"🗑️ Repository {owner}/{repo} deleted.",
                changes=[f"deleted {owner}/{repo}"],
            )

        return await self._middleware.wrap_execution(
            "delete_repository", args, execute,
            preview=lambda: (
                f"Repository {owner}/{repo} would be PERMANENTLY deleted, "
                "including issues, pull requests, wiki and webhooks."
            ),
            snapshot=lambda: self._client.get_repo_settings(owner, repo),
        )

    # ─── Branch protection ───

    async def get_branch_protection(self, args: dict[str, Any]) -> str:
        _require(args, "owner", "repo", "branch")
        owner, repo, branch = args["owner"], args["repo"], args["branch"]

        async def execute() -> str:
            rules = await self._client.get_branch_protection(owner, repo, branch)
            if rules is None:
                return f"🔓 Branch {branch} in {owner}/{repo} is not protected."
            return f"🔒 Branch Protection: {owner}/{repo}@{branch}\n\n{_describe_protection(rules)}"

        return await self._middleware.wrap_execution("get_branch_protection", args, execute)

    async def update_branch_protection(self, args: dict[str, Any]) -> str:
        _require(args, "owner", "repo", "branch")
        owner, repo, branch = args["owner"], args["repo"], args["branch"]
        payload = _protection_payload(args)

        async def execute() -> ExecutionOutcome:
            await self._client.update_branch_protection(owner, repo, branch, payload)
            return ExecutionOutcome(
                text=f"🔒 Branch protection updated for {owner}/{repo}@{branch}\n\n{_describe_protection(payload)}",
                changes=[f"protection on {branch} set"],
            )

        return await self._middleware.wrap_execution(
            "update_branch_protection", args, execute,
            preview=lambda: f"Branch {branch} in {owner}/{repo} would be protected with:\n{_describe_protection(payload)}",
            snapshot=lambda: self._client.get_branch_protection(owner, repo, branch),
        )

    async def delete_branch_protection(self, args: dict[str, Any]) -> str:
        _require(args, "owner", "repo", "branch")
        owner, repo, branch = args["owner"], args["repo"], args["branch"]

        async def preview() -> str:
            rules = await self._client.get_branch_protection(owner, repo, branch)
            if rules is None:
                return f"Branch {branch} in {owner}/{repo} is not protected; nothing would change."
            return f"These rules on {owner}/{repo}@{branch} would be removed:\n{_describe_protection(rules)}"

        async def execute() -> ExecutionOutcome:
            await self._client.delete_branch_protection(owner, repo, branch)
            return ExecutionOutcome(
                text=f"🔓 Branch protection removed from {owner}/{repo}@{branch}",
                changes=[f"protection on {branch} removed"],
            )

        return await self._middleware.wrap_execution(
            "delete_branch_protection", args, execute,
            preview=preview,
            snapshot=lambda: self._client.get_branch_protection(owner, repo, branch),
        )

    # ─── Webhooks ───

    async def list_webhooks(self, args: dict[str, Any]) -> str:
        _require(args, "owner", "repo")
        owner, repo = args["owner"], args["repo"]

        async def execute() -> str:
            hooks = await self._client.list_webhooks(owner, repo)
            if not hooks:
                return f"🔗 No webhooks configured for {owner}/{repo}"
            lines = [f"🔗 Webhooks for {owner}/{repo} ({len(hooks)})", ""]
            for hook in hooks:
                lines.append(_describe_hook(hook))
            return "\n".join(lines)

        return await self._middleware.wrap_execution("list_webhooks", args, execute)

    async def create_webhook(self, args: dict[str, Any]) -> str:
        _require(args, "owner", "repo", "url", "events")
        owner, repo, url = args["owner"], args["repo"], args["url"]
        events = _events(args["events"])
        content_type = args.get("content_type", "json")

        async def execute() -> ExecutionOutcome:
            hook = await self._client.create_webhook(
                owner, repo, url, events,
                content_type=content_type,
                secret=args.get("secret"),
                active=args.get("active", True),
            )
            hook_id = hook.get("id") if hook else None
            return ExecutionOutcome(
                text=f"✅ Webhook created for {owner}/{repo}\n\n{_describe_hook(hook or {})}",
                changes=[f"webhook {hook_id} → {url}"],
            )

        return await self._middleware.wrap_execution(
            "create_webhook", args, execute,
            preview=lambda: (
                f"A webhook would be created on {owner}/{repo}:\n"
                f"  URL: {url}\n  Events: {', '.join(events)}\n  Content type: {content_type}"
            ),
        )

    async def update_webhook(self, args: dict[str, Any]) -> str:
        _require(args, "owner", "repo", "hook_id")
        owner, repo = args["owner"], args["repo"]
        hook_id = coerce_positive_int("hook_id", args["hook_id"])
        fields = {
            "url": args.get("url"),
            "events": _events(args["events"]) if "events" in args else None,
            "content_type": args.get("content_type"),
            "secret": args.get("secret"),
            "active": args.get("active"),
        }
        changed = {k: v for k, v in fields.items() if v is not None}
        if not changed:
            raise ParameterValidationError("hook_id", hook_id, "no webhook fields to update")

        async def execute() -> ExecutionOutcome:
            hook = await self._client.update_webhook(owner, repo, hook_id, **changed)
            changes = [f"{k} updated" if k == "secret" else f"{k} = {v!r}" for k, v in changed.items()]
            return ExecutionOutcome(
                text=f"✅ Webhook {hook_id} updated\n\n{_describe_hook(hook or {})}",
                changes=changes,
            )

        return await self._middleware.wrap_execution(
            "update_webhook", args, execute,
            preview=lambda: f"Webhook {hook_id} on {owner}/{repo} would change: " + ", ".join(
                "secret" if k == "secret" else f"{k}={v!r}" for k, v in changed.items()
            ),
            snapshot=lambda: self._client.get_webhook(owner, repo, hook_id),
        )

    async def delete_webhook(self, args: dict[str, Any]) -> str:
        _require(args, "owner", "repo", "hook_id")
        owner, repo = args["owner"], args["repo"]
        hook_id = coerce_positive_int("hook_id", args["hook_id"])

        async def preview() -> str:
            hook = await self._client.get_webhook(owner, repo, hook_id)
            return f"This webhook would be deleted; integrations relying on it will stop receiving events:\n{_describe_hook(hook)}"

        async def execute() -> ExecutionOutcome:
            await self._client.delete_webhook(owner, repo, hook_id)
            return ExecutionOutcome(
                text=f"🗑️ Webhook {hook_id} deleted from {owner}/{repo}",
                changes=[f"webhook {hook_id} deleted"],
            )

        return await self._middleware.wrap_execution(
            "delete_webhook", args, execute,
            preview=preview,
            snapshot=lambda: self._client.get_webhook(owner, repo, hook_id),
        )

    async def test_webhook(self, args: dict[str, Any]) -> str:
        _require(args, "owner", "repo", "hook_id")
        owner, repo = args["owner"], args["repo"]
        hook_id = coerce_positive_int("hook_id", args["hook_id"])

        async def execute() -> str:
            await self._client.test_webhook(owner, repo, hook_id)
            return f"📨 Test delivery triggered for webhook {hook_id} on {owner}/{repo}"

        return await self._middleware.wrap_execution("test_webhook", args, execute)

    # ─── Collaborators ───

    async def list_collaborators(self, args: dict[str, Any]) -> str:
        _require(args, "owner", "repo")
        owner, repo = args["owner"], args["repo"]

        async def execute() -> str:
            users = await self._client.list_collaborators(owner, repo, args.get("affiliation"))
            if not users:
                return f"👥 No collaborators found for {owner}/{repo}"
            lines = [f"👥 Collaborators for {owner}/{repo} ({len(users)})", ""]
            for user in users:
                lines.append(f"  {user.get('login')} ({_permission_of(user)})")
            return "\n".join(lines)

        return await self._middleware.wrap_execution("list_collaborators", args, execute)

    async def check_collaborator(self, args: dict[str, Any]) -> str:
        _require(args, "owner", "repo", "username")
        owner, repo, username = args["owner"], args["repo"], args["username"]

        async def execute() -> str:
            if await self._client.check_collaborator(owner, repo, username):
                return f"✅ {username} is a collaborator on {owner}/{repo}"
            return f"❌ {username} is not a collaborator on {owner}/{repo}"

        return await self._middleware.wrap_execution("check_collaborator", args, execute)

    async def add_collaborator(self, args: dict[str, Any]) -> str:
        _require(args, "owner", "repo", "username")
        owner, repo, username = args["owner"], args["repo"], args["username"]
        permission = args.get("permission", "push")

        async def execute() -> ExecutionOutcome:
            invitation = await self._client.add_collaborator(owner, repo, username, permission)
            if invitation is None:
                text = f"✅ {username} already has access to {owner}/{repo}; permission set to {permission}"
            else:
                text = f"✅ Invitation #{invitation.get('id')} sent to {username} for {owner}/{repo} ({permission})"
            return ExecutionOutcome(text=text, changes=[f"{username} invited with {permission}"])

        return await self._middleware.wrap_execution(
            "add_collaborator", args, execute,
            preview=lambda: f"{username} would be invited to {owner}/{repo} with '{permission}' permission.",
        )

    async def update_collaborator_permission(self, args: dict[str, Any]) -> str:
        _require(args, "owner", "repo", "username", "permission")
        owner, repo, username, permission = args["owner"], args["repo"], args["username"], args["permission"]

        async def current() -> dict[str, Any]:
            return await self._client.get_collaborator_permission(owner, repo, username)

        async def preview() -> str:
            data = await current()
            return f"{username} on {owner}/{repo}: {data.get('permission', 'unknown')} → {permission}"

        async def execute() -> ExecutionOutcome:
            await self._client.update_collaborator_permission(owner, repo, username, permission)
            return ExecutionOutcome(
                text=f"✅ {username} now has '{permission}' permission on {owner}/{repo}",
                changes=[f"{username} permission = {permission}"],
            )

        return await self._middleware.wrap_execution(
            "update_collaborator_permission", args, execute, preview=preview, snapshot=current,
        )

    async def remove_collaborator(self, args: dict[str, Any]) -> str:
        _require(args, "owner", "repo", "username")
        owner, repo, username = args["owner"], args["repo"], args["username"]

        async def execute() -> ExecutionOutcome:
            await self._client.remove_collaborator(owner, repo, username)
            return ExecutionOutcome(
                text=f"🚫 {username} removed from {owner}/{repo}",
                changes=[f"{username} removed"],
            )

        return await self._middleware.wrap_execution(
            "remove_collaborator", args, execute,
            preview=lambda: f"{username} would lose all access to {owner}/{repo}.",
            snapshot=lambda: self._client.get_collaborator_permission(owner, repo, username),
        )

    # ─── Invitations ───

    async def list_invitations(self, args: dict[str, Any]) -> str:
        _require(args, "owner", "repo")
        owner, repo = args["owner"], args["repo"]

        async def execute() -> str:
            invitations = await self._client.list_invitations(owner, repo)
            if not invitations:
                return f"📨 No pending invitations for {owner}/{repo}"
            lines = [f"📨 Pending invitations for {owner}/{repo} ({len(invitations)})", ""]
            for inv in invitations:
                invitee = (inv.get("invitee") or {}).get("login", "unknown")
                lines.append(f"  #{inv.get('id')} {invitee} ({inv.get('permissions', 'unknown')})")
            return "\n".join(lines)

        return await self._middleware.wrap_execution("list_invitations", args, execute)

    async def accept_invitation(self, args: dict[str, Any]) -> str:
        _require(args, "invitation_id")
        invitation_id = coerce_positive_int("invitation_id", args["invitation_id"])

        async def execute() -> ExecutionOutcome:
            await self._client.accept_invitation(invitation_id)
            return ExecutionOutcome(
                text=f"✅ Invitation #{invitation_id} accepted",
                changes=[f"invitation {invitation_id} accepted"],
            )

        return await self._middleware.wrap_execution(
            "accept_invitation", args, execute,
            preview=lambda: f"Invitation #{invitation_id} would be accepted for the authenticated user.",
        )

    async def cancel_invitation(self, args: dict[str, Any]) -> str:
        _require(args, "owner", "repo", "invitation_id")
        owner, repo = args["owner"], args["repo"]
        invitation_id = coerce_positive_int("invitation_id", args["invitation_id"])

        async def execute() -> ExecutionOutcome:
            await self._client.cancel_invitation(owner, repo, invitation_id)
            return ExecutionOutcome(
                text=f"🚫 Invitation #{invitation_id} to {owner}/{repo} cancelled",
                changes=[f"invitation {invitation_id} cancelled"],
            )

        return await self._middleware.wrap_execution(
            "cancel_invitation", args, execute,
            preview=lambda: f"Invitation #{invitation_id} to {owner}/{repo} would be cancelled.",
        )

    # ─── Teams ───

    async def list_repo_teams(self, args: dict[str, Any]) -> str:
        _require(args, "owner", "repo")
        owner, repo = args["owner"], args["repo"]

        async def execute() -> str:
            teams = await self._client.list_repo_teams(owner, repo)
            if not teams:
                return f"👥 No teams have access to {owner}/{repo}"
            lines = [f"👥 Teams with access to {owner}/{repo} ({len(teams)})", ""]
            for team in teams:
                lines.append(f"  {team.get('slug') or team.get('name')} ({team.get('permission', 'unknown')})")
            return "\n".join(lines)

        return await self._middleware.wrap_execution("list_repo_teams", args, execute)

    async def add_repo_team(self, args: dict[str, Any]) -> str:
        _require(args, "owner", "repo", "org", "team_slug")
        owner, repo, org, team = args["owner"], args["repo"], args["org"], args["team_slug"]
        permission = args.get("permission", "push")

        async def execute() -> ExecutionOutcome:
            await self._client.add_repo_team(org, team, owner, repo, permission)
            return ExecutionOutcome(
                text=f"✅ Team {org}/{team} granted '{permission}' on {owner}/{repo}",
                changes=[f"team {team} permission = {permission}"],
            )

        return await self._middleware.wrap_execution(
            "add_repo_team", args, execute,
            preview=lambda: f"Team {org}/{team} would be granted '{permission}' on {owner}/{repo}.",
        )


# ─── Formatting helpers ──────────────────────────────────────

def _protection_payload(args: dict[str, Any]) -> dict[str, Any]:
    reviews = None
    if "required_approving_review_count" in args:
        reviews = {
            "required_approving_review_count": coerce_positive_int(
                "required_approving_review_count", args["required_approving_review_count"]
            ),
            "dismiss_stale_reviews": bool(args.get("dismiss_stale_reviews", False)),
        }
    checks = None
    if args.get("status_checks"):
        checks = {
            "strict": bool(args.get("require_up_to_date", False)),
            "contexts": list(args["status_checks"]),
        }
    return {
        "required_status_checks": checks,
        "enforce_admins": bool(args.get("enforce_admins", False)),
        "required_pull_request_reviews": reviews,
        "restrictions": None,
    }


def _describe_protection(rules: dict[str, Any]) -> str:
    reviews = rules.get("required_pull_request_reviews") or {}
    checks = rules.get("required_status_checks") or {}
    enforce = rules.get("enforce_admins")
    if isinstance(enforce, dict):
        enforce = enforce.get("enabled")
    contexts = checks.get("contexts") or []
    return "\n".join([
        f"  Required reviews: {reviews.get('required_approving_review_count', 0)}",
        f"  Dismiss stale reviews: {_yes_no(reviews.get('dismiss_stale_reviews'))}",
        f"  Enforce for admins: {_yes_no(enforce)}",
        f"  Status checks: {', '.join(contexts) if contexts else '(none)'}",
    ])


def _describe_hook(hook: dict[str, Any]) -> str:
    config = hook.get("config") or {}
    events = ", ".join(hook.get("events") or [])
    state = "active" if hook.get("active", True) else "inactive"
    return f"  #{hook.get('id')} {config.get('url', '(no url)')} [{events}] {state}"


def _permission_of(user: dict[str, Any]) -> str:
    if user.get("role_name"):
        return str(user["role_name"])
    permissions = user.get("permissions") or {}
    for level in ("admin", "maintain", "push", "triage", "pull"):
        if permissions.get(level):
            return level
    return "unknown"
