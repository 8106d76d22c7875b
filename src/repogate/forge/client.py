"""
RepoGate Forge Client

Async REST client for the hosted forge's administrative endpoints
(GitHub REST v3 layout). One coroutine per administrative operation;
the safety layer decides whether a call may be made, this module only
performs it.

Usage:
    async with ForgeClient(token=os.environ["GITHUB_TOKEN"]) as client:
        settings = await client.get_repo_settings("acme", "demo")
"""

from __future__ import annotations

from typing import Any

import httpx

from repogate.exceptions import ForgeAPIError
from repogate.logging import get_logger

logger = get_logger("repogate.forge")

DEFAULT_API_URL = "https://api.github.com"
API_VERSION = "2022-11-28"
USER_AGENT = "repogate/1.0"


class ForgeClient:
    """Thin async wrapper over the forge REST API.

    Args:
        token: Personal access token sent as a bearer credential.
        base_url: API root, overridable for enterprise installs.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
                "User-Agent": USER_AGENT,
            },
        )

    async def __aenter__(self) -> ForgeClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        allow_not_found: bool = False,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.HTTPError as e:
            raise ForgeAPIError(0, f"{method} {path}: {e}") from e

        logger.debug(
            "Forge request",
            extra={"method": method, "_extra": {"path": path, "status": response.status_code}},
        )
        if response.is_success or (allow_not_found and response.status_code == 404):
            return response
        raise ForgeAPIError(response.status_code, _error_message(response), details={"path": path})

    async def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._request(method, path, **kwargs)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # ─── Repository settings ───

    async def get_repo_settings(self, owner: str, repo: str) -> dict[str, Any]:
        return await self._json("GET", f"/repos/{owner}/{repo}")

    async def update_repo_settings(self, owner: str, repo: str, settings: dict[str, Any]) -> dict[str, Any]:
        return await self._json("PATCH", f"/repos/{owner}/{repo}", json=settings)

    async def archive_repository(self, owner: str, repo: str) -> dict[str, Any]:
        return await self._json("PATCH", f"/repos/{owner}/{repo}", json={"archived": True})

    async def delete_repository(self, owner: str, repo: str) -> None:
        await self._request("DELETE", f"/repos/{owner}/{repo}")

    # ─── Branch protection ───

    async def get_branch_protection(self, owner: str, repo: str, branch: str) -> dict[str, Any] | None:
        """Current protection rules, or None if the branch is unprotected."""
        response = await self._request(
            "GET", f"/repos/{owner}/{repo}/branches/{branch}/protection", allow_not_found=True,
        )
        if response.status_code == 404:
            return None
        return response.json()

    async def update_branch_protection(
        self, owner: str, repo: str, branch: str, protection: dict[str, Any],
    ) -> dict[str, Any]:
        return await self._json(
            "PUT", f"/repos/{owner}/{repo}/branches/{branch}/protection", json=protection,
        )

    async def delete_branch_protection(self, owner: str, repo: str, branch: str) -> None:
        await self._request("DELETE", f"/repos/{owner}/{repo}/branches/{branch}/protection")

    # ─── Webhooks ───

    async def list_webhooks(self, owner: str, repo: str) -> list[dict[str, Any]]:
        return await self._json("GET", f"/repos/{owner}/{repo}/hooks") or []

    async def get_webhook(self, owner: str, repo: str, hook_id: int) -> dict[str, Any]:
        return await self._json("GET", f"/repos/{owner}/{repo}/hooks/{hook_id}")

    async def create_webhook(
        self,
        owner: str,
        repo: str,
        url: str,
        events: list[str],
        content_type: str = "json",
        secret: str | None = None,
        active: bool = True,
    ) -> dict[str, Any]:
        config: dict[str, Any] = {"url": url, "content_type": content_type}
        if secret:
            config["secret"] = secret
        payload = {"name": "web", "active": active, "events": events, "config": config}
        return await self._json("POST", f"/repos/{owner}/{repo}/hooks", json=payload)

    async def update_webhook(
        self,
        owner: str,
        repo: str,
        hook_id: int,
        url: str | None = None,
        events: list[str] | None = None,
        content_type: str | None = None,
        secret: str | None = None,
        active: bool | None = None,
    ) -> dict[str, Any]:
        config = {
            k: v for k, v in (("url", url), ("content_type", content_type), ("secret", secret))
            if v is not None
        }
        payload: dict[str, Any] = {}
        if config:
            payload["config"] = config
        if events is not None:
            payload["events"] = events
        if active is not None:
            payload["active"] = active
        return await self._json("PATCH", f"/repos/{owner}/{repo}/hooks/{hook_id}", json=payload)

    async def delete_webhook(self, owner: str, repo: str, hook_id: int) -> None:
        await self._request("DELETE", f"/repos/{owner}/{repo}/hooks/{hook_id}")

    async def test_webhook(self, owner: str, repo: str, hook_id: int) -> None:
        await self._request("POST", f"/repos/{owner}/{repo}/hooks/{hook_id}/tests")

    # ─── Collaborators ───

    async def list_collaborators(
        self, owner: str, repo: str, affiliation: str | None = None,
    ) -> list[dict[str, Any]]:
        params = {"affiliation": affiliation} if affiliation else None
        return await self._json("GET", f"/repos/{owner}/{repo}/collaborators", params=params) or []

    async def check_collaborator(self, owner: str, repo: str, username: str) -> bool:
        response = await self._request(
            "GET", f"/repos/{owner}/{repo}/collaborators/{username}", allow_not_found=True,
        )
        return response.status_code == 204

    async def get_collaborator_permission(self, owner: str, repo: str, username: str) -> dict[str, Any]:
        return await self._json("GET", f"/repos/{owner}/{repo}/collaborators/{username}/permission")

    async def add_collaborator(
        self, owner: str, repo: str, username: str, permission: str = "push",
    ) -> dict[str, Any] | None:
        """Invite a collaborator. Returns the invitation, or None if already a member."""
        return await self._json(
            "PUT", f"/repos/{owner}/{repo}/collaborators/{username}", json={"permission": permission},
        )

    async def update_collaborator_permission(
        self, owner: str, repo: str, username: str, permission: str,
    ) -> dict[str, Any] | None:
        return await self.add_collaborator(owner, repo, username, permission)

    async def remove_collaborator(self, owner: str, repo: str, username: str) -> None:
        await self._request("DELETE", f"/repos/{owner}/{repo}/collaborators/{username}")

    # ─── Invitations ───

    async def list_invitations(self, owner: str, repo: str) -> list[dict[str, Any]]:
        return await self._json("GET", f"/repos/{owner}/{repo}/invitations") or []

    async def accept_invitation(self, invitation_id: int) -> None:
        await self._request("PATCH", f"/user/repository_invitations/{invitation_id}")

    async def cancel_invitation(self, owner: str, repo: str, invitation_id: int) -> None:
        await self._request("DELETE", f"/repos/{owner}/{repo}/invitations/{invitation_id}")

    # ─── Teams ───

    async def list_repo_teams(self, owner: str, repo: str) -> list[dict[str, Any]]:
        return await self._json("GET", f"/repos/{owner}/{repo}/teams") or []

    async def add_repo_team(
        self, org: str, team_slug: str, owner: str, repo: str, permission: str = "push",
    ) -> None:
        await self._request(
            "PUT",
            f"/orgs/{org}/teams/{team_slug}/repos/{owner}/{repo}",
            json={"permission": permission},
        )


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:500] or response.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase
