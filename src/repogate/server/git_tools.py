"""
RepoGate Git Tools

Tool schemas and handlers for the local working copy. These wrap
GitRunner directly; git commands are not administrative forge
operations and are not governed by the safety engine.
"""

from __future__ import annotations

from typing import Any

from repogate.exceptions import ParameterValidationError
from repogate.git.runner import GitRunner
from repogate.server.tools import GIT_PREFIX, RegisteredTool, ToolDefinition
from repogate.safety.validators import coerce_positive_int


def _empty(text: str, fallback: str) -> str:
    return text.strip() or fallback


class GitTools:
    """Binds a GitRunner into ``git_*`` tool handlers."""

    def __init__(self, runner: GitRunner):
        self._runner = runner

    def tools(self) -> list[RegisteredTool]:
        specs = [
            ("status", "Show the working tree status.", {}, [], self.status),
            ("log", "Show recent commits.", {
                "max_count": {"type": "integer", "minimum": 1, "description": "Number of commits (default 10)"},
            }, [], self.log),
            ("branches", "List local and remote branches.", {}, [], self.branches),
            ("diff", "Show unstaged or staged changes.", {
                "staged": {"type": "boolean", "description": "Diff the index instead of the working tree"},
                "path": {"type": "string", "description": "Limit the diff to one path"},
            }, [], self.diff),
            ("add", "Stage files for commit.", {
                "paths": {"type": "array", "items": {"type": "string"}, "description": "Paths to stage"},
            }, ["paths"], self.add),
            ("commit", "Record staged changes.", {
                "message": {"type": "string", "description": "Commit message"},
            }, ["message"], self.commit),
            ("checkout", "Switch branches, optionally creating one.", {
                "branch": {"type": "string", "description": "Branch name"},
                "create": {"type": "boolean", "description": "Create the branch first"},
            }, ["branch"], self.checkout),
            ("pull", "Fetch and integrate from a remote.", {
                "remote": {"type": "string", "description": "Remote name (default origin)"},
                "branch": {"type": "string", "description": "Remote branch"},
            }, [], self.pull),
            ("push", "Update a remote with local commits.", {
                "remote": {"type": "string", "description": "Remote name (default origin)"},
                "branch": {"type": "string", "description": "Branch to push"},
                "set_upstream": {"type": "boolean", "description": "Track the pushed branch"},
            }, [], self.push),
        ]
        return [
            RegisteredTool(
                definition=ToolDefinition(
                    name=f"{GIT_PREFIX}{name}",
                    description=description,
                    input_schema={"type": "object", "properties": props, "required": required},
                ),
                handler=handler,
            )
            for name, description, props, required, handler in specs
        ]

    async def status(self, args: dict[str, Any]) -> str:
        return _empty(await self._runner.status(), "Working tree clean")

    async def log(self, args: dict[str, Any]) -> str:
        max_count = coerce_positive_int("max_count", args.get("max_count", 10))
        return _empty(await self._runner.log(max_count), "No commits yet")

    async def branches(self, args: dict[str, Any]) -> str:
        return _empty(await self._runner.branches(), "No branches")

    async def diff(self, args: dict[str, Any]) -> str:
        output = await self._runner.diff(staged=bool(args.get("staged", False)), path=args.get("path"))
        return _empty(output, "No changes")

    async def add(self, args: dict[str, Any]) -> str:
        paths = args.get("paths")
        if isinstance(paths, str):
            paths = [paths]
        if not isinstance(paths, list):
            raise ParameterValidationError("paths", paths, "must be a list of paths")
        await self._runner.add(paths)
        return f"✅ Staged: {', '.join(paths)}"

    async def commit(self, args: dict[str, Any]) -> str:
        return _empty(await self._runner.commit(args.get("message", "")), "Committed")

    async def checkout(self, args: dict[str, Any]) -> str:
        branch = args.get("branch", "")
        await self._runner.checkout(branch, create=bool(args.get("create", False)))
        return f"✅ Switched to branch {branch}"

    async def pull(self, args: dict[str, Any]) -> str:
        output = await self._runner.pull(args.get("remote", "origin"), args.get("branch"))
        return _empty(output, "Already up to date.")

    async def push(self, args: dict[str, Any]) -> str:
        output = await self._runner.push(
            args.get("remote", "origin"),
            args.get("branch"),
            set_upstream=bool(args.get("set_upstream", False)),
        )
        return _empty(output, "✅ Pushed")
