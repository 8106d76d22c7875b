"""
RepoGate Git Runner

Runs the ``git`` command-line program against the local working copy.
Commands are executed without a shell via asyncio subprocesses with:
- Timeout enforcement (process killed on expiry)
- Output size caps
- Argument checks against shell metacharacters and path traversal

Git commands are not administrative forge operations and are not
governed by the safety engine.
"""

from __future__ import annotations

import asyncio
import os
import shutil

from repogate.exceptions import GitCommandError, ParameterValidationError
from repogate.logging import get_logger
from repogate.safety.validators import validate_branch, validate_safe_input, validate_safe_path

logger = get_logger("repogate.git")

DEFAULT_TIMEOUT = 30.0
MAX_OUTPUT_BYTES = 65536


class GitRunner:
    """Executes git commands in one working directory."""

    def __init__(
        self,
        cwd: str | os.PathLike[str] = ".",
        timeout: float = DEFAULT_TIMEOUT,
        git_binary: str = "git",
    ):
        self._cwd = os.fspath(cwd)
        self._timeout = timeout
        self._git = git_binary

    @property
    def cwd(self) -> str:
        return self._cwd

    def is_available(self) -> bool:
        return shutil.which(self._git) is not None

    async def run(self, *args: str) -> str:
        """Run ``git <args>`` and return stdout.

        Raises:
            GitCommandError: Non-zero exit, timeout, or missing binary.
        """
        argv = list(args)
        try:
            proc = await asyncio.create_subprocess_exec(
                self._git,
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._cwd,
                env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
            )
        except FileNotFoundError as e:
            raise GitCommandError(argv, 127, f"{self._git} not found") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            raise GitCommandError(argv, -1, f"timed out after {self._timeout}s") from None

        output = stdout.decode("utf-8", errors="replace")
        if proc.returncode != 0:
            raise GitCommandError(argv, proc.returncode, stderr.decode("utf-8", errors="replace"))

        logger.debug("git command finished", extra={"_extra": {"args": argv}})
        if len(output) > MAX_OUTPUT_BYTES:
            output = output[:MAX_OUTPUT_BYTES] + f"\n[TRUNCATED at {MAX_OUTPUT_BYTES} bytes]"
        return output

    # ─── Read-only ───

    async def status(self) -> str:
        return await self.run("status", "--short", "--branch")

    async def log(self, max_count: int = 10) -> str:
        if max_count <= 0:
            raise ParameterValidationError("max_count", max_count, "must be a positive integer")
        return await self.run("log", f"--max-count={max_count}", "--pretty=format:%h %an %ad %s", "--date=short")

    async def branches(self) -> str:
        return await self.run("branch", "--list", "--all")

    async def current_branch(self) -> str:
        return (await self.run("rev-parse", "--abbrev-ref", "HEAD")).strip()

    async def diff(self, staged: bool = False, path: str | None = None) -> str:
        args = ["diff"]
        if staged:
            args.append("--cached")
        if path:
            validate_safe_path(path)
            args.extend(["--", path])
        return await self.run(*args)

    # ─── Mutating ───

    async def add(self, paths: list[str]) -> str:
        if not paths:
            raise ParameterValidationError("paths", paths, "must specify at least one path")
        for path in paths:
            if path != ".":
                validate_safe_path(path, parameter="paths")
        return await self.run("add", "--", *paths)

    async def commit(self, message: str) -> str:
        if not message or not message.strip():
            raise ParameterValidationError("message", message, "cannot be empty")
        return await self.run("commit", "-m", message)

    async def checkout(self, branch: str, create: bool = False) -> str:
        validate_branch("branch", branch)
        args = ["checkout", "-b", branch] if create else ["checkout", branch]
        return await self.run(*args)

    async def pull(self, remote: str = "origin", branch: str | None = None) -> str:
        _check_remote(remote)
        args = ["pull", remote]
        if branch:
            validate_branch("branch", branch)
            args.append(branch)
        return await self.run(*args)

    async def push(self, remote: str = "origin", branch: str | None = None, set_upstream: bool = False) -> str:
        _check_remote(remote)
        args = ["push"]
        if set_upstream:
            args.append("--set-upstream")
        args.append(remote)
        if branch:
            validate_branch("branch", branch)
            args.append(branch)
        return await self.run(*args)


def _check_remote(remote: str) -> None:
    validate_safe_input(remote, parameter="remote")
    if not remote or remote.startswith("-"):
        raise ParameterValidationError("remote", remote, "invalid remote name")
