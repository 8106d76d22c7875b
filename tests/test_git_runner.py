"""Tests for the git runner and the git_* tool handlers.

Runs real git in a throwaway repository; skipped when git is absent.
"""

import shutil
import subprocess

import pytest

from repogate.exceptions import GitCommandError, ParameterValidationError
from repogate.git.runner import GitRunner
from repogate.server.git_tools import GitTools

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


@pytest.fixture
def repo(tmp_path):
    def git(*args):
        subprocess.run(["git", *args], cwd=tmp_path, check=True, capture_output=True)

    git("init", "-q", "-b", "main")
    git("config", "user.email", "dev@example.com")
    git("config", "user.name", "Dev")
    git("config", "commit.gpgsign", "false")
    (tmp_path / "README.md").write_text("hello\n")
    git("add", "README.md")
    git("commit", "-q", "-m", "initial commit")
    return tmp_path


@pytest.fixture
def runner(repo):
    return GitRunner(repo)


@pytest.fixture
def tools(runner):
    return GitTools(runner)


class TestGitRunner:
    @pytest.mark.asyncio
    async def test_status_and_branch(self, runner):
        assert "main" in await runner.status()
        assert await runner.current_branch() == "main"

    @pytest.mark.asyncio
    async def test_log(self, runner):
        assert "initial commit" in await runner.log(5)

    @pytest.mark.asyncio
    async def test_log_rejects_zero(self, runner):
        with pytest.raises(ParameterValidationError):
            await runner.log(0)

    @pytest.mark.asyncio
    async def test_add_commit_diff(self, runner, repo):
        (repo / "README.md").write_text("hello\nworld\n")
        assert "+world" in await runner.diff()
        await runner.add(["README.md"])
        assert "+world" in await runner.diff(staged=True)
        await runner.commit("add world")
        assert "add world" in await runner.log(1)

    @pytest.mark.asyncio
    async def test_checkout_create(self, runner):
        await runner.checkout("feature-x", create=True)
        assert await runner.current_branch() == "feature-x"

    @pytest.mark.asyncio
    async def test_failure_raises_git_error(self, runner):
        with pytest.raises(GitCommandError) as exc_info:
            await runner.checkout("does-not-exist")
        assert exc_info.value.returncode != 0
        assert str(exc_info.value).startswith("git checkout does-not-exist failed")

    @pytest.mark.asyncio
    async def test_missing_binary(self, repo):
        runner = GitRunner(repo, git_binary="definitely-not-git-xyz")
        assert runner.is_available() is False
        with pytest.raises(GitCommandError) as exc_info:
            await runner.status()
        assert exc_info.value.returncode == 127


class TestArgumentChecks:
    @pytest.mark.asyncio
    async def test_traversal_path_rejected(self, runner):
        with pytest.raises(ParameterValidationError):
            await runner.diff(path="../outside")

    @pytest.mark.asyncio
    async def test_absolute_path_rejected(self, runner):
        with pytest.raises(ParameterValidationError):
            await runner.add(["/etc/passwd"])

    @pytest.mark.asyncio
    async def test_empty_paths_rejected(self, runner):
        with pytest.raises(ParameterValidationError):
            await runner.add([])

    @pytest.mark.asyncio
    async def test_empty_message_rejected(self, runner):
        with pytest.raises(ParameterValidationError):
            await runner.commit("   ")

    @pytest.mark.asyncio
    async def test_option_like_branch_rejected(self, runner):
        with pytest.raises(ParameterValidationError):
            await runner.checkout("--orphan")

    @pytest.mark.asyncio
    async def test_remote_metacharacters_rejected(self, runner):
        with pytest.raises(ParameterValidationError):
            await runner.push("origin; rm -rf /")
        with pytest.raises(ParameterValidationError):
            await runner.pull("--upload-pack=evil")


class TestGitTools:
    def test_tool_names(self, tools):
        names = [t.definition.name for t in tools.tools()]
        assert names == [
            "git_status", "git_log", "git_branches", "git_diff", "git_add",
            "git_commit", "git_checkout", "git_pull", "git_push",
        ]

    @pytest.mark.asyncio
    async def test_diff_no_changes(self, tools):
        assert await tools.diff({}) == "No changes"

    @pytest.mark.asyncio
    async def test_add_accepts_single_string(self, tools, repo):
        (repo / "new.txt").write_text("x")
        assert await tools.add({"paths": "new.txt"}) == "✅ Staged: new.txt"

    @pytest.mark.asyncio
    async def test_add_rejects_non_list(self, tools):
        with pytest.raises(ParameterValidationError):
            await tools.add({"paths": 3})

    @pytest.mark.asyncio
    async def test_checkout_message(self, tools):
        assert await tools.checkout({"branch": "topic", "create": True}) == "✅ Switched to branch topic"

    @pytest.mark.asyncio
    async def test_log_validates_count(self, tools):
        with pytest.raises(ParameterValidationError):
            await tools.log({"max_count": "ten"})
