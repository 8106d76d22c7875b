"""Local working-copy access through the git command-line program."""

from repogate.git.runner import GitRunner

__all__ = ["GitRunner"]
