"""Forge REST API client."""

from repogate.forge.client import DEFAULT_API_URL, ForgeClient

__all__ = ["DEFAULT_API_URL", "ForgeClient"]
