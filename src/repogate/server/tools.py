"""
RepoGate Tool Registry

Central registry for every tool exposed over JSON-RPC. Each tool pairs
a schema definition with an async handler taking the raw argument map.
Administrative tools additionally name the forge operation the safety
engine governs.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

ADMIN_PREFIX = "github_"
GIT_PREFIX = "git_"

ToolHandler = Callable[[dict[str, Any]], Awaitable[str]]


@dataclass
class ToolDefinition:
    """Schema of a tool as advertised by tools/list."""
    name: str
    description: str
    input_schema: dict = field(default_factory=dict)

    def to_schema(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


@dataclass
class ToolResult:
    """Result of a tools/call invocation."""
    content: str
    is_error: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "content": [{"type": "text", "text": self.content}],
            "isError": self.is_error,
        }


class RegisteredTool:
    """A tool definition bound to its handler.

    ``operation`` is set for administrative tools: the unprefixed forge
    operation name the safety engine classifies.
    """

    def __init__(
        self,
        definition: ToolDefinition,
        handler: ToolHandler,
        operation: str | None = None,
    ):
        self.definition = definition
        self.handler = handler
        self.operation = operation

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def is_git(self) -> bool:
        return self.name.startswith(GIT_PREFIX)


class ToolRegistry:
    """Name-indexed collection of registered tools."""

    def __init__(self) -> None:
        self._tools: dict[str, RegisteredTool] = {}

    def register(self, tool: RegisteredTool) -> None:
        """Register a tool.

        Raises ValueError if a tool with the same name already exists.
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool

    def register_all(self, tools: list[RegisteredTool]) -> None:
        for tool in tools:
            self.register(tool)

    def get(self, name: str) -> RegisteredTool | None:
        return self._tools.get(name)

    def get_schemas(self, include_git: bool = True) -> list[dict[str, Any]]:
        """tools/list payload; git tools are left out when git is unavailable."""
        return [
            t.definition.to_schema()
            for t in self._tools.values()
            if include_git or not t.is_git
        ]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools


def admin_tool_name(operation: str) -> str:
    return f"{ADMIN_PREFIX}{operation}"
