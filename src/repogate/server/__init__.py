"""JSON-RPC tool server: tool registry, safety middleware and stdio transport."""

from repogate.server.jsonrpc import JSONRPCServer, build_registry
from repogate.server.middleware import ExecutionOutcome, SafetyMiddleware
from repogate.server.tools import RegisteredTool, ToolDefinition, ToolRegistry, ToolResult

__all__ = [
    "ExecutionOutcome",
    "JSONRPCServer",
    "RegisteredTool",
    "SafetyMiddleware",
    "ToolDefinition",
    "ToolRegistry",
    "ToolResult",
    "build_registry",
]
