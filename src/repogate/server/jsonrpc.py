"""
RepoGate JSON-RPC Server

Line-delimited JSON-RPC 2.0 over stdio. One request object per input
line; one response object per output line. Notifications get no
response, and blank or unparseable lines are skipped.

Methods:
- initialize                 echo protocolVersion, advertise tool capability
- initialized                notification, no response
- notifications/initialized  notification, no response
- tools/list                 every registered tool (git tools hidden without git)
- tools/call                 dispatch to a registered tool handler
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any, TextIO

from pydantic import BaseModel, ConfigDict, ValidationError

from repogate import __version__
from repogate.exceptions import JSONRPCError, ParameterValidationError
from repogate.forge.client import ForgeClient
from repogate.git.runner import GitRunner
from repogate.logging import get_logger
from repogate.safety.engine import SafetyEngine
from repogate.server.admin_tools import AdminTools
from repogate.server.git_tools import GitTools
from repogate.server.middleware import SafetyMiddleware
from repogate.server.tools import ToolRegistry, ToolResult

logger = get_logger("repogate.server")

JSONRPC_VERSION = "2.0"
DEFAULT_PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "repogate"

_NOTIFICATIONS = frozenset({"initialized", "notifications/initialized"})


class JSONRPCRequest(BaseModel):
    """Incoming request frame."""
    model_config = ConfigDict(extra="ignore")

    jsonrpc: str | None = None
    id: Any = None
    method: str | None = None
    params: Any = None

    @property
    def is_notification(self) -> bool:
        return "id" not in self.model_fields_set


class JSONRPCServer:
    """Dispatches JSON-RPC frames to the tool registry."""

    def __init__(self, registry: ToolRegistry, git_available: bool = True):
        self._registry = registry
        self._git_available = git_available

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def handle_request(self, data: dict[str, Any]) -> dict[str, Any] | None:
        """Handle one decoded frame. Returns the response, or None for notifications."""
        try:
            request = JSONRPCRequest.model_validate(data)
        except ValidationError as e:
            return _error(data.get("id"), JSONRPCError.INVALID_REQUEST, f"Invalid Request: {e}")

        try:
            result = await self._dispatch(request)
        except JSONRPCError as e:
            if request.is_notification:
                return None
            return _error(request.id, e.code, str(e), e.data)

        if request.is_notification or result is None:
            return None
        return {"jsonrpc": JSONRPC_VERSION, "id": request.id, "result": result}

    async def handle_line(self, line: str) -> str | None:
        """Handle one raw input line. Returns the serialized response, if any."""
        line = line.strip()
        if not line:
            return None
        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning("Skipping invalid JSON frame: %s", e)
            return None
        if not isinstance(data, dict):
            logger.warning("Skipping non-object JSON frame")
            return None

        response = await self.handle_request(data)
        if response is None:
            return None
        return json.dumps(response, ensure_ascii=False, default=str)

    async def serve(self, stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
        """Read frames until EOF, writing one response line per request."""
        stdin = stdin or sys.stdin
        stdout = stdout or sys.stdout
        logger.info("JSON-RPC server listening on stdio", extra={"_extra": {"tools": len(self._registry)}})
        while True:
            line = await asyncio.to_thread(stdin.readline)
            if not line:
                break
            output = await self.handle_line(line)
            if output is not None:
                stdout.write(output + "\n")
                stdout.flush()
        logger.info("JSON-RPC server stopped (EOF)")

    # ─── Dispatch ───

    async def _dispatch(self, request: JSONRPCRequest) -> dict[str, Any] | None:
        if request.jsonrpc != JSONRPC_VERSION:
            raise JSONRPCError(JSONRPCError.INVALID_REQUEST, "Invalid Request: jsonrpc must be '2.0'")
        if not request.method:
            raise JSONRPCError(JSONRPCError.INVALID_REQUEST, "Invalid Request: method is required")

        method = request.method
        logger.debug("Request received", extra={"method": method, "request_id": request.id})

        if method in _NOTIFICATIONS:
            return None
        if method == "initialize":
            return self._initialize(request.params)
        if method == "tools/list":
            return {"tools": self._registry.get_schemas(include_git=self._git_available)}
        if method == "tools/call":
            return await self._call_tool(request.params)
        raise JSONRPCError(JSONRPCError.METHOD_NOT_FOUND, f"Method not found: {method}")

    def _initialize(self, params: Any) -> dict[str, Any]:
        version = DEFAULT_PROTOCOL_VERSION
        if isinstance(params, dict) and params.get("protocolVersion"):
            version = str(params["protocolVersion"])
        return {
            "protocolVersion": version,
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": {"name": SERVER_NAME, "version": __version__},
        }

    async def _call_tool(self, params: Any) -> dict[str, Any]:
        if not isinstance(params, dict):
            raise JSONRPCError(JSONRPCError.INVALID_PARAMS, "Invalid params: expected an object")
        name = params.get("name")
        if not name or not isinstance(name, str):
            raise JSONRPCError(JSONRPCError.INVALID_PARAMS, "Invalid params: tool name is required")
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            raise JSONRPCError(JSONRPCError.INVALID_PARAMS, "Invalid params: arguments must be an object")

        tool = self._registry.get(name)
        if tool is None or (tool.is_git and not self._git_available):
            raise JSONRPCError(JSONRPCError.INVALID_PARAMS, f"Invalid params: unknown tool: {name}")

        try:
            text = await tool.handler(arguments)
        except ParameterValidationError as e:
            raise JSONRPCError(JSONRPCError.INVALID_PARAMS, f"Invalid params: {e}", e.details) from e
        except Exception as e:
            logger.error("Tool failed: %s", e, extra={"tool_name": name, "operation": tool.operation})
            raise JSONRPCError(JSONRPCError.INTERNAL_ERROR, f"Tool execution failed: {e}") from e

        logger.info("Tool completed", extra={"tool_name": name, "operation": tool.operation})
        return ToolResult(content=text).to_payload()


def _error(request_id: Any, code: int, message: str, data: Any = None) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error}


def build_registry(
    client: ForgeClient,
    engine: SafetyEngine,
    runner: GitRunner | None = None,
) -> ToolRegistry:
    """Register the administrative tools and, given a runner, the git tools."""
    registry = ToolRegistry()
    registry.register_all(AdminTools(client, SafetyMiddleware(engine)).tools())
    if runner is not None:
        registry.register_all(GitTools(runner).tools())
    return registry
