"""
Backend Adapters for MCP Servers

Supports:
1. Stdio transport (local packages via npx, uvx, docker, or a raw command)
2. Streamable HTTP transport (remote servers)
3. SSE transport (older remote servers)

Each call opens a fresh client session through the official MCP Python SDK.
Connection failures, HTTP status errors and closed sessions are raised as
TransportError so the router can keep them apart from errors reported by
the tool itself.
"""

import logging
import os
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, Dict, List, Optional, Tuple

import httpx
from mcp import ClientSession
from mcp.client.sse import sse_client
from mcp.client.stdio import StdioServerParameters, stdio_client
from mcp.client.streamable_http import streamable_http_client
from mcp.shared.exceptions import McpError
from mcp.types import CONNECTION_CLOSED

from .errors import TransportError
from .models import CallContext

logger = logging.getLogger(__name__)


def _unwrap(exc: BaseException) -> BaseException:
    """Strip single-member exception groups raised by the SDK's task groups."""
    while isinstance(exc, BaseExceptionGroup) and len(exc.exceptions) == 1:
        exc = exc.exceptions[0]
    return exc


def _is_transport_failure(exc: BaseException) -> bool:
    if isinstance(exc, (OSError, EOFError, httpx.TransportError, httpx.HTTPStatusError)):
        return True
    # The session reports a dead backend (stdio child exited, stream dropped) this way
    return isinstance(exc, McpError) and exc.error.code == CONNECTION_CLOSED


class BackendAdapter:
    """One connected tool server."""

    transport = "unknown"

    def __init__(self, name: str):
        self.name = name

    async def list_tools(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any], context: CallContext) -> Dict[str, Any]:
        raise NotImplementedError

    def describe(self) -> str:
        return self.transport

    def __repr__(self):
        return f"<{type(self).__name__} {self.name} ({self.describe()})>"


class McpAdapter(BackendAdapter):
    """Base for adapters that speak MCP over a client session."""

    def _streams(self):
        raise NotImplementedError

    @asynccontextmanager
    async def _session(self):
        async with self._streams() as streams:
            read, write = streams[0], streams[1]
            async with ClientSession(read, write) as session:
                await session.initialize()
                yield session

    def _reraise(self, exc: Exception):
        inner = _unwrap(exc)
        if _is_transport_failure(inner):
            raise TransportError(self.name, str(inner) or type(inner).__name__) from inner
        raise inner

    async def list_tools(self) -> List[Dict[str, Any]]:
        try:
            async with self._session() as session:
                result = await session.list_tools()
        except Exception as e:
            self._reraise(e)
        return [t.model_dump(mode="json", by_alias=True, exclude_none=True) for t in result.tools or []]

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any], context: CallContext) -> Dict[str, Any]:
        logger.debug(f"[{context.session_id}] {self.name} ({self.transport}) -> {tool_name}")
        try:
            async with self._session() as session:
                result = await session.call_tool(tool_name, arguments)
        except Exception as e:
            self._reraise(e)
        return result.model_dump(mode="json", by_alias=True, exclude_none=True)


class StdioAdapter(McpAdapter):
    transport = "stdio"

    def __init__(
        self,
        name: str,
        command: str,
        args: Optional[List[str]] = None,
        env: Optional[Dict[str, str]] = None,
        cwd: Optional[str] = None,
    ):
        super().__init__(name)
        self.command = command
        self.args = args or []
        self.env = env or {}
        self.cwd = cwd

    def _streams(self):
        # Merge provided env with current process environment
        full_env = os.environ.copy()
        full_env.update(self.env)
        params = StdioServerParameters(command=self.command, args=self.args, env=full_env, cwd=self.cwd)
        return stdio_client(params)

    def describe(self) -> str:
        return f"stdio: {self.command} {' '.join(self.args)}".strip()


class StreamableHttpAdapter(McpAdapter):
    transport = "streamable-http"

    def __init__(self, name: str, url: str, headers: Optional[Dict[str, str]] = None):
        super().__init__(name)
        self.url = url
        self.headers = headers or {}

    @asynccontextmanager
    async def _streams(self):
        async with AsyncExitStack() as stack:
            http_client = None
            if self.headers:
                http_client = await stack.enter_async_context(httpx.AsyncClient(headers=self.headers))
            streams = await stack.enter_async_context(streamable_http_client(self.url, http_client=http_client))
            yield streams

    def describe(self) -> str:
        return f"{self.transport}: {self.url}"


class SseAdapter(McpAdapter):
    transport = "sse"

    def __init__(self, name: str, url: str, headers: Optional[Dict[str, str]] = None):
        super().__init__(name)
        self.url = url
        self.headers = headers or {}

    def _streams(self):
        return sse_client(self.url, headers=self.headers or None)

    def describe(self) -> str:
        return f"{self.transport}: {self.url}"


# ==================== CONSTRUCTION ====================

def build_stdio_command(definition: Dict[str, Any]) -> Tuple[str, List[str]]:
    """Build the command and args for a packaged stdio server based on registry type."""
    registry = definition.get('registry', '')
    identifier = definition.get('identifier', '')
    runtime_hint = definition.get('runtime_hint', '')

    if runtime_hint:
        return runtime_hint, [identifier]

    if registry == 'npm':
        return 'npx', ['-y', '--quiet', identifier]
    elif registry == 'pypi':
        return 'uvx', ['--quiet', identifier]
    elif registry == 'oci':
        return 'docker', ['run', '--rm', '-i', identifier]
    else:
        # Unknown, try npx
        return 'npx', ['-y', '--quiet', identifier]


def build_adapter(name: str, definition: Dict[str, Any]) -> BackendAdapter:
    """
    Build an adapter from a server definition.

    Definitions name either a "url" (with optional "type": "sse" or
    "streamable-http" and "headers"), a "command" (with "args", "env",
    "cwd"), or a packaged server via "registry" + "identifier".
    """
    if definition.get("url"):
        transport = definition.get("type", "streamable-http")
        if transport == "sse":
            return SseAdapter(name, definition["url"], headers=definition.get("headers"))
        if transport in ("streamable-http", "http"):
            return StreamableHttpAdapter(name, definition["url"], headers=definition.get("headers"))
        raise ValueError(f"Server '{name}': unsupported transport type '{transport}'")

    if definition.get("command"):
        return StdioAdapter(
            name,
            definition["command"],
            args=definition.get("args"),
            env=definition.get("env"),
            cwd=definition.get("cwd"),
        )

    if definition.get("identifier"):
        command, args = build_stdio_command(definition)
        return StdioAdapter(name, command, args=args, env=definition.get("env"))

    raise ValueError(f"Server '{name}': definition needs a url, command or identifier")


def build_adapters(definitions: Dict[str, Dict[str, Any]]) -> List[BackendAdapter]:
    return [build_adapter(name, definition) for name, definition in definitions.items()]
