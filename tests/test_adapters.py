"""
Tests for switchyard/adapters.py

No real MCP servers are started; the client session is replaced with an
in-memory stand-in.
"""
from contextlib import asynccontextmanager

import httpx
import pytest
from mcp.shared.exceptions import McpError
from mcp.types import (
    CONNECTION_CLOSED,
    INVALID_PARAMS,
    CallToolResult,
    ErrorData,
    ListToolsResult,
    TextContent,
    Tool,
)

from switchyard.adapters import (
    McpAdapter,
    SseAdapter,
    StdioAdapter,
    StreamableHttpAdapter,
    build_adapter,
    build_adapters,
    build_stdio_command,
)
from switchyard.dispatch import DispatchRouter
from switchyard.errors import TransportError
from switchyard.models import CallContext
from switchyard.registry import AdapterRegistry


class FakeSession:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def list_tools(self):
        if self.error:
            raise self.error
        return ListToolsResult(tools=[
            Tool(name="echo", description="Echo the input", inputSchema={"type": "object", "properties": {}}),
        ])

    async def call_tool(self, name, arguments):
        self.calls.append((name, arguments))
        if self.error:
            raise self.error
        return CallToolResult(content=[TextContent(type="text", text=arguments.get("text", ""))])


class InMemoryAdapter(McpAdapter):
    transport = "memory"

    def __init__(self, name, session):
        super().__init__(name)
        self.session = session

    @asynccontextmanager
    async def _session(self):
        yield self.session


CONTEXT = CallContext(session_id="test")


class TestMcpAdapter:
    @pytest.mark.asyncio
    async def test_list_tools_returns_wire_dicts(self):
        tools = await InMemoryAdapter("mem", FakeSession()).list_tools()

        assert tools[0]["name"] == "echo"
        assert tools[0]["description"] == "Echo the input"
        assert tools[0]["inputSchema"] == {"type": "object", "properties": {}}

    @pytest.mark.asyncio
    async def test_call_tool_returns_wire_dict(self):
        session = FakeSession()
        result = await InMemoryAdapter("mem", session).call_tool("echo", {"text": "hi"}, CONTEXT)

        assert result["content"] == [{"type": "text", "text": "hi"}]
        assert result["isError"] is False
        assert session.calls == [("echo", {"text": "hi"})]

    @pytest.mark.asyncio
    async def test_connection_failure_becomes_transport_error(self):
        session = FakeSession(error=httpx.ConnectError("connection refused"))
        with pytest.raises(TransportError) as exc_info:
            await InMemoryAdapter("remote", session).call_tool("echo", {}, CONTEXT)
        assert exc_info.value.server_name == "remote"
        assert "connection refused" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_single_exception_groups_are_unwrapped(self):
        session = FakeSession(error=ExceptionGroup("task group", [BrokenPipeError("pipe closed")]))
        with pytest.raises(TransportError):
            await InMemoryAdapter("local", session).list_tools()

    @pytest.mark.asyncio
    async def test_other_errors_propagate_unchanged(self):
        session = FakeSession(error=ExceptionGroup("task group", [ValueError("bad input")]))
        with pytest.raises(ValueError, match="bad input"):
            await InMemoryAdapter("local", session).call_tool("echo", {}, CONTEXT)

    @pytest.mark.asyncio
    async def test_closed_session_becomes_transport_error(self):
        closed = McpError(ErrorData(code=CONNECTION_CLOSED, message="Connection closed"))
        with pytest.raises(TransportError) as exc_info:
            await InMemoryAdapter("local", FakeSession(error=closed)).call_tool("echo", {}, CONTEXT)
        assert "Connection closed" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_other_mcp_errors_propagate(self):
        invalid = McpError(ErrorData(code=INVALID_PARAMS, message="Unknown tool: echo"))
        with pytest.raises(McpError):
            await InMemoryAdapter("local", FakeSession(error=invalid)).call_tool("echo", {}, CONTEXT)

    @pytest.mark.asyncio
    async def test_http_status_error_becomes_transport_error(self):
        request = httpx.Request("POST", "https://example.com/mcp")
        response = httpx.Response(502, request=request)
        error = httpx.HTTPStatusError("502 Bad Gateway", request=request, response=response)
        with pytest.raises(TransportError):
            await InMemoryAdapter("remote", FakeSession(error=error)).list_tools()

    @pytest.mark.asyncio
    async def test_router_reports_closed_session_as_transport(self):
        closed = McpError(ErrorData(code=CONNECTION_CLOSED, message="Connection closed"))
        registry = AdapterRegistry()
        adapter = InMemoryAdapter("local", FakeSession(error=closed))
        registry.register(adapter, [{"name": "echo"}])

        result = await DispatchRouter(registry).invoke("echo", {}, CONTEXT)

        assert result.is_error is True
        assert result.error_type == "transport"


class TestBuildAdapter:
    def test_streamable_http_is_the_default_for_urls(self):
        adapter = build_adapter("remote", {"url": "https://example.com/mcp", "headers": {"Authorization": "Bearer x"}})
        assert isinstance(adapter, StreamableHttpAdapter)
        assert adapter.headers == {"Authorization": "Bearer x"}
        assert adapter.describe() == "streamable-http: https://example.com/mcp"

    def test_sse(self):
        adapter = build_adapter("legacy", {"url": "https://example.com/sse", "type": "sse"})
        assert isinstance(adapter, SseAdapter)

    def test_unsupported_url_transport(self):
        with pytest.raises(ValueError, match="unsupported transport type 'websocket'"):
            build_adapter("ws", {"url": "wss://example.com", "type": "websocket"})

    def test_command(self):
        adapter = build_adapter("files", {
            "command": "npx",
            "args": ["-y", "@modelcontextprotocol/server-filesystem", "/tmp"],
            "env": {"DEBUG": "1"},
        })
        assert isinstance(adapter, StdioAdapter)
        assert adapter.env == {"DEBUG": "1"}
        assert adapter.describe() == "stdio: npx -y @modelcontextprotocol/server-filesystem /tmp"

    def test_packaged_server(self):
        adapter = build_adapter("time", {"registry": "pypi", "identifier": "mcp-server-time"})
        assert (adapter.command, adapter.args) == ("uvx", ["--quiet", "mcp-server-time"])

    def test_definition_without_target(self):
        with pytest.raises(ValueError, match="needs a url, command or identifier"):
            build_adapter("empty", {"description": "nothing to connect to"})

    def test_build_adapters_keeps_names(self):
        adapters = build_adapters({"a": {"command": "a-server"}, "b": {"url": "http://localhost:9000/mcp"}})
        assert [a.name for a in adapters] == ["a", "b"]


@pytest.mark.parametrize("definition, expected", [
    ({"registry": "npm", "identifier": "@acme/mcp"}, ("npx", ["-y", "--quiet", "@acme/mcp"])),
    ({"registry": "pypi", "identifier": "acme-mcp"}, ("uvx", ["--quiet", "acme-mcp"])),
    ({"registry": "oci", "identifier": "acme/mcp:1"}, ("docker", ["run", "--rm", "-i", "acme/mcp:1"])),
    ({"registry": "other", "identifier": "acme"}, ("npx", ["-y", "--quiet", "acme"])),
    ({"registry": "npm", "identifier": "acme", "runtime_hint": "bunx"}, ("bunx", ["acme"])),
])
def test_build_stdio_command(definition, expected):
    assert build_stdio_command(definition) == expected
