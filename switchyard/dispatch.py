"""
Dispatch Router

Resolves a tool name to the server that owns it, checks the arguments
against the tool's input schema, runs the call under a deadline and
normalizes whatever comes back into an InvocationResult.

Every dispatch-time failure is returned as an isError result rather than
raised, so callers always get an inspectable payload. The errorType field
tells resolution, validation, timeout, transport and execution failures
apart.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from .arguments import validate_arguments
from .config import DEFAULT_CALL_TIMEOUT, DEFAULT_SESSION_ID
from .errors import ArgumentValidationError, ResolutionError, TransportError
from .models import CallContext, InvocationRequest, InvocationResult
from .registry import AdapterRegistry, RegisteredServer

logger = logging.getLogger(__name__)


def _to_plain(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    return value


def _to_content_item(item: Any) -> Dict[str, Any]:
    item = _to_plain(item)
    if isinstance(item, dict):
        return item
    return {"type": "text", "text": item if isinstance(item, str) else json.dumps(item, default=str)}


def normalize_result(raw: Any) -> InvocationResult:
    """
    Map an adapter's return value onto the uniform result shape.

    A bare value becomes a single text item, as does any content entry that
    is not an object.
    """
    raw = _to_plain(raw)
    if raw is None:
        return InvocationResult()
    if not isinstance(raw, dict):
        return InvocationResult(content=[_to_content_item(raw)])

    content = raw.get("content") or []
    if not isinstance(content, list):
        content = [content]
    return InvocationResult(
        content=[_to_content_item(item) for item in content],
        is_error=raw.get("isError") is True,
    )


class DispatchRouter:
    def __init__(self, registry: AdapterRegistry, default_timeout: float = DEFAULT_CALL_TIMEOUT):
        self.registry = registry
        self.default_timeout = default_timeout

    def resolve(self, tool_name: str, target_server: Optional[str] = None) -> Tuple[RegisteredServer, str]:
        """
        Find the server for a call and the tool name to send to it.

        Order: explicit target server, then a "server/tool" qualified name
        whose prefix is a registered server, then a lookup across every
        catalog. A bare name owned by several servers is an error, never a
        first match.
        """
        servers: Mapping[str, RegisteredServer] = self.registry.snapshot()

        if target_server:
            entry = servers.get(target_server)
            if entry is None:
                raise ResolutionError(f"Server '{target_server}' not found")
            prefix = f"{target_server}/"
            if tool_name.startswith(prefix) and len(tool_name) > len(prefix):
                tool_name = tool_name[len(prefix):]
            return entry, tool_name

        if "/" in tool_name:
            server_name, _, bare_name = tool_name.rpartition("/")
            entry = servers.get(server_name)
            if entry is not None and bare_name:
                return entry, bare_name

        owners = self.registry.owners_of(tool_name, servers)
        if len(owners) == 1:
            return servers[owners[0]], tool_name
        if not owners:
            raise ResolutionError(f"Tool '{tool_name}' not found on any connected server")

        candidates = [f"{owner}/{tool_name}" for owner in owners]
        raise ResolutionError(
            f"Tool '{tool_name}' is provided by several servers ({', '.join(owners)}); "
            f"use a qualified name such as '{candidates[0]}'",
            candidates=candidates,
        )

    async def invoke(
        self,
        tool_name: str,
        arguments: Optional[Dict[str, Any]] = None,
        context: Optional[CallContext] = None,
    ) -> InvocationResult:
        context = context or CallContext(session_id=DEFAULT_SESSION_ID)
        arguments = arguments or {}

        try:
            entry, bare_name = self.resolve(tool_name, context.target_server)
            schema = entry.input_schema(bare_name)
            # Tools missing from the catalog are passed through unchecked
            if schema is not None:
                validate_arguments(bare_name, schema, arguments)
        except ResolutionError as e:
            logger.warning(f"[{context.session_id}] {e.message}")
            return InvocationResult.failure(e.message, "resolution")
        except ArgumentValidationError as e:
            logger.warning(f"[{context.session_id}] {e.message}")
            return InvocationResult.failure(e.message, "validation")

        timeout = context.timeout if context.timeout is not None else self.default_timeout
        logger.info(f"[{context.session_id}] Calling {entry.name}/{bare_name}")

        try:
            raw = await asyncio.wait_for(
                entry.adapter.call_tool(bare_name, arguments, context),
                timeout=timeout,
            )
            return normalize_result(raw)
        except asyncio.TimeoutError:
            message = f"Tool '{bare_name}' on server '{entry.name}' timed out after {timeout}s"
            logger.warning(f"[{context.session_id}] {message}")
            return InvocationResult.failure(message, "timeout")
        except TransportError as e:
            logger.error(f"[{context.session_id}] {e.message}")
            return InvocationResult.failure(e.message, "transport")
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(f"[{context.session_id}] Tool '{bare_name}' on server '{entry.name}' failed: {message}")
            return InvocationResult.failure(message, "execution")

    async def call(self, request: InvocationRequest) -> InvocationResult:
        """Run an InvocationRequest."""
        context = CallContext(
            session_id=request.session_id,
            target_server=request.target_server_hint,
            timeout=request.timeout,
        )
        return await self.invoke(request.tool_name, dict(request.arguments), context)
