"""
HTTP Server for Tool Search and Dispatch

Exposes the retriever and the dispatch router via a FastAPI web server.
Every response uses the {"success": ..., "data" | "message": ...} envelope.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional, Sequence

from fastapi import Body, FastAPI, Header
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import errors
from .adapters import BackendAdapter, build_adapters
from .catalog import CatalogSync
from .config import DEFAULT_SESSION_ID, Settings, configure_logging, load_server_definitions, load_settings
from .dispatch import DispatchRouter
from .models import InvocationRequest
from .registry import AdapterRegistry
from .relevance import SentenceTransformerEmbedder, SimilarityIndex
from .retriever import Retriever

logger = logging.getLogger(__name__)

SMART_ROUTING_DISABLED = "Smart routing is not enabled. Please enable it in settings."


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def create_app(
    settings: Settings,
    retriever: Retriever,
    router: DispatchRouter,
    catalog: Optional[CatalogSync] = None,
    adapters: Sequence[BackendAdapter] = (),
) -> FastAPI:
    """Build the application around already-constructed engine components."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.smart_routing_enabled:
            logger.info("Pre-loading embedding model...")
            await asyncio.to_thread(retriever.warmup)
        if catalog is not None and adapters:
            await catalog.sync_all(adapters)
        yield

    app = FastAPI(
        title="Switchyard Tool Routing API",
        description="Semantic tool search and uniform dispatch across MCP servers.",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.retriever = retriever
    app.state.router = router

    @app.exception_handler(errors.ValidationError)
    async def validation_error_handler(request, exc: errors.ValidationError):
        return JSONResponse(status_code=400, content={"success": False, "message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request, exc: RequestValidationError):
        problems = "; ".join(e.get("msg", "invalid value") for e in exc.errors())
        return JSONResponse(status_code=400, content={"success": False, "message": f"Invalid request: {problems}"})

    @app.exception_handler(errors.FeatureDisabledError)
    async def feature_disabled_handler(request, exc: errors.FeatureDisabledError):
        return JSONResponse(status_code=503, content={"success": False, "message": exc.message})

    @app.exception_handler(errors.InternalError)
    async def internal_error_handler(request, exc: errors.InternalError):
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": exc.message, "error": exc.detail},
        )

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "smartRouting": settings.smart_routing_enabled}

    @app.post("/tools/search")
    def search_tools(body: Any = Body(None)):
        """
        Search for tools matching the query.
        Returns ranked tools, the same tools grouped by server, and metadata.
        """
        body = body if isinstance(body, dict) else {}
        query = body.get("query")
        if not query or not isinstance(query, str):
            raise errors.ValidationError("Query parameter is required and must be a string")

        if not settings.smart_routing_enabled:
            raise errors.FeatureDisabledError(SMART_ROUTING_DISABLED)

        try:
            result = retriever.search(query, limit=body.get("limit"), threshold=body.get("threshold"))
        except Exception as e:
            logger.exception("Error searching tools")
            raise errors.InternalError("Failed to search tools", str(e)) from e

        return {"success": True, "data": result.to_wire()}

    async def _call_tool(server: Optional[str], body: Any, session_id: Optional[str]):
        body = body if isinstance(body, dict) else {}
        tool_name = body.get("toolName")
        if not tool_name or not isinstance(tool_name, str):
            raise errors.ValidationError("toolName is required")

        arguments = body.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise errors.ValidationError("arguments must be an object")

        timeout = body.get("timeout")
        if timeout is not None and (not _is_number(timeout) or timeout <= 0):
            raise errors.ValidationError("timeout must be a positive number of seconds")

        request = InvocationRequest(
            tool_name=tool_name,
            arguments=arguments,
            target_server_hint=server or None,
            session_id=session_id or DEFAULT_SESSION_ID,
            timeout=timeout,
        )

        try:
            result = await router.call(request)
        except Exception as e:
            logger.exception("Error calling tool")
            raise errors.InternalError("Failed to call tool", str(e)) from e

        return {
            "success": True,
            "data": {
                "content": result.content,
                "toolName": tool_name,
                "arguments": arguments,
                "isError": result.is_error,
                "errorType": result.error_type,
            },
        }

    @app.post("/tools/call")
    async def call_tool(body: Any = Body(None), x_session_id: Optional[str] = Header(None)):
        """Execute a tool, resolving its server from the tool name."""
        return await _call_tool(None, body, x_session_id)

    @app.post("/tools/call/{server:path}")
    async def call_server_tool(server: str, body: Any = Body(None), x_session_id: Optional[str] = Header(None)):
        """Execute a tool on a specific server."""
        return await _call_tool(server, body, x_session_id)

    @app.get("/servers")
    async def list_servers():
        """List servers currently available for dispatch."""
        servers = [
            {
                "name": entry.name,
                "transport": entry.adapter.transport,
                "toolCount": len(entry.tools),
            }
            for entry in router.registry.snapshot().values()
        ]
        servers.sort(key=lambda s: s["name"])
        return {"success": True, "data": {"servers": servers}}

    @app.get("/servers/{server_name:path}/tools")
    def list_server_tools(server_name: str):
        """List all indexed tools of a specific server."""
        try:
            tools = retriever.get_tools_for_server(server_name)
        except Exception as e:
            logger.exception("Error listing server tools")
            raise errors.InternalError("Failed to list server tools", str(e)) from e
        return {"success": True, "data": {"server": server_name, "tools": tools}}

    return app


def build_components(settings: Settings):
    """Wire the default engine components from settings."""
    index = SimilarityIndex(settings.db_path)
    embedder = SentenceTransformerEmbedder(settings.embedding_model, device=settings.embedding_device)
    registry = AdapterRegistry()
    retriever = Retriever(index, embedder)
    router = DispatchRouter(registry, default_timeout=settings.call_timeout)
    catalog = CatalogSync(index, registry, embedder)

    adapters = []
    if settings.servers_file:
        adapters = build_adapters(load_server_definitions(settings.servers_file))

    return retriever, router, catalog, adapters


def create_default_app() -> FastAPI:
    """Application factory for uvicorn (--factory)."""
    settings = load_settings()
    configure_logging(settings)
    retriever, router, catalog, adapters = build_components(settings)
    return create_app(settings, retriever, router, catalog=catalog, adapters=adapters)
