"""
Catalog Sync

Lists each server's tools through its adapter, embeds a document per tool
and writes the descriptors into the similarity index, then registers the
adapter for dispatch. A failing server is logged and skipped; the rest of
the sync carries on.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Tuple

from .adapters import BackendAdapter
from .errors import categorize_failure
from .models import ToolDescriptor
from .registry import AdapterRegistry
from .relevance import Embedder, SimilarityIndex, build_tool_document

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    synced: Dict[str, int] = field(default_factory=dict)
    failed: Dict[str, Tuple[str, str, str]] = field(default_factory=dict)

    @property
    def total_tools(self) -> int:
        return sum(self.synced.values())


class CatalogSync:
    def __init__(
        self,
        index: SimilarityIndex,
        registry: AdapterRegistry,
        embedder: Embedder,
        timeout: float = 30.0,
        batch_size: int = 16,
    ):
        self.index = index
        self.registry = registry
        self.embedder = embedder
        self.timeout = timeout
        self.batch_size = batch_size

    async def sync_server(self, adapter: BackendAdapter) -> int:
        """(Re)index one server's catalog. Returns the number of tools indexed."""
        listed = await asyncio.wait_for(adapter.list_tools(), timeout=self.timeout)
        # One entry per name; a later duplicate replaces the earlier one
        tools = list({t["name"]: t for t in listed if t.get("name")}.values())
        if len(tools) < len(listed):
            logger.warning(f"{adapter.name}: dropped {len(listed) - len(tools)} unnamed or duplicate tool entries")

        descriptors = []
        if tools:
            docs = [build_tool_document(adapter.name, t) for t in tools]
            vectors = await asyncio.to_thread(self.embedder.embed_many, docs, self.batch_size)
            for tool, vec in zip(tools, vectors):
                descriptors.append(ToolDescriptor(
                    server_name=adapter.name,
                    tool_name=tool["name"],
                    title=tool.get("title"),
                    description=tool.get("description") or "",
                    input_schema=tool.get("inputSchema") or {},
                    vector=[float(x) for x in vec],
                ))

        # Register first so every indexed tool already has a live adapter
        previous = self.registry.get(adapter.name)
        self.registry.register(adapter, tools)
        try:
            await asyncio.to_thread(self.index.upsert_server, adapter.name, descriptors)
        except Exception:
            # Put back whatever catalog the index still holds
            if previous is None:
                self.registry.unregister(adapter.name)
            else:
                self.registry.register(previous.adapter, previous.tools.values())
            raise
        return len(descriptors)

    async def attach(self, adapter: BackendAdapter) -> int:
        """Register a server for dispatch from its live catalog without touching the index."""
        tools = await asyncio.wait_for(adapter.list_tools(), timeout=self.timeout)
        entry = self.registry.register(adapter, tools)
        return len(entry.tools)

    async def sync_all(self, adapters: Iterable[BackendAdapter]) -> SyncReport:
        report = SyncReport()
        adapters = list(adapters)
        logger.info(f"Syncing {len(adapters)} servers...")

        for adapter in adapters:
            try:
                count = await self.sync_server(adapter)
            except asyncio.TimeoutError:
                message = f"Connection timed out after {self.timeout}s"
                report.failed[adapter.name] = ("transient", "timeout", message)
                logger.warning(f"✗ {adapter.name}: {message}")
            except Exception as e:
                message = str(e) or type(e).__name__
                category, reason = categorize_failure(message)
                report.failed[adapter.name] = (category, reason, message)
                logger.warning(f"✗ {adapter.name}: {message} ({category}/{reason})")
            else:
                report.synced[adapter.name] = count
                logger.info(f"✓ {adapter.name}: {count} tools")

        logger.info(f"Synced {len(report.synced)}/{len(adapters)} servers, {report.total_tools} tools")
        return report

    def remove_server(self, name: str) -> bool:
        """Drop a server from the index, then from the registry."""
        removed_from_index = self.index.remove_server(name)
        removed_from_registry = self.registry.unregister(name) is not None
        return removed_from_index or removed_from_registry
