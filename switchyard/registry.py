"""
Adapter Registry

Maps server names to their adapter and tool catalog. Writes build a new
mapping under a lock and swap it in; reads use whatever mapping is current
without locking.
"""

import logging
import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .adapters import BackendAdapter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegisteredServer:
    adapter: BackendAdapter
    tools: Mapping[str, Dict[str, Any]]

    @property
    def name(self) -> str:
        return self.adapter.name

    def input_schema(self, tool_name: str) -> Optional[Dict[str, Any]]:
        tool = self.tools.get(tool_name)
        if tool is None:
            return None
        return tool.get("inputSchema") or {}


class AdapterRegistry:
    def __init__(self):
        self._lock = threading.Lock()
        self._servers: Mapping[str, RegisteredServer] = MappingProxyType({})

    def register(self, adapter: BackendAdapter, tools: Iterable[Dict[str, Any]]) -> RegisteredServer:
        """Register (or replace) a server with its current tool catalog."""
        catalog = MappingProxyType({t["name"]: t for t in tools if t.get("name")})
        entry = RegisteredServer(adapter=adapter, tools=catalog)
        with self._lock:
            servers = dict(self._servers)
            servers[adapter.name] = entry
            self._servers = MappingProxyType(servers)
        logger.info(f"Registered server '{adapter.name}' with {len(catalog)} tools")
        return entry

    def unregister(self, name: str) -> Optional[RegisteredServer]:
        with self._lock:
            if name not in self._servers:
                return None
            servers = dict(self._servers)
            entry = servers.pop(name)
            self._servers = MappingProxyType(servers)
        logger.info(f"Unregistered server '{name}'")
        return entry

    def get(self, name: str) -> Optional[RegisteredServer]:
        return self._servers.get(name)

    def snapshot(self) -> Mapping[str, RegisteredServer]:
        return self._servers

    def owners_of(self, tool_name: str, servers: Optional[Mapping[str, RegisteredServer]] = None) -> List[str]:
        """Names of all servers whose catalog contains `tool_name`, sorted, optionally from an earlier snapshot."""
        servers = self._servers if servers is None else servers
        return sorted(name for name, entry in servers.items() if tool_name in entry.tools)

    def __contains__(self, name: str) -> bool:
        return name in self._servers

    def __len__(self) -> int:
        return len(self._servers)
