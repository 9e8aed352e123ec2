"""
Shared fixtures: a deterministic embedder, a scriptable adapter, and a
real SQLite index in a temporary directory.
"""
import asyncio
import re
import zlib

import numpy as np
import pytest

from switchyard.adapters import BackendAdapter
from switchyard.dispatch import DispatchRouter
from switchyard.registry import AdapterRegistry
from switchyard.relevance import Embedder, SimilarityIndex

DIMENSION = 32


class KeywordEmbedder(Embedder):
    """Bag-of-words vectors: each word lands in a fixed bucket via crc32."""

    def __init__(self):
        self.calls = []
        self.warmed = False

    def embed(self, text):
        self.calls.append(text)
        vec = np.full(DIMENSION, 1e-3, dtype=np.float32)
        for word in re.findall(r"[a-z0-9]+", text.lower()):
            vec[zlib.crc32(word.encode()) % DIMENSION] += 1.0
        return vec / np.linalg.norm(vec)

    def warmup(self):
        self.warmed = True


class FakeAdapter(BackendAdapter):
    """Adapter whose catalog and call behaviour are set by the test."""

    transport = "fake"

    def __init__(self, name, tools=None, result=None, error=None, delay=0.0, list_error=None):
        super().__init__(name)
        self.tools = tools or []
        self.result = result if result is not None else {"content": [{"type": "text", "text": "ok"}]}
        self.error = error
        self.delay = delay
        self.list_error = list_error
        self.calls = []
        self.list_calls = 0

    async def list_tools(self):
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return [dict(t) for t in self.tools]

    async def call_tool(self, tool_name, arguments, context):
        self.calls.append((tool_name, arguments, context))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


def make_tool(name, description="", properties=None, required=None):
    schema = {"type": "object", "properties": properties or {}}
    if required:
        schema["required"] = required
    return {"name": name, "description": description, "inputSchema": schema}


@pytest.fixture
def embedder():
    return KeywordEmbedder()


@pytest.fixture
def index(tmp_path):
    return SimilarityIndex(tmp_path / "index.db")


@pytest.fixture
def registry():
    return AdapterRegistry()


@pytest.fixture
def router(registry):
    return DispatchRouter(registry, default_timeout=5.0)
