"""
Tool Relevance Module

Embeds text with sentence-transformers and answers nearest-tool queries
from the SQLite index using sqlite-vec's cosine distance.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from sentence_transformers import SentenceTransformer

from .config import DEFAULT_EMBEDDING_MODEL
from .db import get_connection, init_database
from .models import SearchCandidate, ToolDescriptor

logger = logging.getLogger(__name__)


# ==================== EMBEDDERS ====================

class Embedder:
    """Turns text into fixed-size float32 vectors."""

    def embed(self, text: str) -> np.ndarray:
        raise NotImplementedError

    def embed_many(self, texts: Sequence[str], batch_size: int = 16) -> np.ndarray:
        return np.vstack([self.embed(t) for t in texts])

    def warmup(self):
        pass


class SentenceTransformerEmbedder(Embedder):
    def __init__(self, model_name: str = DEFAULT_EMBEDDING_MODEL, device: str = "cpu"):
        self.model_name = model_name
        self.device = device
        self._model = None
        self._load_lock = threading.Lock()

    @property
    def model(self) -> SentenceTransformer:
        if self._model is None:
            with self._load_lock:
                if self._model is None:
                    logger.info(f"Loading embedding model {self.model_name} on {self.device}...")
                    self._model = SentenceTransformer(self.model_name, device=self.device)
        return self._model

    def warmup(self):
        """Pre-load the model into memory."""
        _ = self.model

    def embed(self, text: str) -> np.ndarray:
        vec = self.model.encode(text, convert_to_numpy=True, normalize_embeddings=True)
        return vec.astype(np.float32)

    def embed_many(self, texts: Sequence[str], batch_size: int = 16) -> np.ndarray:
        vecs = self.model.encode(
            list(texts),
            batch_size=batch_size,
            show_progress_bar=False,
            convert_to_numpy=True,
            normalize_embeddings=True,
        )
        return vecs.astype(np.float32)


def build_tool_document(server_name: str, tool: Dict[str, Any]) -> str:
    """Build the text that gets embedded for a tool."""
    tool_name = tool.get("name", "")
    title = tool.get("title") or ""
    description = tool.get("description") or ""

    schema = tool.get("inputSchema") or {}
    param_parts = []
    for param_name, param_info in (schema.get("properties") or {}).items():
        if not isinstance(param_info, dict):
            continue
        p_text = f"{param_name}: {param_info.get('description', '')}"
        if param_info.get("enum"):
            p_text += f" (enums: {json.dumps(param_info['enum'])})"
        param_parts.append(p_text)
    params_text = " | ".join(param_parts)

    return (
        f"Tool: {tool_name}\nServer: {server_name}\nTitle: {title}\n"
        f"Description: {description}\nParameters: {params_text}"
    )


# ==================== SIMILARITY INDEX ====================

def _to_blob(vector) -> bytes:
    return np.asarray(vector, dtype=np.float32).tobytes()


class SimilarityIndex:
    """
    Vector index of tool descriptors, one row per (server, tool).

    Every call opens its own connection, so readers run concurrently under
    WAL while writers are serialized by a lock.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._write_lock = threading.Lock()
        conn = init_database(db_path)
        conn.close()

    def upsert_server(self, server_name: str, tools: List[ToolDescriptor]):
        """Replace every descriptor of a server with the given ones."""
        for tool in tools:
            if tool.server_name != server_name:
                raise ValueError(f"Tool '{tool.tool_name}' belongs to '{tool.server_name}', not '{server_name}'")
            if tool.vector is None:
                raise ValueError(f"Tool '{tool.tool_name}' has no embedding")

        with self._write_lock:
            conn = get_connection(self.db_path, load_vec=True)
            try:
                with conn:
                    cursor = conn.cursor()
                    # Cascades to tools and tool_embeddings
                    cursor.execute("DELETE FROM servers WHERE name = ?", (server_name,))
                    cursor.execute(
                        "INSERT INTO servers (name, tools_count) VALUES (?, ?)",
                        (server_name, len(tools)),
                    )
                    for tool in tools:
                        cursor.execute("""
                            INSERT INTO tools (server_name, tool_name, title, description, input_schema, full_doc)
                            VALUES (?, ?, ?, ?, ?, ?)
                        """, (
                            server_name,
                            tool.tool_name,
                            tool.title,
                            tool.description,
                            json.dumps(tool.input_schema),
                            build_tool_document(server_name, {
                                "name": tool.tool_name,
                                "title": tool.title,
                                "description": tool.description,
                                "inputSchema": tool.input_schema,
                            }),
                        ))
                        cursor.execute(
                            "INSERT INTO tool_embeddings (tool_id, embedding) VALUES (?, ?)",
                            (cursor.lastrowid, _to_blob(tool.vector)),
                        )
            finally:
                conn.close()

        logger.info(f"Indexed {len(tools)} tools for server '{server_name}'")

    def remove_server(self, server_name: str) -> bool:
        """Drop a server and its descriptors. Returns True if it was indexed."""
        with self._write_lock:
            conn = get_connection(self.db_path, load_vec=True)
            try:
                with conn:
                    cursor = conn.execute("DELETE FROM servers WHERE name = ?", (server_name,))
                    removed = cursor.rowcount > 0
            finally:
                conn.close()

        if removed:
            logger.info(f"Removed server '{server_name}' from the index")
        return removed

    def query(self, vector, limit: int, threshold: float) -> List[SearchCandidate]:
        """Return up to `limit` tools whose cosine similarity is at least `threshold`."""
        conn = get_connection(self.db_path, load_vec=True)
        try:
            rows = conn.execute("""
                WITH scored AS (
                    SELECT
                        t.server_name,
                        t.tool_name,
                        t.description,
                        t.input_schema,
                        (1.0 - vec_distance_cosine(e.embedding, ?)) AS similarity
                    FROM tool_embeddings e
                    JOIN tools t ON t.id = e.tool_id
                )
                SELECT * FROM scored
                WHERE similarity >= ?
                ORDER BY similarity DESC, tool_name ASC, server_name ASC
                LIMIT ?
            """, (_to_blob(vector), threshold, limit)).fetchall()
        finally:
            conn.close()

        return [
            SearchCandidate(
                server_name=r["server_name"],
                tool_name=r["tool_name"],
                description=r["description"] or "",
                input_schema=_load_schema(r["input_schema"]),
                # Guard against float error just above 1.0
                similarity=min(1.0, max(0.0, r["similarity"])),
            )
            for r in rows
        ]

    def get_tools_for_server(self, server_name: str) -> List[Dict[str, Any]]:
        """Retrieve all tools indexed for a given server name."""
        conn = get_connection(self.db_path)
        try:
            rows = conn.execute("""
                SELECT tool_name, title, description, input_schema
                FROM tools
                WHERE server_name = ?
                ORDER BY tool_name
            """, (server_name,)).fetchall()
        finally:
            conn.close()

        return [
            {
                "name": r["tool_name"],
                "title": r["title"],
                "description": r["description"] or "",
                "inputSchema": _load_schema(r["input_schema"]),
                "serverName": server_name,
            }
            for r in rows
        ]

    def list_servers(self) -> List[Dict[str, Any]]:
        conn = get_connection(self.db_path)
        try:
            rows = conn.execute(
                "SELECT name, tools_count, synced_at FROM servers ORDER BY name"
            ).fetchall()
        finally:
            conn.close()
        return [dict(r) for r in rows]

    def stats(self) -> Dict[str, int]:
        conn = get_connection(self.db_path)
        try:
            servers = conn.execute("SELECT COUNT(*) AS cnt FROM servers").fetchone()["cnt"]
            tools = conn.execute("SELECT COUNT(*) AS cnt FROM tools").fetchone()["cnt"]
            embedded = conn.execute("SELECT COUNT(*) AS cnt FROM tool_embeddings").fetchone()["cnt"]
        finally:
            conn.close()
        return {"servers": servers, "tools": tools, "embeddings": embedded}


def _load_schema(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        schema = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    return schema if isinstance(schema, dict) else {}
