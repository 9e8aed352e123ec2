"""
Database Utilities for the Tool Index

Contains the schema and connection helper. Embeddings are stored as float32
blobs and compared with sqlite-vec's vec_distance_cosine.
"""

import sqlite3
from pathlib import Path

import sqlite_vec


def get_connection(db_path: Path, load_vec: bool = False) -> sqlite3.Connection:
    """Get a database connection with row factory and WAL mode for better concurrency."""
    conn = sqlite3.connect(db_path, timeout=30.0)  # Wait up to 30s for locks
    conn.row_factory = sqlite3.Row

    if load_vec:
        conn.enable_load_extension(True)
        sqlite_vec.load(conn)
        conn.enable_load_extension(False)

    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    conn.execute("PRAGMA foreign_keys=ON")

    return conn


def create_schema(conn: sqlite3.Connection):
    """
    Create the index schema.

    Tables:
    - servers: one row per indexed server with its last sync time
    - tools: tool definitions ingested from each server's catalog
    - tool_embeddings: one embedding per tool
    """
    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS servers (
            name TEXT PRIMARY KEY,
            tools_count INTEGER DEFAULT 0,
            synced_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS tools (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            server_name TEXT NOT NULL,
            tool_name TEXT NOT NULL,
            title TEXT,
            description TEXT,
            input_schema TEXT,
            full_doc TEXT,
            UNIQUE(server_name, tool_name),
            FOREIGN KEY (server_name) REFERENCES servers(name) ON DELETE CASCADE
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS tool_embeddings (
            tool_id INTEGER PRIMARY KEY,
            embedding BLOB NOT NULL,
            FOREIGN KEY (tool_id) REFERENCES tools(id) ON DELETE CASCADE
        )
    """)

    cursor.execute("CREATE INDEX IF NOT EXISTS idx_tools_server ON tools(server_name)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_tools_name ON tools(tool_name)")

    conn.commit()


def init_database(db_path: Path) -> sqlite3.Connection:
    """Initialize database with the full schema."""
    conn = get_connection(db_path, load_vec=True)
    create_schema(conn)
    return conn
