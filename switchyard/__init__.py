"""Semantic tool search and uniform dispatch across MCP servers."""

__version__ = "0.1.0"
