#!/usr/bin/env python3
"""
Switchyard Command Line

Usage:
  switchyard serve [--host HOST] [--port PORT]    # Run the HTTP server
  switchyard sync                                 # Index every configured server
  switchyard search "query" [--limit N] [--threshold T]
  switchyard call server/tool --args '{"k": "v"}' [--timeout S]
  switchyard stats                                # Show index statistics
"""

import argparse
import asyncio
import json
import sys

import uvicorn
from rich.console import Console
from rich.table import Table

from .app import SMART_ROUTING_DISABLED, build_components
from .config import configure_logging, load_settings
from .models import CallContext

console = Console()


def _print_search(response):
    meta = response.metadata
    console.print(f"\n[bold]Search results for:[/bold] '{meta.query}' (threshold {meta.threshold})")
    if not response.tools:
        console.print(f"[yellow]{meta.guideline}[/yellow]")
        return

    for group in response.servers:
        table = Table(title=f"{group.server_name}  max {group.max_similarity:.3f} / avg {group.avg_similarity:.3f}")
        table.add_column("Tool", style="cyan")
        table.add_column("Similarity", justify="right")
        table.add_column("Description")
        for tool in group.tools:
            table.add_row(tool.name, f"{tool.similarity:.3f}", tool.description[:100])
        console.print(table)


async def _sync(catalog, adapters):
    report = await catalog.sync_all(adapters)
    console.print(f"\n✓ Synced {len(report.synced)}/{len(adapters)} servers, {report.total_tools} tools")
    for name, (category, reason, message) in report.failed.items():
        console.print(f"  [red]✗ {name}[/red]: {message} ({category}/{reason})")
    return report


async def _call(catalog, adapters, router, tool_name, arguments, timeout):
    for adapter in adapters:
        try:
            await catalog.attach(adapter)
        except Exception as e:
            console.print(f"  [yellow]Skipping {adapter.name}: {e}[/yellow]")
    context = CallContext(session_id="cli", timeout=timeout)
    return await router.invoke(tool_name, arguments, context)


def main():
    parser = argparse.ArgumentParser(description="Switchyard - semantic tool search and dispatch for MCP servers")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP server")
    serve_parser.add_argument("--host", type=str, default="0.0.0.0", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port")

    subparsers.add_parser("sync", help="Index the tools of every configured server")

    search_parser = subparsers.add_parser("search", help="Search indexed tools")
    search_parser.add_argument("query", type=str, help="Natural-language query")
    search_parser.add_argument("--limit", type=int, default=None, help="Max results (1-100)")
    search_parser.add_argument("--threshold", type=float, default=None, help="Similarity threshold (0-1)")

    call_parser = subparsers.add_parser("call", help="Call a tool on a configured server")
    call_parser.add_argument("tool", type=str, help="Tool name, optionally qualified as server/tool")
    call_parser.add_argument("--args", type=str, default="{}", help="JSON object of arguments")
    call_parser.add_argument("--timeout", type=float, default=None, help="Deadline in seconds")

    subparsers.add_parser("stats", help="Show index statistics")

    args = parser.parse_args()

    settings = load_settings()
    configure_logging(settings)

    if args.command == "serve":
        uvicorn.run(
            "switchyard.app:create_default_app",
            factory=True,
            host=args.host,
            port=args.port,
        )
        return

    if args.command is None:
        parser.print_help()
        return

    retriever, router, catalog, adapters = build_components(settings)

    if args.command == "sync":
        if not adapters:
            console.print("[red]No servers configured. Set SWITCHYARD_SERVERS_FILE.[/red]")
            sys.exit(1)
        report = asyncio.run(_sync(catalog, adapters))
        if report.failed and not report.synced:
            sys.exit(1)
    elif args.command == "search":
        if not settings.smart_routing_enabled:
            console.print(f"[red]{SMART_ROUTING_DISABLED} Set SWITCHYARD_SMART_ROUTING=1.[/red]")
            sys.exit(1)
        _print_search(retriever.search(args.query, limit=args.limit, threshold=args.threshold))
    elif args.command == "call":
        try:
            arguments = json.loads(args.args)
        except json.JSONDecodeError as e:
            console.print(f"[red]--args is not valid JSON: {e}[/red]")
            sys.exit(2)
        if not isinstance(arguments, dict):
            console.print("[red]--args must be a JSON object[/red]")
            sys.exit(2)
        result = asyncio.run(_call(catalog, adapters, router, args.tool, arguments, args.timeout))
        console.print_json(json.dumps(result.to_wire()))
        if result.is_error:
            sys.exit(1)
    elif args.command == "stats":
        stats = retriever.index.stats()
        console.print(f"Servers: {stats['servers']}  Tools: {stats['tools']}  Embeddings: {stats['embeddings']}")
        table = Table(title="Indexed servers")
        table.add_column("Server", style="cyan")
        table.add_column("Tools", justify="right")
        table.add_column("Synced at")
        for row in retriever.index.list_servers():
            table.add_row(row["name"], str(row["tools_count"]), str(row["synced_at"]))
        console.print(table)


if __name__ == "__main__":
    main()
