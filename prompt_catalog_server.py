#!/usr/bin/env python3
"""
Prompt Catalog MCP Server
A Model Context Protocol server over the prompt catalog store.

Exposes tools for:
- Saving optimized prompts
- Listing, showing and clearing saved prompts
- Tracking execution and verification
- Storage statistics and index reconciliation
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

# MCP imports
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

# Local imports
from catalog_tools import TOOLS, dispatch_tool
from lifecycle import LifecycleConfig
from prompt_store import PromptCatalog

# Load configuration
CONFIG_PATH = Path(__file__).parent / "config.json"
with open(CONFIG_PATH, encoding="utf-8") as f:
    CONFIG = json.load(f)

PROMPTS_DIR = Path(CONFIG["paths"]["prompts_dir"]).expanduser()
LIFECYCLE = LifecycleConfig(**CONFIG.get("lifecycle", {}))

catalog = PromptCatalog(PROMPTS_DIR, config=LIFECYCLE)


def _startup_reconcile():
    """Report index/file drift at startup (no repair)."""
    if not PROMPTS_DIR.exists():
        return
    report = catalog.reconcile(repair=False)
    orphans = len(report["orphan_files"])
    missing = len(report["missing_files"])
    if orphans or missing:
        print(
            f"[WARN] Prompt catalog drift: {orphans} orphan files, {missing} entries without files "
            f"(run prompts_reconcile with repair=true)",
            file=sys.stderr
        )
    else:
        print(f"[INFO] Prompt catalog consistent ({PROMPTS_DIR})", file=sys.stderr)

_startup_reconcile()

# Create MCP server
server = Server("prompt-catalog")


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List all available prompt catalog tools."""
    return TOOLS


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls."""
    try:
        text = dispatch_tool(catalog, name, arguments or {})
        return [TextContent(type="text", text=text)]
    except Exception as e:
        return [TextContent(type="text", text=f"Error executing {name}: {str(e)}")]


async def main():
    """Run the prompt catalog MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
