"""
LoreSearch MCP Server.

Exposes lore search, entity lookup, situational context and database
status via the Model Context Protocol.
"""
from __future__ import annotations

import asyncio
import logging

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from application.services.retrieval_service import RetrievalService
from domain.entities import Category
from infrastructure.config import Container, ContainerConfig, build_default_container
from ui.logging_utils import setup_logging
from ui.tools.handlers import handle_lore_tool

logger = logging.getLogger("loresearch-mcp")

CATEGORIES = [category.value for category in Category]

server = Server("loresearch")
container: Container | None = None


def _service() -> RetrievalService:
    global container
    if container is None:
        container = build_default_container(ContainerConfig.from_env())
    return container.retrieval_service


# -----------------------------------------------------------------------------
# Tools
# -----------------------------------------------------------------------------

@server.list_tools()
async def list_tools() -> list[Tool]:
    """List the lore tools."""
    return [
        Tool(
            name="lore_search",
            description=(
                "Search the lore knowledge base for entries relevant to a query. "
                "Covers characters, locations, creatures, organizations, events, "
                "deities, spells and items. Results are ranked by semantic similarity."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "Describe the lore you need (e.g. 'Altdorf history', 'Skaven clans')",
                    },
                    "category": {
                        "type": "string",
                        "enum": CATEGORIES,
                        "description": "Filter results by category",
                        "default": "any",
                    },
                    "limit": {
                        "type": "integer",
                        "description": "Maximum number of results (1-10)",
                        "default": 5,
                        "minimum": 1,
                        "maximum": 10,
                    },
                },
                "required": ["query"],
            },
        ),
        Tool(
            name="lore_lookup",
            description=(
                "Look up a specific entity by name. Exact titles resolve directly; "
                "other names fall back to the closest semantic match."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {
                        "type": "string",
                        "description": "Name of the entity to look up",
                    },
                    "category": {
                        "type": "string",
                        "enum": CATEGORIES,
                        "description": "Expected category (helps narrow the fallback search)",
                    },
                },
                "required": ["name"],
            },
        ),
        Tool(
            name="lore_context",
            description=(
                "Compile lore context for a game situation. Provide a description "
                "of the situation and the names of the entities involved."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "situation": {
                        "type": "string",
                        "description": "Description of the current situation",
                    },
                    "entities": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Names of NPCs, locations or factions involved",
                        "default": [],
                    },
                    "maxLength": {
                        "type": "integer",
                        "description": "Maximum context length in characters",
                        "default": 2000,
                    },
                },
                "required": ["situation"],
            },
        ),
        Tool(
            name="lore_status",
            description="Get the status of the lore database including document count and availability.",
            inputSchema={"type": "object", "properties": {}},
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Execute a lore tool off the event loop; embedding and index calls block."""
    text = await asyncio.to_thread(handle_lore_tool, _service(), name, arguments)
    return [TextContent(type="text", text=text)]


# -----------------------------------------------------------------------------
# Main
# -----------------------------------------------------------------------------

async def run_server():
    """Initialize the lore service and run the MCP server over stdio."""
    service = _service()
    try:
        service.initialize()
    except Exception as exc:
        # Keep serving: lore_status reports the database as unavailable.
        logger.error("Lore service unavailable: %s", exc)

    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )


def main():
    """Entry point."""
    setup_logging()
    asyncio.run(run_server())


if __name__ == "__main__":
    main()
