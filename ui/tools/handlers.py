"""Dispatch and text rendering for the lore tools exposed over MCP."""
from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from application.services.retrieval_service import DEFAULT_CONTEXT_LENGTH, DEFAULT_LIMIT, RetrievalService
from domain.entities import Category, LoreContext, LoreResult
from domain.errors import LoreSearchError

logger = logging.getLogger(__name__)

MIN_LIMIT = 1
MAX_LIMIT = 10
PREVIEW_LENGTH = 500


def _clamp_limit(value: Any) -> int:
    if value is None:
        return DEFAULT_LIMIT
    return min(max(int(value), MIN_LIMIT), MAX_LIMIT)


def _required(arguments: Mapping[str, Any], key: str) -> Any:
    value = arguments.get(key)
    if value is None or value == "":
        raise ValueError(f"Missing argument '{key}'")
    return value


def _preview(text: str) -> str:
    if len(text) <= PREVIEW_LENGTH:
        return text
    return f"{text[:PREVIEW_LENGTH]}..."


def render_search_results(query: str, category: Category, results: list[LoreResult]) -> str:
    if not results:
        return (
            f'No lore found for: "{query}"\n\n'
            "Try:\n"
            "- Using different keywords\n"
            "- Removing category filters\n"
            "- Checking spelling of proper nouns"
        )
    entries = [
        f"### {position}. {result.title} ({result.category.value})\n"
        f"**Relevance:** {round(result.relevance * 100)}%\n\n"
        f"{_preview(result.text)}"
        for position, result in enumerate(results, start=1)
    ]
    category_note = "" if category is Category.ANY else f" | Category: {category.value}"
    return (
        "## Lore Search Results\n"
        f'*Query: "{query}"{category_note}*\n\n'
        + "\n\n---\n\n".join(entries)
    )


def render_lookup(name: str, result: LoreResult | None) -> str:
    if result is None:
        return (
            f'Entity not found: "{name}"\n\n'
            "This entity may not exist in the lore database, or you may need to try:\n"
            "- A different spelling or variation of the name\n"
            "- Using lore_search for a broader search"
        )
    source = f"\n\n*Source: {result.source_url}*" if result.source_url else ""
    return (
        f"## {result.title}\n"
        f"**Type:** {result.category.value}\n"
        f"**Relevance:** {round(result.relevance * 100)}%\n\n"
        f"{result.text}{source}"
    )


def render_context(context: LoreContext) -> str:
    if context.source_count == 0:
        return (
            "No relevant lore found for this situation.\n\n"
            "Consider using lore_search with specific keywords from the situation."
        )
    return f"{context.text}\n---\n*Sources: {', '.join(context.sources)}*"


def render_status(ready: bool, document_count: int | None) -> str:
    if not ready:
        return (
            "## Lore Database Status\n\n"
            "**Status:** Not Available\n\n"
            "The lore database is not initialized. This could mean:\n"
            "- ChromaDB is not running\n"
            "- The lore dataset hasn't been ingested\n"
            "- Configuration is missing\n\n"
            "Run the ingestion command to populate the database:\n"
            "`loresearch-ingest data/lexicanum/data.jsonl`"
        )
    return (
        "## Lore Database Status\n\n"
        "**Status:** Online\n"
        f"**Documents:** {document_count:,}\n\n"
        "The lore database is ready for queries.\n\n"
        "Available tools:\n"
        "- `lore_search` - Semantic search for lore\n"
        "- `lore_lookup` - Look up specific entities\n"
        "- `lore_context` - Get context for game situations"
    )


def lore_search(service: RetrievalService, arguments: Mapping[str, Any]) -> str:
    query = _required(arguments, "query")
    category = Category.parse(arguments.get("category"))
    limit = _clamp_limit(arguments.get("limit"))
    results = service.search(query, limit=limit, category=category)
    return render_search_results(query, category, results)


def lore_lookup(service: RetrievalService, arguments: Mapping[str, Any]) -> str:
    name = _required(arguments, "name")
    category = arguments.get("category")
    result = service.lookup_entity(name, Category.parse(category) if category else None)
    return render_lookup(name, result)


def lore_context(service: RetrievalService, arguments: Mapping[str, Any]) -> str:
    situation = _required(arguments, "situation")
    entities = list(arguments.get("entities") or [])
    max_length = int(arguments.get("maxLength") or DEFAULT_CONTEXT_LENGTH)
    context = service.get_context_for_situation(situation, entities, max_length=max_length)
    return render_context(context)


def lore_status(service: RetrievalService, arguments: Mapping[str, Any]) -> str:
    ready = service.is_ready()
    return render_status(ready, service.document_count() if ready else None)


TOOL_HANDLERS: dict[str, Callable[[RetrievalService, Mapping[str, Any]], str]] = {
    "lore_search": lore_search,
    "lore_lookup": lore_lookup,
    "lore_context": lore_context,
    "lore_status": lore_status,
}


def handle_lore_tool(service: RetrievalService, name: str, arguments: Mapping[str, Any] | None) -> str:
    """Run tool ``name`` and render its outcome. Engine failures are rendered, not raised."""
    logger.debug("Handling lore tool %s with %s", name, arguments)
    handler = TOOL_HANDLERS.get(name)
    if handler is None:
        return f"**Error:** Unknown tool: {name}"
    try:
        return handler(service, arguments or {})
    except (LoreSearchError, ValueError) as exc:
        logger.error("Lore tool %s failed: %s", name, exc)
        return f"**Error:** {exc}"


__all__ = [
    "TOOL_HANDLERS",
    "handle_lore_tool",
    "render_context",
    "render_lookup",
    "render_search_results",
    "render_status",
]
