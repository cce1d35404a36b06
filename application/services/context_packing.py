"""Greedy packing of ranked lore results into a length-bounded context block."""
from __future__ import annotations

from typing import Iterable

from domain.entities import LoreContext, LoreResult

CONTEXT_HEADER = "## Relevant Lore\n\n"
ENTRY_SEPARATOR = "\n\n"
TRUNCATION_MARKER = "..."
CLOSING_RESERVATION = 50
MIN_TRUNCATED_SPACE = 200


def format_entry(result: LoreResult) -> str:
    return f"### {result.title}\n{result.text}{ENTRY_SEPARATOR}"


def _truncated_entry(result: LoreResult, available: int) -> str | None:
    prefix = f"### {result.title}\n"
    body_length = available - len(prefix) - len(ENTRY_SEPARATOR)
    if body_length <= 0:
        return None
    return f"{prefix}{result.text[:body_length]}{TRUNCATION_MARKER}{ENTRY_SEPARATOR}"


def build_context(results: Iterable[LoreResult], max_length: int = 2000) -> LoreContext:
    """Pack ``results`` in input order until ``max_length`` characters are used.

    An entry that does not fit is cut down once, if at least
    ``MIN_TRUNCATED_SPACE`` characters remain after ``CLOSING_RESERVATION``,
    and packing stops there. Text never exceeds ``max_length`` by more than
    ``len(TRUNCATION_MARKER)``.
    """
    parts: list[str] = [CONTEXT_HEADER]
    current_length = len(CONTEXT_HEADER)
    sources: list[str] = []

    for result in results:
        entry = format_entry(result)
        if current_length + len(entry) > max_length:
            available = max_length - current_length - CLOSING_RESERVATION
            truncated = _truncated_entry(result, available) if available > MIN_TRUNCATED_SPACE else None
            if truncated is not None:
                parts.append(truncated)
                if result.title not in sources:
                    sources.append(result.title)
            break

        parts.append(entry)
        current_length += len(entry)
        if result.title not in sources:
            sources.append(result.title)

    if not sources:
        return LoreContext.empty()
    return LoreContext(text="".join(parts), sources=sources)


__all__ = [
    "CONTEXT_HEADER",
    "CLOSING_RESERVATION",
    "MIN_TRUNCATED_SPACE",
    "TRUNCATION_MARKER",
    "build_context",
    "format_entry",
]
