"""Error kinds raised by the LoreSearch engine and its adapters."""
from __future__ import annotations


class LoreSearchError(Exception):
    """Base class for all LoreSearch errors."""


class NotInitializedError(LoreSearchError):
    """A query was issued before the repository reached the ready state."""


class UpstreamUnavailableError(LoreSearchError):
    """The embedding provider or the vector index is unreachable or failing."""


class MalformedRecordError(LoreSearchError):
    """An ingestion record could not be parsed into a lore document."""


__all__ = [
    "LoreSearchError",
    "NotInitializedError",
    "UpstreamUnavailableError",
    "MalformedRecordError",
]
