"""Lore repository: relevance-scored, category-aware access to the vector index."""
from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Sequence

from domain.entities import Category, IndexHit, IndexRecord, LoreDocument, LoreResult
from domain.errors import NotInitializedError, UpstreamUnavailableError
from domain.interfaces import Embedder, VectorIndex

logger = logging.getLogger(__name__)

LIST_SEPARATOR = "|"


class RepositoryState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


def relevance_from_distance(distance: float) -> float:
    """Convert a cosine distance in ``[0, 2]`` into a relevance in ``[-1, 1]``."""
    return max(-1.0, min(1.0, 1.0 - float(distance)))


class LoreRepository:
    """Wraps a vector index and an embedder behind lore-level operations.

    Query operations are valid only once :meth:`initialize` has completed;
    until then they raise :class:`NotInitializedError` without blocking.
    """

    def __init__(self, index: VectorIndex, embedder: Embedder) -> None:
        self._index = index
        self._embedder = embedder
        self._state = RepositoryState.UNINITIALIZED
        self._init_lock = threading.Lock()

    @property
    def state(self) -> RepositoryState:
        return self._state

    def is_ready(self) -> bool:
        return self._state is RepositoryState.READY

    def initialize(self) -> None:
        """Connect the index and load the embedder. A second call is a no-op."""
        if self._state is RepositoryState.READY:
            return
        with self._init_lock:
            if self._state is RepositoryState.READY:
                return
            self._state = RepositoryState.INITIALIZING
            try:
                logger.info("Connecting vector index and loading embedder %s", self._embedder.model_id)
                self._index.connect()
                self._embedder.load()
                count = self._index.count()
            except Exception:
                self._state = RepositoryState.UNINITIALIZED
                logger.exception("Failed to initialize lore repository")
                raise
            self._state = RepositoryState.READY
            logger.info("Lore repository ready. Collection has %d documents.", count)

    def document_count(self) -> int:
        if not self.is_ready():
            return 0
        try:
            return self._index.count()
        except UpstreamUnavailableError as exc:
            logger.warning("Could not count lore documents: %s", exc)
            return 0

    def add_documents(self, batch: Sequence[LoreDocument]) -> int:
        """Embed and upsert a batch, returning the number of distinct documents written.

        Documents sharing an id collapse to the last one. Nothing is written if
        any embedding fails.
        """
        self._require_ready()
        unique = list({document.id: document for document in batch}.values())
        if not unique:
            return 0
        if len(unique) < len(batch):
            logger.debug("Dropped %d duplicate ids from batch", len(batch) - len(unique))
        logger.debug("Adding %d documents to the lore index", len(unique))
        vectors = [self._embedder.embed(document.text) for document in unique]
        records = [
            IndexRecord(
                id=document.id,
                vector=vector,
                text=document.text,
                metadata=self._to_metadata(document),
            )
            for document, vector in zip(unique, vectors)
        ]
        self._index.upsert(records)
        return len(records)

    def search(
        self,
        query: str,
        *,
        limit: int,
        category: Category = Category.ANY,
        min_relevance: float,
    ) -> list[LoreResult]:
        """Return hits above ``min_relevance`` in the order the index ranked them."""
        self._require_ready()
        logger.debug("Searching lore: query=%r category=%s limit=%d", query, category.value, limit)
        vector = self._embedder.embed(query)
        where = None if category is Category.ANY else {"category": category.value}
        hits = self._index.nearest_neighbors(vector, limit, where)

        results: list[LoreResult] = []
        for hit in hits:
            relevance = relevance_from_distance(hit.distance)
            if relevance < min_relevance:
                continue
            results.append(self._to_result(hit, relevance))
        logger.debug("Found %d relevant lore entries", len(results))
        return results

    def get_by_title(self, title: str) -> LoreResult | None:
        self._require_ready()
        hit = self._index.get_by_field("title", title)
        if hit is None:
            return None
        return self._to_result(hit, 1.0, fallback_title=title)

    def clear(self) -> None:
        self._require_ready()
        self._index.reset()
        logger.info("Lore collection cleared")

    def _require_ready(self) -> None:
        if self._state is not RepositoryState.READY:
            raise NotInitializedError(
                f"Lore repository is {self._state.value}. Call initialize() first."
            )

    @staticmethod
    def _to_metadata(document: LoreDocument) -> dict[str, Any]:
        return {
            "title": document.title,
            "category": document.category.value,
            "aliases": LIST_SEPARATOR.join(document.aliases),
            "tags": LIST_SEPARATOR.join(document.tags),
            "url": document.source_url or "",
        }

    @staticmethod
    def _to_result(hit: IndexHit, relevance: float, fallback_title: str = "Unknown") -> LoreResult:
        metadata = hit.metadata or {}
        try:
            category = Category.parse(metadata.get("category"))
        except ValueError:
            category = Category.GENERAL
        if category is Category.ANY:
            category = Category.GENERAL
        return LoreResult(
            text=hit.text or "",
            title=metadata.get("title") or fallback_title,
            category=category,
            relevance=relevance,
            source_url=metadata.get("url") or None,
        )


__all__ = ["LoreRepository", "RepositoryState", "relevance_from_distance"]
