"""Retrieval policy on top of the lore repository."""
from __future__ import annotations

import logging
import random
from typing import Sequence

from application.services.context_packing import build_context
from application.services.lore_repository import LoreRepository
from domain.entities import Category, LoreContext, LoreResult

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 5
DEFAULT_MIN_RELEVANCE = 0.3
DEFAULT_CONTEXT_LENGTH = 2000

SITUATION_LIMIT = 5
SITUATION_MIN_RELEVANCE = 0.25
SITUATION_CONTEXT_LENGTH = 3000

RANDOM_LORE_LIMIT = 10
DEFAULT_SEED_QUERIES: tuple[str, ...] = (
    "Empire provinces cities",
    "Chaos gods Warhammer",
    "Sigmar history",
    "Beastmen creatures",
    "Skaven Under-Empire",
)


class RetrievalService:
    """Entity lookup, situational retrieval and context composition."""

    def __init__(
        self,
        repository: LoreRepository,
        *,
        seed_queries: Sequence[str] = DEFAULT_SEED_QUERIES,
        rng: random.Random | None = None,
    ) -> None:
        if not seed_queries:
            raise ValueError("At least one seed query is required.")
        self._repository = repository
        self._seed_queries = tuple(seed_queries)
        self._rng = rng or random.Random()

    def initialize(self) -> None:
        self._repository.initialize()
        logger.info("Retrieval service initialized")

    def is_ready(self) -> bool:
        return self._repository.is_ready()

    def document_count(self) -> int:
        return self._repository.document_count()

    def search(
        self,
        query: str,
        *,
        limit: int = DEFAULT_LIMIT,
        category: Category | str | None = Category.ANY,
        min_relevance: float = DEFAULT_MIN_RELEVANCE,
    ) -> list[LoreResult]:
        category = Category.parse(category)
        logger.info("Lore search: query=%r category=%s limit=%d", query, category.value, limit)
        return self._repository.search(
            query,
            limit=limit,
            category=category,
            min_relevance=min_relevance,
        )

    def get_by_title(self, title: str) -> LoreResult | None:
        return self._repository.get_by_title(title)

    def lookup_entity(self, name: str, category: Category | str | None = None) -> LoreResult | None:
        """Resolve ``name`` by exact title, falling back to the best semantic hit."""
        exact = self._repository.get_by_title(name)
        if exact is not None:
            return exact
        logger.debug("No exact title match for %r, falling back to semantic search", name)
        results = self.search(name, limit=1, category=category)
        return results[0] if results else None

    def build_context(self, results: Sequence[LoreResult], max_length: int = DEFAULT_CONTEXT_LENGTH) -> LoreContext:
        return build_context(results, max_length)

    def search_with_context(
        self,
        query: str,
        *,
        limit: int = DEFAULT_LIMIT,
        category: Category | str | None = Category.ANY,
        min_relevance: float = DEFAULT_MIN_RELEVANCE,
        max_context_length: int = DEFAULT_CONTEXT_LENGTH,
    ) -> LoreContext:
        results = self.search(query, limit=limit, category=category, min_relevance=min_relevance)
        return build_context(results, max_context_length)

    def get_context_for_situation(
        self,
        situation: str,
        entities: Sequence[str] = (),
        max_length: int = SITUATION_CONTEXT_LENGTH,
    ) -> LoreContext:
        """Pack lore for a situation description plus the entities involved.

        Favors recall: more permissive floor and a larger budget than
        :meth:`search_with_context`.
        """
        query = " ".join([situation, *entities])
        results = self.search(query, limit=SITUATION_LIMIT, min_relevance=SITUATION_MIN_RELEVANCE)
        return build_context(results, max_length)

    def get_random_lore(self, category: Category | str | None = None) -> LoreResult | None:
        seed_query = self._rng.choice(self._seed_queries)
        results = self.search(seed_query, limit=RANDOM_LORE_LIMIT, category=category)
        if not results:
            return None
        return self._rng.choice(results)


__all__ = [
    "RetrievalService",
    "DEFAULT_SEED_QUERIES",
    "DEFAULT_LIMIT",
    "DEFAULT_MIN_RELEVANCE",
    "DEFAULT_CONTEXT_LENGTH",
    "SITUATION_CONTEXT_LENGTH",
]
