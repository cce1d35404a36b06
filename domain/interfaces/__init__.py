"""Abstract interfaces for the LoreSearch system."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Mapping, Sequence

from domain.entities import IndexHit, IndexRecord


class Embedder(ABC):
    """Turns text (documents or queries) into fixed-length vectors."""

    @property
    @abstractmethod
    def model_id(self) -> str:
        """Return the stable identifier for this embedding model."""

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the embedding dimension for this model."""

    def load(self) -> None:
        """Acquire the model handle. Must be idempotent."""

    @abstractmethod
    def embed(self, text: str) -> list[float]:
        """Embed a single text into a dense vector."""

    def embed_texts(self, texts: Sequence[str]) -> list[list[float]]:
        return [self.embed(text) for text in texts]


class VectorIndex(ABC):
    """Persists vectors with their text and metadata and answers nearest-neighbor queries."""

    @abstractmethod
    def connect(self) -> None:
        """Open the underlying collection, creating it if needed."""

    @abstractmethod
    def count(self) -> int:
        """Return the number of stored records."""

    @abstractmethod
    def upsert(self, records: Sequence[IndexRecord]) -> None:
        """Insert or overwrite records keyed by id, as a single batch."""

    @abstractmethod
    def nearest_neighbors(
        self,
        vector: Sequence[float],
        k: int,
        where: Mapping[str, str] | None = None,
    ) -> list[IndexHit]:
        """Return up to ``k`` hits ordered by ascending cosine distance.

        ``where`` is an exact-equality filter on metadata fields.
        """

    @abstractmethod
    def get_by_field(self, field: str, value: str) -> IndexHit | None:
        """Return one record whose metadata ``field`` equals ``value``."""

    @abstractmethod
    def reset(self) -> None:
        """Delete and recreate the underlying collection."""


__all__ = [
    "Embedder",
    "VectorIndex",
]
