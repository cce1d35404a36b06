"""Vector index kept in Python dicts, searched by brute force."""
from __future__ import annotations

from typing import Mapping, Sequence

from domain.entities import IndexHit, IndexRecord
from domain.interfaces import VectorIndex


class InMemoryVectorIndex(VectorIndex):
    """Stores records in insertion order and ranks them by cosine distance."""

    def __init__(self) -> None:
        self._records: dict[str, IndexRecord] = {}

    def connect(self) -> None:
        return None

    def count(self) -> int:
        return len(self._records)

    def upsert(self, records: Sequence[IndexRecord]) -> None:
        for record in records:
            self._records[record.id] = IndexRecord(
                id=record.id,
                vector=list(record.vector),
                text=record.text,
                metadata=dict(record.metadata),
            )

    def nearest_neighbors(
        self,
        vector: Sequence[float],
        k: int,
        where: Mapping[str, str] | None = None,
    ) -> list[IndexHit]:
        if k <= 0:
            return []
        scored: list[tuple[float, IndexRecord]] = []
        for record in self._records.values():
            if where and any(record.metadata.get(key) != value for key, value in where.items()):
                continue
            distance = 1.0 - self._cosine_similarity(vector, record.vector)
            scored.append((distance, record))
        scored.sort(key=lambda item: item[0])
        return [
            IndexHit(id=record.id, text=record.text, metadata=dict(record.metadata), distance=distance)
            for distance, record in scored[:k]
        ]

    def get_by_field(self, field: str, value: str) -> IndexHit | None:
        for record in self._records.values():
            if record.metadata.get(field) == value:
                return IndexHit(id=record.id, text=record.text, metadata=dict(record.metadata))
        return None

    def reset(self) -> None:
        self._records.clear()

    @staticmethod
    def _cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
        numerator = sum(x * y for x, y in zip(a, b))
        denom_a = sum(x * x for x in a) ** 0.5 or 1.0
        denom_b = sum(x * x for x in b) ** 0.5 or 1.0
        return numerator / (denom_a * denom_b)


__all__ = ["InMemoryVectorIndex"]
