"""ANN vector index on top of hnswlib, with texts and metadata in a JSON sidecar."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping, Sequence

import hnswlib
import numpy as np

from domain.entities import IndexHit, IndexRecord
from domain.interfaces import VectorIndex

logger = logging.getLogger(__name__)


class HnswVectorIndex(VectorIndex):
    """Keeps one hnswlib cosine index per collection.

    The index is created lazily on the first upsert, sized to the incoming
    vectors. When ``index_root`` is given the index and its sidecar are
    written after every upsert and reloaded on :meth:`connect`.
    """

    def __init__(
        self,
        *,
        index_root: str | Path | None = None,
        collection_name: str = "lore",
        initial_capacity: int = 10_000,
        ef_construction: int = 200,
        M: int = 16,
        ef_search: int = 50,
    ) -> None:
        self._index_root = Path(index_root) if index_root is not None else None
        self._collection_name = collection_name
        self._initial_capacity = initial_capacity
        self._ef_construction = ef_construction
        self._M = M
        self._ef_search = ef_search
        self._index: hnswlib.Index | None = None
        self._dimension: int | None = None
        self._labels: dict[str, int] = {}
        self._entries: dict[int, dict[str, Any]] = {}

    def connect(self) -> None:
        if self._index is not None or self._index_root is None:
            return
        index_path = self._index_path()
        meta_path = self._meta_path()
        if not (index_path.exists() and meta_path.exists()):
            return
        logger.info("Loading HNSW index %s", index_path)
        stored = json.loads(meta_path.read_text(encoding="utf-8"))
        self._dimension = int(stored["dimension"])
        self._entries = {int(label): entry for label, entry in stored["entries"].items()}
        self._labels = {entry["id"]: label for label, entry in self._entries.items()}
        index = hnswlib.Index(space="cosine", dim=self._dimension)
        index.load_index(str(index_path), max_elements=max(self._initial_capacity, len(self._entries)))
        index.set_ef(self._ef_search)
        self._index = index

    def count(self) -> int:
        return len(self._entries)

    def upsert(self, records: Sequence[IndexRecord]) -> None:
        if not records:
            return
        vectors = np.array([list(record.vector) for record in records], dtype="float32")
        if vectors.ndim != 2:
            raise ValueError(f"Expected a 2D batch of embeddings, got shape {vectors.shape}.")
        index = self._get_or_create_index(vectors.shape[1])
        if vectors.shape[1] != self._dimension:
            raise ValueError(
                f"Embedding dimension mismatch for collection {self._collection_name}: "
                f"expected {self._dimension}, got {vectors.shape}."
            )

        labels = [self._label_for(record.id) for record in records]
        required = len(self._labels)
        if required > index.get_max_elements():
            index.resize_index(max(required, index.get_max_elements() * 2))
        index.add_items(vectors, np.array(labels, dtype="int64"))
        for label, record in zip(labels, records):
            self._entries[label] = {"id": record.id, "text": record.text, "metadata": dict(record.metadata)}
        self._save()

    def nearest_neighbors(
        self,
        vector: Sequence[float],
        k: int,
        where: Mapping[str, str] | None = None,
    ) -> list[IndexHit]:
        if self._index is None or k <= 0:
            return []
        if where:
            allowed = {label for label, entry in self._entries.items() if self._matches(entry, where)}
            label_filter = allowed.__contains__
        else:
            allowed = set(self._entries)
            label_filter = None
        k = min(k, len(allowed))
        if k == 0:
            return []

        query = np.array([list(vector)], dtype="float32")
        self._index.set_ef(max(self._ef_search, k))
        try:
            labels, distances = self._index.knn_query(query, k=k, num_threads=1, filter=label_filter)
        except RuntimeError:
            # Filtered graph search came back short; widen it to the whole index.
            self._index.set_ef(max(self._index.get_current_count(), k))
            labels, distances = self._index.knn_query(query, k=k, num_threads=1, filter=label_filter)

        hits: list[IndexHit] = []
        for label, distance in zip(labels[0].tolist(), distances[0].tolist()):
            entry = self._entries[int(label)]
            hits.append(
                IndexHit(
                    id=entry["id"],
                    text=entry["text"],
                    metadata=dict(entry["metadata"]),
                    distance=float(distance),
                )
            )
        return hits

    def get_by_field(self, field: str, value: str) -> IndexHit | None:
        for entry in self._entries.values():
            if entry["metadata"].get(field) == value:
                return IndexHit(id=entry["id"], text=entry["text"], metadata=dict(entry["metadata"]))
        return None

    def reset(self) -> None:
        self._index = None
        self._dimension = None
        self._labels.clear()
        self._entries.clear()
        if self._index_root is not None:
            self._index_path().unlink(missing_ok=True)
            self._meta_path().unlink(missing_ok=True)
        logger.info("HNSW collection %s cleared", self._collection_name)

    def _get_or_create_index(self, dimension: int) -> hnswlib.Index:
        if self._index is not None:
            return self._index
        index = hnswlib.Index(space="cosine", dim=dimension)
        index.init_index(
            max_elements=self._initial_capacity,
            ef_construction=self._ef_construction,
            M=self._M,
        )
        index.set_ef(self._ef_search)
        self._index = index
        self._dimension = dimension
        return index

    def _label_for(self, record_id: str) -> int:
        label = self._labels.get(record_id)
        if label is None:
            label = len(self._labels)
            self._labels[record_id] = label
        return label

    @staticmethod
    def _matches(entry: Mapping[str, Any], where: Mapping[str, str]) -> bool:
        metadata = entry["metadata"]
        return all(metadata.get(key) == value for key, value in where.items())

    def _save(self) -> None:
        if self._index_root is None or self._index is None:
            return
        self._index_root.mkdir(parents=True, exist_ok=True)
        self._index.save_index(str(self._index_path()))
        payload = {
            "dimension": self._dimension,
            "entries": {str(label): entry for label, entry in self._entries.items()},
        }
        self._meta_path().write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")

    def _index_path(self) -> Path:
        return self._require_root() / f"{self._collection_name}.bin"

    def _meta_path(self) -> Path:
        return self._require_root() / f"{self._collection_name}.json"

    def _require_root(self) -> Path:
        if self._index_root is None:
            raise ValueError(f"HNSW collection {self._collection_name} has no index_root; it is not persisted.")
        return self._index_root


__all__ = ["HnswVectorIndex"]
