"""Vector index backed by a ChromaDB collection in cosine space."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Mapping, Sequence
from urllib.parse import urlparse

import chromadb

from domain.entities import IndexHit, IndexRecord
from domain.errors import NotInitializedError, UpstreamUnavailableError
from domain.interfaces import VectorIndex

logger = logging.getLogger(__name__)

COLLECTION_METADATA = {"hnsw:space": "cosine"}


@contextmanager
def _upstream(action: str) -> Iterator[None]:
    try:
        yield
    except UpstreamUnavailableError:
        raise
    except Exception as exc:
        raise UpstreamUnavailableError(f"ChromaDB {action} failed: {exc}") from exc


class ChromaVectorIndex(VectorIndex):
    """ChromaDB collection reached over HTTP, from a local directory, or in memory.

    ``url`` takes precedence over ``persist_dir``; with neither, an ephemeral
    in-process client is used.
    """

    def __init__(
        self,
        *,
        url: str | None = None,
        persist_dir: str | Path | None = None,
        collection_name: str = "lore",
    ) -> None:
        self._url = url
        self._persist_dir = Path(persist_dir) if persist_dir is not None else None
        self._collection_name = collection_name
        self._client: Any = None
        self._collection: Any = None

    def _create_client(self) -> Any:
        if self._url:
            parsed = urlparse(self._url)
            logger.info("Connecting to ChromaDB at %s", self._url)
            return chromadb.HttpClient(
                host=parsed.hostname or "localhost",
                port=parsed.port or 8000,
                ssl=parsed.scheme == "https",
            )
        if self._persist_dir is not None:
            self._persist_dir.mkdir(parents=True, exist_ok=True)
            logger.info("Opening persistent ChromaDB at %s", self._persist_dir)
            return chromadb.PersistentClient(path=str(self._persist_dir))
        return chromadb.EphemeralClient()

    def connect(self) -> None:
        if self._collection is not None:
            return
        with _upstream("connection"):
            self._client = self._create_client()
            self._collection = self._client.get_or_create_collection(
                name=self._collection_name,
                metadata=COLLECTION_METADATA,
            )

    def _require_collection(self) -> Any:
        if self._collection is None:
            raise NotInitializedError("ChromaDB collection is not connected. Call connect() first.")
        return self._collection

    def count(self) -> int:
        collection = self._require_collection()
        with _upstream("count"):
            return int(collection.count())

    def upsert(self, records: Sequence[IndexRecord]) -> None:
        if not records:
            return
        collection = self._require_collection()
        with _upstream("upsert"):
            collection.upsert(
                ids=[record.id for record in records],
                embeddings=[list(record.vector) for record in records],
                documents=[record.text for record in records],
                metadatas=[dict(record.metadata) for record in records],
            )

    def nearest_neighbors(
        self,
        vector: Sequence[float],
        k: int,
        where: Mapping[str, str] | None = None,
    ) -> list[IndexHit]:
        collection = self._require_collection()
        if k <= 0:
            return []
        with _upstream("query"):
            results = collection.query(
                query_embeddings=[list(vector)],
                n_results=k,
                where=dict(where) if where else None,
                include=["documents", "metadatas", "distances"],
            )

        ids = (results.get("ids") or [[]])[0]
        documents = (results.get("documents") or [[]])[0]
        metadatas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]
        hits: list[IndexHit] = []
        for i, record_id in enumerate(ids):
            hits.append(
                IndexHit(
                    id=record_id,
                    text=documents[i] if i < len(documents) and documents[i] else "",
                    metadata=dict(metadatas[i] or {}) if i < len(metadatas) else {},
                    distance=float(distances[i]) if i < len(distances) and distances[i] is not None else 0.0,
                )
            )
        return hits

    def get_by_field(self, field: str, value: str) -> IndexHit | None:
        collection = self._require_collection()
        with _upstream("get"):
            results = collection.get(
                where={field: value},
                limit=1,
                include=["documents", "metadatas"],
            )
        ids = results.get("ids") or []
        if not ids:
            return None
        documents = results.get("documents") or [""]
        metadatas = results.get("metadatas") or [{}]
        return IndexHit(id=ids[0], text=documents[0] or "", metadata=dict(metadatas[0] or {}))

    def reset(self) -> None:
        self._require_collection()
        with _upstream("reset"):
            self._client.delete_collection(name=self._collection_name)
            self._collection = self._client.get_or_create_collection(
                name=self._collection_name,
                metadata=COLLECTION_METADATA,
            )
        logger.info("ChromaDB collection %s recreated", self._collection_name)


__all__ = ["ChromaVectorIndex"]
