"""Dependency wiring for the LoreSearch application."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Literal, Mapping, get_args

from application.services.lore_repository import LoreRepository
from application.services.retrieval_service import DEFAULT_SEED_QUERIES, RetrievalService
from domain.interfaces import Embedder, VectorIndex
from infrastructure.embedding.mean_word_hash_embedder import MeanWordHashEmbedder
from infrastructure.storage.in_memory_vector_index import InMemoryVectorIndex

IndexName = Literal["chroma", "hnsw", "memory"]
EmbedderName = Literal["minilm", "mean_word"]

DEFAULT_EMBEDDING_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


@dataclass(slots=True)
class Container:
    """Concrete infrastructure bundled with the services built on it."""

    embedder: Embedder
    vector_index: VectorIndex
    repository: LoreRepository
    retrieval_service: RetrievalService


@dataclass(slots=True)
class ContainerConfig:
    """Configuration for selecting the embedder and the vector index."""

    vector_index: IndexName = "chroma"
    embedder: EmbedderName = "minilm"
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    models_dir: str | None = None
    device: str = "cpu"
    chroma_url: str | None = None
    data_root: str = "data"
    collection_name: str = "lore"
    seed_queries: tuple[str, ...] = DEFAULT_SEED_QUERIES

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ContainerConfig:
        env = os.environ if environ is None else environ
        defaults = cls()
        vector_index = env.get("LORESEARCH_VECTOR_INDEX", defaults.vector_index).lower()
        if vector_index not in get_args(IndexName):
            raise ValueError(f"Unknown vector index '{vector_index}'")
        embedder = env.get("LORESEARCH_EMBEDDER", defaults.embedder).lower()
        if embedder not in get_args(EmbedderName):
            raise ValueError(f"Unknown embedder '{embedder}'")
        return cls(
            vector_index=vector_index,  # type: ignore[arg-type]
            embedder=embedder,  # type: ignore[arg-type]
            embedding_model=env.get("LORESEARCH_EMBEDDING_MODEL", defaults.embedding_model),
            models_dir=env.get("LORESEARCH_MODELS_DIR") or None,
            device=env.get("LORESEARCH_DEVICE", defaults.device),
            chroma_url=env.get("LORESEARCH_CHROMA_URL") or env.get("CHROMADB_URL") or None,
            data_root=env.get("LORESEARCH_DATA_ROOT", defaults.data_root),
            collection_name=env.get("LORESEARCH_COLLECTION", defaults.collection_name),
        )


def _resolve_model_reference(model_ref: str, cfg: ContainerConfig) -> str:
    """Prefer a prefetched copy under ``models_dir`` over a hub download."""
    if cfg.models_dir:
        local_path = Path(cfg.models_dir).expanduser() / model_ref
        if local_path.is_dir():
            return str(local_path)
    return model_ref


def _build_minilm(cfg: ContainerConfig) -> Embedder:
    from infrastructure.embedding.sentence_transformers_embedder import (  # noqa: PLC0415
        SentenceTransformersConfig,
        SentenceTransformersEmbedder,
    )

    return SentenceTransformersEmbedder(
        SentenceTransformersConfig(
            model_name=_resolve_model_reference(cfg.embedding_model, cfg),
            device=cfg.device,
        )
    )


def _build_chroma(cfg: ContainerConfig) -> VectorIndex:
    from infrastructure.storage.chroma_vector_index import ChromaVectorIndex  # noqa: PLC0415

    return ChromaVectorIndex(
        url=cfg.chroma_url,
        persist_dir=None if cfg.chroma_url else Path(cfg.data_root) / "chromadb",
        collection_name=cfg.collection_name,
    )


def _build_hnsw(cfg: ContainerConfig) -> VectorIndex:
    from infrastructure.storage.hnsw_vector_index import HnswVectorIndex  # noqa: PLC0415

    return HnswVectorIndex(index_root=Path(cfg.data_root) / "hnsw", collection_name=cfg.collection_name)


_EMBEDDER_FACTORIES: dict[EmbedderName, Callable[[ContainerConfig], Embedder]] = {
    "minilm": _build_minilm,
    "mean_word": lambda _cfg: MeanWordHashEmbedder(),
}

_INDEX_FACTORIES: dict[IndexName, Callable[[ContainerConfig], VectorIndex]] = {
    "chroma": _build_chroma,
    "hnsw": _build_hnsw,
    "memory": lambda _cfg: InMemoryVectorIndex(),
}


def build_default_container(config: ContainerConfig | None = None) -> Container:
    """Instantiate the default infrastructure stack. Nothing is connected or loaded yet."""

    cfg = config or ContainerConfig()
    try:
        embedder = _EMBEDDER_FACTORIES[cfg.embedder](cfg)
    except KeyError as exc:
        raise ValueError(f"Unknown embedder '{cfg.embedder}'") from exc
    try:
        vector_index = _INDEX_FACTORIES[cfg.vector_index](cfg)
    except KeyError as exc:
        raise ValueError(f"Unknown vector index '{cfg.vector_index}'") from exc
    repository = LoreRepository(vector_index, embedder)
    retrieval_service = RetrievalService(repository, seed_queries=cfg.seed_queries)

    return Container(
        embedder=embedder,
        vector_index=vector_index,
        repository=repository,
        retrieval_service=retrieval_service,
    )


__all__ = ["Container", "ContainerConfig", "build_default_container"]
