"""Embedder built on sentence-transformers with a process-wide model cache."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from sentence_transformers import SentenceTransformer

from domain.errors import UpstreamUnavailableError
from domain.interfaces import Embedder

DEFAULT_MODEL_NAME = "sentence-transformers/all-MiniLM-L6-v2"


@dataclass(slots=True)
class SentenceTransformersConfig:
    model_name: str = DEFAULT_MODEL_NAME
    device: str = "cpu"
    normalize_embeddings: bool = True
    query_prefix: str | None = None


logger = logging.getLogger(__name__)

_MODEL_LOCK = threading.Lock()
_MODELS: dict[tuple[str, str], SentenceTransformer] = {}


def get_shared_model(model_name: str, device: str) -> SentenceTransformer:
    """Return the cached model, loading it at most once per process."""
    key = (model_name, device)
    model = _MODELS.get(key)
    if model is not None:
        return model
    with _MODEL_LOCK:
        model = _MODELS.get(key)
        if model is None:
            logger.info("Loading sentence-transformers model: %s", model_name)
            try:
                model = SentenceTransformer(model_name, device=device)
            except Exception as exc:
                raise UpstreamUnavailableError(f"Cannot load embedding model '{model_name}': {exc}") from exc
            _MODELS[key] = model
            logger.info("Embedding model loaded")
    return model


class SentenceTransformersEmbedder(Embedder):
    """Embeds text with a sentence-transformers model, mean pooled and normalized."""

    def __init__(self, config: SentenceTransformersConfig | None = None) -> None:
        self._config = config or SentenceTransformersConfig()
        self._model: SentenceTransformer | None = None

    @property
    def model_id(self) -> str:
        return self._config.model_name

    @property
    def dimension(self) -> int:
        return int(self._get_model().get_sentence_embedding_dimension())

    def load(self) -> None:
        self._get_model()

    def _get_model(self) -> SentenceTransformer:
        if self._model is None:
            self._model = get_shared_model(self._config.model_name, self._config.device)
        return self._model

    def embed(self, text: str) -> list[float]:
        model = self._get_model()
        if self._config.query_prefix:
            text = f"{self._config.query_prefix}{text}"
        try:
            embeddings = model.encode(
                [text],
                batch_size=1,
                normalize_embeddings=self._config.normalize_embeddings,
                show_progress_bar=False,
            )
        except Exception as exc:
            raise UpstreamUnavailableError(f"Embedding failed with model {self.model_id}: {exc}") from exc
        return embeddings[0].tolist()


__all__ = ["SentenceTransformersEmbedder", "SentenceTransformersConfig", "get_shared_model", "DEFAULT_MODEL_NAME"]
