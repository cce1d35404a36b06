"""Embedder that averages hashed word vectors (offline stand-in for a real model)."""
from __future__ import annotations

import hashlib
import math
import re
from collections import Counter
from typing import Sequence

from domain.interfaces import Embedder

_WORD_RE = re.compile(r"\w+", re.UNICODE)


class MeanWordHashEmbedder(Embedder):
    """Produces deterministic vectors by hashing individual words.

    Word vectors are centred around zero, so texts without shared words are
    close to orthogonal and texts with many shared words score high.
    """

    def __init__(self, dimension: int = 128) -> None:
        self._dimension = dimension
        self._model_id = f"mean-word-hash-{dimension}"

    @property
    def model_id(self) -> str:
        return self._model_id

    @property
    def dimension(self) -> int:
        return self._dimension

    def _word_vector(self, word: str) -> list[float]:
        digest = hashlib.shake_256(word.encode("utf-8")).digest(self._dimension)
        return [byte / 127.5 - 1.0 for byte in digest]

    def _combine(self, words: Sequence[str]) -> list[float]:
        counts = Counter(word.lower() for word in words)
        vector = [0.0] * self._dimension
        if not counts:
            return vector
        total = sum(counts.values())
        for word, count in counts.items():
            for idx, value in enumerate(self._word_vector(word)):
                vector[idx] += value * count / total
        norm = math.sqrt(sum(value * value for value in vector)) or 1.0
        return [value / norm for value in vector]

    def embed(self, text: str) -> list[float]:
        return self._combine(_WORD_RE.findall(text))


__all__ = ["MeanWordHashEmbedder"]
