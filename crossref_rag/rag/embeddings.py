from __future__ import annotations

"""Embedding providers used by the bundled collection stores."""

import hashlib
import math
import re
from dataclasses import dataclass, field
from typing import Any, Protocol

_TOKEN_RE = re.compile(r"[a-z0-9]+")

# Output sizes of the OpenAI models a dimension can be inferred for.
OPENAI_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class EmbeddingError(RuntimeError):
    """Raised when an embedding backend fails or returns a bad vector."""
    pass


class EmbeddingConfigError(RuntimeError):
    """Raised when embedding settings cannot produce a provider."""
    pass


class EmbeddingProvider(Protocol):
    """Text to fixed-size vector."""
    dimension: int

    def embed(self, text: str) -> list[float]:
        raise NotImplementedError


def validate_vector(vector: list[float], dimension: int) -> list[float]:
    if len(vector) != dimension:
        raise EmbeddingError(f"Expected {dimension} dimensions, got {len(vector)}")
    if not all(isinstance(value, (int, float)) and math.isfinite(value) for value in vector):
        raise EmbeddingError("Embedding contains a non-finite value")
    return [float(value) for value in vector]


@dataclass
class HashEmbedder:
    """Bag of hashed tokens, L2-normalized. Deterministic and offline."""
    dimension: int = 256

    def embed(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        for token in _TOKEN_RE.findall(text.lower()):
            bucket = hashlib.sha256(token.encode("utf-8")).digest()[0] % self.dimension
            vector[bucket] += 1.0
        norm = math.sqrt(sum(value * value for value in vector))
        if norm:
            vector = [value / norm for value in vector]
        return vector


@dataclass
class OpenAIEmbedder:
    """Embeddings from the OpenAI API; dimension 0 means infer from the model."""
    api_key: str
    model: str
    dimension: int
    client: Any = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.api_key:
            raise EmbeddingConfigError("OPENAI_API_KEY is required for OpenAI embeddings")
        if not self.model:
            raise EmbeddingConfigError("OPENAI_EMBEDDING_MODEL is required for OpenAI embeddings")
        known = OPENAI_DIMENSIONS.get(self.model)
        if self.dimension <= 0:
            if known is None:
                raise EmbeddingConfigError(
                    f"EMBEDDING_DIMENSION must be set for unknown model {self.model}"
                )
            self.dimension = known
        elif known is not None and self.dimension != known:
            raise EmbeddingConfigError(f"EMBEDDING_DIMENSION should be {known} for {self.model}")
        try:
            from openai import OpenAI
        except ImportError as exc:
            raise EmbeddingError("openai package is required for OpenAIEmbedder") from exc
        self.client = OpenAI(api_key=self.api_key)

    def embed(self, text: str) -> list[float]:
        try:
            response = self.client.embeddings.create(model=self.model, input=text)
        except Exception as exc:
            raise EmbeddingError(f"OpenAI embedding request failed: {exc}") from exc
        return validate_vector(list(response.data[0].embedding), self.dimension)
