from __future__ import annotations

"""In-memory collection store for local testing and small datasets."""

import math
from dataclasses import dataclass, field
from typing import Iterable

from crossref_rag.rag.embeddings import EmbeddingProvider
from crossref_rag.rag.types import CollectionType, Document, SearchResult


@dataclass
class InMemoryCollectionStore:
    """Single-collection vector store scored by cosine distance (1 - cos)."""
    embedder: EmbeddingProvider
    collection_type: CollectionType
    documents: list[Document] = field(default_factory=list)
    vectors: list[list[float]] = field(default_factory=list)

    def add_documents(self, documents: Iterable[Document]) -> int:
        """Embed and store documents."""
        added = 0
        for document in documents:
            vector = self.embedder.embed(document.content)
            self.documents.append(document)
            self.vectors.append(vector)
            added += 1
        return added

    def search(self, query: str, top_k: int) -> list[SearchResult]:
        """Return the top_k closest documents, nearest first."""
        if top_k <= 0 or not self.documents:
            return []
        query_vector = self.embedder.embed(query)
        scored = [
            SearchResult(document=doc, distance=1.0 - self._cosine_similarity(query_vector, vec))
            for doc, vec in zip(list(self.documents), list(self.vectors))
        ]
        scored.sort(key=lambda item: item.distance)
        return scored[:top_k]

    def _cosine_similarity(self, a: list[float], b: list[float]) -> float:
        dot = sum(x * y for x, y in zip(a, b))
        norm_a = math.sqrt(sum(x * x for x in a))
        norm_b = math.sqrt(sum(y * y for y in b))
        if norm_a == 0.0 or norm_b == 0.0:
            return 0.0
        return dot / (norm_a * norm_b)

    def count(self) -> int:
        return len(self.documents)

    def count_by_prefix(self, prefix: str) -> int:
        return sum(1 for doc in self.documents if doc.doc_id.startswith(prefix))

    def health(self) -> dict[str, str | bool]:
        """Return health information for the store."""
        return {
            "backend": "memory",
            "collection": self.collection_type.layout.index_name,
            "ok": True,
        }
