from __future__ import annotations

"""Capability contract every per-collection backing store satisfies."""

from dataclasses import dataclass
from typing import Iterable, Protocol

from crossref_rag.rag.types import CollectionType, Document, SearchResult


class StoreUnavailableError(RuntimeError):
    """Raised by a store whose backend could not be set up."""
    pass


class CollectionStore(Protocol):
    """Similarity-searchable index holding one document type."""

    def add_documents(self, documents: Iterable[Document]) -> int:
        """Embed and store documents, returning how many were added."""
        raise NotImplementedError

    def search(self, query: str, top_k: int) -> list[SearchResult]:
        """Return up to top_k hits, best first."""
        raise NotImplementedError

    def count(self) -> int:
        """Document count from backend metadata."""
        raise NotImplementedError

    def count_by_prefix(self, prefix: str) -> int:
        """Count documents whose id starts with prefix."""
        raise NotImplementedError

    def health(self) -> dict[str, str | bool]:
        """Backend name, collection name and an ok flag."""
        raise NotImplementedError


@dataclass(frozen=True)
class UnavailableCollectionStore:
    """Placeholder registered for a collection whose store failed to build.

    Every operation raises, so retrieval treats the collection as a failed
    backend and the status report marks it unhealthy.
    """
    collection_type: CollectionType
    reason: str

    def _fail(self) -> StoreUnavailableError:
        return StoreUnavailableError(
            f"{self.collection_type.value} store unavailable: {self.reason}"
        )

    def add_documents(self, documents: Iterable[Document]) -> int:
        raise self._fail()

    def search(self, query: str, top_k: int) -> list[SearchResult]:
        raise self._fail()

    def count(self) -> int:
        raise self._fail()

    def count_by_prefix(self, prefix: str) -> int:
        raise self._fail()

    def health(self) -> dict[str, str | bool]:
        return {
            "backend": "unavailable",
            "collection": self.collection_type.layout.index_name,
            "ok": False,
            "detail": self.reason,
        }
