from __future__ import annotations

"""Core data types for collections, documents and retrieval."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class CollectionLayout:
    """Backend naming and ingestion pattern for one collection."""
    index_name: str
    namespace_prefix: str
    file_pattern: str


class CollectionType(str, Enum):
    """Document types, one independently indexed collection each."""
    PDF = "pdf"
    MARKDOWN = "markdown"
    JSON = "json"
    TEXT = "text"

    @property
    def layout(self) -> CollectionLayout:
        return COLLECTION_LAYOUTS[self]

    @classmethod
    def parse(cls, value: str) -> "CollectionType":
        """Resolve a type from its name or value, case-insensitively."""
        normalized = value.strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown collection type: {value}")


COLLECTION_LAYOUTS: dict[CollectionType, CollectionLayout] = {
    CollectionType.PDF: CollectionLayout("idx:pdf", "doc:pdf:", "**/*.pdf"),
    CollectionType.MARKDOWN: CollectionLayout("idx:markdown", "doc:markdown:", "**/*.md"),
    CollectionType.JSON: CollectionLayout("idx:json", "doc:json:", "**/*.json"),
    CollectionType.TEXT: CollectionLayout("idx:text", "doc:text:", "**/*.txt"),
}


class ConnectionState(str, Enum):
    CONNECTED = "Connected"
    DEGRADED = "Degraded"
    DISCONNECTED = "Disconnected"


@dataclass(frozen=True)
class Document:
    """Document chunk with metadata."""
    doc_id: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SearchResult:
    """Native store hit; distance is None when the backend exposes none."""
    document: Document
    distance: float | None = None


@dataclass(frozen=True)
class Chunk:
    """Bounded slice of source text prepared for indexing."""
    text: str
    index: int
    total_chunks: int
    size_bytes: int


@dataclass(frozen=True)
class RetrievedPassage:
    """Retrieved text fragment with its score and provenance."""
    collection_type: CollectionType
    text: str
    raw_score: float | None
    confidence: float
    document_name: str
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def type_name(self) -> str:
        return self.collection_type.value


@dataclass(frozen=True)
class AggregatedAnswer:
    """Attributed answer built once per query."""
    answer: str
    sources: list[RetrievedPassage]
    source_breakdown: dict[str, int]
    overall_confidence: float
    refusal_reason: str | None = None


@dataclass(frozen=True)
class StoreStatus:
    """Per-collection counts and health plus overall connectivity."""
    document_counts: dict[CollectionType, int]
    store_health: dict[CollectionType, bool]
    connection_state: ConnectionState
