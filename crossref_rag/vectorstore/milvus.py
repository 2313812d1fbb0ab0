from __future__ import annotations

"""Milvus-backed collection store, one Milvus collection per document type."""

import json
import threading
from dataclasses import dataclass, field
from typing import Any, Iterable

from crossref_rag.rag.embeddings import EmbeddingConfigError, EmbeddingProvider
from crossref_rag.rag.types import CollectionType, Document, SearchResult

_SIMILARITY_METRICS = {"COSINE", "IP"}


class MilvusDependencyError(RuntimeError):
    """Raised when Milvus dependencies are missing."""
    pass


@dataclass
class MilvusConfig:
    """Connection and index settings shared by all collections."""
    uri: str
    token: str | None
    collection_prefix: str
    consistency: str
    index_type: str
    metric_type: str
    nlist: int
    nprobe: int
    hybrid_search: bool = False
    max_content_length: int = 65535


def collection_name(config: MilvusConfig, collection_type: CollectionType) -> str:
    """Milvus collection names allow only letters, digits and underscores."""
    return f"{config.collection_prefix}_{collection_type.value}"


def connect(config: MilvusConfig) -> None:
    try:
        from pymilvus import connections
    except ImportError as exc:
        raise MilvusDependencyError("pymilvus is required for MilvusCollectionStore") from exc
    connections.connect(alias="default", uri=config.uri, token=config.token)


def milvus_probe(config: MilvusConfig) -> bool:
    """Trivial existence check used as the base connectivity probe."""
    connect(config)
    from pymilvus import utility

    utility.has_collection("health_check")
    return True


@dataclass
class MilvusCollectionStore:
    """Milvus collection with a dense field and optional BM25 sparse field."""
    embedder: EmbeddingProvider
    config: MilvusConfig
    collection_type: CollectionType
    _collection: Any = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.embedder.dimension <= 0:
            raise EmbeddingConfigError(
                "Embedding dimension must be set before initializing MilvusCollectionStore"
            )
        self.name = collection_name(self.config, self.collection_type)

    @property
    def collection(self) -> Any:
        """Connect and create the collection on first use."""
        with self._lock:
            if self._collection is None:
                connect(self.config)
                self._collection = self.ensure_collection()
            return self._collection

    def ensure_collection(self) -> Any:
        """Create collection schema and indexes when missing."""
        from pymilvus import (
            Collection,
            CollectionSchema,
            DataType,
            FieldSchema,
            Function,
            FunctionType,
            utility,
        )

        if utility.has_collection(self.name):
            return Collection(self.name, consistency_level=self.config.consistency)

        fields = [
            FieldSchema(name="doc_id", dtype=DataType.VARCHAR, is_primary=True, max_length=256),
            FieldSchema(
                name="content",
                dtype=DataType.VARCHAR,
                max_length=self.config.max_content_length,
                enable_analyzer=True,
            ),
            FieldSchema(name="metadata", dtype=DataType.JSON),
            FieldSchema(name="embedding", dtype=DataType.FLOAT_VECTOR, dim=self.embedder.dimension),
        ]
        functions = []
        if self.config.hybrid_search:
            fields.append(FieldSchema(name="text_sparse", dtype=DataType.SPARSE_FLOAT_VECTOR))
            functions.append(
                Function(
                    name="content_bm25",
                    input_field_names=["content"],
                    output_field_names=["text_sparse"],
                    function_type=FunctionType.BM25,
                )
            )
        schema = CollectionSchema(
            fields=fields,
            description=f"{self.collection_type.value} documents",
            functions=functions,
        )
        collection = Collection(self.name, schema, consistency_level=self.config.consistency)
        collection.create_index(
            field_name="embedding",
            index_params={
                "index_type": self.config.index_type,
                "metric_type": self.config.metric_type,
                "params": {"nlist": self.config.nlist},
            },
        )
        if self.config.hybrid_search:
            collection.create_index(
                field_name="text_sparse",
                index_params={"index_type": "SPARSE_INVERTED_INDEX", "metric_type": "BM25"},
            )
        return collection

    def add_documents(self, documents: Iterable[Document]) -> int:
        rows: list[dict[str, Any]] = []
        for document in documents:
            content = document.content[: self.config.max_content_length]
            rows.append(
                {
                    "doc_id": document.doc_id,
                    "content": content,
                    "metadata": json.loads(json.dumps(document.metadata, default=str)),
                    "embedding": self.embedder.embed(content),
                }
            )
        if not rows:
            return 0
        self.collection.insert(rows)
        self.collection.flush()
        return len(rows)

    def search(self, query: str, top_k: int) -> list[SearchResult]:
        """Dense search yields distances; hybrid RRF ranks carry no distance."""
        if top_k <= 0:
            return []
        query_vector = self.embedder.embed(query)
        self.collection.load()
        output_fields = ["doc_id", "content", "metadata"]
        if self.config.hybrid_search:
            from pymilvus import AnnSearchRequest, RRFRanker

            requests = [
                AnnSearchRequest(
                    data=[query_vector],
                    anns_field="embedding",
                    param={"metric_type": self.config.metric_type, "params": {"nprobe": self.config.nprobe}},
                    limit=top_k,
                ),
                AnnSearchRequest(
                    data=[query],
                    anns_field="text_sparse",
                    param={"metric_type": "BM25"},
                    limit=top_k,
                ),
            ]
            hits = self.collection.hybrid_search(
                requests, RRFRanker(), limit=top_k, output_fields=output_fields
            )[0]
        else:
            hits = self.collection.search(
                data=[query_vector],
                anns_field="embedding",
                param={"metric_type": self.config.metric_type, "params": {"nprobe": self.config.nprobe}},
                limit=top_k,
                output_fields=output_fields,
            )[0]

        results: list[SearchResult] = []
        for hit in hits:
            entity = hit.entity
            metadata = entity.get("metadata") or {}
            document = Document(
                doc_id=entity.get("doc_id"),
                content=entity.get("content"),
                metadata=metadata if isinstance(metadata, dict) else {"raw": metadata},
            )
            results.append(SearchResult(document=document, distance=self._distance(hit)))
        return results

    def _distance(self, hit: Any) -> float | None:
        if self.config.hybrid_search:
            return None
        value = float(hit.distance)
        if self.config.metric_type.upper() in _SIMILARITY_METRICS:
            return 1.0 - value
        return value

    def count(self) -> int:
        return int(self.collection.num_entities)

    def count_by_prefix(self, prefix: str) -> int:
        rows = self.collection.query(expr=f'doc_id like "{prefix}%"', output_fields=["count(*)"])
        if not rows:
            return 0
        return int(rows[0].get("count(*)", 0))

    def health(self) -> dict[str, str | bool]:
        try:
            _ = self.collection.num_entities
        except Exception as exc:
            return {"backend": "milvus", "collection": self.name, "ok": False, "detail": str(exc)}
        return {"backend": "milvus", "collection": self.name, "ok": True}
