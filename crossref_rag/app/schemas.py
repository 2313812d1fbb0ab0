from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from crossref_rag.rag.types import AggregatedAnswer, Chunk, StoreStatus


class QueryRequest(BaseModel):
    question: str = ""


class SourceResponse(BaseModel):
    type: str
    content: str
    confidence: float
    document_name: str
    metadata: dict[str, str] = Field(default_factory=dict)


class QueryResponse(BaseModel):
    answer: str
    sources: list[SourceResponse]
    source_breakdown: dict[str, int]
    total_confidence: float
    refusal_reason: str | None = None
    request_id: str | None = None

    @classmethod
    def from_answer(cls, answer: AggregatedAnswer, request_id: str | None = None) -> "QueryResponse":
        return cls(
            answer=answer.answer,
            sources=[
                SourceResponse(
                    type=passage.type_name,
                    content=passage.text,
                    confidence=passage.confidence,
                    document_name=passage.document_name,
                    metadata=passage.metadata,
                )
                for passage in answer.sources
            ],
            source_breakdown=answer.source_breakdown,
            total_confidence=answer.overall_confidence,
            refusal_reason=answer.refusal_reason,
            request_id=request_id,
        )

    @classmethod
    def error(cls, message: str, reason: str, request_id: str | None = None) -> "QueryResponse":
        return cls(
            answer=message,
            sources=[],
            source_breakdown={},
            total_confidence=0.0,
            refusal_reason=reason,
            request_id=request_id,
        )


class StoreStatusResponse(BaseModel):
    document_counts: dict[str, int]
    store_health: dict[str, bool]
    connection_status: Literal["Connected", "Degraded", "Disconnected"]

    @classmethod
    def from_status(cls, status: StoreStatus) -> "StoreStatusResponse":
        return cls(
            document_counts={key.name: value for key, value in status.document_counts.items()},
            store_health={key.name: value for key, value in status.store_health.items()},
            connection_status=status.connection_state.value,
        )


class IngestResponse(BaseModel):
    status: Literal["success", "error"]
    message: str
    ingested: dict[str, int] = Field(default_factory=dict)


class ChunkRequest(BaseModel):
    text: str
    max_chunk_size: int | None = Field(default=None, ge=1)
    overlap: int | None = Field(default=None, ge=0)


class ChunkItem(BaseModel):
    text: str
    index: int
    total_chunks: int
    size_bytes: int

    @classmethod
    def from_chunk(cls, chunk: Chunk) -> "ChunkItem":
        return cls(
            text=chunk.text,
            index=chunk.index,
            total_chunks=chunk.total_chunks,
            size_bytes=chunk.size_bytes,
        )


class ChunkResponse(BaseModel):
    chunks: list[ChunkItem]


class StoreHealthResponse(BaseModel):
    stores: dict[str, dict[str, str | bool]]
