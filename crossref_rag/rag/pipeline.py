from __future__ import annotations

import logging
from dataclasses import dataclass, field

from crossref_rag.loaders.chunking import build_chunks
from crossref_rag.rag.retriever import AllBackendsUnavailable
from crossref_rag.rag.status import StoreStatusReporter
from crossref_rag.rag.synthesizer import Synthesizer
from crossref_rag.rag.types import AggregatedAnswer, Chunk, StoreStatus

logger = logging.getLogger(__name__)

DEMO_QUERIES = [
    "How do I implement JWT authentication in Spring Boot and what are the security considerations?",
    "What are the recommended database connection pool settings for high-traffic applications?",
    "How do I set up caching with Redis in Spring Boot and monitor its effectiveness?",
]


class EmptyQuestion(ValueError):
    """Raised when the caller supplies a blank question."""
    pass


class InvalidDemoIndex(IndexError):
    """Raised for an index outside the demo query list."""

    def __init__(self, index: int) -> None:
        super().__init__(f"Invalid query index: {index}")
        self.index = index


def unavailable_answer() -> AggregatedAnswer:
    return AggregatedAnswer(
        answer="None of the document stores are reachable right now. Please try again later.",
        sources=[],
        source_breakdown={},
        overall_confidence=0.0,
        refusal_reason="all_backends_unavailable",
    )


@dataclass
class MultiStoreRAGPipeline:
    synthesizer: Synthesizer
    reporter: StoreStatusReporter
    chunk_size: int = 6000
    chunk_overlap: int = 200
    demo_questions: list[str] = field(default_factory=lambda: list(DEMO_QUERIES))

    async def query(self, question: str) -> AggregatedAnswer:
        if not question or not question.strip():
            raise EmptyQuestion("Please provide a valid question")
        question = question.strip()
        try:
            response = await self.synthesizer.synthesize(question)
        except AllBackendsUnavailable as exc:
            logger.error("all_backends_unavailable", extra={"detail": str(exc)})
            return unavailable_answer()
        logger.info(
            "query_completed",
            extra={
                "sources": len(response.sources),
                "breakdown": response.source_breakdown,
                "overall_confidence": round(response.overall_confidence, 4),
                "refusal_reason": response.refusal_reason,
            },
        )
        return response

    def status(self) -> StoreStatus:
        return self.reporter.status()

    async def astatus(self) -> StoreStatus:
        return await self.reporter.astatus()

    def chunk(
        self, text: str, max_chunk_size: int | None = None, overlap: int | None = None
    ) -> list[Chunk]:
        return build_chunks(
            text,
            self.chunk_size if max_chunk_size is None else max_chunk_size,
            self.chunk_overlap if overlap is None else overlap,
        )

    def demo_queries(self) -> list[str]:
        return list(self.demo_questions)

    async def process_demo_query(self, index: int) -> AggregatedAnswer:
        if index < 0 or index >= len(self.demo_questions):
            raise InvalidDemoIndex(index)
        return await self.query(self.demo_questions[index])
