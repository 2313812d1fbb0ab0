from __future__ import annotations

"""Turn ranked, typed passages into one attributed answer.

Two interchangeable strategies produce an AggregatedAnswer:

* ``GroupedPromptSynthesizer`` retrieves across all stores, renders one
  prompt with a section per collection type and makes a single
  completion call.
* ``PerTypeSynthesizer`` asks for one answer per collection type and then
  reconciles those answers in a final call (N + 1 completions).
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from crossref_rag.rag.confidence import normalize_confidence
from crossref_rag.rag.llm import Completion, CompletionFailure
from crossref_rag.rag.retriever import AggregatingRetriever
from crossref_rag.rag.types import AggregatedAnswer, CollectionType, RetrievedPassage

logger = logging.getLogger(__name__)

NO_CONTEXT_ANSWER = (
    "I couldn't find relevant information in any of the document stores "
    "to answer your question."
)
COMPLETION_APOLOGY = (
    "Sorry, I found relevant sources but could not generate an answer right now. "
    "Please try again later."
)
FULL_CONFIDENCE_SOURCES = 4


def source_breakdown(passages: list[RetrievedPassage]) -> dict[str, int]:
    """Count passages per collection type."""
    breakdown: dict[str, int] = {}
    for passage in passages:
        breakdown[passage.type_name] = breakdown.get(passage.type_name, 0) + 1
    return breakdown


def overall_confidence(passages: list[RetrievedPassage]) -> float:
    """Mean confidence, scaled down linearly below FULL_CONFIDENCE_SOURCES sources."""
    if not passages:
        return 0.0
    mean = sum(passage.confidence for passage in passages) / len(passages)
    return mean * min(1.0, len(passages) / FULL_CONFIDENCE_SOURCES)


def group_by_type(passages: list[RetrievedPassage]) -> dict[CollectionType, list[RetrievedPassage]]:
    """Group passages by type, keeping the incoming order within each group."""
    groups: dict[CollectionType, list[RetrievedPassage]] = {}
    for passage in passages:
        groups.setdefault(passage.collection_type, []).append(passage)
    return groups


def build_grouped_prompt(question: str, passages: list[RetrievedPassage]) -> str:
    """Render one prompt with a section per collection type."""
    lines = [
        "Based on the following context from multiple document types, "
        f"please answer the question: {question}",
        "",
        "Context from different sources:",
    ]
    for collection_type, group in group_by_type(passages).items():
        lines.append("")
        lines.append(f"--- {collection_type.value.upper()} SOURCES ---")
        for idx, passage in enumerate(group, start=1):
            lines.append(f"Source {idx} ({passage.document_name}):")
            lines.append(passage.text.strip())
            lines.append("")
    lines.append(
        "Please synthesize information from these different document types to provide "
        "a comprehensive answer. Indicate which sources support different parts of your answer."
    )
    return "\n".join(lines)


def build_type_prompt(
    question: str, collection_type: CollectionType, passages: list[RetrievedPassage]
) -> str:
    """Prompt answering the question from a single collection."""
    sections = [
        f"Answer the question using only these {collection_type.value.upper()} sources.",
        f"Question: {question}",
        "",
    ]
    for idx, passage in enumerate(passages, start=1):
        sections.append(f"Source {idx} ({passage.document_name}):\n{passage.text.strip()}\n")
    return "\n".join(sections)


def build_reconcile_prompt(question: str, answers: dict[CollectionType, str]) -> str:
    """Prompt merging per-type answers and surfacing contradictions."""
    sections = [
        f"Question: {question}",
        "",
        "Independent answers were produced from different document collections:",
    ]
    for collection_type, answer in answers.items():
        sections.append(f"\n--- {collection_type.value.upper()} ANSWER ---\n{answer.strip()}")
    sections.append(
        "\nSynthesize these answers into one coherent answer. "
        "Explicitly point out any contradictions between the collections "
        "and say which collection supports each claim."
    )
    return "\n".join(sections)


def no_context_answer() -> AggregatedAnswer:
    return AggregatedAnswer(
        answer=NO_CONTEXT_ANSWER,
        sources=[],
        source_breakdown={},
        overall_confidence=0.0,
        refusal_reason="no_context",
    )


async def _complete(completion: Completion, prompt: str, stage: str) -> str | None:
    """Run a completion, returning None when it fails or comes back empty."""
    try:
        text = await completion.complete(prompt)
    except CompletionFailure as exc:
        logger.error("completion_failed", extra={"stage": stage, "detail": str(exc)})
        return None
    if not text or not text.strip():
        logger.error("completion_failed", extra={"stage": stage, "detail": "empty"})
        return None
    return text.strip()


def _finalize(answer: str | None, sources: list[RetrievedPassage]) -> AggregatedAnswer:
    return AggregatedAnswer(
        answer=answer if answer is not None else COMPLETION_APOLOGY,
        sources=sources,
        source_breakdown=source_breakdown(sources),
        overall_confidence=overall_confidence(sources),
        refusal_reason=None if answer is not None else "completion_failed",
    )


class Synthesizer(Protocol):
    """Strategy producing an AggregatedAnswer for a question."""

    async def synthesize(self, question: str) -> AggregatedAnswer:
        raise NotImplementedError


@dataclass
class GroupedPromptSynthesizer:
    """One retrieval fan-out and one completion call."""
    retriever: AggregatingRetriever
    completion: Completion

    async def synthesize(self, question: str) -> AggregatedAnswer:
        sources = await self.retriever.retrieve_from_all_stores(question)
        if not sources:
            return no_context_answer()
        prompt = build_grouped_prompt(question, sources)
        answer = await _complete(self.completion, prompt, stage="grouped")
        return _finalize(answer, sources)


@dataclass
class PerTypeSynthesizer:
    """Answer per collection type, then reconcile the answers."""
    retriever: AggregatingRetriever
    completion: Completion
    per_type_top_k: int = 3

    async def _answer_type(
        self, question: str, collection_type: CollectionType, passages: list[RetrievedPassage]
    ) -> RetrievedPassage | None:
        if not passages:
            return None
        prompt = build_type_prompt(question, collection_type, passages)
        answer = await _complete(self.completion, prompt, stage=collection_type.value)
        if answer is None:
            return None
        best = passages[0]
        distances = [p.raw_score for p in passages if p.raw_score is not None]
        raw_score = min(distances) if distances else None
        return RetrievedPassage(
            collection_type=collection_type,
            text=answer,
            raw_score=raw_score,
            confidence=normalize_confidence(raw_score),
            document_name=best.document_name,
            metadata={"passages": str(len(passages))},
        )

    async def synthesize(self, question: str) -> AggregatedAnswer:
        by_type, failures = await self.retriever.gather_by_type(question, self.per_type_top_k)
        candidates = [
            self._answer_type(question, collection_type, passages)
            for collection_type, passages in by_type.items()
        ]
        answered = [item for item in await asyncio.gather(*candidates) if item is not None]
        if not answered:
            if any(by_type.values()):
                return _finalize(None, [])
            return no_context_answer()
        sources = sorted(answered, key=lambda passage: passage.confidence, reverse=True)
        answers = {passage.collection_type: passage.text for passage in answered}
        answer = await _complete(
            self.completion, build_reconcile_prompt(question, answers), stage="reconcile"
        )
        logger.info(
            "per_type_synthesis_complete",
            extra={
                "answered_types": [passage.type_name for passage in answered],
                "failed_stores": [failure.collection_type.value for failure in failures],
            },
        )
        return _finalize(answer, sources)


def build_synthesizer(
    strategy: str,
    retriever: AggregatingRetriever,
    completion: Completion,
    per_type_top_k: int = 3,
) -> GroupedPromptSynthesizer | PerTypeSynthesizer:
    """Factory for synthesis strategies; grouped is the default."""
    normalized = strategy.strip().lower().replace("-", "_")
    if normalized in {"per_type", "per_type_then_synthesize"}:
        return PerTypeSynthesizer(
            retriever=retriever, completion=completion, per_type_top_k=per_type_top_k
        )
    if normalized not in {"", "grouped", "grouped_prompt"}:
        logger.warning("unknown_synthesis_strategy", extra={"strategy": normalized})
    return GroupedPromptSynthesizer(retriever=retriever, completion=completion)

