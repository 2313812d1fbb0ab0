from __future__ import annotations

"""Concurrent fan-out retrieval across per-type collection stores."""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from types import MappingProxyType
from typing import Mapping

from crossref_rag.rag.confidence import normalize_confidence, resolve_distance
from crossref_rag.rag.types import CollectionType, RetrievedPassage, SearchResult
from crossref_rag.vectorstore.base import CollectionStore

logger = logging.getLogger(__name__)

UNKNOWN_DOCUMENT = "unknown-document"


class BackendUnavailable(RuntimeError):
    """Raised when a single collection store fails or times out."""

    def __init__(self, collection_type: CollectionType, reason: str) -> None:
        super().__init__(f"{collection_type.value} store unavailable: {reason}")
        self.collection_type = collection_type
        self.reason = reason


class AllBackendsUnavailable(RuntimeError):
    """Raised when every registered store failed."""
    pass


class NoStoresAvailable(AllBackendsUnavailable):
    """Raised when no stores are registered."""
    pass


def extract_document_name(metadata: Mapping[str, object]) -> str:
    """Best-effort name: source basename, then filename, then a placeholder."""
    source = metadata.get("source")
    if source is not None:
        return str(source).rsplit("/", 1)[-1]
    filename = metadata.get("filename")
    if filename is not None:
        return str(filename)
    return UNKNOWN_DOCUMENT


def to_passage(collection_type: CollectionType, result: SearchResult) -> RetrievedPassage:
    """Convert a native hit; confidence always derives from the raw distance."""
    raw_score = resolve_distance(result)
    metadata = result.document.metadata
    return RetrievedPassage(
        collection_type=collection_type,
        text=result.document.content,
        raw_score=raw_score,
        confidence=normalize_confidence(raw_score),
        document_name=extract_document_name(metadata),
        metadata={str(key): str(value) for key, value in metadata.items()},
    )


def rank_passages(passages: list[RetrievedPassage], limit: int) -> list[RetrievedPassage]:
    """Stable sort by confidence descending, truncated to limit."""
    ranked = sorted(passages, key=lambda passage: passage.confidence, reverse=True)
    return ranked[: max(0, limit)]


@dataclass
class AggregatingRetriever:
    """Queries every registered store concurrently and merges one ranking.

    The store mapping is frozen at construction. A failing or slow store
    contributes no passages; the call only fails when no store answered.

    Each store searches on its own small thread pool. A timed-out call keeps
    its worker until the store returns, so a hung store can only exhaust its
    own pool; other stores and the loop's default executor are unaffected.
    """
    stores: Mapping[CollectionType, CollectionStore]
    global_budget: int = 3
    min_per_store: int = 1
    store_timeout: float = 10.0
    threads_per_store: int = 4
    _executors: dict[CollectionType, ThreadPoolExecutor] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.stores = MappingProxyType(dict(self.stores))
        self._executors = {
            collection_type: ThreadPoolExecutor(
                max_workers=max(1, self.threads_per_store),
                thread_name_prefix=f"search-{collection_type.value}",
            )
            for collection_type in self.stores
        }

    @property
    def collection_types(self) -> list[CollectionType]:
        return list(self.stores)

    def per_store_budget(self, global_budget: int | None = None) -> int:
        """Even split of the global budget, floored at min_per_store."""
        budget = self.global_budget if global_budget is None else global_budget
        if not self.stores:
            return 0
        return max(self.min_per_store, budget // len(self.stores))

    async def search_store(
        self, collection_type: CollectionType, query: str, top_k: int
    ) -> list[RetrievedPassage]:
        """Time-bounded search of one store; failures raise BackendUnavailable."""
        store = self.stores.get(collection_type)
        if store is None:
            raise BackendUnavailable(collection_type, "not registered")
        try:
            loop = asyncio.get_running_loop()
            results = await asyncio.wait_for(
                loop.run_in_executor(
                    self._executors[collection_type], partial(store.search, query, top_k)
                ),
                timeout=self.store_timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.warning(
                "store_search_timeout",
                extra={"collection": collection_type.value, "timeout": self.store_timeout},
            )
            raise BackendUnavailable(collection_type, "timeout") from exc
        except Exception as exc:
            logger.warning(
                "store_search_failed",
                extra={"collection": collection_type.value, "detail": type(exc).__name__},
            )
            raise BackendUnavailable(collection_type, str(exc) or type(exc).__name__) from exc
        try:
            return [to_passage(collection_type, result) for result in results]
        except Exception as exc:
            logger.warning(
                "store_response_malformed",
                extra={"collection": collection_type.value, "detail": type(exc).__name__},
            )
            raise BackendUnavailable(collection_type, "malformed response") from exc

    async def gather_by_type(
        self, query: str, top_k: int
    ) -> tuple[dict[CollectionType, list[RetrievedPassage]], list[BackendUnavailable]]:
        """Fan out to all stores; returns passages per healthy store and the failures."""
        if not self.stores:
            raise NoStoresAvailable("No collection stores are registered")
        types = list(self.stores)
        outcomes = await asyncio.gather(
            *(self.search_store(collection_type, query, top_k) for collection_type in types),
            return_exceptions=True,
        )
        by_type: dict[CollectionType, list[RetrievedPassage]] = {}
        failures: list[BackendUnavailable] = []
        for collection_type, outcome in zip(types, outcomes):
            if isinstance(outcome, BackendUnavailable):
                failures.append(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                by_type[collection_type] = outcome
        if not by_type:
            raise AllBackendsUnavailable(
                f"All {len(types)} collection stores failed: "
                + ", ".join(failure.collection_type.value for failure in failures)
            )
        return by_type, failures

    async def retrieve_from_all_stores(
        self,
        query: str,
        global_budget: int | None = None,
        per_store_budget: int | None = None,
    ) -> list[RetrievedPassage]:
        """Merged passages from all stores, confidence descending, at most global_budget."""
        budget = self.global_budget if global_budget is None else global_budget
        top_k = self.per_store_budget(budget) if per_store_budget is None else per_store_budget
        by_type, failures = await self.gather_by_type(query, top_k)
        merged = [passage for passages in by_type.values() for passage in passages]
        ranked = rank_passages(merged, budget)
        logger.info(
            "retrieval_complete",
            extra={
                "stores": len(self.stores),
                "failed_stores": [failure.collection_type.value for failure in failures],
                "per_store_budget": top_k,
                "candidates": len(merged),
                "results": len(ranked),
            },
        )
        return ranked
