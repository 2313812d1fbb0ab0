from __future__ import annotations

"""Shared pytest fixtures and test environment defaults."""

import os
import sys
import time
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.pop("OPENAI_API_KEY", None)
os.environ.setdefault("RAG_VECTORSTORE", "memory")
os.environ.setdefault("EMBEDDING_PROVIDER", "hash")
os.environ.setdefault("EMBEDDING_DIMENSION", "256")
os.environ.setdefault("RAG_INGEST_ON_STARTUP", "false")

from crossref_rag.rag.types import Document, SearchResult  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class FakeStore:
    """Collection store returning canned hits, or raising on demand."""

    def __init__(
        self,
        hits: list[tuple[str, float | None]] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
        count: int | Exception = 0,
        prefix_count: int | Exception = 0,
        source: str = "docs/file.txt",
    ) -> None:
        self.hits = hits or []
        self.error = error
        self.delay = delay
        self._count = count
        self._prefix_count = prefix_count
        self.source = source
        self.calls: list[tuple[str, int]] = []

    def add_documents(self, documents) -> int:
        return len(list(documents))

    def search(self, query: str, top_k: int) -> list[SearchResult]:
        self.calls.append((query, top_k))
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        results = [
            SearchResult(
                document=Document(
                    doc_id=f"doc-{idx}", content=text, metadata={"source": self.source}
                ),
                distance=distance,
            )
            for idx, (text, distance) in enumerate(self.hits)
        ]
        return results[:top_k]

    def count(self) -> int:
        if isinstance(self._count, Exception):
            raise self._count
        return self._count

    def count_by_prefix(self, prefix: str) -> int:
        if isinstance(self._prefix_count, Exception):
            raise self._prefix_count
        return self._prefix_count


class RecordingCompletion:
    """Completion double that records prompts and replays canned replies."""

    def __init__(self, replies: list[str] | None = None, error: Exception | None = None) -> None:
        self.replies = list(replies or [])
        self.error = error
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        if self.replies:
            return self.replies.pop(0)
        return "Synthesized answer."


@pytest.fixture
def fake_store_cls() -> type[FakeStore]:
    return FakeStore


@pytest.fixture
def completion_cls() -> type[RecordingCompletion]:
    return RecordingCompletion

