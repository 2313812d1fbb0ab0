from __future__ import annotations

"""Completion providers against canned HTTP responses."""

import httpx
import pytest

from crossref_rag.rag.llm import CompletionFailure, OllamaCompletion, OpenAICompletion
from crossref_rag.rag.pipeline import MultiStoreRAGPipeline
from crossref_rag.rag.retriever import AggregatingRetriever
from crossref_rag.rag.status import StoreStatusReporter
from crossref_rag.rag.synthesizer import COMPLETION_APOLOGY, GroupedPromptSynthesizer
from crossref_rag.rag.types import CollectionType

pytestmark = pytest.mark.anyio

MALFORMED_BODIES = [
    (200, {"text": "<html>proxy error</html>"}),
    (200, {"json": ["x"]}),
    (200, {"json": {"message": "not an object"}}),
    (200, {"json": {"message": {"content": None}}}),
    (200, {"json": {"message": {"content": "   "}}}),
    (502, {"text": "bad gateway"}),
]

MALFORMED_OPENAI_BODIES = [
    (200, {"text": "not json"}),
    (200, {"json": [{"choices": []}]}),
    (200, {"json": {"choices": []}}),
    (200, {"json": {"choices": ["oops"]}}),
    (200, {"json": {"choices": [{"message": ["oops"]}]}}),
]


def reply(status: int, body: dict[str, object]) -> httpx.MockTransport:
    return httpx.MockTransport(lambda request: httpx.Response(status, **body))


def ollama(status: int, body: dict[str, object]) -> OllamaCompletion:
    return OllamaCompletion(
        base_url="http://ollama.test",
        model="llama3.1",
        temperature=0.1,
        max_tokens=64,
        timeout=5,
        transport=reply(status, body),
    )


def openai(status: int, body: dict[str, object]) -> OpenAICompletion:
    return OpenAICompletion(
        api_key="sk-test",
        base_url="http://openai.test/v1",
        model="gpt-test",
        temperature=0.1,
        max_tokens=64,
        timeout=5,
        transport=reply(status, body),
    )


async def test_ollama_returns_message_content() -> None:
    completion = ollama(200, {"json": {"message": {"content": " Use TTLs. "}}})

    assert await completion.complete("prompt") == "Use TTLs."


async def test_openai_returns_first_choice() -> None:
    completion = openai(200, {"json": {"choices": [{"message": {"content": "Pool of 20."}}]}})

    assert await completion.complete("prompt") == "Pool of 20."


@pytest.mark.parametrize(("status", "body"), MALFORMED_BODIES)
async def test_ollama_bad_response_is_completion_failure(status: int, body: dict) -> None:
    with pytest.raises(CompletionFailure):
        await ollama(status, body).complete("prompt")


@pytest.mark.parametrize(("status", "body"), MALFORMED_OPENAI_BODIES)
async def test_openai_bad_response_is_completion_failure(status: int, body: dict) -> None:
    with pytest.raises(CompletionFailure):
        await openai(status, body).complete("prompt")


@pytest.mark.parametrize(("status", "body"), MALFORMED_BODIES[:2])
async def test_bad_response_yields_apology_answer(status: int, body: dict, fake_store_cls) -> None:
    stores = {CollectionType.TEXT: fake_store_cls(hits=[("Pool size is 20.", 0.2)])}
    pipeline = MultiStoreRAGPipeline(
        synthesizer=GroupedPromptSynthesizer(
            AggregatingRetriever(stores=stores), ollama(status, body)
        ),
        reporter=StoreStatusReporter(stores=stores),
    )

    answer = await pipeline.query("pool size?")

    assert answer.refusal_reason == "completion_failed"
    assert answer.answer == COMPLETION_APOLOGY
    assert [source.text for source in answer.sources] == ["Pool size is 20."]
