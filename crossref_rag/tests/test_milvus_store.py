from __future__ import annotations

import pytest

from crossref_rag.rag.embeddings import HashEmbedder
from crossref_rag.rag.retriever import AggregatingRetriever, AllBackendsUnavailable
from crossref_rag.rag.status import StoreStatusReporter
from crossref_rag.rag.types import CollectionType
from crossref_rag.vectorstore import milvus
from crossref_rag.vectorstore.milvus import MilvusCollectionStore, MilvusConfig, collection_name

pytestmark = pytest.mark.anyio


def build_config() -> MilvusConfig:
    return MilvusConfig(
        uri="http://milvus.invalid:19530",
        token=None,
        collection_prefix="crossref",
        consistency="Strong",
        index_type="IVF_FLAT",
        metric_type="COSINE",
        nlist=128,
        nprobe=8,
    )


@pytest.fixture
def unreachable(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    attempts: list[str] = []

    def refuse(config: MilvusConfig) -> None:
        attempts.append(config.uri)
        raise ConnectionError("milvus unreachable")

    monkeypatch.setattr(milvus, "connect", refuse)
    return attempts


def test_collection_name_per_type() -> None:
    assert collection_name(build_config(), CollectionType.MARKDOWN) == "crossref_markdown"


def test_construction_does_not_connect(unreachable: list[str]) -> None:
    store = MilvusCollectionStore(HashEmbedder(), build_config(), CollectionType.PDF)

    assert store.name == "crossref_pdf"
    assert unreachable == []


async def test_unreachable_backend_fails_per_call(unreachable: list[str]) -> None:
    stores = {
        collection_type: MilvusCollectionStore(HashEmbedder(), build_config(), collection_type)
        for collection_type in (CollectionType.PDF, CollectionType.TEXT)
    }

    with pytest.raises(AllBackendsUnavailable):
        await AggregatingRetriever(stores=stores).retrieve_from_all_stores("q")

    status = StoreStatusReporter(stores=stores).status()
    assert status.store_health == {CollectionType.PDF: False, CollectionType.TEXT: False}
    assert stores[CollectionType.PDF].health()["ok"] is False
    assert unreachable
