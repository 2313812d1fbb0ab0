from __future__ import annotations

import logging
from functools import lru_cache, partial
from types import MappingProxyType
from typing import Callable, Mapping

from crossref_rag.app.settings import settings
from crossref_rag.loaders.ingestion import DocumentIngestor
from crossref_rag.rag.embeddings import (
    EmbeddingConfigError,
    EmbeddingProvider,
    HashEmbedder,
    OpenAIEmbedder,
)
from crossref_rag.rag.llm import Completion, build_completion
from crossref_rag.rag.pipeline import MultiStoreRAGPipeline
from crossref_rag.rag.retriever import AggregatingRetriever
from crossref_rag.rag.status import StoreStatusReporter
from crossref_rag.rag.synthesizer import build_synthesizer
from crossref_rag.rag.types import CollectionType
from crossref_rag.vectorstore.base import CollectionStore, UnavailableCollectionStore
from crossref_rag.vectorstore.inmemory import InMemoryCollectionStore
from crossref_rag.vectorstore.milvus import MilvusCollectionStore, MilvusConfig, milvus_probe

logger = logging.getLogger(__name__)


@lru_cache
def get_stores() -> Mapping[CollectionType, CollectionStore]:
    embedder = build_embedder()
    stores: dict[CollectionType, CollectionStore] = {}
    for collection_type in settings.collection_types:
        try:
            stores[collection_type] = build_store(embedder, collection_type)
        except Exception as exc:
            logger.error(
                "store_init_failed",
                extra={"collection": collection_type.value, "detail": str(exc)},
            )
            stores[collection_type] = UnavailableCollectionStore(collection_type, str(exc))
    return MappingProxyType(stores)


@lru_cache
def get_pipeline() -> MultiStoreRAGPipeline:
    stores = get_stores()
    retriever = AggregatingRetriever(
        stores=stores,
        global_budget=settings.global_budget,
        min_per_store=settings.min_per_store,
        store_timeout=settings.store_timeout,
    )
    synthesizer = build_synthesizer(
        settings.synthesis_strategy,
        retriever,
        get_completion(),
        per_type_top_k=settings.per_type_top_k,
    )
    return MultiStoreRAGPipeline(
        synthesizer=synthesizer,
        reporter=StoreStatusReporter(stores=stores, probe=build_probe()),
        chunk_size=settings.chunk_size,
        chunk_overlap=settings.chunk_overlap,
    )


@lru_cache
def get_ingestor() -> DocumentIngestor:
    return DocumentIngestor(
        stores=get_stores(),
        chunk_size=settings.chunk_size,
        chunk_overlap=settings.chunk_overlap,
    )


def reset_pipeline_cache() -> None:
    get_pipeline.cache_clear()
    get_ingestor.cache_clear()
    get_stores.cache_clear()


def get_completion() -> Completion:
    return build_completion(
        settings.llm_provider,
        api_key_openai=settings.openai_api_key,
        openai_base_url=settings.openai_base_url,
        openai_model=settings.openai_chat_model,
        ollama_base_url=settings.ollama_base_url,
        ollama_model=settings.ollama_model,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
        timeout=settings.llm_timeout,
    )


def build_embedder() -> EmbeddingProvider:
    provider = settings.embedding_provider.lower().strip()
    if provider == "hash":
        return HashEmbedder(dimension=settings.embedding_dimension)
    if provider == "openai":
        return OpenAIEmbedder(
            api_key=settings.openai_api_key or "",
            model=settings.openai_embedding_model or "",
            dimension=settings.embedding_dimension,
        )
    raise EmbeddingConfigError(f"Unsupported embedding provider: {provider}")


def build_milvus_config() -> MilvusConfig:
    return MilvusConfig(
        uri=settings.milvus_uri,
        token=settings.milvus_token,
        collection_prefix=settings.milvus_collection_prefix,
        consistency=settings.milvus_consistency,
        index_type=settings.milvus_index_type,
        metric_type=settings.milvus_metric_type,
        nlist=settings.milvus_nlist,
        nprobe=settings.milvus_nprobe,
        hybrid_search=settings.milvus_hybrid_search,
    )


def build_store(
    embedder: EmbeddingProvider, collection_type: CollectionType
) -> InMemoryCollectionStore | MilvusCollectionStore:
    if settings.vectorstore_backend.lower().strip() == "milvus":
        return MilvusCollectionStore(
            embedder=embedder, config=build_milvus_config(), collection_type=collection_type
        )
    return InMemoryCollectionStore(embedder=embedder, collection_type=collection_type)


def build_probe() -> Callable[[], bool]:
    if settings.vectorstore_backend.lower().strip() == "milvus":
        return partial(milvus_probe, build_milvus_config())
    return lambda: True
