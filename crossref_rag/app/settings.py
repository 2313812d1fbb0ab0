from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from crossref_rag.rag.types import CollectionType

load_dotenv()


@dataclass(frozen=True)
class Settings:
    global_budget: int = int(os.getenv("RAG_GLOBAL_BUDGET", "3"))
    min_per_store: int = int(os.getenv("RAG_MIN_PER_STORE", "1"))
    store_timeout: float = float(os.getenv("RAG_STORE_TIMEOUT", "10"))
    per_type_top_k: int = int(os.getenv("RAG_PER_TYPE_TOP_K", "3"))
    synthesis_strategy_raw: str = os.getenv("RAG_SYNTHESIS_STRATEGY", "grouped")
    collections_raw: str = os.getenv("RAG_COLLECTIONS", "pdf,markdown,json,text")
    chunk_size: int = int(os.getenv("RAG_CHUNK_SIZE", "6000"))
    chunk_overlap: int = int(os.getenv("RAG_CHUNK_OVERLAP", "200"))
    documents_dir: str = os.getenv("RAG_DOCUMENTS_DIR", "documents")
    ingest_on_startup: bool = os.getenv("RAG_INGEST_ON_STARTUP", "false").lower() in {"1", "true", "yes"}
    vectorstore_backend: str = os.getenv("RAG_VECTORSTORE", "memory")
    embedding_provider: str = os.getenv("EMBEDDING_PROVIDER", "hash")
    embedding_dimension: int = int(os.getenv("EMBEDDING_DIMENSION", "256"))
    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
    openai_base_url: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    openai_embedding_model: str | None = os.getenv("OPENAI_EMBEDDING_MODEL")
    openai_chat_model: str | None = os.getenv("OPENAI_CHAT_MODEL")
    llm_provider: str = os.getenv("RAG_LLM_PROVIDER", "ollama")
    llm_timeout: float = float(os.getenv("RAG_LLM_TIMEOUT", "60"))
    llm_temperature: float = float(os.getenv("RAG_LLM_TEMPERATURE", "0.1"))
    llm_max_tokens: int = int(os.getenv("RAG_LLM_MAX_TOKENS", "512"))
    ollama_base_url: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    ollama_model: str = os.getenv("OLLAMA_MODEL", "llama3.1")
    milvus_uri: str = os.getenv("MILVUS_URI", "http://localhost:19530")
    milvus_token: str | None = os.getenv("MILVUS_TOKEN")
    milvus_collection_prefix: str = os.getenv("MILVUS_COLLECTION_PREFIX", "crossref")
    milvus_consistency: str = os.getenv("MILVUS_CONSISTENCY", "Strong")
    milvus_index_type: str = os.getenv("MILVUS_INDEX_TYPE", "IVF_FLAT")
    milvus_metric_type: str = os.getenv("MILVUS_METRIC_TYPE", "COSINE")
    milvus_nlist: int = int(os.getenv("MILVUS_NLIST", "1024"))
    milvus_nprobe: int = int(os.getenv("MILVUS_NPROBE", "10"))
    milvus_hybrid_search: bool = os.getenv("MILVUS_HYBRID_SEARCH", "false").lower() in {"1", "true", "yes"}
    metrics_enabled: bool = os.getenv("RAG_METRICS_ENABLED", "true").lower() in {"1", "true", "yes"}
    log_level: str = os.getenv("RAG_LOG_LEVEL", "INFO")

    @property
    def synthesis_strategy(self) -> str:
        return os.getenv("RAG_SYNTHESIS_STRATEGY", self.synthesis_strategy_raw)

    @property
    def collection_types(self) -> list[CollectionType]:
        raw = os.getenv("RAG_COLLECTIONS", self.collections_raw)
        types: list[CollectionType] = []
        for part in raw.split(","):
            part = part.strip()
            if not part:
                continue
            try:
                collection_type = CollectionType.parse(part)
            except ValueError:
                continue
            if collection_type not in types:
                types.append(collection_type)
        return types


settings = Settings()
