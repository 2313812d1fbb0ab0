from __future__ import annotations

"""Loader and directory ingestion tests."""

import json
from pathlib import Path

import pytest

from crossref_rag.loaders.ingestion import DocumentIngestor
from crossref_rag.loaders.json_loader import JSONLoaderError, load_json_bytes
from crossref_rag.loaders.pdf import _clean_pdf_text, load_pdf_bytes
from crossref_rag.rag.embeddings import HashEmbedder
from crossref_rag.rag.types import CollectionType
from crossref_rag.vectorstore.inmemory import InMemoryCollectionStore


def build_stores(*types: CollectionType) -> dict[CollectionType, InMemoryCollectionStore]:
    embedder = HashEmbedder()
    return {
        collection_type: InMemoryCollectionStore(embedder=embedder, collection_type=collection_type)
        for collection_type in types
    }


def test_json_object_flattens_to_lines() -> None:
    data = json.dumps({"pool": {"max": 20}, "name": "db", "enabled": True}).encode("utf-8")

    assert load_json_bytes(data) == 'pool: {"max": 20}\nname: db\nenabled: true'


def test_json_array_is_pretty_printed() -> None:
    assert load_json_bytes(b"[1, 2]") == "[\n  1,\n  2\n]"


def test_invalid_json_raises() -> None:
    with pytest.raises(JSONLoaderError):
        load_json_bytes(b"{not json")


def test_clean_pdf_text_rejoins_hyphenation() -> None:
    assert _clean_pdf_text("config-\nuration   is\t\tdone\n\n\n\nok") == "configuration is done\n\nok"


def test_pdf_bytes_extracted() -> None:
    fitz = pytest.importorskip("fitz")
    document = fitz.open()
    page = document.new_page()
    page.insert_text((72, 72), "Spring Boot security guide")
    data = document.tobytes()
    document.close()

    assert "Spring Boot security guide" in load_pdf_bytes(data)


def test_ingest_single_chunks_into_namespace() -> None:
    stores = build_stores(CollectionType.MARKDOWN)
    ingestor = DocumentIngestor(stores=stores, chunk_size=50, chunk_overlap=5)

    added = ingestor.ingest_single(CollectionType.MARKDOWN, "notes.md", "Cache settings. " * 10)

    store = stores[CollectionType.MARKDOWN]
    assert added == store.count() > 1
    assert store.documents[0].doc_id == "doc:markdown:notes:0"
    assert store.documents[0].metadata["source"] == "manual-upload"
    assert store.documents[0].metadata["filename"] == "notes.md"
    assert store.documents[0].metadata["document_type"] == "markdown"


def test_ingest_single_unknown_store() -> None:
    ingestor = DocumentIngestor(stores=build_stores(CollectionType.TEXT))

    with pytest.raises(ValueError, match="Vector store for type pdf not found"):
        ingestor.ingest_single(CollectionType.PDF, "a.pdf", "text")


def test_ingest_directory_routes_by_type_and_skips_bad_files(tmp_path: Path) -> None:
    (tmp_path / "text" / "nested").mkdir(parents=True)
    (tmp_path / "text" / "nested" / "pool.txt").write_text("Pool size is 20.", encoding="utf-8")
    (tmp_path / "text" / "ignored.md").write_text("Not a text file.", encoding="utf-8")
    (tmp_path / "json").mkdir()
    (tmp_path / "json" / "good.json").write_text('{"cache": "redis"}', encoding="utf-8")
    (tmp_path / "json" / "bad.json").write_text("{broken", encoding="utf-8")
    stores = build_stores(CollectionType.TEXT, CollectionType.JSON, CollectionType.PDF)

    totals = DocumentIngestor(stores=stores).ingest_directory(tmp_path)

    assert totals == {CollectionType.TEXT: 1, CollectionType.JSON: 1, CollectionType.PDF: 0}
    assert stores[CollectionType.TEXT].documents[0].doc_id == "doc:text:nested/pool:0"
    assert stores[CollectionType.TEXT].documents[0].metadata["filename"] == "pool.txt"
    assert stores[CollectionType.JSON].documents[0].content == "cache: redis"
