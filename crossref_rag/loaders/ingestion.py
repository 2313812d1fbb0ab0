from __future__ import annotations

"""Load, chunk and store documents into their per-type collections."""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Mapping

from crossref_rag.loaders.chunking import chunk_document
from crossref_rag.loaders.json_loader import load_json_bytes
from crossref_rag.loaders.markdown import load_markdown_bytes
from crossref_rag.loaders.pdf import load_pdf_bytes
from crossref_rag.loaders.text import load_text_bytes
from crossref_rag.rag.types import CollectionType
from crossref_rag.vectorstore.base import CollectionStore

logger = logging.getLogger(__name__)

LOADERS: dict[CollectionType, Callable[[bytes], str]] = {
    CollectionType.PDF: load_pdf_bytes,
    CollectionType.MARKDOWN: load_markdown_bytes,
    CollectionType.JSON: load_json_bytes,
    CollectionType.TEXT: load_text_bytes,
}


def _base_metadata(
    collection_type: CollectionType, source: str, filename: str, content_length: int
) -> dict[str, object]:
    return {
        "source": source,
        "filename": filename,
        "document_type": collection_type.value,
        "ingestion_timestamp": int(time.time() * 1000),
        "content_length": content_length,
    }


@dataclass
class DocumentIngestor:
    """Writes chunked documents to the store registered for their type."""
    stores: Mapping[CollectionType, CollectionStore]
    chunk_size: int = 6000
    chunk_overlap: int = 200

    def __post_init__(self) -> None:
        self.stores = MappingProxyType(dict(self.stores))

    def _store_for(self, collection_type: CollectionType) -> CollectionStore:
        store = self.stores.get(collection_type)
        if store is None:
            raise ValueError(f"Vector store for type {collection_type.value} not found")
        return store

    def _add(
        self,
        collection_type: CollectionType,
        doc_stem: str,
        content: str,
        metadata: dict[str, object],
    ) -> int:
        documents = chunk_document(
            collection_type,
            doc_stem,
            content,
            metadata,
            max_chunk_size=self.chunk_size,
            overlap=self.chunk_overlap,
        )
        if not documents:
            return 0
        return self._store_for(collection_type).add_documents(documents)

    def ingest_single(self, collection_type: CollectionType, filename: str, content: str) -> int:
        """Chunk one uploaded document into its collection; returns chunks stored."""
        self._store_for(collection_type)
        metadata = _base_metadata(collection_type, "manual-upload", filename, len(content))
        added = self._add(collection_type, Path(filename).stem or filename, content, metadata)
        logger.info(
            "ingest_completed",
            extra={"collection": collection_type.value, "file_name": filename, "chunks": added},
        )
        return added

    def ingest_directory(self, root: Path) -> dict[CollectionType, int]:
        """Ingest root/<type>/ for every registered type; bad files are skipped."""
        totals: dict[CollectionType, int] = {}
        for collection_type in self.stores:
            directory = root / collection_type.value
            totals[collection_type] = 0
            if not directory.is_dir():
                logger.info(
                    "ingest_directory_missing",
                    extra={"collection": collection_type.value, "path": str(directory)},
                )
                continue
            loader = LOADERS[collection_type]
            for path in sorted(directory.glob(collection_type.layout.file_pattern)):
                if not path.is_file():
                    continue
                try:
                    content = loader(path.read_bytes())
                    if not content.strip():
                        continue
                    metadata = _base_metadata(
                        collection_type, path.as_posix(), path.name, path.stat().st_size
                    )
                    relative = path.relative_to(directory).with_suffix("").as_posix()
                    totals[collection_type] += self._add(
                        collection_type, relative, content, metadata
                    )
                except Exception as exc:
                    logger.warning(
                        "ingest_file_failed",
                        extra={
                            "collection": collection_type.value,
                            "path": str(path),
                            "detail": str(exc),
                        },
                    )
            logger.info(
                "ingest_completed",
                extra={"collection": collection_type.value, "chunks": totals[collection_type]},
            )
        return totals
