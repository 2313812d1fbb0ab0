from __future__ import annotations

"""Character-based chunking with soft breaks at word and sentence boundaries."""

from typing import Iterator

from crossref_rag.rag.types import Chunk, CollectionType, Document

_BREAK_CHARS = (" ", "\n", ".")


def _validate(max_chunk_size: int, overlap: int) -> None:
    if max_chunk_size < 1:
        raise ValueError("max_chunk_size must be at least 1")
    if overlap < 0:
        raise ValueError("overlap must not be negative")


def _soft_break(text: str, start: int, end: int, max_chunk_size: int) -> int:
    """Pull the cut back to the last break character past the chunk midpoint."""
    break_point = max(text.rfind(char, start, end) for char in _BREAK_CHARS)
    if break_point > start + max_chunk_size // 2:
        return break_point + 1
    return end


def chunk_text(text: str, max_chunk_size: int, overlap: int) -> Iterator[str]:
    """Lazily split text into overlapping chunks of at most max_chunk_size chars.

    Cuts prefer the last space, newline or period in the back half of the
    window and fall back to a hard cut. The start position advances by at
    least one character per step, so any overlap value terminates.
    """
    _validate(max_chunk_size, overlap)
    if not text or not text.strip():
        return
    length = len(text)
    if length <= max_chunk_size:
        yield text.strip()
        return

    start = 0
    while start < length:
        end = min(start + max_chunk_size, length)
        if end < length:
            end = _soft_break(text, start, end, max_chunk_size)
        chunk = text[start:end].strip()
        if chunk:
            yield chunk
        if end >= length:
            break
        start = max(start + 1, end - overlap)


def build_chunks(text: str, max_chunk_size: int, overlap: int) -> list[Chunk]:
    """Materialize chunk_text output into indexed Chunk records."""
    pieces = list(chunk_text(text, max_chunk_size, overlap))
    total = len(pieces)
    return [
        Chunk(
            text=piece,
            index=idx,
            total_chunks=total,
            size_bytes=len(piece.encode("utf-8")),
        )
        for idx, piece in enumerate(pieces)
    ]


def chunk_document(
    collection_type: CollectionType,
    doc_stem: str,
    content: str,
    metadata: dict[str, object],
    max_chunk_size: int,
    overlap: int,
) -> list[Document]:
    """Chunk raw text into Documents keyed under the collection's namespace."""
    prefix = collection_type.layout.namespace_prefix
    documents: list[Document] = []
    for chunk in build_chunks(content, max_chunk_size, overlap):
        chunk_metadata = dict(metadata)
        chunk_metadata.update(
            {
                "chunk_index": chunk.index,
                "total_chunks": chunk.total_chunks,
                "chunk_size": len(chunk.text),
            }
        )
        documents.append(
            Document(
                doc_id=f"{prefix}{doc_stem}:{chunk.index}",
                content=chunk.text,
                metadata=chunk_metadata,
            )
        )
    return documents
