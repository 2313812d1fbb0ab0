from __future__ import annotations

"""Markdown loader for ingestion; markup is indexed as-is."""

from crossref_rag.loaders.text import load_text_bytes


def load_markdown_bytes(data: bytes) -> str:
    return load_text_bytes(data)
