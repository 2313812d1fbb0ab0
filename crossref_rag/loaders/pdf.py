from __future__ import annotations

"""PDF text extraction and cleanup."""

import re


class PDFLoaderError(RuntimeError):
    """Raised when PDF loading fails."""
    pass


_WHITESPACE_RE = re.compile(r"[ \t\f\v]+")
_BLANK_LINES_RE = re.compile(r"\n{3,}")


def _clean_pdf_text(text: str) -> str:
    """Rejoin hyphenated line breaks and collapse runs of whitespace."""
    if not text:
        return ""
    cleaned = text.replace("\r\n", "\n")
    cleaned = re.sub(r"(\w)-\n(\w)", r"\1\2", cleaned)
    cleaned = _WHITESPACE_RE.sub(" ", cleaned)
    cleaned = _BLANK_LINES_RE.sub("\n\n", cleaned)
    return cleaned.strip()


def load_pdf_bytes(data: bytes) -> str:
    """Extract text from in-memory PDF bytes."""
    try:
        import fitz
    except ImportError as exc:
        raise PDFLoaderError("PyMuPDF is required to load PDF files") from exc
    try:
        with fitz.open(stream=data, filetype="pdf") as reader:
            pages = [page.get_text() or "" for page in reader]
    except Exception as exc:
        raise PDFLoaderError(f"Failed to extract PDF content: {exc}") from exc
    return _clean_pdf_text("\n".join(pages))
