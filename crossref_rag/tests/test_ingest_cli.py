from __future__ import annotations

from pathlib import Path

from crossref_rag.app.dependencies import get_pipeline, reset_pipeline_cache
from crossref_rag.rag.types import CollectionType
from tools.ingest_documents import main


def test_cli_ingests_directory(tmp_path: Path, capsys) -> None:
    (tmp_path / "markdown").mkdir()
    (tmp_path / "markdown" / "cache.md").write_text("# Cache\nUse Redis with a TTL.", encoding="utf-8")

    totals = main(["--path", str(tmp_path)])

    assert totals["markdown"] == 1
    assert totals["pdf"] == 0
    assert "MARKDOWN: 1 chunks" in capsys.readouterr().out
    assert get_pipeline().status().document_counts[CollectionType.MARKDOWN] == 1
    reset_pipeline_cache()
