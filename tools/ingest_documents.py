from __future__ import annotations

"""CLI utility to (re)load a documents directory into the collection stores."""

import argparse
from pathlib import Path

from crossref_rag.app.settings import settings


def _drop_milvus_collections() -> None:
    try:
        from pymilvus import utility
    except ImportError as exc:
        raise SystemExit("pymilvus is required to reset collections") from exc

    from crossref_rag.app.dependencies import build_milvus_config
    from crossref_rag.vectorstore.milvus import collection_name, connect

    config = build_milvus_config()
    connect(config)
    for collection_type in settings.collection_types:
        name = collection_name(config, collection_type)
        if utility.has_collection(name):
            print(f"Dropping collection: {name}")
            utility.drop_collection(name)


def main(argv: list[str] | None = None) -> dict[str, int]:
    """Ingest <path>/<type>/ for every configured collection type."""
    parser = argparse.ArgumentParser(description="Ingest documents into per-type collections.")
    parser.add_argument(
        "--path",
        default=settings.documents_dir,
        help="Root directory holding one subdirectory per collection type.",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Drop the Milvus collections before ingesting.",
    )
    args = parser.parse_args(argv)

    if args.reset and settings.vectorstore_backend.lower().strip() == "milvus":
        _drop_milvus_collections()

    from crossref_rag.app.dependencies import get_ingestor, reset_pipeline_cache

    reset_pipeline_cache()
    totals = get_ingestor().ingest_directory(Path(args.path))
    for collection_type, count in totals.items():
        print(f"{collection_type.name}: {count} chunks")
    return {collection_type.value: count for collection_type, count in totals.items()}


if __name__ == "__main__":
    main()
