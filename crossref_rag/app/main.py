from __future__ import annotations

"""FastAPI application entrypoint for the multi-collection RAG service."""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from crossref_rag.app.dependencies import (
    get_ingestor,
    get_pipeline,
    get_stores,
)
from crossref_rag.app.metrics import metrics_middleware, metrics_response, record_query
from crossref_rag.app.schemas import (
    ChunkItem,
    ChunkRequest,
    ChunkResponse,
    IngestResponse,
    QueryRequest,
    QueryResponse,
    StoreHealthResponse,
    StoreStatusResponse,
)
from crossref_rag.app.settings import settings
from crossref_rag.rag.pipeline import EmptyQuestion, InvalidDemoIndex
from crossref_rag.rag.types import AggregatedAnswer, CollectionType
from crossref_rag.vectorstore.base import StoreUnavailableError

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Configure root logging using environment settings."""
    level_name = settings.log_level.strip().upper()
    level = getattr(logging, level_name, logging.INFO)
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
    logger.setLevel(level)


_configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.ingest_on_startup:
        logger.info("startup_ingest_started", extra={"path": settings.documents_dir})
        try:
            await run_in_threadpool(get_ingestor().ingest_directory, Path(settings.documents_dir))
        except Exception as exc:
            logger.error("startup_ingest_failed", extra={"detail": str(exc)})
    yield


app = FastAPI(title="Cross-Reference RAG", version="0.1.0", lifespan=lifespan)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", str(uuid.uuid4()))


def _query_response(answer: AggregatedAnswer, request_id: str) -> JSONResponse | QueryResponse:
    record_query(answer.refusal_reason, answer.source_breakdown)
    response = QueryResponse.from_answer(answer, request_id=request_id)
    if answer.refusal_reason == "all_backends_unavailable":
        return JSONResponse(status_code=503, content=response.model_dump())
    return response


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Attach or create a request ID for traceability."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.middleware("http")
async def record_metrics(request: Request, call_next):
    return await metrics_middleware(request, call_next)


@app.get("/metrics")
async def metrics():
    return metrics_response()


@app.get("/health")
async def health() -> dict[str, str]:
    return {
        "status": "UP",
        "service": "Cross-Reference RAG",
        "timestamp": str(int(time.time() * 1000)),
    }


@app.post("/api/rag/query", response_model=QueryResponse)
async def query(request: QueryRequest, http_request: Request):
    """Answer a question from all document collections."""
    request_id = _request_id(http_request)
    logger.info(
        "query_received",
        extra={"request_id": request_id, "question_length": len(request.question)},
    )
    try:
        answer = await get_pipeline().query(request.question)
    except EmptyQuestion as exc:
        record_query("empty_question", {})
        return JSONResponse(
            status_code=400,
            content=QueryResponse.error(str(exc), "empty_question", request_id).model_dump(),
        )
    return _query_response(answer, request_id)


@app.get("/api/rag/status", response_model=StoreStatusResponse)
async def status() -> StoreStatusResponse:
    """Per-collection counts and health; rebuilt on every call."""
    return StoreStatusResponse.from_status(await get_pipeline().astatus())


@app.get("/api/rag/demo/queries")
async def demo_queries() -> list[str]:
    return get_pipeline().demo_queries()


@app.post("/api/rag/demo/query/{index}", response_model=QueryResponse)
async def demo_query(index: int, http_request: Request):
    request_id = _request_id(http_request)
    try:
        answer = await get_pipeline().process_demo_query(index)
    except InvalidDemoIndex as exc:
        return JSONResponse(
            status_code=400,
            content=QueryResponse.error(str(exc), "invalid_demo_index", request_id).model_dump(),
        )
    return _query_response(answer, request_id)


@app.post("/api/rag/ingest", response_model=IngestResponse)
async def ingest_all() -> IngestResponse:
    """Ingest every collection's files from the configured documents directory."""
    totals = await run_in_threadpool(get_ingestor().ingest_directory, Path(settings.documents_dir))
    return IngestResponse(
        status="success",
        message="All documents have been ingested into their respective collection stores",
        ingested={collection_type.value: count for collection_type, count in totals.items()},
    )


@app.post("/api/rag/ingest/single", response_model=IngestResponse)
async def ingest_single(type: str, filename: str, request: Request) -> IngestResponse:
    """Ingest one raw-text document body into the given collection."""
    try:
        collection_type = CollectionType.parse(type)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    content = (await request.body()).decode("utf-8", errors="ignore")
    if not content.strip():
        raise HTTPException(status_code=400, detail="Document body is empty")
    try:
        added = await run_in_threadpool(
            get_ingestor().ingest_single, collection_type, filename, content
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return IngestResponse(
        status="success",
        message=f"Document successfully ingested into {collection_type.name} store",
        ingested={collection_type.value: added},
    )


@app.post("/api/rag/chunk", response_model=ChunkResponse)
async def chunk(request: ChunkRequest) -> ChunkResponse:
    """Preview how a text would be chunked at ingestion time."""
    try:
        chunks = get_pipeline().chunk(request.text, request.max_chunk_size, request.overlap)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ChunkResponse(chunks=[ChunkItem.from_chunk(item) for item in chunks])


@app.get("/api/rag/stats/health", response_model=StoreHealthResponse)
async def stats_health() -> StoreHealthResponse:
    """Return backend health details for each collection store."""
    stores = get_stores()
    details = await run_in_threadpool(
        lambda: {collection_type.name: store.health() for collection_type, store in stores.items()}
    )
    return StoreHealthResponse(stores=details)

