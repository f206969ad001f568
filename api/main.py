"""
FastAPI application — report upload, ingestion trigger, status and search.

    POST   /reports                   upload a PDF (optionally ingest right away)
    GET    /reports                   list reports
    GET    /reports/{id}              report + processing status
    DELETE /reports/{id}              delete report, chunks and stored PDF
    POST   /reports/{id}/process      run the ingest pipeline
    GET    /reports/{id}/status       processing status
    GET    /reports/{id}/chunks       stored chunks
    GET    /reports/{id}/sections     chunk text grouped by section
    POST   /search                    similarity search
    GET    /health
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import Depends, FastAPI, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.models import (
    ChunkListResponse,
    ReportListResponse,
    ReportResponse,
    SearchRequest,
    SearchResponse,
    SectionsResponse,
)
from ecoreports import config
from ecoreports.corpus.manager import ReportCatalog
from ecoreports.errors import PersistenceError, ReportNotFoundError, SearchError
from ecoreports.ingest.embedder import Embedder, build_embedder
from ecoreports.ingest.pipeline import IngestPipeline
from ecoreports.ingest.status import ProcessingStatus
from ecoreports.models import IngestResult, ReportStatus
from ecoreports.repository import ReportRepository
from ecoreports.search.similarity import SimilaritySearch
from ecoreports.storage import LocalObjectStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Process-wide collaborators, built once at startup."""

    catalog: ReportCatalog
    pipeline: IngestPipeline
    search: SimilaritySearch
    embedder: Embedder


@asynccontextmanager
async def lifespan(app: FastAPI):
    repository = ReportRepository(config.DATABASE_PATH)
    object_store = LocalObjectStore(config.STORAGE_DIR)
    embedder = build_embedder()
    app.state.services = Services(
        catalog=ReportCatalog(repository, object_store),
        pipeline=IngestPipeline(repository, object_store, embedder),
        search=SimilaritySearch(repository, embedder),
        embedder=embedder,
    )
    logger.info("Services initialised (db=%s, embeddings=%s)", config.DATABASE_PATH, embedder.model)
    yield
    await embedder.aclose()


app = FastAPI(
    title="Ecosystem Reports",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_services(request: Request) -> Services:
    return request.app.state.services


# ── Error mapping ────────────────────────────────────────────────────────────

@app.exception_handler(ReportNotFoundError)
async def _not_found(request: Request, exc: ReportNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(SearchError)
async def _search_failed(request: Request, exc: SearchError):
    logger.error("Search failed: %s", exc)
    return JSONResponse(status_code=502, content={"detail": f"Search failed: {exc}"})


@app.exception_handler(PersistenceError)
async def _persistence_failed(request: Request, exc: PersistenceError):
    logger.error("Database error: %s", exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.exception_handler(ValueError)
async def _invalid(request: Request, exc: ValueError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


# ── Reports ──────────────────────────────────────────────────────────────────

@app.post("/reports", response_model=ReportResponse)
async def upload_report(
    file: UploadFile,
    title: str = Form(...),
    ecosystem: str = Form(""),
    region: str = Form(""),
    is_comparative: bool = Form(False),
    process: bool = Form(True),
    services: Services = Depends(get_services),
):
    """Store an uploaded PDF and, unless ``process`` is false, ingest it."""
    payload = await file.read()
    if not payload:
        raise HTTPException(status_code=422, detail="Uploaded file is empty.")

    report = services.catalog.register_report(
        filename=file.filename or "report.pdf",
        payload=payload,
        title=title,
        ecosystem=ecosystem,
        region=region or None,
        is_comparative=is_comparative,
    )
    if process:
        await services.pipeline.run(report.id)
        report = services.catalog.get_report(report.id)

    return ReportResponse(report=report, status=services.catalog.get_status(report.id))


@app.get("/reports", response_model=ReportListResponse)
async def list_reports(
    status: ReportStatus | None = None,
    services: Services = Depends(get_services),
):
    return ReportListResponse(reports=services.catalog.list_reports(status))


@app.get("/reports/{report_id}", response_model=ReportResponse)
async def get_report(report_id: str, services: Services = Depends(get_services)):
    report = services.catalog.get_report(report_id)
    if report is None:
        raise ReportNotFoundError(report_id)
    return ReportResponse(report=report, status=services.catalog.get_status(report_id))


@app.delete("/reports/{report_id}")
async def delete_report(report_id: str, services: Services = Depends(get_services)):
    if not services.catalog.delete_report(report_id):
        raise ReportNotFoundError(report_id)
    return {"deleted": report_id}


@app.post("/reports/{report_id}/process", response_model=IngestResult)
async def process_report(report_id: str, services: Services = Depends(get_services)):
    """Run the ingest pipeline; failures are reported in the body, not as 5xx."""
    return await services.pipeline.run(report_id)


@app.get("/reports/{report_id}/status", response_model=ProcessingStatus)
async def get_status(report_id: str, services: Services = Depends(get_services)):
    status = services.catalog.get_status(report_id)
    if status is None:
        raise HTTPException(status_code=404, detail=f"No processing status for report {report_id}.")
    return status


@app.get("/reports/{report_id}/chunks", response_model=ChunkListResponse)
async def list_chunks(report_id: str, services: Services = Depends(get_services)):
    if services.catalog.get_report(report_id) is None:
        raise ReportNotFoundError(report_id)
    return ChunkListResponse(report_id=report_id, chunks=services.catalog.list_chunks(report_id))


@app.get("/reports/{report_id}/sections", response_model=SectionsResponse)
async def get_sections(report_id: str, services: Services = Depends(get_services)):
    sections = services.catalog.sections(report_id)
    return SectionsResponse(
        report_id=report_id,
        sections={s.value: text for s, text in sections.items()},
    )


# ── Search ───────────────────────────────────────────────────────────────────

@app.post("/search", response_model=SearchResponse)
async def search(request: SearchRequest, services: Services = Depends(get_services)):
    results = await services.search.search(
        request.query,
        ecosystem=request.ecosystem or None,
        region=request.region or None,
        limit=request.limit,
        threshold=request.threshold,
    )
    return SearchResponse(query=request.query, results=results)


# ── Health ───────────────────────────────────────────────────────────────────

@app.get("/health")
async def health(services: Services = Depends(get_services)):
    embedder = services.embedder
    check = getattr(embedder, "health", None)
    embeddings_ok = await check() if check is not None else True
    return {
        "status": "ok",
        "embedding_provider": config.EMBEDDING_PROVIDER,
        "embedding_model": embedder.model,
        "embeddings_available": embeddings_ok,
    }
