"""
Ingest pipeline — orchestrates the flow from a stored PDF to searchable chunks.

    report row (status=processing)
      → fetch PDF from object storage, extract text     (extracting, 10%)
      → section-aware chunking                          (chunking,   30%)
      → embed every chunk concurrently                  (embedding,  60%)
      → bulk-insert chunks, mark report completed       (completed, 100%)

Any error outside the per-chunk embedding calls marks the report and its
processing status ``failed``.  Chunks are written after every embedding call
has finished, in the same transaction that marks the report completed, so a
failed run leaves no chunks behind.
"""

import asyncio
import logging

import numpy as np

from ecoreports.errors import EmbeddingError, InvalidTransitionError, ReportNotFoundError
from ecoreports.ingest.chunker import chunk_text
from ecoreports.ingest.embedder import Embedder
from ecoreports.ingest.extractor import extract_text
from ecoreports.ingest.metadata import build_report_metadata
from ecoreports.ingest.status import ProcessingStage, ProcessingStatus
from ecoreports.models import IngestResult, ReportStatus
from ecoreports.repository import ReportRepository
from ecoreports.storage import ObjectStore

logger = logging.getLogger(__name__)


class IngestPipeline:
    """
    Runs ingestion for one report at a time.

    The repository, object store and embedder are built once per process and
    shared across runs; the pipeline itself holds no per-run state, so
    concurrent runs for different reports are independent.  Two concurrent
    runs for the same report are not guarded against.
    """

    def __init__(
        self,
        repository: ReportRepository,
        object_store: ObjectStore,
        embedder: Embedder,
        chunk_size: int | None = None,
        overlap: int | None = None,
        min_break_ratio: float | None = None,
    ):
        self.repository = repository
        self.object_store = object_store
        self.embedder = embedder
        self.chunk_size = chunk_size
        self.overlap = overlap
        self.min_break_ratio = min_break_ratio

    async def run(self, report_id: str) -> IngestResult:
        report = self.repository.get_report(report_id)
        if report is None:
            raise ReportNotFoundError(report_id)

        if report.status != ReportStatus.PROCESSING:
            return IngestResult(
                report_id=report_id,
                status=report.status.value,
                message=(
                    f"Report is already {report.status.value}; "
                    "register it again to re-ingest."
                ),
            )

        status = ProcessingStatus.begin(report_id)
        try:
            # ── 1. Extract ──────────────────────────────────────────────────
            self._record(status)
            payload = self.object_store.get(report.file_path)
            extracted = extract_text(payload)

            # ── 2. Chunk ────────────────────────────────────────────────────
            status = self._record(status.advance(ProcessingStage.CHUNKING))
            chunks = chunk_text(
                extracted.text,
                chunk_size=self.chunk_size,
                overlap=self.overlap,
                min_break_ratio=self.min_break_ratio,
            )
            for idx, chunk in enumerate(chunks):
                chunk["chunk_index"] = idx

            # ── 3. Embed ────────────────────────────────────────────────────
            status = self._record(status.advance(ProcessingStage.EMBEDDING))
            # every call is awaited before an unexpected error is re-raised
            embeddings = await asyncio.gather(
                *(self._embed_chunk(report_id, c) for c in chunks),
                return_exceptions=True,
            )
            for emb in embeddings:
                if isinstance(emb, BaseException):
                    raise emb
            for chunk, emb in zip(chunks, embeddings):
                chunk["embedding"] = emb
            embedded = sum(1 for e in embeddings if e is not None)

            # ── 4. Persist ──────────────────────────────────────────────────
            metadata = build_report_metadata(
                extracted.text, extracted.page_count, len(chunks)
            )
            done = status.advance(ProcessingStage.COMPLETED)
            self.repository.complete_report(report_id, metadata, done, chunks=chunks)

        except Exception as e:
            logger.exception("Ingest failed for report %s", report_id)
            self._record_failure(status, str(e))
            return IngestResult(
                report_id=report_id,
                status=ReportStatus.FAILED.value,
                message=f"Ingest failed: {e}",
                error_type=type(e).__name__,
            )

        logger.info(
            "Ingest complete: %s → %d chunks (%d embedded)",
            report_id, len(chunks), embedded,
        )
        return IngestResult(
            report_id=report_id,
            status=ReportStatus.COMPLETED.value,
            chunks_created=len(chunks),
            embeddings_created=embedded,
            page_count=metadata.page_count,
            word_count=metadata.word_count,
            message=done.message,
        )

    def _record(self, status: ProcessingStatus) -> ProcessingStatus:
        logger.info("Report %s: %s (%d%%)", status.report_id, status.stage.value, status.progress)
        self.repository.upsert_status(status)
        return status

    def _record_failure(self, status: ProcessingStatus, message: str) -> None:
        try:
            self.repository.fail_report(status.report_id, status.fail(message), message)
        except InvalidTransitionError as e:
            # finished elsewhere, e.g. failed by reconcile_stale
            logger.warning("Report %s already finished: %s", status.report_id, e)
        except Exception:
            logger.exception("Could not record failure for report %s", status.report_id)

    async def _embed_chunk(self, report_id: str, chunk: dict) -> np.ndarray | None:
        try:
            return await self.embedder.embed(chunk["content"])
        except EmbeddingError as e:
            logger.warning(
                "Embedding failed for chunk %d of report %s: %s",
                chunk["chunk_index"], report_id, e,
            )
            return None
