"""
Relational store for reports, chunks and processing status.

One ``ReportRepository`` is built per process and shared by the pipeline,
the search path and the catalog.  Each method opens its own short-lived
connection, so the object carries no per-call state.  ``sqlite3`` failures
surface as ``PersistenceError``.
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional

import numpy as np

from ecoreports import config
from ecoreports.database import get_db, init_db
from ecoreports.errors import PersistenceError, ReportNotFoundError
from ecoreports.ingest.status import ProcessingStatus, check_report_transition
from ecoreports.models import (
    Chunk,
    Report,
    ReportMetadata,
    ReportStatus,
    ReportSummary,
    SectionType,
)

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def encode_embedding(embedding) -> bytes:
    return np.asarray(embedding, dtype=np.float32).tobytes()


def decode_embedding(blob: bytes) -> np.ndarray:
    return np.frombuffer(blob, dtype=np.float32)


def _row_to_report(row: sqlite3.Row) -> Report:
    metadata = None
    if row["page_count"] is not None:
        metadata = ReportMetadata(
            page_count=row["page_count"],
            word_count=row["word_count"] or 0,
            language=row["language"] or config.DEFAULT_LANGUAGE,
            chunk_count=row["chunk_count"] or 0,
        )
    return Report(
        id=row["id"],
        title=row["title"],
        ecosystem=row["ecosystem"],
        region=row["region"],
        file_path=row["file_path"],
        file_size=row["file_size"],
        status=ReportStatus(row["status"]),
        is_comparative=bool(row["is_comparative"]),
        metadata=metadata,
        error_message=row["error_message"],
        user_id=row["user_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_chunk(row: sqlite3.Row, include_embedding: bool = False) -> Chunk:
    embedding = None
    if include_embedding and row["embedding"] is not None:
        embedding = decode_embedding(row["embedding"]).tolist()
    return Chunk(
        id=row["id"],
        report_id=row["report_id"],
        content=row["content"],
        section_type=SectionType(row["section_type"]),
        chunk_index=row["chunk_index"],
        start_char=row["start_char"],
        end_char=row["end_char"],
        embedding=embedding,
        created_at=row["created_at"],
    )


class ReportRepository:
    def __init__(self, db_path: str | None = None):
        self.db_path = db_path or config.DATABASE_PATH
        init_db(self.db_path)

    @contextmanager
    def _connect(self):
        try:
            with get_db(self.db_path) as conn:
                yield conn
        except sqlite3.Error as e:
            raise PersistenceError(f"Database operation failed: {e}", e) from e

    # ── reports ─────────────────────────────────────────────────────────────

    def create_report(self, report: Report) -> Report:
        now = _now()
        report = report.model_copy(update={
            "created_at": report.created_at or now,
            "updated_at": now,
        })
        with self._connect() as conn:
            conn.execute(
                """INSERT INTO reports
                   (id, title, ecosystem, region, file_path, file_size, status,
                    is_comparative, user_id, created_at, updated_at)
                   VALUES (?,?,?,?,?,?,?,?,?,?,?)""",
                (
                    report.id,
                    report.title,
                    report.ecosystem,
                    report.region,
                    report.file_path,
                    report.file_size,
                    report.status.value,
                    int(report.is_comparative),
                    report.user_id,
                    report.created_at,
                    report.updated_at,
                ),
            )
        return report

    def get_report(self, report_id: str) -> Optional[Report]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM reports WHERE id=?", (report_id,)).fetchone()
        return _row_to_report(row) if row else None

    def list_reports(self, status: ReportStatus | None = None) -> list[Report]:
        """Return reports, newest first."""
        query = "SELECT * FROM reports"
        params: tuple = ()
        if status is not None:
            query += " WHERE status=?"
            params = (ReportStatus(status).value,)
        query += " ORDER BY created_at DESC"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_report(r) for r in rows]

    def list_stale_reports(self, updated_before: str) -> list[Report]:
        """Reports still ``processing`` whose last update predates *updated_before*."""
        with self._connect() as conn:
            rows = conn.execute(
                """SELECT * FROM reports
                   WHERE status='processing' AND updated_at < ?
                   ORDER BY created_at""",
                (updated_before,),
            ).fetchall()
        return [_row_to_report(r) for r in rows]

    def delete_report(self, report_id: str) -> bool:
        """Delete a report; chunks and status go with it. Returns True if found."""
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM reports WHERE id=?", (report_id,))
        return cur.rowcount > 0

    def complete_report(
        self,
        report_id: str,
        metadata: ReportMetadata,
        status: ProcessingStatus,
        chunks: list[dict] | None = None,
    ) -> None:
        """
        Mark the report completed and record the final status.

        *chunks*, when given, are inserted in the same transaction, so a
        completion that is rejected leaves no chunk rows behind.
        """
        with self._connect() as conn:
            self._check_transition(conn, report_id, ReportStatus.COMPLETED)
            if chunks:
                self._insert_chunk_rows(conn, report_id, chunks)
            conn.execute(
                """UPDATE reports SET
                   status='completed', page_count=?, word_count=?, language=?,
                   chunk_count=?, error_message=NULL, updated_at=?
                   WHERE id=? AND status='processing'""",
                (
                    metadata.page_count,
                    metadata.word_count,
                    metadata.language,
                    metadata.chunk_count,
                    _now(),
                    report_id,
                ),
            )
            self._write_status(conn, status)

    def fail_report(self, report_id: str, status: ProcessingStatus, error_message: str) -> None:
        """Mark the report failed and record the failed status in one transaction."""
        with self._connect() as conn:
            self._check_transition(conn, report_id, ReportStatus.FAILED)
            conn.execute(
                """UPDATE reports SET status='failed', error_message=?, updated_at=?
                   WHERE id=? AND status='processing'""",
                (error_message, _now(), report_id),
            )
            self._write_status(conn, status)

    @staticmethod
    def _check_transition(conn: sqlite3.Connection, report_id: str, target: ReportStatus):
        row = conn.execute("SELECT status FROM reports WHERE id=?", (report_id,)).fetchone()
        if row is None:
            raise ReportNotFoundError(report_id)
        check_report_transition(ReportStatus(row["status"]), target)

    # ── processing status ───────────────────────────────────────────────────

    def upsert_status(self, status: ProcessingStatus) -> None:
        with self._connect() as conn:
            self._write_status(conn, status)
            conn.execute(
                "UPDATE reports SET updated_at=? WHERE id=?",
                (status.updated_at, status.report_id),
            )

    @staticmethod
    def _write_status(conn: sqlite3.Connection, status: ProcessingStatus):
        conn.execute(
            """INSERT INTO processing_status (report_id, stage, progress, message, updated_at)
               VALUES (?,?,?,?,?)
               ON CONFLICT(report_id) DO UPDATE SET
                   stage      = excluded.stage,
                   progress   = excluded.progress,
                   message    = excluded.message,
                   updated_at = excluded.updated_at""",
            (
                status.report_id,
                status.stage.value,
                status.progress,
                status.message,
                status.updated_at,
            ),
        )

    def get_status(self, report_id: str) -> Optional[ProcessingStatus]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM processing_status WHERE report_id=?", (report_id,)
            ).fetchone()
        if row is None:
            return None
        return ProcessingStatus(
            report_id=row["report_id"],
            stage=row["stage"],
            progress=row["progress"],
            message=row["message"],
            updated_at=row["updated_at"],
        )

    # ── chunks ──────────────────────────────────────────────────────────────

    def insert_chunks(self, report_id: str, chunks: list[dict]) -> int:
        """
        Bulk-insert chunk rows in a single transaction.

        Each dict carries ``content``, ``section_type``, ``chunk_index``,
        ``start_char``, ``end_char`` and an optional ``embedding``.
        """
        with self._connect() as conn:
            return self._insert_chunk_rows(conn, report_id, chunks)

    @staticmethod
    def _insert_chunk_rows(conn: sqlite3.Connection, report_id: str, chunks: list[dict]) -> int:
        now = _now()
        rows = [
            (
                report_id,
                c["content"],
                SectionType(c["section_type"]).value,
                c["chunk_index"],
                c["start_char"],
                c["end_char"],
                encode_embedding(c["embedding"]) if c.get("embedding") is not None else None,
                now,
            )
            for c in chunks
        ]
        conn.executemany(
            """INSERT INTO chunks
               (report_id, content, section_type, chunk_index,
                start_char, end_char, embedding, created_at)
               VALUES (?,?,?,?,?,?,?,?)""",
            rows,
        )
        return len(rows)

    def list_chunks(self, report_id: str, include_embeddings: bool = False) -> list[Chunk]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM chunks WHERE report_id=? ORDER BY chunk_index",
                (report_id,),
            ).fetchall()
        return [_row_to_chunk(r, include_embeddings) for r in rows]

    def search_candidates(
        self,
        ecosystem: str | None = None,
        region: str | None = None,
    ) -> list[tuple[Chunk, ReportSummary, np.ndarray]]:
        """
        Chunks eligible for similarity search: embedded, from a completed
        report, matching the optional region (exact) and ecosystem
        (case-insensitive substring) filters.
        """
        query = """
            SELECT c.*, r.title, r.ecosystem, r.region, r.status,
                   r.is_comparative, r.created_at AS report_created_at
            FROM chunks c
            JOIN reports r ON r.id = c.report_id
            WHERE r.status = 'completed' AND c.embedding IS NOT NULL
        """
        params: list = []
        if region:
            query += " AND r.region = ?"
            params.append(region)
        query += " ORDER BY c.report_id, c.chunk_index"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()

        needle = ecosystem.casefold() if ecosystem else None
        candidates = []
        for row in rows:
            if needle and needle not in row["ecosystem"].casefold():
                continue
            report = ReportSummary(
                id=row["report_id"],
                title=row["title"],
                ecosystem=row["ecosystem"],
                region=row["region"],
                status=ReportStatus(row["status"]),
                is_comparative=bool(row["is_comparative"]),
                created_at=row["report_created_at"],
            )
            candidates.append((_row_to_chunk(row), report, decode_embedding(row["embedding"])))
        return candidates
