"""
Pydantic models shared across the package.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ReportStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class SectionType(str, Enum):
    """Section labels as persisted on chunk rows."""

    SUMMARY = "resumen"
    STRENGTHS = "fortalezas"
    CHALLENGES = "retos"
    RECOMMENDATIONS = "recomendaciones"
    METRICS = "métricas"
    OTHER = "other"


class ReportMetadata(BaseModel):
    page_count: int = 0
    word_count: int = 0
    language: str = "es"
    chunk_count: int = 0


class ReportSummary(BaseModel):
    """Denormalised report fields attached to search results."""

    id: str
    title: str
    ecosystem: str
    region: str
    status: ReportStatus
    is_comparative: bool = False
    created_at: str = ""


class Report(BaseModel):
    id: str
    title: str
    ecosystem: str
    region: str = "N/A"
    file_path: str
    file_size: int = 0
    status: ReportStatus = ReportStatus.PROCESSING
    is_comparative: bool = False
    metadata: Optional[ReportMetadata] = None
    error_message: Optional[str] = None
    user_id: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


class Chunk(BaseModel):
    id: int
    report_id: str
    content: str
    section_type: SectionType
    chunk_index: int
    start_char: int
    end_char: int
    embedding: Optional[list[float]] = None
    created_at: str = ""


class SearchResult(BaseModel):
    chunk: Chunk
    report: ReportSummary
    similarity: float


class IngestResult(BaseModel):
    report_id: str
    status: str
    chunks_created: int = 0
    embeddings_created: int = 0
    page_count: int = 0
    word_count: int = 0
    message: str = ""
    error_type: Optional[str] = None
