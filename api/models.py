"""
API request / response models for FastAPI.
"""

from typing import Optional

from pydantic import BaseModel, Field

from ecoreports.ingest.status import ProcessingStatus
from ecoreports.models import Chunk, Report, SearchResult


class SearchRequest(BaseModel):
    query: str
    ecosystem: Optional[str] = None
    region: Optional[str] = None
    limit: int = Field(default=10, ge=1, le=100)
    threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class SearchResponse(BaseModel):
    query: str
    results: list[SearchResult] = Field(default_factory=list)


class ReportResponse(BaseModel):
    report: Report
    status: Optional[ProcessingStatus] = None


class ReportListResponse(BaseModel):
    reports: list[Report] = Field(default_factory=list)


class ChunkListResponse(BaseModel):
    report_id: str
    chunks: list[Chunk] = Field(default_factory=list)


class SectionsResponse(BaseModel):
    report_id: str
    sections: dict[str, str] = Field(default_factory=dict)
