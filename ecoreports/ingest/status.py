"""
Processing-status state machine for a single ingestion run.

    extracting → chunking → embedding → completed
         └──────────┴───────────┴──────→ failed

Every stage has a fixed progress checkpoint.  Status values are immutable:
``advance`` and ``fail`` return a new record and raise
``InvalidTransitionError`` for any move the table does not list, so a
terminal record can never be overwritten by a later stage.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ecoreports.errors import InvalidTransitionError
from ecoreports.models import ReportStatus


class ProcessingStage(str, Enum):
    EXTRACTING = "extracting"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    COMPLETED = "completed"
    FAILED = "failed"


TRANSITIONS: dict[ProcessingStage, frozenset[ProcessingStage]] = {
    ProcessingStage.EXTRACTING: frozenset({ProcessingStage.CHUNKING, ProcessingStage.FAILED}),
    ProcessingStage.CHUNKING: frozenset({ProcessingStage.EMBEDDING, ProcessingStage.FAILED}),
    ProcessingStage.EMBEDDING: frozenset({ProcessingStage.COMPLETED, ProcessingStage.FAILED}),
    ProcessingStage.COMPLETED: frozenset(),
    ProcessingStage.FAILED: frozenset(),
}

PROGRESS: dict[ProcessingStage, int] = {
    ProcessingStage.EXTRACTING: 10,
    ProcessingStage.CHUNKING: 30,
    ProcessingStage.EMBEDDING: 60,
    ProcessingStage.COMPLETED: 100,
    ProcessingStage.FAILED: 0,
}

MESSAGES: dict[ProcessingStage, str] = {
    ProcessingStage.EXTRACTING: "Extracting text from PDF...",
    ProcessingStage.CHUNKING: "Chunking text content...",
    ProcessingStage.EMBEDDING: "Generating embeddings...",
    ProcessingStage.COMPLETED: "Processing completed successfully",
}

# Report lifecycle: processing is the only non-terminal status.
REPORT_TRANSITIONS: dict[ReportStatus, frozenset[ReportStatus]] = {
    ReportStatus.PROCESSING: frozenset({ReportStatus.COMPLETED, ReportStatus.FAILED}),
    ReportStatus.COMPLETED: frozenset(),
    ReportStatus.FAILED: frozenset(),
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def check_report_transition(current: ReportStatus, target: ReportStatus) -> None:
    """Raise ``InvalidTransitionError`` unless *current* may move to *target*."""
    if target not in REPORT_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Report status cannot change from '{current.value}' to '{target.value}'."
        )


class ProcessingStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    report_id: str
    stage: ProcessingStage
    progress: int = Field(ge=0, le=100)
    message: str = ""
    updated_at: str = Field(default_factory=_now)

    @classmethod
    def begin(cls, report_id: str, message: str | None = None) -> "ProcessingStatus":
        """Status record for the first stage of a run."""
        stage = ProcessingStage.EXTRACTING
        return cls(
            report_id=report_id,
            stage=stage,
            progress=PROGRESS[stage],
            message=message if message is not None else MESSAGES[stage],
        )

    @property
    def is_terminal(self) -> bool:
        return not TRANSITIONS[self.stage]

    def advance(self, stage: ProcessingStage, message: str | None = None) -> "ProcessingStatus":
        if stage not in TRANSITIONS[self.stage]:
            raise InvalidTransitionError(
                f"Processing stage cannot change from '{self.stage.value}' to '{stage.value}'."
            )
        return ProcessingStatus(
            report_id=self.report_id,
            stage=stage,
            progress=PROGRESS[stage],
            message=message if message is not None else MESSAGES.get(stage, ""),
        )

    def fail(self, message: str) -> "ProcessingStatus":
        return self.advance(ProcessingStage.FAILED, message)
