"""
Error taxonomy for the ingestion pipeline and search path.
"""


class EcoReportsError(Exception):
    """Base exception for report processing errors."""

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.original_error = original_error


class ExtractionError(EcoReportsError):
    """The payload is not a parseable PDF, or it holds no extractable text."""


class EmbeddingError(EcoReportsError):
    """The embedding endpoint failed or returned an unusable vector."""


class PersistenceError(EcoReportsError):
    """A database write or read failed."""


class SearchError(EcoReportsError):
    """The query could not be embedded."""


class StorageError(EcoReportsError):
    """The object store could not read or write a payload."""


class ReportNotFoundError(EcoReportsError, LookupError):
    """No report exists with the given id."""

    def __init__(self, report_id: str):
        super().__init__(f"Report {report_id} not found.")
        self.report_id = report_id


class InvalidTransitionError(EcoReportsError, ValueError):
    """A processing stage or report status change that the lifecycle forbids."""
