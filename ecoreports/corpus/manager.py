"""
Report catalog — registration, lookup and housekeeping for uploaded reports.
"""

import logging
import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from ecoreports import config
from ecoreports.errors import ReportNotFoundError, StorageError
from ecoreports.ingest.metadata import (
    COMPARATIVE_ECOSYSTEM,
    UNKNOWN_REGION,
    region_for_ecosystem,
)
from ecoreports.ingest.status import ProcessingStage, ProcessingStatus
from ecoreports.models import Chunk, Report, ReportStatus, SectionType
from ecoreports.repository import ReportRepository
from ecoreports.storage import ObjectStore

logger = logging.getLogger(__name__)


class ReportCatalog:
    def __init__(self, repository: ReportRepository, object_store: ObjectStore):
        self.repository = repository
        self.object_store = object_store

    def register_report(
        self,
        filename: str,
        payload: bytes,
        title: str,
        ecosystem: str = "",
        region: str | None = None,
        is_comparative: bool = False,
        user_id: str | None = None,
    ) -> Report:
        """
        Store an uploaded PDF and create its report row in ``processing``.

        Comparative reports are filed under the ``Comparado`` ecosystem with
        no region.  Otherwise the region defaults to the ecosystem's country
        prefix.
        """
        if not title or not title.strip():
            raise ValueError("title is required")
        if is_comparative:
            ecosystem, region = COMPARATIVE_ECOSYSTEM, UNKNOWN_REGION
        elif not ecosystem or not ecosystem.strip():
            raise ValueError("ecosystem is required for non-comparative reports")
        region = region or region_for_ecosystem(ecosystem)

        report_id = str(uuid.uuid4())
        file_path = f"reports/{report_id}/{os.path.basename(filename) or 'report.pdf'}"
        self.object_store.put(file_path, payload)

        report = self.repository.create_report(Report(
            id=report_id,
            title=title.strip(),
            ecosystem=ecosystem.strip(),
            region=region,
            file_path=file_path,
            file_size=len(payload),
            status=ReportStatus.PROCESSING,
            is_comparative=is_comparative,
            user_id=user_id,
        ))
        logger.info("Registered report %s (%s, %s)", report_id, report.title, report.ecosystem)
        return report

    def list_reports(self, status: ReportStatus | None = None) -> list[Report]:
        return self.repository.list_reports(status)

    def get_report(self, report_id: str) -> Optional[Report]:
        return self.repository.get_report(report_id)

    def get_status(self, report_id: str) -> Optional[ProcessingStatus]:
        return self.repository.get_status(report_id)

    def list_chunks(self, report_id: str) -> list[Chunk]:
        return self.repository.list_chunks(report_id)

    def delete_report(self, report_id: str) -> bool:
        """
        Delete a report and its stored PDF.  Returns True if found.

        A storage failure is logged and does not stop the row deletion.
        """
        report = self.repository.get_report(report_id)
        if report is None:
            return False
        try:
            self.object_store.delete(report.file_path)
        except StorageError as e:
            logger.warning("Failed to delete %s from storage: %s", report.file_path, e)
        # cascading delete handles chunks + processing_status
        return self.repository.delete_report(report_id)

    def sections(self, report_id: str) -> dict[SectionType, str]:
        """Chunk contents of a completed report, joined per section label."""
        report = self.repository.get_report(report_id)
        if report is None or report.status != ReportStatus.COMPLETED:
            raise ReportNotFoundError(report_id)
        grouped: dict[SectionType, list[str]] = {s: [] for s in SectionType}
        for chunk in self.repository.list_chunks(report_id):
            grouped[chunk.section_type].append(chunk.content)
        return {s: "\n".join(parts) for s, parts in grouped.items()}

    def reconcile_stale(self, older_than_minutes: int | None = None) -> list[Report]:
        """
        Fail reports left in ``processing`` by a run that never finished.

        A report is stale when it has not been touched for
        *older_than_minutes*.  Returns the reports that were marked failed.
        """
        minutes = older_than_minutes if older_than_minutes is not None else config.STALE_PROCESSING_MINUTES
        cutoff = (datetime.now(timezone.utc) - timedelta(minutes=minutes)).isoformat()
        message = f"Processing did not finish within {minutes} minutes; upload the report again."

        reconciled = []
        for report in self.repository.list_stale_reports(cutoff):
            current = self.repository.get_status(report.id)
            if current is None or current.is_terminal:
                current = ProcessingStatus.begin(report.id)
            failed = current.advance(ProcessingStage.FAILED, message)
            self.repository.fail_report(report.id, failed, message)
            logger.warning("Marked stale report %s (%s) as failed", report.id, report.title)
            reconciled.append(self.repository.get_report(report.id))
        return reconciled
