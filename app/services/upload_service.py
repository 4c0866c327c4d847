"""
app/services/upload_service.py

Upload workflow: validate the request, read the spreadsheet, split the rows
across the selected users, then create the report and insert its entries.

Everything that can reject an upload (missing file, no users, unreadable
file, zero valid rows) runs before the first store write, so a rejected
upload never creates a report. If the batch insert fails after the report
row exists, the report is left without entries; StoreWriteError carries its
id so the inconsistency is reported rather than ignored.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from functools import lru_cache

from app.domain.errors import NoFileSelected, NoUsersSelected, UnknownUsers
from app.domain.inventory import Principal, UploadSummary
from app.logging_utils import log_event
from app.services.partitioner import block_sizes, partition_rows, unique_users
from app.services.spreadsheet_reader import SpreadsheetIngestor, get_spreadsheet_ingestor
from app.stores.base import RowStore
from app.stores.errors import StoreWriteError

logger = logging.getLogger(__name__)


class UploadService:
    def __init__(
        self,
        *,
        store: RowStore,
        ingestor: SpreadsheetIngestor,
    ) -> None:
        self._store = store
        self._ingestor = ingestor

    def upload(
        self,
        *,
        content: bytes | None,
        filename: str | None,
        users: Sequence[str],
        uploaded_by: Principal,
    ) -> UploadSummary:
        """
        Create one report from an uploaded spreadsheet.

        Raises
        ------
        NoFileSelected / NoUsersSelected / UnknownUsers / UnsupportedFileType:
            request validation failed.
        IngestError:     the file could not be read or had no valid rows.
        StoreWriteError: the report or its entries could not be stored.
        """

        if not content or not (filename or "").strip():
            raise NoFileSelected("Please select a file first.")

        selected = unique_users(users)
        if not selected:
            raise NoUsersSelected("Please select at least one user.")
        self._ensure_users_exist(selected)

        result = self._ingestor.ingest(content=content, filename=filename or "")
        assignments = block_sizes(len(result.rows), selected)

        report = self._store.create_report(uploaded_by.username)
        entries = partition_rows(result.rows, selected, file_id=report.id)
        try:
            inserted = self._store.insert_entries(entries)
        except StoreWriteError as exc:
            logger.error(
                "Entry insert failed after report creation; report %s has no entries: %s",
                report.id,
                exc,
            )
            raise StoreWriteError(
                f"Upload failed: {exc}. Report {report.id} was created without entries.",
                orphaned_report_id=report.id,
            ) from exc

        log_event(
            logger,
            logging.INFO,
            "upload_completed",
            report_id=report.id,
            uploaded_by=uploaded_by.username,
            filename=filename,
            rows_inserted=inserted,
            rows_failed=result.rows_failed,
            assignments=assignments,
        )
        return UploadSummary(
            report_id=report.id,
            rows_inserted=inserted,
            rows_failed=result.rows_failed,
            assignments=assignments,
            validation_errors=result.validation_errors,
        )

    def _ensure_users_exist(self, selected: list[str]) -> None:
        known = {user.username for user in self._store.list_users()}
        unknown = [user for user in selected if user not in known]
        if unknown:
            raise UnknownUsers(f"Unknown users: {', '.join(unknown)}.")


@lru_cache(maxsize=1)
def get_upload_service() -> UploadService:
    from app.stores import get_row_store

    return UploadService(store=get_row_store(), ingestor=get_spreadsheet_ingestor())
