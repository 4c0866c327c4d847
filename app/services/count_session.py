"""
app/services/count_session.py

Application context for one signed-in counter: who they are, which store
they talk to, and the entry state of the report they have open.

Loading pages through the store strictly in order and swaps the whole list
into the state once. Recording a count is two-phase: apply locally, then
persist and confirm (or mark failed and re-raise so the caller can tell the
user to re-save or reload).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.domain.errors import EntryAccessError
from app.domain.inventory import EntryRecord, Principal
from app.logging_utils import log_event
from app.services.entry_state import EntryState, can_edit, normalize_count
from app.stores.base import RowStore
from app.stores.errors import StoreReadError, StoreUpdateError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadResult:
    """
    Outcome of loading a report. ``complete`` is False when a page failed;
    ``rows`` then holds what was read before the failure.
    """

    file_id: int
    rows: tuple[EntryRecord, ...]
    pages: int
    complete: bool = True
    error: str | None = None


class CountSession:
    def __init__(
        self,
        *,
        store: RowStore,
        principal: Principal,
        page_size: int = 1000,
        state: EntryState | None = None,
    ) -> None:
        self.store = store
        self.principal = principal
        self.page_size = max(1, page_size)
        self.state = state if state is not None else EntryState()
        self.last_load: LoadResult | None = None

    @property
    def active_report_id(self) -> int | None:
        return self.state.file_id

    def can_edit(self, record: EntryRecord) -> bool:
        return can_edit(record, self.principal)

    def load_report(self, file_id: int) -> LoadResult:
        """
        Read every visible entry of ``file_id`` in ascending upload_index.

        Admins see all rows; everyone else only rows assigned to them. Pages
        are requested one after another and a short page ends the load.
        """

        assigned_to = None if self.principal.is_admin else self.principal.username
        rows: list[EntryRecord] = []
        pages = 0
        error: str | None = None
        offset = 0

        while True:
            try:
                page = self.store.query_entries(
                    file_id=file_id,
                    assigned_to=assigned_to,
                    offset=offset,
                    limit=self.page_size,
                )
            except StoreReadError as exc:
                error = str(exc)
                logger.error(
                    "Entry load stopped file_id=%s user=%s offset=%s rows_kept=%s: %s",
                    file_id,
                    self.principal.username,
                    offset,
                    len(rows),
                    exc,
                )
                break

            pages += 1
            rows.extend(page)
            if len(page) < self.page_size:
                break
            offset += self.page_size

        self.state.replace(file_id, rows)
        log_event(
            logger,
            logging.INFO,
            "entries_loaded",
            file_id=file_id,
            user=self.principal.username,
            rows=len(rows),
            pages=pages,
            complete=error is None,
        )
        self.last_load = LoadResult(
            file_id=file_id,
            rows=tuple(rows),
            pages=pages,
            complete=error is None,
            error=error,
        )
        return self.last_load

    def record_count(self, entry_id: int, raw_value: object) -> EntryRecord:
        """
        Apply a count edit locally, persist it, then confirm it.

        Raises
        ------
        EntryNotLoadedError: the entry is not in the loaded report.
        EntryAccessError:    the caller may not edit this entry.
        StoreUpdateError:    the store rejected the write; the row keeps the
                             new value with a failed sync status.
        """

        current = self.state.get(entry_id).record
        if not self.can_edit(current):
            raise EntryAccessError(f"Entry {entry_id} is not assigned to {self.principal.username}.")

        count = normalize_count(raw_value)
        edit = self.state.apply_edit(entry_id, count=count, entered_by=self.principal.username)

        try:
            stored = self.store.update_entry(
                entry_id,
                count=count,
                entered_by=self.principal.username,
                assigned_to=None if self.principal.is_admin else self.principal.username,
            )
        except StoreUpdateError as exc:
            self.state.fail(edit, str(exc))
            log_event(
                logger,
                logging.WARNING,
                "count_not_saved",
                entry_id=entry_id,
                user=self.principal.username,
                count=count,
                error=str(exc),
            )
            raise

        self.state.confirm(edit, stored)
        log_event(
            logger,
            logging.INFO,
            "count_saved",
            entry_id=entry_id,
            user=self.principal.username,
            count=count,
        )
        return stored
