"""
app/stores/sql_store.py

PostgreSQL row store backed by SQLAlchemy sessions.
"""

from __future__ import annotations

import hmac
import logging
from collections.abc import Sequence

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.domain.inventory import EntryRecord, NewEntry, Principal, ReportSummary, UserAccount
from app.stores.errors import EntryNotFoundError, StoreReadError, StoreUpdateError, StoreWriteError
from db.models.inventory_entry import InventoryEntry
from db.models.inventory_file import InventoryFile
from db.models.user import User

logger = logging.getLogger(__name__)

_DEFAULT_BATCH_SIZE = 1000


class SQLRowStore:
    """
    Row store over the `users`, `files` and `entries` tables.

    Each call runs in its own short transaction; the caller never holds a
    session across calls.
    """

    def __init__(
        self,
        *,
        session_factory: sessionmaker[Session] | None = None,
        insert_batch_size: int = _DEFAULT_BATCH_SIZE,
    ) -> None:
        if session_factory is None:
            from db.session import SessionLocal

            self._session_factory = SessionLocal
        else:
            self._session_factory = session_factory
        self._insert_batch_size = max(1, insert_batch_size)

    def list_reports(self) -> list[ReportSummary]:
        stmt = select(InventoryFile).order_by(InventoryFile.created_at.desc())
        try:
            with self._session_factory() as session:
                return [
                    ReportSummary(id=f.id, created_at=f.created_at, uploaded_by=f.uploaded_by)
                    for f in session.scalars(stmt)
                ]
        except SQLAlchemyError as exc:
            logger.error("Failed to list reports: %s", exc)
            raise StoreReadError("Failed to list reports.") from exc

    def list_users(self) -> list[UserAccount]:
        stmt = select(User.username, User.role).order_by(User.username)
        try:
            with self._session_factory() as session:
                return [UserAccount(username=u, role=r) for u, r in session.execute(stmt)]
        except SQLAlchemyError as exc:
            logger.error("Failed to list users: %s", exc)
            raise StoreReadError("Failed to list users.") from exc

    def create_report(self, created_by: str) -> ReportSummary:
        try:
            with self._session_factory() as session:
                with session.begin():
                    report = InventoryFile(uploaded_by=created_by)
                    session.add(report)
                    session.flush()
                    session.refresh(report)
                return ReportSummary(
                    id=report.id,
                    created_at=report.created_at,
                    uploaded_by=report.uploaded_by,
                )
        except SQLAlchemyError as exc:
            logger.error("Failed to create report created_by=%s: %s", created_by, exc)
            raise StoreWriteError("Failed to create report.") from exc

    def insert_entries(self, entries: Sequence[NewEntry]) -> int:
        """
        Insert one upload's entries in a single transaction, chunked by batch size.
        """

        if not entries:
            return 0

        size = self._insert_batch_size
        try:
            with self._session_factory() as session:
                with session.begin():
                    for start in range(0, len(entries), size):
                        chunk = entries[start : start + size]
                        session.execute(
                            insert(InventoryEntry),
                            [entry.to_payload() for entry in chunk],
                        )
        except SQLAlchemyError as exc:
            logger.error("Failed to insert %d entries: %s", len(entries), exc)
            raise StoreWriteError("Failed to insert entries.") from exc
        return len(entries)

    def query_entries(
        self,
        *,
        file_id: int,
        assigned_to: str | None = None,
        offset: int = 0,
        limit: int = 1000,
    ) -> list[EntryRecord]:
        stmt = select(InventoryEntry).where(InventoryEntry.file_id == file_id)
        if assigned_to is not None:
            stmt = stmt.where(InventoryEntry.assigned_to == assigned_to)
        stmt = stmt.order_by(InventoryEntry.upload_index.asc()).offset(offset).limit(limit)
        try:
            with self._session_factory() as session:
                return [_to_record(entry) for entry in session.scalars(stmt)]
        except SQLAlchemyError as exc:
            logger.error(
                "Failed to query entries file_id=%s offset=%s limit=%s: %s",
                file_id,
                offset,
                limit,
                exc,
            )
            raise StoreReadError("Failed to load entries.") from exc

    def update_entry(
        self,
        entry_id: int,
        *,
        count: int | None,
        entered_by: str,
        assigned_to: str | None = None,
    ) -> EntryRecord:
        stmt = update(InventoryEntry).where(InventoryEntry.id == entry_id)
        if assigned_to is not None:
            stmt = stmt.where(InventoryEntry.assigned_to == assigned_to)
        stmt = stmt.values(count=count, entered_by=entered_by).returning(InventoryEntry)
        try:
            with self._session_factory() as session:
                with session.begin():
                    updated = session.scalars(stmt).one_or_none()
                    record = _to_record(updated) if updated is not None else None
        except SQLAlchemyError as exc:
            logger.error("Failed to update entry id=%s: %s", entry_id, exc)
            raise StoreUpdateError(f"Failed to save count for entry {entry_id}.") from exc

        if record is None:
            raise EntryNotFoundError(f"Entry {entry_id} not found.")
        return record

    def authenticate(self, username: str, password: str) -> Principal | None:
        stmt = select(User).where(User.username == username)
        try:
            with self._session_factory() as session:
                user = session.scalars(stmt).one_or_none()
        except SQLAlchemyError as exc:
            logger.error("Failed to look up user %r: %s", username, exc)
            raise StoreReadError("Failed to verify credentials.") from exc

        if user is None:
            return None
        if not hmac.compare_digest(user.password.encode("utf-8"), password.encode("utf-8")):
            return None
        return Principal(username=user.username, role=user.role)


def _to_record(entry: InventoryEntry) -> EntryRecord:
    return EntryRecord(
        id=entry.id,
        file_id=entry.file_id,
        upload_index=entry.upload_index,
        sku=entry.sku,
        on_hand=entry.on_hand,
        description=entry.description or "",
        assigned_to=entry.assigned_to,
        count=entry.count,
        entered_by=entry.entered_by,
    )
