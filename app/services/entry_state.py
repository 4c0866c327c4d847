"""
app/services/entry_state.py

In-memory view of the loaded report's visible entries.

The state is mutated in exactly two ways:

    replace()     full swap of the row list after a load
    apply_edit()  optimistic single-row count change

Every edit is tracked until the store acknowledges it. An edit carries a
per-row version; only the latest edit of a row may confirm or fail it, so a
slow acknowledgement of an older edit never marks a newer value as saved.
A failed edit keeps its optimistic value; reloading is the only way back to
the stored value.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass, replace as dc_replace
from enum import Enum
from typing import Any

from app.domain.errors import EntryNotLoadedError
from app.domain.inventory import EntryRecord, Principal
from app.validators.row_validator import parse_integer

NEAR_THRESHOLD = 10
MODERATE_THRESHOLD = 20


class CountStatus(str, Enum):
    UNSET = "unset"
    EXACT = "exact"
    NEAR = "near"
    MODERATE = "moderate"
    FAR = "far"


STATUS_COLORS: dict[CountStatus, str] = {
    CountStatus.UNSET: "gray",
    CountStatus.EXACT: "green",
    CountStatus.NEAR: "yellow",
    CountStatus.MODERATE: "orange",
    CountStatus.FAR: "red",
}


class SyncStatus(str, Enum):
    CONFIRMED = "confirmed"
    PENDING = "pending"
    FAILED = "failed"


def normalize_count(raw: Any) -> int | None:
    """
    Normalize user input to an integer count or None (blank or garbled).
    """

    return parse_integer(raw)


def classify_count(count: int | None, on_hand: int | None) -> CountStatus:
    """
    Bucket the absolute count/on-hand difference. An absent on_hand counts as 0.
    """

    if count is None:
        return CountStatus.UNSET
    diff = abs(count - (on_hand or 0))
    if diff == 0:
        return CountStatus.EXACT
    if diff <= NEAR_THRESHOLD:
        return CountStatus.NEAR
    if diff <= MODERATE_THRESHOLD:
        return CountStatus.MODERATE
    return CountStatus.FAR


def can_edit(record: EntryRecord, principal: Principal) -> bool:
    return principal.is_admin or record.assigned_to == principal.username


@dataclass(frozen=True)
class PendingEdit:
    """
    Handle for one optimistic edit, used to confirm or fail it later.
    """

    entry_id: int
    version: int
    record: EntryRecord


@dataclass(frozen=True)
class TrackedEntry:
    record: EntryRecord
    sync_status: SyncStatus = SyncStatus.CONFIRMED
    sync_error: str | None = None

    @property
    def count_status(self) -> CountStatus:
        return classify_count(self.record.count, self.record.on_hand)

    @property
    def color(self) -> str:
        return STATUS_COLORS[self.count_status]


class EntryState:
    """
    Thread-safe holder of the active report's rows, in upload_index order.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._file_id: int | None = None
        self._order: list[int] = []
        self._entries: dict[int, TrackedEntry] = {}
        self._versions: dict[int, int] = {}
        self._version_counter = itertools.count(1)

    @property
    def file_id(self) -> int | None:
        return self._file_id

    def __len__(self) -> int:
        return len(self._order)

    def replace(self, file_id: int, records: list[EntryRecord]) -> None:
        """
        Swap in a freshly loaded row list in one step.
        """

        entries = {record.id: TrackedEntry(record=record) for record in records}
        order = [record.id for record in records]
        with self._lock:
            self._file_id = file_id
            self._order = order
            self._entries = entries
            self._versions = {}

    def get(self, entry_id: int) -> TrackedEntry:
        with self._lock:
            tracked = self._entries.get(entry_id)
        if tracked is None:
            raise EntryNotLoadedError(f"Entry {entry_id} is not part of the loaded report.")
        return tracked

    def apply_edit(self, entry_id: int, *, count: int | None, entered_by: str) -> PendingEdit:
        """
        Optimistically set count/entered_by and mark the row pending.
        """

        with self._lock:
            tracked = self._entries.get(entry_id)
            if tracked is None:
                raise EntryNotLoadedError(f"Entry {entry_id} is not part of the loaded report.")
            record = dc_replace(tracked.record, count=count, entered_by=entered_by)
            version = next(self._version_counter)
            self._versions[entry_id] = version
            self._entries[entry_id] = TrackedEntry(record=record, sync_status=SyncStatus.PENDING)
        return PendingEdit(entry_id=entry_id, version=version, record=record)

    def confirm(self, edit: PendingEdit, record: EntryRecord | None = None) -> bool:
        """
        Mark ``edit`` as stored. Returns False when a newer edit superseded it
        or the row is no longer loaded.
        """

        with self._lock:
            if not self._is_latest(edit):
                return False
            confirmed = record if record is not None else edit.record
            self._entries[edit.entry_id] = TrackedEntry(record=confirmed)
        return True

    def fail(self, edit: PendingEdit, error: str) -> bool:
        """
        Mark ``edit`` as not stored. The optimistic value stays in place.
        """

        with self._lock:
            if not self._is_latest(edit):
                return False
            current = self._entries[edit.entry_id]
            self._entries[edit.entry_id] = TrackedEntry(
                record=current.record,
                sync_status=SyncStatus.FAILED,
                sync_error=error,
            )
        return True

    def snapshot(self) -> tuple[EntryRecord, ...]:
        with self._lock:
            return tuple(self._entries[entry_id].record for entry_id in self._order)

    def tracked(self) -> tuple[TrackedEntry, ...]:
        with self._lock:
            return tuple(self._entries[entry_id] for entry_id in self._order)

    def unconfirmed(self) -> list[int]:
        with self._lock:
            return [
                entry_id
                for entry_id in self._order
                if self._entries[entry_id].sync_status is not SyncStatus.CONFIRMED
            ]

    def next_editable_index(self, start: int, principal: Principal) -> int | None:
        """
        Position of the next row after ``start`` the principal may edit.
        """

        records = self.snapshot()
        for position in range(start + 1, len(records)):
            if can_edit(records[position], principal):
                return position
        return None

    def _is_latest(self, edit: PendingEdit) -> bool:
        if edit.entry_id not in self._entries:
            return False
        return self._versions.get(edit.entry_id) == edit.version
