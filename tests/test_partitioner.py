"""
tests/test_partitioner.py

Pytest unit tests for splitting upload rows across counters.

Coverage
--------
- Contiguous blocks in upload order, last user absorbs the remainder
- upload_index is exactly 0..N-1
- More users than rows, a single user
- Duplicate and blank usernames
- Empty user and row selections raise before anything is built
"""

from __future__ import annotations

import pytest

from app.domain.errors import EmptyUpload, IngestError, NoUsersSelected
from app.domain.inventory import ParsedRow
from app.services.partitioner import block_sizes, chunk_size_for, partition_rows, unique_users


def _rows(count: int) -> list[ParsedRow]:
    return [ParsedRow(sku=f"SKU-{i}", on_hand=i, description=f"Item {i}") for i in range(count)]


# ---------------------------------------------------------------------------
# Block assignment
# ---------------------------------------------------------------------------


class TestPartitionRows:
    def test_ten_rows_three_users(self) -> None:
        entries = partition_rows(_rows(10), ["u0", "u1", "u2"], file_id=7)

        assert [entry.assigned_to for entry in entries] == [
            "u0", "u0", "u0", "u0",
            "u1", "u1", "u1", "u1",
            "u2", "u2",
        ]

    def test_upload_index_is_dense_and_ordered(self) -> None:
        entries = partition_rows(_rows(23), ["a", "b", "c", "d"], file_id=1)

        assert [entry.upload_index for entry in entries] == list(range(23))
        assert [entry.sku for entry in entries] == [f"SKU-{i}" for i in range(23)]

    def test_every_row_gets_exactly_one_selected_user(self) -> None:
        users = ["a", "b", "c"]
        entries = partition_rows(_rows(17), users, file_id=1)

        assert len(entries) == 17
        assert all(entry.assigned_to in users for entry in entries)

    def test_block_index_never_decreases(self) -> None:
        users = ["a", "b", "c", "d", "e"]
        entries = partition_rows(_rows(31), users, file_id=1)

        positions = [users.index(entry.assigned_to) for entry in entries]
        assert positions == sorted(positions)

    def test_last_user_absorbs_remainder(self) -> None:
        assert block_sizes(10, ["a", "b", "c", "d"]) == {"a": 3, "b": 3, "c": 3, "d": 1}

    def test_more_users_than_rows_leaves_trailing_users_empty(self) -> None:
        entries = partition_rows(_rows(2), ["a", "b", "c"], file_id=1)

        assert [entry.assigned_to for entry in entries] == ["a", "b"]
        assert block_sizes(2, ["a", "b", "c"]) == {"a": 1, "b": 1, "c": 0}

    def test_single_user_gets_everything(self) -> None:
        entries = partition_rows(_rows(5), ["solo"], file_id=1)

        assert {entry.assigned_to for entry in entries} == {"solo"}

    def test_carries_row_fields_and_file_id(self) -> None:
        rows = [ParsedRow(sku="A1", on_hand=4, description="Widget", count=3)]

        (entry,) = partition_rows(rows, ["a"], file_id=42)

        assert entry.file_id == 42
        assert entry.on_hand == 4
        assert entry.description == "Widget"
        assert entry.count == 3
        assert entry.entered_by is None

    def test_duplicate_users_do_not_get_two_blocks(self) -> None:
        entries = partition_rows(_rows(4), ["a", "b", "a", " "], file_id=1)

        assert [entry.assigned_to for entry in entries] == ["a", "a", "b", "b"]


# ---------------------------------------------------------------------------
# Rejected selections
# ---------------------------------------------------------------------------


class TestRejectedSelections:
    def test_no_users_raises(self) -> None:
        with pytest.raises(NoUsersSelected):
            partition_rows(_rows(5), [], file_id=1)

    def test_blank_users_count_as_none(self) -> None:
        with pytest.raises(NoUsersSelected):
            block_sizes(5, ["", "  "])

    def test_no_rows_raises_empty_upload(self) -> None:
        with pytest.raises(EmptyUpload):
            partition_rows([], ["a"], file_id=1)

    def test_empty_upload_is_an_ingest_error(self) -> None:
        assert issubclass(EmptyUpload, IngestError)

    def test_missing_users_reported_before_missing_rows(self) -> None:
        with pytest.raises(NoUsersSelected):
            chunk_size_for(0, 0)


def test_unique_users_keeps_first_seen_order() -> None:
    assert unique_users(["b", "a", "b", " c ", ""]) == ["b", "a", "c"]
