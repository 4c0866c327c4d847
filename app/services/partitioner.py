"""
app/services/partitioner.py

Splits validated upload rows across the selected counters.

Rows are cut into contiguous blocks in upload order:

    chunk_size = ceil(N / K)
    row i  ->  users[min(i // chunk_size, K - 1)]

so every user gets at most ``chunk_size`` rows and the last user absorbs
whatever is left. With more users than rows the trailing users get nothing.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from app.domain.errors import EmptyUpload, NoUsersSelected
from app.domain.inventory import NewEntry, ParsedRow


def unique_users(users: Sequence[str]) -> list[str]:
    """
    Drop blank and repeated usernames, keeping first-seen order.
    """

    seen: dict[str, None] = {}
    for user in users:
        name = (user or "").strip()
        if name:
            seen.setdefault(name, None)
    return list(seen)


def chunk_size_for(row_count: int, user_count: int) -> int:
    if user_count < 1:
        raise NoUsersSelected("Please select at least one user.")
    if row_count < 1:
        raise EmptyUpload("No rows found in file.")
    return math.ceil(row_count / user_count)


def assignee_index(position: int, *, chunk_size: int, user_count: int) -> int:
    return min(position // chunk_size, user_count - 1)


def block_sizes(row_count: int, users: Sequence[str]) -> dict[str, int]:
    """
    Number of rows each user receives for an upload of ``row_count`` rows.
    """

    selected = unique_users(users)
    chunk_size = chunk_size_for(row_count, len(selected))
    sizes = {user: 0 for user in selected}
    for position in range(row_count):
        sizes[selected[assignee_index(position, chunk_size=chunk_size, user_count=len(selected))]] += 1
    return sizes


def partition_rows(
    rows: Sequence[ParsedRow],
    users: Sequence[str],
    *,
    file_id: int,
) -> list[NewEntry]:
    """
    Assign every row to exactly one user and stamp its upload_index.

    Raises
    ------
    NoUsersSelected: ``users`` is empty (after dropping blanks/duplicates).
    EmptyUpload:     ``rows`` is empty.
    """

    selected = unique_users(users)
    chunk_size = chunk_size_for(len(rows), len(selected))

    return [
        NewEntry(
            file_id=file_id,
            upload_index=position,
            sku=row.sku,
            on_hand=row.on_hand,
            description=row.description,
            assigned_to=selected[
                assignee_index(position, chunk_size=chunk_size, user_count=len(selected))
            ],
            count=row.count,
        )
        for position, row in enumerate(rows)
    ]
