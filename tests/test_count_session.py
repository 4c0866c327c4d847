"""
tests/test_count_session.py

Pytest unit tests for loading reports and recording counts through a
CountSession backed by the in-memory store.
"""

from __future__ import annotations

import pytest

from app.domain.errors import EntryAccessError, EntryNotLoadedError
from app.domain.inventory import Principal
from app.services.count_session import CountSession
from app.services.entry_state import SyncStatus
from app.services.session_registry import SessionRegistry
from app.stores.errors import StoreReadError, StoreUpdateError
from tests.fakes import InMemoryRowStore, seed_report

ADMIN = Principal(username="admin", role="admin")
ALICE = Principal(username="alice", role="user")


@pytest.fixture()
def store() -> InMemoryRowStore:
    return InMemoryRowStore(users=[("admin", "pw", "admin"), ("alice", "pw", "user"), ("bob", "pw", "user")])


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class TestLoadReport:
    def test_non_admin_pages_through_own_rows(self, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=5000, users=["alice", "bob"])
        session = CountSession(store=store, principal=ALICE, page_size=1000)

        result = session.load_report(report.id)

        assert result.complete is True
        assert result.pages == 3
        assert len(result.rows) == 2500
        assert {row.assigned_to for row in result.rows} == {"alice"}
        indexes = [row.upload_index for row in result.rows]
        assert indexes == sorted(indexes)
        assert [call["offset"] for call in store.query_calls] == [0, 1000, 2000]
        assert {call["assigned_to"] for call in store.query_calls} == {"alice"}

    def test_admin_sees_every_row(self, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=30, users=["alice", "bob"])
        session = CountSession(store=store, principal=ADMIN, page_size=10)

        result = session.load_report(report.id)

        assert len(result.rows) == 30
        assert result.pages == 4
        assert store.query_calls[0]["assigned_to"] is None

    def test_exact_multiple_ends_on_empty_page(self, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=20, users=["alice"])
        session = CountSession(store=store, principal=ALICE, page_size=10)

        result = session.load_report(report.id)

        assert len(result.rows) == 20
        assert result.pages == 3

    def test_read_failure_keeps_partial_rows(self, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=25, users=["alice"])
        store.fail_query_at_offset = 20
        session = CountSession(store=store, principal=ALICE, page_size=10)

        result = session.load_report(report.id)

        assert result.complete is False
        assert result.error
        assert len(result.rows) == 20
        assert len(session.state) == 20
        assert session.active_report_id == report.id

    def test_reload_replaces_previous_report(self, store: InMemoryRowStore) -> None:
        first = seed_report(store, rows=3, users=["alice"])
        second = seed_report(store, rows=2, users=["alice"])
        session = CountSession(store=store, principal=ALICE, page_size=10)

        session.load_report(first.id)
        session.load_report(second.id)

        assert session.active_report_id == second.id
        assert len(session.state) == 2


# ---------------------------------------------------------------------------
# Recording counts
# ---------------------------------------------------------------------------


class TestRecordCount:
    def test_persists_and_confirms(self, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=4, users=["alice", "bob"])
        session = CountSession(store=store, principal=ALICE, page_size=10)
        session.load_report(report.id)
        entry_id = session.state.snapshot()[0].id

        stored = session.record_count(entry_id, " 12 ")

        assert stored.count == 12
        assert stored.entered_by == "alice"
        assert store.entries[entry_id].count == 12
        assert store.update_calls[-1]["assigned_to"] == "alice"
        assert session.state.get(entry_id).sync_status is SyncStatus.CONFIRMED

    def test_garbled_input_clears_count(self, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=1, users=["alice"])
        session = CountSession(store=store, principal=ALICE, page_size=10)
        session.load_report(report.id)
        entry_id = session.state.snapshot()[0].id
        session.record_count(entry_id, 5)

        stored = session.record_count(entry_id, "12abc")

        assert stored.count is None
        assert store.entries[entry_id].count is None

    def test_admin_update_is_not_restricted(self, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=2, users=["alice", "bob"])
        session = CountSession(store=store, principal=ADMIN, page_size=10)
        session.load_report(report.id)
        bob_row = next(row for row in session.state.snapshot() if row.assigned_to == "bob")

        session.record_count(bob_row.id, 3)

        assert store.update_calls[-1]["assigned_to"] is None
        assert store.entries[bob_row.id].entered_by == "admin"

    def test_update_failure_keeps_value_and_reraises(self, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=1, users=["alice"])
        session = CountSession(store=store, principal=ALICE, page_size=10)
        session.load_report(report.id)
        entry_id = session.state.snapshot()[0].id
        store.fail_update_ids.add(entry_id)

        with pytest.raises(StoreUpdateError):
            session.record_count(entry_id, 7)

        tracked = session.state.get(entry_id)
        assert tracked.record.count == 7
        assert tracked.sync_status is SyncStatus.FAILED
        assert store.entries[entry_id].count is None

    def test_reload_reconciles_failed_edit(self, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=1, users=["alice"])
        session = CountSession(store=store, principal=ALICE, page_size=10)
        session.load_report(report.id)
        entry_id = session.state.snapshot()[0].id
        store.fail_update_ids.add(entry_id)
        with pytest.raises(StoreUpdateError):
            session.record_count(entry_id, 7)

        session.load_report(report.id)

        assert session.state.get(entry_id).record.count is None
        assert session.state.unconfirmed() == []

    def test_cannot_edit_unloaded_entry(self, store: InMemoryRowStore) -> None:
        session = CountSession(store=store, principal=ALICE, page_size=10)

        with pytest.raises(EntryNotLoadedError):
            session.record_count(1, 3)

    def test_cannot_edit_someone_elses_row(self, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=2, users=["alice", "bob"])
        admin_session = CountSession(store=store, principal=ADMIN, page_size=10)
        admin_session.load_report(report.id)
        bob_row = next(row for row in admin_session.state.snapshot() if row.assigned_to == "bob")
        alice_session = CountSession(store=store, principal=ALICE, page_size=10, state=admin_session.state)

        with pytest.raises(EntryAccessError):
            alice_session.record_count(bob_row.id, 1)
        assert store.update_calls == []


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestSessionWithReport:
    def test_remembers_last_load(self, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=3, users=["alice"])
        session = CountSession(store=store, principal=ALICE, page_size=2)

        result = session.load_report(report.id)

        assert session.last_load is result

    def test_incomplete_load_raises(self, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=3, users=["alice"])
        store.fail_query_at_offset = 2
        registry = SessionRegistry(store=store, page_size=2)

        with pytest.raises(StoreReadError, match="2 rows read"):
            registry.session_with_report(ALICE, report.id)

    def test_incomplete_load_kept_when_allowed(self, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=3, users=["alice"])
        store.fail_query_at_offset = 2
        registry = SessionRegistry(store=store, page_size=2)

        session = registry.session_with_report(ALICE, report.id, require_complete=False)

        assert session.last_load.complete is False
        assert len(session.state.snapshot()) == 2

    def test_partial_load_is_retried(self, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=3, users=["alice"])
        registry = SessionRegistry(store=store, page_size=2)
        store.fail_query_at_offset = 2
        registry.session_with_report(ALICE, report.id, require_complete=False)
        store.fail_query_at_offset = None

        session = registry.session_with_report(ALICE, report.id)

        assert session.last_load.complete is True
        assert len(session.state.snapshot()) == 3

    def test_complete_load_is_reused(self, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=3, users=["alice"])
        registry = SessionRegistry(store=store, page_size=2)
        registry.session_with_report(ALICE, report.id)
        calls = len(store.query_calls)

        registry.session_with_report(ALICE, report.id)

        assert len(store.query_calls) == calls
