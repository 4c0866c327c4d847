"""
tests/test_api.py

Route tests for the FastAPI app with the row store replaced by the
in-memory fake through dependency overrides.
"""

from __future__ import annotations

import csv
import io
from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from app.services.auth_service import AuthService, get_auth_service
from app.services.session_registry import SessionRegistry, get_session_registry
from app.services.spreadsheet_reader import SpreadsheetIngestor
from app.services.upload_service import UploadService, get_upload_service
from app.stores import get_row_store
from tests.fakes import InMemoryRowStore, seed_report

ADMIN_AUTH = ("admin", "admin-pw")
ALICE_AUTH = ("alice", "alice-pw")
BOB_AUTH = ("bob", "bob-pw")


@pytest.fixture()
def store() -> InMemoryRowStore:
    return InMemoryRowStore(
        users=[("admin", "admin-pw", "admin"), ("alice", "alice-pw", "user"), ("bob", "bob-pw", "user")]
    )


@pytest.fixture()
def client(store: InMemoryRowStore) -> TestClient:
    application = create_app()
    registry = SessionRegistry(store=store, page_size=2)
    upload_service = UploadService(
        store=store,
        ingestor=SpreadsheetIngestor(max_validation_errors=10, log_validation_errors=False),
    )
    application.dependency_overrides[get_row_store] = lambda: store
    application.dependency_overrides[get_auth_service] = lambda: AuthService(store=store)
    application.dependency_overrides[get_session_registry] = lambda: registry
    application.dependency_overrides[get_upload_service] = lambda: upload_service
    return TestClient(application)


def _upload(client: TestClient, content: bytes, users: list[str], filename: str = "stock.csv"):
    return client.post(
        "/reports",
        auth=ADMIN_AUTH,
        files={"file": (filename, content, "text/csv")},
        data={"users": users},
    )


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class TestAuth:
    def test_health_is_public(self, client: TestClient) -> None:
        assert client.get("/health").json() == {"status": "ok"}

    def test_login(self, client: TestClient) -> None:
        response = client.post("/auth/login", json={"username": "admin", "password": "admin-pw"})

        assert response.status_code == 200
        assert response.json() == {"username": "admin", "role": "admin", "is_admin": True}

    def test_login_rejects_bad_password(self, client: TestClient) -> None:
        response = client.post("/auth/login", json={"username": "admin", "password": "nope"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid username or password."

    def test_protected_routes_need_credentials(self, client: TestClient) -> None:
        assert client.get("/reports").status_code == 401
        assert client.get("/reports", auth=("alice", "wrong")).status_code == 401

    def test_users_is_admin_only(self, client: TestClient) -> None:
        assert client.get("/users", auth=ALICE_AUTH).status_code == 403
        names = [user["username"] for user in client.get("/users", auth=ADMIN_AUTH).json()]
        assert names == ["admin", "alice", "bob"]


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------


class TestUpload:
    def test_upload_assigns_rows(self, client: TestClient, store: InMemoryRowStore) -> None:
        content = b"SKU,On Hand\nA,1\nB,2\nC,3\nD,oops\n"

        response = _upload(client, content, ["alice", "bob"])

        assert response.status_code == 201
        body = response.json()
        assert body["rows_inserted"] == 3
        assert body["rows_failed"] == 1
        assert body["assignments"] == {"alice": 2, "bob": 1}
        assert body["validation_errors"][0]["row_number"] == 5
        assert len(store.reports) == 1

    def test_upload_without_users(self, client: TestClient, store: InMemoryRowStore) -> None:
        response = _upload(client, b"SKU,On Hand\nA,1\n", [])

        assert response.status_code == 400
        assert store.reports == []

    def test_upload_rejects_unsupported_extension(self, client: TestClient) -> None:
        response = _upload(client, b"whatever", ["alice"], filename="stock.pdf")

        assert response.status_code == 400

    def test_upload_is_admin_only(self, client: TestClient) -> None:
        response = client.post(
            "/reports",
            auth=ALICE_AUTH,
            files={"file": ("stock.csv", b"SKU,On Hand\nA,1\n", "text/csv")},
            data={"users": ["alice"]},
        )

        assert response.status_code == 403

    def test_insert_failure_reports_orphan(self, client: TestClient, store: InMemoryRowStore) -> None:
        store.fail_insert = True

        response = _upload(client, b"SKU,On Hand\nA,1\n", ["alice"])

        assert response.status_code == 502
        assert response.json()["detail"]["orphaned_report_id"] == store.reports[0].id


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------


class TestEntries:
    def test_non_admin_sees_own_rows_without_on_hand(self, client: TestClient, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=5, users=["alice", "bob"])

        body = client.get(f"/reports/{report.id}/entries", auth=ALICE_AUTH).json()

        assert body["complete"] is True
        assert body["pages"] == 2
        assert [entry["upload_index"] for entry in body["entries"]] == [0, 2, 4]
        assert all(entry["on_hand"] is None for entry in body["entries"])
        assert all(entry["status"] == "unset" for entry in body["entries"])

    def test_admin_sees_everything(self, client: TestClient, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=5, users=["alice", "bob"])

        body = client.get(f"/reports/{report.id}/entries", auth=ADMIN_AUTH).json()

        assert len(body["entries"]) == 5
        assert body["entries"][3]["on_hand"] == 3

    def test_partial_load_is_flagged(self, client: TestClient, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=5, users=["alice"])
        store.fail_query_at_offset = 4

        body = client.get(f"/reports/{report.id}/entries", auth=ALICE_AUTH).json()

        assert body["complete"] is False
        assert body["error"]
        assert len(body["entries"]) == 4

    def test_record_count(self, client: TestClient, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=2, users=["alice", "bob"])
        entry_id = next(record.id for record in store.entries.values() if record.assigned_to == "alice")

        response = client.patch(
            f"/reports/{report.id}/entries/{entry_id}",
            auth=ALICE_AUTH,
            json={"count": "25"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 25
        assert body["entered_by"] == "alice"
        assert body["status"] == "far"
        assert body["color"] == "red"
        assert body["sync_status"] == "confirmed"
        assert store.entries[entry_id].count == 25

    def test_cannot_edit_other_users_row(self, client: TestClient, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=2, users=["alice", "bob"])
        bob_id = next(record.id for record in store.entries.values() if record.assigned_to == "bob")

        response = client.patch(f"/reports/{report.id}/entries/{bob_id}", auth=ALICE_AUTH, json={"count": 1})

        assert response.status_code == 404
        assert store.update_calls == []

    def test_failed_save_is_visible_until_reload(self, client: TestClient, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=1, users=["alice"])
        entry_id = next(iter(store.entries))
        store.fail_update_ids.add(entry_id)

        response = client.patch(f"/reports/{report.id}/entries/{entry_id}", auth=ALICE_AUTH, json={"count": 4})
        assert response.status_code == 502

        cached = client.get(f"/reports/{report.id}/entries?reload=false", auth=ALICE_AUTH).json()
        assert cached["entries"][0]["count"] == 4
        assert cached["entries"][0]["sync_status"] == "failed"

        reloaded = client.get(f"/reports/{report.id}/entries", auth=ALICE_AUTH).json()
        assert reloaded["entries"][0]["count"] is None
        assert reloaded["entries"][0]["sync_status"] == "confirmed"

    def test_cached_listing_keeps_partial_flag(self, client: TestClient, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=5, users=["alice"])
        store.fail_query_at_offset = 4
        client.get(f"/reports/{report.id}/entries", auth=ALICE_AUTH)

        cached = client.get(f"/reports/{report.id}/entries?reload=false", auth=ALICE_AUTH).json()

        assert cached["complete"] is False
        assert cached["error"]

    def test_edit_after_failed_read_is_a_store_error(self, client: TestClient, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=2, users=["alice"])
        entry_id = next(iter(store.entries))
        store.fail_query_at_offset = 0

        response = client.patch(f"/reports/{report.id}/entries/{entry_id}", auth=ALICE_AUTH, json={"count": 3})

        assert response.status_code == 502
        assert "partially loaded" in response.json()["detail"]
        assert store.update_calls == []


# ---------------------------------------------------------------------------
# Exports
# ---------------------------------------------------------------------------


class TestExports:
    def test_mismatch_csv(self, client: TestClient, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=3, users=["alice"])
        entry_id = next(record.id for record in store.entries.values() if record.upload_index == 1)
        client.patch(f"/reports/{report.id}/entries/{entry_id}", auth=ADMIN_AUTH, json={"count": 9})

        response = client.get(f"/reports/{report.id}/exports/mismatch", auth=ADMIN_AUTH)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "Mismatch_Report_" in response.headers["content-disposition"]
        rows = list(csv.reader(io.StringIO(response.text)))
        assert rows == [["SKU", "On Hand", "Count", "Difference", "User"], ["SKU-00001", "1", "9", "8", "alice"]]

    def test_mismatch_csv_is_admin_only(self, client: TestClient, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=1, users=["alice"])

        assert client.get(f"/reports/{report.id}/exports/mismatch", auth=ALICE_AUTH).status_code == 403

    @pytest.mark.parametrize(("layout", "prefix"), [("two_column", "Counts_Needed_"), ("list", "Missing_Counts_")])
    def test_missing_counts_pdf(self, client: TestClient, store: InMemoryRowStore, layout: str, prefix: str) -> None:
        report = seed_report(store, rows=3, users=["alice"])

        response = client.get(f"/reports/{report.id}/exports/missing-counts?layout={layout}", auth=ALICE_AUTH)

        assert response.status_code == 200
        assert response.content.startswith(b"%PDF")
        assert prefix in response.headers["content-disposition"]

    def test_missing_counts_rejects_unknown_layout(self, client: TestClient, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=1, users=["alice"])

        response = client.get(f"/reports/{report.id}/exports/missing-counts?layout=grid", auth=ALICE_AUTH)

        assert response.status_code == 422

    def test_assigned_sheet(self, client: TestClient, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=4, users=["alice", "bob"])

        response = client.get(f"/reports/{report.id}/exports/assigned-sheet", auth=BOB_AUTH)

        assert response.status_code == 200
        assert "Assigned SKUs for bob" in response.text
        assert "SKU-00001" in response.text
        assert "SKU-00000" not in response.text

    def test_failed_read_does_not_produce_an_export(self, client: TestClient, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=4, users=["alice"])
        for record in list(store.entries.values()):
            store.entries[record.id] = replace(record, count=(record.on_hand or 0) + 1)
        store.fail_query_at_offset = 0

        response = client.get(f"/reports/{report.id}/exports/mismatch", auth=ADMIN_AUTH)

        assert response.status_code == 502
        assert "Failed to load entries." in response.json()["detail"]

    def test_partial_read_is_retried_before_export(self, client: TestClient, store: InMemoryRowStore) -> None:
        report = seed_report(store, rows=5, users=["alice"])
        store.fail_query_at_offset = 4
        assert client.get(f"/reports/{report.id}/entries", auth=ALICE_AUTH).json()["complete"] is False

        assert client.get(f"/reports/{report.id}/exports/assigned-sheet", auth=ALICE_AUTH).status_code == 502

        store.fail_query_at_offset = None
        response = client.get(f"/reports/{report.id}/exports/assigned-sheet", auth=ALICE_AUTH)

        assert response.status_code == 200
        assert "SKU-00004" in response.text
