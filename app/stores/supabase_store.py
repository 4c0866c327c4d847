"""
app/stores/supabase_store.py

Row store backed by a Supabase project's PostgREST endpoint.
"""

from __future__ import annotations

import hmac
import logging
import time
from collections.abc import Sequence
from datetime import datetime
from typing import Any

import pandas as pd
import requests

from app.config import SupabaseSettings
from app.domain.inventory import EntryRecord, NewEntry, Principal, ReportSummary, UserAccount
from app.stores.base import entry_from_mapping
from app.stores.errors import EntryNotFoundError, StoreReadError, StoreUpdateError, StoreWriteError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
_IDEMPOTENT_METHODS = {"GET", "HEAD"}


class SupabaseRowStore:
    """
    Talks to the `users`, `files` and `entries` tables through PostgREST.

    Only reads are retried (when SUPABASE_MAX_RETRIES > 0); writes are sent
    exactly once so a timeout never duplicates an upload batch.
    """

    def __init__(
        self,
        *,
        settings: SupabaseSettings,
        timeout_seconds: float,
        session: requests.Session | None = None,
    ) -> None:
        if not settings.url or not settings.api_key:
            raise RuntimeError("SUPABASE_URL and SUPABASE_API_KEY must be set for the supabase backend.")
        self._base_url = f"{settings.url.rstrip('/')}/rest/v1"
        self._session = session or requests.Session()
        self._timeout_seconds = timeout_seconds
        self._max_retries = settings.max_retries
        self._backoff_initial_seconds = settings.backoff_initial_seconds
        self._backoff_multiplier = settings.backoff_multiplier
        self._headers = {
            "apikey": settings.api_key,
            "Authorization": f"Bearer {settings.api_key}",
            "Accept-Profile": settings.schema,
            "Content-Profile": settings.schema,
        }

    def list_reports(self) -> list[ReportSummary]:
        try:
            rows = self._request_json(
                method="GET",
                table="files",
                params={"select": "id,created_at,uploaded_by", "order": "created_at.desc"},
            )
        except requests.RequestException as exc:
            raise StoreReadError("Failed to list reports.") from exc
        return [_report_from_json(row) for row in rows]

    def list_users(self) -> list[UserAccount]:
        try:
            rows = self._request_json(
                method="GET",
                table="users",
                params={"select": "username,role", "order": "username.asc"},
            )
        except requests.RequestException as exc:
            raise StoreReadError("Failed to list users.") from exc
        return [UserAccount(username=row["username"], role=row.get("role") or "user") for row in rows]

    def create_report(self, created_by: str) -> ReportSummary:
        try:
            rows = self._request_json(
                method="POST",
                table="files",
                json_body=[{"uploaded_by": created_by}],
                prefer="return=representation",
            )
        except requests.RequestException as exc:
            raise StoreWriteError("Failed to create report.") from exc
        if not rows:
            raise StoreWriteError("Report was not created.")
        return _report_from_json(rows[0])

    def insert_entries(self, entries: Sequence[NewEntry]) -> int:
        """
        Insert all entries of one upload in a single request (one transaction).
        """

        if not entries:
            return 0
        try:
            self._request(
                method="POST",
                table="entries",
                json_body=[entry.to_payload() for entry in entries],
                prefer="return=minimal",
            )
        except requests.RequestException as exc:
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
        params: dict[str, Any] = {
            "select": "*",
            "file_id": f"eq.{file_id}",
            "order": "upload_index.asc",
            "offset": offset,
            "limit": limit,
        }
        if assigned_to is not None:
            params["assigned_to"] = f"eq.{assigned_to}"
        try:
            rows = self._request_json(method="GET", table="entries", params=params)
        except requests.RequestException as exc:
            raise StoreReadError("Failed to load entries.") from exc
        return [entry_from_mapping(row) for row in rows]

    def update_entry(
        self,
        entry_id: int,
        *,
        count: int | None,
        entered_by: str,
        assigned_to: str | None = None,
    ) -> EntryRecord:
        params = {"id": f"eq.{entry_id}"}
        if assigned_to is not None:
            params["assigned_to"] = f"eq.{assigned_to}"
        try:
            rows = self._request_json(
                method="PATCH",
                table="entries",
                params=params,
                json_body={"count": count, "entered_by": entered_by},
                prefer="return=representation",
            )
        except requests.RequestException as exc:
            raise StoreUpdateError(f"Failed to save count for entry {entry_id}.") from exc
        if not rows:
            raise EntryNotFoundError(f"Entry {entry_id} not found.")
        return entry_from_mapping(rows[0])

    def authenticate(self, username: str, password: str) -> Principal | None:
        try:
            rows = self._request_json(
                method="GET",
                table="users",
                params={"select": "username,role,password", "username": f"eq.{username}"},
            )
        except requests.RequestException as exc:
            raise StoreReadError("Failed to verify credentials.") from exc
        if len(rows) != 1:
            return None
        row = rows[0]
        stored = str(row.get("password") or "")
        if not hmac.compare_digest(stored.encode("utf-8"), password.encode("utf-8")):
            return None
        return Principal(username=row["username"], role=row.get("role") or "user")

    def _request_json(
        self,
        *,
        method: str,
        table: str,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        prefer: str | None = None,
    ) -> list[dict[str, Any]]:
        response = self._request(
            method=method,
            table=table,
            params=params,
            json_body=json_body,
            prefer=prefer,
        )
        try:
            payload = response.json()
        except ValueError as exc:
            raise requests.RequestException(f"{table}: response was not valid JSON.") from exc
        if not isinstance(payload, list):
            raise requests.RequestException(f"{table}: expected a JSON array.")
        return payload

    def _request(
        self,
        *,
        method: str,
        table: str,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        prefer: str | None = None,
    ) -> requests.Response:
        """
        Execute one PostgREST request, retrying idempotent reads with backoff.
        """

        url = f"{self._base_url}/{table}"
        headers = dict(self._headers)
        if prefer:
            headers["Prefer"] = prefer
        max_retries = self._max_retries if method in _IDEMPOTENT_METHODS else 0

        last_error: requests.RequestException | None = None
        for attempt in range(max_retries + 1):
            try:
                response = self._session.request(
                    method=method,
                    url=url,
                    params=params,
                    json=json_body,
                    headers=headers,
                    timeout=self._timeout_seconds,
                )
                response.raise_for_status()
                return response
            except requests.HTTPError as exc:
                last_error = exc
                status_code = exc.response.status_code if exc.response is not None else None
                if status_code not in RETRYABLE_STATUS_CODES:
                    logger.error(
                        "Row store request failed method=%s table=%s status=%s error=%s",
                        method,
                        table,
                        status_code,
                        exc,
                    )
                    raise
            except (requests.Timeout, requests.ConnectionError) as exc:
                last_error = exc

            if attempt >= max_retries:
                break

            backoff_seconds = self._backoff_initial_seconds * (self._backoff_multiplier**attempt)
            logger.warning(
                "Row store request retry method=%s table=%s attempt=%s/%s wait_seconds=%.2f",
                method,
                table,
                attempt + 1,
                max_retries,
                backoff_seconds,
            )
            time.sleep(backoff_seconds)

        logger.error(
            "Row store request failed method=%s table=%s error=%s",
            method,
            table,
            last_error,
        )
        if last_error is None:
            raise RuntimeError(f"Row store request made no attempt method={method} table={table}")
        raise last_error


def _report_from_json(row: dict[str, Any]) -> ReportSummary:
    created_raw = row.get("created_at")
    created_at: datetime | None = None
    if created_raw:
        # PostgREST trims trailing zeros from fractional seconds.
        try:
            created_at = pd.to_datetime(created_raw, utc=True).to_pydatetime()
        except ValueError:
            logger.warning("Report created_at not parseable id=%s value=%r", row.get("id"), created_raw)
    return ReportSummary(id=int(row["id"]), created_at=created_at, uploaded_by=row.get("uploaded_by"))
