"""
app/services/session_registry.py

Per-user count sessions for the HTTP API.

HTTP requests are stateless, so the API keeps one CountSession per username
in process memory. Each worker process has its own registry.
"""

from __future__ import annotations

import threading
from functools import lru_cache

from app.config import get_row_store_settings
from app.domain.inventory import Principal
from app.services.count_session import CountSession
from app.stores.base import RowStore
from app.stores.errors import StoreReadError


class SessionRegistry:
    def __init__(self, *, store: RowStore, page_size: int) -> None:
        self._store = store
        self._page_size = page_size
        self._sessions: dict[str, CountSession] = {}
        self._lock = threading.Lock()

    def session_for(self, principal: Principal) -> CountSession:
        """
        Return the caller's session, replacing it if their role changed.
        """

        with self._lock:
            session = self._sessions.get(principal.username)
            if session is None or session.principal != principal:
                session = CountSession(
                    store=self._store,
                    principal=principal,
                    page_size=self._page_size,
                )
                self._sessions[principal.username] = session
            return session

    def session_with_report(
        self,
        principal: Principal,
        file_id: int,
        *,
        require_complete: bool = True,
    ) -> CountSession:
        """
        Return the caller's session with ``file_id`` loaded.

        A previous partial load is retried when ``require_complete`` is set,
        and StoreReadError is raised if the report still cannot be read in
        full. Without it, partially loaded rows are kept as they are.
        """

        session = self.session_for(principal)
        result = session.last_load
        if (
            session.active_report_id != file_id
            or result is None
            or result.file_id != file_id
            or (require_complete and not result.complete)
        ):
            result = session.load_report(file_id)
        if require_complete and not result.complete:
            raise StoreReadError(
                f"Report {file_id} could not be fully loaded ({len(result.rows)} rows read): {result.error}"
            )
        return session

    def drop(self, username: str) -> None:
        with self._lock:
            self._sessions.pop(username, None)


@lru_cache(maxsize=1)
def get_session_registry() -> SessionRegistry:
    from app.stores import get_row_store

    return SessionRegistry(
        store=get_row_store(),
        page_size=get_row_store_settings().page_size,
    )
