"""
app/services/auth_service.py

Username/password sign-in against the row store's users table.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from app.domain.errors import InvalidCredentialsError
from app.domain.inventory import Principal, Role
from app.stores.base import RowStore

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid username or password."


class AuthService:
    def __init__(self, *, store: RowStore) -> None:
        self._store = store

    def authenticate(self, username: str, password: str) -> Principal:
        """
        Return the caller's principal or raise InvalidCredentialsError.
        """

        name = (username or "").strip()
        if not name or not password:
            raise InvalidCredentialsError(INVALID_CREDENTIALS_MESSAGE)

        principal = self._store.authenticate(name, password)
        if principal is None:
            logger.info("Rejected sign-in for %r", name)
            raise InvalidCredentialsError(INVALID_CREDENTIALS_MESSAGE)
        if principal.role not in (Role.ADMIN, Role.USER):
            logger.warning("User %r has unknown role %r; treating as user", name, principal.role)
            principal = Principal(username=principal.username, role=Role.USER)
        return principal


@lru_cache(maxsize=1)
def get_auth_service() -> AuthService:
    from app.stores import get_row_store

    return AuthService(store=get_row_store())
