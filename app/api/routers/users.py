"""
app/api/routers/users.py

Account listing for the upload form.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.dependencies import require_admin
from app.domain.inventory import Principal
from app.schemas.inventory import UserResponse
from app.stores import get_row_store
from app.stores.base import RowStore
from app.stores.errors import StoreReadError

router = APIRouter(tags=["users"])


@router.get("/users", response_model=list[UserResponse])
def list_users(
    _: Principal = Depends(require_admin),
    store: RowStore = Depends(get_row_store),
) -> list[UserResponse]:
    """
    List every account that rows can be assigned to.
    """

    try:
        users = store.list_users()
    except StoreReadError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Unable to load users: {exc}",
        ) from exc
    return [UserResponse(username=user.username, role=user.role) for user in users]
