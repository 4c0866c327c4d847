"""
app/api/routers/auth.py

Sign-in endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from app.api.dependencies import get_current_principal
from app.domain.errors import InvalidCredentialsError
from app.domain.inventory import Principal
from app.schemas.inventory import LoginRequest, PrincipalResponse
from app.services.auth_service import AuthService, get_auth_service
from app.services.session_registry import SessionRegistry, get_session_registry
from app.stores.errors import StoreReadError

router = APIRouter(prefix="/auth", tags=["auth"])


def _principal_response(principal: Principal) -> PrincipalResponse:
    return PrincipalResponse(
        username=principal.username,
        role=principal.role,
        is_admin=principal.is_admin,
    )


@router.post("/login", response_model=PrincipalResponse)
def login(
    payload: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> PrincipalResponse:
    """
    Check a username/password pair and return the account's role.
    """

    try:
        principal = auth_service.authenticate(payload.username, payload.password)
    except InvalidCredentialsError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
    except StoreReadError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Unable to verify credentials.",
        ) from exc
    return _principal_response(principal)


@router.get("/me", response_model=PrincipalResponse)
def me(principal: Principal = Depends(get_current_principal)) -> PrincipalResponse:
    return _principal_response(principal)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    principal: Principal = Depends(get_current_principal),
    registry: SessionRegistry = Depends(get_session_registry),
) -> Response:
    """
    Forget the caller's loaded report.
    """

    registry.drop(principal.username)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
