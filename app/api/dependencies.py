"""
app/api/dependencies.py

Shared FastAPI dependencies for authentication and request validation.
"""

from __future__ import annotations

from fastapi import Depends, File, HTTPException, UploadFile, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from app.domain.errors import InvalidCredentialsError
from app.domain.inventory import Principal
from app.services.auth_service import AuthService, get_auth_service
from app.services.spreadsheet_reader import SUPPORTED_EXTENSIONS, file_extension
from app.stores.errors import StoreReadError

basic_auth = HTTPBasic(description="Username and password of a stock count account.")


def get_current_principal(
    credentials: HTTPBasicCredentials = Depends(basic_auth),
    auth_service: AuthService = Depends(get_auth_service),
) -> Principal:
    """
    Resolve HTTP Basic credentials to the caller's principal.
    """

    try:
        return auth_service.authenticate(credentials.username, credentials.password)
    except InvalidCredentialsError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Basic"},
        ) from exc
    except StoreReadError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Unable to verify credentials.",
        ) from exc


def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required.",
        )
    return principal


def get_spreadsheet_upload(file: UploadFile | None = File(default=None)) -> UploadFile:
    """
    Validate that a spreadsheet was uploaded with a supported extension.
    """

    if file is None or not (file.filename or "").strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please select a file first.",
        )

    if file_extension(file.filename) not in SUPPORTED_EXTENSIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Only {', '.join(sorted(SUPPORTED_EXTENSIONS))} files are allowed.",
        )

    return file
