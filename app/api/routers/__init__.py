"""
app/api/routers package marker.
"""

from app.api.routers.auth import router as auth_router
from app.api.routers.entries import router as entries_router
from app.api.routers.exports import router as exports_router
from app.api.routers.reports import router as reports_router
from app.api.routers.users import router as users_router

__all__ = [
    "auth_router",
    "entries_router",
    "exports_router",
    "reports_router",
    "users_router",
]
