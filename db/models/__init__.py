"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.inventory_entry import InventoryEntry
from db.models.inventory_file import InventoryFile
from db.models.user import User, UserRole

__all__ = [
    "InventoryEntry",
    "InventoryFile",
    "User",
    "UserRole",
]
