"""
db/models/inventory_file.py

One uploaded spreadsheet (a "report"). Owns the entries created by its upload.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, Identity, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, CreatedAtMixin

if TYPE_CHECKING:
    from db.models.inventory_entry import InventoryEntry


class InventoryFile(Base, CreatedAtMixin):
    __tablename__ = "files"

    id: Mapped[int] = mapped_column(BigInteger, Identity(), primary_key=True)
    uploaded_by: Mapped[str] = mapped_column(
        String(120),
        nullable=False,
        comment="Username of the admin who uploaded the spreadsheet",
    )

    entries: Mapped[list["InventoryEntry"]] = relationship(
        back_populates="file",
        lazy="raise",
    )

    __table_args__ = (Index("ix_files_created_at", "created_at"),)
