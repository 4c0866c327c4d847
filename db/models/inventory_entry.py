"""
db/models/inventory_entry.py

One SKU row of an uploaded report, with its assignment and physical count.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, ForeignKey, Identity, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, CreatedAtMixin

if TYPE_CHECKING:
    from db.models.inventory_file import InventoryFile


class InventoryEntry(Base, CreatedAtMixin):
    __tablename__ = "entries"

    id: Mapped[int] = mapped_column(BigInteger, Identity(), primary_key=True)
    file_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("files.id", ondelete="CASCADE"),
        nullable=False,
    )
    upload_index: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="0-based position in the filtered upload",
    )
    sku: Mapped[str] = mapped_column(String(255), nullable=False)
    on_hand: Mapped[int | None] = mapped_column(Integer, nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    assigned_to: Mapped[str] = mapped_column(String(120), nullable=False)
    count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    entered_by: Mapped[str | None] = mapped_column(String(120), nullable=True)

    file: Mapped["InventoryFile"] = relationship(back_populates="entries", lazy="raise")

    __table_args__ = (
        UniqueConstraint("file_id", "upload_index", name="uq_entries_file_upload_index"),
        Index("ix_entries_file_assigned_order", "file_id", "assigned_to", "upload_index"),
    )
