"""SQLAlchemy models for packing lists.

Tables:
- packing_lists: Named lists of gear to bring on a trip
- packing_list_items: Items on a list, with quantity and packed flag
"""

from datetime import date
from typing import Optional

from sqlalchemy import Boolean, Date, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.models import Base, Item, _now_iso, generate_uuid


class PackingList(Base):
    """Packing list for a camp or trip."""

    __tablename__ = "packing_lists"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text)
    camp_date: Mapped[Optional[date]] = mapped_column(Date)

    created_at: Mapped[str] = mapped_column(String(40), default=_now_iso)
    updated_at: Mapped[str] = mapped_column(String(40), default=_now_iso, onupdate=_now_iso)

    entries: Mapped[list["PackingListItem"]] = relationship(
        "PackingListItem",
        back_populates="packing_list",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<PackingList(id={self.id}, name='{self.name}')>"


class PackingListItem(Base):
    """One item on a packing list."""

    __tablename__ = "packing_list_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    packing_list_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("packing_lists.id"),
        nullable=False,
        index=True,
    )
    item_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("items.id"),
        nullable=False,
        index=True,
    )
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    is_packed: Mapped[bool] = mapped_column(Boolean, default=False)

    packing_list: Mapped["PackingList"] = relationship("PackingList", back_populates="entries")
    item: Mapped["Item"] = relationship("Item")

    def __repr__(self) -> str:
        return f"<PackingListItem(list_id={self.packing_list_id}, item_id={self.item_id})>"
