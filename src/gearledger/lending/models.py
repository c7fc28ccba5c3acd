"""SQLAlchemy model for equipment loans.

Tables:
- loans: One row per checkout; closed_at stays NULL while the item is out
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.models import Base, Item, Member, _now_iso, generate_uuid


class Loan(Base):
    """Loan model - a single checkout-to-check-in record."""

    __tablename__ = "loans"
    __table_args__ = (
        # At most one open loan per item
        Index(
            "uq_loans_one_open_per_item",
            "item_id",
            unique=True,
            sqlite_where=text("closed_at IS NULL"),
            postgresql_where=text("closed_at IS NULL"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    item_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("items.id"),
        nullable=False,
        index=True,
    )
    member_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("members.id"),
        nullable=False,
        index=True,
    )

    # Naive UTC
    opened_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    expected_return: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, index=True)

    # Condition tracking
    condition_out: Mapped[str] = mapped_column(String(20), nullable=False)
    condition_in: Mapped[Optional[str]] = mapped_column(String(20))

    notification_sent: Mapped[bool] = mapped_column(Boolean, default=False, index=True)

    # Notes and actors for each event
    checkout_notes: Mapped[Optional[str]] = mapped_column(Text)
    checkin_notes: Mapped[Optional[str]] = mapped_column(Text)
    opened_by: Mapped[Optional[str]] = mapped_column(String(200))
    closed_by: Mapped[Optional[str]] = mapped_column(String(200))

    created_at: Mapped[str] = mapped_column(String(40), default=_now_iso)
    updated_at: Mapped[str] = mapped_column(String(40), default=_now_iso, onupdate=_now_iso)

    item: Mapped["Item"] = relationship("Item")
    member: Mapped["Member"] = relationship("Member")

    def __repr__(self) -> str:
        state = "open" if self.closed_at is None else "closed"
        return f"<Loan(id={self.id}, item_id={self.item_id}, {state})>"

    @property
    def is_open(self) -> bool:
        """Check if the item is still out."""
        return self.closed_at is None
