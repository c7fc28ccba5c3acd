"""SQLAlchemy ORM models for the equipment registry.

Tables:
- categories: Groupings for items (names unique regardless of case)
- items: Physical equipment, each with an immutable scan token
- members: People who can borrow equipment
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from .schemas import DEFAULT_CATEGORY_COLOR, ItemCondition, MemberRole


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def generate_uuid() -> str:
    """Generate a UUID string for primary keys."""
    return str(uuid4())


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Category(Base):
    """Category model - groups items for browsing and reporting."""

    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    color: Mapped[str] = mapped_column(String(7), default=DEFAULT_CATEGORY_COLOR)

    created_at: Mapped[str] = mapped_column(String(40), default=_now_iso)
    updated_at: Mapped[str] = mapped_column(String(40), default=_now_iso, onupdate=_now_iso)

    items: Mapped[list["Item"]] = relationship("Item", back_populates="category")

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, name='{self.name}')>"


# Category names are unique regardless of case
Index("uq_categories_name_lower", func.lower(Category.name), unique=True)


class Item(Base):
    """Item model - a single piece of equipment."""

    __tablename__ = "items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text)
    serial_number: Mapped[Optional[str]] = mapped_column(String(100), unique=True)

    category_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("categories.id"),
        nullable=False,
        index=True,
    )
    condition: Mapped[str] = mapped_column(String(20), default=ItemCondition.GOOD.value)

    # Assigned once at creation, never reused
    scan_token: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)

    image_url: Mapped[Optional[str]] = mapped_column(Text)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    # Soft-delete marker
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    created_at: Mapped[str] = mapped_column(String(40), default=_now_iso)
    updated_at: Mapped[str] = mapped_column(String(40), default=_now_iso, onupdate=_now_iso)

    category: Mapped["Category"] = relationship("Category", back_populates="items")

    def __repr__(self) -> str:
        return f"<Item(id={self.id}, name='{self.name}', token={self.scan_token})>"


class Member(Base):
    """Member model - someone who can borrow equipment."""

    __tablename__ = "members"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    # Stored lower-cased
    email: Mapped[Optional[str]] = mapped_column(String(200), unique=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    role: Mapped[str] = mapped_column(String(20), default=MemberRole.MEMBER.value)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    created_at: Mapped[str] = mapped_column(String(40), default=_now_iso)
    updated_at: Mapped[str] = mapped_column(String(40), default=_now_iso, onupdate=_now_iso)

    def __repr__(self) -> str:
        return f"<Member(id={self.id}, name='{self.name}', role={self.role})>"
