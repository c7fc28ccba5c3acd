"""Database module for local SQLite storage."""

from .models import Base, Category, Item, Member
from .schemas import (
    CategoryCreate,
    CategoryResponse,
    CategorySummary,
    ItemCondition,
    ItemCreate,
    ItemResponse,
    ItemUpdate,
    MemberCreate,
    MemberResponse,
    MemberRole,
)
from .sqlite import Database, get_db, reset_db

__all__ = [
    "Base",
    "Category",
    "Item",
    "Member",
    "CategoryCreate",
    "CategoryResponse",
    "CategorySummary",
    "ItemCondition",
    "ItemCreate",
    "ItemResponse",
    "ItemUpdate",
    "MemberCreate",
    "MemberResponse",
    "MemberRole",
    "Database",
    "get_db",
    "reset_db",
]
