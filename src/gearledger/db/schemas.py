"""Pydantic schemas for registry data validation and serialization.

Create/update schemas only coerce types; business rules (blank names,
uniqueness, category resolution) are enforced by the registries so they
raise gearledger errors rather than pydantic ones.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ItemCondition(str, Enum):
    """Physical condition of an item."""

    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    FAIR = "FAIR"
    POOR = "POOR"
    DAMAGED = "DAMAGED"


class MemberRole(str, Enum):
    """Role of a member within the organization."""

    ADMIN = "ADMIN"
    LEADER = "LEADER"
    MEMBER = "MEMBER"


DEFAULT_CATEGORY_COLOR = "#3B82F6"


# ============================================================================
# Categories
# ============================================================================


class CategoryCreate(BaseModel):
    """Schema for creating a category."""

    name: str = Field(..., max_length=100)
    description: Optional[str] = None
    color: str = Field(DEFAULT_CATEGORY_COLOR, max_length=7)


class CategoryResponse(BaseModel):
    """Schema for category responses."""

    id: str
    name: str
    description: Optional[str]
    color: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CategorySummary(BaseModel):
    """Category with the number of items filed under it."""

    id: str
    name: str
    color: str
    description: Optional[str] = None
    item_count: int = 0


# ============================================================================
# Items
# ============================================================================


class ItemCreate(BaseModel):
    """Schema for creating an item."""

    name: str = Field(..., max_length=200)
    category_id: str
    description: Optional[str] = None
    serial_number: Optional[str] = Field(None, max_length=100)
    condition: ItemCondition = ItemCondition.GOOD
    notes: Optional[str] = None
    image_url: Optional[str] = None


class ItemUpdate(BaseModel):
    """Schema for updating an item. The scan token is not updatable."""

    name: Optional[str] = Field(None, max_length=200)
    category_id: Optional[str] = None
    description: Optional[str] = None
    serial_number: Optional[str] = Field(None, max_length=100)
    condition: Optional[ItemCondition] = None
    notes: Optional[str] = None
    image_url: Optional[str] = None
    is_active: Optional[bool] = None


class ItemResponse(BaseModel):
    """Schema for item responses."""

    id: str
    name: str
    description: Optional[str]
    serial_number: Optional[str]
    category_id: str
    condition: ItemCondition
    scan_token: str
    image_url: Optional[str]
    notes: Optional[str]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ============================================================================
# Members
# ============================================================================


class MemberCreate(BaseModel):
    """Schema for creating a member."""

    name: str = Field(..., max_length=200)
    email: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=50)
    role: MemberRole = MemberRole.MEMBER


class MemberResponse(BaseModel):
    """Schema for member responses."""

    id: str
    name: str
    email: Optional[str]
    phone: Optional[str]
    role: MemberRole
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
