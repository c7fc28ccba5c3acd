"""Pydantic schemas for packing lists."""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field


class PackingListCreate(BaseModel):
    """Schema for creating a packing list."""

    name: str = Field(..., max_length=200)
    description: Optional[str] = None
    camp_date: Optional[date] = None


class PackingListUpdate(BaseModel):
    """Schema for updating a packing list."""

    name: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    camp_date: Optional[date] = None


class PackingListItemCreate(BaseModel):
    """Schema for adding an item to a list."""

    item_id: str
    quantity: int = 1
    notes: Optional[str] = None


class PackingListItemUpdate(BaseModel):
    """Schema for updating a list entry."""

    quantity: Optional[int] = None
    notes: Optional[str] = None
    is_packed: Optional[bool] = None


class PackingListItemResponse(BaseModel):
    """A list entry with the item name resolved."""

    id: str
    packing_list_id: str
    item_id: str
    item_name: str
    quantity: int
    notes: Optional[str] = None
    is_packed: bool


class PackingListSummary(BaseModel):
    """List overview for listings."""

    id: str
    name: str
    description: Optional[str] = None
    camp_date: Optional[date] = None
    item_count: int = 0
    packed_count: int = 0


class PackingListWithItems(BaseModel):
    """A list with all its entries."""

    id: str
    name: str
    description: Optional[str] = None
    camp_date: Optional[date] = None
    entries: list[PackingListItemResponse] = []

    @property
    def packed_count(self) -> int:
        return sum(1 for entry in self.entries if entry.is_packed)
