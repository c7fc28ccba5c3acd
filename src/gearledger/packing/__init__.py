"""Packing lists for trips and camps."""

from .manager import PackingListManager
from .models import PackingList, PackingListItem
from .schemas import (
    PackingListCreate,
    PackingListItemCreate,
    PackingListItemResponse,
    PackingListItemUpdate,
    PackingListSummary,
    PackingListUpdate,
    PackingListWithItems,
)

__all__ = [
    "PackingListManager",
    "PackingList",
    "PackingListItem",
    "PackingListCreate",
    "PackingListItemCreate",
    "PackingListItemResponse",
    "PackingListItemUpdate",
    "PackingListSummary",
    "PackingListUpdate",
    "PackingListWithItems",
]
