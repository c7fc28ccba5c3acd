"""Manager for packing lists."""

import logging
from typing import Optional

from sqlalchemy import case, func, select

from ..db.models import Item
from ..db.sqlite import Database, get_db
from ..errors import NotFoundError, ValidationError
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

logger = logging.getLogger(__name__)


class PackingListManager:
    """Manager for packing list operations."""

    def __init__(self, db: Optional[Database] = None):
        """Initialize the packing list manager.

        Args:
            db: Database instance
        """
        self.db = db or get_db()

    # ========================================================================
    # Packing List CRUD
    # ========================================================================

    def create_list(self, data: PackingListCreate) -> PackingList:
        """Create a new packing list.

        Raises:
            ValidationError: name is blank
        """
        name = (data.name or "").strip()
        if not name:
            raise ValidationError("Packing list name is required")

        with self.db.get_session() as session:
            packing_list = PackingList(
                name=name,
                description=data.description,
                camp_date=data.camp_date,
            )
            session.add(packing_list)
            session.flush()
            session.refresh(packing_list)
            session.expunge(packing_list)

        logger.info("Created packing list %s", packing_list.id)
        return packing_list

    def get_list(self, list_id: str) -> Optional[PackingListWithItems]:
        """Get a packing list with its entries.

        Args:
            list_id: List ID

        Returns:
            List with entries or None if not found
        """
        with self.db.get_session() as session:
            packing_list = session.get(PackingList, list_id)
            if packing_list is None:
                return None

            rows = session.execute(
                select(PackingListItem, Item.name)
                .join(Item, Item.id == PackingListItem.item_id)
                .where(PackingListItem.packing_list_id == list_id)
                .order_by(Item.name.asc())
            ).all()

            return PackingListWithItems(
                id=packing_list.id,
                name=packing_list.name,
                description=packing_list.description,
                camp_date=packing_list.camp_date,
                entries=[self._to_entry_response(entry, item_name) for entry, item_name in rows],
            )

    def list_lists(self) -> list[PackingListSummary]:
        """All packing lists, newest first, with entry counts."""
        with self.db.get_session() as session:
            stmt = (
                select(
                    PackingList,
                    func.count(PackingListItem.id),
                    func.coalesce(func.sum(case((PackingListItem.is_packed.is_(True), 1), else_=0)), 0),
                )
                .outerjoin(PackingListItem, PackingListItem.packing_list_id == PackingList.id)
                .group_by(PackingList.id)
                .order_by(PackingList.created_at.desc())
            )
            return [
                PackingListSummary(
                    id=packing_list.id,
                    name=packing_list.name,
                    description=packing_list.description,
                    camp_date=packing_list.camp_date,
                    item_count=item_count,
                    packed_count=packed_count,
                )
                for packing_list, item_count, packed_count in session.execute(stmt).all()
            ]

    def update_list(self, list_id: str, updates: PackingListUpdate) -> PackingList:
        """Update a packing list.

        Raises:
            NotFoundError: list does not exist
            ValidationError: name set to blank
        """
        update_data = updates.model_dump(exclude_unset=True)
        if "name" in update_data:
            update_data["name"] = (update_data["name"] or "").strip()
            if not update_data["name"]:
                raise ValidationError("Packing list name is required")

        with self.db.get_session() as session:
            packing_list = session.get(PackingList, list_id)
            if packing_list is None:
                raise NotFoundError(f"Packing list '{list_id}' not found")

            for field, value in update_data.items():
                setattr(packing_list, field, value)

            session.flush()
            session.refresh(packing_list)
            session.expunge(packing_list)
            return packing_list

    def delete_list(self, list_id: str) -> None:
        """Delete a packing list and its entries.

        Raises:
            NotFoundError: list does not exist
        """
        with self.db.get_session() as session:
            packing_list = session.get(PackingList, list_id)
            if packing_list is None:
                raise NotFoundError(f"Packing list '{list_id}' not found")
            session.delete(packing_list)

        logger.info("Deleted packing list %s", list_id)

    # ========================================================================
    # Entries
    # ========================================================================

    def add_item(self, list_id: str, data: PackingListItemCreate) -> PackingListItem:
        """Add an item to a packing list.

        Raises:
            ValidationError: quantity below 1
            NotFoundError: list or item does not exist
        """
        if data.quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        with self.db.get_session() as session:
            if session.get(PackingList, list_id) is None:
                raise NotFoundError(f"Packing list '{list_id}' not found")
            if session.get(Item, data.item_id) is None:
                raise NotFoundError(f"Item '{data.item_id}' not found")

            entry = PackingListItem(
                packing_list_id=list_id,
                item_id=data.item_id,
                quantity=data.quantity,
                notes=data.notes,
                is_packed=False,
            )
            session.add(entry)
            session.flush()
            session.refresh(entry)
            session.expunge(entry)
            return entry

    def update_entry(self, entry_id: str, updates: PackingListItemUpdate) -> PackingListItem:
        """Change quantity, notes or the packed flag of an entry.

        Raises:
            ValidationError: quantity below 1
            NotFoundError: entry does not exist
        """
        update_data = updates.model_dump(exclude_unset=True)
        if update_data.get("quantity") is not None and update_data["quantity"] < 1:
            raise ValidationError("Quantity must be at least 1")

        with self.db.get_session() as session:
            entry = session.get(PackingListItem, entry_id)
            if entry is None:
                raise NotFoundError(f"Packing list entry '{entry_id}' not found")

            for field, value in update_data.items():
                if value is not None or field == "notes":
                    setattr(entry, field, value)

            session.flush()
            session.refresh(entry)
            session.expunge(entry)
            return entry

    def remove_entry(self, entry_id: str) -> None:
        """Remove an entry from its list.

        Raises:
            NotFoundError: entry does not exist
        """
        with self.db.get_session() as session:
            entry = session.get(PackingListItem, entry_id)
            if entry is None:
                raise NotFoundError(f"Packing list entry '{entry_id}' not found")
            session.delete(entry)

    def get_progress(self, list_id: str) -> tuple[int, int]:
        """Packed and total entry counts for a list.

        Raises:
            NotFoundError: list does not exist
        """
        with self.db.get_session() as session:
            if session.get(PackingList, list_id) is None:
                raise NotFoundError(f"Packing list '{list_id}' not found")

            total, packed = session.execute(
                select(
                    func.count(PackingListItem.id),
                    func.coalesce(func.sum(case((PackingListItem.is_packed.is_(True), 1), else_=0)), 0),
                ).where(PackingListItem.packing_list_id == list_id)
            ).one()
            return packed, total

    # ========================================================================
    # Helpers
    # ========================================================================

    def _to_entry_response(self, entry: PackingListItem, item_name: str) -> PackingListItemResponse:
        return PackingListItemResponse(
            id=entry.id,
            packing_list_id=entry.packing_list_id,
            item_id=entry.item_id,
            item_name=item_name,
            quantity=entry.quantity,
            notes=entry.notes,
            is_packed=entry.is_packed,
        )
