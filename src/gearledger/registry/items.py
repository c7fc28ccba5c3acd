"""Item registry: categories, items and scan tokens."""

import logging
import secrets
from typing import Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import and_, exists, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..clock import iso_now
from ..db.models import Category, Item, Member
from ..db.schemas import (
    CategoryCreate,
    CategorySummary,
    ItemCondition,
    ItemCreate,
    ItemResponse,
    ItemUpdate,
)
from ..db.sqlite import Database, get_db
from ..errors import ConflictError, NotFoundError, ValidationError, from_pydantic
from ..lending.models import Loan
from ..lending.schemas import LoanResponse

logger = logging.getLogger(__name__)

SCAN_TOKEN_BYTES = 6
SCAN_TOKEN_ATTEMPTS = 10


def generate_scan_token() -> str:
    """Generate an opaque scan token (12 upper-case hex characters)."""
    return secrets.token_hex(SCAN_TOKEN_BYTES).upper()


def build_scan_url(scan_token: str, base_url: str) -> str:
    """URL a QR renderer should encode for an item."""
    return f"{base_url.rstrip('/')}/scan?item={scan_token}"


def _clean(value: Optional[str]) -> Optional[str]:
    """Strip whitespace, turning blank strings into None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


class ItemStatus(BaseModel):
    """An item together with its current loan state, as seen by a scanner."""

    item: ItemResponse
    category_name: str
    is_available: bool
    active_loan: Optional[LoanResponse] = None
    borrower_name: Optional[str] = None


class ItemRegistry:
    """Manages items and their categories."""

    def __init__(self, db: Optional[Database] = None):
        """Initialize item registry.

        Args:
            db: Database instance
        """
        self.db = db or get_db()

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    def _find_category_by_name(self, s: Session, name: str) -> Optional[Category]:
        stmt = select(Category).where(func.lower(Category.name) == name.lower())
        return s.execute(stmt).scalar_one_or_none()

    def create_category(self, data: CategoryCreate) -> Category:
        """Create a new category.

        Raises:
            ValidationError: blank name
            ConflictError: a category with this name (any case) exists
        """
        name = _clean(data.name)
        if not name:
            raise ValidationError("Category name is required")

        with self.db.get_session() as session:
            if self._find_category_by_name(session, name):
                raise ConflictError(f"Category '{name}' already exists")

            category = Category(name=name, description=data.description, color=data.color)
            session.add(category)
            try:
                session.flush()
                session.commit()
            except IntegrityError as e:
                raise ConflictError(f"Category '{name}' already exists") from e
            session.refresh(category)
            session.expunge(category)
            return category

    def find_or_create_category(
        self, name: str, description: Optional[str] = None
    ) -> tuple[Category, bool]:
        """Look up a category by name (case-insensitive), creating it if absent.

        The new category is committed before returning so other sessions see
        it straight away. Calling this twice with the same name yields the
        same category.

        Args:
            name: Category name
            description: Description for a newly created category

        Returns:
            Tuple of (category, created)
        """
        name = _clean(name)
        if not name:
            raise ValidationError("Category name is required")
        try:
            data = CategoryCreate(name=name, description=description)
        except PydanticValidationError as e:
            raise from_pydantic(e) from e

        with self.db.get_session() as session:
            existing = self._find_category_by_name(session, name)
            if existing:
                session.expunge(existing)
                return existing, False

        try:
            category = self.create_category(data)
        except ConflictError:
            # Another writer created it between our read and insert
            with self.db.get_session() as session:
                existing = self._find_category_by_name(session, name)
                if existing is None:
                    raise
                session.expunge(existing)
                return existing, False

        logger.info("Created category '%s'", category.name)
        return category, True

    def get_category(self, category_id: str) -> Optional[Category]:
        """Get a category by ID."""
        with self.db.get_session() as session:
            category = session.get(Category, category_id)
            if category:
                session.expunge(category)
            return category

    def get_category_by_name(self, name: str) -> Optional[Category]:
        """Get a category by name (case-insensitive)."""
        with self.db.get_session() as session:
            category = self._find_category_by_name(session, name.strip())
            if category:
                session.expunge(category)
            return category

    def list_categories(self) -> list[CategorySummary]:
        """List categories by name, with how many items each holds."""
        with self.db.get_session() as session:
            stmt = (
                select(Category, func.count(Item.id))
                .outerjoin(Item, Item.category_id == Category.id)
                .group_by(Category.id)
                .order_by(Category.name)
            )
            return [
                CategorySummary(
                    id=category.id,
                    name=category.name,
                    color=category.color,
                    description=category.description,
                    item_count=count,
                )
                for category, count in session.execute(stmt).all()
            ]

    # -------------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------------

    def _serial_taken(
        self, s: Session, serial: str, exclude_id: Optional[str] = None
    ) -> bool:
        stmt = select(Item.id).where(Item.serial_number == serial)
        if exclude_id:
            stmt = stmt.where(Item.id != exclude_id)
        return s.execute(stmt).first() is not None

    def _allocate_scan_token(self, s: Session) -> str:
        """Pick a token not already used by any item, active or not."""
        for _ in range(SCAN_TOKEN_ATTEMPTS):
            token = generate_scan_token()
            taken = s.execute(select(Item.id).where(Item.scan_token == token)).first()
            if taken is None:
                return token
        raise ConflictError("Could not allocate a unique scan token")

    def create_item(self, data: ItemCreate) -> Item:
        """Create a new item and assign its scan token.

        Raises:
            ValidationError: blank name or unknown category
            ConflictError: serial number already in use
        """
        name = _clean(data.name)
        if not name:
            raise ValidationError("Item name is required")
        serial = _clean(data.serial_number)

        with self.db.get_session() as session:
            if session.get(Category, data.category_id) is None:
                raise ValidationError(f"Category '{data.category_id}' does not exist")
            if serial and self._serial_taken(session, serial):
                raise ConflictError(f"Serial number '{serial}' already exists")

            item = Item(
                name=name,
                description=_clean(data.description),
                serial_number=serial,
                category_id=data.category_id,
                condition=ItemCondition(data.condition).value,
                scan_token=self._allocate_scan_token(session),
                image_url=_clean(data.image_url),
                notes=_clean(data.notes),
                is_active=True,
            )
            session.add(item)
            try:
                session.flush()
                session.commit()
            except IntegrityError as e:
                # Lost a race on the serial (or, vanishingly rarely, the token)
                raise ConflictError(
                    f"Serial number '{serial}' already exists"
                    if serial
                    else "Item conflicts with an existing record"
                ) from e
            session.refresh(item)
            session.expunge(item)

        logger.debug("Created item %s (%s)", item.id, item.scan_token)
        return item

    def update_item(self, item_id: str, data: ItemUpdate) -> Item:
        """Update an item.

        Raises:
            NotFoundError: unknown item
            ValidationError: blank name or unknown category
            ConflictError: serial number already in use by another item
        """
        update_data = data.model_dump(exclude_unset=True)

        with self.db.get_session() as session:
            item = session.get(Item, item_id)
            if item is None:
                raise NotFoundError(f"Item '{item_id}' not found")

            for field, value in update_data.items():
                if field == "name":
                    value = _clean(value)
                    if not value:
                        raise ValidationError("Item name is required")
                elif field == "category_id":
                    if value is None or session.get(Category, value) is None:
                        raise ValidationError(f"Category '{value}' does not exist")
                elif field == "serial_number":
                    value = _clean(value)
                    if value and self._serial_taken(session, value, exclude_id=item_id):
                        raise ConflictError(f"Serial number '{value}' already exists")
                elif field == "condition":
                    if value is None:
                        continue
                    value = ItemCondition(value).value
                elif field == "is_active" and value is None:
                    continue
                elif field in ("description", "notes", "image_url"):
                    value = _clean(value)
                setattr(item, field, value)

            item.updated_at = iso_now()
            try:
                session.flush()
                session.commit()
            except IntegrityError as e:
                raise ConflictError("Item conflicts with an existing record") from e
            session.refresh(item)
            session.expunge(item)
            return item

    def get_item(self, item_id: str) -> Optional[Item]:
        """Get an item by ID."""
        with self.db.get_session() as session:
            item = session.get(Item, item_id)
            if item:
                session.expunge(item)
            return item

    def get_item_by_scan_token(self, scan_token: str) -> Optional[Item]:
        """Get an item by its scan token."""
        with self.db.get_session() as session:
            stmt = select(Item).where(Item.scan_token == scan_token.strip())
            item = session.execute(stmt).scalar_one_or_none()
            if item:
                session.expunge(item)
            return item

    def get_item_by_serial(self, serial_number: str) -> Optional[Item]:
        """Get an item by serial number."""
        with self.db.get_session() as session:
            stmt = select(Item).where(Item.serial_number == serial_number.strip())
            item = session.execute(stmt).scalar_one_or_none()
            if item:
                session.expunge(item)
            return item

    def list_items(
        self,
        category_id: Optional[str] = None,
        search: Optional[str] = None,
        condition: Optional[ItemCondition] = None,
        active_only: bool = True,
        available: Optional[bool] = None,
    ) -> list[Item]:
        """List items with optional filters.

        Args:
            category_id: Filter by category
            search: Case-insensitive match on name, description or serial
            condition: Filter by condition
            active_only: Skip deactivated items
            available: True for items with no open loan, False for items out

        Returns:
            List of items, newest first
        """
        with self.db.get_session() as session:
            stmt = select(Item)

            if active_only:
                stmt = stmt.where(Item.is_active.is_(True))
            if category_id:
                stmt = stmt.where(Item.category_id == category_id)
            if search:
                pattern = f"%{search.strip()}%"
                stmt = stmt.where(
                    or_(
                        Item.name.ilike(pattern),
                        Item.description.ilike(pattern),
                        Item.serial_number.ilike(pattern),
                    )
                )
            if condition:
                stmt = stmt.where(Item.condition == ItemCondition(condition).value)
            if available is not None:
                on_loan = exists().where(Loan.item_id == Item.id, Loan.closed_at.is_(None))
                stmt = stmt.where(~on_loan if available else on_loan)

            stmt = stmt.order_by(Item.created_at.desc())

            items = session.execute(stmt).scalars().all()
            for item in items:
                session.expunge(item)
            return list(items)

    def resolve_scan_token(self, scan_token: str) -> ItemStatus:
        """Resolve a scanned token to the item and its current loan state.

        Item, category and open loan come back from a single query.

        Raises:
            NotFoundError: no item carries this token
        """
        with self.db.get_session() as session:
            stmt = (
                select(Item, Category.name, Loan, Member.name)
                .join(Category, Category.id == Item.category_id)
                .outerjoin(Loan, and_(Loan.item_id == Item.id, Loan.closed_at.is_(None)))
                .outerjoin(Member, Member.id == Loan.member_id)
                .where(Item.scan_token == scan_token.strip())
            )
            row = session.execute(stmt).first()
            if row is None:
                raise NotFoundError(f"No item for scan token '{scan_token}'")

            item, category_name, loan, borrower_name = row
            return ItemStatus(
                item=ItemResponse.model_validate(item),
                category_name=category_name,
                is_available=loan is None,
                active_loan=LoanResponse.model_validate(loan) if loan else None,
                borrower_name=borrower_name,
            )

    def deactivate_item(self, item_id: str) -> Item:
        """Soft-delete an item. Loan history is left untouched.

        Raises:
            NotFoundError: unknown item
        """
        with self.db.get_session() as session:
            item = session.get(Item, item_id)
            if item is None:
                raise NotFoundError(f"Item '{item_id}' not found")

            item.is_active = False
            item.updated_at = iso_now()
            session.commit()
            session.refresh(item)
            session.expunge(item)
            logger.info("Deactivated item %s", item_id)
            return item
