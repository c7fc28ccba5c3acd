"""Bulk reconciliation of item and member rows into the registries.

Rows are handled one at a time, in order. A bad row is recorded in the
report and the batch carries on; only an empty or unreadable input aborts
the call.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from tqdm import tqdm

from ..db.models import Item, Member
from ..db.schemas import ItemCondition, ItemCreate, MemberCreate, MemberRole
from ..db.sqlite import Database, get_db
from ..errors import ConflictError, LedgerError, TransportError, ValidationError, from_pydantic
from ..registry import ItemRegistry, MemberRegistry
from .schemas import ITEM_SCHEMA, MEMBER_SCHEMA, ImportKind, ImportReport, coerce_enum

logger = logging.getLogger(__name__)

# Row 1 of the source is the header
HEADER_OFFSET = 2

AUTO_CATEGORY_DESCRIPTION = "Auto-created from CSV import"


class BulkReconciler:
    """Merges externally supplied rows into the item and member registries."""

    def __init__(
        self,
        db: Optional[Database] = None,
        items: Optional[ItemRegistry] = None,
        members: Optional[MemberRegistry] = None,
    ):
        """Initialize reconciler.

        Args:
            db: Database instance
            items: Item registry (built on db if omitted)
            members: Member registry (built on db if omitted)
        """
        self.db = db or get_db()
        self.items = items or ItemRegistry(self.db)
        self.members = members or MemberRegistry(self.db)

    def import_rows(
        self,
        kind: ImportKind,
        rows: Iterable[Mapping[str, Optional[str]]],
        show_progress: bool = False,
    ) -> ImportReport:
        """Import a batch of rows.

        Args:
            kind: Whether rows describe items or members
            rows: Ordered records of column name to raw text
            show_progress: Show tqdm progress bar

        Returns:
            ImportReport with counts, one error per failed row, and the
            created entities

        Raises:
            TransportError: rows could not be read
            ValidationError: there are no rows
        """
        kind = ImportKind(kind)
        records = self._read_all(rows)
        if not records:
            raise ValidationError("No rows to import")

        report = ImportReport(kind=kind, total_rows=len(records))
        handler = self._import_item_row if kind == ImportKind.ITEMS else self._import_member_row

        iterator = tqdm(records, desc=f"Importing {kind.value}", disable=not show_progress)
        for index, raw in enumerate(iterator):
            row_number = index + HEADER_OFFSET
            try:
                entity = handler(raw)
            except PydanticValidationError as e:
                error = from_pydantic(e)
                logger.warning("Row %d rejected: %s", row_number, error)
                report.add_failure(row_number, str(error))
            except LedgerError as e:
                logger.warning("Row %d rejected: %s", row_number, e)
                report.add_failure(row_number, str(e))
            except SQLAlchemyError as e:
                logger.exception("Row %d failed in the database", row_number)
                report.add_failure(row_number, f"Database error: {e.__class__.__name__}")
            else:
                report.add_success(entity)

        logger.info("Import of %s finished: %s", kind.value, report.summary)
        return report

    def _read_all(self, rows: Any) -> list:
        if rows is None:
            raise TransportError("No input supplied")
        try:
            return list(rows)
        except (TypeError, OSError, UnicodeDecodeError) as e:
            raise TransportError(f"Could not read input: {e}") from e

    def _import_item_row(self, raw: Any) -> Item:
        row = ITEM_SCHEMA.normalize(raw)

        serial = row["serialNumber"]
        if serial and self.items.get_item_by_serial(serial):
            raise ConflictError(f"Serial number '{serial}' already exists")

        condition = coerce_enum(ItemCondition, row["condition"], ItemCondition.GOOD)

        # Field limits are checked before the category is created
        data = ItemCreate(
            name=row["name"],
            category_id="",
            description=row["description"],
            serial_number=serial,
            condition=condition,
            notes=row["notes"],
        )

        category, created = self.items.find_or_create_category(
            row["category"], description=AUTO_CATEGORY_DESCRIPTION
        )
        if created:
            logger.info("Created category '%s' during import", category.name)

        return self.items.create_item(data.model_copy(update={"category_id": category.id}))

    def _import_member_row(self, raw: Any) -> Member:
        row = MEMBER_SCHEMA.normalize(raw)

        email = row["email"]
        if email and self.members.email_exists(email):
            raise ConflictError(f"Email '{email}' already exists")

        role = coerce_enum(MemberRole, row["role"], MemberRole.MEMBER)

        return self.members.create_member(
            MemberCreate(
                name=row["name"],
                email=email,
                phone=row["phone"],
                role=role,
            )
        )
