"""Row schemas and result types for bulk imports."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, TypeVar

from ..errors import ValidationError


class ImportKind(str, Enum):
    """What a batch of rows describes."""

    ITEMS = "items"
    MEMBERS = "members"


@dataclass(frozen=True)
class RowSchema:
    """Columns a row of a given kind may carry."""

    required: tuple[str, ...]
    optional: tuple[str, ...] = ()

    @property
    def columns(self) -> tuple[str, ...]:
        return self.required + self.optional

    def normalize(self, raw: Any) -> dict[str, Optional[str]]:
        """Trim known columns and check required ones are present.

        Unknown columns are dropped. Blank values become None.

        Raises:
            ValidationError: raw is not a mapping, or a required column is empty
        """
        if not isinstance(raw, Mapping):
            raise ValidationError("Row is not a record")

        row: dict[str, Optional[str]] = {}
        for column in self.columns:
            value = raw.get(column)
            if value is not None:
                value = str(value).strip() or None
            row[column] = value

        for column in self.required:
            if not row[column]:
                raise ValidationError(f"Missing required field '{column}'")
        return row


ITEM_SCHEMA = RowSchema(
    required=("name", "category"),
    optional=("description", "serialNumber", "condition", "notes"),
)

MEMBER_SCHEMA = RowSchema(
    required=("name",),
    optional=("email", "phone", "role"),
)

SCHEMAS = {
    ImportKind.ITEMS: ITEM_SCHEMA,
    ImportKind.MEMBERS: MEMBER_SCHEMA,
}


E = TypeVar("E", bound=Enum)


def coerce_enum(enum_cls: type[E], value: Optional[str], default: E) -> E:
    """Map a loose text value onto an enum, falling back to default."""
    if not value:
        return default
    try:
        return enum_cls(value.strip().upper())
    except ValueError:
        return default


@dataclass
class ImportReport:
    """Result of a bulk import."""

    kind: ImportKind
    total_rows: int = 0
    success: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    created: list = field(default_factory=list)

    def add_success(self, entity: Any) -> None:
        self.success += 1
        self.created.append(entity)

    def add_failure(self, row_number: int, message: str) -> None:
        self.failed += 1
        self.errors.append(f"Row {row_number}: {message}")

    @property
    def summary(self) -> str:
        """Get summary string."""
        return f"Imported: {self.success}, Failed: {self.failed}, Total: {self.total_rows}"
