"""Bulk import of items and members."""

from .csv_source import read_csv_rows
from .reconciler import AUTO_CATEGORY_DESCRIPTION, HEADER_OFFSET, BulkReconciler
from .schemas import (
    ITEM_SCHEMA,
    MEMBER_SCHEMA,
    ImportKind,
    ImportReport,
    RowSchema,
    coerce_enum,
)

__all__ = [
    "AUTO_CATEGORY_DESCRIPTION",
    "HEADER_OFFSET",
    "BulkReconciler",
    "ITEM_SCHEMA",
    "MEMBER_SCHEMA",
    "ImportKind",
    "ImportReport",
    "RowSchema",
    "coerce_enum",
    "read_csv_rows",
]
