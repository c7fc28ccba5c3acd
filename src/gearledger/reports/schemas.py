"""Schemas for exports and dashboard stats."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import ClassVar, Optional

from pydantic import BaseModel

from ..lending.schemas import LoanSummary


class ExportKind(str, Enum):
    """Which table to export."""

    ITEMS = "items"
    CHECKOUTS = "checkouts"
    OVERDUE = "overdue"


# ============================================================================
# Export rows
# ============================================================================


class InventoryRow(BaseModel):
    """One active item, flattened for export."""

    name: str
    description: Optional[str] = None
    serial_number: Optional[str] = None
    category: str
    condition: str
    qr_code: str
    notes: Optional[str] = None

    HEADERS: ClassVar[tuple[str, ...]] = (
        "Name",
        "Description",
        "Serial Number",
        "Category",
        "Condition",
        "QR Code",
        "Notes",
    )

    def as_row(self) -> list[str]:
        return [
            self.name,
            self.description or "",
            self.serial_number or "",
            self.category,
            self.condition,
            self.qr_code,
            self.notes or "",
        ]


class CheckoutHistoryRow(BaseModel):
    """One loan, open or closed."""

    item_name: str
    member_name: str
    checked_out: str
    expected_return: str
    checked_in: str = ""
    condition_out: str
    condition_in: str = ""
    status: str

    HEADERS: ClassVar[tuple[str, ...]] = (
        "Item Name",
        "Member Name",
        "Checked Out",
        "Expected Return",
        "Checked In",
        "Condition Out",
        "Condition In",
        "Status",
    )

    def as_row(self) -> list[str]:
        return [
            self.item_name,
            self.member_name,
            self.checked_out,
            self.expected_return,
            self.checked_in,
            self.condition_out,
            self.condition_in,
            self.status,
        ]


class OverdueRow(BaseModel):
    """One overdue loan."""

    loan_id: str
    item_name: str
    member_name: str
    member_email: str = ""
    checked_out: str
    expected_return: str
    days_overdue: int

    HEADERS: ClassVar[tuple[str, ...]] = (
        "Item Name",
        "Member Name",
        "Member Email",
        "Checked Out",
        "Expected Return",
        "Days Overdue",
    )

    def as_row(self) -> list[str]:
        return [
            self.item_name,
            self.member_name,
            self.member_email,
            self.checked_out,
            self.expected_return,
            str(self.days_overdue),
        ]


# ============================================================================
# Results
# ============================================================================


@dataclass
class ExportResult:
    """Result of an export operation."""

    success: bool
    kind: ExportKind
    file_path: Optional[Path] = None
    records_exported: int = 0
    error: Optional[str] = None


class DashboardStats(BaseModel):
    """Headline numbers for the dashboard."""

    total_items: int = 0
    available_items: int = 0
    checked_out_items: int = 0
    overdue_items: int = 0
    total_members: int = 0
    recent_checkouts: list[LoanSummary] = []
