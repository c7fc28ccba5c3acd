"""Report aggregator: CSV exports and dashboard numbers.

Overdue rows are selected with the same overdue_clause the ledger uses, so
the overdue export and LendingLedger.list_overdue() always agree for a given
clock reading.
"""

import csv
import logging
from io import StringIO
from pathlib import Path
from typing import Optional, Sequence

from sqlalchemy import exists, func, select

from ..clock import Clock, format_timestamp, to_utc_naive, utcnow
from ..db.models import Category, Item, Member
from ..db.sqlite import Database, get_db
from ..lending.ledger import LendingLedger
from ..lending.models import Loan
from ..lending.status import LoanStatus, days_overdue, open_clause, overdue_clause
from .schemas import (
    CheckoutHistoryRow,
    DashboardStats,
    ExportKind,
    ExportResult,
    InventoryRow,
    OverdueRow,
)

logger = logging.getLogger(__name__)

RECENT_CHECKOUTS_LIMIT = 5

DEFAULT_FILENAMES = {
    ExportKind.ITEMS: "inventory_items.csv",
    ExportKind.CHECKOUTS: "checkout_history.csv",
    ExportKind.OVERDUE: "overdue_items.csv",
}


def default_filename(kind: ExportKind) -> str:
    """Suggested download name for an export."""
    return DEFAULT_FILENAMES[ExportKind(kind)]


def render_csv(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    """Render rows as CSV with every value quoted and LF line endings."""
    buffer = StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return buffer.getvalue().rstrip("\n")


class ReportAggregator:
    """Builds tabular reports over the registry and the ledger."""

    def __init__(
        self,
        db: Optional[Database] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize aggregator.

        Args:
            db: Database instance
            clock: Callable returning the current time (defaults to UTC now)
        """
        self.db = db or get_db()
        self.clock = clock or utcnow

    def now(self):
        return to_utc_naive(self.clock())

    # ========================================================================
    # Rows
    # ========================================================================

    def inventory_rows(self) -> list[InventoryRow]:
        """Active items with their category names, by name."""
        with self.db.get_session() as session:
            stmt = (
                select(Item, Category.name)
                .join(Category, Category.id == Item.category_id)
                .where(Item.is_active.is_(True))
                .order_by(Item.name.asc())
            )
            return [
                InventoryRow(
                    name=item.name,
                    description=item.description,
                    serial_number=item.serial_number,
                    category=category_name,
                    condition=item.condition,
                    qr_code=item.scan_token,
                    notes=item.notes,
                )
                for item, category_name in session.execute(stmt).all()
            ]

    def checkout_history_rows(self) -> list[CheckoutHistoryRow]:
        """Every loan, newest checkout first."""
        with self.db.get_session() as session:
            stmt = (
                select(Loan, Item.name, Member.name)
                .join(Item, Item.id == Loan.item_id)
                .join(Member, Member.id == Loan.member_id)
                .order_by(Loan.opened_at.desc())
            )
            return [
                CheckoutHistoryRow(
                    item_name=item_name,
                    member_name=member_name,
                    checked_out=format_timestamp(loan.opened_at),
                    expected_return=format_timestamp(loan.expected_return),
                    checked_in=format_timestamp(loan.closed_at),
                    condition_out=loan.condition_out,
                    condition_in=loan.condition_in or "",
                    status="Active" if loan.closed_at is None else "Returned",
                )
                for loan, item_name, member_name in session.execute(stmt).all()
            ]

    def overdue_rows(self) -> list[OverdueRow]:
        """Overdue loans, oldest due first."""
        now = self.now()
        with self.db.get_session() as session:
            stmt = (
                select(Loan, Item.name, Member.name, Member.email)
                .join(Item, Item.id == Loan.item_id)
                .join(Member, Member.id == Loan.member_id)
                .where(overdue_clause(now))
                .order_by(Loan.expected_return.asc())
            )
            return [
                OverdueRow(
                    loan_id=loan.id,
                    item_name=item_name,
                    member_name=member_name,
                    member_email=member_email or "",
                    checked_out=format_timestamp(loan.opened_at),
                    expected_return=format_timestamp(loan.expected_return),
                    days_overdue=days_overdue(loan.expected_return, now),
                )
                for loan, item_name, member_name, member_email in session.execute(stmt).all()
            ]

    # ========================================================================
    # CSV export
    # ========================================================================

    def _rows_for(self, kind: ExportKind):
        kind = ExportKind(kind)
        if kind == ExportKind.ITEMS:
            return InventoryRow.HEADERS, self.inventory_rows()
        if kind == ExportKind.CHECKOUTS:
            return CheckoutHistoryRow.HEADERS, self.checkout_history_rows()
        return OverdueRow.HEADERS, self.overdue_rows()

    def export_csv(self, kind: ExportKind) -> str:
        """Render one report as CSV text.

        Args:
            kind: Which report

        Returns:
            Header line plus one line per row, joined with newlines
        """
        headers, rows = self._rows_for(kind)
        return render_csv(headers, [row.as_row() for row in rows])

    def write_export(self, kind: ExportKind, output_path: Path) -> ExportResult:
        """Write one report to a file.

        Args:
            kind: Which report
            output_path: Destination file

        Returns:
            ExportResult with the number of rows written
        """
        kind = ExportKind(kind)
        headers, rows = self._rows_for(kind)
        output_path = Path(output_path)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(render_csv(headers, [row.as_row() for row in rows]), encoding="utf-8")
        except OSError as e:
            logger.warning("Could not write %s export to %s: %s", kind.value, output_path, e)
            return ExportResult(success=False, kind=kind, error=str(e))

        logger.info("Exported %d %s rows to %s", len(rows), kind.value, output_path)
        return ExportResult(
            success=True,
            kind=kind,
            file_path=output_path,
            records_exported=len(rows),
        )

    # ========================================================================
    # Dashboard
    # ========================================================================

    def get_dashboard_stats(self) -> DashboardStats:
        """Headline counts plus the most recent open loans."""
        now = self.now()
        with self.db.get_session() as session:
            total_items = session.execute(
                select(func.count(Item.id)).where(Item.is_active.is_(True))
            ).scalar_one()

            checked_out_items = session.execute(
                select(func.count(Item.id)).where(
                    Item.is_active.is_(True),
                    exists().where(Loan.item_id == Item.id, open_clause()),
                )
            ).scalar_one()

            overdue_items = session.execute(
                select(func.count(Loan.id)).where(overdue_clause(now))
            ).scalar_one()

            total_members = session.execute(
                select(func.count(Member.id)).where(Member.is_active.is_(True))
            ).scalar_one()

        recent = LendingLedger(self.db, clock=self.clock).summarize(
            status=LoanStatus.ACTIVE, limit=RECENT_CHECKOUTS_LIMIT
        )

        return DashboardStats(
            total_items=total_items,
            available_items=total_items - checked_out_items,
            checked_out_items=checked_out_items,
            overdue_items=overdue_items,
            total_members=total_members,
            recent_checkouts=recent,
        )
