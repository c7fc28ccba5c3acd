"""Overdue scanner.

scan_and_notify() is meant to be run on a timer owned by the caller (cron,
a systemd timer, a job queue). Each overdue loan gets at most one notice:
the notification_sent flag is only set after the notifier confirms
delivery, and the flag write is conditional so overlapping scans cannot
both record it. A crash between sending and flagging can still produce a
second notice on the next run.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from ..clock import Clock, format_date, iso_now, to_utc_naive, utcnow
from ..db.models import Item, Member
from ..db.sqlite import Database, get_db
from ..lending.models import Loan
from ..lending.status import overdue_clause
from .notifier import Notifier

logger = logging.getLogger(__name__)


@dataclass
class OverdueNotice:
    """One overdue loan awaiting a notice."""

    loan_id: str
    address: str
    item_name: str
    member_name: str
    expected_return: datetime

    @property
    def due_date_text(self) -> str:
        return format_date(self.expected_return)


@dataclass
class ScanReport:
    """Result of one scan."""

    candidates: int = 0
    notified: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def summary(self) -> str:
        """Get summary string."""
        return (
            f"Candidates: {self.candidates}, "
            f"Notified: {self.notified}, "
            f"Failed: {self.failed}, "
            f"Skipped: {self.skipped}"
        )


class OverdueScanner:
    """Finds overdue loans and notifies the borrowers."""

    def __init__(
        self,
        db: Optional[Database],
        notifier: Notifier,
        clock: Optional[Clock] = None,
    ):
        """Initialize scanner.

        Args:
            db: Database instance (the global one when None)
            notifier: Delivers the notices
            clock: Callable returning the current time (defaults to UTC now)
        """
        self.notifier = notifier
        self.db = db or get_db()
        self.clock = clock or utcnow

    def find_pending(self, now: Optional[datetime] = None) -> list[OverdueNotice]:
        """Overdue open loans not yet notified whose member has an email."""
        now = to_utc_naive(now or self.clock())
        with self.db.get_session() as session:
            stmt = (
                select(Loan.id, Member.email, Item.name, Member.name, Loan.expected_return)
                .join(Item, Item.id == Loan.item_id)
                .join(Member, Member.id == Loan.member_id)
                .where(
                    overdue_clause(now),
                    Loan.notification_sent.is_(False),
                    Member.email.isnot(None),
                    Member.email != "",
                )
                .order_by(Loan.expected_return.asc())
            )
            return [
                OverdueNotice(
                    loan_id=loan_id,
                    address=email,
                    item_name=item_name,
                    member_name=member_name,
                    expected_return=expected_return,
                )
                for loan_id, email, item_name, member_name, expected_return in session.execute(stmt).all()
            ]

    def scan_and_notify(self) -> ScanReport:
        """Notify every pending overdue loan once.

        Failures for one loan are logged and counted; they never stop the
        scan and are never raised.
        """
        report = ScanReport()
        pending = self.find_pending()
        report.candidates = len(pending)

        for notice in pending:
            try:
                self._notify(notice, report)
            except SQLAlchemyError as e:
                logger.exception("Could not process overdue loan %s", notice.loan_id)
                report.failed += 1
                report.errors.append(f"{notice.address}: database error ({e.__class__.__name__})")

        logger.info("Overdue scan finished: %s", report.summary)
        return report

    def _still_pending(self, loan_id: str) -> bool:
        # Another scan or a check-in may have got there since find_pending()
        with self.db.get_session() as session:
            row = session.execute(
                select(Loan.closed_at, Loan.notification_sent).where(Loan.id == loan_id)
            ).first()
            return row is not None and row.closed_at is None and not row.notification_sent

    def _mark_sent(self, loan_id: str) -> bool:
        with self.db.get_session() as session:
            result = session.execute(
                update(Loan)
                .where(Loan.id == loan_id, Loan.notification_sent.is_(False))
                .values(notification_sent=True, updated_at=iso_now())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    def _notify(self, notice: OverdueNotice, report: ScanReport) -> None:
        if not self._still_pending(notice.loan_id):
            report.skipped += 1
            return

        try:
            sent = self.notifier.send(
                notice.address, notice.item_name, notice.member_name, notice.due_date_text
            )
        except Exception as e:  # the notifier is external; any failure stays with this loan
            logger.warning("Notifier raised for loan %s: %s", notice.loan_id, e)
            report.failed += 1
            report.errors.append(f"{notice.address}: {e}")
            return

        if not sent:
            logger.warning("Notice for loan %s to %s was not delivered", notice.loan_id, notice.address)
            report.failed += 1
            report.errors.append(f"{notice.address}: delivery failed")
            return

        report.notified += 1
        try:
            flagged = self._mark_sent(notice.loan_id)
        except SQLAlchemyError as e:
            # Delivered but unflagged; the next scan will send it again
            logger.exception("Notice for loan %s was sent but not recorded", notice.loan_id)
            report.errors.append(f"{notice.address}: sent but not recorded ({e.__class__.__name__})")
            return
        if not flagged:
            logger.warning("Loan %s was flagged by another scan while sending", notice.loan_id)
