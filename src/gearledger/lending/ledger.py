"""Lending ledger: checkout and check-in of equipment.

Each item is either AVAILABLE (no open loan) or ON_LOAN (exactly one open
loan). The one-open-loan rule is enforced by a partial unique index on
loans.item_id, so when two checkouts race for the same item the database
decides the winner and the loser gets a ConflictError.
"""

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..clock import Clock, iso_now, to_utc_naive, utcnow
from ..db.models import Item, Member
from ..db.schemas import ItemCondition
from ..db.sqlite import Database, get_db
from ..errors import ITEM_ON_LOAN, ConflictError, NotFoundError, ValidationError
from .models import Loan
from .schemas import LoanCreate, LoanSummary
from .status import LoanStatus, days_overdue, loan_status, open_clause, overdue_clause

logger = logging.getLogger(__name__)


class LendingLedger:
    """Manages equipment loans."""

    def __init__(self, db: Optional[Database] = None, clock: Optional[Clock] = None):
        """Initialize lending ledger.

        Args:
            db: Database instance
            clock: Callable returning the current time (defaults to UTC now)
        """
        self.db = db or get_db()
        self.clock = clock or utcnow

    def now(self):
        """Current time as naive UTC, from the configured clock."""
        return to_utc_naive(self.clock())

    # -------------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------------

    def checkout(self, data: LoanCreate) -> Loan:
        """Open a loan for an available item.

        Args:
            data: Loan creation data

        Returns:
            The newly opened loan

        Raises:
            ValidationError: expected return is not after the checkout time
            NotFoundError: item or member missing or deactivated
            ConflictError: the item already has an open loan
        """
        opened_at = self.now()
        expected_return = to_utc_naive(data.expected_return)
        if expected_return <= opened_at:
            raise ValidationError("Expected return must be after the checkout time")

        with self.db.get_session() as session:
            item = session.get(Item, data.item_id)
            if item is None or not item.is_active:
                raise NotFoundError(f"Item '{data.item_id}' not found")

            member = session.get(Member, data.member_id)
            if member is None or not member.is_active:
                raise NotFoundError(f"Member '{data.member_id}' not found")

            # Fast path; the unique index below is what actually settles races
            if self._find_open_loan(session, item.id) is not None:
                raise ConflictError(ITEM_ON_LOAN)

            loan = Loan(
                item_id=item.id,
                member_id=member.id,
                opened_at=opened_at,
                expected_return=expected_return,
                condition_out=data.condition_out.value,
                checkout_notes=data.notes,
                opened_by=data.opened_by,
                notification_sent=False,
            )
            session.add(loan)

            try:
                session.flush()
                session.commit()
            except IntegrityError as e:
                raise ConflictError(ITEM_ON_LOAN) from e

            session.refresh(loan)
            session.expunge(loan)

        logger.info("Checked out item %s to member %s (loan %s)", loan.item_id, loan.member_id, loan.id)
        return loan

    def checkin(
        self,
        loan_id: str,
        condition_in: ItemCondition,
        notes: Optional[str] = None,
        closed_by: Optional[str] = None,
    ) -> Loan:
        """Close an open loan.

        Args:
            loan_id: Loan ID
            condition_in: Condition of the item on return
            notes: Check-in notes
            closed_by: Who received the item

        Returns:
            The closed loan

        Raises:
            NotFoundError: no open loan with this ID (unknown or already returned)
            ValidationError: condition_in is not a known condition
        """
        try:
            condition_in = ItemCondition(condition_in)
        except ValueError as e:
            raise ValidationError(f"Unknown condition '{condition_in}'") from e

        now = self.now()

        with self.db.get_session() as session:
            opened_at = session.execute(
                select(Loan.opened_at).where(Loan.id == loan_id, open_clause())
            ).scalar_one_or_none()
            if opened_at is None:
                raise NotFoundError(f"Open loan '{loan_id}' not found")

            # closed_at never precedes opened_at, even if the clock stepped back
            closed_at = max(now, opened_at)

            result = session.execute(
                update(Loan)
                .where(Loan.id == loan_id, open_clause())
                .values(
                    closed_at=closed_at,
                    condition_in=condition_in.value,
                    checkin_notes=notes,
                    closed_by=closed_by,
                    updated_at=iso_now(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                # Closed by a concurrent check-in between the read and the write
                raise NotFoundError(f"Open loan '{loan_id}' not found")

            session.commit()
            loan = session.get(Loan, loan_id, populate_existing=True)
            session.expunge(loan)

        logger.info("Checked in loan %s (item %s)", loan.id, loan.item_id)
        return loan

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def _find_open_loan(self, session: Session, item_id: str) -> Optional[Loan]:
        stmt = select(Loan).where(Loan.item_id == item_id, open_clause())
        return session.execute(stmt).scalar_one_or_none()

    def get_loan(self, loan_id: str) -> Optional[Loan]:
        """Get a loan by ID.

        Args:
            loan_id: Loan ID

        Returns:
            Loan or None
        """
        with self.db.get_session() as session:
            loan = session.get(Loan, loan_id)
            if loan:
                session.expunge(loan)
            return loan

    def get_open_loan_for_item(self, item_id: str) -> Optional[Loan]:
        """Get the open loan for an item, if it is out."""
        with self.db.get_session() as session:
            loan = self._find_open_loan(session, item_id)
            if loan:
                session.expunge(loan)
            return loan

    def is_available(self, item_id: str) -> bool:
        """Check whether an item has no open loan."""
        return self.get_open_loan_for_item(item_id) is None

    # -------------------------------------------------------------------------
    # Listings
    # -------------------------------------------------------------------------

    def list_loans(
        self,
        status: Optional[LoanStatus] = None,
        item_id: Optional[str] = None,
        member_id: Optional[str] = None,
    ) -> list[Loan]:
        """List loans with optional filters.

        Args:
            status: active (all open loans), overdue, or returned
            item_id: Filter by item
            member_id: Filter by member

        Returns:
            Loans, newest first (overdue listings are oldest-due first)
        """
        with self.db.get_session() as session:
            stmt = select(Loan)

            if status == LoanStatus.ACTIVE:
                stmt = stmt.where(open_clause())
            elif status == LoanStatus.OVERDUE:
                stmt = stmt.where(overdue_clause(self.now()))
            elif status == LoanStatus.RETURNED:
                stmt = stmt.where(Loan.closed_at.isnot(None))
            if item_id:
                stmt = stmt.where(Loan.item_id == item_id)
            if member_id:
                stmt = stmt.where(Loan.member_id == member_id)

            if status == LoanStatus.OVERDUE:
                stmt = stmt.order_by(Loan.expected_return.asc())
            else:
                stmt = stmt.order_by(Loan.opened_at.desc())

            loans = session.execute(stmt).scalars().all()
            for loan in loans:
                session.expunge(loan)
            return list(loans)

    def list_active(self) -> list[Loan]:
        """All open loans, newest first."""
        return self.list_loans(status=LoanStatus.ACTIVE)

    def list_overdue(self) -> list[Loan]:
        """Open loans past their expected return, oldest due first."""
        return self.list_loans(status=LoanStatus.OVERDUE)

    def history_for_item(self, item_id: str) -> list[Loan]:
        """Loan history for an item, newest first."""
        return self.list_loans(item_id=item_id)

    def history_for_member(self, member_id: str) -> list[Loan]:
        """Loan history for a member, newest first."""
        return self.list_loans(member_id=member_id)

    def summarize(
        self,
        status: Optional[LoanStatus] = None,
        item_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[LoanSummary]:
        """List loans with item and member names resolved.

        Same filters and ordering as list_loans.
        """
        now = self.now()
        with self.db.get_session() as session:
            stmt = (
                select(Loan, Item.name, Member.name, Member.email)
                .join(Item, Item.id == Loan.item_id)
                .join(Member, Member.id == Loan.member_id)
            )
            if status == LoanStatus.ACTIVE:
                stmt = stmt.where(open_clause())
            elif status == LoanStatus.OVERDUE:
                stmt = stmt.where(overdue_clause(now))
            elif status == LoanStatus.RETURNED:
                stmt = stmt.where(Loan.closed_at.isnot(None))
            if item_id:
                stmt = stmt.where(Loan.item_id == item_id)

            if status == LoanStatus.OVERDUE:
                stmt = stmt.order_by(Loan.expected_return.asc())
            else:
                stmt = stmt.order_by(Loan.opened_at.desc())
            if limit:
                stmt = stmt.limit(limit)

            summaries = []
            for loan, item_name, member_name, member_email in session.execute(stmt).all():
                summaries.append(
                    LoanSummary(
                        id=loan.id,
                        item_id=loan.item_id,
                        item_name=item_name,
                        member_id=loan.member_id,
                        member_name=member_name,
                        member_email=member_email,
                        opened_at=loan.opened_at,
                        expected_return=loan.expected_return,
                        closed_at=loan.closed_at,
                        condition_out=ItemCondition(loan.condition_out),
                        condition_in=ItemCondition(loan.condition_in) if loan.condition_in else None,
                        status=loan_status(loan, now),
                        days_overdue=(
                            days_overdue(loan.expected_return, now) if loan.closed_at is None else 0
                        ),
                    )
                )
            return summaries
