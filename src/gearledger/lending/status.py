"""Loan status rules.

The overdue definition lives here once, in two forms: a plain function for
loaded rows and a SQL clause for queries. The ledger, the overdue scanner and
the reports all use these.
"""

import math
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from sqlalchemy import and_
from sqlalchemy.sql.elements import ColumnElement

from .models import Loan

ONE_DAY = timedelta(days=1)


class LoanStatus(str, Enum):
    """Derived status of a loan."""

    ACTIVE = "active"
    OVERDUE = "overdue"
    RETURNED = "returned"


def is_overdue(
    closed_at: Optional[datetime],
    expected_return: datetime,
    now: datetime,
) -> bool:
    """A loan is overdue when it is still open and now is past the due time."""
    return closed_at is None and now > expected_return


def days_overdue(expected_return: datetime, now: datetime) -> int:
    """Whole days elapsed since the due time (0 if not yet due)."""
    if now <= expected_return:
        return 0
    return math.floor((now - expected_return) / ONE_DAY)


def loan_status(loan: Loan, now: datetime) -> LoanStatus:
    if loan.closed_at is not None:
        return LoanStatus.RETURNED
    if is_overdue(loan.closed_at, loan.expected_return, now):
        return LoanStatus.OVERDUE
    return LoanStatus.ACTIVE


def open_clause() -> ColumnElement[bool]:
    return Loan.closed_at.is_(None)


def overdue_clause(now: datetime) -> ColumnElement[bool]:
    """SQL form of is_overdue."""
    return and_(Loan.closed_at.is_(None), Loan.expected_return < now)
