"""Equipment lending ledger.

Provides functionality for:
- Checking items out to members and back in
- Enforcing one open loan per item
- Overdue detection shared with the scanner and reports
"""

from .ledger import LendingLedger
from .models import Loan
from .schemas import LoanCreate, LoanResponse, LoanSummary
from .status import LoanStatus, days_overdue, is_overdue, overdue_clause

__all__ = [
    "LendingLedger",
    "Loan",
    "LoanCreate",
    "LoanResponse",
    "LoanSummary",
    "LoanStatus",
    "days_overdue",
    "is_overdue",
    "overdue_clause",
]
