"""Pydantic schemas for equipment loans."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ..db.schemas import ItemCondition
from .status import LoanStatus


class LoanCreate(BaseModel):
    """Schema for opening a loan (checkout)."""

    item_id: str
    member_id: str
    expected_return: datetime
    condition_out: ItemCondition = ItemCondition.GOOD
    notes: Optional[str] = None
    opened_by: Optional[str] = Field(None, max_length=200)


class LoanResponse(BaseModel):
    """Schema for loan responses."""

    id: str
    item_id: str
    member_id: str
    opened_at: datetime
    expected_return: datetime
    closed_at: Optional[datetime]
    condition_out: ItemCondition
    condition_in: Optional[ItemCondition]
    notification_sent: bool
    checkout_notes: Optional[str]
    checkin_notes: Optional[str]
    opened_by: Optional[str]
    closed_by: Optional[str]

    model_config = {"from_attributes": True}


class LoanSummary(BaseModel):
    """Loan with item and member names resolved, for listings."""

    id: str
    item_id: str
    item_name: str
    member_id: str
    member_name: str
    member_email: Optional[str] = None
    opened_at: datetime
    expected_return: datetime
    closed_at: Optional[datetime] = None
    condition_out: ItemCondition
    condition_in: Optional[ItemCondition] = None
    status: LoanStatus
    days_overdue: int = 0
