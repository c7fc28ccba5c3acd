"""Time helpers.

Loan timestamps are stored as naive UTC datetimes so SQLite can compare them
directly. Anything coming in from a caller goes through to_utc_naive first.
"""

from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def iso_now() -> str:
    """Current time as an ISO string, used for created_at/updated_at."""
    return datetime.now(timezone.utc).isoformat()


def to_utc_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC. Naive values are assumed UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def format_timestamp(value: Optional[datetime]) -> str:
    """Render a stored timestamp for exports, e.g. 2026-10-19T14:05:00Z."""
    if value is None:
        return ""
    return to_utc_naive(value).strftime("%Y-%m-%dT%H:%M:%SZ")


def format_date(value: datetime) -> str:
    return to_utc_naive(value).strftime("%Y-%m-%d")
