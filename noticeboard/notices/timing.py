"""Date helpers for deadlines, overdue flags and lateness.

All comparisons are date-only: the time of day never changes whether a
notice is overdue.
"""
from __future__ import annotations

import re
from collections.abc import Callable
from datetime import date, datetime, timezone

from noticeboard.core.constants import DEADLINE_FORMAT, MONTH_FORMAT, AckStatus

Clock = Callable[[], datetime]

_DEADLINE_RE = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_deadline(value: str | date) -> date:
    """Parse a ``YYYY-MM-DD`` string; raise ``ValueError`` otherwise."""
    if isinstance(value, datetime):
        raise ValueError("deadline must be a calendar date without a time component")
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _DEADLINE_RE.match(value.strip()):
        raise ValueError("deadline must be in YYYY-MM-DD format.")
    try:
        return datetime.strptime(value.strip(), DEADLINE_FORMAT).date()
    except ValueError:
        raise ValueError(f"deadline {value!r} is not a valid calendar date.") from None


def is_overdue(deadline: date, status: str, today: date) -> bool:
    return status != AckStatus.COMPLETED and deadline < today


def days_lapsed(deadline: date, today: date) -> int:
    return max(0, (today - deadline).days)


def days_late(deadline: date, responded_at: datetime) -> int:
    """Whole days between the deadline and the response date, floored at zero."""
    return max(0, (responded_at.date() - deadline).days)


def month_key(moment: datetime) -> str:
    return moment.strftime(MONTH_FORMAT)
