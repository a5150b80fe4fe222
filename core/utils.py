from __future__ import annotations

from datetime import datetime, date, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")


def iso_now() -> str:
    # Use UTC ISO timestamps for consistency.
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def to_decimal(v: Any) -> Decimal:
    """Quantities come back from sqlite as float; go through str() to keep the entered digits."""
    if v is None or v == "":
        return ZERO
    try:
        d = v if isinstance(v, Decimal) else Decimal(str(v))
    except InvalidOperation:
        raise ValueError(f"Not a number: {v!r}")
    # blank spreadsheet cells arrive as NaN
    if not d.is_finite():
        raise ValueError(f"Not a number: {v!r}")
    return d


def to_date(v: Any) -> date:
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    # '2024-05-01' or '2024-05-01T08:30:00...'
    return date.fromisoformat(str(v).strip()[:10])


def to_datetime(v: Any) -> datetime:
    if isinstance(v, datetime):
        return v
    if isinstance(v, date):
        return datetime(v.year, v.month, v.day)
    s = str(v).strip().replace("Z", "+00:00")
    dt = datetime.fromisoformat(s)
    # Ledger timestamps are compared naive; drop tz after normalising to UTC.
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def previous_day(d: date) -> date:
    return d - timedelta(days=1)
