from __future__ import annotations

from datetime import date, datetime

from app.portal.store import parse_timestamp


def parse_date(s: str | None) -> date | None:
    """Parse a YYYY-MM-DD date (or a full ISO timestamp). Unparseable values give None."""
    if not s or not isinstance(s, str):
        return None
    s = s.strip()
    if not s:
        return None
    if len(s) > 10:
        dt = parse_timestamp(s)
        return dt.date() if dt else None
    try:
        return date.fromisoformat(s)
    except ValueError:
        return None


def days_between(start: str | None, end: str | None) -> float | None:
    a, b = parse_timestamp(start), parse_timestamp(end)
    if a is None or b is None:
        return None
    return (b - a).total_seconds() / 86400


def today() -> date:
    return datetime.utcnow().date()
