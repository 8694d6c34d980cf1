from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import date
from typing import Any

from app.portal.errors import ValidationError
from app.portal.store import RecordStore
from app.portal.utils import parse_date, today

OPEN_STATUSES = ("planned", "inProgress")


def refresh_delays(store: RecordStore, as_of: date | None = None) -> list[str]:
    """
    Mark open production orders whose expected end date has passed as `delayed`.
    Returns the ids that changed.
    """
    as_of = as_of or today()

    def _overdue(order: dict[str, Any]) -> bool:
        end = parse_date(order.get("expectedEndDate"))
        return order.get("status") in OPEN_STATUSES and end is not None and end < as_of

    changed = []
    for order in store.query(_overdue):
        store.update(order["id"], {"status": "delayed"})
        changed.append(order["id"])
    return changed


def complete_order(store: RecordStore, order_id: str, actual_end: date | None = None) -> dict[str, Any]:
    return store.update(
        order_id,
        {"status": "completed", "actualEndDate": (actual_end or today()).isoformat()},
    )


def production_metrics(orders: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "total": len(orders),
        "inProgress": sum(1 for o in orders if o.get("status") == "inProgress"),
        "delayed": sum(1 for o in orders if o.get("status") == "delayed"),
        "completed": sum(1 for o in orders if o.get("status") == "completed"),
    }


def start_date_filter(start: str | None, end: str | None) -> list[Callable[[Mapping[str, Any]], bool]]:
    """
    Inclusive `startDate` range (YYYY-MM-DD). Orders without a start date
    fall outside any range that has a bound.
    """
    bounds = {}
    for name, value in (("start", start), ("end", end)):
        value = (value or "").strip()
        if not value:
            continue
        day = parse_date(value)
        if day is None:
            raise ValidationError(f"'{name}' must be a date (YYYY-MM-DD).")
        bounds[name] = day
    if not bounds:
        return []

    def _in_range(order: Mapping[str, Any]) -> bool:
        day = parse_date(order.get("startDate"))
        if day is None:
            return False
        if "start" in bounds and day < bounds["start"]:
            return False
        return not ("end" in bounds and day > bounds["end"])

    return [_in_range]
