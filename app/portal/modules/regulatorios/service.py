from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import date, timedelta
from typing import Any

from app.portal.store import RecordStore
from app.portal.utils import parse_date, today

EXPIRING_WINDOW_DAYS = 30


def refresh_expired(store: RecordStore, as_of: date | None = None) -> list[str]:
    """Mark documents past their validity date as `expired`. Returns the ids that changed."""
    as_of = as_of or today()

    def _lapsed(doc: dict[str, Any]) -> bool:
        validity = parse_date(doc.get("validityDate"))
        return doc.get("status") != "expired" and validity is not None and validity < as_of

    changed = []
    for doc in store.query(_lapsed):
        store.update(doc["id"], {"status": "expired"})
        changed.append(doc["id"])
    return changed


def regulatory_metrics(docs: list[dict[str, Any]], as_of: date | None = None) -> dict[str, Any]:
    horizon = (as_of or today()) + timedelta(days=EXPIRING_WINDOW_DAYS)

    def _expiring(doc: dict[str, Any]) -> bool:
        validity = parse_date(doc.get("validityDate"))
        return doc.get("status") != "expired" and validity is not None and validity <= horizon

    return {
        "total": len(docs),
        "expired": sum(1 for d in docs if d.get("status") == "expired"),
        "expiringSoon": sum(1 for d in docs if _expiring(d)),
        "updated": sum(1 for d in docs if d.get("status") == "updated"),
    }


def product_filter(product_id: str | None) -> list[Callable[[Mapping[str, Any]], bool]]:
    product_id = (product_id or "").strip()
    if not product_id or product_id == "all":
        return []
    return [lambda doc: doc.get("productId") == product_id]
