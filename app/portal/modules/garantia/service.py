from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from app.portal.store import RecordStore
from app.portal.utils import days_between

RESOLVED_STATUSES = ("resolved", "closed")


def add_history(store: RecordStore, claim_id: str, entry: Mapping[str, Any]) -> dict[str, Any]:
    """
    Record a handling step (action, details, replacement/repair, responsible).
    Recording a step resolves the claim.
    """
    cleaned = {k: v for k, v in entry.items() if v not in (None, "")}
    return store.append_entry(claim_id, "history", cleaned, status="resolved")


def warranty_metrics(claims: list[dict[str, Any]]) -> dict[str, Any]:
    """
    `avgResolutionDays` is measured from creation to the last update of
    resolved/closed claims; `resolutionRate` is a percentage.
    """
    resolved = [c for c in claims if c.get("status") in RESOLVED_STATUSES]
    spans = [days_between(c.get("createdAt"), c.get("updatedAt")) or 0.0 for c in resolved]
    total = len(claims)
    return {
        "total": total,
        "resolved": len(resolved),
        "avgResolutionDays": round(sum(spans) / (len(resolved) or 1)),
        "resolutionRate": round(len(resolved) / total * 100, 1) if total else 0.0,
    }
