from __future__ import annotations

from typing import Any


def customer_metrics(customers: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "total": len(customers),
        "active": sum(1 for c in customers if c.get("status") == "active"),
        "potential": sum(1 for c in customers if c.get("status") == "potential"),
    }


def opportunity_metrics(opportunities: list[dict[str, Any]]) -> dict[str, Any]:
    closed = [o for o in opportunities if o.get("status") == "closed"]
    total = len(opportunities)
    return {
        "total": total,
        "totalValue": sum(o.get("estimatedValue") or 0 for o in opportunities),
        "closed": len(closed),
        "closedValue": sum(o.get("estimatedValue") or 0 for o in closed),
        "avgProbability": (sum(o.get("closeProbability") or 0 for o in opportunities) / total) if total else 0,
    }


def sales_order_metrics(orders: list[dict[str, Any]]) -> dict[str, Any]:
    delivered = [o for o in orders if o.get("status") == "delivered"]
    return {
        "total": len(orders),
        "totalValue": sum(o.get("finalValue") or 0 for o in orders),
        "delivered": len(delivered),
        "deliveredValue": sum(o.get("finalValue") or 0 for o in delivered),
        "pending": sum(1 for o in orders if o.get("status") == "pending"),
    }
