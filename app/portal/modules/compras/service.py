from __future__ import annotations

from typing import Any

from app.portal.utils import days_between

PENDING_PURCHASE_STATUSES = ("requested", "approved")


def product_metrics(products: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "total": len(products),
        "uniqueSuppliers": len({p.get("supplier") or "" for p in products}),
        "withoutSupplier": sum(1 for p in products if not p.get("supplier")),
        "qualified": sum(1 for p in products if p.get("qualification")),
    }


def supplier_metrics(suppliers: list[dict[str, Any]], orders: list[dict[str, Any]]) -> dict[str, Any]:
    """
    `active` counts suppliers with at least one purchase order;
    `avgDeliveryDays` averages expected delivery minus order date over orders that carry both dates.
    """
    ordering = {o.get("supplierId") for o in orders}
    spans = [days_between(o.get("orderDate"), o.get("expectedDeliveryDate")) for o in orders]
    spans = [d for d in spans if d is not None]
    return {
        "total": len(suppliers),
        "active": sum(1 for s in suppliers if s.get("id") in ordering),
        "withDocs": sum(1 for s in suppliers if s.get("documents")),
        "avgDeliveryDays": round(sum(spans) / len(spans)) if spans else 0,
    }


def purchase_order_metrics(orders: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "total": len(orders),
        "pending": sum(1 for o in orders if o.get("status") in PENDING_PURCHASE_STATUSES),
        "delivered": sum(1 for o in orders if o.get("status") == "delivered"),
        "totalQuantity": sum(o.get("quantity") or 0 for o in orders),
    }
