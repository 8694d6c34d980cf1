from __future__ import annotations

from flask import Blueprint

from app.portal.db import record_store
from app.portal.modules.compras.service import product_metrics, purchase_order_metrics, supplier_metrics
from app.portal.modules.crud import register_collection

bp = Blueprint("compras", __name__)

register_collection(bp, "products", metrics=lambda: product_metrics(record_store("products").all()))
register_collection(
    bp,
    "suppliers",
    metrics=lambda: supplier_metrics(record_store("suppliers").all(), record_store("purchase-orders").all()),
)
register_collection(
    bp,
    "purchase-orders",
    metrics=lambda: purchase_order_metrics(record_store("purchase-orders").all()),
)
