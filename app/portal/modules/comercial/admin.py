from __future__ import annotations

from flask import Blueprint

from app.portal.db import record_store
from app.portal.modules.comercial.service import customer_metrics, opportunity_metrics, sales_order_metrics
from app.portal.modules.crud import register_collection

bp = Blueprint("comercial", __name__)

register_collection(bp, "customers", metrics=lambda: customer_metrics(record_store("customers").all()))
register_collection(bp, "opportunities", metrics=lambda: opportunity_metrics(record_store("opportunities").all()))
register_collection(bp, "orders", metrics=lambda: sales_order_metrics(record_store("orders").all()))
