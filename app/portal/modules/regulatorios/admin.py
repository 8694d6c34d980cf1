from __future__ import annotations

from flask import Blueprint

from app.portal.db import record_store
from app.portal.modules.crud import register_collection
from app.portal.modules.regulatorios.service import product_filter, refresh_expired, regulatory_metrics

bp = Blueprint("regulatorios", __name__)


def _refresh() -> None:
    refresh_expired(record_store("regulatory-docs"))


def _metrics() -> dict:
    _refresh()
    return regulatory_metrics(record_store("regulatory-docs").all())


register_collection(
    bp,
    "regulatory-docs",
    metrics=_metrics,
    before_list=_refresh,
    filters=lambda args: product_filter(args.get("productId")),
)
