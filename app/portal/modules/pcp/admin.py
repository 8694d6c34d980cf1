from __future__ import annotations

from flask import Blueprint, jsonify

from app.portal.db import record_store
from app.portal.modules.crud import register_collection
from app.portal.modules.pcp.service import complete_order, production_metrics, refresh_delays, start_date_filter
from app.portal.rbac import require_module

bp = Blueprint("pcp", __name__)


def _refresh() -> None:
    refresh_delays(record_store("production-orders"))


def _metrics() -> dict:
    _refresh()
    return production_metrics(record_store("production-orders").all())


register_collection(
    bp,
    "production-orders",
    metrics=_metrics,
    before_list=_refresh,
    filters=lambda args: start_date_filter(args.get("start"), args.get("end")),
)


@bp.post("/production-orders/<record_id>/complete")
@require_module("pcp")
def production_order_complete(record_id: str):
    return jsonify(complete_order(record_store("production-orders"), record_id))
