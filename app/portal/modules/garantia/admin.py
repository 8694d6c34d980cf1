from __future__ import annotations

from flask import Blueprint, jsonify

from app.portal.db import record_store
from app.portal.modules.crud import json_payload, register_collection
from app.portal.modules.garantia.service import add_history, warranty_metrics
from app.portal.rbac import require_module

bp = Blueprint("garantia", __name__)

register_collection(
    bp,
    "warranty-claims",
    metrics=lambda: warranty_metrics(record_store("warranty-claims").all()),
    entries=(),
)


@bp.post("/warranty-claims/<record_id>/history")
@require_module("garantia")
def warranty_history_add(record_id: str):
    entry = add_history(record_store("warranty-claims"), record_id, json_payload())
    return jsonify(entry), 201
