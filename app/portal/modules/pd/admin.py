from __future__ import annotations

from flask import Blueprint, jsonify

from app.portal.db import record_store
from app.portal.modules.crud import json_payload, register_collection
from app.portal.modules.pd.service import (
    add_project_update,
    project_metrics,
    set_project_metrics,
    set_project_status,
)
from app.portal.rbac import require_module

bp = Blueprint("pd", __name__)

register_collection(
    bp,
    "rd-projects",
    metrics=lambda: project_metrics(record_store("rd-projects").all()),
    entries=("documents",),
)


@bp.post("/rd-projects/<record_id>/updates")
@require_module("pd")
def project_update_add(record_id: str):
    data = json_payload()
    entry = add_project_update(
        record_store("rd-projects"),
        record_id,
        content=(data.get("content") or "").strip(),
        responsible=(data.get("responsible") or "").strip(),
    )
    return jsonify(entry), 201


@bp.put("/rd-projects/<record_id>/status")
@require_module("pd")
def project_status_set(record_id: str):
    data = json_payload()
    return jsonify(set_project_status(record_store("rd-projects"), record_id, data.get("status")))


@bp.put("/rd-projects/<record_id>/metrics")
@require_module("pd")
def project_metrics_set(record_id: str):
    return jsonify(set_project_metrics(record_store("rd-projects"), record_id, json_payload()))
