from __future__ import annotations

import io

from flask import Blueprint, current_app, jsonify, request, send_file

from app.portal.db import blob_storage
from app.portal.errors import ValidationError
from app.portal.modules.crud import json_payload
from app.portal.modules.export.service import configure_sync, current_sync_config
from app.portal.rbac import require_admin
from app.portal.sync import export_archive, run_build, save_sync_config

bp = Blueprint("export", __name__)

ARCHIVE_NAME = "portal-project.zip"


@bp.get("/config")
@require_admin
def sync_config_get():
    return jsonify(current_sync_config(current_app))


@bp.put("/config")
@require_admin
def sync_config_put():
    app = current_app._get_current_object()  # type: ignore[attr-defined]
    config = save_sync_config(blob_storage(), current_sync_config(app), json_payload())
    configure_sync(app, config)
    return jsonify(config)


@bp.post("/sync")
@require_admin
def sync_now():
    path = (current_sync_config(current_app).get("networkPath") or "").strip()
    if not path:
        raise ValidationError("Configure the network path first.")
    written = current_app.extensions["sync_bridge"].run(path)
    return jsonify({"path": path, "files": [p.name for p in written]})


@bp.post("/archive")
@require_admin
def archive_download():
    buf = io.BytesIO()
    added = export_archive(current_app.config["PROJECT_ROOT"], current_app.config["EXPORT_FILES"], buf)
    buf.seek(0)
    current_app.logger.info("Project archive built with %d file(s)", len(added))
    return send_file(buf, mimetype="application/zip", as_attachment=True, download_name=ARCHIVE_NAME)


@bp.post("/build")
@require_admin
def build_run():
    output = run_build(current_app.config["BUILD_COMMAND"], cwd=current_app.config["PROJECT_ROOT"])
    return jsonify({"ok": True, "output": output})


@bp.get("/errors")
@require_admin
def error_log_get():
    """Persisted error log with per-module counts (?module= narrows the entries)."""
    log = current_app.extensions["error_log"]
    module = (request.args.get("module") or "").strip() or None
    return jsonify({"stats": log.stats(), "entries": log.entries(module)})
