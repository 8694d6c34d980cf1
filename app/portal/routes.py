from flask import Blueprint, g, jsonify

from app.portal.records import MODULES

bp = Blueprint("routes", __name__)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast liveness check. No storage access, minimal overhead.
    """
    return "ok", 200


@bp.get("/api/modules")
def modules_index():
    """Modules the current user may open (the sidebar)."""
    gate = getattr(g, "gate", None)
    if gate is None or not gate.is_authenticated:
        return jsonify({"error": "Authentication required."}), 401
    return jsonify({"modules": [m for m in MODULES if gate.is_authorized(m)]})
