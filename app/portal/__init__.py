import logging
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request, session
from werkzeug.exceptions import HTTPException

from app.portal.auth import StaticCredentialVerifier, bp as auth_bp, load_current_user
from app.portal.config import load_config
from app.portal.errorlog import ErrorLog
from app.portal.errors import (
    BuildError,
    InvalidCredentials,
    NotFoundError,
    StorageError,
    SyncInProgress,
    ValidationError,
)
from app.portal.routes import bp as routes_bp
from app.portal.modules.compras.admin import bp as compras_bp
from app.portal.modules.pcp.admin import bp as pcp_bp
from app.portal.modules.pd.admin import bp as pd_bp
from app.portal.modules.garantia.admin import bp as garantia_bp
from app.portal.modules.regulatorios.admin import bp as regulatorios_bp
from app.portal.modules.comercial.admin import bp as comercial_bp
from app.portal.modules.export.admin import bp as export_bp
from app.portal.storage import storage_from_config
from app.portal.store import StoreRegistry
from app.portal.sync import SyncBridge


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    from app.portal.security import ensure_csrf_token, validate_csrf

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
        if app.config.get("STORAGE_BACKEND") == "sql" and str(app.config.get("DATABASE_URL", "")).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")

    sessionmaker = None
    if app.config.get("STORAGE_BACKEND") == "sql":
        from app.portal.db import init_db

        init_db(app)
        sessionmaker = app.extensions["sqlalchemy_sessionmaker"]

    storage = storage_from_config(app.config, sessionmaker)
    app.extensions["blob_storage"] = storage
    app.extensions["record_stores"] = StoreRegistry(storage)
    app.extensions["credential_verifier"] = StaticCredentialVerifier()
    app.extensions["sync_bridge"] = SyncBridge(storage)
    app.extensions["error_log"] = ErrorLog(storage)

    # Storage config check (fail loudly on misconfiguration)
    if app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = [k for k in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY") if not app.config.get(k)]
        if missing_s3:
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(compras_bp, url_prefix="/api/compras")
    app.register_blueprint(pcp_bp, url_prefix="/api/pcp")
    app.register_blueprint(pd_bp, url_prefix="/api/pd")
    app.register_blueprint(garantia_bp, url_prefix="/api/garantia")
    app.register_blueprint(regulatorios_bp, url_prefix="/api/regulatorios")
    app.register_blueprint(comercial_bp, url_prefix="/api/comercial")
    app.register_blueprint(export_bp, url_prefix="/api/export")

    @app.before_request
    def _load_user_wrapper():
        if request.path.startswith(("/health", "/healthz")):
            g.gate = None
            g.current_user = None
            return None
        return load_current_user()

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/health", "/healthz")):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Login/logout establish the token; they are exempt.
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                return jsonify({"error": "CSRF token missing or invalid."}), 400

    @app.after_request
    def _expose_csrf(response):
        if session.get("csrf_token"):
            response.headers["X-CSRF-Token"] = session["csrf_token"]
        return response

    _register_error_handlers(app)

    from app.portal.modules.export.service import configure_sync

    try:
        configure_sync(app)
    except StorageError as e:
        app.logger.error("SYNC CONFIG ERROR: auto-sync not started: %s", e)

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")
    return app


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ValidationError)
    def _err_validation(e: ValidationError):
        return jsonify({"error": "Invalid data.", "errors": e.errors}), 400

    @app.errorhandler(InvalidCredentials)
    def _err_credentials(e: InvalidCredentials):
        return jsonify({"error": "Invalid credentials."}), 401

    @app.errorhandler(NotFoundError)
    def _err_not_found(e: NotFoundError):
        return jsonify({"error": str(e)}), 404

    @app.errorhandler(SyncInProgress)
    def _err_sync_busy(e: SyncInProgress):
        return jsonify({"error": str(e)}), 409

    @app.errorhandler(StorageError)
    def _err_storage(e: StorageError):
        app.logger.exception("Storage failure (path=%s)", request.path)
        _record_error(app, e)
        return jsonify({"error": "Storage failure.", "detail": str(e)}), 500

    @app.errorhandler(BuildError)
    def _err_build(e: BuildError):
        app.logger.error("Build failed: %s", e)
        _record_error(app, e)
        return jsonify({"error": str(e), "output": e.output}), 500

    @app.errorhandler(OSError)
    def _err_os(e: OSError):
        app.logger.exception("Filesystem failure (path=%s)", request.path)
        _record_error(app, e)
        return jsonify({"error": "Filesystem failure.", "detail": str(e)}), 500

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (path=%s)", request.path)
        _record_error(app, getattr(e, "original_exception", None) or e)
        return jsonify({"error": "Internal server error."}), 500

    @app.errorhandler(HTTPException)
    def _err_http(e: HTTPException):
        if e.code == 403:
            missing = getattr(g, "missing_module", None)
            if missing:
                app.logger.warning("Forbidden: missing_module=%s user=%s", missing, (g.current_user or {}).get("username"))
        return jsonify({"error": e.description}), e.code


def _error_module(path: str) -> str:
    """`/api/compras/...` -> `compras`, `/auth/login` -> `auth`."""
    parts = [p for p in path.split("/") if p]
    if len(parts) >= 2 and parts[0] == "api":
        return parts[1]
    return parts[0] if parts else "app"


def _record_error(app: Flask, error: BaseException) -> None:
    user = getattr(g, "current_user", None) or {}
    try:
        app.extensions["error_log"].record(
            error,
            _error_module(request.path),
            details={"path": request.path, "method": request.method, "type": type(error).__name__},
            user_id=user.get("id"),
        )
    except StorageError:
        app.logger.warning("Error log not written (path=%s)", request.path, exc_info=True)
