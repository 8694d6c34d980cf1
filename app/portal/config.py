import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str

    storage_backend: str
    data_dir: str
    database_url: str
    s3_endpoint: str
    s3_region: str
    s3_bucket: str
    s3_access_key_id: str
    s3_secret_access_key: str

    sync_path: str
    sync_interval_minutes: int
    auto_sync: bool
    export_files: tuple[str, ...]
    project_root: str
    build_command: str


DEFAULT_EXPORT_FILES = (
    "pyproject.toml",
    "README.md",
    "app/portal/__init__.py",
    "app/portal/config.py",
    "app/portal/store.py",
    "app/portal/records.py",
)


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    try:
        return int(raw) if raw else default
    except ValueError:
        raise RuntimeError(f"{name} must be an integer (got {raw!r}).")


def _getenv_bool(name: str, default: bool) -> bool:
    raw = _getenv(name).lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def load_settings() -> Settings:
    export_files = tuple(f.strip() for f in _getenv("EXPORT_FILES").split(",") if f.strip())
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        storage_backend=_getenv("STORAGE_BACKEND", "local"),
        data_dir=_getenv("DATA_DIR", ""),
        database_url=_getenv("DATABASE_URL", "sqlite:///portal.db"),
        s3_endpoint=_getenv("S3_ENDPOINT", ""),
        s3_region=_getenv("S3_REGION", "nyc3"),
        s3_bucket=_getenv("S3_BUCKET", ""),
        s3_access_key_id=_getenv("S3_ACCESS_KEY_ID", ""),
        s3_secret_access_key=_getenv("S3_SECRET_ACCESS_KEY", ""),
        sync_path=_getenv("SYNC_PATH", ""),
        sync_interval_minutes=_getenv_int("SYNC_INTERVAL_MINUTES", 5),
        auto_sync=_getenv_bool("AUTO_SYNC", False),
        export_files=export_files or DEFAULT_EXPORT_FILES,
        project_root=_getenv("PROJECT_ROOT", str(Path(__file__).resolve().parents[2])),
        build_command=_getenv("BUILD_COMMAND", "python -m build"),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "STORAGE_BACKEND": s.storage_backend,
        "DATA_DIR": s.data_dir,
        "DATABASE_URL": s.database_url,
        "S3_ENDPOINT": s.s3_endpoint,
        "S3_REGION": s.s3_region,
        "S3_BUCKET": s.s3_bucket,
        "S3_ACCESS_KEY_ID": s.s3_access_key_id,
        "S3_SECRET_ACCESS_KEY": s.s3_secret_access_key,
        # sync / export defaults (overridable at runtime through /api/export/config)
        "SYNC_PATH": s.sync_path,
        "SYNC_INTERVAL_MINUTES": s.sync_interval_minutes,
        "AUTO_SYNC": s.auto_sync,
        "EXPORT_FILES": s.export_files,
        "PROJECT_ROOT": s.project_root,
        "BUILD_COMMAND": s.build_command,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        "JSON_SORT_KEYS": False,
    }
