from __future__ import annotations

import sys
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.portal.config import load_config  # noqa: E402
from app.portal.models import Base  # noqa: E402
from app.portal.storage import Storage, storage_from_config  # noqa: E402


def create_script_engine(db_url: str):
    return create_engine(
        db_url,
        future=True,
        pool_pre_ping=True,
        pool_recycle=1800,
    )


def script_config() -> dict:
    load_dotenv()
    return load_config()


def script_storage(config: dict | None = None) -> Storage:
    config = config or script_config()
    sm = None
    if (config.get("STORAGE_BACKEND") or "").strip().lower() == "sql":
        engine = create_script_engine(config["DATABASE_URL"])
        Base.metadata.create_all(bind=engine)
        sm = sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=False, future=True)
    return storage_from_config(config, sm)
