from __future__ import annotations

from flask import Flask, current_app
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from app.portal.models import Base
from app.portal.storage import Storage
from app.portal.store import RecordStore, StoreRegistry


def init_db(app: Flask) -> None:
    db_url = app.config["DATABASE_URL"]
    is_postgres = db_url.startswith("postgres")
    engine_kwargs: dict[str, object] = {
        "future": True,
        "pool_pre_ping": True,
    }
    if is_postgres:
        engine_kwargs.update(
            {
                "pool_recycle": 1800,
                "pool_size": 5,
                "max_overflow": 10,
                "pool_timeout": 30,
            }
        )
    engine = create_engine(db_url, **engine_kwargs)
    if app.config.get("ENV") != "production":
        @event.listens_for(engine, "checkout")
        def _receive_checkout(dbapi_connection, connection_record, connection_proxy):  # type: ignore[no-redef]
            app.logger.debug("DB connection checkout from pool")
    # The blob table is the whole schema; no migrations needed.
    Base.metadata.create_all(bind=engine)
    app.extensions["sqlalchemy_engine"] = engine
    app.extensions["sqlalchemy_sessionmaker"] = sessionmaker(
        bind=engine,
        class_=Session,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


def blob_storage(app: Flask | None = None) -> Storage:
    app = app or current_app
    return app.extensions["blob_storage"]


def record_stores(app: Flask | None = None) -> StoreRegistry:
    app = app or current_app
    return app.extensions["record_stores"]


def record_store(name: str, app: Flask | None = None) -> RecordStore:
    """App-scoped store for one collection. Use inside request handlers."""
    return record_stores(app)[name]
