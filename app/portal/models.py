from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class Blob(Base):
    """
    One serialized blob per key. Used when STORAGE_BACKEND=sql.
    Collections, the session slot and the sync config all live here.
    """

    __tablename__ = "blobs"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)  # e.g. "products"
    data: Mapped[str] = mapped_column(Text, nullable=False)  # JSON text
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
