"""
Persisted error log (`error-logs` blob).

Server-side failures are appended here by the Flask error handlers, synced to
the network folder with the collections, and summarised per module for the
admin export page.
"""
from __future__ import annotations

from collections import Counter
from collections.abc import Callable
from datetime import datetime
from typing import Any

from app.portal.storage import Storage
from app.portal.store import RecordStore, format_timestamp

ERROR_LOG_KEY = "error-logs"


class ErrorLog:
    def __init__(self, storage: Storage, key: str = ERROR_LOG_KEY, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or datetime.utcnow
        self.store = RecordStore(key, storage, clock=self._clock)

    def record(
        self,
        error: BaseException | str,
        module: str,
        *,
        details: dict[str, Any] | None = None,
        user_id: str | None = None,
    ) -> str:
        entry = {
            "timestamp": format_timestamp(self._clock()),
            "error": str(error) or type(error).__name__,
            "module": module,
        }
        if details:
            entry["details"] = details
        if user_id:
            entry["userId"] = user_id
        return self.store.add(entry)

    def entries(self, module: str | None = None) -> list[dict[str, Any]]:
        if module:
            return self.store.query(module=module)
        return self.store.all()

    def stats(self) -> dict[str, Any]:
        logs = self.store.all()
        return {
            "total": len(logs),
            "byModule": dict(Counter(e.get("module") or "app" for e in logs)),
        }
