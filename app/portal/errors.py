"""
Error taxonomy shared by the record store, the session gate and the sync bridge.

StorageError lives in app.portal.storage next to the backends that raise it
and is re-exported here so callers have one import site.
"""
from __future__ import annotations

from app.portal.storage import StorageError


class PortalError(Exception):
    pass


class NotFoundError(PortalError, LookupError):
    def __init__(self, collection: str, record_id: str) -> None:
        super().__init__(f"No record '{record_id}' in '{collection}'.")
        self.collection = collection
        self.record_id = record_id


class ValidationError(PortalError, ValueError):
    def __init__(self, errors: list[str] | str) -> None:
        if isinstance(errors, str):
            errors = [errors]
        super().__init__("; ".join(errors))
        self.errors = list(errors)


class InvalidCredentials(PortalError):
    pass


class SyncInProgress(PortalError):
    pass


class BuildError(PortalError):
    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


__all__ = [
    "BuildError",
    "InvalidCredentials",
    "NotFoundError",
    "PortalError",
    "StorageError",
    "SyncInProgress",
    "ValidationError",
]
