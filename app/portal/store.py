from __future__ import annotations

import copy
import json
import logging
import threading
import uuid
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

from app.portal.errors import NotFoundError, ValidationError
from app.portal.records import ENTRY_TYPES, RECORD_TYPES, SYSTEM_FIELDS, EntryType, RecordType
from app.portal.storage import Storage, StorageError

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
_ID_ATTEMPTS = 5


def format_timestamp(dt: datetime) -> str:
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp (with or without trailing Z) as naive UTC."""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _new_id() -> str:
    return uuid.uuid4().hex


def _decode(name: str, raw: str | None) -> list[dict[str, Any]]:
    if raw is None:
        return []
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise StorageError(f"Collection '{name}' is not valid JSON: {e}") from e
    if not isinstance(value, list) or not all(isinstance(r, dict) for r in value):
        raise StorageError(f"Collection '{name}' must be a JSON array of objects.")
    seen: set[str] = set()
    for r in value:
        rid = r.get("id")
        if not isinstance(rid, str) or rid in seen:
            raise StorageError(f"Collection '{name}' has a missing or duplicate id: {rid!r}")
        seen.add(rid)
    return value


class RecordStore:
    """
    In-memory cached CRUD access to one named collection.

    The collection is read from storage on first access and written back as
    a whole on every mutation. A mutation only reaches memory after storage
    accepted the write, so a failed write leaves the collection unchanged.
    """

    def __init__(
        self,
        name: str,
        storage: Storage,
        record_type: RecordType | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.name = name
        self.storage = storage
        self.record_type = record_type
        self._clock = clock or datetime.utcnow
        self._id_factory = id_factory or _new_id
        self._records: list[dict[str, Any]] | None = None
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return f"RecordStore({self.name!r})"

    def __len__(self) -> int:
        with self._lock:
            return len(self._current())

    # ---------- Persistence ----------
    def load(self) -> list[dict[str, Any]]:
        """
        Re-read the collection from storage.
        Raises StorageError on a malformed blob; the blob is left untouched.
        """
        with self._lock:
            records = _decode(self.name, self.storage.get(self.name))
            self._records = records
            return copy.deepcopy(records)

    def _current(self) -> list[dict[str, Any]]:
        if self._records is None:
            self.load()
        return self._records  # type: ignore[return-value]

    def _commit(self, records: list[dict[str, Any]]) -> None:
        try:
            data = json.dumps(records, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Record is not serializable: {e}") from e
        self.storage.put(self.name, data)
        self._records = records

    def _stamp(self, previous: str | None = None) -> str:
        now = self._clock()
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc).replace(tzinfo=None)
        prev = parse_timestamp(previous)
        if prev is not None and now <= prev:
            now = prev + timedelta(microseconds=1)
        return format_timestamp(now)

    def _allocate_id(self, taken: Iterable[str]) -> str:
        taken = set(taken)
        for _ in range(_ID_ATTEMPTS):
            rid = self._id_factory()
            if rid not in taken:
                return rid
        raise StorageError(f"Could not allocate a unique id in '{self.name}'.")

    def _check(self, payload: Mapping[str, Any]) -> None:
        if self.record_type is not None:
            self.record_type.check_fields(payload)
            return
        system = [f"'{k}' is assigned automatically." for k in payload if k in SYSTEM_FIELDS]
        if system:
            raise ValidationError(system)

    def _index(self, records: list[dict[str, Any]], record_id: str) -> int:
        for i, r in enumerate(records):
            if r.get("id") == record_id:
                return i
        raise NotFoundError(self.name, record_id)

    # ---------- CRUD ----------
    def add(self, record: Mapping[str, Any]) -> str:
        payload = dict(record)
        self._check(payload)
        if self.record_type is not None:
            payload = self.record_type.with_defaults(payload)
        with self._lock:
            current = self._current()
            rid = self._allocate_id(r["id"] for r in current)
            stamp = self._stamp()
            new = {"id": rid, **payload, "createdAt": stamp, "updatedAt": stamp}
            self._commit([*current, new])
        logger.debug("Added %s to %s", rid, self.name)
        return rid

    def update(self, record_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Shallow-merge `fields` over the record; returns the stored result."""
        partial = dict(fields)
        self._check(partial)
        with self._lock:
            current = self._current()
            i = self._index(current, record_id)
            old = current[i]
            merged = {**old, **partial, "updatedAt": self._stamp(old.get("updatedAt"))}
            records = list(current)
            records[i] = merged
            self._commit(records)
            return copy.deepcopy(merged)

    def remove(self, record_id: str) -> bool:
        """
        Delete the record if present. Removing an unknown id is a no-op that
        returns False and writes nothing.
        """
        with self._lock:
            current = self._current()
            records = [r for r in current if r.get("id") != record_id]
            if len(records) == len(current):
                logger.debug("remove(%s) on %s: no such record", record_id, self.name)
                return False
            self._commit(records)
        logger.debug("Removed %s from %s", record_id, self.name)
        return True

    def append_entry(
        self,
        record_id: str,
        field_name: str,
        entry: Mapping[str, Any],
        **changes: Any,
    ) -> dict[str, Any]:
        """
        Append a nested entry (history line, project update, document) with its
        own id and timestamp. `changes` are applied to the parent record in the
        same write.
        """
        entry_type = ENTRY_TYPES.get(field_name, EntryType(fields=tuple(entry), required=()))
        if self.record_type is not None and field_name not in self.record_type.entries:
            raise ValidationError(f"'{field_name}' is not an append-only list of {self.record_type.kind}.")
        entry_type.check(entry)
        self._check(changes)
        with self._lock:
            current = self._current()
            i = self._index(current, record_id)
            old = current[i]
            existing = list(old.get(field_name) or [])
            stamp = self._stamp(old.get("updatedAt"))
            new_entry = {
                "id": self._allocate_id(e.get("id") for e in existing if isinstance(e, dict)),
                **entry,
                entry_type.stamp: stamp,
            }
            merged = {**old, **changes, field_name: [*existing, new_entry], "updatedAt": stamp}
            records = list(current)
            records[i] = merged
            self._commit(records)
            return copy.deepcopy(new_entry)

    # ---------- Reads ----------
    def get(self, record_id: str) -> dict[str, Any]:
        with self._lock:
            current = self._current()
            return copy.deepcopy(current[self._index(current, record_id)])

    def all(self) -> list[dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._current())

    def query(
        self,
        predicate: Callable[[Mapping[str, Any]], bool] | None = None,
        *,
        search: str | None = None,
        fields: Iterable[str] | None = None,
        **equals: Any,
    ) -> list[dict[str, Any]]:
        """
        Records matching every given condition, in collection order:
        - `search`: case-insensitive substring over `fields` (the record type's
          search fields by default, every string field when none are declared);
        - keyword arguments: exact equality, e.g. `status="open"`;
        - `predicate`: arbitrary callable.
        """
        needle = (search or "").strip().lower()
        if fields is None and self.record_type is not None:
            fields = self.record_type.search_fields
        names = tuple(fields or ())

        def _matches_search(r: Mapping[str, Any]) -> bool:
            if not needle:
                return True
            values = [r.get(n) for n in names] if names else list(r.values())
            return any(isinstance(v, str) and needle in v.lower() for v in values)

        with self._lock:
            current = self._current()
            out = [
                r
                for r in current
                if _matches_search(r)
                and all(r.get(k) == v for k, v in equals.items())
                and (predicate is None or predicate(r))
            ]
            return copy.deepcopy(out)


class StoreRegistry:
    """One RecordStore per collection name, sharing storage, clock and id factory."""

    def __init__(
        self,
        storage: Storage,
        *,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.storage = storage
        self._clock = clock
        self._id_factory = id_factory
        self._stores: dict[str, RecordStore] = {}
        self._lock = threading.Lock()

    def __getitem__(self, name: str) -> RecordStore:
        if name not in RECORD_TYPES:
            raise KeyError(name)
        with self._lock:
            store = self._stores.get(name)
            if store is None:
                store = RecordStore(
                    name,
                    self.storage,
                    RECORD_TYPES[name],
                    clock=self._clock,
                    id_factory=self._id_factory,
                )
                self._stores[name] = store
            return store

    def __iter__(self):
        return iter(RECORD_TYPES)

    def blobs(self) -> dict[str, str | None]:
        """Serialized blob per collection, as the sync bridge consumes it."""
        return {name: self.storage.get(name) for name in RECORD_TYPES}
