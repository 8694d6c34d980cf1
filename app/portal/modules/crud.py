"""
JSON CRUD routes shared by every business module.

Each module blueprint calls register_collection() once per collection it owns;
routes are guarded by the record type's module tag.
"""
from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from flask import Blueprint, jsonify, request

from app.portal.db import record_store
from app.portal.errors import ValidationError
from app.portal.rbac import require_module
from app.portal.records import RECORD_TYPES


def json_payload() -> dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Expected a JSON object.")
    return data


def register_collection(
    bp: Blueprint,
    collection: str,
    *,
    metrics: Callable[[], dict[str, Any]] | None = None,
    before_list: Callable[[], Any] | None = None,
    entries: Iterable[str] | None = None,
    filters: Callable[[Mapping[str, str]], list[Callable[[Mapping[str, Any]], bool]]] | None = None,
) -> None:
    """
    GET    /<collection>                    list (?q= search, ?status= filter, plus `filters`)
    POST   /<collection>                    create
    GET    /<collection>/metrics            summary numbers (when `metrics` given)
    GET    /<collection>/<id>               detail
    PUT    /<collection>/<id>               partial update
    DELETE /<collection>/<id>               delete (idempotent)
    POST   /<collection>/<id>/<entry list>  append a nested entry
    """
    rt = RECORD_TYPES[collection]
    guard = require_module(rt.module)
    prefix = collection.replace("-", "_")

    def list_records():
        if before_list is not None:
            before_list()
        equals = {}
        status = (request.args.get("status") or "").strip()
        if status and status != "all":
            equals["status"] = status
        checks = list(filters(request.args)) if filters is not None else []
        needle = (request.args.get("q") or "").strip().lower()
        if needle:
            checks.append(search_predicate(collection, needle))
        items = record_store(collection).query(lambda r: all(check(r) for check in checks), **equals)
        return jsonify({"items": items, "count": len(items)})

    def create_record():
        payload = json_payload()
        errors = rt.missing_required(payload)
        if errors:
            raise ValidationError(errors)
        store = record_store(collection)
        rid = store.add(payload)
        return jsonify(store.get(rid)), 201

    def get_record(record_id: str):
        return jsonify(record_store(collection).get(record_id))

    def update_record(record_id: str):
        payload = json_payload()
        errors = rt.missing_required(payload, partial=True)
        if errors:
            raise ValidationError(errors)
        return jsonify(record_store(collection).update(record_id, payload))

    def delete_record(record_id: str):
        record_store(collection).remove(record_id)
        return "", 204

    bp.add_url_rule(f"/{collection}", f"{prefix}_list", guard(list_records), methods=["GET"])
    bp.add_url_rule(f"/{collection}", f"{prefix}_create", guard(create_record), methods=["POST"])
    bp.add_url_rule(f"/{collection}/<record_id>", f"{prefix}_detail", guard(get_record), methods=["GET"])
    bp.add_url_rule(f"/{collection}/<record_id>", f"{prefix}_update", guard(update_record), methods=["PUT", "PATCH"])
    bp.add_url_rule(f"/{collection}/<record_id>", f"{prefix}_delete", guard(delete_record), methods=["DELETE"])

    if metrics is not None:
        def get_metrics():
            return jsonify(metrics())

        bp.add_url_rule(f"/{collection}/metrics", f"{prefix}_metrics", guard(get_metrics), methods=["GET"])

    for field_name in rt.entries if entries is None else entries:
        _register_entry(bp, collection, field_name, guard)


def _register_entry(bp: Blueprint, collection: str, field_name: str, guard: Callable) -> None:
    def append_entry(record_id: str):
        entry = record_store(collection).append_entry(record_id, field_name, json_payload())
        return jsonify(entry), 201

    bp.add_url_rule(
        f"/{collection}/<record_id>/{field_name}",
        f"{collection.replace('-', '_')}_{field_name}_add",
        guard(append_entry),
        methods=["POST"],
    )


def search_predicate(collection: str, needle: str) -> Callable[[Mapping[str, Any]], bool]:
    """
    Case-insensitive substring match over the record's own search fields and
    the names of the records it references (product, supplier, customer).
    """
    rt = RECORD_TYPES[collection]
    names = {
        field_name: {r["id"]: (r.get("name") or "").lower() for r in record_store(target).all()}
        for field_name, target in rt.references.items()
    }

    def _matches(record: Mapping[str, Any]) -> bool:
        for name in rt.search_fields:
            value = record.get(name)
            if isinstance(value, str) and needle in value.lower():
                return True
        return any(needle in lookup.get(record.get(field_name), "") for field_name, lookup in names.items())

    return _matches
