from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from app.portal.errors import ValidationError
from app.portal.store import RecordStore

METRIC_KEYS = ("costToDate", "developmentTime", "testsCompleted", "testsSuccessful")


def add_project_update(store: RecordStore, project_id: str, content: str, responsible: str) -> dict[str, Any]:
    return store.append_entry(project_id, "updates", {"content": content, "responsible": responsible})


def set_project_status(store: RecordStore, project_id: str, status: str) -> dict[str, Any]:
    return store.update(project_id, {"status": status})


def validate_project_metrics(metrics: Mapping[str, Any]) -> list[str]:
    errors = []
    for name in metrics:
        if name not in METRIC_KEYS:
            errors.append(f"Unknown metric '{name}'.")
    for name in METRIC_KEYS:
        value = metrics.get(name)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            errors.append(f"'{name}' must be a non-negative number.")
    if not errors and metrics["testsSuccessful"] > metrics["testsCompleted"]:
        errors.append("'testsSuccessful' cannot exceed 'testsCompleted'.")
    return errors


def set_project_metrics(store: RecordStore, project_id: str, metrics: Mapping[str, Any]) -> dict[str, Any]:
    errors = validate_project_metrics(metrics)
    if errors:
        raise ValidationError(errors)
    return store.update(project_id, {"metrics": {k: metrics[k] for k in METRIC_KEYS}})


def project_metrics(projects: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "total": len(projects),
        "inProgress": sum(1 for p in projects if p.get("status") == "development"),
        "research": sum(1 for p in projects if p.get("status") == "research"),
        "completed": sum(1 for p in projects if p.get("status") == "completed"),
    }
