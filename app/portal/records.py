"""
Declared record types.

Every collection holds one kind of record. A RecordType lists the fields a
record may carry, which of them the forms must fill in, the allowed values of
enumerated fields, and the nested lists that only grow through
RecordStore.append_entry.
"""
from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from app.portal.errors import ValidationError

SYSTEM_FIELDS = ("id", "createdAt", "updatedAt")

MODULES = ("compras", "pcp", "pd", "garantia", "regulatorios", "comercial")
ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class EntryType:
    """Shape of an append-only nested entry (history line, project update, attached document)."""

    fields: tuple[str, ...]
    required: tuple[str, ...]
    stamp: str = "date"

    def check(self, entry: Mapping[str, Any]) -> None:
        errors = []
        for name in entry:
            if name in ("id", self.stamp):
                errors.append(f"'{name}' is assigned automatically.")
            elif name not in self.fields:
                errors.append(f"Unknown field '{name}'.")
        for name in self.required:
            if not str(entry.get(name) or "").strip():
                errors.append(f"'{name}' is required.")
        if errors:
            raise ValidationError(errors)


DOCUMENT_ENTRY = EntryType(fields=("name", "url", "type"), required=("name",), stamp="uploadedAt")

ENTRY_TYPES: dict[str, EntryType] = {
    "documents": DOCUMENT_ENTRY,
    "attachments": DOCUMENT_ENTRY,
    "history": EntryType(
        fields=("action", "details", "replacement", "repair", "responsible"),
        required=("action", "responsible"),
    ),
    "updates": EntryType(fields=("content", "responsible"), required=("content", "responsible")),
}


@dataclass(frozen=True)
class RecordType:
    kind: str
    collection: str
    module: str
    required: tuple[str, ...]
    optional: tuple[str, ...] = ()
    choices: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    numeric: tuple[str, ...] = ()
    entries: tuple[str, ...] = ()
    defaults: Mapping[str, Callable[[], Any]] = field(default_factory=dict)
    search_fields: tuple[str, ...] = ()
    # field -> collection whose record `name` a list search also matches
    references: Mapping[str, str] = field(default_factory=dict)

    @property
    def fields(self) -> frozenset[str]:
        return frozenset(self.required + self.optional + self.entries)

    def check_fields(self, payload: Mapping[str, Any]) -> None:
        """
        Store-boundary check: no unknown fields, no system-managed fields,
        no direct writes to append-only lists, enumerated and numeric
        values well-formed. Required fields are checked by the controllers.
        """
        errors = []
        allowed = self.fields
        for name, value in payload.items():
            if name in SYSTEM_FIELDS:
                errors.append(f"'{name}' is assigned automatically.")
            elif name not in allowed:
                errors.append(f"Unknown field '{name}' for {self.kind}.")
            elif name in self.entries:
                errors.append(f"'{name}' is append-only.")
            elif name in self.choices and value not in self.choices[name]:
                errors.append(f"Invalid {name}. Must be one of: {', '.join(self.choices[name])}")
            elif name in self.numeric and value is not None and (
                isinstance(value, bool) or not isinstance(value, (int, float))
            ):
                errors.append(f"'{name}' must be a number.")
        if errors:
            raise ValidationError(errors)

    def missing_required(self, payload: Mapping[str, Any], *, partial: bool = False) -> list[str]:
        """Required fields left empty. With `partial`, only fields present in the payload count."""
        errors = []
        for name in self.required:
            if partial and name not in payload:
                continue
            value = payload.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                errors.append(f"'{name}' is required.")
        return errors

    def with_defaults(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        record = {name: factory() for name, factory in self.defaults.items()}
        for name in self.entries:
            record.setdefault(name, [])
        for name, values in self.choices.items():
            record.setdefault(name, values[0])
        record.update(payload)
        return record


PRODUCT = RecordType(
    kind="product",
    collection="products",
    module="compras",
    required=("code", "name"),
    optional=(
        "classification", "pi", "pa", "structure", "specification", "packaging",
        "lid", "pot", "label", "supplier", "qualification", "observations", "others",
    ),
    search_fields=("code", "name", "supplier"),
)

SUPPLIER = RecordType(
    kind="supplier",
    collection="suppliers",
    module="compras",
    required=("name", "contact"),
    optional=("contact", "products", "paymentTerms", "deliveryTerms"),
    entries=("documents",),
    search_fields=("name", "contact"),
)

PURCHASE_ORDER = RecordType(
    kind="purchase_order",
    collection="purchase-orders",
    module="compras",
    required=("supplierId", "productId", "quantity"),
    optional=("orderDate", "expectedDeliveryDate", "status"),
    choices={"status": ("requested", "approved", "processing", "delivered", "cancelled")},
    numeric=("quantity",),
    search_fields=(),
    references={"supplierId": "suppliers", "productId": "products"},
)

PRODUCTION_ORDER = RecordType(
    kind="production_order",
    collection="production-orders",
    module="pcp",
    required=("orderId", "productId", "quantity"),
    optional=("startDate", "expectedEndDate", "actualEndDate", "status", "instructions"),
    choices={"status": ("planned", "inProgress", "delayed", "completed")},
    numeric=("quantity",),
    entries=("attachments",),
    search_fields=("orderId",),
    references={"productId": "products"},
)

RD_PROJECT = RecordType(
    kind="rd_project",
    collection="rd-projects",
    module="pd",
    required=("name",),
    optional=(
        "description", "targetProduct", "budget", "responsibles", "status", "progress",
        "startDate", "expectedEndDate", "actualEndDate", "metrics",
    ),
    choices={"status": ("research", "development", "testing", "completed")},
    numeric=("budget", "progress"),
    entries=("documents", "updates"),
    defaults={
        "responsibles": list,
        "progress": lambda: 0,
        "metrics": lambda: {"costToDate": 0, "developmentTime": 0, "testsCompleted": 0, "testsSuccessful": 0},
    },
    search_fields=("name", "targetProduct", "description"),
)

WARRANTY_CLAIM = RecordType(
    kind="warranty_claim",
    collection="warranty-claims",
    module="garantia",
    required=("productId", "customer"),
    optional=("claimDate", "description", "status"),
    choices={"status": ("open", "analyzing", "resolved", "closed")},
    entries=("history",),
    search_fields=("customer",),
    references={"productId": "products"},
)

REGULATORY_DOCUMENT = RecordType(
    kind="regulatory_document",
    collection="regulatory-docs",
    module="regulatorios",
    required=("name", "number", "validityDate"),
    optional=("issueDate", "productId", "status", "documentUrl", "documentType", "notes"),
    choices={"status": ("pending", "updated", "expired")},
    search_fields=("name", "number"),
    references={"productId": "products"},
)

CUSTOMER = RecordType(
    kind="customer",
    collection="customers",
    module="comercial",
    required=("name", "company", "contact", "email", "address"),
    optional=("status",),
    choices={"status": ("potential", "active", "inactive")},
    entries=("documents",),
    search_fields=("name", "company", "email"),
)

OPPORTUNITY = RecordType(
    kind="opportunity",
    collection="opportunities",
    module="comercial",
    required=("customerId", "productId"),
    optional=("estimatedValue", "closeProbability", "startDate", "expectedCloseDate", "status", "notes"),
    choices={"status": ("negotiation", "proposalSent", "analysis", "closed", "lost")},
    numeric=("estimatedValue", "closeProbability"),
    defaults={"estimatedValue": lambda: 0, "closeProbability": lambda: 0},
    search_fields=(),
    references={"customerId": "customers", "productId": "products"},
)

SALES_ORDER = RecordType(
    kind="sales_order",
    collection="orders",
    module="comercial",
    required=("customerId", "productId", "quantity"),
    optional=("finalValue", "orderDate", "status"),
    choices={"status": ("pending", "processing", "delivered", "cancelled")},
    numeric=("quantity", "finalValue"),
    entries=("documents",),
    defaults={"finalValue": lambda: 0},
    search_fields=(),
    references={"customerId": "customers", "productId": "products"},
)

RECORD_TYPES: dict[str, RecordType] = {
    rt.collection: rt
    for rt in (
        PRODUCT,
        SUPPLIER,
        PURCHASE_ORDER,
        PRODUCTION_ORDER,
        RD_PROJECT,
        WARRANTY_CLAIM,
        REGULATORY_DOCUMENT,
        CUSTOMER,
        OPPORTUNITY,
        SALES_ORDER,
    )
}

COLLECTIONS = tuple(RECORD_TYPES)
