#!/usr/bin/env python
"""
Seed a few demo records into empty collections. Idempotent: collections that
already hold records are left alone.

Usage:
    python scripts/seed_demo.py
"""
from __future__ import annotations

from _storage_utils import script_storage

from app.portal.store import StoreRegistry


def seed_only(stores: StoreRegistry) -> dict[str, int]:
    added: dict[str, int] = {}

    products = stores["products"]
    if not len(products):
        pid = products.add({"code": "P-001", "name": "Pote 500ml", "supplier": "Plasticos Sul"})
        added["products"] = 1
    else:
        pid = products.all()[0]["id"]

    suppliers = stores["suppliers"]
    if not len(suppliers):
        sid = suppliers.add({"name": "Plasticos Sul", "contact": "compras@plasticossul.example"})
        added["suppliers"] = 1
    else:
        sid = suppliers.all()[0]["id"]

    orders = stores["purchase-orders"]
    if not len(orders):
        orders.add({"supplierId": sid, "productId": pid, "quantity": 1000, "orderDate": "2024-01-10", "expectedDeliveryDate": "2024-01-24"})
        added["purchase-orders"] = 1

    customers = stores["customers"]
    if not len(customers):
        customers.add(
            {
                "name": "Maria Souza",
                "company": "Mercado Central",
                "contact": "11 5555-0101",
                "email": "maria@mercadocentral.example",
                "address": "Rua das Flores, 120",
                "status": "active",
            }
        )
        added["customers"] = 1

    return added


def main() -> None:
    added = seed_only(StoreRegistry(script_storage()))
    if not added:
        print("Nothing to seed; collections already populated.", flush=True)
        return
    for name, n in added.items():
        print(f"Seeded {n} record(s) into {name}", flush=True)


if __name__ == "__main__":
    main()
