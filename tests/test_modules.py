"""HTTP tests for the business modules (compras, pcp, pd, garantia, regulatorios, comercial)."""
import pytest

from app.portal import create_app


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY", "SYNC_PATH", "AUTO_SYNC"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    return app.test_client()


def _login(client, username="admin"):
    r = client.post("/auth/login", json={"username": username, "password": f"{username}123"})
    assert r.status_code == 200
    client.environ_base["HTTP_X_CSRF_TOKEN"] = r.headers["X-CSRF-Token"]


def _customer(name, **fields):
    record = {"name": name, "company": "Loja", "contact": "11 5555-0000", "email": "contato@loja.example", "address": "Rua A, 1"}
    record.update(fields)
    return record


# ---------- compras ----------
def test_products_crud(client):
    _login(client)
    r = client.post("/api/compras/products", json={"code": "P-1", "name": "Pote 500ml", "supplier": "Acme"})
    assert r.status_code == 201
    product = r.json
    assert product["id"]
    assert product["createdAt"] == product["updatedAt"]

    client.post("/api/compras/products", json={"code": "P-2", "name": "Tampa", "supplier": "Beta"})

    r = client.get("/api/compras/products?q=pote")
    assert r.json["count"] == 1
    assert r.json["items"][0]["code"] == "P-1"

    r = client.put(f"/api/compras/products/{product['id']}", json={"supplier": "Gama"})
    assert r.status_code == 200
    assert r.json["supplier"] == "Gama"
    assert r.json["name"] == "Pote 500ml"
    assert r.json["updatedAt"] > product["updatedAt"]

    r = client.delete(f"/api/compras/products/{product['id']}")
    assert r.status_code == 204
    assert client.get(f"/api/compras/products/{product['id']}").status_code == 404
    # Deleting again is a no-op.
    assert client.delete(f"/api/compras/products/{product['id']}").status_code == 204
    assert client.get("/api/compras/products").json["count"] == 1


def test_create_requires_fields(client):
    _login(client)
    r = client.post("/api/compras/products", json={"code": "P-1"})
    assert r.status_code == 400
    assert "'name' is required." in r.json["errors"]

    r = client.post("/api/compras/products", json={"code": "P-1", "name": "x", "colour": "red"})
    assert r.status_code == 400

    r = client.post("/api/compras/products", data="not json", content_type="text/plain")
    assert r.status_code == 400
    assert client.get("/api/compras/products").json["count"] == 0


def test_update_cannot_blank_required_field(client):
    _login(client)
    pid = client.post("/api/compras/products", json={"code": "P-1", "name": "Pote"}).json["id"]
    r = client.patch(f"/api/compras/products/{pid}", json={"name": "  "})
    assert r.status_code == 400
    assert client.get(f"/api/compras/products/{pid}").json["name"] == "Pote"


def test_update_missing_record_is_404(client):
    _login(client)
    r = client.put("/api/compras/products/missing", json={"name": "x"})
    assert r.status_code == 404


def test_supplier_metrics(client):
    _login(client)
    sid = client.post("/api/compras/suppliers", json={"name": "Acme", "contact": "compras@acme.example"}).json["id"]
    client.post("/api/compras/suppliers", json={"name": "Idle Co", "contact": "Rui"})
    pid = client.post("/api/compras/products", json={"code": "P-1", "name": "Pote"}).json["id"]
    r = client.post(
        "/api/compras/purchase-orders",
        json={
            "supplierId": sid,
            "productId": pid,
            "quantity": 100,
            "orderDate": "2024-01-10",
            "expectedDeliveryDate": "2024-01-24",
        },
    )
    assert r.status_code == 201
    assert r.json["status"] == "requested"

    r = client.post(f"/api/compras/suppliers/{sid}/documents", json={"name": "ISO 9001.pdf", "type": "certificate"})
    assert r.status_code == 201
    assert r.json["uploadedAt"]

    m = client.get("/api/compras/suppliers/metrics").json
    assert m == {"total": 2, "active": 1, "withDocs": 1, "avgDeliveryDays": 14}

    m = client.get("/api/compras/purchase-orders/metrics").json
    assert m["pending"] == 1
    assert m["totalQuantity"] == 100


def test_purchase_order_status_filter(client):
    _login(client)
    for status in ("requested", "delivered", "delivered"):
        client.post(
            "/api/compras/purchase-orders",
            json={"supplierId": "s", "productId": "p", "quantity": 1, "status": status},
        )
    assert client.get("/api/compras/purchase-orders?status=delivered").json["count"] == 2
    assert client.get("/api/compras/purchase-orders?status=all").json["count"] == 3

    r = client.post(
        "/api/compras/purchase-orders",
        json={"supplierId": "s", "productId": "p", "quantity": 1, "status": "lost"},
    )
    assert r.status_code == 400


# ---------- pcp ----------
def test_production_orders_marked_delayed_and_completed(client):
    _login(client, "pcp")
    late = client.post(
        "/api/pcp/production-orders",
        json={"orderId": "o1", "productId": "p1", "quantity": 10, "status": "inProgress", "expectedEndDate": "2000-01-01"},
    ).json
    future = client.post(
        "/api/pcp/production-orders",
        json={"orderId": "o2", "productId": "p1", "quantity": 5, "expectedEndDate": "2999-01-01"},
    ).json
    assert future["status"] == "planned"

    items = {o["id"]: o for o in client.get("/api/pcp/production-orders").json["items"]}
    assert items[late["id"]]["status"] == "delayed"
    assert items[future["id"]]["status"] == "planned"

    r = client.post(f"/api/pcp/production-orders/{late['id']}/complete")
    assert r.status_code == 200
    assert r.json["status"] == "completed"
    assert r.json["actualEndDate"]

    m = client.get("/api/pcp/production-orders/metrics").json
    assert m == {"total": 2, "inProgress": 0, "delayed": 0, "completed": 1}

    r = client.post(f"/api/pcp/production-orders/{future['id']}/attachments", json={"name": "ficha.pdf"})
    assert r.status_code == 201


def test_pcp_user_cannot_open_other_modules(client):
    _login(client, "pcp")
    assert client.get("/api/comercial/customers").status_code == 403
    r = client.post("/api/pd/rd-projects", json={"name": "x"})
    assert r.status_code == 403


# ---------- pd ----------
def test_rd_project_updates_and_metrics(client):
    _login(client, "pd")
    project = client.post("/api/pd/rd-projects", json={"name": "Pote biodegradavel", "budget": 5000}).json
    assert project["status"] == "research"
    assert project["progress"] == 0
    assert project["metrics"]["testsCompleted"] == 0
    assert project["updates"] == []

    r = client.post(f"/api/pd/rd-projects/{project['id']}/updates", json={"content": "Primeiro prototipo", "responsible": "Rui"})
    assert r.status_code == 201
    assert r.json["date"]

    r = client.post(f"/api/pd/rd-projects/{project['id']}/updates", json={"content": "", "responsible": "Rui"})
    assert r.status_code == 400

    r = client.put(
        f"/api/pd/rd-projects/{project['id']}/metrics",
        json={"costToDate": 100, "developmentTime": 3, "testsCompleted": 2, "testsSuccessful": 5},
    )
    assert r.status_code == 400

    r = client.put(
        f"/api/pd/rd-projects/{project['id']}/metrics",
        json={"costToDate": 100, "developmentTime": 3, "testsCompleted": 5, "testsSuccessful": 4},
    )
    assert r.status_code == 200
    assert r.json["metrics"]["testsSuccessful"] == 4

    r = client.put(f"/api/pd/rd-projects/{project['id']}/status", json={"status": "development"})
    assert r.json["status"] == "development"
    r = client.put(f"/api/pd/rd-projects/{project['id']}/status", json={"status": "shipped"})
    assert r.status_code == 400

    detail = client.get(f"/api/pd/rd-projects/{project['id']}").json
    assert [u["content"] for u in detail["updates"]] == ["Primeiro prototipo"]

    m = client.get("/api/pd/rd-projects/metrics").json
    assert m["total"] == 1
    assert m["inProgress"] == 1


def test_rd_project_updates_not_writable_directly(client):
    _login(client, "pd")
    pid = client.post("/api/pd/rd-projects", json={"name": "x"}).json["id"]
    r = client.put(f"/api/pd/rd-projects/{pid}", json={"updates": []})
    assert r.status_code == 400


# ---------- garantia ----------
def test_warranty_history_resolves_claim(client):
    _login(client, "garantia")
    claim = client.post("/api/garantia/warranty-claims", json={"productId": "p1", "customer": "Maria"}).json
    client.post("/api/garantia/warranty-claims", json={"productId": "p2", "customer": "Joao"})
    assert claim["status"] == "open"
    assert claim["history"] == []

    r = client.post(
        f"/api/garantia/warranty-claims/{claim['id']}/history",
        json={"action": "Troca", "details": "", "replacement": "Pote novo", "responsible": "Ana"},
    )
    assert r.status_code == 201
    assert "details" not in r.json
    assert r.json["replacement"] == "Pote novo"

    detail = client.get(f"/api/garantia/warranty-claims/{claim['id']}").json
    assert detail["status"] == "resolved"
    assert len(detail["history"]) == 1

    m = client.get("/api/garantia/warranty-claims/metrics").json
    assert m["total"] == 2
    assert m["resolved"] == 1
    assert m["resolutionRate"] == 50.0

    r = client.post(f"/api/garantia/warranty-claims/{claim['id']}/history", json={"action": "Reparo"})
    assert r.status_code == 400

    r = client.post("/api/garantia/warranty-claims/missing/history", json={"action": "x", "responsible": "y"})
    assert r.status_code == 404


# ---------- regulatorios ----------
def test_regulatory_documents_expire(client):
    _login(client, "regulatorios")
    old = client.post(
        "/api/regulatorios/regulatory-docs",
        json={"name": "Registro ANVISA", "number": "123", "validityDate": "2000-01-01", "status": "updated"},
    ).json
    client.post(
        "/api/regulatorios/regulatory-docs",
        json={"name": "Laudo", "number": "456", "validityDate": "2999-01-01", "status": "updated"},
    )
    r = client.post("/api/regulatorios/regulatory-docs", json={"name": "Sem validade", "number": "789"})
    assert r.status_code == 400

    items = {d["id"]: d for d in client.get("/api/regulatorios/regulatory-docs").json["items"]}
    assert items[old["id"]]["status"] == "expired"

    m = client.get("/api/regulatorios/regulatory-docs/metrics").json
    assert m == {"total": 2, "expired": 1, "expiringSoon": 0, "updated": 1}


# ---------- comercial ----------
def test_customers_search_and_status(client):
    _login(client, "comercial")
    client.post("/api/comercial/customers", json=_customer("Maria Souza", company="Mercado Central", status="active"))
    client.post("/api/comercial/customers", json=_customer("Joao Lima", company="Padaria Sol"))

    assert client.get("/api/comercial/customers?q=MERCADO").json["count"] == 1
    assert client.get("/api/comercial/customers?status=potential").json["items"][0]["name"] == "Joao Lima"

    m = client.get("/api/comercial/customers/metrics").json
    assert m == {"total": 2, "active": 1, "potential": 1}


def test_opportunity_and_order_metrics(client):
    _login(client, "comercial")
    client.post(
        "/api/comercial/opportunities",
        json={"customerId": "c1", "productId": "p1", "estimatedValue": 1000, "closeProbability": 80, "status": "closed"},
    )
    client.post(
        "/api/comercial/opportunities",
        json={"customerId": "c2", "productId": "p1", "estimatedValue": 500, "closeProbability": 20},
    )
    m = client.get("/api/comercial/opportunities/metrics").json
    assert m["total"] == 2
    assert m["totalValue"] == 1500
    assert m["closedValue"] == 1000
    assert m["avgProbability"] == 50

    client.post("/api/comercial/orders", json={"customerId": "c1", "productId": "p1", "quantity": 10, "finalValue": 900, "status": "delivered"})
    client.post("/api/comercial/orders", json={"customerId": "c2", "productId": "p1", "quantity": 1})
    m = client.get("/api/comercial/orders/metrics").json
    assert m == {"total": 2, "totalValue": 900, "delivered": 1, "deliveredValue": 900, "pending": 1}


def test_records_persist_across_app_instances(client, tmp_path):
    _login(client, "comercial")
    client.post("/api/comercial/customers", json=_customer("Maria"))

    fresh = create_app().test_client()
    _login(fresh, "comercial")
    items = fresh.get("/api/comercial/customers").json["items"]
    assert [c["name"] for c in items] == ["Maria"]
    assert (tmp_path / "data" / "customers.json").exists()


# ---------- related-name search and list filters ----------
def test_order_search_matches_related_names(client):
    _login(client)
    pid = client.post("/api/compras/products", json={"code": "W-1", "name": "Widget"}).json["id"]
    other = client.post("/api/compras/products", json={"code": "G-1", "name": "Gadget"}).json["id"]
    sid = client.post("/api/compras/suppliers", json={"name": "Acme Plasticos", "contact": "Rui"}).json["id"]
    client.post("/api/compras/purchase-orders", json={"supplierId": sid, "productId": pid, "quantity": 5})
    client.post("/api/compras/purchase-orders", json={"supplierId": "s-x", "productId": other, "quantity": 1})

    r = client.get("/api/compras/purchase-orders?q=widget")
    assert r.json["count"] == 1
    assert r.json["items"][0]["productId"] == pid
    assert client.get("/api/compras/purchase-orders?q=ACME").json["count"] == 1
    # Raw ids are not searched.
    assert client.get(f"/api/compras/purchase-orders?q={pid}").json["count"] == 0

    cid = client.post("/api/comercial/customers", json=_customer("Maria Souza")).json["id"]
    client.post("/api/comercial/orders", json={"customerId": cid, "productId": other, "quantity": 2})
    client.post("/api/comercial/opportunities", json={"customerId": cid, "productId": pid})
    assert client.get("/api/comercial/orders?q=maria").json["count"] == 1
    assert client.get("/api/comercial/orders?q=widget").json["count"] == 0
    assert client.get("/api/comercial/opportunities?q=widget").json["count"] == 1

    client.post("/api/pcp/production-orders", json={"orderId": "OP-77", "productId": pid, "quantity": 3})
    assert client.get("/api/pcp/production-orders?q=widget").json["count"] == 1
    assert client.get("/api/pcp/production-orders?q=op-77").json["count"] == 1

    client.post("/api/garantia/warranty-claims", json={"productId": pid, "customer": "Joao"})
    assert client.get("/api/garantia/warranty-claims?q=widget").json["count"] == 1
    assert client.get("/api/garantia/warranty-claims?q=gadget").json["count"] == 0


def test_production_orders_start_date_range(client):
    _login(client, "pcp")
    for order_id, start in (("o1", "2024-01-05"), ("o2", "2024-02-10"), ("o3", "2024-03-15")):
        client.post(
            "/api/pcp/production-orders",
            json={"orderId": order_id, "productId": "p", "quantity": 1, "startDate": start, "expectedEndDate": "2999-01-01"},
        )
    client.post("/api/pcp/production-orders", json={"orderId": "o4", "productId": "p", "quantity": 1})

    items = client.get("/api/pcp/production-orders?start=2024-02-01&end=2024-03-15").json["items"]
    assert [o["orderId"] for o in items] == ["o2", "o3"]
    items = client.get("/api/pcp/production-orders?end=2024-01-31").json["items"]
    assert [o["orderId"] for o in items] == ["o1"]
    assert client.get("/api/pcp/production-orders").json["count"] == 4

    r = client.get("/api/pcp/production-orders?start=last-week")
    assert r.status_code == 400


def test_regulatory_product_filter_and_name_search(client):
    _login(client)
    pid = client.post("/api/compras/products", json={"code": "W-1", "name": "Widget"}).json["id"]
    for name, product in (("Registro A", pid), ("Registro B", "other"), ("Registro C", pid)):
        client.post(
            "/api/regulatorios/regulatory-docs",
            json={"name": name, "number": name[-1], "validityDate": "2999-01-01", "productId": product},
        )

    items = client.get(f"/api/regulatorios/regulatory-docs?productId={pid}").json["items"]
    assert [d["name"] for d in items] == ["Registro A", "Registro C"]
    assert client.get("/api/regulatorios/regulatory-docs?productId=all").json["count"] == 3
    assert client.get("/api/regulatorios/regulatory-docs?q=widget").json["count"] == 2


def test_regulatory_metrics_expire_without_listing(client):
    _login(client, "regulatorios")
    client.post(
        "/api/regulatorios/regulatory-docs",
        json={"name": "Registro", "number": "1", "validityDate": "2000-01-01", "status": "updated"},
    )
    m = client.get("/api/regulatorios/regulatory-docs/metrics").json
    assert m["expired"] == 1
    assert m["expiringSoon"] == 0
    assert m["updated"] == 0


# ---------- required fields ----------
def test_supplier_requires_contact(client):
    _login(client, "compras")
    r = client.post("/api/compras/suppliers", json={"name": "Acme"})
    assert r.status_code == 400
    assert "'contact' is required." in r.json["errors"]
    assert client.get("/api/compras/suppliers").json["count"] == 0


def test_customer_requires_full_contact_details(client):
    _login(client, "comercial")
    r = client.post("/api/comercial/customers", json={"name": "Maria"})
    assert r.status_code == 400
    for name in ("company", "contact", "email", "address"):
        assert f"'{name}' is required." in r.json["errors"]

    r = client.post("/api/comercial/customers", json=_customer("Maria", email=""))
    assert r.status_code == 400
    assert r.json["errors"] == ["'email' is required."]
    assert client.get("/api/comercial/customers").json["count"] == 0
