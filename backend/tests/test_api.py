"""
HTTP API tests.

Verifies:
- Requests without gateway identity headers return 401
- Roles without the required capability get 403
- The JSON envelope, pagination and error categories
- End-to-end sale, payment and adjustment flows over HTTP
"""

import pytest

from conftest import make_product


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without identity headers."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/suppliers"),
            ("GET", "/api/customers"),
            ("GET", "/api/inventory"),
            ("GET", "/api/stock-movements"),
            ("POST", "/api/stock-movements"),
            ("GET", "/api/sales"),
            ("POST", "/api/sales"),
            ("GET", "/api/payments"),
            ("GET", "/api/purchases"),
            ("GET", "/api/expenses"),
            ("GET", "/api/reports/dashboard"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.get_json()["status"] == "error"

    def test_unknown_role_claim(self, client, db_session):
        resp = client.get("/api/products", headers={"X-Actor-Id": "u1", "X-Actor-Role": "superuser"})
        assert resp.status_code == 401

    def test_health_is_public(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["status"] == "healthy"


# =============================================================================
# ROLE CAPABILITIES (403)
# =============================================================================


class TestCapabilities:

    def test_cashier_cannot_delete_sale(self, client, cashier_headers, product, cashier):
        created = client.post(
            "/api/sales",
            json={"items": [{"product_id": product.id, "quantity": 1, "unit_price": "150"}]},
            headers=cashier_headers,
        )
        assert created.status_code == 201

        resp = client.delete(f"/api/sales/{created.get_json()['data']['id']}", headers=cashier_headers)
        assert resp.status_code == 403
        assert resp.get_json()["required_capability"] == "delete_sale"

    def test_cashier_cannot_adjust_stock(self, client, cashier_headers, product):
        resp = client.post(
            "/api/stock-movements",
            json={"product_id": product.id, "quantity_change": "-1", "reason": "damaged"},
            headers=cashier_headers,
        )
        assert resp.status_code == 403

    def test_staff_is_read_only(self, client, staff_headers, product):
        assert client.get("/api/products", headers=staff_headers).status_code == 200
        assert client.get("/api/reports/dashboard", headers=staff_headers).status_code == 200
        resp = client.post(
            "/api/sales",
            json={"items": [{"product_id": product.id, "quantity": 1, "unit_price": "150"}]},
            headers=staff_headers,
        )
        assert resp.status_code == 403

    def test_cashier_cannot_manage_catalog(self, client, cashier_headers, db_session):
        resp = client.post(
            "/api/products",
            json={"sku": "X", "name": "X", "purchase_price": "1", "retail_price": "2"},
            headers=cashier_headers,
        )
        assert resp.status_code == 403


# =============================================================================
# ENVELOPE AND PAGINATION
# =============================================================================


class TestEnvelope:

    def test_list_pagination(self, client, owner_headers, owner, db_session):
        for i in range(3):
            make_product(owner, sku=f"BLT-{i}", name=f"Bolt {'ABC'[i]}")

        resp = client.get("/api/products?page=2&limit=2", headers=owner_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "success"
        assert body["pagination"] == {"page": 2, "limit": 2, "total": 3, "totalPages": 2}
        assert [p["sku"] for p in body["data"]] == ["BLT-2"]

    @pytest.mark.parametrize("query", ["page=0", "limit=0", "limit=101", "page=abc"])
    def test_bad_pagination(self, client, owner_headers, db_session, query):
        resp = client.get(f"/api/products?{query}", headers=owner_headers)
        assert resp.status_code == 400
        assert resp.get_json()["category"] == "validation"

    def test_not_found(self, client, owner_headers, db_session):
        resp = client.get("/api/sales/123456", headers=owner_headers)
        assert resp.status_code == 404
        body = resp.get_json()
        assert body["category"] == "not_found"
        assert body["details"] == {"sale_id": 123456}

    def test_validation_error_on_create(self, client, owner_headers, db_session):
        resp = client.post("/api/products", json={"name": "Pliers", "quantity": 3}, headers=owner_headers)
        assert resp.status_code == 400
        assert "stock movement" in resp.get_json()["message"]

    def test_non_object_body(self, client, owner_headers, db_session):
        resp = client.post("/api/customers", json=["not", "an", "object"], headers=owner_headers)
        assert resp.status_code == 400

    def test_inverted_date_range(self, client, owner_headers, db_session):
        resp = client.get("/api/sales?start_date=2026-05-02&end_date=2026-05-01", headers=owner_headers)
        assert resp.status_code == 400

    def test_cors_header_for_allowed_origin(self, client, owner_headers, db_session):
        resp = client.get("/api/products", headers={**owner_headers, "Origin": "http://localhost:5173"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
        assert "X-Actor-Role" in resp.headers["Access-Control-Allow-Headers"]


# =============================================================================
# END-TO-END FLOWS
# =============================================================================


class TestSaleFlow:

    def test_credit_sale_and_payments(self, client, cashier_headers, owner_headers, product, customer):
        created = client.post(
            "/api/sales",
            json={
                "customer_id": customer.id,
                "payment_method": "mpesa",
                "items": [{"product_id": product.id, "quantity": "2", "unit_price": "150.00", "line_total": "300.00"}],
            },
            headers=cashier_headers,
        )
        assert created.status_code == 201
        sale = created.get_json()["data"]
        assert sale["payment_status"] == "pending"
        assert sale["total_amount"] == "300.00"
        assert sale["items"][0]["product"]["sku"] == "HAM-001"

        paid = client.post(
            "/api/payments",
            json={"sale_id": sale["id"], "amount": "100", "payment_method": "mpesa", "reference_number": "ABC"},
            headers=cashier_headers,
        )
        assert paid.status_code == 201
        assert paid.get_json()["data"]["summary"]["payment_status"] == "partial"

        over = client.post(
            "/api/payments", json={"sale_id": sale["id"], "amount": "500"}, headers=cashier_headers,
        )
        assert over.status_code == 409
        assert over.get_json()["message"] == "Payment amount (500.00) exceeds remaining balance (200.00)"

        outstanding = client.get(f"/api/customers/{customer.id}/outstanding", headers=owner_headers)
        assert outstanding.get_json()["data"]["customer"]["current_balance"] == "200.00"

        inventory = client.get(f"/api/inventory/{product.id}", headers=owner_headers)
        assert inventory.get_json()["data"]["quantity"] == "8.000"

    def test_insufficient_stock_over_http(self, client, cashier_headers, product):
        resp = client.post(
            "/api/sales",
            json={"items": [{"product_id": product.id, "quantity": 50, "unit_price": "150"}]},
            headers=cashier_headers,
        )
        assert resp.status_code == 409
        body = resp.get_json()
        assert body["category"] == "conflict"
        assert body["message"].startswith("Insufficient stock for product HAM-001")
        assert "retryable" not in body

    def test_delete_sale_restores_stock(self, client, cashier_headers, owner_headers, product):
        created = client.post(
            "/api/sales",
            json={"items": [{"product_id": product.id, "quantity": 3, "unit_price": "150"}]},
            headers=cashier_headers,
        )
        sale_id = created.get_json()["data"]["id"]

        resp = client.delete(f"/api/sales/{sale_id}", headers=owner_headers)
        assert resp.status_code == 200
        inventory = client.get(f"/api/inventory/{product.id}", headers=owner_headers)
        assert inventory.get_json()["data"]["quantity"] == "10.000"


class TestStockMovementsApi:

    def test_adjustment(self, client, owner_headers, product):
        resp = client.post(
            "/api/stock-movements",
            json={"product_id": product.id, "quantity_change": "-2", "reason": "breakage", "notes": "Dropped"},
            headers=owner_headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["data"]["adjustment_reason"] == "breakage"

        listed = client.get(
            f"/api/stock-movements?product_id={product.id}&movement_type=adjustment", headers=owner_headers,
        )
        assert listed.get_json()["pagination"]["total"] == 2

    def test_only_adjustments_can_be_posted(self, client, owner_headers, product):
        resp = client.post(
            "/api/stock-movements",
            json={"product_id": product.id, "quantity_change": "5", "movement_type": "purchase", "reason": "correction"},
            headers=owner_headers,
        )
        assert resp.status_code == 400

    def test_reason_required(self, client, owner_headers, product):
        resp = client.post(
            "/api/stock-movements",
            json={"product_id": product.id, "quantity_change": "5"},
            headers=owner_headers,
        )
        assert resp.status_code == 400


class TestPurchaseApi:

    def test_receive_and_mark_paid(self, client, owner_headers, product, supplier):
        created = client.post(
            "/api/purchases",
            json={
                "supplier_id": supplier.id,
                "items": [{"product_id": product.id, "quantity": 5, "unit_cost": "80"}],
            },
            headers=owner_headers,
        )
        assert created.status_code == 201
        purchase = created.get_json()["data"]
        assert purchase["total_amount"] == "400.00"

        resp = client.patch(
            f"/api/purchases/{purchase['id']}/payment-status",
            json={"payment_status": "paid"},
            headers=owner_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["data"]["payment_status"] == "paid"

        inventory = client.get(f"/api/inventory/{product.id}", headers=owner_headers)
        assert inventory.get_json()["data"]["quantity"] == "15.000"


class TestReportsApi:

    def test_reports_respond(self, client, cashier_headers, owner_headers, product):
        client.post(
            "/api/sales",
            json={"items": [{"product_id": product.id, "quantity": 2, "unit_price": "150"}]},
            headers=cashier_headers,
        )
        client.post(
            "/api/expenses",
            json={"category": "Electricity", "amount": "50", "expense_date": "2026-01-05"},
            headers=owner_headers,
        )

        dashboard = client.get("/api/reports/dashboard", headers=owner_headers).get_json()["data"]
        assert dashboard["sales_today"] == {"count": 1, "total": "300.00"}

        sales = client.get("/api/reports/sales", headers=owner_headers).get_json()["data"]
        assert sales["summary"]["total_revenue"] == "300.00"

        financial = client.get("/api/reports/financial", headers=owner_headers).get_json()["data"]
        assert financial["costs"]["expenses"] == "50.00"

        inventory = client.get("/api/reports/inventory", headers=owner_headers).get_json()["data"]
        assert inventory["summary"]["total_products"] == 1

        products = client.get("/api/reports/products?limit=5", headers=owner_headers).get_json()["data"]
        assert products["best_sellers_by_quantity"][0]["quantity_sold"] == "2.000"

