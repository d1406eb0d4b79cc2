"""
HTTP surface tests: identity, capability checks and error envelopes.
"""

import pytest

from erp_core.services import ledger_service


FINANCE_MANAGER = ("manager", "Finance")


@pytest.fixture
def stocked_sale(make_customer, make_product):
    customer = make_customer(payment_terms="Net 10")
    lamp = make_product(sku="LAMP-1", stock=3, selling_price=4_000, category="finished-good")
    return customer, lamp


def _create_sale(client, headers, customer, product, quantity):
    resp = client.post(
        "/api/sales/orders",
        json={"customer_id": customer.id, "items": [{"product_id": product.id, "quantity": quantity}]},
        headers=headers,
    )
    assert resp.status_code == 201
    return resp.get_json()["order"]


def test_health_is_public(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "healthy"


def test_missing_identity_is_401(client):
    resp = client.get("/api/finance/bank-accounts")
    assert resp.status_code == 401
    assert resp.get_json()["code"] == "UNAUTHENTICATED"


def test_unknown_role_is_401(client):
    resp = client.get("/api/inventory/products", headers={"X-Actor-Id": "x", "X-Actor-Role": "intern"})
    assert resp.status_code == 401


def test_employee_cannot_pay_invoices(client, actor_headers):
    resp = client.post(
        "/api/finance/pay-invoice",
        json={"invoice_id": 1, "bank_account_id": 1},
        headers=actor_headers("employee", "Finance"),
    )
    assert resp.status_code == 403
    body = resp.get_json()
    assert body["code"] == "FORBIDDEN"
    assert body["required_capability"] == "finance.payments"


def test_department_scopes_grants(client, actor_headers, make_supplier, make_product):
    supplier = make_supplier()
    part = make_product(sku="P-1", supplier_id=supplier.id)
    payload = {"supplier_id": supplier.id, "items": [{"product_id": part.id, "quantity": 1}]}

    denied = client.post("/api/purchasing/orders", json=payload, headers=actor_headers("employee", "Sales"))
    allowed = client.post("/api/purchasing/orders", json=payload, headers=actor_headers("employee", "Purchasing"))

    assert denied.status_code == 403
    assert allowed.status_code == 201
    assert allowed.get_json()["order"]["order_number"] == "PO0001"


def test_reads_are_open_to_any_actor(client, actor_headers):
    resp = client.get("/api/finance/bank-accounts", headers=actor_headers("employee", "HR"))
    assert resp.status_code == 200
    assert resp.get_json()["total_balance_cents"] == 0


def test_confirm_over_http_reports_insufficient_stock(client, admin_headers, stocked_sale):
    customer, lamp = stocked_sale
    order = _create_sale(client, admin_headers, customer, lamp, 4)

    resp = client.put(f"/api/sales/orders/{order['id']}/confirm", headers=admin_headers)

    assert resp.status_code == 409
    body = resp.get_json()
    assert body["code"] == "INSUFFICIENT_STOCK"
    assert body["details"]["shortages"] == [
        {"product_id": lamp.id, "sku": "LAMP-1", "available": 3, "requested": 4}
    ]


def test_sale_to_payment_over_http(client, admin_headers, actor_headers, stocked_sale, make_account):
    customer, lamp = stocked_sale
    account = make_account(balance=1_000)
    order = _create_sale(client, admin_headers, customer, lamp, 2)

    confirmed = client.put(f"/api/sales/orders/{order['id']}/confirm", headers=admin_headers)
    assert confirmed.status_code == 200
    invoice = confirmed.get_json()["invoice"]
    assert invoice["total_cents"] == 8_000
    assert confirmed.get_json()["stock_movements"] == [{"product_id": lamp.id, "before": 3, "after": 1}]

    paid = client.post(
        "/api/finance/pay-invoice",
        json={"invoice_id": invoice["id"], "bank_account_id": account.id},
        headers=actor_headers(*FINANCE_MANAGER),
    )
    assert paid.status_code == 200
    body = paid.get_json()
    assert body["new_balance_cents"] == 9_000
    assert body["invoice"]["status"] == "paid"
    assert body["transaction"]["direction"] == "in"

    again = client.post(
        "/api/finance/pay-invoice",
        json={"invoice_id": invoice["id"], "bank_account_id": account.id},
        headers=actor_headers(*FINANCE_MANAGER),
    )
    assert again.status_code == 409
    assert again.get_json()["code"] == "ALREADY_PAID"

    reconcile = client.get("/api/finance/reconcile", headers=admin_headers)
    assert reconcile.get_json()["consistent"] is True


def test_invoice_not_found(client, admin_headers):
    resp = client.get("/api/finance/invoices/424242", headers=admin_headers)
    assert resp.status_code == 404
    assert resp.get_json()["code"] == "INVOICE_NOT_FOUND"


def test_adjust_endpoint(client, admin_headers, make_product):
    widget = make_product(sku="W-1", stock=5)

    up = client.post(f"/api/inventory/products/{widget.id}/adjust", json={"quantity": 3}, headers=admin_headers)
    assert up.status_code == 200
    assert up.get_json()["product"]["current_stock"] == 8

    down = client.post(f"/api/inventory/products/{widget.id}/adjust", json={"quantity": -9}, headers=admin_headers)
    assert down.status_code == 409
    assert down.get_json()["code"] == "NEGATIVE_STOCK"

    zero = client.post(f"/api/inventory/products/{widget.id}/adjust", json={"quantity": 0}, headers=admin_headers)
    assert zero.status_code == 400
    assert zero.get_json()["code"] == "VALIDATION_ERROR"


def test_bank_balance_is_not_writable(client, admin_headers, make_account):
    account = make_account(balance=500)

    resp = client.put(
        f"/api/finance/bank-accounts/{account.id}",
        json={"name": "Renamed", "balance_cents": 1},
        headers=admin_headers,
    )

    assert resp.status_code == 400
    listing = client.get("/api/finance/bank-accounts", headers=admin_headers).get_json()
    assert listing["bank_accounts"][0]["balance_cents"] == 500


def test_expense_over_http_rejects_overdraft(client, actor_headers, make_account):
    account = make_account(balance=100)
    resp = client.post(
        "/api/finance/expenses",
        json={"title": "Rent", "amount_cents": 500, "category": "rent", "bank_account_id": account.id},
        headers=actor_headers(*FINANCE_MANAGER),
    )
    assert resp.status_code == 409
    assert resp.get_json()["code"] == "INSUFFICIENT_FUNDS"
    assert ledger_service.get_account(account.id).balance_cents == 100


def test_cash_flow_report(client, actor_headers, make_account):
    make_account(balance=700)
    resp = client.get("/api/finance/cash-flow?months=2", headers=actor_headers("manager", "Sales"))
    assert resp.status_code == 200
    months = resp.get_json()["months"]
    assert len(months) == 2
    assert months[-1]["in_cents"] == 700


def test_production_order_rejects_negative_material_cost(client, admin_headers, make_product):
    steel = make_product(sku="RM-1", stock=5)
    box = make_product(sku="FG-1", category="finished-good")

    resp = client.post(
        "/api/manufacturing/production-orders",
        json={
            "product_id": box.id,
            "quantity": 1,
            "materials": [{"product_id": steel.id, "quantity": 1, "unit_cost_cents": -50}],
        },
        headers=admin_headers,
    )

    assert resp.status_code == 400
    assert resp.get_json()["code"] == "VALIDATION_ERROR"


def test_production_order_with_unknown_sales_order_is_404(client, admin_headers, make_product):
    box = make_product(sku="FG-2", category="finished-good")

    resp = client.post(
        "/api/manufacturing/production-orders",
        json={"product_id": box.id, "quantity": 1, "sales_order_id": 31_337},
        headers=admin_headers,
    )

    assert resp.status_code == 404
    assert resp.get_json()["code"] == "ORDER_NOT_FOUND"
