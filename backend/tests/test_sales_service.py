"""
Sales order workflow tests.

Verifies:
- Confirm decrements every line or none
- Invoice generated on the configured event, exactly once
- Confirm below threshold raises one auto purchase order per product
"""

import pytest

from erp_core.errors import InsufficientStock, InvalidTransition, ValidationFailed
from erp_core.extensions import db
from erp_core.models import Invoice, StockMovement
from erp_core.services import inventory_service, invoice_service, purchasing_service, sales_service


@pytest.fixture
def customer(make_customer):
    return make_customer(payment_terms="Net 15")


def _order(customer, *lines):
    return sales_service.create_sales_order(
        customer_id=customer.id,
        lines=[{"product_id": p.id, "quantity": q} for p, q in lines],
    )


def test_create_uses_selling_price(customer, make_product):
    chair = make_product(selling_price=2_500)
    order = _order(customer, (chair, 3))

    assert order.order_number == "SO0001"
    assert order.total_cents == 7_500
    assert order.lines[0].unit_price_cents == 2_500


def test_create_without_any_price_rejected(customer, make_product):
    unpriced = make_product()
    with pytest.raises(ValidationFailed):
        _order(customer, (unpriced, 1))


def test_confirm_decrements_and_invoices(customer, make_product):
    chair = make_product(stock=10, selling_price=1_000)
    table = make_product(stock=4, selling_price=5_000)
    order = _order(customer, (chair, 4), (table, 1))

    result = sales_service.confirm_sales_order(order.id, actor_id="seller")

    assert result.order.status == "confirmed"
    assert inventory_service.get_product(chair.id).current_stock == 6
    assert inventory_service.get_product(table.id).current_stock == 3
    assert result.invoice.invoice_number == "INV0001"
    assert result.invoice.total_cents == 9_000
    assert result.invoice.payment_terms == "Net 15"


def test_confirm_is_atomic_across_lines(customer, make_product):
    plenty = make_product(stock=10, selling_price=100)
    scarce = make_product(stock=1, selling_price=100)
    order = _order(customer, (plenty, 5), (scarce, 2))

    with pytest.raises(InsufficientStock):
        sales_service.confirm_sales_order(order.id)

    assert sales_service.get_sales_order(order.id).status == "pending"
    assert inventory_service.get_product(plenty.id).current_stock == 10
    assert inventory_service.get_product(scarce.id).current_stock == 1
    assert db.session.query(StockMovement).filter_by(reference="sale").count() == 0
    assert db.session.query(Invoice).count() == 0


def test_invoice_on_ship_when_configured(app, monkeypatch, customer, make_product):
    monkeypatch.setitem(app.config, "SALES_INVOICE_EVENT", "ship")
    chair = make_product(stock=5, selling_price=100)
    order = _order(customer, (chair, 1))

    confirmed = sales_service.confirm_sales_order(order.id)
    assert confirmed.invoice is None

    shipped = sales_service.ship_sales_order(order.id)
    assert shipped.invoice is not None
    assert invoice_service.get_invoice_by_order("sales", order.id).id == shipped.invoice.id


def test_full_lifecycle_and_terminal_state(customer, make_product):
    chair = make_product(stock=5, selling_price=100)
    order = _order(customer, (chair, 1))

    sales_service.confirm_sales_order(order.id)
    sales_service.ship_sales_order(order.id)
    delivered = sales_service.deliver_sales_order(order.id)
    assert delivered.order.status == "delivered"
    assert delivered.order.delivered_at is not None

    for transition in (
        sales_service.confirm_sales_order,
        sales_service.ship_sales_order,
        sales_service.deliver_sales_order,
        sales_service.cancel_sales_order,
    ):
        with pytest.raises(InvalidTransition):
            transition(order.id)


def test_cancel_pending_keeps_stock(customer, make_product):
    chair = make_product(stock=5, selling_price=100)
    order = _order(customer, (chair, 2))

    sales_service.cancel_sales_order(order.id)

    assert sales_service.get_sales_order(order.id).status == "cancelled"
    assert inventory_service.get_product(chair.id).current_stock == 5


def test_confirm_triggers_single_auto_reorder(customer, make_supplier, make_product):
    supplier = make_supplier()
    bolt = make_product(stock=12, min_stock=10, selling_price=10, supplier_id=supplier.id)

    first = sales_service.confirm_sales_order(_order(customer, (bolt, 5)).id)
    assert len(first.auto_purchase_orders) == 1
    assert first.auto_purchase_orders[0].lines[0].quantity == 2 * 10 - 7

    second = sales_service.confirm_sales_order(_order(customer, (bolt, 1)).id)
    assert second.auto_purchase_orders == []
    assert len(purchasing_service.list_purchase_orders(auto_generated=True)) == 1


def test_edit_only_pending(customer, make_product):
    chair = make_product(stock=5, selling_price=100)
    order = _order(customer, (chair, 1))

    updated = sales_service.update_sales_order(order.id, lines=[{"product_id": chair.id, "quantity": 3}])
    assert updated.total_cents == 300

    sales_service.confirm_sales_order(order.id)
    with pytest.raises(InvalidTransition):
        sales_service.update_sales_order(order.id, notes="late")
    with pytest.raises(InvalidTransition):
        sales_service.delete_sales_order(order.id)


def test_revenue_summary(customer, make_product):
    chair = make_product(stock=5, selling_price=100)
    sales_service.confirm_sales_order(_order(customer, (chair, 2)).id)
    _order(customer, (chair, 1))

    summary = sales_service.revenue_summary()
    assert summary["total_revenue_cents"] == 200
    assert summary["order_count"] == 1
