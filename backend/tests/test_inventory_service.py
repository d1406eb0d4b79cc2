"""
Inventory tests.

Verifies:
- Stock never goes negative
- Every stock change appends exactly one movement
- Multi-product decrements are all-or-nothing
"""

import pytest

from erp_core.errors import InsufficientStock, NegativeStock, ProductInUse, ProductNotFound, ValidationFailed
from erp_core.extensions import db
from erp_core.models import Product, PurchaseOrder, StockMovement
from erp_core.services import inventory_service, purchasing_service, sales_service


def _movements(product_id):
    return (
        db.session.query(StockMovement)
        .filter_by(product_id=product_id)
        .order_by(StockMovement.id)
        .all()
    )


def test_opening_stock_is_recorded_as_movement(make_product):
    product = make_product(stock=25)

    assert product.current_stock == 25
    movements = _movements(product.id)
    assert len(movements) == 1
    assert movements[0].reference == "adjustment"
    assert movements[0].stock_after == 25


def test_duplicate_sku_rejected(make_product):
    make_product(sku="DUP-1")
    with pytest.raises(ValidationFailed):
        make_product(sku="DUP-1")


def test_unknown_category_rejected(make_product):
    with pytest.raises(ValidationFailed):
        make_product(category="gadgets")


def test_update_cannot_write_stock(make_product):
    product = make_product(stock=5)
    with pytest.raises(ValidationFailed):
        inventory_service.update_product(product.id, {"current_stock": 500})
    assert inventory_service.get_product(product.id).current_stock == 5


def test_adjust_up_and_down(make_product):
    product = make_product(stock=10)

    inventory_service.adjust_stock(product.id, 5)
    inventory_service.adjust_stock(product.id, -12)

    assert inventory_service.get_product(product.id).current_stock == 3
    assert [m.signed_quantity for m in _movements(product.id)] == [10, 5, -12]


def test_adjust_below_zero_raises_and_changes_nothing(make_product):
    product = make_product(stock=4)

    with pytest.raises(NegativeStock):
        inventory_service.adjust_stock(product.id, -5)

    assert inventory_service.get_product(product.id).current_stock == 4
    assert len(_movements(product.id)) == 1


def test_adjust_zero_rejected(make_product):
    product = make_product(stock=4)
    with pytest.raises(ValidationFailed):
        inventory_service.adjust_stock(product.id, 0)


def test_adjust_unknown_product(make_product):
    with pytest.raises(ProductNotFound):
        inventory_service.adjust_stock(123_456, 1)


def test_decrement_many_is_all_or_nothing(make_product):
    plenty = make_product(stock=10)
    scarce = make_product(stock=2)

    with pytest.raises(InsufficientStock) as excinfo:
        inventory_service.decrement_many_inner(
            [(plenty.id, 5), (scarce.id, 3)],
            reference="sale",
        )
    db.session.rollback()

    assert excinfo.value.details["shortages"][0]["product_id"] == scarce.id
    assert inventory_service.get_product(plenty.id).current_stock == 10
    assert inventory_service.get_product(scarce.id).current_stock == 2


def test_decrement_many_sums_repeated_products(make_product):
    product = make_product(stock=10)

    with pytest.raises(InsufficientStock):
        inventory_service.decrement_many_inner(
            [(product.id, 6), (product.id, 6)],
            reference="sale",
        )
    db.session.rollback()

    movements = inventory_service.decrement_many_inner(
        [(product.id, 4), (product.id, 5)],
        reference="sale",
    )
    db.session.commit()
    assert len(movements) == 1
    assert inventory_service.get_product(product.id).current_stock == 1


def test_check_reorder(app, make_product):
    product = make_product(stock=3, min_stock=10)

    result = inventory_service.check_reorder(product.id)
    assert result["below_threshold"] is True
    assert result["suggested_quantity"] == 2 * 10 - 3

    healthy = make_product(stock=10, min_stock=10)
    assert inventory_service.check_reorder(healthy.id)["below_threshold"] is False


def test_adjust_stock_triggers_reorder_on_decrement(make_supplier, make_product):
    supplier = make_supplier()
    product = make_product(stock=12, min_stock=10, supplier_id=supplier.id)

    _, created = inventory_service.adjust_stock(product.id, -5)

    assert len(created) == 1
    assert created[0].auto_generated is True
    assert created[0].lines[0].quantity == 2 * 10 - 7


def test_adjust_stock_increment_never_reorders(make_supplier, make_product):
    supplier = make_supplier()
    product = make_product(stock=1, min_stock=10, supplier_id=supplier.id)

    _, created = inventory_service.adjust_stock(product.id, 1)
    assert created == []


def test_adjust_stock_decrement_below_minimum_orders_once(make_supplier, make_product):
    supplier = make_supplier()
    product = make_product(stock=10, min_stock=5, supplier_id=supplier.id)

    _, first = inventory_service.adjust_stock(product.id, -8)
    _, second = inventory_service.adjust_stock(product.id, -1)

    assert inventory_service.get_product(product.id).current_stock == 1
    assert len(first) == 1
    assert first[0].supplier_id == supplier.id
    assert second == []
    assert db.session.query(PurchaseOrder).filter_by(auto_generated=True).count() == 1


def test_low_stock_and_stock_value(make_product):
    make_product(stock=2, min_stock=5, unit_cost=100)
    make_product(stock=10, min_stock=5, unit_cost=50, category="component")

    low = inventory_service.low_stock_products()
    assert len(low) == 1

    value = inventory_service.stock_value()
    assert value["total_value_cents"] == 2 * 100 + 10 * 50
    assert value["total_units"] == 12
    assert {c["category"] for c in value["by_category"]} == {"raw-material", "component"}


def test_delete_product_without_history(make_product):
    product = make_product(stock=0)
    assert inventory_service.delete_product(product.id) == "deleted"
    assert db.session.get(Product, product.id) is None


def test_delete_product_with_history_deactivates(make_product):
    product = make_product(stock=3)
    assert inventory_service.delete_product(product.id) == "deactivated"
    assert inventory_service.get_product(product.id).is_active is False


def test_delete_product_on_order_refused(make_supplier, make_product):
    supplier = make_supplier()
    product = make_product()
    purchasing_service.create_purchase_order(
        supplier_id=supplier.id,
        lines=[{"product_id": product.id, "quantity": 1}],
    )
    with pytest.raises(ProductInUse):
        inventory_service.delete_product(product.id)


def test_list_movements_filters_by_reference(make_customer, make_product):
    product = make_product(stock=10, selling_price=300)
    order = sales_service.create_sales_order(
        customer_id=make_customer().id,
        lines=[{"product_id": product.id, "quantity": 1}],
    )
    sales_service.confirm_sales_order(order.id)

    rows, total = inventory_service.list_movements(product_id=product.id, reference="sale")
    assert total == 1
    assert rows[0].direction == "out"
