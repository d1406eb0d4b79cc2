"""
Production order tests: material consumption on start, finished goods on
completion.
"""

import pytest

from erp_core.errors import InsufficientStock, InvalidTransition, OrderNotFound, ProductNotFound, ValidationFailed
from erp_core.services import inventory_service, production_service, sales_service


@pytest.fixture
def bill_of_materials(make_product):
    steel = make_product(sku="RM-STEEL", stock=20, unit_cost=300)
    grip = make_product(sku="CP-GRIP", stock=10, unit_cost=50, category="component")
    box = make_product(sku="FG-BOX", stock=0, category="finished-good")
    return steel, grip, box


def _create(box, steel, grip, quantity=2, steel_qty=6, grip_qty=2):
    return production_service.create_production_order(
        product_id=box.id,
        quantity=quantity,
        materials=[
            {"product_id": steel.id, "quantity": steel_qty},
            {"product_id": grip.id, "quantity": grip_qty},
        ],
        created_by="planner",
    )


def test_create_defaults_material_cost(bill_of_materials):
    steel, grip, box = bill_of_materials
    order = _create(box, steel, grip)

    assert order.order_number == "MO0001"
    assert order.status == "pending"
    assert [m.unit_cost_cents for m in order.materials] == [300, 50]


def test_start_consumes_and_complete_produces(bill_of_materials):
    steel, grip, box = bill_of_materials
    order = _create(box, steel, grip)

    started = production_service.start_production_order(order.id)
    assert started.order.status == "in_progress"
    assert inventory_service.get_product(steel.id).current_stock == 14
    assert inventory_service.get_product(grip.id).current_stock == 8

    completed = production_service.complete_production_order(order.id)
    assert completed.order.status == "completed"
    assert inventory_service.get_product(box.id).current_stock == 2


def test_start_is_all_or_nothing(bill_of_materials):
    steel, grip, box = bill_of_materials
    order = _create(box, steel, grip, grip_qty=11)

    with pytest.raises(InsufficientStock):
        production_service.start_production_order(order.id)

    assert production_service.get_production_order(order.id).status == "pending"
    assert inventory_service.get_product(steel.id).current_stock == 20


def test_invalid_transitions(bill_of_materials):
    steel, grip, box = bill_of_materials
    order = _create(box, steel, grip)

    with pytest.raises(InvalidTransition):
        production_service.complete_production_order(order.id)

    production_service.start_production_order(order.id)
    with pytest.raises(InvalidTransition):
        production_service.cancel_production_order(order.id)
    with pytest.raises(InvalidTransition):
        production_service.delete_production_order(order.id)


def test_cancel_and_delete_pending(bill_of_materials):
    steel, grip, box = bill_of_materials
    cancelled = _create(box, steel, grip)
    production_service.cancel_production_order(cancelled.id)
    assert production_service.get_production_order(cancelled.id).status == "cancelled"

    removable = _create(box, steel, grip)
    production_service.delete_production_order(removable.id)
    assert [o.id for o in production_service.list_production_orders()] == [cancelled.id]


def test_create_validation(bill_of_materials):
    steel, grip, box = bill_of_materials
    with pytest.raises(ValidationFailed):
        _create(box, steel, grip, quantity=0)
    with pytest.raises(ValidationFailed):
        production_service.create_production_order(
            product_id=box.id, quantity=1, materials=[{"product_id": box.id, "quantity": 1}]
        )
    with pytest.raises(ProductNotFound):
        production_service.create_production_order(product_id=777_777, quantity=1, materials=[])


def test_negative_material_cost_rejected(bill_of_materials):
    steel, grip, box = bill_of_materials
    with pytest.raises(ValidationFailed):
        production_service.create_production_order(
            product_id=box.id,
            quantity=1,
            materials=[{"product_id": steel.id, "quantity": 1, "unit_cost_cents": -1}],
        )
    assert production_service.list_production_orders() == []


def test_linked_sales_order_must_exist(bill_of_materials, make_customer):
    steel, grip, box = bill_of_materials
    with pytest.raises(OrderNotFound):
        production_service.create_production_order(
            product_id=box.id, quantity=1, materials=[], sales_order_id=999_999
        )

    box_priced = inventory_service.update_product(box.id, {"selling_price_cents": 900})
    sale = sales_service.create_sales_order(
        customer_id=make_customer().id,
        lines=[{"product_id": box_priced.id, "quantity": 1}],
    )
    order = production_service.create_production_order(
        product_id=box.id, quantity=1, materials=[], sales_order_id=sale.id
    )
    assert order.sales_order_id == sale.id
