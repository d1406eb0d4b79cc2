# Overview: Production orders; material consumption on start, finished goods on completion.

from __future__ import annotations

from ..errors import OrderNotFound, ProductNotFound, ValidationFailed
from ..extensions import db
from ..models import Product, ProductionMaterial, ProductionOrder, SalesOrder
from ..time_utils import utcnow
from ..validation import require_amount_cents
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_document_number
from .inventory_service import decrement_many_inner, increment_many_inner
from .order_lifecycle import ProductionOrderStatus, TransitionResult, ensure_editable, next_status
from .reorder_service import trigger_reorder_inner

ORDER_TYPE_PRODUCTION = "production"


def get_production_order(order_id: int) -> ProductionOrder:
    order = db.session.get(ProductionOrder, order_id)
    if not order:
        raise OrderNotFound(f"Production order {order_id} not found")
    return order


def _get_for_update(order_id: int) -> ProductionOrder:
    order = lock_for_update(
        db.session.query(ProductionOrder).filter(ProductionOrder.id == order_id)
    ).first()
    if not order:
        raise OrderNotFound(f"Production order {order_id} not found")
    return order


def list_production_orders(*, status: str | None = None) -> list[ProductionOrder]:
    query = db.session.query(ProductionOrder)
    if status:
        query = query.filter(ProductionOrder.status == status)
    return query.order_by(ProductionOrder.created_at.desc(), ProductionOrder.id.desc()).all()


def create_production_order(
    *,
    product_id: int,
    quantity: int,
    materials: list[dict],
    sales_order_id: int | None = None,
    notes: str | None = None,
    created_by: str | None = None,
) -> ProductionOrder:
    """
    Create a pending production order.

    materials: [{"product_id", "quantity", "unit_cost_cents"?}]; the unit
    cost defaults to the material's current unit cost.
    """
    if quantity <= 0:
        raise ValidationFailed("quantity must be > 0")

    def _op() -> ProductionOrder:
        product = db.session.get(Product, product_id)
        if not product:
            raise ProductNotFound(f"Product {product_id} not found")
        if sales_order_id is not None and not db.session.get(SalesOrder, sales_order_id):
            raise OrderNotFound(f"Sales order {sales_order_id} not found")

        order = ProductionOrder(
            order_number=next_document_number("production_order"),
            product_id=product.id,
            quantity=quantity,
            status=ProductionOrderStatus.PENDING.value,
            sales_order_id=sales_order_id,
            notes=notes,
            created_by=created_by,
        )
        for item in materials:
            material = db.session.get(Product, item["product_id"])
            if not material:
                raise ProductNotFound(f"Product {item['product_id']} not found")
            if material.id == product.id:
                raise ValidationFailed("A product cannot consume itself")
            if item.get("quantity") is None or item["quantity"] <= 0:
                raise ValidationFailed("material quantity must be > 0")
            unit_cost = item.get("unit_cost_cents")
            if unit_cost is not None:
                unit_cost = require_amount_cents(unit_cost, "material unit_cost_cents", allow_zero=True)
            order.materials.append(
                ProductionMaterial(
                    product_id=material.id,
                    quantity=item["quantity"],
                    unit_cost_cents=material.unit_cost_cents if unit_cost is None else unit_cost,
                )
            )
        db.session.add(order)
        db.session.commit()
        return order

    return run_with_retry(_op)


def delete_production_order(order_id: int) -> None:
    def _op() -> None:
        order = _get_for_update(order_id)
        ensure_editable(ORDER_TYPE_PRODUCTION, order.status)
        db.session.delete(order)
        db.session.commit()

    run_with_retry(_op)


def start_production_order(order_id: int, *, actor_id: str | None = None) -> TransitionResult:
    """
    pending -> in_progress: consume every material or none, then run the
    auto-reorder trigger for the consumed materials.

    Raises:
        OrderNotFound, InvalidTransition, InsufficientStock
    """
    def _op() -> TransitionResult:
        order = _get_for_update(order_id)
        order.status = next_status(ORDER_TYPE_PRODUCTION, order.status, "start")
        order.started_at = utcnow()

        movements = []
        if order.materials:
            movements = decrement_many_inner(
                [(m.product_id, m.quantity) for m in order.materials],
                reference="production",
                reference_id=order.id,
                created_by=actor_id,
                note=f"Material consumed for {order.order_number}",
            )
        auto_orders = trigger_reorder_inner(
            [m.product_id for m in movements], created_by=actor_id
        )
        db.session.commit()
        return TransitionResult(order=order, stock_movements=movements, auto_purchase_orders=auto_orders)

    return run_with_retry(_op)


def complete_production_order(order_id: int, *, actor_id: str | None = None) -> TransitionResult:
    """in_progress -> completed: finished goods into stock."""
    def _op() -> TransitionResult:
        order = _get_for_update(order_id)
        order.status = next_status(ORDER_TYPE_PRODUCTION, order.status, "complete")
        order.completed_at = utcnow()
        movements = increment_many_inner(
            [(order.product_id, order.quantity, None)],
            reference="production",
            reference_id=order.id,
            created_by=actor_id,
            note=f"Finished goods from {order.order_number}",
        )
        db.session.commit()
        return TransitionResult(order=order, stock_movements=movements)

    return run_with_retry(_op)


def cancel_production_order(order_id: int, *, actor_id: str | None = None) -> TransitionResult:
    def _op() -> TransitionResult:
        order = _get_for_update(order_id)
        order.status = next_status(ORDER_TYPE_PRODUCTION, order.status, "cancel")
        order.cancelled_at = utcnow()
        db.session.commit()
        return TransitionResult(order=order)

    return run_with_retry(_op)
