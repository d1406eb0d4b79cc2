# Overview: Sales order workflow (pending -> confirmed -> shipped -> delivered) and customer records.

"""
Sales Service

LIFECYCLE:
1. PENDING: Created; editable and deletable
2. CONFIRMED: Stock reserved out of the warehouse (all lines or none)
3. SHIPPED
4. DELIVERED
5. CANCELLED: Cancelled while still pending

CONFIRM is a single unit of work:
- order status first
- check-and-decrement every line (same-product quantities summed)
- sales invoice when SALES_INVOICE_EVENT is "confirm" (default)
- auto-reorder trigger for every product the decrement touched
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from flask import current_app
from sqlalchemy import func

from ..errors import OrderNotFound, PartyNotFound, ProductNotFound, ValidationFailed
from ..extensions import db
from ..models import Customer, Product, SalesOrder, SalesOrderLine
from ..time_utils import utcnow
from ..validation import ModelValidationPolicy, validate_payload
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_document_number
from .inventory_service import decrement_many_inner
from .invoice_service import ORDER_TYPE_SALES, generate_invoice_inner, get_invoice_by_order
from .order_lifecycle import SalesOrderStatus, TransitionResult, ensure_editable, next_status
from .reorder_service import trigger_reorder_inner


CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "company", "phone", "payment_terms", "is_active"},
    required_on_create={"name"},
)

INVOICE_EVENTS = ("confirm", "ship")


# =============================================================================
# Customers
# =============================================================================

def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise PartyNotFound(f"Customer {customer_id} not found")
    return customer


def list_customers(*, active_only: bool = True) -> list[Customer]:
    query = db.session.query(Customer)
    if active_only:
        query = query.filter(Customer.is_active.is_(True))
    return query.order_by(Customer.name.asc()).all()


def create_customer(payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)

    def _op() -> Customer:
        customer = Customer(**patch)
        db.session.add(customer)
        db.session.commit()
        return customer

    return run_with_retry(_op)


# =============================================================================
# Order documents
# =============================================================================

def _build_lines(lines: list[dict]) -> list[SalesOrderLine]:
    """Lines default to the product's selling price when no price is given."""
    if not lines:
        raise ValidationFailed("A sales order needs at least one line")
    built = []
    for line in lines:
        quantity = line.get("quantity")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise ValidationFailed("line quantity must be a positive integer")
        product = db.session.get(Product, line["product_id"])
        if not product:
            raise ProductNotFound(f"Product {line['product_id']} not found")
        price = line.get("unit_price_cents")
        if price is None:
            price = product.selling_price_cents
        if price is None:
            raise ValidationFailed(f"No price given and product {product.sku} has no selling price")
        built.append(
            SalesOrderLine(
                product_id=product.id,
                quantity=quantity,
                unit_price_cents=price,
                line_total_cents=quantity * price,
            )
        )
    return built


def get_sales_order(order_id: int) -> SalesOrder:
    order = db.session.get(SalesOrder, order_id)
    if not order:
        raise OrderNotFound(f"Sales order {order_id} not found")
    return order


def _get_for_update(order_id: int) -> SalesOrder:
    order = lock_for_update(db.session.query(SalesOrder).filter(SalesOrder.id == order_id)).first()
    if not order:
        raise OrderNotFound(f"Sales order {order_id} not found")
    return order


def list_sales_orders(*, status: str | None = None, customer_id: int | None = None) -> list[SalesOrder]:
    query = db.session.query(SalesOrder)
    if status:
        query = query.filter(SalesOrder.status == status)
    if customer_id is not None:
        query = query.filter(SalesOrder.customer_id == customer_id)
    return query.order_by(SalesOrder.created_at.desc(), SalesOrder.id.desc()).all()


def create_sales_order(
    *,
    customer_id: int,
    lines: list[dict],
    notes: str | None = None,
    created_by: str | None = None,
    delivery_date: Optional[datetime] = None,
) -> SalesOrder:
    def _op() -> SalesOrder:
        customer = get_customer(customer_id)
        order = SalesOrder(
            order_number=next_document_number("sales_order"),
            customer_id=customer.id,
            status=SalesOrderStatus.PENDING.value,
            delivery_date=delivery_date,
            notes=notes,
            created_by=created_by,
        )
        order.lines = _build_lines(lines)
        order.total_cents = order.subtotal_cents
        db.session.add(order)
        db.session.commit()
        return order

    return run_with_retry(_op)


def update_sales_order(
    order_id: int,
    *,
    customer_id: int | None = None,
    lines: list[dict] | None = None,
    notes: str | None = None,
    delivery_date: Optional[datetime] = None,
) -> SalesOrder:
    """Edit a pending order. Any other status raises InvalidTransition."""
    def _op() -> SalesOrder:
        order = _get_for_update(order_id)
        ensure_editable(ORDER_TYPE_SALES, order.status)
        if customer_id is not None:
            order.customer_id = get_customer(customer_id).id
        if lines is not None:
            order.lines = _build_lines(lines)
            order.total_cents = order.subtotal_cents
        if notes is not None:
            order.notes = notes
        if delivery_date is not None:
            order.delivery_date = delivery_date
        db.session.commit()
        return order

    return run_with_retry(_op)


def delete_sales_order(order_id: int) -> None:
    def _op() -> None:
        order = _get_for_update(order_id)
        ensure_editable(ORDER_TYPE_SALES, order.status)
        db.session.delete(order)
        db.session.commit()

    run_with_retry(_op)


# =============================================================================
# Transitions
# =============================================================================

def _invoice_event() -> str:
    event = current_app.config.get("SALES_INVOICE_EVENT", "confirm")
    if event not in INVOICE_EVENTS:
        raise ValueError(f"SALES_INVOICE_EVENT must be one of {INVOICE_EVENTS}")
    return event


def _invoice_if_missing(order: SalesOrder):
    invoice = get_invoice_by_order(ORDER_TYPE_SALES, order.id)
    if invoice is None:
        invoice = generate_invoice_inner(ORDER_TYPE_SALES, order)
    return invoice


def confirm_sales_order(order_id: int, *, actor_id: str | None = None) -> TransitionResult:
    """
    pending -> confirmed with an all-or-nothing stock decrement.

    Raises:
        OrderNotFound, InvalidTransition
        InsufficientStock: any line lacks stock; nothing is changed
    """
    def _op() -> TransitionResult:
        order = _get_for_update(order_id)
        target = next_status(ORDER_TYPE_SALES, order.status, "confirm")
        order.status = target
        order.confirmed_at = utcnow()

        movements = decrement_many_inner(
            [(line.product_id, line.quantity) for line in order.lines],
            reference="sale",
            reference_id=order.id,
            created_by=actor_id,
            note=f"Confirmed {order.order_number}",
        )

        invoice = _invoice_if_missing(order) if _invoice_event() == "confirm" else None

        auto_orders = trigger_reorder_inner(
            [m.product_id for m in movements], created_by=actor_id
        )

        db.session.commit()
        return TransitionResult(
            order=order,
            stock_movements=movements,
            invoice=invoice,
            auto_purchase_orders=auto_orders,
        )

    return run_with_retry(_op)


def ship_sales_order(order_id: int, *, actor_id: str | None = None) -> TransitionResult:
    def _op() -> TransitionResult:
        order = _get_for_update(order_id)
        order.status = next_status(ORDER_TYPE_SALES, order.status, "ship")
        order.shipped_at = utcnow()
        invoice = _invoice_if_missing(order) if _invoice_event() == "ship" else None
        db.session.commit()
        return TransitionResult(order=order, invoice=invoice)

    return run_with_retry(_op)


def deliver_sales_order(order_id: int, *, actor_id: str | None = None) -> TransitionResult:
    def _op() -> TransitionResult:
        order = _get_for_update(order_id)
        order.status = next_status(ORDER_TYPE_SALES, order.status, "deliver")
        order.delivered_at = utcnow()
        db.session.commit()
        return TransitionResult(order=order)

    return run_with_retry(_op)


def cancel_sales_order(order_id: int, *, actor_id: str | None = None) -> TransitionResult:
    def _op() -> TransitionResult:
        order = _get_for_update(order_id)
        order.status = next_status(ORDER_TYPE_SALES, order.status, "cancel")
        order.cancelled_at = utcnow()
        db.session.commit()
        return TransitionResult(order=order)

    return run_with_retry(_op)


# =============================================================================
# Reporting helpers
# =============================================================================

def revenue_summary() -> dict:
    """Booked revenue from confirmed-or-later orders, per customer."""
    booked = [
        SalesOrderStatus.CONFIRMED.value,
        SalesOrderStatus.SHIPPED.value,
        SalesOrderStatus.DELIVERED.value,
    ]
    rows = (
        db.session.query(
            Customer.id,
            Customer.name,
            func.count(SalesOrder.id),
            func.coalesce(func.sum(SalesOrder.total_cents), 0),
        )
        .join(SalesOrder, SalesOrder.customer_id == Customer.id)
        .filter(SalesOrder.status.in_(booked))
        .group_by(Customer.id, Customer.name)
        .order_by(func.sum(SalesOrder.total_cents).desc())
        .all()
    )
    by_customer = [
        {"customer_id": cid, "customer_name": name, "order_count": int(count), "total_cents": int(total)}
        for cid, name, count, total in rows
    ]
    return {
        "total_revenue_cents": sum(c["total_cents"] for c in by_customer),
        "order_count": sum(c["order_count"] for c in by_customer),
        "by_customer": by_customer,
    }
