# Overview: Purchase order workflow (pending -> ordered -> received) and supplier records.

"""
Purchasing Service

LIFECYCLE:
1. PENDING: Created manually or by the auto-reorder trigger; editable
2. ORDERED: Placed with the supplier
3. RECEIVED: Goods in; stock incremented and purchase invoice generated
4. CANCELLED: Cancelled while still pending

RECEIVE is a single unit of work:
- order status first
- stock per line in ascending product id order (unit cost follows the line price)
- purchase invoice, if none exists yet
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import func

from ..errors import InvalidTransition, OrderNotFound, PartyNotFound, ProductNotFound, ValidationFailed
from ..extensions import db
from ..models import Product, PurchaseOrder, PurchaseOrderLine, Supplier
from ..time_utils import utcnow
from ..validation import ModelValidationPolicy, validate_payload
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_document_number
from .inventory_service import increment_many_inner
from .invoice_service import ORDER_TYPE_PURCHASE, generate_invoice_inner, get_invoice_by_order
from .order_lifecycle import PurchaseOrderStatus, TransitionResult, ensure_editable, next_status


SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "contact_person", "email", "phone", "payment_terms", "is_active"},
    required_on_create={"name"},
)


# =============================================================================
# Suppliers
# =============================================================================

def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if not supplier:
        raise PartyNotFound(f"Supplier {supplier_id} not found")
    return supplier


def list_suppliers(*, active_only: bool = True) -> list[Supplier]:
    query = db.session.query(Supplier)
    if active_only:
        query = query.filter(Supplier.is_active.is_(True))
    return query.order_by(Supplier.name.asc()).all()


def create_supplier(payload: dict) -> Supplier:
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)

    def _op() -> Supplier:
        supplier = Supplier(**patch)
        db.session.add(supplier)
        db.session.commit()
        return supplier

    return run_with_retry(_op)


def update_supplier(supplier_id: int, payload: dict) -> Supplier:
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)

    def _op() -> Supplier:
        supplier = get_supplier(supplier_id)
        for key, value in patch.items():
            setattr(supplier, key, value)
        db.session.commit()
        return supplier

    return run_with_retry(_op)


# =============================================================================
# Order documents
# =============================================================================

def _build_lines(lines: list[dict]) -> list[PurchaseOrderLine]:
    """Lines default to the product's current unit cost when no price is given."""
    if not lines:
        raise ValidationFailed("A purchase order needs at least one line")
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
            price = product.unit_cost_cents
        built.append(
            PurchaseOrderLine(
                product_id=product.id,
                quantity=quantity,
                unit_price_cents=price,
                line_total_cents=quantity * price,
            )
        )
    return built


def get_purchase_order(order_id: int) -> PurchaseOrder:
    order = db.session.get(PurchaseOrder, order_id)
    if not order:
        raise OrderNotFound(f"Purchase order {order_id} not found")
    return order


def _get_for_update(order_id: int) -> PurchaseOrder:
    order = lock_for_update(db.session.query(PurchaseOrder).filter(PurchaseOrder.id == order_id)).first()
    if not order:
        raise OrderNotFound(f"Purchase order {order_id} not found")
    return order


def list_purchase_orders(
    *,
    status: str | None = None,
    supplier_id: int | None = None,
    auto_generated: bool | None = None,
) -> list[PurchaseOrder]:
    query = db.session.query(PurchaseOrder)
    if status:
        query = query.filter(PurchaseOrder.status == status)
    if supplier_id is not None:
        query = query.filter(PurchaseOrder.supplier_id == supplier_id)
    if auto_generated is not None:
        query = query.filter(PurchaseOrder.auto_generated.is_(auto_generated))
    return query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()).all()


def create_purchase_order_inner(
    *,
    supplier_id: int,
    lines: list[dict],
    notes: str | None = None,
    created_by: str | None = None,
    expected_delivery: Optional[datetime] = None,
    auto_generated: bool = False,
    source: str = "manual",
) -> PurchaseOrder:
    """Create a pending purchase order without committing."""
    supplier = get_supplier(supplier_id)
    order = PurchaseOrder(
        order_number=next_document_number("purchase_order"),
        supplier_id=supplier.id,
        status=PurchaseOrderStatus.PENDING.value,
        source=source,
        auto_generated=auto_generated,
        expected_delivery=expected_delivery,
        notes=notes,
        created_by=created_by,
    )
    order.lines = _build_lines(lines)
    order.total_cents = order.subtotal_cents
    db.session.add(order)
    db.session.flush()
    return order


def create_purchase_order(
    *,
    supplier_id: int,
    lines: list[dict],
    notes: str | None = None,
    created_by: str | None = None,
    expected_delivery: Optional[datetime] = None,
) -> PurchaseOrder:
    def _op() -> PurchaseOrder:
        order = create_purchase_order_inner(
            supplier_id=supplier_id,
            lines=lines,
            notes=notes,
            created_by=created_by,
            expected_delivery=expected_delivery,
        )
        db.session.commit()
        return order

    return run_with_retry(_op)


def update_purchase_order(
    order_id: int,
    *,
    supplier_id: int | None = None,
    lines: list[dict] | None = None,
    notes: str | None = None,
    expected_delivery: Optional[datetime] = None,
) -> PurchaseOrder:
    """Edit a pending order. Any other status raises InvalidTransition."""
    def _op() -> PurchaseOrder:
        order = _get_for_update(order_id)
        ensure_editable(ORDER_TYPE_PURCHASE, order.status)
        if supplier_id is not None:
            order.supplier_id = get_supplier(supplier_id).id
        if lines is not None:
            order.lines = _build_lines(lines)
            order.total_cents = order.subtotal_cents
        if notes is not None:
            order.notes = notes
        if expected_delivery is not None:
            order.expected_delivery = expected_delivery
        db.session.commit()
        return order

    return run_with_retry(_op)


def delete_purchase_order(order_id: int) -> None:
    def _op() -> None:
        order = _get_for_update(order_id)
        ensure_editable(ORDER_TYPE_PURCHASE, order.status)
        db.session.delete(order)
        db.session.commit()

    run_with_retry(_op)


# =============================================================================
# Transitions
# =============================================================================

def order_purchase_order(order_id: int, *, actor_id: str | None = None) -> TransitionResult:
    """
    pending -> ordered. The caller's purchasing.orders.place capability is
    checked at the HTTP edge.
    """
    def _op() -> TransitionResult:
        order = _get_for_update(order_id)
        target = next_status(ORDER_TYPE_PURCHASE, order.status, "order")
        if not order.lines:
            raise InvalidTransition("Cannot place a purchase order without lines")
        order.status = target
        order.ordered_at = utcnow()
        db.session.commit()
        return TransitionResult(order=order)

    return run_with_retry(_op)


def receive_purchase_order(order_id: int, *, actor_id: str | None = None) -> TransitionResult:
    """
    ordered -> received: stock in, unit costs updated, purchase invoice generated.

    Raises:
        OrderNotFound, InvalidTransition
    """
    def _op() -> TransitionResult:
        order = _get_for_update(order_id)
        target = next_status(ORDER_TYPE_PURCHASE, order.status, "receive")
        order.status = target
        order.received_at = utcnow()

        movements = increment_many_inner(
            [(line.product_id, line.quantity, line.unit_price_cents) for line in order.lines],
            reference="purchase",
            reference_id=order.id,
            created_by=actor_id,
            note=f"Received {order.order_number}",
            update_unit_cost=True,
        )

        invoice = get_invoice_by_order(ORDER_TYPE_PURCHASE, order.id)
        if invoice is None:
            invoice = generate_invoice_inner(ORDER_TYPE_PURCHASE, order)

        db.session.commit()
        return TransitionResult(order=order, stock_movements=movements, invoice=invoice)

    return run_with_retry(_op)


def cancel_purchase_order(order_id: int, *, actor_id: str | None = None) -> TransitionResult:
    def _op() -> TransitionResult:
        order = _get_for_update(order_id)
        order.status = next_status(ORDER_TYPE_PURCHASE, order.status, "cancel")
        order.cancelled_at = utcnow()
        db.session.commit()
        return TransitionResult(order=order)

    return run_with_retry(_op)


# =============================================================================
# Reporting helpers
# =============================================================================

def spending_summary() -> dict:
    """Spend on received orders, overall and per supplier."""
    received = PurchaseOrderStatus.RECEIVED.value
    rows = (
        db.session.query(
            Supplier.id,
            Supplier.name,
            func.count(PurchaseOrder.id),
            func.coalesce(func.sum(PurchaseOrder.total_cents), 0),
        )
        .join(PurchaseOrder, PurchaseOrder.supplier_id == Supplier.id)
        .filter(PurchaseOrder.status == received)
        .group_by(Supplier.id, Supplier.name)
        .order_by(func.sum(PurchaseOrder.total_cents).desc())
        .all()
    )
    by_supplier = [
        {"supplier_id": sid, "supplier_name": name, "order_count": int(count), "total_cents": int(total)}
        for sid, name, count, total in rows
    ]
    pending_count = (
        db.session.query(func.count(PurchaseOrder.id))
        .filter(PurchaseOrder.status.in_([PurchaseOrderStatus.PENDING.value, PurchaseOrderStatus.ORDERED.value]))
        .scalar()
    )
    return {
        "total_spent_cents": sum(s["total_cents"] for s in by_supplier),
        "received_order_count": sum(s["order_count"] for s in by_supplier),
        "open_order_count": int(pending_count or 0),
        "by_supplier": by_supplier,
    }
