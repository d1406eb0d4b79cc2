# Overview: Auto-reorder trigger; turns low stock into pending purchase orders.

from __future__ import annotations

from typing import Iterable

from flask import current_app

from ..extensions import db
from ..models import Product, PurchaseOrder, PurchaseOrderLine
from ..time_utils import utcnow
from .concurrency import run_with_retry
from .inventory_service import get_product_for_update, low_stock_products
from .order_lifecycle import PurchaseOrderStatus
from .purchasing_service import create_purchase_order_inner

"""
Auto-reorder rules

- Fires for a product when current_stock < min_stock_level after a decrement.
- Orders multiplier x min_stock_level - current_stock units at the
  product's unit cost (multiplier: REORDER_TARGET_MULTIPLIER).
- Supplier: product.supplier_id, else the supplier of the most recently
  received purchase order containing the product. No supplier -> skip + warn.
- At most one open auto order per product: nothing new is created while an
  auto-generated order for the product is pending or ordered.
- Runs inside the caller's unit of work and stamps
  product.last_auto_reorder_at, which bumps the product version so two
  concurrent triggers for the same product cannot both commit.
"""

OPEN_STATUSES = (PurchaseOrderStatus.PENDING.value, PurchaseOrderStatus.ORDERED.value)


def _suggested_quantity(product: Product) -> int:
    multiplier = current_app.config.get("REORDER_TARGET_MULTIPLIER", 2)
    return max(multiplier * product.min_stock_level - product.current_stock, 1)


def find_open_auto_order(product_id: int) -> PurchaseOrder | None:
    return (
        db.session.query(PurchaseOrder)
        .join(PurchaseOrderLine, PurchaseOrderLine.purchase_order_id == PurchaseOrder.id)
        .filter(
            PurchaseOrder.auto_generated.is_(True),
            PurchaseOrder.status.in_(OPEN_STATUSES),
            PurchaseOrderLine.product_id == product_id,
        )
        .order_by(PurchaseOrder.id.desc())
        .first()
    )


def resolve_supplier_id(product: Product) -> int | None:
    if product.supplier_id:
        return product.supplier_id
    return (
        db.session.query(PurchaseOrder.supplier_id)
        .join(PurchaseOrderLine, PurchaseOrderLine.purchase_order_id == PurchaseOrder.id)
        .filter(
            PurchaseOrder.status == PurchaseOrderStatus.RECEIVED.value,
            PurchaseOrderLine.product_id == product.id,
        )
        .order_by(PurchaseOrder.received_at.desc(), PurchaseOrder.id.desc())
        .limit(1)
        .scalar()
    )


def trigger_reorder_inner(product_ids: Iterable[int], *, created_by: str | None = None) -> list[PurchaseOrder]:
    """
    Create auto purchase orders for the given products that are below threshold.

    Does not commit. Returns the purchase orders created (possibly empty).
    """
    created: list[PurchaseOrder] = []
    for product_id in sorted(set(product_ids)):
        product = get_product_for_update(product_id)
        if not product.is_active or product.current_stock >= product.min_stock_level:
            continue

        existing = find_open_auto_order(product.id)
        if existing is not None:
            current_app.logger.info(
                "Auto-reorder skipped for %s: %s already open", product.sku, existing.order_number
            )
            continue

        supplier_id = resolve_supplier_id(product)
        if supplier_id is None:
            current_app.logger.warning(
                "Auto-reorder skipped for %s: no supplier could be determined", product.sku
            )
            continue

        quantity = _suggested_quantity(product)
        order = create_purchase_order_inner(
            supplier_id=supplier_id,
            lines=[{
                "product_id": product.id,
                "quantity": quantity,
                "unit_price_cents": product.unit_cost_cents,
            }],
            notes=(
                f"Auto-generated from inventory: current stock {product.current_stock}, "
                f"min level {product.min_stock_level}"
            ),
            created_by=created_by,
            auto_generated=True,
            source="inventory",
        )
        product.last_auto_reorder_at = utcnow()
        current_app.logger.info(
            "Auto-reorder created %s for %s x%d", order.order_number, product.sku, quantity
        )
        created.append(order)
    return created


def run_auto_reorder(*, created_by: str | None = None) -> list[PurchaseOrder]:
    """Sweep every active low-stock product through the trigger, as one unit of work."""
    def _op() -> list[PurchaseOrder]:
        product_ids = [p.id for p in low_stock_products()]
        created = trigger_reorder_inner(product_ids, created_by=created_by)
        db.session.commit()
        return created

    return run_with_retry(_op)


def auto_requests() -> list[dict]:
    """
    Low-stock products with a suggested order quantity and the supplier the
    trigger would use. Read-only.
    """
    requests = []
    for product in low_stock_products():
        open_order = find_open_auto_order(product.id)
        requests.append({
            "product": {
                "id": product.id,
                "name": product.name,
                "sku": product.sku,
                "current_stock": product.current_stock,
                "min_stock_level": product.min_stock_level,
                "unit_cost_cents": product.unit_cost_cents,
            },
            "suggested_quantity": _suggested_quantity(product),
            "supplier_id": resolve_supplier_id(product),
            "open_order_number": open_order.order_number if open_order else None,
            "priority": "high" if product.current_stock == 0 else "medium",
        })
    return requests
