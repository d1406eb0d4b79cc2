# Overview: Inventory Stock Tracker; the only writer of Product.current_stock.

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime
from typing import Iterable, Optional

from flask import current_app
from sqlalchemy import func, or_

from ..errors import InsufficientStock, NegativeStock, ProductInUse, ProductNotFound, ValidationFailed
from ..extensions import db
from ..models import (
    PRODUCT_CATEGORIES,
    Product,
    ProductionMaterial,
    ProductionOrder,
    PurchaseOrderLine,
    SalesOrderLine,
    StockMovement,
    Supplier,
)
from ..validation import ModelValidationPolicy, enforce_rules_product, validate_payload
from .concurrency import lock_for_update, run_with_retry
"""
Inventory Invariants (authoritative)

- current_stock >= 0 at every commit (service check + DB check constraint).
- Every change to current_stock appends exactly one StockMovement in the
  same unit of work; movements are never updated or deleted.
- Multi-product decrements check every product before touching any, and
  lock/update products in ascending product id order.
- Reorder threshold: a product is "low" when current_stock < min_stock_level.
"""

REFERENCES = ("purchase", "sale", "production", "adjustment")

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "description", "category", "unit",
        "current_stock", "min_stock_level", "max_stock_level",
        "unit_cost_cents", "selling_price_cents", "supplier_id", "is_active",
    },
    required_on_create={"sku", "name"},
)

# current_stock only moves through adjustments
PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_POLICY.writable_fields - {"current_stock", "sku"},
)


# =============================================================================
# Product catalogue
# =============================================================================

def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise ProductNotFound(f"Product {product_id} not found")
    return product


def get_product_for_update(product_id: int) -> Product:
    product = lock_for_update(db.session.query(Product).filter(Product.id == product_id)).first()
    if not product:
        raise ProductNotFound(f"Product {product_id} not found")
    return product


def _check_product_patch(patch: dict) -> None:
    enforce_rules_product(patch)
    if patch.get("category") is not None and patch["category"] not in PRODUCT_CATEGORIES:
        raise ValidationFailed(f"category must be one of {PRODUCT_CATEGORIES}")
    if patch.get("supplier_id") is not None and not db.session.get(Supplier, patch["supplier_id"]):
        raise ValidationFailed(f"Supplier {patch['supplier_id']} not found")


def create_product(payload: dict, *, created_by: str | None = None) -> Product:
    """
    Create a product. A non-zero opening stock is posted as an
    'adjustment' movement so the cache matches the movement history.
    """
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    _check_product_patch(patch)
    opening_stock = patch.pop("current_stock", None) or 0

    def _op() -> Product:
        if db.session.query(Product.id).filter(Product.sku == patch["sku"]).first():
            raise ValidationFailed(f"SKU {patch['sku']} already exists")
        product = Product(**patch)
        product.current_stock = 0
        db.session.add(product)
        db.session.flush()
        if opening_stock:
            apply_stock_delta_inner(
                product,
                opening_stock,
                reference="adjustment",
                note="Opening stock",
                created_by=created_by,
                unit_cost_cents=product.unit_cost_cents,
            )
        db.session.commit()
        return product

    return run_with_retry(_op)


def update_product(product_id: int, payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
    _check_product_patch(patch)

    def _op() -> Product:
        product = get_product_for_update(product_id)
        for key, value in patch.items():
            setattr(product, key, value)
        db.session.commit()
        return product

    return run_with_retry(_op)


def delete_product(product_id: int) -> str:
    """
    Remove a product that no order or production order references.

    A product with stock history is deactivated instead of deleted so its
    movements stay intact. Returns "deleted" or "deactivated".

    Raises:
        ProductNotFound, ProductInUse
    """
    def _op() -> str:
        product = get_product_for_update(product_id)
        used = (
            db.session.query(PurchaseOrderLine.id).filter(PurchaseOrderLine.product_id == product_id).first()
            or db.session.query(SalesOrderLine.id).filter(SalesOrderLine.product_id == product_id).first()
            or db.session.query(ProductionOrder.id).filter(ProductionOrder.product_id == product_id).first()
            or db.session.query(ProductionMaterial.id).filter(ProductionMaterial.product_id == product_id).first()
        )
        if used:
            raise ProductInUse(product_id=product_id)

        has_history = db.session.query(StockMovement.id).filter(StockMovement.product_id == product_id).first()
        if has_history:
            product.is_active = False
            outcome = "deactivated"
        else:
            db.session.delete(product)
            outcome = "deleted"
        db.session.commit()
        return outcome

    return run_with_retry(_op)


def list_products(
    *,
    category: str | None = None,
    search: str | None = None,
    active_only: bool = True,
    low_stock_only: bool = False,
) -> list[Product]:
    query = db.session.query(Product)
    if active_only:
        query = query.filter(Product.is_active.is_(True))
    if category:
        query = query.filter(Product.category == category)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(Product.name.ilike(like), Product.sku.ilike(like)))
    if low_stock_only:
        query = query.filter(Product.current_stock < Product.min_stock_level)
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def low_stock_products() -> list[Product]:
    return list_products(low_stock_only=True)


# =============================================================================
# Stock changes (inner: no commit)
# =============================================================================

def apply_stock_delta_inner(
    product: Product,
    delta: int,
    *,
    reference: str,
    reference_id: int | None = None,
    note: str | None = None,
    created_by: str | None = None,
    unit_cost_cents: int | None = None,
) -> StockMovement:
    """
    Move current_stock by delta on an already-loaded product and record the movement.

    Raises:
        ValidationFailed: delta is zero or reference unknown
        NegativeStock: result would be below zero
    """
    if reference not in REFERENCES:
        raise ValidationFailed(f"reference must be one of {REFERENCES}")
    if not isinstance(delta, int) or isinstance(delta, bool) or delta == 0:
        raise ValidationFailed("quantity delta must be a non-zero integer")

    new_stock = product.current_stock + delta
    if new_stock < 0:
        raise NegativeStock(
            f"Adjustment would make stock of {product.sku} negative",
            product_id=product.id,
            current_stock=product.current_stock,
            delta=delta,
        )

    product.current_stock = new_stock
    movement = StockMovement(
        product_id=product.id,
        direction="in" if delta > 0 else "out",
        quantity=abs(delta),
        stock_after=new_stock,
        unit_cost_cents=unit_cost_cents if unit_cost_cents is not None else product.unit_cost_cents,
        reference=reference,
        reference_id=reference_id,
        note=note,
        created_by=created_by,
    )
    db.session.add(movement)
    return movement


def _sum_by_product(items: Iterable[tuple[int, int]]) -> "OrderedDict[int, int]":
    totals: dict[int, int] = {}
    for product_id, quantity in items:
        totals[product_id] = totals.get(product_id, 0) + quantity
    return OrderedDict(sorted(totals.items()))


def decrement_many_inner(
    items: Iterable[tuple[int, int]],
    *,
    reference: str,
    reference_id: int | None = None,
    created_by: str | None = None,
    note: str | None = None,
) -> list[StockMovement]:
    """
    All-or-nothing decrement for (product_id, quantity) pairs.

    Quantities for the same product are summed, every product is checked
    before any is decremented, and products are touched in ascending id
    order so concurrent callers lock rows in the same sequence.

    Raises:
        ProductNotFound: a product does not exist
        InsufficientStock: any product lacks stock (nothing is changed)
    """
    required = _sum_by_product(items)
    products = {pid: get_product_for_update(pid) for pid in required}

    shortages = [
        {
            "product_id": pid,
            "sku": products[pid].sku,
            "available": products[pid].current_stock,
            "requested": qty,
        }
        for pid, qty in required.items()
        if products[pid].current_stock < qty
    ]
    if shortages:
        names = ", ".join(s["sku"] for s in shortages)
        raise InsufficientStock(f"Insufficient stock for {names}", shortages=shortages)

    return [
        apply_stock_delta_inner(
            products[pid],
            -qty,
            reference=reference,
            reference_id=reference_id,
            note=note,
            created_by=created_by,
        )
        for pid, qty in required.items()
    ]


def increment_many_inner(
    items: Iterable[tuple[int, int, Optional[int]]],
    *,
    reference: str,
    reference_id: int | None = None,
    created_by: str | None = None,
    note: str | None = None,
    update_unit_cost: bool = False,
) -> list[StockMovement]:
    """
    Increment stock for (product_id, quantity, unit_cost_cents) triples in
    ascending product id order. With update_unit_cost the product's
    unit cost becomes the incoming cost (last purchase price).
    """
    ordered = sorted(items, key=lambda item: item[0])
    movements = []
    for product_id, quantity, unit_cost_cents in ordered:
        product = get_product_for_update(product_id)
        if update_unit_cost and unit_cost_cents is not None:
            product.unit_cost_cents = unit_cost_cents
        movements.append(
            apply_stock_delta_inner(
                product,
                quantity,
                reference=reference,
                reference_id=reference_id,
                note=note,
                created_by=created_by,
                unit_cost_cents=unit_cost_cents,
            )
        )
    return movements


# =============================================================================
# Public operations
# =============================================================================

def adjust_stock(
    product_id: int,
    delta: int,
    *,
    note: str | None = None,
    created_by: str | None = None,
) -> tuple[StockMovement, list]:
    """
    Manual stock adjustment, committed as one unit. A decrement runs the
    auto-reorder trigger in the same transaction.

    Returns:
        (movement, auto_purchase_orders)
    """
    from .reorder_service import trigger_reorder_inner

    def _op():
        product = get_product_for_update(product_id)
        movement = apply_stock_delta_inner(
            product,
            delta,
            reference="adjustment",
            note=note,
            created_by=created_by,
        )
        created = []
        if delta < 0:
            created = trigger_reorder_inner([product_id], created_by=created_by)
        db.session.commit()
        return movement, created

    return run_with_retry(_op)


def check_reorder(product_id: int) -> dict:
    """
    Pure query: is the product below its threshold and, if so, how much to order.

    suggested_quantity = multiplier x min_stock_level - current_stock
    (multiplier from REORDER_TARGET_MULTIPLIER, default 2).
    """
    product = get_product(product_id)
    multiplier = current_app.config.get("REORDER_TARGET_MULTIPLIER", 2)
    below = product.current_stock < product.min_stock_level
    suggested = max(multiplier * product.min_stock_level - product.current_stock, 0) if below else 0
    return {
        "product_id": product.id,
        "sku": product.sku,
        "current_stock": product.current_stock,
        "min_stock_level": product.min_stock_level,
        "below_threshold": below,
        "suggested_quantity": suggested,
    }


# =============================================================================
# Queries
# =============================================================================

def list_movements(
    *,
    product_id: int | None = None,
    reference: str | None = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[StockMovement], int]:
    query = db.session.query(StockMovement)
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    if reference:
        query = query.filter(StockMovement.reference == reference)
    if start:
        query = query.filter(StockMovement.created_at >= start)
    if end:
        query = query.filter(StockMovement.created_at <= end)

    total = query.count()
    limit = min(max(limit, 1), 500)
    offset = max(offset, 0)
    rows = (
        query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return rows, total


def stock_value() -> dict:
    """Stock value projection at unit cost, total and per category."""
    rows = (
        db.session.query(
            Product.category,
            func.count(Product.id),
            func.coalesce(func.sum(Product.current_stock), 0),
            func.coalesce(func.sum(Product.current_stock * Product.unit_cost_cents), 0),
        )
        .filter(Product.is_active.is_(True))
        .group_by(Product.category)
        .order_by(Product.category.asc())
        .all()
    )
    by_category = [
        {
            "category": category,
            "product_count": int(count),
            "units": int(units),
            "value_cents": int(value),
        }
        for category, count, units, value in rows
    ]
    return {
        "total_value_cents": sum(c["value_cents"] for c in by_category),
        "total_units": sum(c["units"] for c in by_category),
        "by_category": by_category,
    }
