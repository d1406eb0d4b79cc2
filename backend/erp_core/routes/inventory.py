# backend/erp_core/routes/inventory.py
"""
Inventory routes.

SECURITY: All routes require caller identity.
- Reads are open to every identified caller
- Product maintenance and manual adjustments require a manager

Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_actor, require_capability
from ..errors import DomainError, ValidationFailed
from ..services import inventory_service
from ..validation import coerce_int
from . import actor_id, bool_arg, datetime_arg, error_response, int_arg, internal_error, json_body


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/products")
@require_actor
@require_capability("inventory.view")
def list_products_route():
    try:
        products = inventory_service.list_products(
            category=request.args.get("category") or None,
            search=request.args.get("search") or None,
            active_only=bool_arg("active_only", True),
            low_stock_only=bool_arg("low_stock", False),
        )
        return jsonify({"products": [p.to_dict() for p in products], "count": len(products)})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list products")
        return internal_error()


@inventory_bp.post("/products")
@require_actor
@require_capability("inventory.products.manage")
def create_product_route():
    """Create a product; current_stock, when given, is posted as opening stock."""
    try:
        product = inventory_service.create_product(json_body(), created_by=actor_id())
        return jsonify({"product": product.to_dict()}), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return internal_error()


@inventory_bp.get("/products/<int:product_id>")
@require_actor
@require_capability("inventory.view")
def get_product_route(product_id: int):
    try:
        product = inventory_service.get_product(product_id)
        return jsonify({"product": product.to_dict()})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get product")
        return internal_error()


@inventory_bp.put("/products/<int:product_id>")
@require_actor
@require_capability("inventory.products.manage")
def update_product_route(product_id: int):
    """Update master data. Stock is not writable here; use /adjust."""
    try:
        product = inventory_service.update_product(product_id, json_body())
        return jsonify({"product": product.to_dict()})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return internal_error()


@inventory_bp.delete("/products/<int:product_id>")
@require_actor
@require_capability("inventory.products.manage")
def delete_product_route(product_id: int):
    try:
        outcome = inventory_service.delete_product(product_id)
        return jsonify({"id": product_id, "result": outcome})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return internal_error()


@inventory_bp.post("/products/<int:product_id>/adjust")
@require_actor
@require_capability("inventory.adjust")
def adjust_product_route(product_id: int):
    """
    Manual stock adjustment.

    Body: {"quantity": <signed int>, "note": "..."}
    A decrement below the reorder threshold creates an auto purchase order.
    """
    try:
        payload = json_body()
        if payload.get("quantity") is None:
            raise ValidationFailed("quantity is required")
        delta = coerce_int(payload["quantity"], "quantity")
        if delta == 0:
            raise ValidationFailed("quantity must be non-zero")
        note = payload.get("note")

        movement, auto_orders = inventory_service.adjust_stock(
            product_id,
            delta,
            note=str(note).strip() if note else None,
            created_by=actor_id(),
        )
        product = inventory_service.get_product(product_id)
        return jsonify({
            "product": product.to_dict(),
            "movement": movement.to_dict(),
            "auto_purchase_orders": [o.to_dict() for o in auto_orders],
        })
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return internal_error()


@inventory_bp.get("/products/<int:product_id>/reorder-check")
@require_actor
@require_capability("inventory.view")
def reorder_check_route(product_id: int):
    try:
        return jsonify(inventory_service.check_reorder(product_id))
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to check reorder")
        return internal_error()


@inventory_bp.get("/movements")
@require_actor
@require_capability("inventory.view")
def list_movements_route():
    try:
        movements, total = inventory_service.list_movements(
            product_id=int_arg("product_id"),
            reference=request.args.get("reference") or None,
            start=datetime_arg("start"),
            end=datetime_arg("end"),
            limit=int_arg("limit", 100),
            offset=int_arg("offset", 0),
        )
        return jsonify({"movements": [m.to_dict() for m in movements], "total": total})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list stock movements")
        return internal_error()


@inventory_bp.get("/low-stock")
@require_actor
@require_capability("inventory.view")
def low_stock_route():
    try:
        products = inventory_service.low_stock_products()
        return jsonify({"products": [p.to_dict() for p in products], "count": len(products)})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list low-stock products")
        return internal_error()


@inventory_bp.get("/stock-value")
@require_actor
@require_capability("inventory.view")
def stock_value_route():
    try:
        return jsonify(inventory_service.stock_value())
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to compute stock value")
        return internal_error()
