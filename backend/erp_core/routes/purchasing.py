# backend/erp_core/routes/purchasing.py
"""
Purchasing routes.

SECURITY: All routes require caller identity.
- Purchasing employees create and receive orders
- Purchasing managers edit, place, cancel and delete orders
- Any manager may run the auto-reorder sweep
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_actor, require_capability
from ..errors import DomainError, InvoiceNotFound, ValidationFailed
from ..services import invoice_service, purchasing_service, reorder_service
from ..validation import coerce_datetime, coerce_int, parse_order_lines
from . import actor_id, bool_arg, error_response, int_arg, internal_error, json_body


purchasing_bp = Blueprint("purchasing", __name__, url_prefix="/api/purchasing")


def _order_fields(payload: dict, *, partial: bool) -> dict:
    fields = {}
    if "supplier_id" in payload or not partial:
        if payload.get("supplier_id") is None:
            raise ValidationFailed("supplier_id is required")
        fields["supplier_id"] = coerce_int(payload["supplier_id"], "supplier_id")
    if "items" in payload or not partial:
        fields["lines"] = parse_order_lines(payload.get("items"))
    if payload.get("notes") is not None:
        fields["notes"] = str(payload["notes"]).strip()
    if payload.get("expected_delivery"):
        fields["expected_delivery"] = coerce_datetime(payload["expected_delivery"], "expected_delivery")
    return fields


# =============================================================================
# Orders
# =============================================================================

@purchasing_bp.get("/orders")
@require_actor
@require_capability("purchasing.orders.view")
def list_orders_route():
    try:
        orders = purchasing_service.list_purchase_orders(
            status=request.args.get("status") or None,
            supplier_id=int_arg("supplier_id"),
            auto_generated=bool_arg("auto_generated"),
        )
        return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list purchase orders")
        return internal_error()


@purchasing_bp.post("/orders")
@require_actor
@require_capability("purchasing.orders.create")
def create_order_route():
    try:
        fields = _order_fields(json_body(), partial=False)
        order = purchasing_service.create_purchase_order(created_by=actor_id(), **fields)
        return jsonify({"order": order.to_dict()}), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create purchase order")
        return internal_error()


@purchasing_bp.get("/orders/<int:order_id>")
@require_actor
@require_capability("purchasing.orders.view")
def get_order_route(order_id: int):
    try:
        order = purchasing_service.get_purchase_order(order_id)
        return jsonify({"order": order.to_dict()})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get purchase order")
        return internal_error()


@purchasing_bp.put("/orders/<int:order_id>")
@require_actor
@require_capability("purchasing.orders.edit")
def update_order_route(order_id: int):
    """Edit a pending purchase order (supplier, items, notes, expected delivery)."""
    try:
        fields = _order_fields(json_body(), partial=True)
        order = purchasing_service.update_purchase_order(order_id, **fields)
        return jsonify({"order": order.to_dict()})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update purchase order")
        return internal_error()


@purchasing_bp.delete("/orders/<int:order_id>")
@require_actor
@require_capability("purchasing.orders.edit")
def delete_order_route(order_id: int):
    try:
        purchasing_service.delete_purchase_order(order_id)
        return jsonify({"deleted": True, "id": order_id})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete purchase order")
        return internal_error()


@purchasing_bp.put("/orders/<int:order_id>/order")
@require_actor
@require_capability("purchasing.orders.place")
def place_order_route(order_id: int):
    try:
        result = purchasing_service.order_purchase_order(order_id, actor_id=actor_id())
        return jsonify(result.to_dict())
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to place purchase order")
        return internal_error()


@purchasing_bp.put("/orders/<int:order_id>/receive")
@require_actor
@require_capability("purchasing.orders.receive")
def receive_order_route(order_id: int):
    """Receive goods: stock in, unit costs updated, purchase invoice generated."""
    try:
        result = purchasing_service.receive_purchase_order(order_id, actor_id=actor_id())
        return jsonify(result.to_dict())
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to receive purchase order")
        return internal_error()


@purchasing_bp.put("/orders/<int:order_id>/cancel")
@require_actor
@require_capability("purchasing.orders.edit")
def cancel_order_route(order_id: int):
    try:
        result = purchasing_service.cancel_purchase_order(order_id, actor_id=actor_id())
        return jsonify(result.to_dict())
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel purchase order")
        return internal_error()


# =============================================================================
# Auto-reorder
# =============================================================================

@purchasing_bp.post("/auto-generate")
@require_actor
@require_capability("purchasing.auto_generate")
def auto_generate_route():
    try:
        created = reorder_service.run_auto_reorder(created_by=actor_id())
        return jsonify({"orders": [o.to_dict() for o in created], "count": len(created)}), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to auto-generate purchase orders")
        return internal_error()


@purchasing_bp.get("/auto-requests")
@require_actor
@require_capability("purchasing.orders.view")
def auto_requests_route():
    try:
        requests = reorder_service.auto_requests()
        return jsonify({"requests": requests, "count": len(requests)})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list auto purchase requests")
        return internal_error()


# =============================================================================
# Suppliers
# =============================================================================

@purchasing_bp.get("/suppliers")
@require_actor
@require_capability("purchasing.orders.view")
def list_suppliers_route():
    try:
        suppliers = purchasing_service.list_suppliers(active_only=bool_arg("active_only", True))
        return jsonify({"suppliers": [s.to_dict() for s in suppliers], "count": len(suppliers)})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list suppliers")
        return internal_error()


@purchasing_bp.post("/suppliers")
@require_actor
@require_capability("purchasing.suppliers.manage")
def create_supplier_route():
    try:
        supplier = purchasing_service.create_supplier(json_body())
        return jsonify({"supplier": supplier.to_dict()}), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return internal_error()


@purchasing_bp.put("/suppliers/<int:supplier_id>")
@require_actor
@require_capability("purchasing.suppliers.manage")
def update_supplier_route(supplier_id: int):
    try:
        supplier = purchasing_service.update_supplier(supplier_id, json_body())
        return jsonify({"supplier": supplier.to_dict()})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update supplier")
        return internal_error()


# =============================================================================
# Invoices and spending
# =============================================================================

@purchasing_bp.get("/invoices")
@require_actor
@require_capability("purchasing.orders.view")
def list_invoices_route():
    try:
        invoices = invoice_service.list_invoices(
            order_type=invoice_service.ORDER_TYPE_PURCHASE,
            status=request.args.get("status") or None,
        )
        return jsonify({"invoices": [i.to_dict() for i in invoices], "count": len(invoices)})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list purchase invoices")
        return internal_error()


@purchasing_bp.get("/invoices/<int:order_id>")
@require_actor
@require_capability("purchasing.orders.view")
def get_order_invoice_route(order_id: int):
    try:
        invoice = invoice_service.get_invoice_by_order(invoice_service.ORDER_TYPE_PURCHASE, order_id)
        if invoice is None:
            raise InvoiceNotFound(f"No invoice for purchase order {order_id}")
        return jsonify({"invoice": invoice.to_dict()})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get purchase invoice")
        return internal_error()


@purchasing_bp.get("/spending")
@require_actor
@require_capability("purchasing.orders.view")
def spending_route():
    try:
        return jsonify(purchasing_service.spending_summary())
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to compute purchasing spend")
        return internal_error()
