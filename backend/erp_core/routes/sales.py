# backend/erp_core/routes/sales.py
"""
Sales routes.

SECURITY: All routes require caller identity.
- Managers create, edit and advance sales orders
- Sales employees may add customers
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_actor, require_capability
from ..errors import DomainError, InvoiceNotFound, ValidationFailed
from ..services import invoice_service, sales_service
from ..validation import coerce_datetime, coerce_int, parse_order_lines
from . import actor_id, bool_arg, error_response, int_arg, internal_error, json_body


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _order_fields(payload: dict, *, partial: bool) -> dict:
    fields = {}
    if "customer_id" in payload or not partial:
        if payload.get("customer_id") is None:
            raise ValidationFailed("customer_id is required")
        fields["customer_id"] = coerce_int(payload["customer_id"], "customer_id")
    if "items" in payload or not partial:
        fields["lines"] = parse_order_lines(payload.get("items"))
    if payload.get("notes") is not None:
        fields["notes"] = str(payload["notes"]).strip()
    if payload.get("delivery_date"):
        fields["delivery_date"] = coerce_datetime(payload["delivery_date"], "delivery_date")
    return fields


# =============================================================================
# Orders
# =============================================================================

@sales_bp.get("/orders")
@require_actor
@require_capability("sales.orders.view")
def list_orders_route():
    try:
        orders = sales_service.list_sales_orders(
            status=request.args.get("status") or None,
            customer_id=int_arg("customer_id"),
        )
        return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list sales orders")
        return internal_error()


@sales_bp.post("/orders")
@require_actor
@require_capability("sales.orders.manage")
def create_order_route():
    try:
        fields = _order_fields(json_body(), partial=False)
        order = sales_service.create_sales_order(created_by=actor_id(), **fields)
        return jsonify({"order": order.to_dict()}), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sales order")
        return internal_error()


@sales_bp.get("/orders/<int:order_id>")
@require_actor
@require_capability("sales.orders.view")
def get_order_route(order_id: int):
    try:
        order = sales_service.get_sales_order(order_id)
        return jsonify({"order": order.to_dict()})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get sales order")
        return internal_error()


@sales_bp.put("/orders/<int:order_id>")
@require_actor
@require_capability("sales.orders.manage")
def update_order_route(order_id: int):
    try:
        fields = _order_fields(json_body(), partial=True)
        order = sales_service.update_sales_order(order_id, **fields)
        return jsonify({"order": order.to_dict()})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update sales order")
        return internal_error()


@sales_bp.delete("/orders/<int:order_id>")
@require_actor
@require_capability("sales.orders.manage")
def delete_order_route(order_id: int):
    try:
        sales_service.delete_sales_order(order_id)
        return jsonify({"deleted": True, "id": order_id})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete sales order")
        return internal_error()


_TRANSITIONS = {
    "confirm": sales_service.confirm_sales_order,
    "ship": sales_service.ship_sales_order,
    "deliver": sales_service.deliver_sales_order,
    "cancel": sales_service.cancel_sales_order,
}


@sales_bp.put("/orders/<int:order_id>/<any(confirm, ship, deliver, cancel):action>")
@require_actor
@require_capability("sales.orders.transition")
def transition_order_route(order_id: int, action: str):
    """
    Advance a sales order.

    confirm decrements stock for every line or none (409 INSUFFICIENT_STOCK),
    may generate the sales invoice and may create auto purchase orders.
    """
    try:
        result = _TRANSITIONS[action](order_id, actor_id=actor_id())
        return jsonify(result.to_dict())
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to %s sales order", action)
        return internal_error()


# =============================================================================
# Customers
# =============================================================================

@sales_bp.get("/customers")
@require_actor
@require_capability("sales.orders.view")
def list_customers_route():
    try:
        customers = sales_service.list_customers(active_only=bool_arg("active_only", True))
        return jsonify({"customers": [c.to_dict() for c in customers], "count": len(customers)})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list customers")
        return internal_error()


@sales_bp.post("/customers")
@require_actor
@require_capability("sales.customers.manage")
def create_customer_route():
    try:
        customer = sales_service.create_customer(json_body())
        return jsonify({"customer": customer.to_dict()}), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return internal_error()


# =============================================================================
# Invoices and revenue
# =============================================================================

@sales_bp.get("/invoices")
@require_actor
@require_capability("sales.orders.view")
def list_invoices_route():
    try:
        invoices = invoice_service.list_invoices(
            order_type=invoice_service.ORDER_TYPE_SALES,
            status=request.args.get("status") or None,
        )
        return jsonify({"invoices": [i.to_dict() for i in invoices], "count": len(invoices)})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list sales invoices")
        return internal_error()


@sales_bp.get("/invoices/<int:order_id>")
@require_actor
@require_capability("sales.orders.view")
def get_order_invoice_route(order_id: int):
    try:
        invoice = invoice_service.get_invoice_by_order(invoice_service.ORDER_TYPE_SALES, order_id)
        if invoice is None:
            raise InvoiceNotFound(f"No invoice for sales order {order_id}")
        return jsonify({"invoice": invoice.to_dict()})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get sales invoice")
        return internal_error()


@sales_bp.get("/revenue")
@require_actor
@require_capability("sales.orders.view")
def revenue_route():
    try:
        return jsonify(sales_service.revenue_summary())
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to compute sales revenue")
        return internal_error()
