# backend/erp_core/routes/manufacturing.py
"""
Manufacturing routes: production orders.
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_actor, require_capability
from ..errors import DomainError, ValidationFailed
from ..services import production_service
from ..validation import coerce_int, require_amount_cents
from . import actor_id, error_response, internal_error, json_body


manufacturing_bp = Blueprint("manufacturing", __name__, url_prefix="/api/manufacturing")


def _parse_materials(raw) -> list[dict]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationFailed("materials must be a list")
    materials = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict) or "product_id" not in item or "quantity" not in item:
            raise ValidationFailed(f"materials[{index}] requires product_id and quantity")
        materials.append({
            "product_id": coerce_int(item["product_id"], f"materials[{index}].product_id"),
            "quantity": coerce_int(item["quantity"], f"materials[{index}].quantity"),
            "unit_cost_cents": (
                None if item.get("unit_cost_cents") is None
                else require_amount_cents(
                    item["unit_cost_cents"], f"materials[{index}].unit_cost_cents", allow_zero=True
                )
            ),
        })
    return materials


@manufacturing_bp.get("/production-orders")
@require_actor
@require_capability("manufacturing.orders.view")
def list_production_orders_route():
    try:
        orders = production_service.list_production_orders(status=request.args.get("status") or None)
        return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list production orders")
        return internal_error()


@manufacturing_bp.post("/production-orders")
@require_actor
@require_capability("manufacturing.orders.manage")
def create_production_order_route():
    try:
        payload = json_body()
        if payload.get("product_id") is None or payload.get("quantity") is None:
            raise ValidationFailed("product_id and quantity are required")
        sales_order_id = payload.get("sales_order_id")
        order = production_service.create_production_order(
            product_id=coerce_int(payload["product_id"], "product_id"),
            quantity=coerce_int(payload["quantity"], "quantity"),
            materials=_parse_materials(payload.get("materials")),
            sales_order_id=coerce_int(sales_order_id, "sales_order_id") if sales_order_id is not None else None,
            notes=payload.get("notes"),
            created_by=actor_id(),
        )
        return jsonify({"order": order.to_dict()}), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create production order")
        return internal_error()


@manufacturing_bp.get("/production-orders/<int:order_id>")
@require_actor
@require_capability("manufacturing.orders.view")
def get_production_order_route(order_id: int):
    try:
        order = production_service.get_production_order(order_id)
        return jsonify({"order": order.to_dict()})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get production order")
        return internal_error()


@manufacturing_bp.delete("/production-orders/<int:order_id>")
@require_actor
@require_capability("manufacturing.orders.manage")
def delete_production_order_route(order_id: int):
    try:
        production_service.delete_production_order(order_id)
        return jsonify({"deleted": True, "id": order_id})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete production order")
        return internal_error()


_TRANSITIONS = {
    "start": production_service.start_production_order,
    "complete": production_service.complete_production_order,
    "cancel": production_service.cancel_production_order,
}


@manufacturing_bp.put("/production-orders/<int:order_id>/<any(start, complete, cancel):action>")
@require_actor
@require_capability("manufacturing.orders.manage")
def transition_production_order_route(order_id: int, action: str):
    try:
        result = _TRANSITIONS[action](order_id, actor_id=actor_id())
        return jsonify(result.to_dict())
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to %s production order", action)
        return internal_error()
