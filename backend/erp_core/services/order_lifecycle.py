# Overview: Single transition table for purchase, sales and production orders.

"""
Order Lifecycle

================================================================================
PURPOSE: One authoritative table of allowed order state transitions
================================================================================

STATE MACHINES:
    Purchase order:   PENDING -order-> ORDERED -receive-> RECEIVED
                      PENDING -cancel-> CANCELLED
    Sales order:      PENDING -confirm-> CONFIRMED -ship-> SHIPPED -deliver-> DELIVERED
                      PENDING -cancel-> CANCELLED
    Production order: PENDING -start-> IN_PROGRESS -complete-> COMPLETED
                      PENDING -cancel-> CANCELLED

RULES:
1. Every (state, action) pair not in the table is rejected with InvalidTransition.
2. A rejected transition leaves the order untouched.
3. Terminal states (received, delivered, completed, cancelled) accept no action.
4. Only PENDING orders may be edited or deleted.

Side effects (stock, invoices, auto-reorder) live in the per-order services;
this module only answers "is this allowed and where does it lead".
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import InvalidTransition


class PurchaseOrderStatus(str, Enum):
    PENDING = "pending"
    ORDERED = "ordered"
    RECEIVED = "received"
    CANCELLED = "cancelled"


class SalesOrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class ProductionOrderStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class InvoiceStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"


ORDER_TYPES = ("purchase", "sales", "production")

# (order_type, from_status, action) -> to_status
TRANSITIONS: dict[tuple[str, str, str], str] = {
    ("purchase", PurchaseOrderStatus.PENDING.value, "order"): PurchaseOrderStatus.ORDERED.value,
    ("purchase", PurchaseOrderStatus.ORDERED.value, "receive"): PurchaseOrderStatus.RECEIVED.value,
    ("purchase", PurchaseOrderStatus.PENDING.value, "cancel"): PurchaseOrderStatus.CANCELLED.value,

    ("sales", SalesOrderStatus.PENDING.value, "confirm"): SalesOrderStatus.CONFIRMED.value,
    ("sales", SalesOrderStatus.CONFIRMED.value, "ship"): SalesOrderStatus.SHIPPED.value,
    ("sales", SalesOrderStatus.SHIPPED.value, "deliver"): SalesOrderStatus.DELIVERED.value,
    ("sales", SalesOrderStatus.PENDING.value, "cancel"): SalesOrderStatus.CANCELLED.value,

    ("production", ProductionOrderStatus.PENDING.value, "start"): ProductionOrderStatus.IN_PROGRESS.value,
    ("production", ProductionOrderStatus.IN_PROGRESS.value, "complete"): ProductionOrderStatus.COMPLETED.value,
    ("production", ProductionOrderStatus.PENDING.value, "cancel"): ProductionOrderStatus.CANCELLED.value,
}

_STATUS_ENUMS = {
    "purchase": PurchaseOrderStatus,
    "sales": SalesOrderStatus,
    "production": ProductionOrderStatus,
}


def statuses_for(order_type: str) -> list[str]:
    return [s.value for s in _STATUS_ENUMS[order_type]]


def actions_for(order_type: str) -> list[str]:
    return sorted({action for (otype, _, action) in TRANSITIONS if otype == order_type})


def can_transition(order_type: str, current_status: str, action: str) -> bool:
    """
    Check if a transition is valid without raising an exception.

    Returns:
        True if transition is allowed, False otherwise
    """
    return (order_type, current_status, action) in TRANSITIONS


def next_status(order_type: str, current_status: str, action: str) -> str:
    """
    Resolve the target status for an action.

    Raises:
        InvalidTransition: If the pair (current_status, action) is not in the table
    """
    target = TRANSITIONS.get((order_type, current_status, action))
    if target is None:
        raise InvalidTransition(
            f"Cannot {action} a {order_type} order in status '{current_status}'",
            order_type=order_type,
            status=current_status,
            action=action,
        )
    return target


def is_terminal(order_type: str, status: str) -> bool:
    return not any(otype == order_type and src == status for (otype, src, _) in TRANSITIONS)


def ensure_editable(order_type: str, current_status: str) -> None:
    """Only pending orders may be edited or deleted."""
    if current_status != "pending":
        raise InvalidTransition(
            f"Only pending {order_type} orders can be modified (status '{current_status}')",
            order_type=order_type,
            status=current_status,
        )


@dataclass
class TransitionResult:
    """Updated order plus the side effects one transition produced."""
    order: Any
    stock_movements: list = field(default_factory=list)
    invoice: Any = None
    auto_purchase_orders: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "order": self.order.to_dict(),
            "stock_movements": [
                {
                    "product_id": m.product_id,
                    "before": m.stock_after - m.signed_quantity,
                    "after": m.stock_after,
                }
                for m in self.stock_movements
            ],
            "invoice": self.invoice.to_dict() if self.invoice is not None else None,
            "auto_purchase_orders": [po.to_dict() for po in self.auto_purchase_orders],
        }
