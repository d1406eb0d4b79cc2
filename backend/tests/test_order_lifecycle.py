"""
Transition table tests.

Every (status, action) pair is either in the table or rejected with
InvalidTransition; terminal statuses accept nothing.
"""

import itertools

import pytest

from erp_core.errors import InvalidTransition
from erp_core.services.order_lifecycle import (
    ORDER_TYPES,
    TRANSITIONS,
    actions_for,
    can_transition,
    ensure_editable,
    is_terminal,
    next_status,
    statuses_for,
)


EXPECTED_TERMINALS = {
    "purchase": {"received", "cancelled"},
    "sales": {"delivered", "cancelled"},
    "production": {"completed", "cancelled"},
}


@pytest.mark.parametrize("order_type", ORDER_TYPES)
def test_every_pair_is_allowed_or_rejected(order_type):
    for status, action in itertools.product(statuses_for(order_type), actions_for(order_type)):
        if can_transition(order_type, status, action):
            assert next_status(order_type, status, action) == TRANSITIONS[(order_type, status, action)]
        else:
            with pytest.raises(InvalidTransition):
                next_status(order_type, status, action)


@pytest.mark.parametrize("order_type", ORDER_TYPES)
def test_terminal_statuses(order_type):
    terminals = {s for s in statuses_for(order_type) if is_terminal(order_type, s)}
    assert terminals == EXPECTED_TERMINALS[order_type]


def test_happy_paths():
    assert next_status("purchase", "pending", "order") == "ordered"
    assert next_status("purchase", "ordered", "receive") == "received"
    assert next_status("sales", "pending", "confirm") == "confirmed"
    assert next_status("sales", "confirmed", "ship") == "shipped"
    assert next_status("sales", "shipped", "deliver") == "delivered"
    assert next_status("production", "pending", "start") == "in_progress"
    assert next_status("production", "in_progress", "complete") == "completed"


def test_cancel_only_from_pending():
    assert next_status("purchase", "pending", "cancel") == "cancelled"
    with pytest.raises(InvalidTransition):
        next_status("purchase", "ordered", "cancel")
    with pytest.raises(InvalidTransition):
        next_status("sales", "confirmed", "cancel")


def test_rejection_carries_context():
    with pytest.raises(InvalidTransition) as excinfo:
        next_status("sales", "delivered", "ship")
    assert excinfo.value.details == {"order_type": "sales", "status": "delivered", "action": "ship"}
    assert excinfo.value.http_status == 409


def test_only_pending_is_editable():
    ensure_editable("purchase", "pending")
    with pytest.raises(InvalidTransition):
        ensure_editable("purchase", "ordered")
