"""
Capability grant tests.
"""

import pytest

from erp_core.permissions import (
    CAPABILITY_GRANTS,
    Department,
    capabilities_for,
    get_all_capability_codes,
    get_capability_definition,
    has_capability,
    validate_capability_code,
)


def test_every_definition_has_a_grant_and_vice_versa():
    assert set(get_all_capability_codes()) == set(CAPABILITY_GRANTS)


def test_admin_holds_everything():
    assert capabilities_for("admin", None) == get_all_capability_codes()


def test_unknown_capability_fails_closed():
    assert validate_capability_code("finance.print_money") is False
    assert has_capability("admin", None, "finance.print_money") is False


@pytest.mark.parametrize("code", [c for c in get_all_capability_codes() if c.endswith(".view")])
def test_views_open_to_any_actor(code):
    if code == "finance.reports.view":
        assert not has_capability("employee", Department.SALES, code)
    else:
        assert has_capability("employee", Department.SALES, code)


def test_purchasing_split_between_employee_and_manager():
    assert has_capability("employee", Department.PURCHASING, "purchasing.orders.create")
    assert has_capability("employee", Department.PURCHASING, "purchasing.orders.receive")
    assert not has_capability("employee", Department.PURCHASING, "purchasing.orders.place")
    assert has_capability("manager", Department.PURCHASING, "purchasing.orders.place")
    assert not has_capability("manager", Department.SALES, "purchasing.orders.place")
    assert not has_capability("employee", Department.SALES, "purchasing.orders.create")


def test_finance_payments_require_finance_manager():
    assert has_capability("manager", Department.FINANCE, "finance.payments")
    assert not has_capability("manager", Department.SALES, "finance.payments")
    assert not has_capability("employee", Department.FINANCE, "finance.payments")


def test_bank_accounts_admin_only():
    assert not has_capability("manager", Department.FINANCE, "finance.accounts.manage")
    assert has_capability("admin", None, "finance.accounts.manage")


def test_definition_lookup():
    definition = get_capability_definition("inventory.adjust")
    assert definition["department"] == Department.INVENTORY
    assert get_capability_definition("nope") is None
