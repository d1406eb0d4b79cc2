"""
Expense recording and finance projection tests.
"""

from datetime import timedelta

import pytest

from erp_core.errors import AccountNotFound, InsufficientFunds, ValidationFailed
from erp_core.extensions import db
from erp_core.models import Expense, LedgerTransaction
from erp_core.services import expense_service, ledger_service, reporting_service
from erp_core.time_utils import add_months, month_start, utcnow


def _expense(account, amount, category="rent", when=None):
    return expense_service.record_expense(
        title=f"{category} bill",
        amount_cents=amount,
        category=category,
        bank_account_id=account.id,
        occurred_at=when,
        created_by="accountant",
    )


# =============================================================================
# Expenses
# =============================================================================

def test_expense_debits_account_and_links_transaction(make_account):
    account = make_account(balance=10_000)

    expense = _expense(account, 2_500)

    tx = db.session.get(LedgerTransaction, expense.transaction_id)
    assert tx.direction == "out"
    assert tx.source_type == "expense"
    assert tx.source_id == expense.id
    assert tx.amount_cents == 2_500
    assert ledger_service.get_account(account.id).balance_cents == 7_500


def test_expense_cannot_overdraw(make_account):
    account = make_account(balance=100)

    with pytest.raises(InsufficientFunds):
        _expense(account, 101)

    assert db.session.query(Expense).count() == 0
    assert ledger_service.get_account(account.id).balance_cents == 100


@pytest.mark.parametrize(
    "kwargs",
    [
        {"title": "", "amount_cents": 10, "category": "rent"},
        {"title": "x", "amount_cents": 0, "category": "rent"},
        {"title": "x", "amount_cents": 10, "category": "yachts"},
    ],
)
def test_expense_validation(make_account, kwargs):
    account = make_account(balance=1_000)
    with pytest.raises(ValidationFailed):
        expense_service.record_expense(bank_account_id=account.id, **kwargs)


def test_expense_unknown_account():
    with pytest.raises(AccountNotFound):
        expense_service.record_expense(title="x", amount_cents=1, category="rent", bank_account_id=55_555)


def test_list_expenses_by_category(make_account):
    account = make_account(balance=10_000)
    _expense(account, 100, "rent")
    _expense(account, 200, "utilities")

    assert [e.category for e in expense_service.list_expenses(category="utilities")] == ["utilities"]
    assert len(expense_service.list_expenses()) == 2


# =============================================================================
# Projections
# =============================================================================

def test_dashboard_summary(make_account):
    account = make_account(balance=50_000)
    _expense(account, 5_000, "rent")
    ledger_service.credit(account.id, 1_000)

    summary = reporting_service.dashboard_summary()

    assert summary["total_balance_cents"] == 46_000
    assert summary["month_expenses_cents"] == 5_000
    assert summary["month_expenses_count"] == 1
    assert summary["total_income_cents"] == 51_000
    assert summary["total_outgoing_cents"] == 5_000
    assert summary["net_cash_flow_cents"] == 46_000
    assert summary["unpaid_invoice_count"] == 0
    assert len(summary["recent_transactions"]) == 3


def test_month_comparison(make_account):
    account = make_account(balance=0)
    last_month = add_months(month_start(utcnow()), -1) + timedelta(days=3)
    ledger_service.credit(account.id, 2_000)
    _expense(account, 500, when=last_month)

    result = reporting_service.month_comparison()

    assert result["current_month"]["income_cents"] == 2_000
    assert result["previous_month"]["expenses_cents"] == 500
    assert result["percentage_change"]["expenses"] == -100.0
    assert result["percentage_change"]["income"] == 100.0


def test_expenses_breakdown(make_account):
    account = make_account(balance=10_000)
    _expense(account, 750, "rent")
    _expense(account, 250, "supplies")

    breakdown = reporting_service.expenses_breakdown("month")

    assert breakdown["total_cents"] == 1_000
    assert [c["category"] for c in breakdown["categories"]] == ["rent", "supplies"]
    assert breakdown["categories"][0]["percentage"] == 75.0

    with pytest.raises(ValidationFailed):
        reporting_service.expenses_breakdown("decade")


def test_cash_flow_buckets(make_account):
    account = make_account(balance=1_000)
    two_months_ago = add_months(month_start(utcnow()), -2) + timedelta(days=1)
    _expense(account, 300, when=two_months_ago)

    buckets = reporting_service.cash_flow(3)

    assert len(buckets) == 3
    assert buckets[-1]["month"] == utcnow().strftime("%Y-%m")
    assert buckets[0]["out_cents"] == 300
    assert buckets[-1]["in_cents"] == 1_000
    assert buckets[-1]["net_cents"] == 1_000

    with pytest.raises(ValidationFailed):
        reporting_service.cash_flow(0)
