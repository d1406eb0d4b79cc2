"""
Ledger tests.

Verifies:
- Balance always equals the signed sum of the transaction log
- Debits never overdraw unless ALLOW_NEGATIVE_BALANCE is on
- Failed postings leave no trace
"""

import pytest

from erp_core.errors import AccountInUse, AccountNotFound, InsufficientFunds, ValidationFailed
from erp_core.extensions import db
from erp_core.models import LedgerTransaction
from erp_core.services import ledger_service


def test_opening_balance_is_posted_as_adjustment(make_account):
    account = make_account(balance=100_000)

    assert account.balance_cents == 100_000
    rows, total = ledger_service.list_transactions(bank_account_id=account.id)
    assert total == 1
    assert rows[0].direction == "in"
    assert rows[0].source_type == "adjustment"
    assert ledger_service.reconcile_account(account.id)["consistent"]


def test_zero_opening_balance_has_no_transaction(make_account):
    account = make_account(balance=0)
    _, total = ledger_service.list_transactions(bank_account_id=account.id)
    assert total == 0


def test_credit_and_debit_keep_balance_reconciled(make_account):
    account = make_account(balance=1_000)

    ledger_service.credit(account.id, 250, notes="top up")
    ledger_service.debit(account.id, 500, notes="withdrawal")

    account = ledger_service.get_account(account.id)
    assert account.balance_cents == 750

    result = ledger_service.reconcile_account(account.id)
    assert result["computed_balance_cents"] == 750
    assert result["difference_cents"] == 0
    assert result["transaction_count"] == 3

    rows, _ = ledger_service.list_transactions(bank_account_id=account.id)
    signed = sorted(tx.to_dict()["signed_amount_cents"] for tx in rows)
    assert signed == [-500, 250, 1_000]
    assert sum(signed) == result["balance_cents"]


def test_debit_more_than_balance_raises_and_changes_nothing(make_account):
    account = make_account(balance=300)

    with pytest.raises(InsufficientFunds):
        ledger_service.debit(account.id, 301)

    account = ledger_service.get_account(account.id)
    assert account.balance_cents == 300
    _, total = ledger_service.list_transactions(bank_account_id=account.id)
    assert total == 1


def test_negative_balance_allowed_when_configured(app, make_account, monkeypatch):
    monkeypatch.setitem(app.config, "ALLOW_NEGATIVE_BALANCE", True)
    account = make_account(balance=100)

    ledger_service.debit(account.id, 150)

    assert ledger_service.get_account(account.id).balance_cents == -50
    assert ledger_service.reconcile_account(account.id)["consistent"]


@pytest.mark.parametrize("amount", [0, -5, 1.5, True])
def test_non_positive_or_non_integer_amount_rejected(make_account, amount):
    account = make_account(balance=100)
    with pytest.raises(ValidationFailed):
        ledger_service.credit(account.id, amount)


def test_unknown_account_raises(make_account):
    with pytest.raises(AccountNotFound):
        ledger_service.credit(999_999, 100)


def test_reconcile_detects_drift(make_account):
    account = make_account(balance=500)

    # Out-of-band write, as a broken writer would do
    account.balance_cents = 400
    db.session.commit()

    result = ledger_service.reconcile_account(account.id)
    assert not result["consistent"]
    assert result["difference_cents"] == -100


def test_reconcile_all_covers_every_account(make_account):
    make_account(name="A", balance=10)
    make_account(name="B", balance=20)

    results = ledger_service.reconcile_all()
    assert [r["name"] for r in results] == ["A", "B"]
    assert all(r["consistent"] for r in results)


def test_delete_account_with_history_is_refused(make_account):
    used = make_account(name="Used", balance=10)
    empty = make_account(name="Empty", balance=0)

    with pytest.raises(AccountInUse):
        ledger_service.delete_account(used.id)

    ledger_service.delete_account(empty.id)
    with pytest.raises(AccountNotFound):
        ledger_service.get_account(empty.id)


def test_list_transactions_filters_and_pages(make_account):
    account = make_account(balance=1_000)
    for _ in range(3):
        ledger_service.debit(account.id, 10, source_type="expense")

    rows, total = ledger_service.list_transactions(bank_account_id=account.id, direction="out")
    assert total == 3
    assert all(tx.direction == "out" for tx in rows)

    rows, total = ledger_service.list_transactions(bank_account_id=account.id, limit=2, offset=0)
    assert total == 4
    assert len(rows) == 2

    with pytest.raises(ValidationFailed):
        ledger_service.list_transactions(direction="sideways")


def test_credit_appends_a_new_row(make_account):
    account = make_account(balance=100)
    ledger_service.credit(account.id, 50)

    amounts = sorted(tx.amount_cents for tx in db.session.query(LedgerTransaction).all())
    assert amounts == [50, 100]
