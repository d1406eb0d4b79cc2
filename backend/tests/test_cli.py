"""
Flask CLI command tests.
"""

from sqlalchemy import update

from erp_core.extensions import db
from erp_core.models import BankAccount, Product


def test_seed_is_idempotent(app):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["system", "seed"])
    second = runner.invoke(args=["system", "seed"])

    assert first.exit_code == 0
    assert "PASS Created product: FG-TOOLBOX" in first.output
    assert second.exit_code == 0
    assert "Created" not in second.output
    assert db.session.query(Product).count() == 3
    assert db.session.query(BankAccount).one().balance_cents == 1_000_000


def test_reconcile_reports_drift(app, make_account):
    account = make_account(balance=300)
    runner = app.test_cli_runner()

    clean = runner.invoke(args=["ledger", "reconcile"])
    assert clean.exit_code == 0
    assert "PASS Main Account: 300 (1 transactions)" in clean.output

    db.session.execute(update(BankAccount).where(BankAccount.id == account.id).values(balance_cents=999))
    db.session.commit()

    drifted = runner.invoke(args=["ledger", "reconcile", "--account-id", str(account.id)])
    assert drifted.exit_code == 1
    assert "difference 699" in drifted.output


def test_perms_check(app):
    runner = app.test_cli_runner()

    allowed = runner.invoke(args=["perms", "check", "manager", "Finance", "finance.payments"])
    denied = runner.invoke(args=["perms", "check", "employee", "Finance", "finance.payments"])

    assert allowed.exit_code == 0
    assert allowed.output.startswith("PASS")
    assert denied.exit_code == 1
