# Overview: Ledger Store and Transaction Log; the only writer of bank account balances.

from __future__ import annotations

from datetime import datetime
from typing import Optional

from flask import current_app
from sqlalchemy import case, func

from ..errors import AccountInUse, AccountNotFound, InsufficientFunds, ValidationFailed
from ..extensions import db
from ..models import BankAccount, LedgerTransaction
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry

"""
Ledger Invariants (authoritative)

- LedgerTransaction rows are append-only: no update or delete paths exist.
- BankAccount.balance_cents == SUM(+amount for 'in', -amount for 'out')
  over the account's transactions, at every commit.
- The balance and its transaction are written in the same unit of work.
- amount_cents is always > 0; direction carries the sign.
- occurred_at is business time; created_at is system time (DB default).
"""

DIRECTIONS = ("in", "out")
SOURCE_TYPES = ("invoice", "expense", "adjustment")


# =============================================================================
# Bank accounts
# =============================================================================

def get_account(account_id: int) -> BankAccount:
    account = db.session.get(BankAccount, account_id)
    if not account:
        raise AccountNotFound(f"Bank account {account_id} not found")
    return account


def get_account_for_update(account_id: int) -> BankAccount:
    account = lock_for_update(
        db.session.query(BankAccount).filter(BankAccount.id == account_id)
    ).first()
    if not account:
        raise AccountNotFound(f"Bank account {account_id} not found")
    return account


def get_bank_accounts() -> list[BankAccount]:
    return db.session.query(BankAccount).order_by(BankAccount.name.asc(), BankAccount.id.asc()).all()


def open_account(*, name: str, opening_balance_cents: int = 0, created_by: str | None = None) -> BankAccount:
    """
    Create a bank account.

    A non-zero opening balance is posted as an 'adjustment' credit so the
    balance is still fully explained by the transaction log.
    """
    name = (name or "").strip()
    if not name:
        raise ValidationFailed("name is required")
    if opening_balance_cents < 0:
        raise ValidationFailed("opening balance must be >= 0")

    def _op() -> BankAccount:
        account = BankAccount(name=name, balance_cents=0)
        db.session.add(account)
        db.session.flush()
        if opening_balance_cents:
            post_transaction_inner(
                account_id=account.id,
                direction="in",
                amount_cents=opening_balance_cents,
                source_type="adjustment",
                notes="Opening balance",
                created_by=created_by,
            )
        db.session.commit()
        return account

    return run_with_retry(_op)


def rename_account(account_id: int, *, name: str) -> BankAccount:
    name = (name or "").strip()
    if not name:
        raise ValidationFailed("name is required")

    def _op() -> BankAccount:
        account = get_account_for_update(account_id)
        account.name = name
        db.session.commit()
        return account

    return run_with_retry(_op)


def delete_account(account_id: int) -> None:
    """Delete an account that no transaction references."""
    def _op() -> None:
        account = get_account_for_update(account_id)
        in_use = db.session.query(LedgerTransaction.id).filter(
            LedgerTransaction.bank_account_id == account_id
        ).first()
        if in_use:
            raise AccountInUse(account_id=account_id)
        db.session.delete(account)
        db.session.commit()

    run_with_retry(_op)


# =============================================================================
# Posting
# =============================================================================

def post_transaction_inner(
    *,
    account_id: int,
    direction: str,
    amount_cents: int,
    source_type: str,
    source_id: int | None = None,
    notes: str | None = None,
    created_by: str | None = None,
    occurred_at: Optional[datetime] = None,
) -> LedgerTransaction:
    """
    Append a transaction and move the cached balance, without committing.

    Callers compose this into a larger unit of work (invoice payment,
    expense) and commit once.

    Raises:
        ValidationFailed: bad direction, source type or non-positive amount
        AccountNotFound: account does not exist
        InsufficientFunds: an 'out' would overdraw the account and
            ALLOW_NEGATIVE_BALANCE is off
    """
    if direction not in DIRECTIONS:
        raise ValidationFailed(f"direction must be one of {DIRECTIONS}")
    if source_type not in SOURCE_TYPES:
        raise ValidationFailed(f"source_type must be one of {SOURCE_TYPES}")
    if not isinstance(amount_cents, int) or isinstance(amount_cents, bool) or amount_cents <= 0:
        raise ValidationFailed("amount_cents must be a positive integer")

    account = get_account_for_update(account_id)

    if direction == "out":
        allow_negative = current_app.config.get("ALLOW_NEGATIVE_BALANCE", False)
        if not allow_negative and amount_cents > account.balance_cents:
            raise InsufficientFunds(
                account_id=account_id,
                balance_cents=account.balance_cents,
                requested_cents=amount_cents,
            )

    tx = LedgerTransaction(
        bank_account_id=account.id,
        direction=direction,
        amount_cents=amount_cents,
        source_type=source_type,
        source_id=source_id,
        notes=notes,
        created_by=created_by,
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(tx)

    account.balance_cents = account.balance_cents + (amount_cents if direction == "in" else -amount_cents)
    db.session.flush()
    return tx


def credit(
    account_id: int,
    amount_cents: int,
    *,
    source_type: str = "adjustment",
    source_id: int | None = None,
    notes: str | None = None,
    created_by: str | None = None,
) -> LedgerTransaction:
    """Money in. One unit of work: log row + balance."""
    def _op() -> LedgerTransaction:
        tx = post_transaction_inner(
            account_id=account_id,
            direction="in",
            amount_cents=amount_cents,
            source_type=source_type,
            source_id=source_id,
            notes=notes,
            created_by=created_by,
        )
        db.session.commit()
        return tx

    return run_with_retry(_op)


def debit(
    account_id: int,
    amount_cents: int,
    *,
    source_type: str = "adjustment",
    source_id: int | None = None,
    notes: str | None = None,
    created_by: str | None = None,
) -> LedgerTransaction:
    """Money out. Fails with InsufficientFunds rather than overdrawing."""
    def _op() -> LedgerTransaction:
        tx = post_transaction_inner(
            account_id=account_id,
            direction="out",
            amount_cents=amount_cents,
            source_type=source_type,
            source_id=source_id,
            notes=notes,
            created_by=created_by,
        )
        db.session.commit()
        return tx

    return run_with_retry(_op)


# =============================================================================
# Reconciliation and queries
# =============================================================================

def _signed_sum():
    return func.coalesce(
        func.sum(
            case(
                (LedgerTransaction.direction == "in", LedgerTransaction.amount_cents),
                else_=-LedgerTransaction.amount_cents,
            )
        ),
        0,
    )


def reconcile_account(account_id: int) -> dict:
    """Compare the cached balance against the signed sum of the log."""
    account = get_account(account_id)
    computed = int(
        db.session.query(_signed_sum())
        .filter(LedgerTransaction.bank_account_id == account_id)
        .scalar()
    )
    transaction_count = (
        db.session.query(func.count(LedgerTransaction.id))
        .filter(LedgerTransaction.bank_account_id == account_id)
        .scalar()
    )
    return {
        "bank_account_id": account.id,
        "name": account.name,
        "balance_cents": account.balance_cents,
        "computed_balance_cents": computed,
        "difference_cents": account.balance_cents - computed,
        "transaction_count": int(transaction_count or 0),
        "consistent": account.balance_cents == computed,
    }


def reconcile_all() -> list[dict]:
    return [reconcile_account(account.id) for account in get_bank_accounts()]


def list_transactions(
    *,
    bank_account_id: int | None = None,
    direction: str | None = None,
    source_type: str | None = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[LedgerTransaction], int]:
    """
    List log entries newest first. Date range is inclusive on both ends
    and filters on occurred_at (business time).
    """
    query = db.session.query(LedgerTransaction)
    if bank_account_id is not None:
        query = query.filter(LedgerTransaction.bank_account_id == bank_account_id)
    if direction:
        if direction not in DIRECTIONS:
            raise ValidationFailed(f"direction must be one of {DIRECTIONS}")
        query = query.filter(LedgerTransaction.direction == direction)
    if source_type:
        query = query.filter(LedgerTransaction.source_type == source_type)
    if start:
        query = query.filter(LedgerTransaction.occurred_at >= start)
    if end:
        query = query.filter(LedgerTransaction.occurred_at <= end)

    total = query.count()

    limit = min(max(limit, 1), 500)
    offset = max(offset, 0)

    rows = (
        query.order_by(LedgerTransaction.occurred_at.desc(), LedgerTransaction.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return rows, total
