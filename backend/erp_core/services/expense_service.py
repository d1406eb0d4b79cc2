# Overview: Expense recording; every expense is a ledger debit.

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..errors import ValidationFailed
from ..extensions import db
from ..models import Expense
from ..time_utils import utcnow
from .concurrency import run_with_retry
from .ledger_service import get_account_for_update, post_transaction_inner

EXPENSE_CATEGORIES = (
    "rent", "utilities", "salaries", "supplies", "maintenance",
    "marketing", "transport", "taxes", "other",
)


def record_expense(
    *,
    title: str,
    amount_cents: int,
    category: str,
    bank_account_id: int,
    occurred_at: Optional[datetime] = None,
    notes: str | None = None,
    created_by: str | None = None,
) -> Expense:
    """
    Record an expense and debit the account in one unit of work.

    Raises:
        ValidationFailed, AccountNotFound, InsufficientFunds
    """
    title = (title or "").strip()
    if not title:
        raise ValidationFailed("title is required")
    if category not in EXPENSE_CATEGORIES:
        raise ValidationFailed(f"category must be one of {EXPENSE_CATEGORIES}")
    if not isinstance(amount_cents, int) or isinstance(amount_cents, bool) or amount_cents <= 0:
        raise ValidationFailed("amount_cents must be a positive integer")

    def _op() -> Expense:
        when = occurred_at or utcnow()
        get_account_for_update(bank_account_id)
        expense = Expense(
            title=title,
            category=category,
            amount_cents=amount_cents,
            bank_account_id=bank_account_id,
            occurred_at=when,
            notes=notes,
            created_by=created_by,
        )
        db.session.add(expense)
        db.session.flush()

        tx = post_transaction_inner(
            account_id=bank_account_id,
            direction="out",
            amount_cents=amount_cents,
            source_type="expense",
            source_id=expense.id,
            notes=f"Expense: {title}",
            created_by=created_by,
            occurred_at=when,
        )
        expense.transaction_id = tx.id
        db.session.commit()
        return expense

    return run_with_retry(_op)


def list_expenses(
    *,
    category: str | None = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> list[Expense]:
    query = db.session.query(Expense)
    if category:
        query = query.filter(Expense.category == category)
    if start:
        query = query.filter(Expense.occurred_at >= start)
    if end:
        query = query.filter(Expense.occurred_at <= end)
    return query.order_by(Expense.occurred_at.desc(), Expense.id.desc()).all()
