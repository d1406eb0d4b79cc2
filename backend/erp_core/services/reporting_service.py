# Overview: Read-only finance projections: dashboard, month comparison, expense breakdown, cash flow.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import case, func

from ..errors import ValidationFailed
from ..extensions import db
from ..models import BankAccount, Expense, Invoice, LedgerTransaction
from ..time_utils import add_months, month_start, to_utc_z, utcnow

PERIODS = ("month", "quarter", "year", "all")


def _period_start(period: str, now: datetime) -> datetime | None:
    if period not in PERIODS:
        raise ValidationFailed(f"period must be one of {PERIODS}")
    if period == "month":
        return month_start(now)
    if period == "quarter":
        start = month_start(now)
        return start.replace(month=((start.month - 1) // 3) * 3 + 1)
    if period == "year":
        return month_start(now).replace(month=1)
    return None


def _flows(start: datetime | None = None, end: datetime | None = None) -> tuple[int, int]:
    """(money in, money out) over [start, end)."""
    query = db.session.query(
        func.coalesce(func.sum(case((LedgerTransaction.direction == "in", LedgerTransaction.amount_cents), else_=0)), 0),
        func.coalesce(func.sum(case((LedgerTransaction.direction == "out", LedgerTransaction.amount_cents), else_=0)), 0),
    )
    if start is not None:
        query = query.filter(LedgerTransaction.occurred_at >= start)
    if end is not None:
        query = query.filter(LedgerTransaction.occurred_at < end)
    income, outgoing = query.one()
    return int(income), int(outgoing)


def _percent_change(current: int, previous: int) -> float:
    if previous:
        return round((current - previous) / abs(previous) * 100, 2)
    if current:
        return 100.0 if current > 0 else -100.0
    return 0.0


def dashboard_summary(*, recent_limit: int = 10) -> dict:
    now = utcnow()
    total_balance = db.session.query(func.coalesce(func.sum(BankAccount.balance_cents), 0)).scalar()

    status_counts = dict(
        db.session.query(Invoice.status, func.count(Invoice.id)).group_by(Invoice.status).all()
    )
    unpaid_total = (
        db.session.query(func.coalesce(func.sum(Invoice.total_cents), 0))
        .filter(Invoice.status == "unpaid")
        .scalar()
    )

    month_expenses = (
        db.session.query(func.count(Expense.id), func.coalesce(func.sum(Expense.amount_cents), 0))
        .filter(Expense.occurred_at >= month_start(now))
        .one()
    )

    total_income, total_outgoing = _flows()

    recent = (
        db.session.query(LedgerTransaction)
        .order_by(LedgerTransaction.occurred_at.desc(), LedgerTransaction.id.desc())
        .limit(recent_limit)
        .all()
    )

    return {
        "total_balance_cents": int(total_balance or 0),
        "unpaid_invoice_count": int(status_counts.get("unpaid", 0)),
        "unpaid_invoice_total_cents": int(unpaid_total or 0),
        "paid_invoice_count": int(status_counts.get("paid", 0)),
        "month_expenses_cents": int(month_expenses[1]),
        "month_expenses_count": int(month_expenses[0]),
        "total_income_cents": total_income,
        "total_outgoing_cents": total_outgoing,
        "net_cash_flow_cents": total_income - total_outgoing,
        "recent_transactions": [tx.to_dict() for tx in recent],
        "generated_at": to_utc_z(now),
    }


def month_comparison() -> dict:
    """Current calendar month so far vs the whole previous month."""
    current_start = month_start(utcnow())
    previous_start = add_months(current_start, -1)

    cur_in, cur_out = _flows(current_start)
    prev_in, prev_out = _flows(previous_start, current_start)

    return {
        "current_month": {
            "start": to_utc_z(current_start),
            "income_cents": cur_in,
            "expenses_cents": cur_out,
            "net_flow_cents": cur_in - cur_out,
        },
        "previous_month": {
            "start": to_utc_z(previous_start),
            "income_cents": prev_in,
            "expenses_cents": prev_out,
            "net_flow_cents": prev_in - prev_out,
        },
        "percentage_change": {
            "income": _percent_change(cur_in, prev_in),
            "expenses": _percent_change(cur_out, prev_out),
            "net_flow": _percent_change(cur_in - cur_out, prev_in - prev_out),
        },
    }


def expenses_breakdown(period: str = "month") -> dict:
    """Expenses per category for the period, largest first, with percentages."""
    start = _period_start(period, utcnow())
    query = db.session.query(
        Expense.category,
        func.count(Expense.id),
        func.coalesce(func.sum(Expense.amount_cents), 0),
    )
    if start is not None:
        query = query.filter(Expense.occurred_at >= start)
    rows = query.group_by(Expense.category).order_by(func.sum(Expense.amount_cents).desc()).all()

    total = sum(int(amount) for _, _, amount in rows)
    return {
        "period": period,
        "start": to_utc_z(start),
        "total_cents": total,
        "categories": [
            {
                "category": category,
                "count": int(count),
                "total_cents": int(amount),
                "percentage": round(int(amount) / total * 100, 2) if total else 0.0,
            }
            for category, count, amount in rows
        ],
    }


def cash_flow(months: int = 6) -> list[dict]:
    """Monthly in/out/net for the last `months` months, oldest first, current month included."""
    if months < 1 or months > 36:
        raise ValidationFailed("months must be between 1 and 36")
    current = month_start(utcnow())
    buckets = []
    for offset in range(months - 1, -1, -1):
        start = add_months(current, -offset)
        end = add_months(start, 1)
        money_in, money_out = _flows(start, end)
        buckets.append({
            "month": start.strftime("%Y-%m"),
            "in_cents": money_in,
            "out_cents": money_out,
            "net_cents": money_in - money_out,
        })
    return buckets
