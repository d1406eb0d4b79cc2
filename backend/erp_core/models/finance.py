from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class BankAccount(db.Model):
    """
    Cash or bank account (Finance).

    BALANCE INVARIANT:
    balance_cents is a cache of SUM(+amount for 'in', -amount for 'out') over
    this account's LedgerTransaction rows. It is written only by
    ledger_service, in the same DB transaction that appends the log row.
    There is intentionally no API that sets it directly.
    """
    __tablename__ = "bank_accounts"
    __table_args__ = (
        db.Index("ix_bank_accounts_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    balance_cents = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<BankAccount id={self.id} name={self.name!r} balance_cents={self.balance_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "balance_cents": self.balance_cents,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class LedgerTransaction(db.Model):
    """
    Transaction Log entry: one balance-affecting event.

    Append-only. Rows are never updated or deleted; corrections are new
    adjustment rows.
    """
    __tablename__ = "ledger_transactions"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_ledger_tx_amount_positive"),
        db.CheckConstraint("direction IN ('in', 'out')", name="ck_ledger_tx_direction"),
        db.Index("ix_ledger_tx_account_occurred", "bank_account_id", "occurred_at"),
        db.Index("ix_ledger_tx_source", "source_type", "source_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bank_account_id = db.Column(db.Integer, db.ForeignKey("bank_accounts.id"), nullable=False, index=True)

    direction = db.Column(db.String(8), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)

    # invoice | expense | adjustment
    source_type = db.Column(db.String(16), nullable=False)
    source_id = db.Column(db.Integer, nullable=True)

    notes = db.Column(db.String(255), nullable=True)

    # Business time vs system time
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by = db.Column(db.String(64), nullable=True)

    bank_account = db.relationship("BankAccount", backref=db.backref("transactions", lazy="dynamic"))

    @property
    def signed_amount_cents(self) -> int:
        return self.amount_cents if self.direction == "in" else -self.amount_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bank_account_id": self.bank_account_id,
            "bank_account_name": self.bank_account.name if self.bank_account else None,
            "direction": self.direction,
            "amount_cents": self.amount_cents,
            "signed_amount_cents": self.signed_amount_cents,
            "source_type": self.source_type,
            "source_id": self.source_id,
            "notes": self.notes,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
        }


class Expense(db.Model):
    """Business expense not tied to an invoice; always paid through the ledger."""
    __tablename__ = "expenses"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_expenses_amount_positive"),
        db.Index("ix_expenses_category", "category"),
        db.Index("ix_expenses_occurred", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)

    bank_account_id = db.Column(db.Integer, db.ForeignKey("bank_accounts.id"), nullable=False, index=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("ledger_transactions.id"), nullable=True, unique=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    notes = db.Column(db.String(255), nullable=True)
    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    bank_account = db.relationship("BankAccount")
    transaction = db.relationship("LedgerTransaction")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "category": self.category,
            "amount_cents": self.amount_cents,
            "bank_account_id": self.bank_account_id,
            "bank_account_name": self.bank_account.name if self.bank_account else None,
            "transaction_id": self.transaction_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "notes": self.notes,
            "created_by": self.created_by,
        }


class Invoice(db.Model):
    """
    Invoice derived from a purchase or sales order.

    - Exactly one invoice per (source_order_type, source_order_id): enforced
      by a unique constraint as well as by invoice_service.
    - status moves unpaid -> paid exactly once (optimistic lock on version_id).
    - source_order_id is a weak back-reference (no FK cascade) because the
      order and its invoice live in different tables per order type.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_invoices_number"),
        db.UniqueConstraint("source_order_type", "source_order_id", name="uq_invoices_source_order"),
        db.Index("ix_invoices_status_date", "status", "invoice_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(32), nullable=False)

    # purchase | sales
    source_order_type = db.Column(db.String(16), nullable=False)
    source_order_id = db.Column(db.Integer, nullable=False)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="unpaid", index=True)
    payment_terms = db.Column(db.String(32), nullable=False, default="Net 30")
    invoice_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)

    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    bank_account_id = db.Column(db.Integer, db.ForeignKey("bank_accounts.id"), nullable=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("ledger_transactions.id"), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    transaction = db.relationship("LedgerTransaction")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def payment_direction(self) -> str:
        # Sales invoice = money coming IN; purchase invoice = money going OUT
        return "in" if self.source_order_type == "sales" else "out"

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} number={self.invoice_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "type": self.source_order_type,
            "source_order_type": self.source_order_type,
            "source_order_id": self.source_order_id,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "status": self.status,
            "payment_terms": self.payment_terms,
            "invoice_date": to_utc_z(self.invoice_date),
            "due_date": to_utc_z(self.due_date),
            "paid_at": to_utc_z(self.paid_at),
            "bank_account_id": self.bank_account_id,
            "transaction_id": self.transaction_id,
            "notes": self.notes,
            "version_id": self.version_id,
        }
