# Overview: Invoice Settlement Service; derives invoices from orders and pays them through the ledger.

"""
Invoice Settlement Service

DESIGN PRINCIPLES:
- One invoice per order: (source_order_type, source_order_id) is unique in
  the service AND in the schema.
- Money is integer cents. tax = subtotal * TAX_RATE_BPS / 10000, rounded
  half-up to the cent.
- Paying an invoice is one unit of work: ledger transaction, balance, and
  invoice status change commit together or not at all.
- An invoice is paid at most once. The status check is repeated on every
  retry and the invoice row is version-checked at commit.
"""

from __future__ import annotations

import re
from datetime import timedelta

from flask import current_app

from ..errors import AlreadyPaid, DuplicateInvoice, InvalidTransition, InvoiceNotFound, OrderNotFound, ValidationFailed
from ..extensions import db
from ..models import Invoice, PurchaseOrder, SalesOrder
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_document_number
from .ledger_service import get_account_for_update, post_transaction_inner
from .order_lifecycle import InvoiceStatus


# =============================================================================
# CONSTANTS
# =============================================================================

ORDER_TYPE_PURCHASE = "purchase"
ORDER_TYPE_SALES = "sales"
VALID_ORDER_TYPES = (ORDER_TYPE_PURCHASE, ORDER_TYPE_SALES)

_ORDER_MODELS = {
    ORDER_TYPE_PURCHASE: PurchaseOrder,
    ORDER_TYPE_SALES: SalesOrder,
}

_DOCUMENT_TYPES = {
    ORDER_TYPE_PURCHASE: "purchase_invoice",
    ORDER_TYPE_SALES: "sales_invoice",
}

# Orders that may be invoiced on request (automatic generation happens on
# receive / confirm regardless)
_INVOICEABLE_STATUSES = {
    ORDER_TYPE_PURCHASE: {"ordered", "received"},
    ORDER_TYPE_SALES: {"confirmed", "shipped", "delivered"},
}

_NET_DAYS = re.compile(r"net\s*(\d+)", re.IGNORECASE)


# =============================================================================
# AMOUNTS
# =============================================================================

def compute_tax_cents(subtotal_cents: int, rate_bps: int) -> int:
    """subtotal * rate_bps / 10000, rounded half-up, integer-only."""
    return (subtotal_cents * rate_bps + 5000) // 10000


def due_days_for_terms(payment_terms: str | None) -> int:
    """'Net 45' -> 45; anything unparseable falls back to INVOICE_DUE_DAYS."""
    if payment_terms:
        match = _NET_DAYS.search(payment_terms)
        if match:
            return int(match.group(1))
    return current_app.config.get("INVOICE_DUE_DAYS", 30)


def _validate_order_type(order_type: str) -> None:
    if order_type not in VALID_ORDER_TYPES:
        raise ValidationFailed(f"order type must be one of {VALID_ORDER_TYPES}")


def _load_order(order_type: str, order_id: int):
    _validate_order_type(order_type)
    model = _ORDER_MODELS[order_type]
    order = db.session.get(model, order_id)
    if not order:
        raise OrderNotFound(f"{order_type.capitalize()} order {order_id} not found")
    return order


# =============================================================================
# GENERATION
# =============================================================================

def generate_invoice_inner(order_type: str, order, *, notes: str | None = None) -> Invoice:
    """
    Create the invoice for an already-loaded order, without committing.

    Raises:
        DuplicateInvoice: an invoice for this order already exists
    """
    _validate_order_type(order_type)

    existing = get_invoice_by_order(order_type, order.id)
    if existing is not None:
        raise DuplicateInvoice(
            f"Invoice {existing.invoice_number} already exists for this order",
            invoice_id=existing.id,
        )

    party = order.supplier if order_type == ORDER_TYPE_PURCHASE else order.customer
    payment_terms = (party.payment_terms if party else None) or "Net 30"

    subtotal = sum(line.line_total_cents for line in order.lines)
    tax = compute_tax_cents(subtotal, current_app.config.get("TAX_RATE_BPS", 0))
    now = utcnow()

    invoice = Invoice(
        invoice_number=next_document_number(_DOCUMENT_TYPES[order_type]),
        source_order_type=order_type,
        source_order_id=order.id,
        subtotal_cents=subtotal,
        tax_cents=tax,
        total_cents=subtotal + tax,
        status=InvoiceStatus.UNPAID.value,
        payment_terms=payment_terms,
        invoice_date=now,
        due_date=now + timedelta(days=due_days_for_terms(payment_terms)),
        notes=notes,
    )
    db.session.add(invoice)
    db.session.flush()
    return invoice


def generate_invoice(order_type: str, order_id: int, *, notes: str | None = None) -> Invoice:
    """
    Generate the invoice for an order on request.

    Raises:
        OrderNotFound, DuplicateInvoice
        InvalidTransition: the order is not in an invoiceable status
    """
    def _op() -> Invoice:
        order = _load_order(order_type, order_id)
        if order.status not in _INVOICEABLE_STATUSES[order_type]:
            raise InvalidTransition(
                f"Cannot invoice a {order_type} order in status '{order.status}'",
                status=order.status,
            )
        invoice = generate_invoice_inner(order_type, order, notes=notes)
        db.session.commit()
        return invoice

    return run_with_retry(_op)


# =============================================================================
# SETTLEMENT
# =============================================================================

def pay_invoice(
    invoice_id: int,
    bank_account_id: int,
    *,
    notes: str | None = None,
    created_by: str | None = None,
):
    """
    Pay an invoice from/into a bank account.

    Sales invoices credit the account (money in); purchase invoices debit it
    (money out).

    Args:
        invoice_id: Invoice being settled
        bank_account_id: Account the money moves through
        notes: Free text copied onto the ledger transaction
        created_by: Actor id for the audit trail

    Returns:
        (invoice, transaction, account)

    Raises:
        InvoiceNotFound: invoice does not exist
        AlreadyPaid: invoice is already paid (including by a concurrent request)
        AccountNotFound: bank account does not exist
        InsufficientFunds: a purchase payment would overdraw the account
    """
    def _op():
        invoice = lock_for_update(db.session.query(Invoice).filter(Invoice.id == invoice_id)).first()
        if not invoice:
            raise InvoiceNotFound(f"Invoice {invoice_id} not found")
        if invoice.status == InvoiceStatus.PAID.value:
            raise AlreadyPaid(f"Invoice {invoice.invoice_number} is already paid", invoice_id=invoice.id)

        account = get_account_for_update(bank_account_id)

        tx = post_transaction_inner(
            account_id=account.id,
            direction=invoice.payment_direction,
            amount_cents=invoice.total_cents,
            source_type="invoice",
            source_id=invoice.id,
            notes=notes or f"Payment for invoice {invoice.invoice_number}",
            created_by=created_by,
        )

        invoice.status = InvoiceStatus.PAID.value
        invoice.paid_at = utcnow()
        invoice.bank_account_id = account.id
        invoice.transaction_id = tx.id

        db.session.commit()
        current_app.logger.info(
            "Invoice %s paid via account %s (%s %d)",
            invoice.invoice_number, account.id, tx.direction, tx.amount_cents,
        )
        return invoice, tx, account

    return run_with_retry(_op)


# =============================================================================
# QUERIES
# =============================================================================

def get_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        raise InvoiceNotFound(f"Invoice {invoice_id} not found")
    return invoice


def get_invoice_by_order(order_type: str, order_id: int) -> Invoice | None:
    return (
        db.session.query(Invoice)
        .filter(Invoice.source_order_type == order_type, Invoice.source_order_id == order_id)
        .first()
    )


def list_invoices(*, order_type: str | None = None, status: str | None = None) -> list[Invoice]:
    query = db.session.query(Invoice)
    if order_type:
        _validate_order_type(order_type)
        query = query.filter(Invoice.source_order_type == order_type)
    if status:
        if status not in {s.value for s in InvoiceStatus}:
            raise ValidationFailed("status must be 'paid' or 'unpaid'")
        query = query.filter(Invoice.status == status)
    return query.order_by(Invoice.invoice_date.desc(), Invoice.id.desc()).all()
