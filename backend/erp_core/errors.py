# Overview: Domain error taxonomy shared by services and routes.

"""
Domain errors.

Every error raised by a service for a business-rule reason is a DomainError
carrying a stable machine code, an HTTP status for the REST layer, and a
message that is safe to show to the caller (no SQL, no stack details).

Routes translate DomainError into {"error": message, "code": code}.
Anything that is NOT a DomainError is an unexpected failure (500).
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for caller-visible business errors."""

    code = "DOMAIN_ERROR"
    http_status = 400

    def __init__(self, message: str | None = None, **details):
        self.message = message or self.__class__.__doc__ or self.code
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


# -- Workflow --

class InvalidTransition(DomainError):
    """Transition is not allowed from the current state."""
    code = "INVALID_TRANSITION"
    http_status = 409


class InsufficientStock(DomainError):
    """Not enough stock on hand for the requested quantity."""
    code = "INSUFFICIENT_STOCK"
    http_status = 409


class NegativeStock(DomainError):
    """Stock adjustment would make on-hand quantity negative."""
    code = "NEGATIVE_STOCK"
    http_status = 409


# -- Invoicing --

class DuplicateInvoice(DomainError):
    """An invoice already exists for this order."""
    code = "DUPLICATE_INVOICE"
    http_status = 409


class AlreadyPaid(DomainError):
    """Invoice is already paid."""
    code = "ALREADY_PAID"
    http_status = 409


class InvoiceNotFound(DomainError):
    """Invoice not found."""
    code = "INVOICE_NOT_FOUND"
    http_status = 404


# -- Ledger --

class AccountNotFound(DomainError):
    """Bank account not found."""
    code = "ACCOUNT_NOT_FOUND"
    http_status = 404


class AccountInUse(DomainError):
    """Bank account has ledger transactions and cannot be deleted."""
    code = "ACCOUNT_IN_USE"
    http_status = 409


class InsufficientFunds(DomainError):
    """Insufficient balance in bank account."""
    code = "INSUFFICIENT_FUNDS"
    http_status = 409


# -- Infrastructure / lookups --

class ConcurrencyConflict(DomainError):
    """The record was modified concurrently; please retry."""
    code = "CONCURRENCY_CONFLICT"
    http_status = 409


class ValidationFailed(DomainError):
    """Invalid input."""
    code = "VALIDATION_ERROR"
    http_status = 400


class OrderNotFound(DomainError):
    """Order not found."""
    code = "ORDER_NOT_FOUND"
    http_status = 404


class ProductNotFound(DomainError):
    """Product not found."""
    code = "PRODUCT_NOT_FOUND"
    http_status = 404


class PartyNotFound(DomainError):
    """Supplier or customer not found."""
    code = "PARTY_NOT_FOUND"
    http_status = 404


class ProductInUse(DomainError):
    """Product is referenced by orders or production and cannot be deleted."""
    code = "PRODUCT_IN_USE"
    http_status = 409
