# backend/erp_core/routes/finance.py
"""
Finance routes: bank accounts, transaction log, expenses, invoices, payments
and dashboards.

SECURITY: All routes require caller identity.
- Bank account maintenance is admin-only
- Paying invoices, recording expenses and generating invoices require a
  Finance manager
- Dashboards require a manager
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_actor, require_capability
from ..errors import DomainError, ValidationFailed
from ..services import expense_service, invoice_service, ledger_service, reporting_service
from ..validation import coerce_datetime, coerce_int, require_amount_cents
from . import actor_id, datetime_arg, error_response, int_arg, internal_error, json_body


finance_bp = Blueprint("finance", __name__, url_prefix="/api/finance")


# =============================================================================
# Bank accounts
# =============================================================================

@finance_bp.get("/bank-accounts")
@require_actor
@require_capability("finance.view")
def list_bank_accounts_route():
    try:
        accounts = ledger_service.get_bank_accounts()
        return jsonify({
            "bank_accounts": [a.to_dict() for a in accounts],
            "total_balance_cents": sum(a.balance_cents for a in accounts),
            "currency": current_app.config.get("BASE_CURRENCY"),
        })
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list bank accounts")
        return internal_error()


@finance_bp.post("/bank-accounts")
@require_actor
@require_capability("finance.accounts.manage")
def create_bank_account_route():
    """Open an account. opening_balance_cents is posted as an adjustment credit."""
    try:
        payload = json_body()
        opening = payload.get("opening_balance_cents")
        account = ledger_service.open_account(
            name=str(payload.get("name") or ""),
            opening_balance_cents=(
                0 if opening is None
                else require_amount_cents(opening, "opening_balance_cents", allow_zero=True)
            ),
            created_by=actor_id(),
        )
        return jsonify({"bank_account": account.to_dict()}), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create bank account")
        return internal_error()


@finance_bp.put("/bank-accounts/<int:account_id>")
@require_actor
@require_capability("finance.accounts.manage")
def update_bank_account_route(account_id: int):
    """Rename only. Balances move exclusively through transactions."""
    try:
        payload = json_body()
        if "balance_cents" in payload:
            raise ValidationFailed("balance_cents cannot be set directly")
        account = ledger_service.rename_account(account_id, name=str(payload.get("name") or ""))
        return jsonify({"bank_account": account.to_dict()})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update bank account")
        return internal_error()


@finance_bp.delete("/bank-accounts/<int:account_id>")
@require_actor
@require_capability("finance.accounts.manage")
def delete_bank_account_route(account_id: int):
    try:
        ledger_service.delete_account(account_id)
        return jsonify({"deleted": True, "id": account_id})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete bank account")
        return internal_error()


@finance_bp.get("/bank-accounts/<int:account_id>/reconcile")
@require_actor
@require_capability("finance.reports.view")
def reconcile_bank_account_route(account_id: int):
    try:
        return jsonify(ledger_service.reconcile_account(account_id))
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reconcile bank account")
        return internal_error()


@finance_bp.get("/reconcile")
@require_actor
@require_capability("finance.reports.view")
def reconcile_all_route():
    try:
        results = ledger_service.reconcile_all()
        return jsonify({"accounts": results, "consistent": all(r["consistent"] for r in results)})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reconcile bank accounts")
        return internal_error()


# =============================================================================
# Transaction log
# =============================================================================

@finance_bp.get("/transactions")
@require_actor
@require_capability("finance.view")
def list_transactions_route():
    try:
        rows, total = ledger_service.list_transactions(
            bank_account_id=int_arg("bank_account_id"),
            direction=request.args.get("direction") or None,
            source_type=request.args.get("source_type") or None,
            start=datetime_arg("start"),
            end=datetime_arg("end"),
            limit=int_arg("limit", 100),
            offset=int_arg("offset", 0),
        )
        return jsonify({"transactions": [tx.to_dict() for tx in rows], "total": total})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list transactions")
        return internal_error()


# =============================================================================
# Expenses
# =============================================================================

@finance_bp.get("/expenses")
@require_actor
@require_capability("finance.view")
def list_expenses_route():
    try:
        expenses = expense_service.list_expenses(
            category=request.args.get("category") or None,
            start=datetime_arg("start"),
            end=datetime_arg("end"),
        )
        return jsonify({
            "expenses": [e.to_dict() for e in expenses],
            "count": len(expenses),
            "total_cents": sum(e.amount_cents for e in expenses),
        })
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list expenses")
        return internal_error()


@finance_bp.post("/expenses")
@require_actor
@require_capability("finance.payments")
def create_expense_route():
    try:
        payload = json_body()
        for field in ("title", "amount_cents", "category", "bank_account_id"):
            if payload.get(field) is None:
                raise ValidationFailed(f"{field} is required")
        occurred_at = payload.get("date")
        expense = expense_service.record_expense(
            title=str(payload["title"]),
            amount_cents=require_amount_cents(payload["amount_cents"]),
            category=str(payload["category"]).strip().lower(),
            bank_account_id=coerce_int(payload["bank_account_id"], "bank_account_id"),
            occurred_at=coerce_datetime(occurred_at, "date") if occurred_at else None,
            notes=payload.get("notes"),
            created_by=actor_id(),
        )
        return jsonify({"expense": expense.to_dict()}), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record expense")
        return internal_error()


# =============================================================================
# Invoices and payments
# =============================================================================

@finance_bp.get("/invoices")
@require_actor
@require_capability("finance.view")
def list_invoices_route():
    try:
        invoices = invoice_service.list_invoices(
            order_type=request.args.get("type") or None,
            status=request.args.get("status") or None,
        )
        return jsonify({"invoices": [i.to_dict() for i in invoices], "count": len(invoices)})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list invoices")
        return internal_error()


@finance_bp.get("/invoices/<int:invoice_id>")
@require_actor
@require_capability("finance.view")
def get_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(invoice_id)
        return jsonify({"invoice": invoice.to_dict()})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get invoice")
        return internal_error()


@finance_bp.post("/invoices")
@require_actor
@require_capability("finance.invoices.manage")
def generate_invoice_route():
    """Body: {"order_type": "purchase"|"sales", "order_id": int}. 409 if one exists."""
    try:
        payload = json_body()
        if payload.get("order_type") is None or payload.get("order_id") is None:
            raise ValidationFailed("order_type and order_id are required")
        invoice = invoice_service.generate_invoice(
            str(payload["order_type"]),
            coerce_int(payload["order_id"], "order_id"),
            notes=payload.get("notes"),
        )
        return jsonify({"invoice": invoice.to_dict()}), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to generate invoice")
        return internal_error()


@finance_bp.post("/pay-invoice")
@require_actor
@require_capability("finance.payments")
def pay_invoice_route():
    """
    Pay an invoice.

    Body: {"invoice_id": int, "bank_account_id": int, "notes": str?}
    Returns the paid invoice, the ledger transaction and the new balance.
    """
    try:
        payload = json_body()
        if payload.get("invoice_id") is None or payload.get("bank_account_id") is None:
            raise ValidationFailed("invoice_id and bank_account_id are required")
        invoice, tx, account = invoice_service.pay_invoice(
            coerce_int(payload["invoice_id"], "invoice_id"),
            coerce_int(payload["bank_account_id"], "bank_account_id"),
            notes=payload.get("notes"),
            created_by=actor_id(),
        )
        return jsonify({
            "invoice": invoice.to_dict(),
            "transaction": tx.to_dict(),
            "bank_account": account.to_dict(),
            "new_balance_cents": account.balance_cents,
        })
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to pay invoice")
        return internal_error()


# =============================================================================
# Dashboards
# =============================================================================

@finance_bp.get("/dashboard")
@require_actor
@require_capability("finance.reports.view")
def dashboard_route():
    try:
        return jsonify(reporting_service.dashboard_summary())
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build finance dashboard")
        return internal_error()


@finance_bp.get("/month-comparison")
@require_actor
@require_capability("finance.reports.view")
def month_comparison_route():
    try:
        return jsonify(reporting_service.month_comparison())
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build month comparison")
        return internal_error()


@finance_bp.get("/expenses-breakdown")
@require_actor
@require_capability("finance.reports.view")
def expenses_breakdown_route():
    try:
        return jsonify(reporting_service.expenses_breakdown(request.args.get("period") or "month"))
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build expenses breakdown")
        return internal_error()


@finance_bp.get("/cash-flow")
@require_actor
@require_capability("finance.reports.view")
def cash_flow_route():
    try:
        months = int_arg("months", 6)
        return jsonify({"months": reporting_service.cash_flow(months)})
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build cash flow")
        return internal_error()
