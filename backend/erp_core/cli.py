# Overview: Flask CLI command groups for bootstrap, ledger checks, and inventory maintenance.

# backend/erp_core/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` for migrations).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed
#   Idempotent demo data: one bank account, suppliers, customers, products.
#
# Ledger checks:
# - python -m flask ledger accounts
#   List bank accounts with balances.
# - python -m flask ledger reconcile [--account-id 1]
#   Compare cached balances with the transaction log; exits 1 on any difference.
#
# Inventory maintenance:
# - python -m flask inventory low-stock
#   List active products below their minimum stock level.
# - python -m flask inventory auto-reorder
#   Raise auto-generated purchase orders for every low-stock product.
#
# Capability inspection:
# - python -m flask perms list [--department Purchasing]
# - python -m flask perms check manager Finance finance.payments

import sys

import click
from flask.cli import with_appcontext

from .errors import DomainError
from .extensions import db
from .models import BankAccount, Customer, Product, Supplier
from .permissions import CAPABILITY_DEFINITIONS, ROLES, capabilities_for, has_capability
from .services import inventory_service, ledger_service, purchasing_service, reorder_service, sales_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables from the model metadata."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate every table."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        sys.exit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@system_group.command('seed')
@with_appcontext
def seed():
    """
    Seed demo data. Safe to run more than once: rows that already exist
    (matched by name or SKU) are left alone.
    """
    click.echo("START Seeding demo data...")

    if not db.session.query(BankAccount).filter_by(name="Main Account").first():
        ledger_service.open_account(name="Main Account", opening_balance_cents=1_000_000, created_by="seed")
        click.echo("PASS Created bank account: Main Account")

    suppliers = {}
    for name, terms in (("Acme Metals", "Net 30"), ("Delta Plastics", "Net 15")):
        supplier = db.session.query(Supplier).filter_by(name=name).first()
        if not supplier:
            supplier = purchasing_service.create_supplier({"name": name, "payment_terms": terms})
            click.echo(f"PASS Created supplier: {name}")
        suppliers[name] = supplier

    for name in ("Nile Retail", "Cairo Builders"):
        if not db.session.query(Customer).filter_by(name=name).first():
            sales_service.create_customer({"name": name})
            click.echo(f"PASS Created customer: {name}")

    products = [
        {
            "sku": "RM-STEEL", "name": "Steel Sheet", "category": "raw-material",
            "current_stock": 200, "min_stock_level": 50, "unit_cost_cents": 1500,
            "supplier_id": suppliers["Acme Metals"].id,
        },
        {
            "sku": "CP-GRIP", "name": "Plastic Grip", "category": "component",
            "current_stock": 500, "min_stock_level": 100, "unit_cost_cents": 200,
            "supplier_id": suppliers["Delta Plastics"].id,
        },
        {
            "sku": "FG-TOOLBOX", "name": "Toolbox", "category": "finished-good",
            "current_stock": 20, "min_stock_level": 5, "unit_cost_cents": 4000,
            "selling_price_cents": 7500,
        },
    ]
    for payload in products:
        if not db.session.query(Product).filter_by(sku=payload["sku"]).first():
            inventory_service.create_product(payload, created_by="seed")
            click.echo(f"PASS Created product: {payload['sku']}")

    click.echo("DONE Seed complete")


# =============================================================================
# LEDGER COMMANDS
# =============================================================================

@click.group('ledger')
def ledger_group():
    """Bank account and transaction log checks."""


@ledger_group.command('accounts')
@with_appcontext
def list_accounts():
    """List bank accounts."""
    accounts = ledger_service.get_bank_accounts()
    if not accounts:
        click.echo("No bank accounts found.")
        return

    click.echo(f"{'ID':<5} {'Name':<30} {'Balance (cents)':>16}")
    for account in accounts:
        click.echo(f"{account.id:<5} {account.name:<30} {account.balance_cents:>16}")


@ledger_group.command('reconcile')
@click.option('--account-id', type=int, help='Reconcile a single account')
@with_appcontext
def reconcile(account_id):
    """Check that every cached balance equals the signed sum of its transactions."""
    try:
        results = (
            [ledger_service.reconcile_account(account_id)]
            if account_id
            else ledger_service.reconcile_all()
        )
    except DomainError as e:
        click.echo(f"FAIL {e.message}")
        sys.exit(1)

    drift = False
    for r in results:
        if r["consistent"]:
            click.echo(f"PASS {r['name']}: {r['balance_cents']} ({r['transaction_count']} transactions)")
        else:
            drift = True
            click.echo(
                f"FAIL {r['name']}: cached {r['balance_cents']} != "
                f"computed {r['computed_balance_cents']} (difference {r['difference_cents']})"
            )
    if drift:
        sys.exit(1)


# =============================================================================
# INVENTORY COMMANDS
# =============================================================================

@click.group('inventory')
def inventory_group():
    """Stock inspection and reorder commands."""


@inventory_group.command('low-stock')
@with_appcontext
def low_stock():
    """List products below their minimum stock level."""
    products = inventory_service.low_stock_products()
    if not products:
        click.echo("No low-stock products.")
        return
    for p in products:
        click.echo(f"{p.sku:<16} {p.name:<30} stock={p.current_stock} min={p.min_stock_level}")


@inventory_group.command('auto-reorder')
@click.option('--actor', default='cli', help='Recorded as created_by on generated orders')
@with_appcontext
def auto_reorder(actor):
    """Generate purchase orders for low-stock products that have none open."""
    created = reorder_service.run_auto_reorder(created_by=actor)
    if not created:
        click.echo("No purchase orders generated.")
        return
    for order in created:
        click.echo(f"PASS {order.order_number} supplier={order.supplier_id} total={order.total_cents}")


# =============================================================================
# CAPABILITY COMMANDS
# =============================================================================

@click.group('perms')
def perms_group():
    """Capability inspection commands."""


@perms_group.command('list')
@click.option('--department', help='Filter by department')
def list_perms(department):
    """List capability definitions."""
    for code, name, description, dept in CAPABILITY_DEFINITIONS:
        if department and dept.lower() != department.lower():
            continue
        click.echo(f"{code:<32} {dept:<14} {name}")


@perms_group.command('check')
@click.argument('role', type=click.Choice(list(ROLES)))
@click.argument('department', required=False)
@click.argument('capability', required=False)
def check_perm(role, department, capability):
    """Check a capability for ROLE in DEPARTMENT, or list what they hold."""
    if capability is None:
        for code in capabilities_for(role, department):
            click.echo(code)
        return
    allowed = has_capability(role, department, capability)
    click.echo(f"{'PASS' if allowed else 'FAIL'} {role}/{department or '-'} {capability}")
    if not allowed:
        sys.exit(1)


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(perms_group)
