"""
Pytest fixtures for erp-core backend tests.

Provides an in-memory application, per-test table wipe, record factories
and caller-identity headers.
"""

import pytest

from erp_core import create_app
from erp_core.extensions import db
from erp_core.services import inventory_service, ledger_service, purchasing_service, sales_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CONCURRENCY_RETRY_BACKOFF': 0,
        'TAX_RATE_BPS': 0,
        'SALES_INVOICE_EVENT': 'confirm',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Fresh tables for each test."""
    # Clear all data but keep schema
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture
def make_supplier():
    def _make(name="Acme Metals", payment_terms="Net 30"):
        return purchasing_service.create_supplier({"name": name, "payment_terms": payment_terms})
    return _make


@pytest.fixture
def make_customer():
    def _make(name="Nile Retail", payment_terms="Net 30"):
        return sales_service.create_customer({"name": name, "payment_terms": payment_terms})
    return _make


@pytest.fixture
def make_product():
    counter = {"n": 0}

    def _make(
        sku=None,
        name=None,
        stock=0,
        min_stock=0,
        unit_cost=100,
        selling_price=None,
        supplier_id=None,
        category="raw-material",
    ):
        counter["n"] += 1
        sku = sku or f"SKU-{counter['n']:03d}"
        payload = {
            "sku": sku,
            "name": name or f"Product {sku}",
            "category": category,
            "current_stock": stock,
            "min_stock_level": min_stock,
            "unit_cost_cents": unit_cost,
        }
        if selling_price is not None:
            payload["selling_price_cents"] = selling_price
        if supplier_id is not None:
            payload["supplier_id"] = supplier_id
        return inventory_service.create_product(payload, created_by="tester")
    return _make


@pytest.fixture
def make_account():
    def _make(name="Main Account", balance=0):
        return ledger_service.open_account(name=name, opening_balance_cents=balance, created_by="tester")
    return _make


# =============================================================================
# Caller identity
# =============================================================================

@pytest.fixture
def actor_headers():
    """Build gateway identity headers: actor_headers("manager", "Finance")."""
    def _headers(role="admin", department=None, actor_id="user-1"):
        headers = {"X-Actor-Id": actor_id, "X-Actor-Role": role}
        if department:
            headers["X-Actor-Department"] = department
        return headers
    return _headers


@pytest.fixture
def admin_headers(actor_headers):
    return actor_headers("admin")
