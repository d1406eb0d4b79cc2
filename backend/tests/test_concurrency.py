# Overview: Thread-based concurrency tests against a file-backed SQLite database.

"""
Concurrency tests for the settlement and receiving paths.

Each worker thread pushes its own app context and therefore gets its own
database session, the way two concurrent requests would.
"""
import os
import tempfile
import threading
import unittest

from erp_core import create_app
from erp_core.errors import AlreadyPaid, ConcurrencyConflict, InsufficientStock, InvalidTransition
from erp_core.extensions import db
from erp_core.models import Invoice, LedgerTransaction, PurchaseOrder, PurchaseOrderLine, StockMovement
from erp_core.services import (
    inventory_service,
    invoice_service,
    ledger_service,
    purchasing_service,
    reorder_service,
    sales_service,
)


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "CONCURRENCY_RETRY_ATTEMPTS": 8,
            "CONCURRENCY_RETRY_BACKOFF": 0.01,
            "SALES_INVOICE_EVENT": "confirm",
            "TAX_RATE_BPS": 0,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            supplier = purchasing_service.create_supplier({"name": "Acme Metals", "payment_terms": "Net 30"})
            customer = sales_service.create_customer({"name": "Nile Retail", "payment_terms": "Net 15"})
            product = inventory_service.create_product({
                "sku": "CONCUR-1",
                "name": "Concurrent Product",
                "category": "finished-good",
                "current_stock": 10,
                "unit_cost_cents": 400,
                "selling_price_cents": 1000,
                "supplier_id": supplier.id,
            })
            account = ledger_service.open_account(name="Main Account", opening_balance_cents=5_000)

            self.supplier_id = supplier.id
            self.customer_id = customer.id
            self.product_id = product.id
            self.account_id = account.id

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _run_threads(self, target, count, *args):
        results = []
        lock = threading.Lock()

        def worker():
            with self.app.app_context():
                try:
                    outcome = target(*args)
                    with lock:
                        results.append(("ok", outcome))
                except Exception as exc:
                    with lock:
                        results.append(("error", exc))
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker) for _ in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results

    def _confirmed_sale_invoice_id(self, quantity=2):
        with self.app.app_context():
            order = sales_service.create_sales_order(
                customer_id=self.customer_id,
                lines=[{"product_id": self.product_id, "quantity": quantity}],
            )
            result = sales_service.confirm_sales_order(order.id)
            return result.invoice.id

    def test_double_payment_settles_once(self):
        invoice_id = self._confirmed_sale_invoice_id()

        def pay():
            invoice, tx, account = invoice_service.pay_invoice(invoice_id, self.account_id)
            return tx.id

        results = self._run_threads(pay, 5)

        successes = [r for kind, r in results if kind == "ok"]
        failures = [r for kind, r in results if kind == "error"]
        self.assertEqual(len(successes), 1)
        for exc in failures:
            self.assertIsInstance(exc, (AlreadyPaid, ConcurrencyConflict))

        with self.app.app_context():
            payments = (
                db.session.query(LedgerTransaction)
                .filter_by(source_type="invoice", source_id=invoice_id)
                .count()
            )
            self.assertEqual(payments, 1)
            self.assertEqual(db.session.get(Invoice, invoice_id).status, "paid")

            report = ledger_service.reconcile_account(self.account_id)
            self.assertTrue(report["consistent"])
            self.assertEqual(report["balance_cents"], 5_000 + 2_000)

    def test_concurrent_receive_applies_once(self):
        with self.app.app_context():
            order = purchasing_service.create_purchase_order(
                supplier_id=self.supplier_id,
                lines=[{"product_id": self.product_id, "quantity": 7}],
            )
            purchasing_service.order_purchase_order(order.id)
            order_id = order.id

        results = self._run_threads(purchasing_service.receive_purchase_order, 3, order_id)

        successes = [r for kind, r in results if kind == "ok"]
        failures = [r for kind, r in results if kind == "error"]
        self.assertEqual(len(successes), 1)
        for exc in failures:
            self.assertIsInstance(exc, (InvalidTransition, ConcurrencyConflict))

        with self.app.app_context():
            self.assertEqual(inventory_service.get_product(self.product_id).current_stock, 17)
            invoices = (
                db.session.query(Invoice)
                .filter_by(source_order_type="purchase", source_order_id=order_id)
                .count()
            )
            self.assertEqual(invoices, 1)

    def test_concurrent_confirms_never_oversell(self):
        with self.app.app_context():
            bolt = inventory_service.create_product({
                "sku": "BOLT-1",
                "name": "Bolt",
                "category": "component",
                "current_stock": 10,
                "min_stock_level": 5,
                "unit_cost_cents": 20,
                "selling_price_cents": 50,
                "supplier_id": self.supplier_id,
            })
            bolt_id = bolt.id
            pending = [
                sales_service.create_sales_order(
                    customer_id=self.customer_id,
                    lines=[{"product_id": bolt_id, "quantity": 6}],
                ).id
                for _ in range(4)
            ]

        lock = threading.Lock()

        def confirm_next():
            with lock:
                order_id = pending.pop()
            return sales_service.confirm_sales_order(order_id).order.id

        results = self._run_threads(confirm_next, 4)

        successes = [r for kind, r in results if kind == "ok"]
        failures = [r for kind, r in results if kind == "error"]
        self.assertEqual(len(successes), 1)
        for exc in failures:
            self.assertIsInstance(exc, (InsufficientStock, ConcurrencyConflict))

        with self.app.app_context():
            self.assertEqual(inventory_service.get_product(bolt_id).current_stock, 4)
            sale_movements = (
                db.session.query(StockMovement)
                .filter_by(product_id=bolt_id, reference="sale")
                .count()
            )
            self.assertEqual(sale_movements, 1)
            auto_orders = (
                db.session.query(PurchaseOrder)
                .join(PurchaseOrderLine, PurchaseOrderLine.purchase_order_id == PurchaseOrder.id)
                .filter(PurchaseOrder.auto_generated.is_(True), PurchaseOrderLine.product_id == bolt_id)
                .count()
            )
            self.assertEqual(auto_orders, 1)

    def test_concurrent_reorder_sweeps_create_one_order(self):
        with self.app.app_context():
            nut = inventory_service.create_product({
                "sku": "NUT-1",
                "name": "Nut",
                "category": "component",
                "current_stock": 1,
                "min_stock_level": 5,
                "unit_cost_cents": 5,
                "supplier_id": self.supplier_id,
            })
            nut_id = nut.id

        results = self._run_threads(reorder_service.run_auto_reorder, 4)

        errors = [r for kind, r in results if kind == "error"]
        for exc in errors:
            self.assertIsInstance(exc, ConcurrencyConflict)
        created = [po for kind, r in results if kind == "ok" for po in r]
        self.assertEqual(len(created), 1)

        with self.app.app_context():
            self.assertEqual(len(reorder_service.run_auto_reorder()), 0)
            self.assertIsNotNone(reorder_service.find_open_auto_order(nut_id))

    def test_document_sequence_concurrency(self):
        with self.app.app_context():
            first = sales_service.create_sales_order(
                customer_id=self.customer_id,
                lines=[{"product_id": self.product_id, "quantity": 1}],
            )
            numbers = [first.order_number]

        def create():
            order = sales_service.create_sales_order(
                customer_id=self.customer_id,
                lines=[{"product_id": self.product_id, "quantity": 1}],
            )
            return order.order_number

        results = self._run_threads(create, 8)

        errors = [r for kind, r in results if kind == "error"]
        self.assertFalse(errors)
        numbers.extend(r for kind, r in results if kind == "ok")
        self.assertEqual(len(numbers), len(set(numbers)))
        self.assertEqual(len(numbers), 9)


if __name__ == "__main__":
    unittest.main()
