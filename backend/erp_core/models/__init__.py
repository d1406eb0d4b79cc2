from .parties import Supplier, Customer
from .inventory import Product, StockMovement, PRODUCT_CATEGORIES
from .orders import PurchaseOrder, PurchaseOrderLine, SalesOrder, SalesOrderLine
from .finance import BankAccount, LedgerTransaction, Expense, Invoice
from .manufacturing import ProductionOrder, ProductionMaterial
from .documents import DocumentSequence

__all__ = [
    'Supplier', 'Customer',
    'Product', 'StockMovement', 'PRODUCT_CATEGORIES',
    'PurchaseOrder', 'PurchaseOrderLine', 'SalesOrder', 'SalesOrderLine',
    'BankAccount', 'LedgerTransaction', 'Expense', 'Invoice',
    'ProductionOrder', 'ProductionMaterial',
    'DocumentSequence',
]
