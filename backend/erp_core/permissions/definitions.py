# Overview: All capability definitions organized by department.
# Each capability is defined as: (code, name, description, department)

from .categories import Department


# -- PURCHASING --

PURCHASING_CAPABILITIES = [
    ("purchasing.orders.view", "View Purchase Orders", "List and read purchase orders", Department.PURCHASING),
    ("purchasing.orders.create", "Create Purchase Orders", "Create pending purchase orders", Department.PURCHASING),
    ("purchasing.orders.edit", "Edit Purchase Orders", "Edit, delete or cancel pending purchase orders", Department.PURCHASING),
    ("purchasing.orders.place", "Place Purchase Orders", "Move a purchase order from pending to ordered", Department.PURCHASING),
    ("purchasing.orders.receive", "Receive Purchase Orders", "Receive goods against an ordered purchase order", Department.PURCHASING),
    ("purchasing.auto_generate", "Auto-generate Purchase Orders", "Run the low-stock reorder sweep", Department.PURCHASING),
    ("purchasing.suppliers.manage", "Manage Suppliers", "Create and edit supplier records", Department.PURCHASING),
]

# -- SALES --

SALES_CAPABILITIES = [
    ("sales.orders.view", "View Sales Orders", "List and read sales orders", Department.SALES),
    ("sales.orders.manage", "Manage Sales Orders", "Create, edit and delete pending sales orders", Department.SALES),
    ("sales.orders.transition", "Advance Sales Orders", "Confirm, ship, deliver or cancel sales orders", Department.SALES),
    ("sales.customers.manage", "Manage Customers", "Create customer records", Department.SALES),
]

# -- INVENTORY --

INVENTORY_CAPABILITIES = [
    ("inventory.view", "View Inventory", "Products, stock levels and movements", Department.INVENTORY),
    ("inventory.products.manage", "Manage Products", "Create, edit and delete products", Department.INVENTORY),
    ("inventory.adjust", "Adjust Stock", "Manual stock adjustments", Department.INVENTORY),
]

# -- MANUFACTURING --

MANUFACTURING_CAPABILITIES = [
    ("manufacturing.orders.view", "View Production Orders", "List production orders", Department.MANUFACTURING),
    ("manufacturing.orders.manage", "Manage Production Orders", "Create, start, complete and cancel production orders", Department.MANUFACTURING),
]

# -- FINANCE --

FINANCE_CAPABILITIES = [
    ("finance.view", "View Finance", "Invoices, transactions and expenses", Department.FINANCE),
    ("finance.reports.view", "View Finance Reports", "Dashboard, month comparison, cash flow", Department.FINANCE),
    ("finance.invoices.manage", "Manage Invoices", "Generate invoices on request", Department.FINANCE),
    ("finance.payments", "Record Payments", "Pay invoices and record expenses", Department.FINANCE),
    ("finance.accounts.manage", "Manage Bank Accounts", "Open, rename and delete bank accounts", Department.FINANCE),
]


CAPABILITY_DEFINITIONS = (
    PURCHASING_CAPABILITIES
    + SALES_CAPABILITIES
    + INVENTORY_CAPABILITIES
    + MANUFACTURING_CAPABILITIES
    + FINANCE_CAPABILITIES
)
