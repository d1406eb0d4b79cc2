# Overview: Which roles hold which capabilities.

"""
Grant table.

admin holds every capability. Other roles are granted per capability as
(role, department) pairs; department None means "any department".
ANY_ACTOR marks read capabilities open to every identified caller.
"""

from .categories import Department

ANY_ACTOR = ("*", None)

CAPABILITY_GRANTS: dict[str, tuple[tuple[str, str | None], ...]] = {
    # Purchasing: employees raise and receive, managers edit and place
    "purchasing.orders.view": (ANY_ACTOR,),
    "purchasing.orders.create": (("employee", Department.PURCHASING),),
    "purchasing.orders.edit": (("manager", Department.PURCHASING),),
    "purchasing.orders.place": (("manager", Department.PURCHASING),),
    "purchasing.orders.receive": (("employee", Department.PURCHASING),),
    "purchasing.auto_generate": (("manager", None),),
    "purchasing.suppliers.manage": (("manager", None),),

    "sales.orders.view": (ANY_ACTOR,),
    "sales.orders.manage": (("manager", None),),
    "sales.orders.transition": (("manager", None),),
    "sales.customers.manage": (("manager", None), ("employee", Department.SALES)),

    "inventory.view": (ANY_ACTOR,),
    "inventory.products.manage": (("manager", None),),
    "inventory.adjust": (("manager", None),),

    "manufacturing.orders.view": (ANY_ACTOR,),
    "manufacturing.orders.manage": (("manager", None),),

    "finance.view": (ANY_ACTOR,),
    "finance.reports.view": (("manager", None),),
    "finance.invoices.manage": (("manager", Department.FINANCE),),
    "finance.payments": (("manager", Department.FINANCE),),
    "finance.accounts.manage": (),
}
