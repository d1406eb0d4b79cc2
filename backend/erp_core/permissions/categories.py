# Overview: Department constants for grouping capabilities and scoping grants.


class Department:
    """Departments an actor can belong to (X-Actor-Department)."""
    PURCHASING = "Purchasing"
    SALES = "Sales"
    INVENTORY = "Inventory"
    MANUFACTURING = "Manufacturing"
    FINANCE = "Finance"
    HR = "HR"
    CRM = "CRM"
    SCM = "SCM"


ROLES = ("admin", "manager", "employee")
