# Overview: Capability (authorization) package.
# Re-exports all public APIs.

from .categories import Department, ROLES
from .definitions import (
    CAPABILITY_DEFINITIONS,
    PURCHASING_CAPABILITIES,
    SALES_CAPABILITIES,
    INVENTORY_CAPABILITIES,
    MANUFACTURING_CAPABILITIES,
    FINANCE_CAPABILITIES,
)
from .roles import CAPABILITY_GRANTS
from .helpers import (
    get_all_capability_codes,
    get_capability_definition,
    validate_capability_code,
    has_capability,
    capabilities_for,
)

__all__ = [
    "Department",
    "ROLES",
    "CAPABILITY_DEFINITIONS",
    "PURCHASING_CAPABILITIES",
    "SALES_CAPABILITIES",
    "INVENTORY_CAPABILITIES",
    "MANUFACTURING_CAPABILITIES",
    "FINANCE_CAPABILITIES",
    "CAPABILITY_GRANTS",
    "get_all_capability_codes",
    "get_capability_definition",
    "validate_capability_code",
    "has_capability",
    "capabilities_for",
]
