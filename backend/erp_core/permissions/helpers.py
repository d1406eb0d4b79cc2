# Overview: Capability lookups and the role/department check.

from .definitions import CAPABILITY_DEFINITIONS
from .roles import CAPABILITY_GRANTS


def get_all_capability_codes():
    """Get list of all capability codes."""
    return [cap[0] for cap in CAPABILITY_DEFINITIONS]


def get_capability_definition(code):
    """Get full definition for a capability code."""
    for cap in CAPABILITY_DEFINITIONS:
        if cap[0] == code:
            return {
                "code": cap[0],
                "name": cap[1],
                "description": cap[2],
                "department": cap[3],
            }
    return None


def validate_capability_code(code):
    """Check if a capability code is valid."""
    return code in get_all_capability_codes()


def has_capability(role: str | None, department: str | None, code: str) -> bool:
    """
    True if an actor with this role and department holds the capability.

    Unknown capability codes are never granted, not even to admin, so a typo
    in a route fails closed.
    """
    if code not in CAPABILITY_GRANTS:
        return False
    if role == "admin":
        return True
    for grant_role, grant_department in CAPABILITY_GRANTS[code]:
        if grant_role != "*" and grant_role != role:
            continue
        if grant_department is not None and grant_department != department:
            continue
        return True
    return False


def capabilities_for(role: str | None, department: str | None) -> list[str]:
    return [code for code in get_all_capability_codes() if has_capability(role, department, code)]
