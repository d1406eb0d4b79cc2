# Overview: Request identity and capability decorators for API routes.

from dataclasses import dataclass
from functools import wraps

from flask import current_app, g, jsonify, request

from .permissions import ROLES, has_capability


@dataclass(frozen=True)
class Actor:
    """Already-authenticated caller, as passed through by the gateway."""
    id: str
    role: str
    department: str | None


def _has_actor() -> bool:
    return hasattr(g, "actor")


def require_actor(f):
    """
    Require caller identity and expose it as g.actor.

    Identity arrives in headers set by the upstream gateway:
    - X-Actor-Id
    - X-Actor-Role: admin | manager | employee
    - X-Actor-Department (optional for admin)

    Returns 401 if the id or role is missing or the role is unknown.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor_id = (request.headers.get("X-Actor-Id") or "").strip()
        role = (request.headers.get("X-Actor-Role") or "").strip().lower()
        department = (request.headers.get("X-Actor-Department") or "").strip() or None

        if not actor_id or role not in ROLES:
            return jsonify({"error": "Authentication required", "code": "UNAUTHENTICATED"}), 401

        g.actor = Actor(id=actor_id, role=role, department=department)
        return f(*args, **kwargs)

    return decorated_function


def require_capability(capability_code: str):
    """
    Require a capability. Must be applied after @require_actor.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _has_actor():
                return jsonify({"error": "Authentication required", "code": "UNAUTHENTICATED"}), 401

            actor = g.actor
            if not has_capability(actor.role, actor.department, capability_code):
                current_app.logger.warning(
                    "Capability denied: actor=%s role=%s department=%s capability=%s path=%s",
                    actor.id, actor.role, actor.department, capability_code, request.path,
                )
                return jsonify({
                    "error": "Permission denied",
                    "code": "FORBIDDEN",
                    "required_capability": capability_code,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
