# Overview: Shared response and query-string helpers for the API blueprints.

from flask import g, jsonify, request

from ..errors import DomainError, ValidationFailed
from ..validation import coerce_datetime, coerce_int


def error_response(exc: DomainError):
    return jsonify(exc.to_dict()), exc.http_status


def internal_error():
    return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR"}), 500


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationFailed("Invalid JSON payload")
    return payload


def int_arg(name: str, default: int | None = None) -> int | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    return coerce_int(raw, name)


def datetime_arg(name: str):
    raw = request.args.get(name)
    if not raw:
        return None
    return coerce_datetime(raw, name)


def bool_arg(name: str, default: bool | None = None) -> bool | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def actor_id() -> str | None:
    actor = getattr(g, "actor", None)
    return actor.id if actor else None
