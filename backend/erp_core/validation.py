# Overview: Payload validation against model column metadata, plus amount and order-line checks.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Integer, String, Text

from .errors import ValidationFailed
from .time_utils import parse_iso_datetime


# 9,999,999.99 in the base currency
MAX_AMOUNT_CENTS = 999_999_999


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which columns a client may write for one model.

    writable_fields is the allowlist; anything else in a payload is
    rejected. required_on_create applies to full (non-partial) payloads.
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


def coerce_int(value: Any, field_name: str) -> int:
    """
    Strict integer coercion.

    Accepts ints and integer strings. Rejects bools, floats, "1.0" and "1e3".
    """
    if isinstance(value, bool):
        raise ValidationFailed(f"{field_name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationFailed(f"{field_name} must be an integer, not a decimal")
    if not isinstance(value, str) or not value.strip():
        raise ValidationFailed(f"{field_name} must be an integer")

    text = value.strip()
    if "." in text or "e" in text.lower():
        raise ValidationFailed(f"{field_name} must be a plain integer")
    try:
        return int(text)
    except ValueError:
        raise ValidationFailed(f"{field_name} must be an integer") from None


def coerce_datetime(value: Any, field_name: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationFailed(f"{field_name} must be a datetime")
    try:
        parsed = parse_iso_datetime(value)
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationFailed(f"{field_name} must be an ISO-8601 datetime")
    return parsed


def _normalize(column, raw: Any):
    """Coerce one raw JSON value to the column's Python type and check it fits."""
    if raw is None:
        if not column.nullable:
            raise ValidationFailed(f"{column.key} cannot be null")
        return None

    kind = column.type
    if isinstance(kind, Integer):
        return coerce_int(raw, column.key)
    if isinstance(kind, Boolean):
        return raw if isinstance(raw, bool) else bool(raw)
    if isinstance(kind, DateTime):
        return coerce_datetime(raw, column.key)
    if isinstance(kind, (String, Text)):
        text = str(raw).strip()
        if not text and not column.nullable:
            raise ValidationFailed(f"{column.key} cannot be blank")
        length = getattr(kind, "length", None)
        if length and len(text) > length:
            raise ValidationFailed(f"{column.key} exceeds max length {length}")
        return text
    return raw


def validate_payload(*, model, payload: dict, policy: ModelValidationPolicy, partial: bool) -> dict:
    """
    Clean a create/update payload for a model.

    Args:
        model: Flask-SQLAlchemy model class whose columns define types,
            nullability and string lengths
        payload: decoded JSON body
        policy: allowlist and required fields
        partial: True for updates, where required fields are not enforced

    Returns:
        A dict of column key -> normalized value, only for keys present.

    Raises:
        ValidationFailed: unknown or non-writable key, missing required
            field, or a value that does not fit its column
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationFailed("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationFailed(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    for key in payload:
        if key not in policy.writable_fields or key not in columns:
            raise ValidationFailed(f"Field not allowed: {key}")

    return {key: _normalize(columns[key], raw) for key, raw in payload.items()}


def require_amount_cents(value: Any, field: str = "amount_cents", *, allow_zero: bool = False) -> int:
    amount = coerce_int(value, field)
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationFailed(f"{field} must be {'>= 0' if allow_zero else '> 0'}")
    if amount > MAX_AMOUNT_CENTS:
        raise ValidationFailed(f"{field} cannot exceed {MAX_AMOUNT_CENTS}")
    return amount


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    """
    for key in ("unit_cost_cents", "selling_price_cents"):
        if patch.get(key) is not None:
            require_amount_cents(patch[key], key, allow_zero=True)
    for key in ("min_stock_level", "max_stock_level"):
        if patch.get(key) is not None and patch[key] < 0:
            raise ValidationFailed(f"{key} must be >= 0")
    if patch.get("current_stock") is not None and patch["current_stock"] < 0:
        raise ValidationFailed("current_stock must be >= 0")


def parse_order_lines(raw: Any, *, price_field: str = "unit_price_cents") -> list[dict]:
    """
    Normalize an order's line list.

    Accepts [{"product_id": 1, "quantity": 2, "unit_price_cents": 500}, ...].
    The price may be omitted (None) and filled in from the product by the caller.
    """
    if not isinstance(raw, list) or not raw:
        raise ValidationFailed("items must be a non-empty list")

    lines: list[dict] = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValidationFailed(f"items[{index}] must be an object")
        if "product_id" not in item or "quantity" not in item:
            raise ValidationFailed(f"items[{index}] requires product_id and quantity")
        quantity = coerce_int(item["quantity"], f"items[{index}].quantity")
        if quantity <= 0:
            raise ValidationFailed(f"items[{index}].quantity must be > 0")
        price = item.get(price_field)
        lines.append({
            "product_id": coerce_int(item["product_id"], f"items[{index}].product_id"),
            "quantity": quantity,
            "unit_price_cents": (
                None if price is None
                else require_amount_cents(price, f"items[{index}].{price_field}", allow_zero=True)
            ),
        })
    return lines
