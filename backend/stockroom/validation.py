# backend/stockroom/validation.py
"""
Request payload validation.

Policies declare which model columns a client may write; column metadata
(type, nullability, String length) drives coercion. Business rules that
metadata cannot express live in the enforce_rules_* functions.
"""
from __future__ import annotations
from datetime import datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .time_utils import parse_iso_datetime


# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

# Upper bound for any single quantity field
MAX_QUANTITY = 1_000_000_000

PRICE_FIELDS = ("purchase_price_cents", "retail_price_cents", "wholesale_price_cents")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(key: str, value: Any) -> int:
    """Strict integer coercion: rejects bools, floats, decimals and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def coerce_datetime(key: str, value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(f"{key} must be an ISO-8601 datetime")
        if dt is None:
            raise ValidationError(f"{key} must be an ISO-8601 datetime")
        return dt
    raise ValidationError(f"{key} must be a datetime")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    if isinstance(coltype, DateTime):
        return coerce_datetime(col.key, value)

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against column metadata and a policy.
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """Price and unit rules for product create/update patches."""
    for field in PRICE_FIELDS:
        if field not in patch or patch[field] is None:
            continue
        price = patch[field]
        if price < 0:
            raise ValidationError(f"{field} must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")

    if "unit" in patch and patch["unit"] is not None and patch["unit"] < 1:
        raise ValidationError("unit must be >= 1")


def require_quantity(key: str, value: Any, *, minimum: int = 0) -> int:
    """Coerce a quantity argument and bound-check it."""
    if value is None:
        raise ValidationError(f"{key} is required")
    qty = coerce_int(key, value)
    if qty < minimum:
        raise ValidationError(f"{key} must be >= {minimum}", details={key: qty})
    if qty > MAX_QUANTITY:
        raise ValidationError(f"{key} cannot exceed {MAX_QUANTITY}", details={key: qty})
    return qty
