from __future__ import annotations
from datetime import datetime
from warehouse.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


# $9,999,999.99 keeps SUM(stock * price) comfortably inside a 64-bit integer
MAX_PRICE_CENTS = 999_999_999

# Stock quantities above this are almost certainly typos
MAX_STOCK_QUANTITY = 10_000_000

THEMES = {"light", "dark", "system"}


class ValidationError(ValueError):
    """400-level input problem, optionally tied to one payload field."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        body = {"error": str(self)}
        if self.field:
            body["field"] = self.field
        return body


class NotFoundError(LookupError):
    """404-level lookup miss (zone, product, movement)."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate product code)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_integer(key: str, value: Any) -> int:
    # bool is a subclass of int; reject it explicitly
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer", key)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal", key)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer", key)
        if "e" in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)", key)
        if "." in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)", key)
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer", key)
    raise ValidationError(f"{key} must be an integer", key)


def _coerce_boolean(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in ("true", "false", "1", "0"):
        return value.strip().lower() in ("true", "1")
    raise ValidationError(f"{key} must be a boolean", key)


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _coerce_integer(col.key, value)

    if isinstance(coltype, Boolean):
        return _coerce_boolean(col.key, value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime", col.key)
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime", col.key)
            return dt
        raise ValidationError(f"{col.key} must be a datetime", col.key)

    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{col.key} must be a string", col.key)
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
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
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
        missing = sorted(f for f in required if payload.get(f) is None)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", missing[0])

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}", k)
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}", k)

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null", k)
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank", k)

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}", k)

        patch[k] = val

    return patch


def _require_range(patch: dict, key: str, *, minimum: int = 0, maximum: int | None = None) -> None:
    if key not in patch or patch[key] is None:
        return
    value = patch[key]
    if value < minimum:
        raise ValidationError(f"{key} must be >= {minimum}", key)
    if maximum is not None and value > maximum:
        raise ValidationError(f"{key} cannot exceed {maximum}", key)


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _require_range(patch, "current_stock", maximum=MAX_STOCK_QUANTITY)
    _require_range(patch, "min_stock", maximum=MAX_STOCK_QUANTITY)
    _require_range(patch, "unit_price_cents", maximum=MAX_PRICE_CENTS)


def enforce_rules_zone(patch: dict) -> None:
    _require_range(patch, "capacity")


def enforce_rules_stock_update(patch: dict) -> None:
    """Stock updates carry a positive quantity and an IN/OUT direction."""
    quantity = patch.get("quantity")
    if quantity is None or quantity <= 0:
        raise ValidationError("quantity must be a positive integer", "quantity")
    if quantity > MAX_STOCK_QUANTITY:
        raise ValidationError(f"quantity cannot exceed {MAX_STOCK_QUANTITY}", "quantity")

    movement_type = (patch.get("type") or "").upper()
    if movement_type not in ("IN", "OUT"):
        raise ValidationError("type must be IN or OUT", "type")
    patch["type"] = movement_type


def enforce_rules_settings(patch: dict) -> None:
    if "currency" in patch:
        currency = patch["currency"]
        if len(currency) != 3 or not currency.isalpha():
            raise ValidationError("currency must be a 3-letter ISO code", "currency")
        patch["currency"] = currency.upper()

    if "theme" in patch and patch["theme"] not in THEMES:
        raise ValidationError(f"theme must be one of: {', '.join(sorted(THEMES))}", "theme")

    _require_range(patch, "low_stock_threshold", maximum=MAX_STOCK_QUANTITY)
