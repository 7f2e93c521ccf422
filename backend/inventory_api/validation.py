from __future__ import annotations
from datetime import datetime
from inventory_api.time_utils import parse_iso_datetime

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
import json
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationFailed
from .models import MAX_PRICE_CENTS


class FieldError(ValueError):
    """Single-field problem; collected into ValidationFailed.errors."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - money_fields: integer cents that must lie in [0, MAX_PRICE_CENTS]
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    money_fields: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(field: str, value: Any) -> int:
    """
    Strict integer parsing for JSON numbers and form strings.

    Rejects floats, booleans, decimals and scientific notation.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise FieldError(field, f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise FieldError(field, f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise FieldError(field, f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise FieldError(field, f"{field} must be an integer")
    if isinstance(value, float):
        raise FieldError(field, f"{field} must be an integer, not a decimal")
    raise FieldError(field, f"{field} must be an integer")


def coerce_bool(value: Any) -> bool:
    # Multipart forms deliver booleans as strings
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def coerce_datetime(field: str, value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            raise FieldError(field, f"{field} must be an ISO-8601 datetime")
        if dt is None:
            raise FieldError(field, f"{field} must be an ISO-8601 datetime")
        return dt
    raise FieldError(field, f"{field} must be a datetime")


def coerce_money_cents(field: str, value: Any) -> int:
    cents = coerce_int(field, value)
    if cents < 0:
        raise FieldError(field, f"{field} must be >= 0")
    if cents > MAX_PRICE_CENTS:
        raise FieldError(field, f"{field} cannot exceed {MAX_PRICE_CENTS}")
    return cents


def major_units_to_cents(field: str, value: Any) -> int:
    """Convert a price given in major units ("12.50", 12.5) to integer cents."""
    if isinstance(value, bool):
        raise FieldError(field, f"{field} must be a number")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise FieldError(field, f"{field} must be a number")
    if not amount.is_finite():
        raise FieldError(field, f"{field} must be a number")
    cents = int((amount * 100).quantize(Decimal("1")))
    if cents < 0:
        raise FieldError(field, f"{field} must be >= 0")
    if cents > MAX_PRICE_CENTS:
        raise FieldError(field, f"{field} cannot exceed {MAX_PRICE_CENTS}")
    return cents


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        return coerce_bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        return coerce_datetime(col.key, value)

    # Strings / Text
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
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    Every problem is collected before raising, so the client sees all
    offending fields in one ValidationFailed.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationFailed("Invalid JSON payload")

    errors: list[FieldError] = []

    required = policy.required_on_create or set()
    if not partial:
        for f in sorted(required):
            if f not in payload:
                errors.append(FieldError(f, f"{f} is required"))

    cols = _columns_by_key(model)
    money = policy.money_fields or set()

    patch: dict = {}

    for k, raw in payload.items():
        if k not in policy.writable_fields:
            errors.append(FieldError(k, f"Field not allowed: {k}"))
            continue
        if k not in cols:
            errors.append(FieldError(k, f"Unknown field: {k}"))
            continue
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                errors.append(FieldError(k, f"{k} cannot be null"))
            else:
                patch[k] = None
            continue

        try:
            val = coerce_money_cents(k, raw) if k in money else _coerce_value(col, raw)
        except FieldError as e:
            errors.append(e)
            continue

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                errors.append(FieldError(k, f"{k} cannot be blank"))
                continue

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                errors.append(FieldError(k, f"{k} exceeds max length {col.type.length}"))
                continue

        patch[k] = val

    if errors:
        raise ValidationFailed([e.to_dict() for e in errors])

    return patch


# =============================================================================
# Line items
# =============================================================================

def _first_present(raw: dict, *keys):
    for key in keys:
        if key in raw and raw[key] not in (None, ""):
            return raw[key]
    return None


def parse_line_items(raw: Any, *, allow_flags: bool = False, required: bool = True) -> list[dict]:
    """
    Normalize the `items` field of a document payload.

    Accepts a list of objects, or that list serialized as a JSON string (the
    shape multipart uploads deliver). Each item needs a product reference,
    quantity >= 1 and a unit price >= 0 (`unit_price_cents`, or `unit_price`
    in major units). With allow_flags, `is_cancelled` / `is_return` are kept.

    Returns [{product_id, quantity, unit_price_cents, unit_type, is_cancelled,
    is_return}] in input order.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw) if raw.strip() else []
        except ValueError:
            raise ValidationFailed([{"field": "items", "message": "items must be a JSON array"}])

    if raw is None:
        raw = []
    if not isinstance(raw, list):
        raise ValidationFailed([{"field": "items", "message": "items must be an array"}])
    if required and not raw:
        raise ValidationFailed([{"field": "items", "message": "At least one item is required"}])

    errors: list[dict] = []
    items: list[dict] = []

    for index, entry in enumerate(raw):
        path = f"items[{index}]"
        if not isinstance(entry, dict):
            errors.append({"field": path, "message": "item must be an object"})
            continue

        item: dict = {"position": index}
        try:
            product_ref = _first_present(entry, "product_id", "productId", "product")
            if product_ref is None:
                raise FieldError(f"{path}.product_id", "product_id is required")
            item["product_id"] = coerce_int(f"{path}.product_id", product_ref)

            quantity = _first_present(entry, "quantity")
            if quantity is None:
                raise FieldError(f"{path}.quantity", "quantity is required")
            item["quantity"] = coerce_int(f"{path}.quantity", quantity)
            if item["quantity"] < 1:
                raise FieldError(f"{path}.quantity", "Quantity must be at least 1")

            if _first_present(entry, "unit_price_cents") is not None:
                item["unit_price_cents"] = coerce_money_cents(
                    f"{path}.unit_price_cents", entry["unit_price_cents"]
                )
            elif _first_present(entry, "unit_price", "unitPrice") is not None:
                item["unit_price_cents"] = major_units_to_cents(
                    f"{path}.unit_price", _first_present(entry, "unit_price", "unitPrice")
                )
            else:
                raise FieldError(f"{path}.unit_price_cents", "unit price is required")
        except FieldError as e:
            errors.append(e.to_dict())
            continue

        unit_type = _first_present(entry, "unit_type", "unitType")
        item["unit_type"] = str(unit_type).strip() if unit_type is not None else None
        item["is_cancelled"] = allow_flags and coerce_bool(
            _first_present(entry, "is_cancelled", "isCancelled") or False
        )
        item["is_return"] = allow_flags and coerce_bool(
            _first_present(entry, "is_return", "isReturn") or False
        )
        if item["is_cancelled"] and item["is_return"]:
            errors.append({"field": path, "message": "An item cannot be both cancelled and returned"})
            continue
        items.append(item)

    if errors:
        raise ValidationFailed(errors)
    return items


def parse_optional_int(args, name: str, default: int | None = None) -> int | None:
    """Query-string integer; invalid values are a 400, not silently ignored."""
    raw = args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return coerce_int(name, raw)
    except FieldError as e:
        raise ValidationFailed([e.to_dict()])
