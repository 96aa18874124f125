from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import JSON, Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Upper bound for a single cart line / stock figure
MAX_QUANTITY = 1_000_000

SHIPPING_ADDRESS_FIELDS = ("street", "city", "postal_code", "country")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate category name)."""


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


def _coerce_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        # fallback: truthiness
        return bool(value)

    # JSON columns are checked by the per-model rules
    if isinstance(coltype, JSON):
        return value

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
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
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "price_cents" in patch and patch["price_cents"] is not None:
        price = patch["price_cents"]
        if price < 0:
            raise ValidationError("price_cents must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")

    if "stock_quantity" in patch:
        stock = patch["stock_quantity"]
        if stock < 0:
            raise ValidationError("stock_quantity must be >= 0")
        if stock > MAX_QUANTITY:
            raise ValidationError(f"stock_quantity cannot exceed {MAX_QUANTITY}")

    if "images" in patch:
        images = patch["images"]
        if not isinstance(images, list) or not all(isinstance(url, str) and url.strip() for url in images):
            raise ValidationError("images must be a list of non-empty strings")
        patch["images"] = [url.strip() for url in images]

    if "specifications" in patch:
        specs = patch["specifications"]
        if not isinstance(specs, list):
            raise ValidationError("specifications must be a list of {key, value} objects")
        cleaned = []
        for spec in specs:
            if (
                not isinstance(spec, dict)
                or set(spec.keys()) != {"key", "value"}
                or not isinstance(spec["key"], str)
                or not isinstance(spec["value"], str)
            ):
                raise ValidationError("specifications must be a list of {key, value} objects")
            if not spec["key"].strip():
                raise ValidationError("specification key cannot be blank")
            cleaned.append({"key": spec["key"].strip(), "value": spec["value"].strip()})
        patch["specifications"] = cleaned


def parse_quantity(value: Any, *, field: str = "quantity", allow_zero: bool = False) -> int:
    """Parse a cart quantity: a positive integer (or zero when allow_zero)."""
    if value is None:
        raise ValidationError(f"{field} required")
    quantity = _coerce_int(field, value)
    if allow_zero and quantity == 0:
        return quantity
    if quantity < 1:
        raise ValidationError(f"{field} must be a positive integer")
    if quantity > MAX_QUANTITY:
        raise ValidationError(f"{field} cannot exceed {MAX_QUANTITY}")
    return quantity


def parse_id(value: Any, *, field: str) -> int:
    if value is None:
        raise ValidationError(f"{field} required")
    parsed = _coerce_int(field, value)
    if parsed < 1:
        raise ValidationError(f"{field} must be a positive integer")
    return parsed


def parse_shipping_address(value: Any) -> dict:
    """
    Validate a shipping address: street, city, postal_code and country are
    all required non-blank strings. Unknown keys are rejected.
    """
    if not isinstance(value, dict):
        raise ValidationError("shipping_address required")

    unknown = sorted(set(value.keys()) - set(SHIPPING_ADDRESS_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown shipping_address fields: {', '.join(unknown)}")

    address = {}
    for field in SHIPPING_ADDRESS_FIELDS:
        raw = value.get(field)
        if not isinstance(raw, str) or not raw.strip():
            raise ValidationError(f"shipping_address.{field} is required")
        address[field] = raw.strip()
    return address
