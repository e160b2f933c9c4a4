from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from erp.time_utils import parse_business_date


# Maximum amount: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_AMOUNT_CENTS = 999_999_999

# Basis points: 10000 = 100.00%
MAX_RATE_BPS = 10_000

CUSTOMER_CATEGORIES = ("Institutions", "Shops", "Individuals")
PRODUCT_CATEGORIES = ("Structural", "Exterior", "Decorative")
PAYMENT_METHODS = ("Cash", "Vodafone Cash", "Bank Transfer", "Cheque")
USER_ROLES = ("admin", "supervisor", "user")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate email)."""


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


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            # Reject scientific notation (e.g., "1e15", "1E10")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            # Reject decimal points (e.g., "12.5")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        # Reject floats explicitly
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        # Other types
        raise ValidationError(f"{col.key} must be an integer")

    # Strings / Text
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


def require_choice(field: str, value, choices) -> None:
    if value not in choices:
        raise ValidationError(f"{field} must be one of: {', '.join(choices)}")


def require_id(field: str, value) -> int:
    """JSON ids must be real integers; true/false are not ids."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    return value


def require_business_date(field: str, value) -> str | None:
    """Normalized "YYYY-MM-DD" or None when absent."""
    try:
        return parse_business_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be a YYYY-MM-DD date")


def require_amount(field: str, value, *, allow_zero: bool = True) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer number of cents")
    if value < 0 or (value == 0 and not allow_zero):
        raise ValidationError(f"{field} must be {'>= 0' if allow_zero else '> 0'}")
    if value > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS} ({MAX_AMOUNT_CENTS / 100:,.2f})")


def enforce_rules_customer(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "category" in patch:
        require_choice("category", patch["category"], CUSTOMER_CATEGORIES)
    if "discount_rate_bps" in patch and patch["discount_rate_bps"] is not None:
        rate = patch["discount_rate_bps"]
        if rate < 0 or rate > MAX_RATE_BPS:
            raise ValidationError(f"discount_rate_bps must be between 0 and {MAX_RATE_BPS}")


def enforce_rules_product(patch: dict) -> None:
    if "category" in patch:
        require_choice("category", patch["category"], PRODUCT_CATEGORIES)
    if "price_cents" in patch and patch["price_cents"] is not None:
        require_amount("price_cents", patch["price_cents"])
    for field in ("stock", "low_stock_threshold"):
        if field in patch and patch[field] is not None and patch[field] < 0:
            raise ValidationError(f"{field} must be >= 0")


def enforce_rules_user(patch: dict) -> None:
    if "role" in patch:
        require_choice("role", patch["role"], USER_ROLES)
    if "email" in patch and patch["email"] is not None:
        email = patch["email"]
        if "@" not in email or email.startswith("@") or email.endswith("@"):
            raise ValidationError("email must be a valid address")
        patch["email"] = email.lower()
