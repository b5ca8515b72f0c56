from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Sale and line totals share the price ceiling
MAX_SALE_TOTAL_CENTS = MAX_PRICE_CENTS

MAX_CART_LINES = 500
MAX_LINE_QUANTITY = 10_000

# Stock levels and ids stay inside a signed 32-bit INTEGER column
MAX_STOCK_LEVEL = 1_000_000_000
MAX_ROW_ID = 2**31 - 1


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate username)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - extra_fields: accepted keys that are not model columns, with a
      coercion hint ("int" or "str")
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    extra_fields: dict[str, str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(value: Any, field: str) -> int:
    """
    Whole numbers only: ints, or strings of digits with an optional sign.

    Cart quantities and cent amounts arrive from JSON and query strings, so
    "3" is accepted but 2.5, "2.5", "1e3" and true are not.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"{field} must be a whole number")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        digits = text[1:] if text[:1] in ("-", "+") else text
        if digits.isdigit() and digits.isascii():
            return int(text)
    raise ValidationError(f"{field} must be a whole number")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(value, col.key)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

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
    extra = policy.extra_fields or {}

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols and k not in extra:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        if k in extra:
            if raw is None:
                patch[k] = None
            elif extra[k] == "int":
                patch[k] = coerce_int(raw, k)
            else:
                patch[k] = str(raw).strip()
            continue

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
            if isinstance(val, str) and val == "" and k in required:
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

    if "stock" in patch and patch["stock"] is not None:
        if patch["stock"] < 0:
            raise ValidationError("stock must be >= 0")
        if patch["stock"] > MAX_STOCK_LEVEL:
            raise ValidationError(f"stock cannot exceed {MAX_STOCK_LEVEL}")


def parse_cart_payload(payload: dict | None) -> list[dict]:
    """
    Shape-check a checkout body: {"lines": [{product_id, quantity,
    unit_price_cents, product_name?}, ...]}.

    Only types are checked here; quantity/price ranges and an empty cart
    are reported by the checkout service with their own error codes.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    lines = payload.get("lines")
    if not isinstance(lines, list):
        raise ValidationError("lines must be a list")
    if len(lines) > MAX_CART_LINES:
        raise ValidationError(f"a cart cannot have more than {MAX_CART_LINES} lines")

    parsed = []
    for index, raw in enumerate(lines):
        if not isinstance(raw, dict):
            raise ValidationError(f"lines[{index}] must be an object")
        missing = [k for k in ("product_id", "quantity", "unit_price_cents") if k not in raw]
        if missing:
            raise ValidationError(f"lines[{index}] is missing: {', '.join(missing)}")
        name = raw.get("product_name")
        parsed.append({
            "product_id": coerce_int(raw["product_id"], f"lines[{index}].product_id"),
            "quantity": coerce_int(raw["quantity"], f"lines[{index}].quantity"),
            "unit_price_cents": coerce_int(raw["unit_price_cents"], f"lines[{index}].unit_price_cents"),
            "product_name": str(name).strip() if name else None,
        })
    return parsed


def parse_adjust_payload(payload: dict | None) -> dict:
    """Shape-check a stock adjustment body."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    missing = [k for k in ("product_id", "kind", "quantity") if k not in payload]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    unknown = set(payload) - {"product_id", "kind", "quantity", "reason"}
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    reason = payload.get("reason")
    if reason is not None:
        reason = str(reason).strip()[:255] or None

    # quantity is type- and range-checked by adjust_stock (INVALID_QUANTITY)
    return {
        "product_id": coerce_int(payload["product_id"], "product_id"),
        "kind": str(payload["kind"]).strip().lower(),
        "quantity": payload["quantity"],
        "reason": reason,
    }
