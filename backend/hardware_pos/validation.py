from __future__ import annotations
from datetime import date, datetime

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .amounts import to_money, to_quantity
from .errors import ValidationError, ConflictError  # noqa: F401
from .models import ADJUSTMENT_REASONS, CUSTOMER_TYPES, PAYMENT_METHODS, PAYMENT_STATUSES
from .time_utils import parse_iso_date, parse_iso_datetime


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - forbidden_fields: fields rejected with a specific message (e.g. stock on a product)
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    forbidden_fields: dict[str, str] = field(default_factory=dict)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - reject floats, booleans and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or 'e' in stripped.lower() or '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        raise ValidationError(f"{col.key} must be an integer")

    # Fixed-point: money columns have scale 2, quantity columns scale 3
    if isinstance(coltype, Numeric):
        if coltype.scale == 3:
            return to_quantity(value, col.key)
        return to_money(value, col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        raise ValidationError(f"{col.key} must be a boolean")

    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, Date):
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                d = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            if d is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            return d
        raise ValidationError(f"{col.key} must be a date")

    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{col.key} must be a string")
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

    for k, message in policy.forbidden_fields.items():
        if k in payload:
            raise ValidationError(message)

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
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

        if isinstance(col.type, (String, Text)) and col.nullable and val == "":
            val = None

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict, *, current: dict | None = None) -> None:
    """
    Price rules, checked against the merged result of patch over the current values:
    - prices >= 0
    - retail_price >= purchase_price
    - wholesale_price <= retail_price when set
    """
    merged = dict(current or {})
    merged.update(patch)

    for key in ("purchase_price", "retail_price", "wholesale_price"):
        value = merged.get(key)
        if value is not None and value < 0:
            raise ValidationError(f"{key} must be >= 0")
    for key in ("min_stock_level", "reorder_quantity"):
        value = merged.get(key)
        if value is not None and value < 0:
            raise ValidationError(f"{key} must be >= 0")

    purchase = merged.get("purchase_price")
    retail = merged.get("retail_price")
    wholesale = merged.get("wholesale_price")
    if purchase is not None and retail is not None and retail < purchase:
        raise ValidationError("retail_price must be greater than or equal to purchase_price")
    if wholesale is not None and retail is not None and wholesale > retail:
        raise ValidationError("wholesale_price must be less than or equal to retail_price")


def enforce_rules_customer(patch: dict) -> None:
    if "customer_type" in patch and patch["customer_type"] not in CUSTOMER_TYPES:
        raise ValidationError(f"customer_type must be one of: {', '.join(CUSTOMER_TYPES)}")
    if "credit_limit" in patch and patch["credit_limit"] is not None and patch["credit_limit"] < 0:
        raise ValidationError("credit_limit must be >= 0")


def enforce_rules_expense(patch: dict) -> None:
    if "amount" in patch and patch["amount"] <= 0:
        raise ValidationError("amount must be greater than 0")
    if "payment_method" in patch:
        require_payment_method(patch["payment_method"])


def require_payment_method(value) -> str:
    if value not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")
    return value


def require_payment_status(value) -> str:
    if value not in PAYMENT_STATUSES:
        raise ValidationError(f"payment_status must be one of: {', '.join(PAYMENT_STATUSES)}")
    return value


def require_adjustment_reason(value) -> str:
    if not value:
        raise ValidationError("reason is required for adjustments")
    if value not in ADJUSTMENT_REASONS:
        raise ValidationError(f"reason must be one of: {', '.join(ADJUSTMENT_REASONS)}")
    return value


def require_id(value, name: str) -> int:
    """Positive integer identifier from JSON."""
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str) and value.strip().isdigit():
        result = int(value.strip())
    else:
        raise ValidationError(f"{name} must be an integer")
    if result <= 0:
        raise ValidationError(f"{name} must be a positive integer")
    return result


def optional_id(value, name: str) -> int | None:
    if value is None or value == "":
        return None
    return require_id(value, name)


def optional_datetime(value, name: str) -> datetime | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be an ISO-8601 datetime")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 datetime")


def optional_text(value, name: str, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string")
    value = value.strip()
    if max_length and len(value) > max_length:
        raise ValidationError(f"{name} exceeds max length {max_length}")
    return value or None


@dataclass(frozen=True)
class LineInput:
    product_id: int
    quantity: Any
    unit_price: Any
    discount: Any
    line_total: Any


def parse_sale_lines(items) -> list[LineInput]:
    """
    Normalize sale line items:
    quantity > 0, unit_price >= 0, 0 <= discount <= quantity * unit_price.
    line_total is computed; a supplied line_total must agree within one cent.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("Sale must contain at least one item")

    lines = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        product_id = require_id(item.get("product_id"), f"items[{index}].product_id")
        if item.get("quantity") is None:
            raise ValidationError(f"items[{index}].quantity is required")
        if item.get("unit_price") is None:
            raise ValidationError(f"items[{index}].unit_price is required")
        quantity = to_quantity(item.get("quantity"), f"items[{index}].quantity")
        unit_price = to_money(item.get("unit_price"), f"items[{index}].unit_price")
        discount = to_money(item.get("discount", 0), f"items[{index}].discount")

        if quantity <= 0:
            raise ValidationError(f"items[{index}].quantity must be greater than 0")
        if unit_price < 0:
            raise ValidationError(f"items[{index}].unit_price must be >= 0")
        if discount < 0:
            raise ValidationError(f"items[{index}].discount must be >= 0")

        gross = to_money(quantity * unit_price)
        if discount > gross:
            raise ValidationError(f"items[{index}].discount cannot exceed the line amount")
        line_total = gross - discount

        supplied = item.get("line_total")
        if supplied is not None:
            supplied = to_money(supplied, f"items[{index}].line_total")
            if abs(supplied - line_total) > to_money("0.01"):
                raise ValidationError(
                    f"items[{index}].line_total does not match quantity x unit_price - discount",
                    details={"expected": str(line_total), "supplied": str(supplied)},
                )

        lines.append(LineInput(product_id, quantity, unit_price, discount, line_total))
    return lines


def parse_purchase_lines(items) -> list[LineInput]:
    """Normalize purchase line items: quantity > 0, unit_cost >= 0."""
    if not isinstance(items, list) or not items:
        raise ValidationError("Purchase must contain at least one item")

    lines = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        product_id = require_id(item.get("product_id"), f"items[{index}].product_id")
        if item.get("quantity") is None:
            raise ValidationError(f"items[{index}].quantity is required")
        raw_cost = item.get("unit_cost", item.get("unit_price"))
        if raw_cost is None:
            raise ValidationError(f"items[{index}].unit_cost is required")
        quantity = to_quantity(item.get("quantity"), f"items[{index}].quantity")
        unit_cost = to_money(raw_cost, f"items[{index}].unit_cost")
        if quantity <= 0:
            raise ValidationError(f"items[{index}].quantity must be greater than 0")
        if unit_cost < 0:
            raise ValidationError(f"items[{index}].unit_cost must be >= 0")
        lines.append(LineInput(product_id, quantity, unit_cost, to_money(0), to_money(quantity * unit_cost)))
    return lines
