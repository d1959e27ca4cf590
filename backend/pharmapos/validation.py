"""
Typed request contracts.

Request bodies are checked at the boundary before they reach a service:
unknown fields, missing fields and wrong types are rejected explicitly.
Nothing is coerced (no "missing quantity means 0", no "12.0 means 12").
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping

from .errors import ValidationError
from .models.inventory import MOVEMENT_ADJUSTMENT
from .models.sales import PAYMENT_METHODS
from .time_utils import parse_iso_datetime


MAX_NOTES_LENGTH = 500
MAX_REASON_LENGTH = 255

SALE_REQUEST_FIELDS = {"client_id", "items", "payment_method", "notes", "warehouse_id"}
SALE_ITEM_FIELDS = {"product_id", "quantity"}
ADJUSTMENT_FIELDS = {"product_id", "warehouse_id", "delta", "reason", "movement_type"}
STOCK_LEVEL_FIELDS = {
    "product_id",
    "warehouse_id",
    "quantity",
    "min_stock",
    "max_stock",
    "location_in_warehouse",
    "reason",
}


@dataclass(frozen=True)
class SaleItem:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class SaleRequest:
    items: tuple[SaleItem, ...]
    payment_method: str
    client_id: int | None = None
    notes: str | None = None
    warehouse_id: int | None = None


@dataclass(frozen=True)
class AdjustmentRequest:
    product_id: int
    warehouse_id: int
    delta: int
    reason: str | None = None
    movement_type: str | None = None


@dataclass(frozen=True)
class StockLevelRequest:
    product_id: int
    warehouse_id: int
    quantity: int
    min_stock: int | None = None
    max_stock: int | None = None
    location_in_warehouse: str | None = None
    reason: str | None = None


class _Errors:
    """Collects every problem in a payload so the caller sees all of them at once."""

    def __init__(self):
        self.messages: list[str] = []

    def add(self, message: str) -> None:
        self.messages.append(message)

    def raise_if_any(self) -> None:
        if self.messages:
            raise ValidationError(self.messages[0], details={"errors": list(self.messages)})


def _is_int(value: Any) -> bool:
    # bool is an int subclass; JSON true/false are never quantities or ids
    return isinstance(value, int) and not isinstance(value, bool)


def _require_object(payload: Any, label: str) -> Mapping:
    if not isinstance(payload, Mapping):
        raise ValidationError(f"{label} must be a JSON object")
    return payload


def _reject_unknown(payload: Mapping, allowed: set[str], label: str, errors: _Errors) -> None:
    unknown = sorted(set(payload) - allowed)
    if unknown:
        errors.add(f"{label} has unknown fields: {', '.join(unknown)}")


def _int_field(
    payload: Mapping,
    name: str,
    errors: _Errors,
    *,
    label: str | None = None,
    required: bool = True,
    minimum: int | None = None,
    nonzero: bool = False,
) -> int | None:
    label = label or name
    if name not in payload or payload[name] is None:
        if required:
            errors.add(f"{label} is required")
        return None
    value = payload[name]
    if not _is_int(value):
        errors.add(f"{label} must be an integer")
        return None
    if minimum is not None and value < minimum:
        if minimum == 1:
            errors.add(f"{label} must be greater than zero")
        else:
            errors.add(f"{label} must be at least {minimum}")
        return None
    if nonzero and value == 0:
        errors.add(f"{label} must be non-zero")
        return None
    return value


def _text_field(
    payload: Mapping,
    name: str,
    errors: _Errors,
    *,
    max_length: int,
    required: bool = False,
) -> str | None:
    if name not in payload or payload[name] is None:
        if required:
            errors.add(f"{name} is required")
        return None
    value = payload[name]
    if not isinstance(value, str):
        errors.add(f"{name} must be a string")
        return None
    value = value.strip()
    if not value:
        if required:
            errors.add(f"{name} is required")
        return None
    if len(value) > max_length:
        errors.add(f"{name} must be at most {max_length} characters")
        return None
    return value


def _parse_item(raw: Any, index: int, errors: _Errors) -> SaleItem | None:
    label = f"items[{index}]"
    if isinstance(raw, SaleItem):
        raw = {"product_id": raw.product_id, "quantity": raw.quantity}
    if not isinstance(raw, Mapping):
        errors.add(f"{label} must be an object")
        return None
    _reject_unknown(raw, SALE_ITEM_FIELDS, label, errors)
    product_id = _int_field(raw, "product_id", errors, label=f"{label}.product_id", minimum=1)
    quantity = _int_field(raw, "quantity", errors, label=f"{label}.quantity", minimum=1)
    if product_id is None or quantity is None:
        return None
    return SaleItem(product_id=product_id, quantity=quantity)


def parse_sale_items(raw_items: Any) -> tuple[SaleItem, ...]:
    """
    Validate a non-empty sequence of {product_id, quantity}.

    Accepts SaleItem instances or mappings. Quantities must be integers > 0.
    """
    if raw_items is None:
        raise ValidationError("items is required")
    if isinstance(raw_items, (str, bytes, Mapping)) or not isinstance(raw_items, Iterable):
        raise ValidationError("items must be a list")
    raw_items = list(raw_items)
    if not raw_items:
        raise ValidationError("At least one item is required")

    errors = _Errors()
    items = [_parse_item(raw, i, errors) for i, raw in enumerate(raw_items)]
    errors.raise_if_any()
    return tuple(items)


def parse_payment_method(value: Any) -> str:
    if value is None:
        raise ValidationError("payment_method is required")
    if not isinstance(value, str):
        raise ValidationError("payment_method must be a string")
    method = value.strip().lower()
    if method not in PAYMENT_METHODS:
        raise ValidationError(
            f"payment_method must be one of {', '.join(PAYMENT_METHODS)}",
            details={"payment_method": value},
        )
    return method


def parse_sale_request(payload: Any) -> SaleRequest:
    payload = _require_object(payload, "Request body")
    errors = _Errors()
    _reject_unknown(payload, SALE_REQUEST_FIELDS, "Request body", errors)
    errors.raise_if_any()

    items = parse_sale_items(payload.get("items"))
    payment_method = parse_payment_method(payload.get("payment_method"))

    client_id = _int_field(payload, "client_id", errors, required=False, minimum=1)
    warehouse_id = _int_field(payload, "warehouse_id", errors, required=False, minimum=1)
    notes = _text_field(payload, "notes", errors, max_length=MAX_NOTES_LENGTH)
    errors.raise_if_any()

    return SaleRequest(
        items=items,
        payment_method=payment_method,
        client_id=client_id,
        notes=notes,
        warehouse_id=warehouse_id,
    )


def parse_adjustment_request(payload: Any) -> AdjustmentRequest:
    payload = _require_object(payload, "Request body")
    errors = _Errors()
    _reject_unknown(payload, ADJUSTMENT_FIELDS, "Request body", errors)

    product_id = _int_field(payload, "product_id", errors, minimum=1)
    warehouse_id = _int_field(payload, "warehouse_id", errors, minimum=1)
    delta = _int_field(payload, "delta", errors, nonzero=True)
    reason = _text_field(payload, "reason", errors, max_length=MAX_REASON_LENGTH)

    movement_type = payload.get("movement_type")
    if movement_type is not None and movement_type != MOVEMENT_ADJUSTMENT:
        errors.add(f"movement_type may only be {MOVEMENT_ADJUSTMENT!r}")
    errors.raise_if_any()

    return AdjustmentRequest(
        product_id=product_id,
        warehouse_id=warehouse_id,
        delta=delta,
        reason=reason,
        movement_type=movement_type,
    )


def parse_stock_level_request(payload: Any) -> StockLevelRequest:
    payload = _require_object(payload, "Request body")
    errors = _Errors()
    _reject_unknown(payload, STOCK_LEVEL_FIELDS, "Request body", errors)

    product_id = _int_field(payload, "product_id", errors, minimum=1)
    warehouse_id = _int_field(payload, "warehouse_id", errors, minimum=1)
    quantity = _int_field(payload, "quantity", errors, minimum=0)
    min_stock = _int_field(payload, "min_stock", errors, required=False, minimum=0)
    max_stock = _int_field(payload, "max_stock", errors, required=False, minimum=0)
    location = _text_field(payload, "location_in_warehouse", errors, max_length=64)
    reason = _text_field(payload, "reason", errors, max_length=MAX_REASON_LENGTH)
    errors.raise_if_any()

    return StockLevelRequest(
        product_id=product_id,
        warehouse_id=warehouse_id,
        quantity=quantity,
        min_stock=min_stock,
        max_stock=max_stock,
        location_in_warehouse=location,
        reason=reason,
    )


def query_int(args: Mapping, name: str, *, required: bool = False) -> int | None:
    """Integer query-string argument; strings must be plain digits."""
    raw = args.get(name)
    if raw is None or raw == "":
        if required:
            raise ValidationError(f"{name} is required")
        return None
    stripped = str(raw).strip()
    if not stripped.isdigit():
        raise ValidationError(f"{name} must be a positive integer")
    return int(stripped)


def query_datetime(args: Mapping, name: str, *, end_of_day: bool = False) -> datetime | None:
    raw = args.get(name)
    try:
        return parse_iso_datetime(raw, end_of_day=end_of_day)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 datetime")


def query_bool(args: Mapping, name: str) -> bool:
    raw = args.get(name)
    if raw is None:
        return False
    return str(raw).strip().lower() in ("1", "true", "yes")
