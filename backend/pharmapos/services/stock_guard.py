# Overview: Optimistic stock pre-check run before a sale opens its transaction.

"""
Stock precondition guard.

Reads current quantities WITHOUT locking to reject obviously unfulfillable
sale requests early with a friendly message. It is never authoritative: stock
can change between this check and the sale's locked adjustments, and
sales_service.create_sale re-checks under lock (that check is the final word).
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field

from ..extensions import db
from ..errors import InsufficientStock, InventoryRecordNotFound
from ..models import InventoryRecord, Product
from ..validation import parse_sale_items


SHORTAGE_MISSING = "missing"
SHORTAGE_INSUFFICIENT = "insufficient"


@dataclass(frozen=True)
class StockShortage:
    product_id: int
    warehouse_id: int
    requested: int
    available: int | None
    reason: str
    product_name: str | None = None

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "warehouse_id": self.warehouse_id,
            "requested": self.requested,
            "available": self.available,
            "reason": self.reason,
        }


@dataclass
class StockCheckResult:
    warehouse_id: int
    shortages: list[StockShortage] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.shortages

    def to_dict(self) -> dict:
        return {
            "warehouse_id": self.warehouse_id,
            "ok": self.ok,
            "shortages": [s.to_dict() for s in self.shortages],
        }


def _requested_by_product(items) -> "OrderedDict[int, int]":
    totals: dict[int, int] = {}
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
    return OrderedDict(sorted(totals.items()))


def check_stock(items, warehouse_id: int, *, report_all: bool = True, session=None) -> StockCheckResult:
    """
    Compare requested quantities (summed per product) with current stock.
    Items may be SaleItem instances or {product_id, quantity} mappings.

    report_all=False stops at the first shortage (ascending product id).
    """
    session = db.session if session is None else session
    requested = _requested_by_product(parse_sale_items(items))
    result = StockCheckResult(warehouse_id=warehouse_id)

    rows = (
        session.query(InventoryRecord.product_id, InventoryRecord.quantity, Product.name)
        .join(Product, InventoryRecord.product_id == Product.id)
        .filter(
            InventoryRecord.warehouse_id == warehouse_id,
            InventoryRecord.product_id.in_(list(requested)),
        )
        .all()
    )
    on_hand = {row.product_id: (row.quantity, row.name) for row in rows}

    for product_id, qty in requested.items():
        if product_id not in on_hand:
            shortage = StockShortage(
                product_id=product_id,
                warehouse_id=warehouse_id,
                requested=qty,
                available=None,
                reason=SHORTAGE_MISSING,
            )
        else:
            available, name = on_hand[product_id]
            if available >= qty:
                continue
            shortage = StockShortage(
                product_id=product_id,
                warehouse_id=warehouse_id,
                requested=qty,
                available=available,
                reason=SHORTAGE_INSUFFICIENT,
                product_name=name,
            )
        result.shortages.append(shortage)
        if not report_all:
            break

    return result


def require_stock(items, warehouse_id: int, *, session=None) -> StockCheckResult:
    """
    Raise for the first shortage, listing every shortage in the error details.

    Missing inventory rows raise InventoryRecordNotFound; low stock raises
    InsufficientStock.
    """
    result = check_stock(items, warehouse_id, session=session)
    if result.ok:
        return result

    first = result.shortages[0]
    if first.reason == SHORTAGE_MISSING:
        error = InventoryRecordNotFound(first.product_id, warehouse_id)
    else:
        error = InsufficientStock(
            product_id=first.product_id,
            warehouse_id=warehouse_id,
            available=first.available,
            requested=first.requested,
            product_name=first.product_name,
        )
    error.details["shortages"] = [s.to_dict() for s in result.shortages]
    raise error
