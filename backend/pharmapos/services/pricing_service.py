# Overview: Line-item pricing and sale totals; reads the catalog, writes nothing.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Mapping

from flask import current_app

from ..extensions import db
from ..errors import ProductNotFound
from ..models import Product
from ..validation import parse_sale_items


CENT = Decimal("0.01")


@dataclass(frozen=True)
class CatalogEntry:
    product_id: int
    name: str
    price: Decimal


@dataclass(frozen=True)
class PricedLine:
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


@dataclass(frozen=True)
class PricedSale:
    lines: tuple[PricedLine, ...]
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    tax_rate: Decimal

    def to_dict(self) -> dict:
        return {
            "lines": [
                {
                    "product_id": line.product_id,
                    "product_name": line.product_name,
                    "quantity": line.quantity,
                    "unit_price": str(line.unit_price),
                    "total_price": str(line.total_price),
                }
                for line in self.lines
            ],
            "subtotal": str(self.subtotal),
            "tax": str(self.tax),
            "total": str(self.total),
            "tax_rate": str(self.tax_rate),
        }


def to_money(value) -> Decimal:
    """Quantize to currency precision (two fractional digits, half-up)."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def configured_tax_rate() -> Decimal:
    raw = current_app.config.get("TAX_RATE", "0.16")
    try:
        rate = Decimal(str(raw))
    except InvalidOperation:
        raise ValueError(f"TAX_RATE must be a decimal fraction, got {raw!r}")
    if rate < 0 or rate >= 1:
        raise ValueError(f"TAX_RATE must be in [0, 1), got {rate}")
    return rate


def compute_tax(subtotal: Decimal, tax_rate: Decimal) -> Decimal:
    return to_money(subtotal * tax_rate)


def price_lines(items: Iterable, catalog: Mapping[int, CatalogEntry], tax_rate: Decimal) -> PricedSale:
    """
    Price already-resolved items. Pure: no I/O.

    `items` are objects with product_id/quantity; every product_id must be in
    `catalog`.
    """
    lines = []
    subtotal = Decimal("0.00")
    for item in items:
        entry = catalog[item.product_id]
        unit_price = to_money(entry.price)
        total_price = to_money(unit_price * item.quantity)
        subtotal += total_price
        lines.append(
            PricedLine(
                product_id=item.product_id,
                product_name=entry.name,
                quantity=item.quantity,
                unit_price=unit_price,
                total_price=total_price,
            )
        )

    subtotal = to_money(subtotal)
    tax = compute_tax(subtotal, tax_rate)
    return PricedSale(
        lines=tuple(lines),
        subtotal=subtotal,
        tax=tax,
        total=to_money(subtotal + tax),
        tax_rate=tax_rate,
    )


def load_catalog(product_ids: Iterable[int], *, session=None) -> dict[int, CatalogEntry]:
    """Active catalog entries for the given ids, in one query."""
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    session = db.session if session is None else session
    rows = (
        session.query(Product.id, Product.name, Product.price)
        .filter(Product.id.in_(ids), Product.is_active.is_(True))
        .all()
    )
    return {row.id: CatalogEntry(product_id=row.id, name=row.name, price=Decimal(row.price)) for row in rows}


def price_sale(items, *, tax_rate: Decimal | None = None, session=None) -> PricedSale:
    """
    Snapshot current catalog prices for the requested items and total them.

    Items may be SaleItem instances or {product_id, quantity} mappings.
    Raises ProductNotFound listing every id that is missing or inactive.
    """
    items = parse_sale_items(items)
    if tax_rate is None:
        tax_rate = configured_tax_rate()

    catalog = load_catalog((item.product_id for item in items), session=session)
    missing = [item.product_id for item in items if item.product_id not in catalog]
    if missing:
        raise ProductNotFound(missing)

    return price_lines(items, catalog, tax_rate)
