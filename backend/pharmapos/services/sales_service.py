"""
Sales Service - atomic sale creation and compensating cancellation

WHY: A sale touches the sale header, its line items, one inventory record
per product and the movement ledger. Either all of it commits or none of it
does; cancellation reverses the stock effects and flips the status.

LIFECYCLE:
1. ACTIVE: set at creation
2. CANCELLED: terminal; never reactivated, never re-cancelled
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app

from ..extensions import db
from ..errors import (
    AuthorizationError,
    ClientNotFound,
    InvalidStateError,
    InventoryRecordNotFound,
    SaleAlreadyCancelled,
    SaleNotFound,
    ValidationError,
)
from ..models import Client, Sale, SaleLineItem
from ..models.inventory import REFERENCE_SALE, REFERENCE_SALE_CANCEL
from ..models.sales import SALE_STATUS_ACTIVE, SALE_STATUS_CANCELLED, SALE_STATUSES
from ..time_utils import utcnow
from ..validation import MAX_NOTES_LENGTH, parse_payment_method, parse_sale_items
from . import inventory_service, pricing_service
from .concurrency import lock_for_update, run_with_retry, unit_of_work
from .inventory_service import AdjustmentResult
from .warehouse_service import resolve_warehouse_id


@dataclass
class CancellationResult:
    sale: Sale
    restored: list[AdjustmentResult] = field(default_factory=list)
    skipped_product_ids: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "message": f"Sale {self.sale.id} cancelled",
            "sale": self.sale.to_dict(),
            "restored": [
                {
                    "product_id": r.product_id,
                    "warehouse_id": r.warehouse_id,
                    "previous_quantity": r.previous_quantity,
                    "new_quantity": r.new_quantity,
                }
                for r in self.restored
            ],
            "skipped_product_ids": self.skipped_product_ids,
        }


def _require_actor(actor_user_id: int | None, action: str) -> None:
    if actor_user_id is None:
        raise AuthorizationError(f"Authentication required to {action}")


def _normalize_notes(notes) -> str | None:
    if notes is None:
        return None
    if not isinstance(notes, str):
        raise ValidationError("notes must be a string")
    notes = notes.strip()
    if len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError(f"notes must be at most {MAX_NOTES_LENGTH} characters")
    return notes or None


def _ensure_client(client_id: int) -> None:
    if db.session.get(Client, client_id) is None:
        raise ClientNotFound(client_id)


def create_sale(
    *,
    actor_user_id: int | None,
    items,
    payment_method: str,
    client_id: int | None = None,
    notes: str | None = None,
    warehouse_id: int | None = None,
) -> Sale:
    """
    Create a sale and take its stock in one unit of work.

    Validation, client/warehouse lookups and pricing happen before the
    transaction opens. Inside it: header + line items are inserted, then
    each line's stock is decremented in ascending product_id order (a
    fixed lock order across concurrent sales). Any failure rolls back the
    header, the lines and every adjustment already applied.
    """
    _require_actor(actor_user_id, "create a sale")
    items = parse_sale_items(items)
    payment_method = parse_payment_method(payment_method)
    notes = _normalize_notes(notes)

    warehouse_id = resolve_warehouse_id(warehouse_id)
    if client_id is not None:
        _ensure_client(client_id)

    priced = pricing_service.price_sale(items)

    def _op():
        with unit_of_work() as session:
            sale = Sale(
                client_id=client_id,
                user_id=actor_user_id,
                warehouse_id=warehouse_id,
                subtotal=priced.subtotal,
                tax=priced.tax,
                total=priced.total,
                payment_method=payment_method,
                notes=notes,
                status=SALE_STATUS_ACTIVE,
                sale_date=utcnow(),
            )
            session.add(sale)
            session.flush()  # assigns sale.id for references

            session.add_all([
                SaleLineItem(
                    sale_id=sale.id,
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    total_price=line.total_price,
                )
                for line in priced.lines
            ])
            session.flush()

            for line in sorted(priced.lines, key=lambda l: l.product_id):
                inventory_service.adjust(
                    product_id=line.product_id,
                    warehouse_id=warehouse_id,
                    delta=-line.quantity,
                    actor_user_id=actor_user_id,
                    reason=f"Sale #{sale.id}",
                    reference_id=sale.id,
                    reference_type=REFERENCE_SALE,
                    create_missing=False,
                    product_name=line.product_name,
                    session=session,
                )
            return sale

    sale = run_with_retry(_op, operation="sale.create")
    current_app.logger.info(
        "Sale %s created by user %s: %d lines, total %s",
        sale.id,
        actor_user_id,
        len(priced.lines),
        priced.total,
    )
    return sale


def cancel_sale(*, sale_id: int, actor_user_id: int | None) -> CancellationResult:
    """
    Cancel an ACTIVE sale and return its stock to the sale's warehouse.

    The sale row is locked first so two cancellations cannot both pass the
    status check. A line whose inventory record has since been deleted is
    skipped with a warning instead of failing the cancellation.
    """
    _require_actor(actor_user_id, "cancel a sale")

    def _op():
        with unit_of_work() as session:
            sale = lock_for_update(session.query(Sale).filter_by(id=sale_id)).first()
            if not sale:
                raise SaleNotFound(sale_id)

            if sale.status == SALE_STATUS_CANCELLED:
                raise SaleAlreadyCancelled(sale.id)

            if sale.status != SALE_STATUS_ACTIVE:
                raise InvalidStateError(f"Cannot cancel sale with status {sale.status}")

            lines = (
                session.query(SaleLineItem)
                .filter_by(sale_id=sale.id)
                .order_by(SaleLineItem.product_id, SaleLineItem.id)
                .all()
            )

            result = CancellationResult(sale=sale)
            for line in lines:
                try:
                    restored = inventory_service.adjust(
                        product_id=line.product_id,
                        warehouse_id=sale.warehouse_id,
                        delta=line.quantity,
                        actor_user_id=actor_user_id,
                        reason=f"Cancellation of sale #{sale.id}",
                        reference_id=sale.id,
                        reference_type=REFERENCE_SALE_CANCEL,
                        create_missing=False,
                        session=session,
                    )
                except InventoryRecordNotFound:
                    current_app.logger.warning(
                        "Cancelling sale %s: product %s has no inventory in warehouse %s, line skipped",
                        sale.id,
                        line.product_id,
                        sale.warehouse_id,
                    )
                    result.skipped_product_ids.append(line.product_id)
                    continue
                result.restored.append(restored)

            sale.status = SALE_STATUS_CANCELLED
            sale.cancelled_by_user_id = actor_user_id
            sale.cancelled_at = utcnow()
            return result

    result = run_with_retry(_op, operation="sale.cancel")
    current_app.logger.info(
        "Sale %s cancelled by user %s (%d lines restored, %d skipped)",
        sale_id,
        actor_user_id,
        len(result.restored),
        len(result.skipped_product_ids),
    )
    return result


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise SaleNotFound(sale_id)
    return sale


def list_sales(
    *,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    status: str | None = None,
    client_id: int | None = None,
    limit: int | None = 200,
) -> list[Sale]:
    """Sales matching every given filter, newest first. Date bounds are inclusive."""
    if status is not None:
        status = status.strip().upper()
        if status not in SALE_STATUSES:
            raise ValidationError(
                f"status must be one of {', '.join(SALE_STATUSES)}",
                details={"status": status},
            )

    q = Sale.query
    if start_date is not None:
        q = q.filter(Sale.sale_date >= start_date)
    if end_date is not None:
        q = q.filter(Sale.sale_date <= end_date)
    if status is not None:
        q = q.filter(Sale.status == status)
    if client_id is not None:
        q = q.filter(Sale.client_id == client_id)

    q = q.order_by(Sale.sale_date.desc(), Sale.id.desc())
    if limit is not None:
        q = q.limit(limit)
    return q.all()
