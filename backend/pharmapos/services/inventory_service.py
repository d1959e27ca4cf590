# Overview: Inventory ledger; the only writer of stock quantities and movements.

# backend/pharmapos/services/inventory_service.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from ..extensions import db
from ..errors import (
    InsufficientStock,
    InvalidStateError,
    InventoryRecordNotFound,
    NotFoundError,
    ProductNotFound,
    ValidationError,
    WarehouseNotFound,
)
from ..models import InventoryMovement, InventoryRecord, Product, Warehouse
from ..models.inventory import (
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_IN,
    MOVEMENT_OUT,
    MOVEMENT_TYPES,
    REFERENCE_ADJUSTMENT,
)
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry, unit_of_work
"""
Inventory Ledger Invariants (authoritative)

- InventoryRecord.quantity is the single source of truth for stock of a
  (product, warehouse) pair; it is >= 0 after every committed operation.
- Every quantity change goes through adjust(), which locks the record
  (SELECT ... FOR UPDATE), writes the new quantity and appends exactly one
  InventoryMovement with matching previous/new quantities.
- adjust() never commits. It joins the caller's unit of work, so a failure
  anywhere in the caller rolls the quantity and its movement back together.
- Replaying a pair's movements in (movement_date, id) order from zero
  reproduces the stored quantity (see reconcile()).
- Records are created lazily by the first positive adjustment.
"""


# delta sign -> movement type; MOVEMENT_ADJUSTMENT is only ever an explicit override
_MOVEMENT_TYPE_BY_SIGN = {
    1: MOVEMENT_IN,
    -1: MOVEMENT_OUT,
}


def resolve_movement_type(delta: int, override: str | None = None) -> str:
    if override is not None:
        if override != MOVEMENT_ADJUSTMENT:
            raise ValidationError(
                f"movement_type override must be {MOVEMENT_ADJUSTMENT!r}",
                details={"movement_type": override},
            )
        return MOVEMENT_ADJUSTMENT
    if delta == 0:
        raise ValidationError("Inventory adjustment delta must be non-zero")
    return _MOVEMENT_TYPE_BY_SIGN[1 if delta > 0 else -1]


@dataclass(frozen=True)
class AdjustmentResult:
    product_id: int
    warehouse_id: int
    previous_quantity: int
    new_quantity: int
    movement: InventoryMovement

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "warehouse_id": self.warehouse_id,
            "previous_quantity": self.previous_quantity,
            "new_quantity": self.new_quantity,
            "movement": self.movement.to_dict(),
        }


def _session(session):
    return db.session if session is None else session


def get_record(product_id: int, warehouse_id: int, *, lock: bool = False, session=None) -> InventoryRecord | None:
    query = _session(session).query(InventoryRecord).filter_by(
        product_id=product_id,
        warehouse_id=warehouse_id,
    )
    if lock:
        query = lock_for_update(query)
    return query.first()


def get_quantity(product_id: int, warehouse_id: int, *, session=None) -> int:
    """
    Current quantity of a pair.

    Raises InventoryRecordNotFound when the pair was never stocked; a
    stocked-out pair returns 0.
    """
    record = get_record(product_id, warehouse_id, session=session)
    if record is None:
        raise InventoryRecordNotFound(product_id, warehouse_id)
    return record.quantity


def _ensure_stockable(session, product_id: int, warehouse_id: int) -> None:
    product = session.query(Product).filter_by(id=product_id).first()
    if product is None:
        raise ProductNotFound([product_id])
    warehouse = session.query(Warehouse).filter_by(id=warehouse_id).first()
    if warehouse is None:
        raise WarehouseNotFound(warehouse_id)


def adjust(
    *,
    product_id: int,
    warehouse_id: int,
    delta: int,
    actor_user_id: int | None,
    reason: str | None = None,
    reference_id: int | None = None,
    reference_type: str | None = None,
    movement_type: str | None = None,
    create_missing: bool = True,
    product_name: str | None = None,
    session=None,
) -> AdjustmentResult:
    """
    Apply a signed quantity change to one (product, warehouse) pair.

    Must run inside the caller's unit of work; flushes but never commits.

    - Locks the record for the rest of the enclosing transaction.
    - Missing record + positive delta creates it (previous_quantity = 0)
      unless create_missing=False; otherwise InventoryRecordNotFound.
    - Raises InsufficientStock if the result would be negative; nothing is
      written in that case.
    """
    session = _session(session)
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("Inventory adjustment delta must be an integer")
    if delta == 0:
        raise ValidationError("Inventory adjustment delta must be non-zero")
    kind = resolve_movement_type(delta, movement_type)

    record = get_record(product_id, warehouse_id, lock=True, session=session)
    if record is None:
        if delta < 0 or not create_missing:
            raise InventoryRecordNotFound(product_id, warehouse_id)
        _ensure_stockable(session, product_id, warehouse_id)
        record = InventoryRecord(
            product_id=product_id,
            warehouse_id=warehouse_id,
            quantity=0,
            min_stock=0,
        )
        session.add(record)
        session.flush()

    previous_quantity = record.quantity
    new_quantity = previous_quantity + delta
    if new_quantity < 0:
        raise InsufficientStock(
            product_id=product_id,
            warehouse_id=warehouse_id,
            available=previous_quantity,
            requested=-delta,
            product_name=product_name,
        )

    record.quantity = new_quantity

    movement = InventoryMovement(
        product_id=product_id,
        warehouse_id=warehouse_id,
        movement_type=kind,
        quantity=abs(delta),
        previous_quantity=previous_quantity,
        new_quantity=new_quantity,
        reference_id=reference_id,
        reference_type=reference_type,
        reason=reason,
        user_id=actor_user_id,
        movement_date=utcnow(),
    )
    session.add(movement)
    session.flush()

    return AdjustmentResult(
        product_id=product_id,
        warehouse_id=warehouse_id,
        previous_quantity=previous_quantity,
        new_quantity=new_quantity,
        movement=movement,
    )


def apply_adjustment(
    *,
    product_id: int,
    warehouse_id: int,
    delta: int,
    actor_user_id: int | None,
    reason: str | None = None,
    movement_type: str | None = None,
) -> AdjustmentResult:
    """Standalone stock receipt/correction in its own unit of work."""
    def _op():
        with unit_of_work() as session:
            return adjust(
                product_id=product_id,
                warehouse_id=warehouse_id,
                delta=delta,
                actor_user_id=actor_user_id,
                reason=reason,
                reference_type=REFERENCE_ADJUSTMENT,
                movement_type=movement_type,
                session=session,
            )

    return run_with_retry(_op, operation="inventory.adjust")


def set_stock_levels(
    *,
    product_id: int,
    warehouse_id: int,
    quantity: int,
    actor_user_id: int | None,
    min_stock: int | None = None,
    max_stock: int | None = None,
    location_in_warehouse: str | None = None,
    reason: str | None = None,
) -> InventoryRecord:
    """
    Set a pair to an absolute quantity (manual stock take).

    An existing record is moved with an Ajuste movement for the difference.
    A new record with quantity > 0 is created through a regular Entrada.
    Threshold fields are updated in the same unit of work.
    """
    if quantity < 0:
        raise ValidationError("quantity cannot be negative")
    if min_stock is not None and min_stock < 0:
        raise ValidationError("min_stock cannot be negative")

    def _op():
        with unit_of_work() as session:
            _ensure_stockable(session, product_id, warehouse_id)
            record = get_record(product_id, warehouse_id, lock=True, session=session)

            if record is None:
                if quantity > 0:
                    adjust(
                        product_id=product_id,
                        warehouse_id=warehouse_id,
                        delta=quantity,
                        actor_user_id=actor_user_id,
                        reason=reason or "Initial inventory",
                        reference_type=REFERENCE_ADJUSTMENT,
                        session=session,
                    )
                    record = get_record(product_id, warehouse_id, session=session)
                else:
                    record = InventoryRecord(
                        product_id=product_id,
                        warehouse_id=warehouse_id,
                        quantity=0,
                        min_stock=0,
                    )
                    session.add(record)
            else:
                delta = quantity - record.quantity
                if delta != 0:
                    adjust(
                        product_id=product_id,
                        warehouse_id=warehouse_id,
                        delta=delta,
                        actor_user_id=actor_user_id,
                        reason=reason or "Manual inventory adjustment",
                        reference_type=REFERENCE_ADJUSTMENT,
                        movement_type=MOVEMENT_ADJUSTMENT,
                        session=session,
                    )

            if min_stock is not None:
                record.min_stock = min_stock
            if max_stock is not None:
                record.max_stock = max_stock
            if record.max_stock is not None and record.max_stock < record.min_stock:
                raise ValidationError(
                    "max_stock cannot be lower than min_stock",
                    details={"min_stock": record.min_stock, "max_stock": record.max_stock},
                )
            if location_in_warehouse is not None:
                record.location_in_warehouse = location_in_warehouse
            session.flush()
            return record

    return run_with_retry(_op, operation="inventory.set_levels")


def delete_record(*, product_id: int, warehouse_id: int) -> None:
    """
    Remove a pair's inventory row.

    Only empty records may be removed so the movement history of the pair
    still replays to the quantity a later re-stock starts from (zero).
    """
    def _op():
        with unit_of_work() as session:
            record = get_record(product_id, warehouse_id, lock=True, session=session)
            if record is None:
                raise InventoryRecordNotFound(product_id, warehouse_id)
            if record.quantity != 0:
                raise InvalidStateError(
                    "Inventory record still holds stock; adjust it to zero before deleting",
                    details={"product_id": product_id, "warehouse_id": warehouse_id, "quantity": record.quantity},
                )
            session.delete(record)

    run_with_retry(_op, operation="inventory.delete")


def list_inventory(
    *,
    warehouse_id: int | None = None,
    product_id: int | None = None,
    low_stock: bool = False,
) -> list[InventoryRecord]:
    """Inventory rows of active products; low_stock keeps rows at or below min_stock."""
    q = db.session.query(InventoryRecord).join(Product, InventoryRecord.product_id == Product.id).filter(
        Product.is_active.is_(True),
    )
    if warehouse_id is not None:
        q = q.filter(InventoryRecord.warehouse_id == warehouse_id)
    if product_id is not None:
        q = q.filter(InventoryRecord.product_id == product_id)
    if low_stock:
        q = q.filter(
            InventoryRecord.min_stock > 0,
            InventoryRecord.quantity <= InventoryRecord.min_stock,
        )
    return q.order_by(InventoryRecord.warehouse_id, InventoryRecord.product_id).all()


def list_movements(
    *,
    product_id: int | None = None,
    warehouse_id: int | None = None,
    movement_type: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    reference_type: str | None = None,
    reference_id: int | None = None,
    limit: int | None = 200,
) -> list[InventoryMovement]:
    """Movements matching every given filter, newest first. Date bounds are inclusive."""
    if movement_type is not None and movement_type not in MOVEMENT_TYPES:
        raise ValidationError(
            f"movement_type must be one of {', '.join(MOVEMENT_TYPES)}",
            details={"movement_type": movement_type},
        )

    q = InventoryMovement.query
    if product_id is not None:
        q = q.filter(InventoryMovement.product_id == product_id)
    if warehouse_id is not None:
        q = q.filter(InventoryMovement.warehouse_id == warehouse_id)
    if movement_type is not None:
        q = q.filter(InventoryMovement.movement_type == movement_type)
    if date_from is not None:
        q = q.filter(InventoryMovement.movement_date >= date_from)
    if date_to is not None:
        q = q.filter(InventoryMovement.movement_date <= date_to)
    if reference_type is not None:
        q = q.filter(InventoryMovement.reference_type == reference_type)
    if reference_id is not None:
        q = q.filter(InventoryMovement.reference_id == reference_id)

    q = q.order_by(
        InventoryMovement.movement_date.desc(),
        InventoryMovement.id.desc(),
    )
    if limit is not None:
        q = q.limit(limit)
    return q.all()


def get_movement(movement_id: int) -> InventoryMovement:
    movement = db.session.get(InventoryMovement, movement_id)
    if movement is None:
        raise NotFoundError(f"Movement {movement_id} not found", details={"movement_id": movement_id})
    return movement


def _replay_delta(movement: InventoryMovement) -> int:
    if movement.movement_type == MOVEMENT_IN:
        return movement.quantity
    if movement.movement_type == MOVEMENT_OUT:
        return -movement.quantity
    # Ajuste carries its direction in previous/new
    return movement.quantity if movement.new_quantity >= movement.previous_quantity else -movement.quantity


@dataclass
class ReconciliationReport:
    product_id: int
    warehouse_id: int
    stored_quantity: int | None
    replayed_quantity: int
    movement_count: int
    breaks: list[int] = field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        stored = self.stored_quantity if self.stored_quantity is not None else 0
        return not self.breaks and stored == self.replayed_quantity

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "warehouse_id": self.warehouse_id,
            "stored_quantity": self.stored_quantity,
            "replayed_quantity": self.replayed_quantity,
            "movement_count": self.movement_count,
            "breaks": self.breaks,
            "is_consistent": self.is_consistent,
        }


def reconcile(product_id: int, warehouse_id: int) -> ReconciliationReport:
    """
    Replay a pair's movements from zero and compare with the stored quantity.

    `breaks` lists ids of movements whose previous_quantity does not match
    the running total or whose magnitude disagrees with previous/new.
    """
    movements = (
        InventoryMovement.query.filter_by(product_id=product_id, warehouse_id=warehouse_id)
        .order_by(InventoryMovement.movement_date.asc(), InventoryMovement.id.asc())
        .all()
    )
    record = get_record(product_id, warehouse_id)

    running = 0
    breaks = []
    for movement in movements:
        step = _replay_delta(movement)
        if movement.previous_quantity != running or movement.new_quantity != movement.previous_quantity + step:
            breaks.append(movement.id)
        running += step

    return ReconciliationReport(
        product_id=product_id,
        warehouse_id=warehouse_id,
        stored_quantity=record.quantity if record is not None else None,
        replayed_quantity=running,
        movement_count=len(movements),
        breaks=breaks,
    )
