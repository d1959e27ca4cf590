# Overview: Warehouse lookups, default resolution and the single-primary rule.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import ConflictError, ValidationError, WarehouseNotFound
from ..models import Warehouse
from .concurrency import lock_for_update, run_with_retry, unit_of_work


def get_warehouse(warehouse_id: int) -> Warehouse:
    warehouse = db.session.get(Warehouse, warehouse_id)
    if warehouse is None:
        raise WarehouseNotFound(warehouse_id)
    return warehouse


def get_primary_warehouse() -> Warehouse | None:
    return db.session.query(Warehouse).filter_by(is_primary=True).first()


def default_warehouse_id() -> int:
    """
    Warehouse used when a sale does not name one.

    DEFAULT_WAREHOUSE_ID config wins; otherwise the primary warehouse.
    """
    configured = current_app.config.get("DEFAULT_WAREHOUSE_ID")
    if configured is not None:
        return int(configured)
    primary = get_primary_warehouse()
    if primary is None:
        raise ValidationError("warehouse_id is required: no primary warehouse is configured")
    return primary.id


def resolve_warehouse_id(warehouse_id: int | None) -> int:
    """Explicit id or the default; the warehouse must exist."""
    resolved = default_warehouse_id() if warehouse_id is None else warehouse_id
    get_warehouse(resolved)
    return resolved


def create_warehouse(
    *,
    name: str,
    location: str,
    description: str | None = None,
    is_primary: bool = False,
) -> Warehouse:
    """
    Create a warehouse.

    At most one warehouse may be primary; a second primary is rejected
    rather than silently demoting the current one. The checks and the
    insert share one locked unit of work so concurrent creates cannot
    both become primary.
    """
    name = (name or "").strip()
    location = (location or "").strip()
    if not name or not location:
        raise ValidationError("name and location are required")

    def _op():
        with unit_of_work() as session:
            if session.query(Warehouse).filter_by(name=name).first():
                raise ConflictError(f"Warehouse {name!r} already exists")

            if is_primary:
                existing = lock_for_update(session.query(Warehouse).filter_by(is_primary=True)).first()
                if existing is not None:
                    raise ConflictError(
                        "A primary warehouse already exists",
                        details={"existing_primary_id": existing.id},
                    )

            created = Warehouse(
                name=name,
                location=location,
                description=description,
                is_primary=bool(is_primary),
            )
            session.add(created)
        return created

    warehouse = run_with_retry(_op, operation="warehouse.create")
    current_app.logger.info(
        "Created warehouse %s (id=%s, primary=%s)", warehouse.name, warehouse.id, warehouse.is_primary
    )
    return warehouse
