from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


# Movement types (stored values)
MOVEMENT_IN = "Entrada"
MOVEMENT_OUT = "Salida"
MOVEMENT_ADJUSTMENT = "Ajuste"
MOVEMENT_TYPES = (MOVEMENT_IN, MOVEMENT_OUT, MOVEMENT_ADJUSTMENT)

# Reference types linking a movement to its cause
REFERENCE_SALE = "sale"
REFERENCE_SALE_CANCEL = "sale_cancel"
REFERENCE_ADJUSTMENT = "adjustment"


class InventoryRecord(db.Model):
    """
    Current stock of one product in one warehouse.

    Created lazily on first stock entry. Quantity is only ever written by
    inventory_service.adjust(), which pairs every change with exactly one
    InventoryMovement row.
    """
    __tablename__ = "inventory"
    __table_args__ = (
        db.UniqueConstraint("product_id", "warehouse_id", name="uq_inventory_product_warehouse"),
        db.CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
        db.Index("ix_inventory_warehouse_product", "warehouse_id", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)
    max_stock = db.Column(db.Integer, nullable=True)
    location_in_warehouse = db.Column(db.String(64), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product")
    warehouse = db.relationship("Warehouse")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return self.min_stock > 0 and self.quantity <= self.min_stock

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "warehouse_id": self.warehouse_id,
            "warehouse_name": self.warehouse.name if self.warehouse else None,
            "quantity": self.quantity,
            "min_stock": self.min_stock,
            "max_stock": self.max_stock,
            "location_in_warehouse": self.location_in_warehouse,
            "is_low_stock": self.is_low_stock,
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryMovement(db.Model):
    """
    Append-only record of one stock quantity change.

    IMMUTABLE: rows are never updated or deleted. quantity is the magnitude
    of the change; previous_quantity/new_quantity carry the direction.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_movements_quantity_magnitude"),
        db.Index("ix_movements_product_warehouse_date", "product_id", "warehouse_id", "movement_date"),
        db.Index("ix_movements_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)

    movement_type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    previous_quantity = db.Column(db.Integer, nullable=False)
    new_quantity = db.Column(db.Integer, nullable=False)

    reference_id = db.Column(db.Integer, nullable=True)
    reference_type = db.Column(db.String(32), nullable=True)

    reason = db.Column(db.String(255), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    movement_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    product = db.relationship("Product")
    warehouse = db.relationship("Warehouse")
    user = db.relationship("User")

    @property
    def signed_delta(self) -> int:
        return self.new_quantity - self.previous_quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "warehouse_id": self.warehouse_id,
            "warehouse_name": self.warehouse.name if self.warehouse else None,
            "movement_type": self.movement_type,
            "quantity": self.quantity,
            "previous_quantity": self.previous_quantity,
            "new_quantity": self.new_quantity,
            "reference_id": self.reference_id,
            "reference_type": self.reference_type,
            "reason": self.reason,
            "user_id": self.user_id,
            "user_name": self.user.username if self.user else None,
            "movement_date": to_utc_z(self.movement_date),
        }
