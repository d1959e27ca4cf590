from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


# Canonical sale lifecycle: ACTIVE -> CANCELLED (terminal)
SALE_STATUS_ACTIVE = "ACTIVE"
SALE_STATUS_CANCELLED = "CANCELLED"
SALE_STATUSES = (SALE_STATUS_ACTIVE, SALE_STATUS_CANCELLED)

PAYMENT_METHODS = ("cash", "card", "transfer")


def _money(value) -> str | None:
    return str(value) if value is not None else None


class Sale(db.Model):
    """
    Sale header.

    subtotal/tax/total are derived at creation and never edited afterwards.
    The only mutation ever applied is the status flip to CANCELLED.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_status_date", "status", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Anonymous sales allowed
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Stock for every line was taken from this warehouse
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    tax = db.Column(db.Numeric(12, 2), nullable=False)
    total = db.Column(db.Numeric(12, 2), nullable=False)

    payment_method = db.Column(db.String(32), nullable=False)
    notes = db.Column(db.String(500), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_ACTIVE, index=True)
    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    # Cancellation audit trail
    cancelled_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    client = db.relationship("Client")
    user = db.relationship("User", foreign_keys=[user_id])
    warehouse = db.relationship("Warehouse")
    lines = db.relationship(
        "SaleLineItem",
        back_populates="sale",
        order_by="SaleLineItem.id",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "client_id": self.client_id,
            "client_name": self.client.full_name if self.client else None,
            "user_id": self.user_id,
            "user_username": self.user.username if self.user else None,
            "warehouse_id": self.warehouse_id,
            "subtotal": _money(self.subtotal),
            "tax": _money(self.tax),
            "total": _money(self.total),
            "payment_method": self.payment_method,
            "notes": self.notes,
            "status": self.status,
            "sale_date": to_utc_z(self.sale_date),
            "cancelled_by_user_id": self.cancelled_by_user_id,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class SaleLineItem(db.Model):
    """One product line of a sale; unit_price is a snapshot, not a live reference."""
    __tablename__ = "sale_line_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_line_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)

    sale = db.relationship("Sale", back_populates="lines")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_price": _money(self.unit_price),
            "total_price": _money(self.total_price),
        }
