from __future__ import annotations

from ..extensions import db
from ..amounts import quantity_str
from ..time_utils import to_utc_z


MOVEMENT_TYPES = ("purchase", "sale", "adjustment")
ADJUSTMENT_REASONS = ("expired", "damaged", "lost", "theft", "correction", "breakage")


class Inventory(db.Model):
    """
    Current on-hand quantity snapshot, one row per product.

    Invariant: quantity == SUM(stock_movements.quantity_change) for the product.
    Only inventory_service.apply_delta writes to this table.
    """
    __tablename__ = "inventory"

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), primary_key=True)
    quantity = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    last_updated = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_by = db.Column(db.String(64), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship(
        "Product",
        backref=db.backref("inventory", uselist=False, lazy=True, cascade="all, delete-orphan"),
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": quantity_str(self.quantity),
            "last_updated": to_utc_z(self.last_updated),
            "updated_by": self.updated_by,
        }


class StockMovement(db.Model):
    """
    Audit entry for every inventory-affecting event.

    Rows are never edited. They are only deleted together with the sale or
    purchase item that produced them, which reverses their effect.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint("quantity_change <> 0", name="ck_stock_movements_nonzero"),
        db.CheckConstraint(
            "(movement_type = 'sale' AND sale_item_id IS NOT NULL AND purchase_item_id IS NULL"
            " AND adjustment_reason IS NULL)"
            " OR (movement_type = 'purchase' AND purchase_item_id IS NOT NULL AND sale_item_id IS NULL"
            " AND adjustment_reason IS NULL)"
            " OR (movement_type = 'adjustment' AND sale_item_id IS NULL AND purchase_item_id IS NULL"
            " AND adjustment_reason IS NOT NULL)",
            name="ck_stock_movements_source",
        ),
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    movement_type = db.Column(db.String(16), nullable=False, index=True)
    quantity_change = db.Column(db.Numeric(12, 3), nullable=False)

    sale_item_id = db.Column(db.Integer, db.ForeignKey("sale_items.id"), nullable=True, index=True)
    purchase_item_id = db.Column(db.Integer, db.ForeignKey("purchase_items.id"), nullable=True, index=True)
    adjustment_reason = db.Column(db.String(16), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "movement_type": self.movement_type,
            "quantity_change": quantity_str(self.quantity_change),
            "sale_item_id": self.sale_item_id,
            "purchase_item_id": self.purchase_item_id,
            "adjustment_reason": self.adjustment_reason,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
