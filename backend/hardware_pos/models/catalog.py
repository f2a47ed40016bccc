from __future__ import annotations

from ..extensions import db
from ..amounts import money_str, quantity_str
from ..time_utils import to_utc_z


CUSTOMER_TYPES = ("retail", "wholesale", "contractor")


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = (
        db.Index("ix_suppliers_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    contact_person = db.Column(db.String(200), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)
    payment_terms = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_person": self.contact_person,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "payment_terms": self.payment_terms,
            "notes": self.notes,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Catalog entry. Stock on hand lives in Inventory and is only ever changed
    by recording a stock movement.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("retail_price >= purchase_price", name="ck_products_retail_ge_purchase"),
        db.CheckConstraint(
            "wholesale_price IS NULL OR wholesale_price <= retail_price",
            name="ck_products_wholesale_le_retail",
        ),
        db.Index("ix_products_category", "category"),
        db.Index("ix_products_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False, unique=True, index=True)
    barcode = db.Column(db.String(64), nullable=True, unique=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(100), nullable=True)
    unit = db.Column(db.String(32), nullable=False, default="piece")

    purchase_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    retail_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    wholesale_price = db.Column(db.Numeric(12, 2), nullable=True)

    min_stock_level = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    reorder_quantity = db.Column(db.Numeric(12, 3), nullable=False, default=0)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    supplier = db.relationship("Supplier", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, *, include_stock: bool = False) -> dict:
        data = {
            "id": self.id,
            "sku": self.sku,
            "barcode": self.barcode,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "unit": self.unit,
            "purchase_price": money_str(self.purchase_price),
            "retail_price": money_str(self.retail_price),
            "wholesale_price": money_str(self.wholesale_price),
            "min_stock_level": quantity_str(self.min_stock_level),
            "reorder_quantity": quantity_str(self.reorder_quantity),
            "supplier_id": self.supplier_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_stock:
            data["current_stock"] = quantity_str(self.inventory.quantity if self.inventory else 0)
        return data


class Customer(db.Model):
    """
    Account customer. current_balance is derived from the customer's unpaid
    and partially paid sales and is never written from client input.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.CheckConstraint("credit_limit >= 0", name="ck_customers_credit_limit_nonneg"),
        db.Index("ix_customers_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    customer_type = db.Column(db.String(16), nullable=False, default="retail")
    phone = db.Column(db.String(32), nullable=True, index=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)

    credit_limit = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    current_balance = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "customer_type": self.customer_type,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "credit_limit": money_str(self.credit_limit),
            "current_balance": money_str(self.current_balance),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
