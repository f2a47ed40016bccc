from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..amounts import money_str, quantity_str, to_money
from ..time_utils import to_utc_z, utcnow


PAYMENT_METHODS = ("cash", "mpesa", "card", "bank_transfer")
PAYMENT_STATUSES = ("pending", "partial", "paid")


class Sale(db.Model):
    """
    Sale header.

    payment_status/amount_paid are fixed at creation for walk-in and cash
    sales; for credit sales they are recomputed from customer_payments.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("discount_amount >= 0", name="ck_sales_discount_nonneg"),
        db.CheckConstraint("amount_paid >= 0", name="ck_sales_amount_paid_nonneg"),
        db.Index("ix_sales_customer_status", "customer_id", "payment_status"),
        db.Index("ix_sales_sale_date", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_number = db.Column(db.String(32), nullable=True, unique=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)
    cashier_id = db.Column(db.String(64), nullable=True)
    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    payment_method = db.Column(db.String(16), nullable=False, default="cash")
    payment_status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    amount_paid = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
    )
    payments = db.relationship(
        "CustomerPayment",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="CustomerPayment.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_credit_sale(self) -> bool:
        return self.customer_id is not None and self.payment_method != "cash"

    @property
    def remaining_balance(self) -> Decimal:
        return to_money(self.total_amount) - to_money(self.amount_paid)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_number": self.sale_number,
            "customer_id": self.customer_id,
            "cashier_id": self.cashier_id,
            "sale_date": to_utc_z(self.sale_date),
            "subtotal": money_str(self.subtotal),
            "discount_amount": money_str(self.discount_amount),
            "total_amount": money_str(self.total_amount),
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "amount_paid": money_str(self.amount_paid),
            "remaining_balance": money_str(self.remaining_balance),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class SaleItem(db.Model):
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_pos"),
        db.CheckConstraint("unit_price >= 0", name="ck_sale_items_price_nonneg"),
        db.CheckConstraint("discount >= 0", name="ck_sale_items_discount_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    line_total = db.Column(db.Numeric(12, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "quantity": quantity_str(self.quantity),
            "unit_price": money_str(self.unit_price),
            "discount": money_str(self.discount),
            "line_total": money_str(self.line_total),
        }


class CustomerPayment(db.Model):
    """Installment paid by a customer against one credit sale."""
    __tablename__ = "customer_payments"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_customer_payments_amount_pos"),
        db.Index("ix_customer_payments_customer_date", "customer_id", "payment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    # Copied from the sale at insert time
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_method = db.Column(db.String(16), nullable=False, default="cash")
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    reference_number = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    recorded_by = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", back_populates="payments")
    customer = db.relationship("Customer")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "customer_id": self.customer_id,
            "amount": money_str(self.amount),
            "payment_method": self.payment_method,
            "payment_date": to_utc_z(self.payment_date),
            "reference_number": self.reference_number,
            "notes": self.notes,
            "recorded_by": self.recorded_by,
            "created_at": to_utc_z(self.created_at),
        }
