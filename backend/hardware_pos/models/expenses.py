from __future__ import annotations

from ..extensions import db
from ..amounts import money_str
from ..time_utils import to_utc_z


class Expense(db.Model):
    """Operating expense. Not part of the stock or credit ledger."""
    __tablename__ = "expenses"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_expenses_amount_pos"),
        db.Index("ix_expenses_category_date", "category", "expense_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    expense_date = db.Column(db.Date, nullable=False)
    payment_method = db.Column(db.String(16), nullable=False, default="cash")
    reference_number = db.Column(db.String(100), nullable=True)
    recorded_by = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category": self.category,
            "description": self.description,
            "amount": money_str(self.amount),
            "expense_date": self.expense_date.isoformat() if self.expense_date else None,
            "payment_method": self.payment_method,
            "reference_number": self.reference_number,
            "recorded_by": self.recorded_by,
            "created_at": to_utc_z(self.created_at),
        }
