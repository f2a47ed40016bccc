# Overview: Credit settlement engine; customer payments, sale payment status and customer balances.

# backend/hardware_pos/services/payment_service.py
"""
Customer Payment Settlement

Credit sales (customer attached, non-cash method) start pending and are paid
off through CustomerPayment rows. After every payment insert or delete:

- sale.amount_paid = SUM(payments for the sale)
- sale.payment_status = paid if amount_paid >= total_amount,
                        partial if amount_paid > 0, else pending
- customer.current_balance = SUM(total_amount - amount_paid) over the
  customer's pending and partial sales

Both aggregates are recomputed from the rows every time, never patched by a
delta, so any earlier drift is repaired by the next write.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..amounts import ZERO, to_money, money_str
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Customer, CustomerPayment, Sale
from ..permissions import Actor, Capability
from ..time_utils import to_utc_z, utcnow
from ..validation import optional_text, require_payment_method
from .concurrency import acquire_write_lock, lock_for_update, run_with_retry


OPEN_STATUSES = ("pending", "partial")


def derive_payment_status(amount_paid: Decimal, total_amount: Decimal) -> str:
    if amount_paid >= total_amount:
        return "paid"
    if amount_paid > 0:
        return "partial"
    return "pending"


def recompute_sale_payment(sale: Sale) -> Sale:
    """
    Re-derive amount_paid and payment_status of a credit sale from its payments.

    Sales settled at creation (walk-in or cash) keep their fixed values.
    Caller owns the transaction.
    """
    if not sale.is_credit_sale:
        return sale
    paid = db.session.query(
        func.coalesce(func.sum(CustomerPayment.amount), 0)
    ).filter(CustomerPayment.sale_id == sale.id).scalar()
    sale.amount_paid = to_money(paid)
    sale.payment_status = derive_payment_status(to_money(paid), to_money(sale.total_amount))
    db.session.flush()
    return sale


def compute_customer_balance(customer_id: int) -> Decimal:
    owed = db.session.query(
        func.coalesce(func.sum(Sale.total_amount - Sale.amount_paid), 0)
    ).filter(
        Sale.customer_id == customer_id,
        Sale.payment_status.in_(OPEN_STATUSES),
    ).scalar()
    return to_money(owed)


def recompute_customer_balance(customer_id: int) -> Customer | None:
    """Overwrite customer.current_balance with the sum over open sales. Caller commits."""
    customer = lock_for_update(db.session.query(Customer).filter(Customer.id == customer_id)).first()
    if customer is None:
        return None
    customer.current_balance = compute_customer_balance(customer_id)
    db.session.flush()
    return customer


def _lock_sale(sale_id: int) -> Sale:
    sale = lock_for_update(db.session.query(Sale).filter(Sale.id == sale_id)).first()
    if sale is None:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    return sale


def record_payment(
    actor: Actor,
    *,
    sale_id: int,
    amount,
    payment_method: str = "cash",
    reference_number: str | None = None,
    notes: str | None = None,
    payment_date: datetime | None = None,
) -> CustomerPayment:
    """Apply a customer payment to a credit sale and re-derive the aggregates."""
    actor.require(Capability.RECORD_PAYMENT)

    amount = to_money(amount, "amount")
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than 0")
    payment_method = require_payment_method(payment_method or "cash")
    reference_number = optional_text(reference_number, "reference_number", 100)
    notes = optional_text(notes, "notes")

    def _op():
        acquire_write_lock()
        sale = _lock_sale(sale_id)

        if sale.customer_id is None:
            raise ConflictError(
                "Cannot record a payment for a sale without a customer",
                details={"sale_id": sale_id},
            )
        if not sale.is_credit_sale:
            raise ConflictError(
                "Sale was settled in cash at the counter",
                details={"sale_id": sale_id, "remaining_balance": money_str(sale.remaining_balance)},
            )

        remaining = sale.remaining_balance
        if amount > remaining:
            raise ConflictError(
                f"Payment amount ({amount}) exceeds remaining balance ({remaining})",
                details={
                    "sale_id": sale_id,
                    "amount": money_str(amount),
                    "remaining_balance": money_str(remaining),
                },
            )

        payment = CustomerPayment(
            sale_id=sale.id,
            customer_id=sale.customer_id,
            amount=amount,
            payment_method=payment_method,
            payment_date=payment_date or utcnow(),
            reference_number=reference_number,
            notes=notes,
            recorded_by=actor.actor_id,
        )
        db.session.add(payment)
        db.session.flush()

        recompute_sale_payment(sale)
        recompute_customer_balance(sale.customer_id)

        db.session.commit()
        current_app.logger.info(
            "Payment %s of %s recorded on sale %s by %s",
            payment.id, amount, sale.sale_number, actor.actor_id,
        )
        return payment

    return run_with_retry(_op)


def delete_payment(actor: Actor, payment_id: int) -> dict:
    """Remove a payment and re-derive the sale and customer aggregates."""
    actor.require(Capability.DELETE_PAYMENT)

    def _op():
        acquire_write_lock()
        payment = db.session.get(CustomerPayment, payment_id)
        if payment is None:
            raise NotFoundError("Payment not found", details={"payment_id": payment_id})

        sale = _lock_sale(payment.sale_id)
        customer_id = payment.customer_id
        sale.payments.remove(payment)
        db.session.flush()

        recompute_sale_payment(sale)
        recompute_customer_balance(customer_id)

        db.session.commit()
        current_app.logger.info("Payment %s deleted by %s", payment_id, actor.actor_id)
        return {"payment_id": payment_id, "sale_id": sale.id}

    return run_with_retry(_op)


def get_payment(payment_id: int) -> CustomerPayment:
    payment = db.session.get(CustomerPayment, payment_id)
    if payment is None:
        raise NotFoundError("Payment not found", details={"payment_id": payment_id})
    return payment


def get_sale_payment_summary(sale_id: int) -> dict:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    return {
        "sale_id": sale.id,
        "sale_number": sale.sale_number,
        "customer_id": sale.customer_id,
        "total_amount": money_str(sale.total_amount),
        "amount_paid": money_str(sale.amount_paid),
        "remaining_balance": money_str(sale.remaining_balance),
        "payment_status": sale.payment_status,
        "payments": [p.to_dict() for p in sale.payments],
    }


def list_payments(
    *,
    customer_id: int | None = None,
    sale_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[CustomerPayment], int]:
    query = db.session.query(CustomerPayment)
    if customer_id is not None:
        query = query.filter(CustomerPayment.customer_id == customer_id)
    if sale_id is not None:
        query = query.filter(CustomerPayment.sale_id == sale_id)
    if start is not None:
        query = query.filter(CustomerPayment.payment_date >= start)
    if end is not None:
        query = query.filter(CustomerPayment.payment_date <= end)

    total = query.count()
    payments = (
        query.order_by(CustomerPayment.payment_date.desc(), CustomerPayment.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return payments, total


def get_customer_outstanding(customer_id: int) -> dict:
    """Read-only projection of what a customer owes and on which sales."""
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer not found", details={"customer_id": customer_id})

    sales = (
        db.session.query(Sale)
        .filter(Sale.customer_id == customer_id, Sale.payment_status.in_(OPEN_STATUSES))
        .order_by(Sale.sale_date.asc(), Sale.id.asc())
        .all()
    )
    current_balance = to_money(customer.current_balance)
    credit_limit = to_money(customer.credit_limit)
    return {
        "customer": {
            "id": customer.id,
            "name": customer.name,
            "phone": customer.phone,
            "credit_limit": money_str(credit_limit),
            "current_balance": money_str(current_balance),
            "available_credit": money_str(credit_limit - current_balance),
        },
        "unpaid_sales": [
            {
                "id": sale.id,
                "sale_number": sale.sale_number,
                "sale_date": to_utc_z(sale.sale_date),
                "total_amount": money_str(sale.total_amount),
                "amount_paid": money_str(sale.amount_paid),
                "remaining_balance": money_str(sale.remaining_balance),
                "payment_status": sale.payment_status,
            }
            for sale in sales
        ],
        "total_outstanding": money_str(sum((s.remaining_balance for s in sales), ZERO)),
    }


def recalculate_all_balances() -> dict:
    """
    Re-derive every credit sale and every customer balance.
    Returns counts of rows whose stored value changed. Runs as one transaction.
    """
    def _op():
        acquire_write_lock()
        sales_fixed = 0
        for sale in db.session.query(Sale).filter(Sale.customer_id.isnot(None)).all():
            before = (to_money(sale.amount_paid), sale.payment_status)
            recompute_sale_payment(sale)
            if (to_money(sale.amount_paid), sale.payment_status) != before:
                sales_fixed += 1

        customers_fixed = 0
        for customer in db.session.query(Customer).all():
            before = to_money(customer.current_balance)
            recompute_customer_balance(customer.id)
            if to_money(customer.current_balance) != before:
                customers_fixed += 1

        db.session.commit()
        return {"sales_fixed": sales_fixed, "customers_fixed": customers_fixed}

    return run_with_retry(_op)


def find_balance_drift() -> list[dict]:
    """Customers and credit sales whose stored aggregates disagree with their source rows."""
    drift = []
    for sale in db.session.query(Sale).filter(Sale.customer_id.isnot(None)).all():
        if not sale.is_credit_sale:
            continue
        paid = db.session.query(
            func.coalesce(func.sum(CustomerPayment.amount), 0)
        ).filter(CustomerPayment.sale_id == sale.id).scalar()
        if to_money(paid) != to_money(sale.amount_paid):
            drift.append({
                "kind": "sale",
                "id": sale.id,
                "stored": money_str(sale.amount_paid),
                "expected": money_str(paid),
            })
    for customer in db.session.query(Customer).all():
        expected = compute_customer_balance(customer.id)
        if expected != to_money(customer.current_balance):
            drift.append({
                "kind": "customer",
                "id": customer.id,
                "stored": money_str(customer.current_balance),
                "expected": money_str(expected),
            })
    return drift
