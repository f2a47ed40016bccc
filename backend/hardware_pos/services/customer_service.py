# Overview: Customer master data; balances are owned by the credit settlement engine.

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..errors import ConflictError, NotFoundError
from ..models import Customer, CustomerPayment, Sale
from ..permissions import Actor, Capability
from ..validation import ModelValidationPolicy, enforce_rules_customer, validate_payload
from .concurrency import run_with_retry

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "customer_type", "phone", "email", "address", "credit_limit", "is_active"},
    required_on_create={"name"},
    forbidden_fields={
        "current_balance": "current_balance is derived from sales and payments and cannot be set",
    },
)


def _require_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer not found", details={"customer_id": customer_id})
    return customer


def create_customer(actor: Actor, payload: dict) -> Customer:
    actor.require(Capability.MANAGE_CATALOG)
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    enforce_rules_customer(patch)

    def _op():
        customer = Customer(current_balance=0, **patch)
        db.session.add(customer)
        db.session.commit()
        current_app.logger.info("Customer %s created by %s", customer.id, actor.actor_id)
        return customer

    return run_with_retry(_op)


def update_customer(actor: Actor, customer_id: int, payload: dict) -> Customer:
    actor.require(Capability.MANAGE_CATALOG)
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    enforce_rules_customer(patch)

    def _op():
        customer = _require_customer(customer_id)
        for key, value in patch.items():
            setattr(customer, key, value)
        db.session.commit()
        return customer

    return run_with_retry(_op)


def delete_customer(actor: Actor, customer_id: int) -> None:
    """Only customers without sales or payments can be removed."""
    actor.require(Capability.MANAGE_CATALOG)

    def _op():
        customer = _require_customer(customer_id)
        sales = db.session.query(Sale.id).filter(Sale.customer_id == customer_id).count()
        payments = db.session.query(CustomerPayment.id).filter(CustomerPayment.customer_id == customer_id).count()
        if sales or payments:
            raise ConflictError(
                "Customer has sales history and cannot be deleted; deactivate instead",
                details={"customer_id": customer_id, "sales": sales, "payments": payments},
            )
        db.session.delete(customer)
        db.session.commit()
        current_app.logger.info("Customer %s deleted by %s", customer_id, actor.actor_id)

    run_with_retry(_op)


def get_customer(customer_id: int) -> Customer:
    return _require_customer(customer_id)


def list_customers(
    *,
    search: str | None = None,
    customer_type: str | None = None,
    is_active: bool | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[Customer], int]:
    query = db.session.query(Customer)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            Customer.name.ilike(pattern),
            Customer.phone.ilike(pattern),
            Customer.email.ilike(pattern),
        ))
    if customer_type:
        enforce_rules_customer({"customer_type": customer_type})
        query = query.filter(Customer.customer_type == customer_type)
    if is_active is not None:
        query = query.filter(Customer.is_active.is_(is_active))

    total = query.count()
    customers = (
        query.order_by(Customer.name.asc(), Customer.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return customers, total
