# Overview: Supplier master data.

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..errors import ConflictError, NotFoundError
from ..models import Product, Purchase, Supplier
from ..permissions import Actor, Capability
from ..validation import ModelValidationPolicy, validate_payload
from .concurrency import run_with_retry

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "contact_person", "phone", "email", "address",
        "payment_terms", "notes", "is_active",
    },
    required_on_create={"name"},
)


def _require_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError("Supplier not found", details={"supplier_id": supplier_id})
    return supplier


def create_supplier(actor: Actor, payload: dict) -> Supplier:
    actor.require(Capability.MANAGE_CATALOG)
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)

    def _op():
        supplier = Supplier(**patch)
        db.session.add(supplier)
        db.session.commit()
        return supplier

    return run_with_retry(_op)


def update_supplier(actor: Actor, supplier_id: int, payload: dict) -> Supplier:
    actor.require(Capability.MANAGE_CATALOG)
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)

    def _op():
        supplier = _require_supplier(supplier_id)
        for key, value in patch.items():
            setattr(supplier, key, value)
        db.session.commit()
        return supplier

    return run_with_retry(_op)


def delete_supplier(actor: Actor, supplier_id: int) -> None:
    actor.require(Capability.MANAGE_CATALOG)

    def _op():
        supplier = _require_supplier(supplier_id)
        products = db.session.query(Product.id).filter(Product.supplier_id == supplier_id).count()
        purchases = db.session.query(Purchase.id).filter(Purchase.supplier_id == supplier_id).count()
        if products or purchases:
            raise ConflictError(
                "Supplier is referenced by products or purchases and cannot be deleted; deactivate instead",
                details={"supplier_id": supplier_id, "products": products, "purchases": purchases},
            )
        db.session.delete(supplier)
        db.session.commit()
        current_app.logger.info("Supplier %s deleted by %s", supplier_id, actor.actor_id)

    run_with_retry(_op)


def get_supplier(supplier_id: int) -> Supplier:
    return _require_supplier(supplier_id)


def list_supplier_products(supplier_id: int) -> list[Product]:
    _require_supplier(supplier_id)
    return (
        db.session.query(Product)
        .filter(Product.supplier_id == supplier_id)
        .order_by(Product.name.asc())
        .all()
    )


def list_suppliers(
    *,
    search: str | None = None,
    is_active: bool | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[Supplier], int]:
    query = db.session.query(Supplier)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            Supplier.name.ilike(pattern),
            Supplier.contact_person.ilike(pattern),
            Supplier.phone.ilike(pattern),
        ))
    if is_active is not None:
        query = query.filter(Supplier.is_active.is_(is_active))

    total = query.count()
    suppliers = (
        query.order_by(Supplier.name.asc(), Supplier.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return suppliers, total
