# Overview: Purchase transaction manager; receives supplier stock through purchase movements.

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..amounts import to_money, quantity_str
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Product, Purchase, PurchaseItem, Supplier
from ..permissions import Actor, Capability
from ..time_utils import utcnow
from ..validation import optional_text, parse_purchase_lines, require_payment_method, require_payment_status
from .concurrency import acquire_write_lock, lock_for_update, run_with_retry
from .stock_movement_service import record_movement, reverse_movements_for_item


def format_purchase_number(purchase_id: int) -> str:
    return f"PUR-{purchase_id:06d}"


def _load_active_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError("Supplier not found", details={"supplier_id": supplier_id})
    if not supplier.is_active:
        raise ConflictError("Supplier is inactive", details={"supplier_id": supplier_id})
    return supplier


def _check_products(product_ids) -> None:
    wanted = sorted(set(product_ids))
    found = {
        p.id: p for p in db.session.query(Product).filter(Product.id.in_(wanted)).all()
    }
    missing = [pid for pid in wanted if pid not in found]
    if missing:
        raise NotFoundError(
            f"Products not found: {', '.join(str(pid) for pid in missing)}",
            details={"missing_product_ids": missing},
        )
    inactive = [pid for pid in wanted if not found[pid].is_active]
    if inactive:
        raise ConflictError(
            f"Products are inactive: {', '.join(str(pid) for pid in inactive)}",
            details={"inactive_product_ids": inactive},
        )


def create_purchase(
    actor: Actor,
    *,
    supplier_id: int,
    items,
    payment_method: str = "cash",
    payment_status: str = "pending",
    discount_amount=0,
    notes: str | None = None,
    purchase_date: datetime | None = None,
) -> Purchase:
    """Record goods received from a supplier; each item adds stock."""
    actor.require(Capability.MANAGE_PURCHASES)

    lines = parse_purchase_lines(items)
    payment_method = require_payment_method(payment_method or "cash")
    payment_status = require_payment_status(payment_status or "pending")
    discount_amount = to_money(discount_amount, "discount_amount")
    if discount_amount < 0:
        raise ValidationError("discount_amount must be >= 0")
    subtotal = sum((line.line_total for line in lines), to_money(0))
    if discount_amount > subtotal:
        raise ValidationError("discount_amount cannot exceed the subtotal")
    notes = optional_text(notes, "notes")

    def _op():
        acquire_write_lock()
        _load_active_supplier(supplier_id)
        _check_products(line.product_id for line in lines)

        purchase = Purchase(
            supplier_id=supplier_id,
            purchase_date=purchase_date or utcnow(),
            subtotal=subtotal,
            discount_amount=discount_amount,
            total_amount=subtotal - discount_amount,
            payment_method=payment_method,
            payment_status=payment_status,
            notes=notes,
            created_by=actor.actor_id,
        )
        db.session.add(purchase)
        db.session.flush()
        purchase.purchase_number = format_purchase_number(purchase.id)

        for line in lines:
            item = PurchaseItem(
                purchase_id=purchase.id,
                product_id=line.product_id,
                quantity=line.quantity,
                unit_cost=line.unit_price,
                line_total=line.line_total,
            )
            db.session.add(item)
            db.session.flush()
            record_movement(
                product_id=line.product_id,
                movement_type="purchase",
                quantity_change=line.quantity,
                actor=actor,
                purchase_item_id=item.id,
            )

        db.session.commit()
        current_app.logger.info(
            "Purchase %s created by %s: %d items from supplier %s",
            purchase.purchase_number, actor.actor_id, len(lines), supplier_id,
        )
        return purchase

    return run_with_retry(_op)


def update_purchase_payment_status(actor: Actor, purchase_id: int, payment_status: str) -> Purchase:
    actor.require(Capability.MANAGE_PURCHASES)
    payment_status = require_payment_status(payment_status)

    def _op():
        acquire_write_lock()
        purchase = lock_for_update(db.session.query(Purchase).filter(Purchase.id == purchase_id)).first()
        if purchase is None:
            raise NotFoundError("Purchase not found", details={"purchase_id": purchase_id})
        purchase.payment_status = payment_status
        db.session.commit()
        return purchase

    return run_with_retry(_op)


def delete_purchase(actor: Actor, purchase_id: int) -> dict:
    """
    Delete a purchase and take its stock back out.

    Refused when the stock has already been sold on and the reversal would
    leave a product below zero.
    """
    actor.require(Capability.MANAGE_PURCHASES)

    def _op():
        acquire_write_lock()
        purchase = lock_for_update(db.session.query(Purchase).filter(Purchase.id == purchase_id)).first()
        if purchase is None:
            raise NotFoundError("Purchase not found", details={"purchase_id": purchase_id})

        removed = []
        for item in purchase.items:
            delta = reverse_movements_for_item(actor=actor, purchase_item_id=item.id, allow_negative=False)
            removed.append({"product_id": item.product_id, "quantity": quantity_str(delta)})

        purchase_number = purchase.purchase_number
        db.session.delete(purchase)
        db.session.commit()
        current_app.logger.info("Purchase %s deleted by %s", purchase_number, actor.actor_id)
        return {"purchase_id": purchase_id, "purchase_number": purchase_number, "removed": removed}

    return run_with_retry(_op)


def get_purchase(purchase_id: int) -> Purchase:
    purchase = (
        db.session.query(Purchase)
        .options(selectinload(Purchase.items).selectinload(PurchaseItem.product))
        .filter(Purchase.id == purchase_id)
        .first()
    )
    if purchase is None:
        raise NotFoundError("Purchase not found", details={"purchase_id": purchase_id})
    return purchase


def purchase_detail(purchase: Purchase) -> dict:
    data = purchase.to_dict()
    data["supplier"] = {"id": purchase.supplier.id, "name": purchase.supplier.name}
    data["items"] = []
    for item in purchase.items:
        row = item.to_dict()
        row["product"] = {"id": item.product.id, "sku": item.product.sku, "name": item.product.name}
        data["items"].append(row)
    return data


def list_purchases(
    *,
    supplier_id: int | None = None,
    payment_status: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[Purchase], int]:
    query = db.session.query(Purchase)
    if supplier_id is not None:
        query = query.filter(Purchase.supplier_id == supplier_id)
    if payment_status is not None:
        query = query.filter(Purchase.payment_status == require_payment_status(payment_status))
    if start is not None:
        query = query.filter(Purchase.purchase_date >= start)
    if end is not None:
        query = query.filter(Purchase.purchase_date <= end)

    total = query.count()
    purchases = (
        query.order_by(Purchase.purchase_date.desc(), Purchase.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return purchases, total
