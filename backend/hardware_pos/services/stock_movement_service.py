# Overview: Stock movement ledger; records and reverses signed inventory deltas.

# backend/hardware_pos/services/stock_movement_service.py
"""
Every change to on-hand stock is a StockMovement row plus a matching
inventory_service.apply_delta() call in the same transaction.

Movement shapes:
- sale:       quantity_change < 0, sale_item_id set
- purchase:   quantity_change > 0, purchase_item_id set
- adjustment: any non-zero sign, adjustment_reason set, no source item

Adjustment policy: a negative adjustment may not leave stock below zero
unless the reason is "correction".
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..amounts import to_quantity, quantity_str
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import ADJUSTMENT_REASONS, MOVEMENT_TYPES, Product, StockMovement
from ..permissions import Actor, Capability
from . import inventory_service
from .concurrency import acquire_write_lock, lock_for_update, run_with_retry


CORRECTION_REASON = "correction"


def _validate_shape(
    movement_type: str,
    quantity_change: Decimal,
    reason: str | None,
    sale_item_id: int | None,
    purchase_item_id: int | None,
) -> None:
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(
            f"movement_type must be one of: {', '.join(MOVEMENT_TYPES)}",
        )
    if quantity_change == 0:
        raise ValidationError("quantity_change must be non-zero")

    if movement_type == "adjustment":
        if not reason:
            raise ValidationError("adjustment_reason is required for adjustments")
        if reason not in ADJUSTMENT_REASONS:
            raise ValidationError(
                f"adjustment_reason must be one of: {', '.join(ADJUSTMENT_REASONS)}",
            )
        if sale_item_id is not None or purchase_item_id is not None:
            raise ValidationError("Adjustments cannot reference a sale or purchase item")
        return

    if reason:
        raise ValidationError("adjustment_reason is only allowed on adjustments")
    if movement_type == "sale":
        if sale_item_id is None or purchase_item_id is not None:
            raise ValidationError("Sale movements must reference exactly one sale item")
        if quantity_change > 0:
            raise ValidationError("Sale movements must decrease stock")
    if movement_type == "purchase":
        if purchase_item_id is None or sale_item_id is not None:
            raise ValidationError("Purchase movements must reference exactly one purchase item")
        if quantity_change < 0:
            raise ValidationError("Purchase movements must increase stock")


def record_movement(
    *,
    product_id: int,
    movement_type: str,
    quantity_change,
    actor: Actor,
    reason: str | None = None,
    sale_item_id: int | None = None,
    purchase_item_id: int | None = None,
    notes: str | None = None,
) -> StockMovement:
    """
    Insert one movement and fold it into the product's inventory row.

    Runs inside the caller's transaction (flush only). The caller commits.
    """
    quantity_change = to_quantity(quantity_change, "quantity_change")
    _validate_shape(movement_type, quantity_change, reason, sale_item_id, purchase_item_id)

    if movement_type == "adjustment" and quantity_change < 0 and reason != CORRECTION_REASON:
        on_hand = inventory_service.get_quantity(product_id, lock=True)
        resulting = on_hand + quantity_change
        if resulting < 0:
            raise ConflictError(
                f"Adjustment would leave negative stock. Available: {on_hand}, Change: {quantity_change}",
                details={
                    "product_id": product_id,
                    "available": quantity_str(on_hand),
                    "quantity_change": quantity_str(quantity_change),
                    "reason": reason,
                },
            )

    movement = StockMovement(
        product_id=product_id,
        movement_type=movement_type,
        quantity_change=quantity_change,
        sale_item_id=sale_item_id,
        purchase_item_id=purchase_item_id,
        adjustment_reason=reason if movement_type == "adjustment" else None,
        notes=notes,
        created_by=actor.actor_id,
    )
    db.session.add(movement)
    db.session.flush()

    inventory_service.apply_delta(product_id, quantity_change, actor_id=actor.actor_id)
    return movement


def reverse_movements_for_item(
    *,
    actor: Actor,
    sale_item_id: int | None = None,
    purchase_item_id: int | None = None,
    allow_negative: bool = True,
) -> Decimal:
    """
    Delete the movements produced by one sale or purchase item and undo their
    effect on inventory. Returns the delta applied to inventory.

    Runs inside the caller's transaction (flush only).
    """
    if (sale_item_id is None) == (purchase_item_id is None):
        raise ValidationError("Exactly one of sale_item_id or purchase_item_id is required")

    query = db.session.query(StockMovement)
    if sale_item_id is not None:
        query = query.filter(StockMovement.sale_item_id == sale_item_id)
    else:
        query = query.filter(StockMovement.purchase_item_id == purchase_item_id)
    movements = query.order_by(StockMovement.id.asc()).all()

    per_product: dict[int, Decimal] = {}
    for movement in movements:
        per_product[movement.product_id] = (
            per_product.get(movement.product_id, to_quantity(0)) - to_quantity(movement.quantity_change)
        )

    total = to_quantity(0)
    for product_id in sorted(per_product):
        delta = per_product[product_id]
        if not allow_negative and delta < 0:
            on_hand = inventory_service.get_quantity(product_id, lock=True)
            if on_hand + delta < 0:
                raise ConflictError(
                    "Reversal would leave negative stock",
                    details={
                        "product_id": product_id,
                        "available": quantity_str(on_hand),
                        "quantity_change": quantity_str(delta),
                    },
                )
        total += delta

    for movement in movements:
        db.session.delete(movement)
    db.session.flush()

    for product_id in sorted(per_product):
        if per_product[product_id] != 0:
            inventory_service.apply_delta(product_id, per_product[product_id], actor_id=actor.actor_id)
    return total


def create_adjustment(
    actor: Actor,
    *,
    product_id: int,
    quantity_change,
    reason: str | None,
    notes: str | None = None,
) -> StockMovement:
    """Record a manual stock adjustment as its own transaction."""
    actor.require(Capability.ADJUST_STOCK)
    quantity_change = to_quantity(quantity_change, "quantity_change")

    def _op():
        acquire_write_lock()
        product = lock_for_update(db.session.query(Product).filter(Product.id == product_id)).first()
        if product is None:
            raise NotFoundError("Product not found", details={"product_id": product_id})
        if not product.is_active:
            raise ConflictError("Cannot adjust stock of an inactive product", details={"product_id": product_id})

        movement = record_movement(
            product_id=product_id,
            movement_type="adjustment",
            quantity_change=quantity_change,
            actor=actor,
            reason=reason,
            notes=notes,
        )
        db.session.commit()
        current_app.logger.info(
            "Stock adjustment %s on product %s: %s (%s) by %s",
            movement.id, product_id, quantity_change, reason, actor.actor_id,
        )
        return movement

    return run_with_retry(_op)


def get_movement(movement_id: int) -> StockMovement:
    movement = db.session.get(StockMovement, movement_id)
    if movement is None:
        raise NotFoundError("Stock movement not found", details={"movement_id": movement_id})
    return movement


def list_movements(
    *,
    product_id: int | None = None,
    movement_type: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[StockMovement], int]:
    """Newest first. Returns (movements, total)."""
    if movement_type is not None and movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"movement_type must be one of: {', '.join(MOVEMENT_TYPES)}")

    query = db.session.query(StockMovement)
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    if movement_type is not None:
        query = query.filter(StockMovement.movement_type == movement_type)
    if start is not None:
        query = query.filter(StockMovement.created_at >= start)
    if end is not None:
        query = query.filter(StockMovement.created_at <= end)

    total = query.count()
    movements = (
        query.order_by(StockMovement.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return movements, total
