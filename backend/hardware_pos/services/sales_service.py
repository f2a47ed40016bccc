# Overview: Sale transaction manager; creates and deletes sales together with their stock movements.

# backend/hardware_pos/services/sales_service.py
"""
Sale write paths. Each public function is one database transaction.

create_sale:
- products must exist and be active, the customer (if any) must exist and be active
- inventory rows are locked, then requested quantity (summed per product) is
  checked against on-hand stock
- header, items and one 'sale' movement per item are written together
- walk-in or cash sales are settled at creation; other customer sales start pending

delete_sale:
- reverses every item's movements, drops payments and items with the header,
  and recomputes the customer's balance
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..amounts import ZERO, to_money, to_quantity, quantity_str
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Customer, Product, Sale, SaleItem
from ..permissions import Actor, Capability
from ..time_utils import utcnow
from ..validation import optional_text, parse_sale_lines, require_payment_method, require_payment_status
from . import inventory_service
from .concurrency import acquire_write_lock, lock_for_update, run_with_retry
from .payment_service import recompute_customer_balance
from .stock_movement_service import record_movement, reverse_movements_for_item


def format_sale_number(sale_id: int) -> str:
    return f"SAL-{sale_id:06d}"


def _load_active_products(product_ids) -> dict[int, Product]:
    wanted = sorted(set(product_ids))
    products = db.session.query(Product).filter(Product.id.in_(wanted)).all()
    by_id = {p.id: p for p in products}

    missing = [pid for pid in wanted if pid not in by_id]
    if missing:
        raise NotFoundError(
            f"Products not found: {', '.join(str(pid) for pid in missing)}",
            details={"missing_product_ids": missing},
        )
    inactive = [pid for pid in wanted if not by_id[pid].is_active]
    if inactive:
        raise ConflictError(
            f"Products are inactive: {', '.join(str(pid) for pid in inactive)}",
            details={"inactive_product_ids": inactive},
        )
    return by_id


def _load_active_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer not found", details={"customer_id": customer_id})
    if not customer.is_active:
        raise ConflictError("Customer is inactive", details={"customer_id": customer_id})
    return customer


def _check_stock(lines, products: dict[int, Product]) -> None:
    """
    Compare requested quantity per product against locked inventory rows.

    Lines naming the same product are summed before the comparison.
    """
    requested: dict[int, object] = {}
    for line in lines:
        requested[line.product_id] = requested.get(line.product_id, to_quantity(0)) + line.quantity

    rows = inventory_service.lock_inventory_rows(requested.keys())

    shortfalls = []
    for product_id in sorted(requested):
        available = to_quantity(rows[product_id].quantity)
        if requested[product_id] > available:
            shortfalls.append({
                "product_id": product_id,
                "sku": products[product_id].sku,
                "name": products[product_id].name,
                "available": quantity_str(available),
                "requested": quantity_str(requested[product_id]),
            })

    if shortfalls:
        first = shortfalls[0]
        raise ConflictError(
            f"Insufficient stock for product {first['sku']}. "
            f"Available: {first['available']}, Requested: {first['requested']}",
            details={"insufficient": shortfalls},
        )


def create_sale(
    actor: Actor,
    *,
    items,
    customer_id: int | None = None,
    payment_method: str = "cash",
    discount_amount=0,
    notes: str | None = None,
    sale_date: datetime | None = None,
) -> Sale:
    """Create a sale header, its items and their stock movements atomically."""
    actor.require(Capability.CREATE_SALE)

    lines = parse_sale_lines(items)
    payment_method = require_payment_method(payment_method or "cash")
    discount_amount = to_money(discount_amount, "discount_amount")
    if discount_amount < 0:
        raise ValidationError("discount_amount must be >= 0")
    subtotal = sum((line.line_total for line in lines), to_money(0))
    if discount_amount > subtotal:
        raise ValidationError("discount_amount cannot exceed the subtotal")
    total_amount = subtotal - discount_amount
    notes = optional_text(notes, "notes")

    def _op():
        acquire_write_lock()

        products = _load_active_products(line.product_id for line in lines)
        if customer_id is not None:
            _load_active_customer(customer_id)

        _check_stock(lines, products)

        settled_now = customer_id is None or payment_method == "cash"
        sale = Sale(
            customer_id=customer_id,
            cashier_id=actor.actor_id,
            sale_date=sale_date or utcnow(),
            subtotal=subtotal,
            discount_amount=discount_amount,
            total_amount=total_amount,
            payment_method=payment_method,
            payment_status="paid" if settled_now else "pending",
            amount_paid=total_amount if settled_now else ZERO,
            notes=notes,
        )
        db.session.add(sale)
        db.session.flush()
        sale.sale_number = format_sale_number(sale.id)

        for line in lines:
            item = SaleItem(
                sale_id=sale.id,
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                discount=line.discount,
                line_total=line.line_total,
            )
            db.session.add(item)
            db.session.flush()
            record_movement(
                product_id=line.product_id,
                movement_type="sale",
                quantity_change=-line.quantity,
                actor=actor,
                sale_item_id=item.id,
            )

        if customer_id is not None:
            recompute_customer_balance(customer_id)

        db.session.commit()
        current_app.logger.info(
            "Sale %s created by %s: %d items, total %s, status %s",
            sale.sale_number, actor.actor_id, len(lines), total_amount, sale.payment_status,
        )
        return sale

    return run_with_retry(_op)


def delete_sale(actor: Actor, sale_id: int) -> dict:
    """Delete a sale and restore the stock it consumed."""
    actor.require(Capability.DELETE_SALE)

    def _op():
        acquire_write_lock()
        sale = lock_for_update(db.session.query(Sale).filter(Sale.id == sale_id)).first()
        if sale is None:
            raise NotFoundError("Sale not found", details={"sale_id": sale_id})

        restored = []
        for item in sale.items:
            delta = reverse_movements_for_item(actor=actor, sale_item_id=item.id)
            restored.append({"product_id": item.product_id, "quantity": quantity_str(delta)})

        customer_id = sale.customer_id
        sale_number = sale.sale_number
        db.session.delete(sale)
        db.session.flush()

        if customer_id is not None:
            recompute_customer_balance(customer_id)

        db.session.commit()
        current_app.logger.info("Sale %s deleted by %s", sale_number, actor.actor_id)
        return {"sale_id": sale_id, "sale_number": sale_number, "restored": restored}

    return run_with_retry(_op)


def get_sale(sale_id: int) -> Sale:
    sale = (
        db.session.query(Sale)
        .options(selectinload(Sale.items).selectinload(SaleItem.product), selectinload(Sale.payments))
        .filter(Sale.id == sale_id)
        .first()
    )
    if sale is None:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    return sale


def sale_detail(sale: Sale) -> dict:
    """
    Fully hydrated sale: items with product, customer, payments.

    This snapshot is what receipt rendering consumes.
    """
    data = sale.to_dict()
    data["items"] = []
    for item in sale.items:
        row = item.to_dict()
        row["product"] = {
            "id": item.product.id,
            "sku": item.product.sku,
            "name": item.product.name,
            "unit": item.product.unit,
        }
        data["items"].append(row)
    data["customer"] = (
        {"id": sale.customer.id, "name": sale.customer.name, "phone": sale.customer.phone}
        if sale.customer
        else None
    )
    data["cashier"] = {"id": sale.cashier_id} if sale.cashier_id else None
    data["payments"] = [p.to_dict() for p in sale.payments]
    return data


def list_sales(
    *,
    customer_id: int | None = None,
    payment_status: str | None = None,
    payment_method: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[Sale], int]:
    query = db.session.query(Sale)
    if customer_id is not None:
        query = query.filter(Sale.customer_id == customer_id)
    if payment_status is not None:
        query = query.filter(Sale.payment_status == require_payment_status(payment_status))
    if payment_method is not None:
        query = query.filter(Sale.payment_method == require_payment_method(payment_method))
    if start is not None:
        query = query.filter(Sale.sale_date >= start)
    if end is not None:
        query = query.filter(Sale.sale_date <= end)

    total = query.count()
    sales = (
        query.order_by(Sale.sale_date.desc(), Sale.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return sales, total
