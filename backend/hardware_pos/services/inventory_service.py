# Overview: Inventory aggregator; the only code path that writes Inventory rows.

# backend/hardware_pos/services/inventory_service.py
"""
Inventory invariants (authoritative)

- One Inventory row per product, created with quantity 0 alongside the product.
- quantity == SUM(stock_movements.quantity_change) for that product after every
  committed operation.
- apply_delta() runs inside the caller's transaction and never commits; the
  movement insert/delete and the aggregate update commit or roll back together.
- Rows are locked FOR UPDATE before they are changed, in ascending product id
  order when several products are involved.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func, or_

from ..extensions import db
from ..amounts import ZERO, to_money, to_quantity, money_str, quantity_str
from ..errors import NotFoundError
from ..models import Inventory, Product, StockMovement
from ..time_utils import to_utc_z, utcnow
from .concurrency import lock_for_update


def _inventory_query(product_id: int, *, lock: bool):
    query = db.session.query(Inventory).filter(Inventory.product_id == product_id)
    if lock:
        query = lock_for_update(query)
    return query


def open_inventory(product_id: int, *, actor_id: str | None) -> Inventory:
    """Create the zero-quantity row for a new product. Caller owns the transaction."""
    row = Inventory(product_id=product_id, quantity=ZERO, last_updated=utcnow(), updated_by=actor_id)
    db.session.add(row)
    db.session.flush()
    return row


def apply_delta(product_id: int, delta: Decimal, *, actor_id: str | None) -> Inventory:
    """
    Add delta to the product's on-hand quantity, creating the row if absent.

    Caller owns the transaction.
    """
    delta = to_quantity(delta, "quantity_change")
    row = _inventory_query(product_id, lock=True).first()
    if row is None:
        row = Inventory(product_id=product_id, quantity=delta)
        db.session.add(row)
    else:
        row.quantity = to_quantity(row.quantity) + delta
    row.last_updated = utcnow()
    row.updated_by = actor_id
    db.session.flush()
    return row


def lock_inventory_rows(product_ids) -> dict[int, Inventory]:
    """
    Lock the inventory rows for a set of products in a deterministic order.

    Missing rows are created at zero so the caller always gets a row per id.
    """
    rows: dict[int, Inventory] = {}
    for product_id in sorted(set(product_ids)):
        row = _inventory_query(product_id, lock=True).first()
        if row is None:
            row = Inventory(product_id=product_id, quantity=ZERO)
            db.session.add(row)
            db.session.flush()
        rows[product_id] = row
    return rows


def get_quantity(product_id: int, *, lock: bool = False) -> Decimal:
    row = _inventory_query(product_id, lock=lock).first()
    if row is None:
        return to_quantity(0)
    return to_quantity(row.quantity)


def get_movement_total(product_id: int) -> Decimal:
    total = db.session.query(
        func.coalesce(func.sum(StockMovement.quantity_change), 0)
    ).filter(StockMovement.product_id == product_id).scalar()
    return to_quantity(total)


def _stock_row(product: Product) -> dict:
    quantity = to_quantity(product.inventory.quantity if product.inventory else 0)
    return {
        "product_id": product.id,
        "sku": product.sku,
        "name": product.name,
        "category": product.category,
        "unit": product.unit,
        "quantity": quantity_str(quantity),
        "min_stock_level": quantity_str(product.min_stock_level),
        "reorder_quantity": quantity_str(product.reorder_quantity),
        "retail_price": money_str(product.retail_price),
        "is_low_stock": quantity <= to_quantity(product.min_stock_level),
        "is_out_of_stock": quantity <= 0,
        "last_updated": to_utc_z(product.inventory.last_updated) if product.inventory else None,
        "updated_by": product.inventory.updated_by if product.inventory else None,
    }


def _stock_query(*, category: str | None = None, search: str | None = None):
    stock = func.coalesce(Inventory.quantity, 0)
    query = (
        db.session.query(Product)
        .outerjoin(Inventory, Inventory.product_id == Product.id)
        .filter(Product.is_active.is_(True))
    )
    if category:
        query = query.filter(Product.category == category)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
    return query, stock


def list_inventory(
    *,
    low_stock: bool = False,
    out_of_stock: bool = False,
    category: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int | None = 50,
) -> tuple[list[dict], int]:
    """Active products with their on-hand quantity. Returns (rows, total); limit=None returns every row."""
    query, stock = _stock_query(category=category, search=search)
    if low_stock:
        query = query.filter(stock <= Product.min_stock_level)
    if out_of_stock:
        query = query.filter(stock <= 0)

    total = query.count()
    query = query.order_by(Product.name.asc(), Product.id.asc())
    if limit is not None:
        query = query.offset((page - 1) * limit).limit(limit)
    return [_stock_row(p) for p in query.all()], total


def get_product_inventory(product_id: int) -> dict:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    row = _stock_row(product)
    row["movement_total"] = quantity_str(get_movement_total(product_id))
    return row


def get_low_stock() -> list[dict]:
    """Active products at or below their minimum stock level, emptiest first."""
    query, stock = _stock_query()
    products = query.filter(stock <= Product.min_stock_level).order_by(stock.asc(), Product.name.asc()).all()
    return [_stock_row(p) for p in products]


def get_inventory_value() -> dict:
    """Stock valuation at retail and wholesale prices, overall and per category."""
    query, _ = _stock_query()
    total_retail = ZERO
    total_wholesale = ZERO
    total_cost = ZERO
    by_category: dict[str, dict] = {}

    for product in query.all():
        quantity = to_quantity(product.inventory.quantity if product.inventory else 0)
        retail = quantity * to_money(product.retail_price)
        wholesale_price = product.wholesale_price if product.wholesale_price is not None else product.retail_price
        wholesale = quantity * to_money(wholesale_price)
        cost = quantity * to_money(product.purchase_price)
        total_retail += retail
        total_wholesale += wholesale
        total_cost += cost

        key = product.category or "Uncategorized"
        bucket = by_category.setdefault(key, {
            "category": key,
            "product_count": 0,
            "total_quantity": ZERO,
            "retail_value": ZERO,
            "wholesale_value": ZERO,
        })
        bucket["product_count"] += 1
        bucket["total_quantity"] += quantity
        bucket["retail_value"] += retail
        bucket["wholesale_value"] += wholesale

    return {
        "total_retail_value": money_str(total_retail),
        "total_wholesale_value": money_str(total_wholesale),
        "total_cost_value": money_str(total_cost),
        "by_category": [
            {
                "category": b["category"],
                "product_count": b["product_count"],
                "total_quantity": quantity_str(b["total_quantity"]),
                "retail_value": money_str(b["retail_value"]),
                "wholesale_value": money_str(b["wholesale_value"]),
            }
            for b in sorted(by_category.values(), key=lambda b: b["category"])
        ],
    }


def find_drift() -> list[dict]:
    """Products whose stored quantity differs from the sum of their movements."""
    sums = dict(
        db.session.query(StockMovement.product_id, func.sum(StockMovement.quantity_change))
        .group_by(StockMovement.product_id)
        .all()
    )
    stored = {row.product_id: row.quantity for row in db.session.query(Inventory).all()}

    drift = []
    for product_id in sorted(set(sums) | set(stored)):
        expected = to_quantity(sums.get(product_id) or 0)
        actual = to_quantity(stored.get(product_id) or 0)
        if expected != actual:
            drift.append({
                "product_id": product_id,
                "stored": quantity_str(actual),
                "movements": quantity_str(expected),
            })
    return drift


def rebuild_from_movements(*, actor_id: str | None) -> int:
    """Overwrite drifted inventory rows with movement sums. Caller commits."""
    fixed = 0
    for entry in find_drift():
        row = _inventory_query(entry["product_id"], lock=True).first()
        if row is None:
            row = Inventory(product_id=entry["product_id"])
            db.session.add(row)
        row.quantity = to_quantity(entry["movements"])
        row.last_updated = utcnow()
        row.updated_by = actor_id
        fixed += 1
    db.session.flush()
    return fixed
