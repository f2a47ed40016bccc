# backend/hardware_pos/services/products_service.py
"""
Product catalog service.

- Creating a product also creates its Inventory row at zero stock.
- Stock is never set through the catalog; it changes only via stock movements.
- SKU and barcode are unique across the catalog.
- A product that stock movements or sale/purchase items reference cannot be
  deleted; deactivate it instead.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..errors import ConflictError, NotFoundError
from ..models import Product, PurchaseItem, SaleItem, StockMovement, Supplier
from ..permissions import Actor, Capability
from ..validation import ModelValidationPolicy, enforce_rules_product, validate_payload
from . import inventory_service
from .concurrency import run_with_retry

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "barcode", "name", "description", "category", "unit",
        "purchase_price", "retail_price", "wholesale_price",
        "min_stock_level", "reorder_quantity", "supplier_id", "is_active",
    },
    required_on_create={"sku", "name", "purchase_price", "retail_price"},
    forbidden_fields={
        "quantity": "Stock cannot be set on a product; record a stock movement instead",
        "current_stock": "Stock cannot be set on a product; record a stock movement instead",
    },
)

PRICE_FIELDS = ("purchase_price", "retail_price", "wholesale_price", "min_stock_level", "reorder_quantity")


def _require_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return product


def _check_unique(patch: dict, *, exclude_id: int | None = None) -> None:
    for key in ("sku", "barcode"):
        value = patch.get(key)
        if value is None:
            continue
        query = db.session.query(Product).filter(getattr(Product, key) == value)
        if exclude_id is not None:
            query = query.filter(Product.id != exclude_id)
        if query.first() is not None:
            raise ConflictError(f"A product with this {key} already exists", details={key: value})


def _check_supplier(patch: dict) -> None:
    supplier_id = patch.get("supplier_id")
    if supplier_id is not None and db.session.get(Supplier, supplier_id) is None:
        raise NotFoundError("Supplier not found", details={"supplier_id": supplier_id})


def create_product(actor: Actor, payload: dict) -> Product:
    actor.require(Capability.MANAGE_CATALOG)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    def _op():
        _check_unique(patch)
        _check_supplier(patch)

        product = Product(**patch)
        db.session.add(product)
        db.session.flush()
        inventory_service.open_inventory(product.id, actor_id=actor.actor_id)
        db.session.commit()
        current_app.logger.info("Product %s (%s) created by %s", product.id, product.sku, actor.actor_id)
        return product

    return run_with_retry(_op)


def update_product(actor: Actor, product_id: int, payload: dict) -> Product:
    actor.require(Capability.MANAGE_CATALOG)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)

    def _op():
        product = _require_product(product_id)
        current = {key: getattr(product, key) for key in PRICE_FIELDS}
        enforce_rules_product(patch, current=current)
        _check_unique(patch, exclude_id=product_id)
        _check_supplier(patch)

        for key, value in patch.items():
            setattr(product, key, value)
        db.session.commit()
        return product

    return run_with_retry(_op)


def delete_product(actor: Actor, product_id: int) -> None:
    actor.require(Capability.MANAGE_CATALOG)

    def _op():
        product = _require_product(product_id)
        references = {
            "stock_movements": db.session.query(StockMovement.id).filter(StockMovement.product_id == product_id).count(),
            "sale_items": db.session.query(SaleItem.id).filter(SaleItem.product_id == product_id).count(),
            "purchase_items": db.session.query(PurchaseItem.id).filter(PurchaseItem.product_id == product_id).count(),
        }
        if any(references.values()):
            raise ConflictError(
                "Product has stock history and cannot be deleted; deactivate it instead",
                details={"product_id": product_id, "references": references},
            )
        db.session.delete(product)
        db.session.commit()
        current_app.logger.info("Product %s deleted by %s", product_id, actor.actor_id)

    run_with_retry(_op)


def get_product(product_id: int) -> Product:
    return _require_product(product_id)


def list_products(
    *,
    search: str | None = None,
    category: str | None = None,
    supplier_id: int | None = None,
    is_active: bool | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[Product], int]:
    query = db.session.query(Product)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            Product.name.ilike(pattern),
            Product.sku.ilike(pattern),
            Product.barcode.ilike(pattern),
        ))
    if category:
        query = query.filter(Product.category == category)
    if supplier_id is not None:
        query = query.filter(Product.supplier_id == supplier_id)
    if is_active is not None:
        query = query.filter(Product.is_active.is_(is_active))

    total = query.count()
    products = (
        query.order_by(Product.name.asc(), Product.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return products, total


def list_categories() -> list[str]:
    rows = (
        db.session.query(Product.category)
        .filter(Product.category.isnot(None))
        .distinct()
        .order_by(Product.category.asc())
        .all()
    )
    return [row[0] for row in rows]
