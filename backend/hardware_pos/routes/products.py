# Overview: Flask API routes for the product catalog; parses input and returns JSON responses.

# backend/hardware_pos/routes/products.py
"""
Product catalog routes.

SECURITY: All routes require an authenticated actor.
- Read operations require the view capability
- Write operations require manage_catalog (owner, manager)

Stock is not writable here; a "quantity" field is rejected with 400.
"""
from flask import Blueprint, g, request

from ..decorators import require_auth, require_capability
from ..errors import LedgerError
from ..permissions import Capability
from ..responses import bool_arg, error_response, get_pagination, int_arg, json_body, paginated, server_error, success
from ..services import products_service

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_capability(Capability.VIEW)
def list_products():
    """
    Query params: search, category, supplier_id, is_active, page, limit
    """
    try:
        page, limit = get_pagination()
        products, total = products_service.list_products(
            search=request.args.get("search"),
            category=request.args.get("category"),
            supplier_id=int_arg("supplier_id"),
            is_active=bool_arg("is_active"),
            page=page,
            limit=limit,
        )
        return paginated([p.to_dict(include_stock=True) for p in products], total, page, limit)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("list products")


@products_bp.get("/categories")
@require_auth
@require_capability(Capability.VIEW)
def list_categories():
    return success(products_service.list_categories())


@products_bp.post("")
@require_auth
@require_capability(Capability.MANAGE_CATALOG)
def create_product_route():
    """Creates the product and its zero-stock inventory row. 409 on duplicate SKU/barcode."""
    try:
        product = products_service.create_product(g.actor, json_body())
        return success(product.to_dict(include_stock=True), status=201, message="Product created")
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("create product")


@products_bp.get("/<int:product_id>")
@require_auth
@require_capability(Capability.VIEW)
def get_product_route(product_id: int):
    try:
        return success(products_service.get_product(product_id).to_dict(include_stock=True))
    except LedgerError as e:
        return error_response(e)


@products_bp.put("/<int:product_id>")
@require_auth
@require_capability(Capability.MANAGE_CATALOG)
def update_product_route(product_id: int):
    try:
        product = products_service.update_product(g.actor, product_id, json_body())
        return success(product.to_dict(include_stock=True), message="Product updated")
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("update product")


@products_bp.delete("/<int:product_id>")
@require_auth
@require_capability(Capability.MANAGE_CATALOG)
def delete_product_route(product_id: int):
    """409 when stock movements or sale/purchase items reference the product."""
    try:
        products_service.delete_product(g.actor, product_id)
        return success(None, message="Product deleted")
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("delete product")
