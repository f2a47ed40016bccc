# Overview: Flask API routes for current stock levels and valuation.

from flask import Blueprint, request

from ..decorators import require_auth, require_capability
from ..errors import LedgerError
from ..permissions import Capability
from ..responses import bool_arg, error_response, get_pagination, paginated, server_error, success
from ..services import inventory_service

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_auth
@require_capability(Capability.VIEW)
def list_inventory_route():
    """Query params: low_stock, out_of_stock, category, search, page, limit"""
    try:
        page, limit = get_pagination()
        rows, total = inventory_service.list_inventory(
            low_stock=bool(bool_arg("low_stock")),
            out_of_stock=bool(bool_arg("out_of_stock")),
            category=request.args.get("category") or None,
            search=request.args.get("search") or None,
            page=page,
            limit=limit,
        )
        return paginated(rows, total, page, limit)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("list inventory")


@inventory_bp.get("/low-stock")
@require_auth
@require_capability(Capability.VIEW)
def low_stock_route():
    try:
        return success(inventory_service.get_low_stock())
    except Exception:
        return server_error("load low stock")


@inventory_bp.get("/value")
@require_auth
@require_capability(Capability.VIEW_REPORTS)
def inventory_value_route():
    try:
        return success(inventory_service.get_inventory_value())
    except Exception:
        return server_error("compute inventory value")


@inventory_bp.get("/<int:product_id>")
@require_auth
@require_capability(Capability.VIEW)
def product_inventory_route(product_id: int):
    try:
        return success(inventory_service.get_product_inventory(product_id))
    except LedgerError as e:
        return error_response(e)
