# Overview: Flask API routes for suppliers; parses input and returns JSON responses.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_capability
from ..errors import LedgerError
from ..permissions import Capability
from ..responses import bool_arg, error_response, get_pagination, json_body, paginated, server_error, success
from ..services import supplier_service

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
@require_auth
@require_capability(Capability.VIEW)
def list_suppliers():
    try:
        page, limit = get_pagination()
        suppliers, total = supplier_service.list_suppliers(
            search=request.args.get("search"),
            is_active=bool_arg("is_active"),
            page=page,
            limit=limit,
        )
        return paginated([s.to_dict() for s in suppliers], total, page, limit)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("list suppliers")


@suppliers_bp.post("")
@require_auth
@require_capability(Capability.MANAGE_CATALOG)
def create_supplier_route():
    try:
        supplier = supplier_service.create_supplier(g.actor, json_body())
        return success(supplier.to_dict(), status=201, message="Supplier created")
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("create supplier")


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
@require_capability(Capability.VIEW)
def get_supplier_route(supplier_id: int):
    try:
        return success(supplier_service.get_supplier(supplier_id).to_dict())
    except LedgerError as e:
        return error_response(e)


@suppliers_bp.get("/<int:supplier_id>/products")
@require_auth
@require_capability(Capability.VIEW)
def list_supplier_products_route(supplier_id: int):
    try:
        products = supplier_service.list_supplier_products(supplier_id)
        return success([p.to_dict(include_stock=True) for p in products])
    except LedgerError as e:
        return error_response(e)


@suppliers_bp.put("/<int:supplier_id>")
@require_auth
@require_capability(Capability.MANAGE_CATALOG)
def update_supplier_route(supplier_id: int):
    try:
        supplier = supplier_service.update_supplier(g.actor, supplier_id, json_body())
        return success(supplier.to_dict(), message="Supplier updated")
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("update supplier")


@suppliers_bp.delete("/<int:supplier_id>")
@require_auth
@require_capability(Capability.MANAGE_CATALOG)
def delete_supplier_route(supplier_id: int):
    try:
        supplier_service.delete_supplier(g.actor, supplier_id)
        return success(None, message="Supplier deleted")
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("delete supplier")
