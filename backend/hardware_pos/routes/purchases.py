# Overview: Flask API routes for supplier purchases; parses input and returns JSON responses.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_capability
from ..errors import LedgerError, ValidationError
from ..permissions import Capability
from ..responses import (
    date_range_args,
    error_response,
    get_pagination,
    int_arg,
    json_body,
    paginated,
    server_error,
    success,
)
from ..services import purchase_service
from ..validation import optional_datetime, require_id

purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("")
@require_auth
@require_capability(Capability.MANAGE_PURCHASES)
def create_purchase_route():
    """
    Request body:
    {
        "supplier_id": 3,
        "payment_method": "bank_transfer",
        "payment_status": "pending",
        "discount_amount": "0",
        "items": [{"product_id": 1, "quantity": "10", "unit_cost": "80.00"}]
    }
    """
    try:
        payload = json_body()
        purchase = purchase_service.create_purchase(
            g.actor,
            supplier_id=require_id(payload.get("supplier_id"), "supplier_id"),
            items=payload.get("items"),
            payment_method=payload.get("payment_method") or "cash",
            payment_status=payload.get("payment_status") or "pending",
            discount_amount=payload.get("discount_amount", 0),
            notes=payload.get("notes"),
            purchase_date=optional_datetime(payload.get("purchase_date"), "purchase_date"),
        )
        return success(purchase_service.purchase_detail(purchase), status=201, message="Purchase created")
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("create purchase")


@purchases_bp.get("")
@require_auth
@require_capability(Capability.VIEW)
def list_purchases_route():
    try:
        page, limit = get_pagination()
        start, end = date_range_args()
        purchases, total = purchase_service.list_purchases(
            supplier_id=int_arg("supplier_id"),
            payment_status=request.args.get("payment_status"),
            start=start,
            end=end,
            page=page,
            limit=limit,
        )
        return paginated([p.to_dict() for p in purchases], total, page, limit)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("list purchases")


@purchases_bp.get("/<int:purchase_id>")
@require_auth
@require_capability(Capability.VIEW)
def get_purchase_route(purchase_id: int):
    try:
        return success(purchase_service.purchase_detail(purchase_service.get_purchase(purchase_id)))
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("load purchase")


@purchases_bp.patch("/<int:purchase_id>/payment-status")
@require_auth
@require_capability(Capability.MANAGE_PURCHASES)
def update_payment_status_route(purchase_id: int):
    try:
        payload = json_body()
        if "payment_status" not in payload:
            raise ValidationError("payment_status is required")
        purchase = purchase_service.update_purchase_payment_status(g.actor, purchase_id, payload["payment_status"])
        return success(purchase.to_dict(), message="Payment status updated")
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("update purchase payment status")


@purchases_bp.delete("/<int:purchase_id>")
@require_auth
@require_capability(Capability.MANAGE_PURCHASES)
def delete_purchase_route(purchase_id: int):
    try:
        result = purchase_service.delete_purchase(g.actor, purchase_id)
        return success(result, message="Purchase deleted and stock removed")
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("delete purchase")
