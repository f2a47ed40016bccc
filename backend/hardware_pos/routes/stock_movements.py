# Overview: Flask API routes for the stock movement ledger and manual adjustments.

# backend/hardware_pos/routes/stock_movements.py
"""
Stock Movement API Routes

Sales and purchases write their own movements; the only movement a client
may post directly is a manual adjustment with a reason code.
"""

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
from ..services import stock_movement_service
from ..validation import optional_text, require_adjustment_reason, require_id

stock_movements_bp = Blueprint("stock_movements", __name__, url_prefix="/api/stock-movements")


@stock_movements_bp.get("")
@require_auth
@require_capability(Capability.VIEW)
def list_movements_route():
    """Query params: product_id, movement_type, start_date, end_date, page, limit"""
    try:
        page, limit = get_pagination()
        start, end = date_range_args()
        movements, total = stock_movement_service.list_movements(
            product_id=int_arg("product_id"),
            movement_type=request.args.get("movement_type") or None,
            start=start,
            end=end,
            page=page,
            limit=limit,
        )
        return paginated([m.to_dict() for m in movements], total, page, limit)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("list stock movements")


@stock_movements_bp.post("")
@require_auth
@require_capability(Capability.ADJUST_STOCK)
def create_adjustment_route():
    """
    Request body:
    {
        "product_id": 1,
        "quantity_change": "-2",     (signed, non-zero)
        "reason": "damaged",         (expired | damaged | lost | theft | correction | breakage)
        "notes": "..."
    }

    Returns:
        201: Adjustment recorded
        400: Invalid input, or an attempt to post a sale/purchase movement
        404: Product not found
        409: Product inactive
    """
    try:
        payload = json_body()
        movement_type = payload.get("movement_type", "adjustment")
        if movement_type != "adjustment":
            raise ValidationError("Only adjustment movements can be created directly")
        if payload.get("sale_item_id") is not None or payload.get("purchase_item_id") is not None:
            raise ValidationError("Adjustments cannot reference sale or purchase items")

        quantity_change = payload.get("quantity_change", payload.get("quantity"))
        if quantity_change is None:
            raise ValidationError("quantity_change is required")

        movement = stock_movement_service.create_adjustment(
            g.actor,
            product_id=require_id(payload.get("product_id"), "product_id"),
            quantity_change=quantity_change,
            reason=require_adjustment_reason(payload.get("reason")),
            notes=optional_text(payload.get("notes"), "notes"),
        )
        return success(movement.to_dict(), status=201, message="Stock adjusted")
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("create stock adjustment")


@stock_movements_bp.get("/<int:movement_id>")
@require_auth
@require_capability(Capability.VIEW)
def get_movement_route(movement_id: int):
    try:
        return success(stock_movement_service.get_movement(movement_id).to_dict())
    except LedgerError as e:
        return error_response(e)
