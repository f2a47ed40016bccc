# Overview: Flask API routes for sales; parses input and returns JSON responses.

# backend/hardware_pos/routes/sales.py
"""
Sales API Routes

- POST creates the header, items and stock movements in one transaction.
  Not idempotent: a client retry after a lost response can sell twice.
- DELETE restores the stock and drops the sale's payments (owner, manager).
"""

from flask import Blueprint, g, request

from ..decorators import require_auth, require_capability
from ..errors import LedgerError
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
from ..services import sales_service
from ..validation import optional_datetime, optional_id

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
@require_capability(Capability.CREATE_SALE)
def create_sale_route():
    """
    Request body:
    {
        "customer_id": 12,                (optional; omit for walk-in)
        "payment_method": "cash",         (cash | mpesa | card | bank_transfer)
        "discount_amount": "0.00",
        "notes": "...",
        "items": [
            {"product_id": 1, "quantity": "2", "unit_price": "150.00", "discount": "0", "line_total": "300.00"}
        ]
    }

    Returns:
        201: Sale created (hydrated with items and payments)
        400: Invalid input
        404: Product or customer not found
        409: Inactive product/customer or insufficient stock
        503: Database busy, retryable
    """
    try:
        payload = json_body()
        sale = sales_service.create_sale(
            g.actor,
            items=payload.get("items"),
            customer_id=optional_id(payload.get("customer_id"), "customer_id"),
            payment_method=payload.get("payment_method") or "cash",
            discount_amount=payload.get("discount_amount", 0),
            notes=payload.get("notes"),
            sale_date=optional_datetime(payload.get("sale_date"), "sale_date"),
        )
        return success(sales_service.sale_detail(sale), status=201, message="Sale created")
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("create sale")


@sales_bp.get("")
@require_auth
@require_capability(Capability.VIEW)
def list_sales_route():
    """Query params: customer_id, payment_status, payment_method, start_date, end_date, page, limit"""
    try:
        page, limit = get_pagination()
        start, end = date_range_args()
        sales, total = sales_service.list_sales(
            customer_id=int_arg("customer_id"),
            payment_status=request.args.get("payment_status"),
            payment_method=request.args.get("payment_method"),
            start=start,
            end=end,
            page=page,
            limit=limit,
        )
        return paginated([s.to_dict() for s in sales], total, page, limit)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("list sales")


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_capability(Capability.VIEW)
def get_sale_route(sale_id: int):
    try:
        return success(sales_service.sale_detail(sales_service.get_sale(sale_id)))
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("load sale")


@sales_bp.delete("/<int:sale_id>")
@require_auth
@require_capability(Capability.DELETE_SALE)
def delete_sale_route(sale_id: int):
    try:
        result = sales_service.delete_sale(g.actor, sale_id)
        return success(result, message="Sale deleted and stock restored")
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("delete sale")
