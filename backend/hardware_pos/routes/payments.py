# Overview: Flask API routes for customer payments against credit sales.

# backend/hardware_pos/routes/payments.py
"""
Customer Payment API Routes

- POST records an installment on a credit sale (owner, manager, cashier).
  Rejected with 409 when the amount exceeds the remaining balance or the
  sale has no customer.
- DELETE removes a payment and re-derives the sale and customer balances
  (owner, manager).
"""

from flask import Blueprint, g

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
from ..services import payment_service
from ..validation import optional_datetime, require_id

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("")
@require_auth
@require_capability(Capability.RECORD_PAYMENT)
def record_payment_route():
    """
    Request body:
    {
        "sale_id": 123,
        "amount": "400.00",
        "payment_method": "mpesa",
        "reference_number": "QWE123RTY",  (optional)
        "notes": "..."                    (optional)
    }

    Returns:
        201: Payment recorded, with the sale's updated payment summary
    """
    try:
        payload = json_body()
        sale_id = require_id(payload.get("sale_id"), "sale_id")
        payment = payment_service.record_payment(
            g.actor,
            sale_id=sale_id,
            amount=payload.get("amount"),
            payment_method=payload.get("payment_method") or "cash",
            reference_number=payload.get("reference_number"),
            notes=payload.get("notes"),
            payment_date=optional_datetime(payload.get("payment_date"), "payment_date"),
        )
        return success(
            {"payment": payment.to_dict(), "summary": payment_service.get_sale_payment_summary(sale_id)},
            status=201,
            message="Payment recorded",
        )
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("record payment")


@payments_bp.get("")
@require_auth
@require_capability(Capability.VIEW)
def list_payments_route():
    try:
        page, limit = get_pagination()
        start, end = date_range_args()
        payments, total = payment_service.list_payments(
            customer_id=int_arg("customer_id"),
            sale_id=int_arg("sale_id"),
            start=start,
            end=end,
            page=page,
            limit=limit,
        )
        return paginated([p.to_dict() for p in payments], total, page, limit)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("list payments")


@payments_bp.get("/sales/<int:sale_id>")
@require_auth
@require_capability(Capability.VIEW)
def sale_payments_route(sale_id: int):
    try:
        return success(payment_service.get_sale_payment_summary(sale_id))
    except LedgerError as e:
        return error_response(e)


@payments_bp.get("/<int:payment_id>")
@require_auth
@require_capability(Capability.VIEW)
def get_payment_route(payment_id: int):
    try:
        return success(payment_service.get_payment(payment_id).to_dict())
    except LedgerError as e:
        return error_response(e)


@payments_bp.delete("/<int:payment_id>")
@require_auth
@require_capability(Capability.DELETE_PAYMENT)
def delete_payment_route(payment_id: int):
    try:
        result = payment_service.delete_payment(g.actor, payment_id)
        return success(
            {"deleted": result, "summary": payment_service.get_sale_payment_summary(result["sale_id"])},
            message="Payment deleted",
        )
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("delete payment")
