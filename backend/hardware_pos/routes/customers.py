# Overview: Flask API routes for customers and their credit position.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_capability
from ..errors import LedgerError
from ..permissions import Capability
from ..responses import (
    bool_arg,
    date_range_args,
    error_response,
    get_pagination,
    json_body,
    paginated,
    server_error,
    success,
)
from ..services import customer_service, payment_service, sales_service

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_capability(Capability.VIEW)
def list_customers():
    try:
        page, limit = get_pagination()
        customers, total = customer_service.list_customers(
            search=request.args.get("search"),
            customer_type=request.args.get("customer_type"),
            is_active=bool_arg("is_active"),
            page=page,
            limit=limit,
        )
        return paginated([c.to_dict() for c in customers], total, page, limit)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("list customers")


@customers_bp.post("")
@require_auth
@require_capability(Capability.MANAGE_CATALOG)
def create_customer_route():
    try:
        customer = customer_service.create_customer(g.actor, json_body())
        return success(customer.to_dict(), status=201, message="Customer created")
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("create customer")


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_capability(Capability.VIEW)
def get_customer_route(customer_id: int):
    try:
        return success(customer_service.get_customer(customer_id).to_dict())
    except LedgerError as e:
        return error_response(e)


@customers_bp.put("/<int:customer_id>")
@require_auth
@require_capability(Capability.MANAGE_CATALOG)
def update_customer_route(customer_id: int):
    """current_balance is derived and rejected if present in the body."""
    try:
        customer = customer_service.update_customer(g.actor, customer_id, json_body())
        return success(customer.to_dict(), message="Customer updated")
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("update customer")


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_capability(Capability.MANAGE_CATALOG)
def delete_customer_route(customer_id: int):
    try:
        customer_service.delete_customer(g.actor, customer_id)
        return success(None, message="Customer deleted")
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("delete customer")


@customers_bp.get("/<int:customer_id>/sales")
@require_auth
@require_capability(Capability.VIEW)
def list_customer_sales_route(customer_id: int):
    try:
        customer_service.get_customer(customer_id)
        page, limit = get_pagination()
        start, end = date_range_args()
        sales, total = sales_service.list_sales(
            customer_id=customer_id,
            payment_status=request.args.get("payment_status"),
            start=start,
            end=end,
            page=page,
            limit=limit,
        )
        return paginated([s.to_dict() for s in sales], total, page, limit)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("list customer sales")


@customers_bp.get("/<int:customer_id>/outstanding")
@require_auth
@require_capability(Capability.VIEW)
def customer_outstanding_route(customer_id: int):
    """current_balance, credit_limit, available_credit and every unpaid/partial sale."""
    try:
        return success(payment_service.get_customer_outstanding(customer_id))
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("load customer outstanding balance")


@customers_bp.get("/<int:customer_id>/payments")
@require_auth
@require_capability(Capability.VIEW)
def list_customer_payments_route(customer_id: int):
    try:
        customer_service.get_customer(customer_id)
        page, limit = get_pagination()
        start, end = date_range_args()
        payments, total = payment_service.list_payments(
            customer_id=customer_id, start=start, end=end, page=page, limit=limit,
        )
        return paginated([p.to_dict() for p in payments], total, page, limit)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("list customer payments")
