# Overview: Flask API routes for operating expenses.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_capability
from ..errors import LedgerError
from ..permissions import Capability
from ..responses import (
    date_range_args,
    error_response,
    get_pagination,
    json_body,
    paginated,
    server_error,
    success,
)
from ..services import expense_service

expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.get("")
@require_auth
@require_capability(Capability.VIEW)
def list_expenses_route():
    try:
        page, limit = get_pagination()
        start, end = date_range_args()
        expenses, total = expense_service.list_expenses(
            category=request.args.get("category") or None,
            start=start.date() if start else None,
            end=end.date() if end else None,
            page=page,
            limit=limit,
        )
        return paginated([e.to_dict() for e in expenses], total, page, limit)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("list expenses")


@expenses_bp.get("/categories")
@require_auth
@require_capability(Capability.VIEW)
def list_expense_categories_route():
    return success(expense_service.list_categories())


@expenses_bp.post("")
@require_auth
@require_capability(Capability.MANAGE_EXPENSES)
def create_expense_route():
    try:
        expense = expense_service.create_expense(g.actor, json_body())
        return success(expense.to_dict(), status=201, message="Expense recorded")
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("create expense")


@expenses_bp.get("/<int:expense_id>")
@require_auth
@require_capability(Capability.VIEW)
def get_expense_route(expense_id: int):
    try:
        return success(expense_service.get_expense(expense_id).to_dict())
    except LedgerError as e:
        return error_response(e)


@expenses_bp.put("/<int:expense_id>")
@require_auth
@require_capability(Capability.MANAGE_EXPENSES)
def update_expense_route(expense_id: int):
    try:
        expense = expense_service.update_expense(g.actor, expense_id, json_body())
        return success(expense.to_dict(), message="Expense updated")
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("update expense")


@expenses_bp.delete("/<int:expense_id>")
@require_auth
@require_capability(Capability.MANAGE_EXPENSES)
def delete_expense_route(expense_id: int):
    try:
        expense_service.delete_expense(g.actor, expense_id)
        return success(None, message="Expense deleted")
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("delete expense")
