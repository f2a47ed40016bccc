# Overview: Flask API routes for dashboard and back-office reports.

from flask import Blueprint, request

from ..decorators import require_auth, require_capability
from ..errors import LedgerError, ValidationError
from ..permissions import Capability
from ..responses import date_range_args, error_response, server_error, success
from ..services import reporting_service
from ..time_utils import parse_iso_date

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/dashboard")
@require_auth
@require_capability(Capability.VIEW_REPORTS)
def dashboard_route():
    """Optional ?date=YYYY-MM-DD selects the day for the "today" figures."""
    try:
        raw = request.args.get("date")
        try:
            day = parse_iso_date(raw) if raw else None
        except ValueError:
            raise ValidationError("date must be YYYY-MM-DD")
        return success(reporting_service.dashboard(day))
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("build dashboard")


@reports_bp.get("/sales")
@require_auth
@require_capability(Capability.VIEW_REPORTS)
def sales_report_route():
    try:
        start, end = date_range_args()
        return success(reporting_service.sales_report(start, end))
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("build sales report")


@reports_bp.get("/inventory")
@require_auth
@require_capability(Capability.VIEW_REPORTS)
def inventory_report_route():
    try:
        return success(reporting_service.inventory_report())
    except Exception:
        return server_error("build inventory report")


@reports_bp.get("/financial")
@require_auth
@require_capability(Capability.VIEW_REPORTS)
def financial_report_route():
    try:
        start, end = date_range_args()
        return success(reporting_service.financial_report(start, end))
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("build financial report")


@reports_bp.get("/products")
@require_auth
@require_capability(Capability.VIEW_REPORTS)
def product_performance_route():
    try:
        start, end = date_range_args()
        raw_limit = request.args.get("limit")
        try:
            limit = int(raw_limit) if raw_limit else 20
        except ValueError:
            raise ValidationError("limit must be an integer")
        if limit < 1:
            raise ValidationError("limit must be >= 1")
        return success(reporting_service.product_performance(start, end, limit=limit))
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return server_error("build product performance report")
