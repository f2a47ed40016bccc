# Overview: JSON response envelope, pagination parsing and query-string helpers for routes.

from __future__ import annotations

import math

from flask import current_app, jsonify, request

from .errors import LedgerError, ValidationError
from .time_utils import end_of_day_if_date_only, parse_iso_datetime


def success(data=None, *, status: int = 200, message: str | None = None, pagination: dict | None = None):
    body = {"status": "success", "data": data}
    if message:
        body["message"] = message
    if pagination is not None:
        body["pagination"] = pagination
    return jsonify(body), status


def error_response(exc: LedgerError):
    return jsonify(exc.to_dict()), exc.status_code


def server_error(action: str):
    """Log the active exception and return a generic 500."""
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"status": "error", "message": "Internal server error"}), 500


def get_pagination() -> tuple[int, int]:
    """page >= 1 and 1 <= limit <= MAX_PAGE_SIZE, else ValidationError."""
    default_limit = current_app.config.get("DEFAULT_PAGE_SIZE", 50)
    max_limit = current_app.config.get("MAX_PAGE_SIZE", 100)

    page = _int_arg("page", 1)
    limit = _int_arg("limit", default_limit)
    if page < 1:
        raise ValidationError("page must be >= 1")
    if limit < 1 or limit > max_limit:
        raise ValidationError(f"limit must be between 1 and {max_limit}")
    return page, limit


def pagination_meta(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if total else 0,
    }


def paginated(items, total: int, page: int, limit: int):
    return success(items, pagination=pagination_meta(page, limit, total))


def _int_arg(name: str, default: int | None = None) -> int | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def int_arg(name: str) -> int | None:
    return _int_arg(name)


def bool_arg(name: str) -> bool | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    lowered = raw.strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise ValidationError(f"{name} must be true or false")


def date_range_args():
    """start_date/end_date query params; a bare end date covers the whole day."""
    raw_start = request.args.get("start_date")
    raw_end = request.args.get("end_date")
    try:
        start = parse_iso_datetime(raw_start)
        end = end_of_day_if_date_only(raw_end, parse_iso_datetime(raw_end))
    except ValueError:
        raise ValidationError("start_date and end_date must be ISO-8601 dates")
    if start and end and start > end:
        raise ValidationError("start_date must be before end_date")
    return start, end


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload
