# Overview: Error taxonomy shared by the ledger services and the HTTP layer.

"""
Every failure the ledger core reports belongs to one of these classes.

Routes translate them into the JSON error envelope using ``status_code``.
``retryable`` tells a caller whether trying again can succeed without a
change to the request (only transient store failures qualify, and creation
endpoints still are not idempotent).
"""

from __future__ import annotations

from typing import Any


class LedgerError(Exception):
    status_code = 500
    category = "internal"
    retryable = False

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"status": "error", "message": self.message, "category": self.category}
        if self.details is not None:
            body["details"] = self.details
        if self.retryable:
            body["retryable"] = True
        return body


class ValidationError(LedgerError, ValueError):
    """400-level input problem, rejected before any write."""
    status_code = 400
    category = "validation"


class PermissionDeniedError(LedgerError):
    status_code = 403
    category = "authorization"


class NotFoundError(LedgerError):
    """Referenced product, sale, customer or supplier does not exist."""
    status_code = 404
    category = "not_found"


class ConflictError(LedgerError, ValueError):
    """409-level business rule conflict (duplicate SKU, insufficient stock, ...)."""
    status_code = 409
    category = "conflict"


class IntegrityFailure(LedgerError):
    """A store write failed partway; the whole operation was rolled back."""
    status_code = 500
    category = "integrity"


class StoreUnavailableError(LedgerError):
    """Store unreachable or lock wait timed out."""
    status_code = 503
    category = "transient"
    retryable = True
