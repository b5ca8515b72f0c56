# Overview: Translation of service-layer exceptions into JSON error responses.

"""
Every error body has the same shape:

    {"error": <message for the operator>, "code": <kind>, "details": {...}}

Routes catch the exceptions they expect and return error_response(e).
"""

from __future__ import annotations

from flask import current_app

from .services.auth_service import PasswordValidationError
from .services.checkout_service import CheckoutError, PersistenceFailure
from .services.inventory_service import AdjustError, AdjustPersistenceFailure
from .validation import ConflictError, ValidationError

STATUS_BY_CODE = {
    # checkout
    "EMPTY_CART": 400,
    "INVALID_CART": 400,
    "INSUFFICIENT_STOCK": 409,
    "CONFLICT": 409,
    "CANCELLED": 409,
    "PERSISTENCE_FAILURE": 503,
    # stock adjustment
    "NEGATIVE_STOCK": 409,
    "INVALID_QUANTITY": 400,
    "INVALID_ADJUSTMENT_KIND": 400,
    "PRODUCT_NOT_FOUND": 404,
}


def error_body(message: str, code: str, details: dict | None = None) -> dict:
    return {"error": message, "code": code, "details": details or {}}


def not_found(what: str) -> tuple[dict, int]:
    return error_body(f"{what} not found", "NOT_FOUND"), 404


def error_response(exc: Exception) -> tuple[dict, int]:
    if isinstance(exc, (CheckoutError, AdjustError)):
        status = STATUS_BY_CODE.get(exc.code, 400)
        if isinstance(exc, (PersistenceFailure, AdjustPersistenceFailure)):
            current_app.logger.warning("store failure: %s (%s)", exc, exc.details)
        return exc.to_dict(), status
    if isinstance(exc, ValidationError):
        return error_body(str(exc), "VALIDATION_ERROR"), 400
    if isinstance(exc, PasswordValidationError):
        return error_body(str(exc), "WEAK_PASSWORD"), 400
    if isinstance(exc, ConflictError):
        return error_body(str(exc), "CONFLICT"), 409
    raise exc
