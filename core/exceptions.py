"""
Domain errors raised by service functions.

Every error leaves the API as ``{"error": {"code", "message", "details"}}``.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler


logger = logging.getLogger(__name__)


class DomainError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "ERROR"
    default_detail = "Request could not be processed."

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None, details: Any = None):
        self.message = message or self.default_detail
        self.error_code = code or self.default_code
        self.details = details
        super().__init__(detail=self.message, code=self.error_code)


class ValidationError(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "VALIDATION_ERROR"
    default_detail = "Invalid input."


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"
    default_detail = "Resource not found."


class ForbiddenError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "FORBIDDEN"
    default_detail = "You do not have access to this resource."


class LimitExceededError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "USAGE_LIMIT_EXCEEDED"
    default_detail = "Plan limit reached."


class ConflictError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_code = "CONFLICT"
    default_detail = "Resource state conflicts with the request."


def _flatten_detail(detail: Any) -> str:
    if isinstance(detail, list):
        return "; ".join(_flatten_detail(d) for d in detail)
    if isinstance(detail, dict):
        return "; ".join(f"{key}: {_flatten_detail(value)}" for key, value in detail.items())
    return str(detail)


def api_exception_handler(exc, context):
    """DRF exception handler wrapping every error in the ``error`` envelope."""
    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, DomainError):
        code, message, details = exc.error_code, exc.message, exc.details
    else:
        detail = getattr(exc, "detail", response.data)
        code = getattr(exc, "default_code", "error")
        if hasattr(exc, "get_codes") and isinstance(exc.get_codes(), str):
            code = exc.get_codes()
        code = str(code).upper()
        message = _flatten_detail(detail)
        details = detail if isinstance(detail, (dict, list)) else None

    if response.status_code >= 500:
        logger.error("API error %s: %s", code, message)

    response.data = {"error": {"code": code, "message": message, "details": details}}
    return response
