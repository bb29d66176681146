"""Error taxonomy shared by the account and stock services."""
from __future__ import annotations

from typing import Any, Dict, Optional

from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler


class ServiceError(exceptions.APIException):
    """Base class for errors raised by the service layer.

    ``identifier`` names the offending record when there is one and ``extra``
    carries additional payload for the client (for example the checkout
    results committed before a failure).
    """

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "The request could not be completed."
    default_code = "error"

    def __init__(
        self,
        detail: Any = None,
        *,
        identifier: Any = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail=detail)
        self.identifier = identifier
        self.extra = extra or {}


class ValidationError(ServiceError):
    default_detail = "Invalid input."
    default_code = "validation_error"


class DuplicateEmail(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "User already exists."
    default_code = "duplicate_email"


class DuplicateKey(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "A record with this key already exists."
    default_code = "duplicate_key"


class InvalidCredentials(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Invalid credentials."
    default_code = "invalid_credentials"


class PendingApproval(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Account pending approval."
    default_code = "pending_approval"


class Forbidden(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Administrator access required."
    default_code = "forbidden"


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."
    default_code = "not_found"


class InsufficientStock(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Insufficient quantity."
    default_code = "insufficient_stock"


def exception_handler(exc: Exception, context: Dict[str, Any]) -> Optional[Response]:
    """Render every API error as ``{"code": ..., "detail": ...}``."""

    response = drf_exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, ServiceError):
        payload: Dict[str, Any] = {"code": exc.default_code}
        if isinstance(exc.detail, dict):
            payload.update(detail=exc.default_detail, errors=exc.detail)
        else:
            payload["detail"] = exc.detail
        if exc.identifier is not None:
            payload["id"] = exc.identifier
        payload.update(exc.extra)
        response.data = payload
    elif isinstance(exc, exceptions.ValidationError):
        response.data = {
            "code": ValidationError.default_code,
            "detail": ValidationError.default_detail,
            "errors": response.data,
        }
    elif isinstance(response.data, dict):
        if isinstance(exc, Http404):
            code = NotFound.default_code
        else:
            code = getattr(exc, "default_code", ServiceError.default_code)
        response.data.setdefault("code", code)
    return response
