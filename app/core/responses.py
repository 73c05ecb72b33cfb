"""
Rendering service failures as HTTP responses.

Views call services that either raise a BaseApplicationError subclass or
return a failed ServiceResult. Both carry a machine-readable error code;
this module turns that code into the HTTP status the client sees.

Usage:
    from core.responses import failure_response

    result = PaymentOrchestrator.initiate(params)
    if not result.success:
        return failure_response(result)

    # settings.REST_FRAMEWORK["EXCEPTION_HANDLER"]
    "core.responses.application_exception_handler"
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any

    from core.services import ServiceResult

logger = logging.getLogger(__name__)


# Checked in order; the first matching base class wins.
STATUS_BY_EXCEPTION: tuple[tuple[type[BaseApplicationError], int], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (ExternalServiceError, status.HTTP_502_BAD_GATEWAY),
)

# Codes returned by services as ServiceResult failures.
STATUS_BY_ERROR_CODE: dict[str, int] = {
    "PAYMENT_FAILED": status.HTTP_402_PAYMENT_REQUIRED,
    "FRAUD_BLOCKED": status.HTTP_403_FORBIDDEN,
    "PERMISSION_DENIED": status.HTTP_403_FORBIDDEN,
    "ALREADY_ENROLLED": status.HTTP_409_CONFLICT,
    "RETRY_LIMIT_EXCEEDED": status.HTTP_409_CONFLICT,
    "REFUND_NOT_ALLOWED": status.HTTP_409_CONFLICT,
    "INVALID_GATEWAY_OPERATION": status.HTTP_409_CONFLICT,
    "INVALID_STATE_TRANSITION": status.HTTP_409_CONFLICT,
    "LOCK_ACQUISITION_FAILED": status.HTTP_409_CONFLICT,
    "STALE_RECORD": status.HTTP_409_CONFLICT,
    "STOCK_EXHAUSTED": status.HTTP_409_CONFLICT,
    "ORDER_STATE_ERROR": status.HTTP_409_CONFLICT,
    "EARNING_STATE_ERROR": status.HTTP_409_CONFLICT,
    "EXPENSE_STATE_ERROR": status.HTTP_409_CONFLICT,
    "COUPON_LIMIT_REACHED": status.HTTP_409_CONFLICT,
    "COUPON_USAGE_LIMIT_REACHED": status.HTTP_409_CONFLICT,
    "COUPON_USER_LIMIT_REACHED": status.HTTP_409_CONFLICT,
    "GATEWAY_NOT_CONFIGURED": status.HTTP_503_SERVICE_UNAVAILABLE,
    "GATEWAY_UNAVAILABLE": status.HTTP_503_SERVICE_UNAVAILABLE,
    "GATEWAY_TIMEOUT": status.HTTP_504_GATEWAY_TIMEOUT,
}


def status_for_error_code(error_code: str | None) -> int:
    if not error_code:
        return status.HTTP_400_BAD_REQUEST
    if error_code in STATUS_BY_ERROR_CODE:
        return STATUS_BY_ERROR_CODE[error_code]
    if error_code.endswith("_NOT_FOUND"):
        return status.HTTP_404_NOT_FOUND
    if error_code.startswith("GATEWAY_"):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_400_BAD_REQUEST


def status_for_exception(exc: BaseApplicationError) -> int:
    if exc.error_code in STATUS_BY_ERROR_CODE:
        return STATUS_BY_ERROR_CODE[exc.error_code]
    for exception_class, http_status in STATUS_BY_EXCEPTION:
        if isinstance(exc, exception_class):
            return http_status
    return status.HTTP_400_BAD_REQUEST


def failure_response(result: ServiceResult) -> Response:
    """Render a failed ServiceResult with the status its error code maps to."""
    return Response(result.to_response(), status=status_for_error_code(result.error_code))


def error_response(exc: BaseApplicationError) -> Response:
    return Response(
        {"success": False, **exc.to_dict()},
        status=status_for_exception(exc),
    )


def application_exception_handler(exc: Exception, context: dict[str, Any]) -> Response | None:
    """
    DRF exception handler that also understands BaseApplicationError.

    Anything else falls through to DRF's default handler (None for
    unhandled exceptions, which Django turns into a 500).
    """
    if isinstance(exc, BaseApplicationError):
        view = context.get("view")
        logger.info(
            f"Application error in {view.__class__.__name__ if view else 'view'}: {exc}",
            extra={"error_code": exc.error_code},
        )
        return error_response(exc)
    return exception_handler(exc, context)
