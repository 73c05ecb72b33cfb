"""
Application error hierarchy.

Each app (payments, commerce, coupons, earnings, ledger) declares its own
errors on top of these five bases. The base decides the HTTP status in
``core.responses``; ``error_code`` tells the client what went wrong:

    ValidationError        400  bad amount, unsupported method, expired coupon
    PermissionDeniedError  403  not the payer, blocked by fraud scoring
    NotFoundError          404  unknown payment, order or expense
    ConflictError          409  illegal status change, stale row, busy lock
    ExternalServiceError   502  gateway down, timed out or declined
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Root of every domain error.

    Subclasses set ``default_error_code``; a raise site may override it
    and attach ``details`` (ids, amounts, current status) for the client.
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"error": self.message, "error_code": self.error_code}
        if self.details:
            data["details"] = self.details
        return data

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


class ValidationError(BaseApplicationError):
    """Request passed serializer checks but breaks a business rule."""

    default_error_code = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    default_error_code = "NOT_FOUND"


class PermissionDeniedError(BaseApplicationError):
    default_error_code = "PERMISSION_DENIED"


class ConflictError(BaseApplicationError):
    """The resource is in a state that does not allow the operation."""

    default_error_code = "CONFLICT"


class ExternalServiceError(BaseApplicationError):
    """
    A payment gateway or other remote service failed.

    ``message`` is shown to clients; keep provider internals in the logs.
    """

    default_error_code = "EXTERNAL_SERVICE_ERROR"


__all__ = [
    "BaseApplicationError",
    "ConflictError",
    "ExternalServiceError",
    "NotFoundError",
    "PermissionDeniedError",
    "ValidationError",
]
