"""
Service-layer building blocks.

Public service entry points (checkout, verify, refund, retry) return a
``ServiceResult`` for outcomes a client is expected to handle: a fraud
block, a declined gateway, a coupon that no longer applies. Internal
helpers raise ``core.exceptions`` subclasses instead, and the entry point
folds them into a result with ``ServiceResult.from_exception``.

Views turn a failed result into an HTTP response with
``core.responses.failure_response``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Outcome of a service call.

    ``error_code`` selects the HTTP status (see ``core.responses``);
    ``errors`` holds per-field messages and ``details`` any structured
    context such as the refundable amount left on a payment.
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = None
    details: dict[str, Any] | None = None

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
        details: dict[str, Any] | None = None,
    ) -> ServiceResult[T]:
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
            details=details,
        )

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Fold an exception into a failed result.

        Application errors carry their own code and details over. Anything
        else is reported under its upper-cased class name.
        """
        if isinstance(exc, BaseApplicationError):
            return cls.failure(
                exc.message,
                error_code=error_code or exc.error_code,
                details=exc.details or None,
            )
        return cls.failure(str(exc), error_code=error_code or type(exc).__name__.upper())

    def to_response(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data}

        body: dict[str, Any] = {"success": False, "error": self.error}
        # Empty fields are left out of the body
        for key in ("error_code", "errors", "details"):
            value = getattr(self, key)
            if value:
                body[key] = value
        return body

    def map(self, func: Callable[[T], Any]) -> ServiceResult:
        """Apply ``func`` to the data of a successful result; failures pass through."""
        if not self.success or self.data is None:
            return self
        return ServiceResult.success(func(self.data))

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base for the stateless service classes (classmethods only).

    Each subclass logs under its own dotted name, e.g.
    ``payments.services.refund_service.RefundService``.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")
