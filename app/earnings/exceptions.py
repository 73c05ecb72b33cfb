"""
Commission engine exceptions.

Exception Hierarchy:
    CommissionError (base)
    ├── EarningNotFoundError - Earning lookup failures
    ├── PayeeNotFoundError - Instructor/affiliate lookup failures
    ├── EarningStateError - Illegal earning status change (e.g. double cancel)
    └── InvalidCommissionRateError - Rate outside 0-100
"""

from __future__ import annotations

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)


class CommissionError(BaseApplicationError):
    """Base exception for commission operations."""

    default_error_code: str = "COMMISSION_ERROR"


class EarningNotFoundError(CommissionError, NotFoundError):
    default_error_code: str = "EARNING_NOT_FOUND"


class PayeeNotFoundError(CommissionError, NotFoundError):
    default_error_code: str = "PAYEE_NOT_FOUND"


class EarningStateError(CommissionError, ConflictError):
    """
    Raised when an earning cannot move to the requested status.

    Example:
        raise EarningStateError(
            "Earning is already cancelled",
            details={"earning_id": str(earning.id)},
        )
    """

    default_error_code: str = "EARNING_STATE_ERROR"


class InvalidCommissionRateError(CommissionError, ValidationError):
    default_error_code: str = "INVALID_COMMISSION_RATE"


__all__ = [
    "CommissionError",
    "EarningNotFoundError",
    "EarningStateError",
    "InvalidCommissionRateError",
    "PayeeNotFoundError",
]
