"""
Coupon exceptions.

Exception Hierarchy:
    CouponError (base)
    ├── CouponInvalidError - Code fails validation (unknown, expired, out of scope)
    └── CouponLimitReachedError - Global or per-user cap hit while applying
"""

from __future__ import annotations

from core.exceptions import BaseApplicationError, ConflictError, ValidationError


class CouponError(BaseApplicationError):
    """Base exception for coupon operations."""

    default_error_code: str = "COUPON_ERROR"


class CouponInvalidError(CouponError, ValidationError):
    """
    Raised when a coupon code cannot be used.

    The error_code carries the specific reason (COUPON_EXPIRED,
    COUPON_NOT_APPLICABLE, ...).
    """

    default_error_code: str = "COUPON_INVALID"


class CouponLimitReachedError(CouponError, ConflictError):
    """Raised when applying a coupon would exceed its usage caps."""

    default_error_code: str = "COUPON_LIMIT_REACHED"


__all__ = [
    "CouponError",
    "CouponInvalidError",
    "CouponLimitReachedError",
]
