"""
Coupons application.

Discount codes with global and per-user caps, validity windows and
optional course/product scope. Validation is free of side effects;
usage is recorded only after a payment completes.

Usage:
    from coupons.services import CouponService
"""
