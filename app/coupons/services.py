"""
Coupon engine.

``validate`` prices a code against an amount without writing anything,
so abandoned checkouts and payment retries never consume a coupon.
``apply`` records the usage once the payment has completed.

Usage:
    from coupons.services import CouponService

    result = CouponService.validate("LAUNCH10", user, amount_paisa=100000)
    if result.valid:
        final = result.final_amount_paisa
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from core.services import BaseService
from coupons.exceptions import CouponInvalidError, CouponLimitReachedError
from coupons.models import Coupon, CouponStatus, CouponUsage, DiscountType

if TYPE_CHECKING:
    from authentication.models import User
    from commerce.models import Order
    from payments.models import Payment


def calculate_discount(coupon: Coupon, amount_paisa: int) -> int:
    """
    Discount for ``amount_paisa``; never exceeds the amount.

    Percentage coupons are capped at ``max_discount_paisa`` when set.
    """
    if amount_paisa <= 0:
        return 0

    if coupon.discount_type == DiscountType.PERCENTAGE:
        raw = Decimal(amount_paisa) * Decimal(coupon.percent_off or 0) / Decimal(100)
        discount = int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        if coupon.max_discount_paisa is not None:
            discount = min(discount, coupon.max_discount_paisa)
    else:
        discount = coupon.amount_off_paisa or 0

    return max(0, min(discount, amount_paisa))


@dataclass
class CouponValidation:
    """
    Outcome of CouponService.validate.

    On failure ``reason`` and ``error_code`` explain why and the discount
    is zero.
    """

    valid: bool
    amount_paisa: int = 0
    discount_paisa: int = 0
    final_amount_paisa: int = 0
    coupon: Coupon | None = None
    reason: str | None = None
    error_code: str | None = None

    def raise_if_invalid(self) -> None:
        if not self.valid:
            raise CouponInvalidError(
                self.reason or "Invalid coupon",
                error_code=self.error_code,
            )


class CouponService(BaseService):
    """
    Coupon validation and application.

    Methods:
        validate: Side-effect-free pricing of a code
        apply: Record a usage for a completed payment
        expire_coupons: Mark coupons past their window as expired
    """

    @classmethod
    def get_by_code(cls, code: str | None) -> Coupon | None:
        if not code:
            return None
        return Coupon.objects.filter(code=code.strip().upper()).first()

    @classmethod
    def validate(
        cls,
        code: str,
        user: User | None,
        amount_paisa: int,
        course_ids: Iterable = (),
        product_ids: Iterable = (),
        now: datetime | None = None,
    ) -> CouponValidation:
        """
        Check ``code`` against ``amount_paisa`` and the candidate scope.

        Checks run in order and stop at the first failure: exists and
        active, validity window, global cap, per-user cap, minimum
        purchase, scope.
        """
        now = now or timezone.now()

        def invalid(reason: str, error_code: str, coupon: Coupon | None = None):
            return CouponValidation(
                valid=False,
                amount_paisa=amount_paisa,
                final_amount_paisa=amount_paisa,
                coupon=coupon,
                reason=reason,
                error_code=error_code,
            )

        coupon = cls.get_by_code(code)
        if coupon is None:
            return invalid("Coupon not found", "COUPON_NOT_FOUND")
        if coupon.status != CouponStatus.ACTIVE:
            return invalid("Coupon is not active", "COUPON_INACTIVE", coupon)

        if coupon.valid_from and now < coupon.valid_from:
            return invalid("Coupon is not yet valid", "COUPON_NOT_STARTED", coupon)
        if coupon.valid_until and now > coupon.valid_until:
            return invalid("Coupon has expired", "COUPON_EXPIRED", coupon)

        if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
            return invalid(
                "Coupon usage limit reached", "COUPON_USAGE_LIMIT_REACHED", coupon
            )

        if coupon.user_limit is not None:
            if user is None:
                return invalid(
                    "Coupon requires a signed-in user", "COUPON_REQUIRES_USER", coupon
                )
            used_by_user = CouponUsage.objects.filter(coupon=coupon, user=user).count()
            if used_by_user >= coupon.user_limit:
                return invalid(
                    "You have already used this coupon",
                    "COUPON_USER_LIMIT_REACHED",
                    coupon,
                )

        if (
            coupon.min_purchase_paisa is not None
            and amount_paisa < coupon.min_purchase_paisa
        ):
            return invalid(
                f"Minimum purchase of {coupon.min_purchase_paisa} paisa required",
                "COUPON_MIN_PURCHASE_NOT_MET",
                coupon,
            )

        if coupon.is_restricted and not cls._scope_matches(coupon, course_ids, product_ids):
            return invalid(
                "Coupon does not apply to these items", "COUPON_NOT_APPLICABLE", coupon
            )

        discount = calculate_discount(coupon, amount_paisa)
        return CouponValidation(
            valid=True,
            amount_paisa=amount_paisa,
            discount_paisa=discount,
            final_amount_paisa=max(0, amount_paisa - discount),
            coupon=coupon,
        )

    @classmethod
    def apply(
        cls,
        coupon: Coupon,
        user: User,
        payment: Payment,
        discount_paisa: int,
        order: Order | None = None,
    ) -> CouponUsage:
        """
        Record that ``coupon`` was used on a completed ``payment``.

        Idempotent per payment. The caps are checked again under the
        coupon row lock because validation happened before the payment
        and other checkouts may have used the coupon since.

        Raises:
            CouponLimitReachedError: Global or per-user cap already reached
        """
        with transaction.atomic():
            locked = Coupon.objects.select_for_update().get(pk=coupon.pk)

            existing = CouponUsage.objects.filter(payment=payment).first()
            if existing is not None:
                return existing

            if locked.usage_limit is not None and locked.used_count >= locked.usage_limit:
                raise CouponLimitReachedError(
                    f"Coupon {locked.code} usage limit reached",
                    error_code="COUPON_USAGE_LIMIT_REACHED",
                    details={"coupon": locked.code, "usage_limit": locked.usage_limit},
                )

            if locked.user_limit is not None:
                used_by_user = CouponUsage.objects.filter(coupon=locked, user=user).count()
                if used_by_user >= locked.user_limit:
                    raise CouponLimitReachedError(
                        f"Coupon {locked.code} already used by this user",
                        error_code="COUPON_USER_LIMIT_REACHED",
                        details={"coupon": locked.code, "user_limit": locked.user_limit},
                    )

            try:
                with transaction.atomic():
                    usage = CouponUsage.objects.create(
                        coupon=locked,
                        user=user,
                        payment=payment,
                        order=order,
                        discount_paisa=discount_paisa,
                    )
            except IntegrityError:
                return CouponUsage.objects.get(payment=payment)

            Coupon.objects.filter(pk=locked.pk).update(used_count=F("used_count") + 1)

        cls.get_logger().info(
            f"Applied coupon {locked.code}",
            extra={"payment_id": str(payment.pk), "discount_paisa": discount_paisa},
        )
        return usage

    @classmethod
    def expire_coupons(cls, now: datetime | None = None) -> int:
        """Mark active coupons whose window has closed as expired."""
        now = now or timezone.now()
        count = Coupon.objects.filter(
            status=CouponStatus.ACTIVE,
            valid_until__isnull=False,
            valid_until__lt=now,
        ).update(status=CouponStatus.EXPIRED, updated_at=now)

        if count:
            cls.get_logger().info(f"Expired {count} coupons")
        return count

    @staticmethod
    def _scope_matches(coupon: Coupon, course_ids: Iterable, product_ids: Iterable) -> bool:
        courses = {str(c) for c in coupon.applicable_courses or []}
        products = {str(p) for p in coupon.applicable_products or []}
        return bool(courses & {str(c) for c in course_ids}) or bool(
            products & {str(p) for p in product_ids}
        )
