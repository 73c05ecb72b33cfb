"""
Coupon and CouponUsage models.

Usage:
    from coupons.models import Coupon, DiscountType

    coupon = Coupon.objects.create(
        code="launch10",            # stored as LAUNCH10
        discount_type=DiscountType.PERCENTAGE,
        percent_off=Decimal("10"),
        max_discount_paisa=5000,
    )
"""

from __future__ import annotations

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import ImmutableModelMixin, UUIDPrimaryKeyMixin


class DiscountType(models.TextChoices):
    PERCENTAGE = "percentage", "Percentage"
    FIXED = "fixed", "Fixed Amount"


class CouponStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"
    EXPIRED = "expired", "Expired"


class Coupon(UUIDPrimaryKeyMixin, BaseModel):
    """
    A discount code.

    Fields:
        code: Unique code, stored uppercase
        discount_type: percentage or fixed
        percent_off: Rate for percentage coupons (0-100)
        amount_off_paisa: Flat amount for fixed coupons
        min_purchase_paisa: Minimum amount the coupon applies to
        max_discount_paisa: Cap on a percentage discount
        usage_limit: Global cap on applications
        user_limit: Cap on applications per user
        used_count: Applications so far
        valid_from / valid_until: Validity window
        applicable_courses / applicable_products: Scope restriction (ids);
            empty lists mean no restriction
    """

    code = models.CharField(
        max_length=50,
        unique=True,
        db_index=True,
        help_text="Coupon code (stored uppercase)",
    )

    description = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Internal description",
    )

    discount_type = models.CharField(
        max_length=20,
        choices=DiscountType.choices,
        default=DiscountType.PERCENTAGE,
        help_text="How the discount is computed",
    )

    percent_off = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
        help_text="Discount percentage for percentage coupons",
    )

    amount_off_paisa = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        help_text="Flat discount in paisa for fixed coupons",
    )

    min_purchase_paisa = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        help_text="Minimum purchase amount in paisa",
    )

    max_discount_paisa = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        help_text="Maximum discount in paisa (percentage coupons)",
    )

    usage_limit = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Maximum number of applications across all users",
    )

    user_limit = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Maximum number of applications per user",
    )

    used_count = models.PositiveIntegerField(
        default=0,
        help_text="Number of times the coupon has been applied",
    )

    valid_from = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Start of the validity window",
    )

    valid_until = models.DateTimeField(
        null=True,
        blank=True,
        help_text="End of the validity window",
    )

    status = models.CharField(
        max_length=20,
        choices=CouponStatus.choices,
        default=CouponStatus.ACTIVE,
        db_index=True,
        help_text="Coupon status",
    )

    applicable_courses = models.JSONField(
        default=list,
        blank=True,
        help_text="Course ids the coupon is restricted to",
    )

    applicable_products = models.JSONField(
        default=list,
        blank=True,
        help_text="Product ids the coupon is restricted to",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Coupon"
        verbose_name_plural = "Coupons"
        constraints = [
            models.CheckConstraint(
                condition=~Q(discount_type=DiscountType.PERCENTAGE)
                | Q(percent_off__isnull=False),
                name="coupon_percentage_requires_rate",
            ),
            models.CheckConstraint(
                condition=~Q(discount_type=DiscountType.FIXED)
                | Q(amount_off_paisa__isnull=False),
                name="coupon_fixed_requires_amount",
            ),
        ]

    def __str__(self) -> str:
        return self.code

    def save(self, *args, **kwargs):
        self.code = (self.code or "").strip().upper()
        super().save(*args, **kwargs)

    @property
    def is_restricted(self) -> bool:
        return bool(self.applicable_courses or self.applicable_products)

    def is_within_window(self, now=None) -> bool:
        now = now or timezone.now()
        if self.valid_from and now < self.valid_from:
            return False
        if self.valid_until and now > self.valid_until:
            return False
        return True


class CouponUsage(UUIDPrimaryKeyMixin, ImmutableModelMixin, models.Model):
    """
    One application of a coupon to a completed payment.

    Exactly one row per payment; per-user caps count these rows.
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="When the coupon was applied",
    )

    coupon = models.ForeignKey(
        Coupon,
        on_delete=models.PROTECT,
        related_name="usages",
        help_text="Applied coupon",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="coupon_usages",
        help_text="User who used the coupon",
    )

    payment = models.OneToOneField(
        "payments.Payment",
        on_delete=models.PROTECT,
        related_name="coupon_usage",
        help_text="Completed payment the discount was applied to",
    )

    order = models.ForeignKey(
        "commerce.Order",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="coupon_usages",
        help_text="Order the discount was applied to",
    )

    discount_paisa = models.PositiveBigIntegerField(
        help_text="Discount granted in paisa",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Coupon Usage"
        verbose_name_plural = "Coupon Usages"
        indexes = [
            models.Index(fields=["coupon", "user"]),
        ]

    def __str__(self) -> str:
        return f"CouponUsage({self.coupon_id}, {self.user_id}, {self.discount_paisa})"
