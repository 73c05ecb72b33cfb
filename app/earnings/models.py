"""
Payee and earning models.

Instructor and Affiliate share one abstract payee shape, and their
earning rows share one abstract earning shape, so the commission engine
can treat them uniformly.

Aggregates on a payee row are only ever changed with paired ``F()``
updates inside a transaction that holds the payee row lock; a database
check constraint rejects any write that breaks
``total_earnings_paisa == pending_earnings_paisa + paid_earnings_paisa``.

Usage:
    from earnings.models import Instructor, InstructorEarning, EarningStatus

    instructor = Instructor.objects.create(user=user, commission_rate=Decimal("30"))
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


RATE_VALIDATORS = [MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))]


def default_instructor_rate() -> Decimal:
    return Decimal(str(settings.INSTRUCTOR_DEFAULT_COMMISSION_RATE))


def default_affiliate_rate() -> Decimal:
    return Decimal(str(settings.AFFILIATE_DEFAULT_COMMISSION_RATE))


# =============================================================================
# States
# =============================================================================


class EarningStatus(models.TextChoices):
    """
    Earning lifecycle.

    State Flow:
        PENDING -> PAID
        PENDING -> CANCELLED
        PAID -> CANCELLED (payment refunded after payout)
    """

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    CANCELLED = "cancelled", "Cancelled"


class AffiliateStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    SUSPENDED = "suspended", "Suspended"


# =============================================================================
# Payees
# =============================================================================


class Payee(UUIDPrimaryKeyMixin, BaseModel):
    """
    Abstract payee with a commission rate and running aggregates.

    Fields:
        user: Account receiving the earnings
        commission_rate: Percentage of the paid amount owed to the payee
        total_earnings_paisa: All non-cancelled accruals
        pending_earnings_paisa: Accrued but not yet paid out
        paid_earnings_paisa: Paid out
    """

    total_earnings_paisa = models.BigIntegerField(
        default=0,
        help_text="Pending plus paid earnings in paisa",
    )

    pending_earnings_paisa = models.BigIntegerField(
        default=0,
        help_text="Accrued earnings awaiting payout in paisa",
    )

    paid_earnings_paisa = models.BigIntegerField(
        default=0,
        help_text="Earnings already paid out in paisa",
    )

    class Meta:
        abstract = True

    @property
    def aggregates_consistent(self) -> bool:
        return self.total_earnings_paisa == (
            self.pending_earnings_paisa + self.paid_earnings_paisa
        )


class Instructor(Payee):
    """Course author credited with a share of each course sale."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="instructor_profile",
        help_text="Instructor account",
    )

    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=default_instructor_rate,
        validators=RATE_VALIDATORS,
        help_text="Commission percentage (0-100)",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Instructor"
        verbose_name_plural = "Instructors"
        constraints = [
            models.CheckConstraint(
                condition=Q(
                    total_earnings_paisa=F("pending_earnings_paisa")
                    + F("paid_earnings_paisa")
                ),
                name="instructor_earnings_balanced",
            ),
            models.CheckConstraint(
                condition=Q(pending_earnings_paisa__gte=0) & Q(paid_earnings_paisa__gte=0),
                name="instructor_earnings_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Instructor({self.user})"


class Affiliate(Payee):
    """
    Referrer credited when an enrollment carries their affiliate code.

    Only APPROVED affiliates accrue commission.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="affiliate_profile",
        help_text="Affiliate account",
    )

    affiliate_code = models.CharField(
        max_length=20,
        unique=True,
        db_index=True,
        help_text="Public referral code (uppercase)",
    )

    status = models.CharField(
        max_length=20,
        choices=AffiliateStatus.choices,
        default=AffiliateStatus.PENDING,
        db_index=True,
        help_text="Approval status",
    )

    approved_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the affiliate was approved",
    )

    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=default_affiliate_rate,
        validators=RATE_VALIDATORS,
        help_text="Commission percentage (0-100)",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Affiliate"
        verbose_name_plural = "Affiliates"
        constraints = [
            models.CheckConstraint(
                condition=Q(
                    total_earnings_paisa=F("pending_earnings_paisa")
                    + F("paid_earnings_paisa")
                ),
                name="affiliate_earnings_balanced",
            ),
            models.CheckConstraint(
                condition=Q(pending_earnings_paisa__gte=0) & Q(paid_earnings_paisa__gte=0),
                name="affiliate_earnings_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Affiliate({self.affiliate_code})"

    @property
    def is_approved(self) -> bool:
        return self.status == AffiliateStatus.APPROVED


# =============================================================================
# Earnings
# =============================================================================


class Earning(UUIDPrimaryKeyMixin, BaseModel):
    """
    Abstract commission record for one payee on one payment.

    The commission rate is snapshotted at accrual time; later rate changes
    never alter existing rows.
    """

    course = models.ForeignKey(
        "learning.Course",
        on_delete=models.PROTECT,
        related_name="%(class)ss",
        help_text="Course that was sold",
    )

    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.PROTECT,
        related_name="%(class)ss",
        help_text="Payment this commission was accrued from",
    )

    enrollment = models.ForeignKey(
        "learning.Enrollment",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="%(class)ss",
        help_text="Enrollment created by the payment",
    )

    amount_paisa = models.BigIntegerField(
        help_text="Commission amount in paisa",
    )

    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        help_text="Payee commission rate at accrual time",
    )

    status = FSMField(
        default=EarningStatus.PENDING,
        choices=EarningStatus.choices,
        db_index=True,
        protected=True,
        help_text="Earning status (managed by FSM)",
    )

    paid_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the earning was paid out",
    )

    paid_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Administrator who marked the earning paid",
    )

    payout_method = models.CharField(
        max_length=50,
        blank=True,
        default="",
        help_text="How the payout was made (bank, esewa, ...)",
    )

    payout_reference = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="External payout reference",
    )

    cancelled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the earning was cancelled",
    )

    cancellation_reason = models.TextField(
        blank=True,
        default="",
        help_text="Why the earning was cancelled",
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    @transition(field=status, source=EarningStatus.PENDING, target=EarningStatus.PAID)
    def mark_paid(self, paid_by=None, payout_method: str = "", reference: str = ""):
        """Transition: PENDING -> PAID"""
        self.paid_at = timezone.now()
        self.paid_by = paid_by
        self.payout_method = payout_method or ""
        self.payout_reference = reference or ""

    @transition(
        field=status,
        source=[EarningStatus.PENDING, EarningStatus.PAID],
        target=EarningStatus.CANCELLED,
    )
    def cancel(self, reason: str = ""):
        """Transition: PENDING/PAID -> CANCELLED"""
        self.cancelled_at = timezone.now()
        self.cancellation_reason = reason or ""

    @property
    def payee(self) -> Payee:
        raise NotImplementedError


class InstructorEarning(Earning):
    """Instructor commission on a course payment."""

    instructor = models.ForeignKey(
        Instructor,
        on_delete=models.PROTECT,
        related_name="earnings",
        help_text="Instructor owed this commission",
    )

    class Meta(Earning.Meta):
        verbose_name = "Instructor Earning"
        verbose_name_plural = "Instructor Earnings"
        constraints = [
            models.UniqueConstraint(
                fields=["payment", "instructor"],
                name="unique_instructor_earning_per_payment",
            ),
        ]

    def __str__(self) -> str:
        return f"InstructorEarning({self.id}, {self.amount_paisa}, {self.status})"

    @property
    def payee(self) -> Instructor:
        return self.instructor


class AffiliateEarning(Earning):
    """Affiliate commission on a referred course payment."""

    affiliate = models.ForeignKey(
        Affiliate,
        on_delete=models.PROTECT,
        related_name="earnings",
        help_text="Affiliate owed this commission",
    )

    class Meta(Earning.Meta):
        verbose_name = "Affiliate Earning"
        verbose_name_plural = "Affiliate Earnings"
        constraints = [
            models.UniqueConstraint(
                fields=["payment", "affiliate"],
                name="unique_affiliate_earning_per_payment",
            ),
        ]

    def __str__(self) -> str:
        return f"AffiliateEarning({self.id}, {self.amount_paisa}, {self.status})"

    @property
    def payee(self) -> Affiliate:
        return self.affiliate
