"""
Payment model for the payment lifecycle.

A Payment is created PENDING by the orchestrator, moved to COMPLETED or
FAILED by verification, and afterwards only changes through the refund
branch or (from FAILED) a capped retry. Rows are never deleted.

Usage:
    from payments.models import Payment
    from payments.state_machines import PaymentMethod, PaymentStatus

    payment = Payment.objects.create(
        payer=user,
        course=course,
        amount_paisa=150000,
        final_amount_paisa=150000,
        method=PaymentMethod.WALLET,
        gateway="esewa",
        transaction_id="TXN1718000000000A1B2C3D4",
    )

    # State transitions using django-fsm
    payment.complete()
    payment.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from django_fsm import RETURN_VALUE, FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import (
    REFUNDABLE_STATUSES,
    GatewayName,
    PaymentMethod,
    PaymentStatus,
)


def default_max_retries() -> int:
    return settings.PAYMENT_MAX_RETRIES


class Payment(UUIDPrimaryKeyMixin, BaseModel):
    """
    Central payment entity.

    Uses django-fsm for state machine management and optimistic locking
    via the version field.

    State Flow:
        PENDING -> COMPLETED
        PENDING -> FAILED -> PENDING (retry, while retry_count < max_retries)

    Refund Flow:
        COMPLETED/PARTIALLY_REFUNDED -> PARTIALLY_REFUNDED/REFUNDED

    Fields:
        payer: User paying
        course / order: What is being paid for (one of them)
        amount_paisa / discount_paisa / final_amount_paisa: Amounts in paisa,
            final = amount - discount, never negative
        method: Payer-facing payment method
        gateway: Adapter key chosen at initiation; verification always
            routes back to the same adapter
        transaction_id: Internal id sent to gateways (regenerated on retry)
        gateway_transaction_id: Reference the gateway gave us at initiation
        external_transaction_id: Gateway's settlement id from verification
        coupon: Coupon validated at initiation (usage recorded on completion)
        refunded_paisa: Cumulative refunded amount
        version: Optimistic locking version
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    payer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payments",
        help_text="User making the payment",
    )

    course = models.ForeignKey(
        "learning.Course",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payments",
        help_text="Course being purchased",
    )

    order = models.ForeignKey(
        "commerce.Order",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payments",
        help_text="Order being paid",
    )

    coupon = models.ForeignKey(
        "coupons.Coupon",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payments",
        help_text="Coupon applied to this payment",
    )

    # ==========================================================================
    # Amount & Currency
    # ==========================================================================

    amount_paisa = models.PositiveBigIntegerField(
        help_text="Requested amount before discount in paisa",
    )

    discount_paisa = models.PositiveBigIntegerField(
        default=0,
        help_text="Coupon discount in paisa",
    )

    final_amount_paisa = models.PositiveBigIntegerField(
        help_text="Amount charged in paisa (amount - discount)",
    )

    refunded_paisa = models.PositiveBigIntegerField(
        default=0,
        help_text="Cumulative refunded amount in paisa",
    )

    currency = models.CharField(
        max_length=3,
        default="NPR",
        help_text="ISO 4217 currency code",
    )

    # ==========================================================================
    # Method, Gateway & State
    # ==========================================================================

    method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        help_text="Payment method chosen by the payer",
    )

    gateway = models.CharField(
        max_length=20,
        choices=GatewayName.choices,
        help_text="Gateway adapter used for this payment",
    )

    status = FSMField(
        default=PaymentStatus.PENDING,
        choices=PaymentStatus.choices,
        db_index=True,
        protected=True,  # Prevent direct assignment outside transitions
        help_text="Current payment status (managed by FSM)",
    )

    transaction_id = models.CharField(
        max_length=64,
        unique=True,
        help_text="Internal transaction id sent to the gateway",
    )

    gateway_transaction_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Gateway reference from initiation (pidx, PaymentIntent id, ...)",
    )

    external_transaction_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Gateway settlement reference from verification",
    )

    # ==========================================================================
    # Retry & Concurrency Control
    # ==========================================================================

    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of retries used",
    )

    max_retries = models.PositiveSmallIntegerField(
        default=default_max_retries,
        help_text="Maximum number of retries",
    )

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    # ==========================================================================
    # Client Context
    # ==========================================================================

    ip_address = models.GenericIPAddressField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Client IP at initiation",
    )

    user_agent = models.TextField(
        blank=True,
        default="",
        help_text="Client User-Agent at initiation",
    )

    # ==========================================================================
    # State Timestamps
    # ==========================================================================

    completed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment was verified",
    )

    failed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment last failed",
    )

    refunded_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the last refund was processed",
    )

    # ==========================================================================
    # Metadata & Error Info
    # ==========================================================================

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Gateway payloads, verification results, refund history",
    )

    failure_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Reason the payment failed",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        indexes = [
            models.Index(fields=["payer", "created_at"]),
            models.Index(fields=["payer", "status"]),
            models.Index(fields=["ip_address", "created_at"]),
            models.Index(fields=["gateway", "gateway_transaction_id"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount_paisa__gt=0),
                name="payment_amount_positive",
            ),
            models.CheckConstraint(
                condition=Q(discount_paisa__lte=F("amount_paisa")),
                name="payment_discount_not_above_amount",
            ),
            models.CheckConstraint(
                condition=Q(final_amount_paisa=F("amount_paisa") - F("discount_paisa")),
                name="payment_final_amount_matches",
            ),
            models.CheckConstraint(
                condition=Q(refunded_paisa__lte=F("final_amount_paisa")),
                name="payment_refund_not_above_final",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with ID, status, and amount."""
        return f"Payment({self.id}, {self.status}, {self.final_amount_paisa} {self.currency})"

    def save(self, *args, **kwargs):
        """
        Save with version auto-increment for optimistic locking.

        On update (not force_insert), atomically increments the version
        field to detect concurrent modifications.
        """
        is_update = not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def refundable_paisa(self) -> int:
        return self.final_amount_paisa - self.refunded_paisa

    @property
    def is_completed(self) -> bool:
        return self.status == PaymentStatus.COMPLETED

    @property
    def is_refundable(self) -> bool:
        return self.status in REFUNDABLE_STATUSES and self.refundable_paisa > 0

    @property
    def can_retry(self) -> bool:
        return self.status == PaymentStatus.FAILED and self.retry_count < self.max_retries

    def retries_left(self) -> bool:
        return self.retry_count < self.max_retries

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PaymentStatus.PENDING,
        target=PaymentStatus.COMPLETED,
    )
    def complete(self):
        """
        Mark the payment as verified.

        Transition: PENDING -> COMPLETED
        """
        self.completed_at = timezone.now()
        self.failure_reason = None

    @transition(
        field=status,
        source=PaymentStatus.PENDING,
        target=PaymentStatus.FAILED,
    )
    def fail(self, reason: str | None = None):
        """
        Mark the payment as failed.

        Transition: PENDING -> FAILED
        """
        self.failed_at = timezone.now()
        self.failure_reason = reason

    @transition(
        field=status,
        source=PaymentStatus.FAILED,
        target=PaymentStatus.PENDING,
        conditions=[retries_left],
    )
    def retry(self):
        """
        Start a new attempt for a failed payment.

        Transition: FAILED -> PENDING (only while retries remain)
        """
        self.retry_count += 1
        self.failure_reason = None

    @transition(
        field=status,
        source=list(REFUNDABLE_STATUSES),
        target=RETURN_VALUE(PaymentStatus.PARTIALLY_REFUNDED, PaymentStatus.REFUNDED),
    )
    def refund(self, amount_paisa: int):
        """
        Record a refund of ``amount_paisa``.

        Transition: COMPLETED/PARTIALLY_REFUNDED -> PARTIALLY_REFUNDED/REFUNDED
        (REFUNDED once nothing remains refundable)
        """
        self.refunded_paisa += amount_paisa
        self.refunded_at = timezone.now()
        if self.refunded_paisa >= self.final_amount_paisa:
            return PaymentStatus.REFUNDED
        return PaymentStatus.PARTIALLY_REFUNDED
