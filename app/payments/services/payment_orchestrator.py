"""
Payment orchestrator service for coordinating payment operations.

This module provides the PaymentOrchestrator class which serves as the
entry point for all payment operations. It coordinates the fraud scorer,
the coupon engine, the gateway adapters, fulfilment and the ledger.

The orchestrator:
- Prices the target (course or order) and applies a validated coupon
- Rejects HIGH risk attempts before anything is persisted
- Routes each payment method to its gateway adapter through the registry
- Verifies callbacks idempotently and runs fulfilment once per completion
- Keeps gateway calls outside database transactions

State machine:
    PENDING -> COMPLETED | FAILED
    COMPLETED | PARTIALLY_REFUNDED -> PARTIALLY_REFUNDED | REFUNDED
    FAILED -> PENDING (retry, capped by max_retries)

Usage:
    from payments.services import InitiatePaymentParams, PaymentOrchestrator

    result = PaymentOrchestrator.initiate(
        InitiatePaymentParams(
            payer=user,
            method=PaymentMethod.WALLET,
            course=course,
            coupon_code="WELCOME10",
            ip_address=get_client_ip(request),
            user_agent=get_user_agent(request),
        )
    )

    if result.success:
        payment = result.data.payment
        form = result.data.gateway_payload
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from audit.models import AuditAction
from audit.services import AuditService
from commerce.models import OrderStatus
from core.exceptions import BaseApplicationError
from core.helpers import generate_reference
from core.services import BaseService, ServiceResult
from coupons.services import CouponService
from earnings.services import AffiliateService
from learning.models import EnrollmentStatus
from learning.services import EnrollmentService

from payments.adapters import (
    GatewayInitiateParams,
    GatewayVerification,
    GatewayVerifyParams,
    IdempotencyKeyGenerator,
    gateway_for_method,
    get_adapter,
)
from payments.exceptions import (
    FraudBlockedError,
    GatewayError,
    InvalidGatewayOperationError,
    InvalidSignatureError,
    InvalidStateTransitionError,
    PaymentError,
    PaymentNotFoundError,
    PaymentValidationError,
    RetryLimitExceededError,
)
from payments.fraud import FraudScorer, RiskAssessment
from payments.locks import lock_payment, payment_lock
from payments.models import Payment
from payments.services.fulfilment import FulfilmentReport, PaymentFulfilment
from payments.services.refund_service import RefundOutcome, RefundService
from payments.state_machines import (
    REFUNDABLE_STATUSES,
    GatewayName,
    PaymentMethod,
    PaymentStatus,
    VerificationOutcome,
)

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from authentication.models import User
    from commerce.models import Order
    from learning.models import Course


FRAUD_BLOCKED_MESSAGE = (
    "This payment could not be processed. Please contact support if the problem persists."
)

COMPLETED_STATUSES = (PaymentStatus.COMPLETED, *REFUNDABLE_STATUSES, PaymentStatus.REFUNDED)


# =============================================================================
# Parameter Types
# =============================================================================


@dataclass
class InitiatePaymentParams:
    """
    Parameters for initiating a payment through the orchestrator.

    Attributes:
        payer: User making the payment
        method: PaymentMethod value
        course: Course being bought (exactly one of course/order)
        order: Pending order being paid
        amount_paisa: Override for the course price; ignored for orders,
            which are always charged their own totals
        coupon_code: Coupon for course payments (orders carry their own)
        affiliate_code: Referral code credited on completion
        ip_address / user_agent: Client context for fraud scoring
        metadata: Extra key-value pairs stored on the payment
    """

    payer: User
    method: str
    course: Course | None = None
    order: Order | None = None
    amount_paisa: int | None = None
    coupon_code: str | None = None
    affiliate_code: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        if self.method not in PaymentMethod.values:
            supported = ", ".join(PaymentMethod.values)
            raise ValueError(f"Unsupported payment method: {self.method}. Supported: {supported}")
        if (self.course is None) == (self.order is None):
            raise ValueError("Exactly one of course or order is required")
        if self.amount_paisa is not None and (
            not isinstance(self.amount_paisa, int) or self.amount_paisa <= 0
        ):
            raise ValueError("amount_paisa must be a positive integer")


@dataclass
class VerifyPaymentParams:
    """
    Parameters for verifying a payment.

    The payment is looked up by ``payment_id``, then ``transaction_id``,
    then (``gateway``, ``gateway_reference``).

    Attributes:
        callback_data: Decoded callback payload, checked against its
            signature first when the gateway signs callbacks
        signature_verified: The caller already verified the raw callback
            (Stripe webhooks are checked on the raw body in the view)
        confirmed_by: Administrator confirming a manual payment; skips the
            gateway check
    """

    payment_id: uuid.UUID | None = None
    transaction_id: str | None = None
    gateway: str | None = None
    gateway_reference: str | None = None
    callback_data: dict[str, Any] = field(default_factory=dict)
    signature_verified: bool = False
    confirmed_by: User | None = None

    def __post_init__(self) -> None:
        if not (self.payment_id or self.transaction_id or self.gateway_reference):
            raise ValueError("payment_id, transaction_id or gateway_reference is required")


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class PaymentInitiation:
    """
    Result of initiate/retry.

    Attributes:
        payment: The PENDING (or, for zero-amount payments, COMPLETED) Payment
        gateway_payload: What the client needs to continue at the gateway
        risk: Fraud assessment of the attempt
    """

    payment: Payment
    gateway_payload: dict[str, Any] = field(default_factory=dict)
    risk: RiskAssessment | None = None


@dataclass
class VerificationResult:
    """
    Result of verify.

    Attributes:
        payment: The Payment after verification
        outcome: success | failed | manual_required
        already_verified: The payment was already completed (no-op)
        message: Reason for failed/manual outcomes
        fulfilment: Report of post-completion steps (first success only)
    """

    payment: Payment
    outcome: str
    already_verified: bool = False
    message: str = ""
    fulfilment: FulfilmentReport | None = None

    @property
    def warnings(self) -> list[str]:
        return list(self.fulfilment.warnings) if self.fulfilment else []


# =============================================================================
# Payment Orchestrator
# =============================================================================


class PaymentOrchestrator(BaseService):
    """
    Central coordinator for payment operations.

    All methods are class methods - no instance state is maintained.
    Public methods return ServiceResult; domain exceptions raised by the
    steps are converted at this boundary.
    """

    # =========================================================================
    # Initiate
    # =========================================================================

    @classmethod
    def initiate(cls, params: InitiatePaymentParams) -> ServiceResult[PaymentInitiation]:
        """
        Start a payment.

        Steps:
        1. Price the course or order
        2. Fraud check (HIGH risk -> audited, FRAUD_BLOCKED)
        3. Validate the coupon (course payments)
        4. Resolve the gateway for the method
        5. Reserve a pending enrollment for a referral code
        6. Create the PENDING Payment
        7. Call the gateway adapter outside any transaction; an adapter
           error marks the payment FAILED (GATEWAY_ERROR)

        Returns:
            ServiceResult containing PaymentInitiation
        """
        logger = cls.get_logger()
        logger.info(
            "Initiating payment",
            extra={
                "payer_id": str(params.payer.pk),
                "method": params.method,
                "course_id": str(params.course.pk) if params.course else None,
                "order_id": str(params.order.pk) if params.order else None,
            },
        )

        try:
            amount, discount, coupon = cls._price(params)

            risk = FraudScorer.assess(
                params.payer,
                amount - discount,
                params.method,
                ip_address=params.ip_address,
                user_agent=params.user_agent,
            )
            cls._reject_high_risk(params.payer, risk, params.ip_address, params.user_agent)

            gateway = gateway_for_method(params.method)
            affiliate_code = cls._reserve_referral(params)

            payment = Payment.objects.create(
                payer=params.payer,
                course=params.course,
                order=params.order,
                coupon=coupon,
                amount_paisa=amount,
                discount_paisa=discount,
                final_amount_paisa=amount - discount,
                currency=settings.PAYMENT_CURRENCY,
                method=params.method,
                gateway=gateway,
                transaction_id=generate_reference("TXN"),
                ip_address=params.ip_address or None,
                user_agent=params.user_agent or "",
                metadata={
                    **params.metadata,
                    "risk": risk.to_dict(),
                    "affiliate_code": affiliate_code,
                },
            )
        except ValueError as e:
            logger.warning(f"Invalid payment parameters: {e}")
            return ServiceResult.failure(str(e), error_code="PAYMENT_VALIDATION_ERROR")
        except BaseApplicationError as e:
            logger.warning(f"Payment initiation rejected: {e.error_code}")
            return ServiceResult.from_exception(e)

        AuditService.record(
            AuditAction.PAYMENT_INITIATED,
            user=params.payer,
            entity=payment,
            description=f"Payment {payment.transaction_id} initiated via {gateway}",
            metadata={"final_amount_paisa": payment.final_amount_paisa, "risk": risk.to_dict()},
            risk_score=risk.score,
            ip_address=params.ip_address,
            user_agent=params.user_agent,
        )

        if payment.final_amount_paisa == 0:
            return cls._complete_free_payment(payment, risk)

        return cls._start_gateway_attempt(payment, risk)

    # =========================================================================
    # Verify
    # =========================================================================

    @classmethod
    def verify(cls, params: VerifyPaymentParams) -> ServiceResult[VerificationResult]:
        """
        Verify a payment with its gateway and complete it.

        Idempotent: an already completed payment returns success without
        touching anything. A signed callback whose signature does not match
        is rejected before any state change. Fulfilment runs once, right
        after the PENDING -> COMPLETED transition.

        Returns:
            ServiceResult containing VerificationResult. Gateway failures
            return PAYMENT_FAILED / GATEWAY_ERROR after marking the payment
            FAILED.
        """
        logger = cls.get_logger()

        try:
            payment = cls._find_payment(params)
            if payment.status in COMPLETED_STATUSES:
                return ServiceResult.success(
                    VerificationResult(
                        payment=payment,
                        outcome=VerificationOutcome.SUCCESS,
                        already_verified=True,
                        message="Payment already verified",
                    )
                )

            cls._check_callback_signature(payment, params)

            with payment_lock(payment.pk, "verify"):
                return cls._verify_with_lock(payment.pk, params)
        except ValueError as e:
            return ServiceResult.failure(str(e), error_code="PAYMENT_VALIDATION_ERROR")
        except BaseApplicationError as e:
            logger.warning(f"Payment verification rejected: {e.error_code}")
            return ServiceResult.from_exception(e)

    @classmethod
    def _verify_with_lock(
        cls, payment_id: uuid.UUID, params: VerifyPaymentParams
    ) -> ServiceResult[VerificationResult]:
        payment = Payment.objects.select_related("course", "order", "payer").get(pk=payment_id)

        if payment.status in COMPLETED_STATUSES:
            return ServiceResult.success(
                VerificationResult(
                    payment=payment,
                    outcome=VerificationOutcome.SUCCESS,
                    already_verified=True,
                    message="Payment already verified",
                )
            )
        if payment.status != PaymentStatus.PENDING:
            raise InvalidStateTransitionError(
                f"Cannot verify payment from '{payment.status}' state",
                details={"current_state": payment.status, "transition": "complete"},
            )

        if params.confirmed_by is not None:
            verification = cls._manual_confirmation(payment, params.confirmed_by)
        else:
            adapter = get_adapter(payment.gateway)
            try:
                verification = adapter.verify(
                    GatewayVerifyParams(
                        transaction_id=payment.transaction_id,
                        amount_paisa=payment.final_amount_paisa,
                        gateway_reference=payment.gateway_transaction_id,
                        callback_data=params.callback_data,
                    )
                )
            except GatewayError as e:
                payment = cls._mark_failed(payment.pk, e.message, error=e)
                return ServiceResult.failure(
                    e.message,
                    error_code="GATEWAY_ERROR",
                    details={
                        "payment_id": str(payment.pk),
                        "gateway_code": e.error_code,
                        "retryable": e.is_retryable,
                    },
                )

        if verification.requires_manual_verification:
            AuditService.record(
                AuditAction.MANUAL_VERIFICATION_REQUIRED,
                user=payment.payer,
                entity=payment,
                description=verification.message,
                metadata={"gateway_reference": payment.gateway_transaction_id},
            )
            return ServiceResult.success(
                VerificationResult(
                    payment=payment,
                    outcome=VerificationOutcome.MANUAL_REQUIRED,
                    message=verification.message,
                )
            )

        if not verification.is_success:
            payment = cls._mark_failed(payment.pk, verification.message, raw=verification.raw)
            return ServiceResult.failure(
                verification.message or "Payment verification failed",
                error_code="PAYMENT_FAILED",
                details={"payment_id": str(payment.pk)},
            )

        payment, completed_now = cls._mark_completed(payment.pk, verification)
        if not completed_now:
            return ServiceResult.success(
                VerificationResult(
                    payment=payment,
                    outcome=VerificationOutcome.SUCCESS,
                    already_verified=True,
                )
            )

        report = PaymentFulfilment.run(payment)
        return ServiceResult.success(
            VerificationResult(
                payment=payment,
                outcome=VerificationOutcome.SUCCESS,
                fulfilment=report,
            )
        )

    # =========================================================================
    # Refund
    # =========================================================================

    @classmethod
    def refund(
        cls,
        payment_id: uuid.UUID,
        amount_paisa: int | None = None,
        reason: str | None = None,
        refunded_by: User | None = None,
    ) -> ServiceResult[RefundOutcome]:
        """
        Refund a completed payment, fully (default) or partially.

        See RefundService.create_refund.
        """
        return RefundService.create_refund(
            payment_id,
            amount_paisa=amount_paisa,
            reason=reason,
            refunded_by=refunded_by,
        )

    # =========================================================================
    # Retry
    # =========================================================================

    @classmethod
    def retry(
        cls,
        payment_id: uuid.UUID,
        method: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> ServiceResult[PaymentInitiation]:
        """
        Start a new attempt for a FAILED payment.

        The same Payment row is reused: retry_count is incremented, the
        status goes back to PENDING, and a fresh transaction id is sent to
        the gateway. The fraud check runs again with this payment excluded
        from the payer's history.

        Returns:
            ServiceResult containing PaymentInitiation, or a failure with
            RETRY_LIMIT_EXCEEDED, INVALID_STATE_TRANSITION, FRAUD_BLOCKED
            or GATEWAY_ERROR
        """
        logger = cls.get_logger()

        try:
            if method is not None and method not in PaymentMethod.values:
                raise PaymentValidationError(
                    f"Unsupported payment method: {method}",
                    details={"method": method},
                )

            with payment_lock(payment_id, "retry"):
                payment = cls._get_retryable(payment_id)
                method = method or payment.method

                risk = FraudScorer.assess(
                    payment.payer,
                    payment.final_amount_paisa,
                    method,
                    ip_address=ip_address or payment.ip_address,
                    user_agent=user_agent if user_agent is not None else payment.user_agent,
                    exclude_payment_id=payment.pk,
                )
                cls._reject_high_risk(payment.payer, risk, ip_address, user_agent)

                gateway = gateway_for_method(method)

                with transaction.atomic():
                    payment = lock_payment(payment_id)
                    cls._ensure_retryable(payment)

                    attempts = list(payment.metadata.get("attempts", []))
                    attempts.append(
                        {
                            "transaction_id": payment.transaction_id,
                            "gateway": payment.gateway,
                            "gateway_transaction_id": payment.gateway_transaction_id,
                            "failure_reason": payment.failure_reason,
                        }
                    )

                    payment.retry()
                    payment.method = method
                    payment.gateway = gateway
                    payment.transaction_id = generate_reference("TXN")
                    payment.gateway_transaction_id = None
                    if ip_address:
                        payment.ip_address = ip_address
                    if user_agent is not None:
                        payment.user_agent = user_agent
                    payment.metadata = {
                        **payment.metadata,
                        "attempts": attempts,
                        "risk": risk.to_dict(),
                    }
                    payment.save()

                logger.info(
                    "Payment retry started",
                    extra={
                        "payment_id": str(payment.pk),
                        "retry_count": payment.retry_count,
                        "transaction_id": payment.transaction_id,
                    },
                )
                AuditService.record(
                    AuditAction.PAYMENT_RETRIED,
                    user=payment.payer,
                    entity=payment,
                    description=(
                        f"Retry {payment.retry_count}/{payment.max_retries} "
                        f"as {payment.transaction_id}"
                    ),
                    metadata={"gateway": gateway, "method": method},
                    risk_score=risk.score,
                    ip_address=ip_address,
                    user_agent=user_agent,
                )

                return cls._start_gateway_attempt(payment, risk)
        except ValueError as e:
            return ServiceResult.failure(str(e), error_code="PAYMENT_VALIDATION_ERROR")
        except BaseApplicationError as e:
            logger.warning(f"Payment retry rejected: {e.error_code}")
            return ServiceResult.from_exception(e)

    # =========================================================================
    # Read Accessors
    # =========================================================================

    @classmethod
    def get_payment_for_user(cls, payment_id: uuid.UUID, user: User) -> ServiceResult[Payment]:
        """
        Look up a payment visible to ``user``.

        Owners see their own payments; administrators see all. Anything
        else is reported as not found.
        """
        payment = (
            Payment.objects.select_related("course", "order", "coupon")
            .filter(pk=payment_id)
            .first()
        )
        if payment is None or not (payment.payer_id == user.pk or user.is_administrator):
            return ServiceResult.failure(
                f"Payment {payment_id} not found",
                error_code="PAYMENT_NOT_FOUND",
            )
        return ServiceResult.success(payment)

    @staticmethod
    def list_payments_for_user(user: User, status: str | None = None) -> QuerySet[Payment]:
        payments = Payment.objects.filter(payer=user).select_related("course", "order")
        if status:
            payments = payments.filter(status=status)
        return payments.order_by("-created_at")

    # =========================================================================
    # Maintenance
    # =========================================================================

    @classmethod
    def expire_stale_pending(cls, hours: int | None = None) -> int:
        """
        Fail PENDING payments older than ``hours`` (PAYMENT_PENDING_EXPIRY_HOURS).

        Manual bank transfers are left alone; an administrator confirms
        those on their own schedule.

        Returns:
            Number of payments expired
        """
        hours = hours or settings.PAYMENT_PENDING_EXPIRY_HOURS
        cutoff = timezone.now() - timedelta(hours=hours)
        stale_ids = list(
            Payment.objects.filter(status=PaymentStatus.PENDING, created_at__lt=cutoff)
            .exclude(gateway=GatewayName.BANK_TRANSFER)
            .values_list("pk", flat=True)
        )

        expired = 0
        for payment_id in stale_ids:
            with transaction.atomic():
                payment = lock_payment(payment_id)
                if payment.status != PaymentStatus.PENDING:
                    continue
                payment.fail(f"Payment expired after {hours} hours without verification")
                payment.metadata = {**payment.metadata, "expired": True}
                payment.save()
            AuditService.record(
                AuditAction.PAYMENT_EXPIRED,
                user=payment.payer,
                entity=payment,
                description=payment.failure_reason,
            )
            expired += 1

        if expired:
            cls.get_logger().info(f"Expired {expired} stale pending payments")
        return expired

    # =========================================================================
    # Helpers
    # =========================================================================

    @classmethod
    def _price(cls, params: InitiatePaymentParams) -> tuple[int, int, Any]:
        """
        Return (amount, discount, coupon) for the payment target.

        Raises:
            PaymentValidationError: Unpayable target
            CouponInvalidError: Coupon code rejected
        """
        if params.order is not None:
            order = params.order
            if order.user_id != params.payer.pk:
                raise PaymentNotFoundError(
                    f"Order {order.pk} not found",
                    error_code="ORDER_NOT_FOUND",
                    details={"order_id": str(order.pk)},
                )
            if order.status != OrderStatus.PENDING:
                raise PaymentValidationError(
                    f"Order {order.order_number} is {order.status}, expected pending",
                    details={"order_id": str(order.pk), "status": order.status},
                )
            if params.coupon_code:
                raise PaymentValidationError(
                    "Coupons for orders are applied at checkout",
                    details={"order_id": str(order.pk)},
                )
            if Payment.objects.filter(order=order, status__in=COMPLETED_STATUSES).exists():
                raise PaymentValidationError(
                    f"Order {order.order_number} has already been paid",
                    details={"order_id": str(order.pk)},
                )
            return order.gross_amount_paisa, order.discount_paisa, order.coupon

        course = params.course
        enrollment = EnrollmentService.get_enrollment(params.payer, course)
        if enrollment is not None and enrollment.status == EnrollmentStatus.ACTIVE:
            raise PaymentValidationError(
                "You are already enrolled in this course",
                error_code="ALREADY_ENROLLED",
                details={"course_id": str(course.pk)},
            )

        amount = params.amount_paisa if params.amount_paisa is not None else course.price_paisa
        if amount <= 0:
            raise PaymentValidationError(
                "Payment amount must be positive",
                details={"amount_paisa": amount},
            )

        if not params.coupon_code:
            return amount, 0, None

        validation = CouponService.validate(
            params.coupon_code,
            params.payer,
            amount,
            course_ids=[course.pk],
        )
        validation.raise_if_invalid()
        return amount, validation.discount_paisa, validation.coupon

    @classmethod
    def _reject_high_risk(
        cls,
        payer: User,
        risk: RiskAssessment,
        ip_address: str | None,
        user_agent: str | None,
    ) -> None:
        if not risk.is_high_risk:
            return

        cls.get_logger().warning(
            "Payment blocked by fraud check",
            extra={"payer_id": str(payer.pk), "score": risk.score, "signals": risk.signal_codes},
        )
        AuditService.record(
            AuditAction.FRAUD_DETECTED,
            user=payer,
            entity=payer,
            description=f"Payment blocked: {', '.join(risk.signal_codes)}",
            metadata=risk.to_dict(),
            risk_score=risk.score,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        raise FraudBlockedError(FRAUD_BLOCKED_MESSAGE)

    @classmethod
    def _reserve_referral(cls, params: InitiatePaymentParams) -> str | None:
        if not params.affiliate_code or params.course is None:
            return None

        affiliate = AffiliateService.resolve_code(params.affiliate_code)
        if affiliate is None or affiliate.user_id == params.payer.pk:
            cls.get_logger().info(
                "Ignoring unusable affiliate code",
                extra={"affiliate_code": params.affiliate_code},
            )
            return None

        EnrollmentService.reserve(params.payer, params.course, affiliate=affiliate)
        return affiliate.affiliate_code

    @classmethod
    def _start_gateway_attempt(
        cls, payment: Payment, risk: RiskAssessment
    ) -> ServiceResult[PaymentInitiation]:
        """Call the adapter for the payment's current transaction id."""
        adapter = get_adapter(payment.gateway)
        payer = payment.payer

        try:
            initiation = adapter.initiate(
                GatewayInitiateParams(
                    transaction_id=payment.transaction_id,
                    amount_paisa=payment.final_amount_paisa,
                    currency=payment.currency,
                    product_name=cls._product_name(payment),
                    payer_name=payer.full_name,
                    payer_email=payer.email,
                    payer_phone=payer.phone or "",
                    idempotency_key=IdempotencyKeyGenerator.generate(
                        "initiate", payment.transaction_id
                    ),
                    metadata={"payment_id": str(payment.pk)},
                )
            )
        except GatewayError as e:
            payment = cls._mark_failed(payment.pk, e.message, error=e)
            return ServiceResult.failure(
                e.message,
                error_code="GATEWAY_ERROR",
                details={
                    "payment_id": str(payment.pk),
                    "gateway_code": e.error_code,
                    "retryable": e.is_retryable,
                },
            )

        Payment.objects.filter(pk=payment.pk).update(
            gateway_transaction_id=initiation.gateway_reference
        )
        payment.gateway_transaction_id = initiation.gateway_reference

        cls.get_logger().info(
            "Payment initiated successfully",
            extra={
                "payment_id": str(payment.pk),
                "gateway": payment.gateway,
                "gateway_reference": initiation.gateway_reference,
            },
        )
        return ServiceResult.success(
            PaymentInitiation(
                payment=payment,
                gateway_payload=initiation.payload,
                risk=risk,
            )
        )

    @classmethod
    def _complete_free_payment(
        cls, payment: Payment, risk: RiskAssessment
    ) -> ServiceResult[PaymentInitiation]:
        """A fully discounted payment completes without a gateway round trip."""
        payment, _ = cls._mark_completed(
            payment.pk,
            GatewayVerification(
                outcome=VerificationOutcome.SUCCESS,
                amount_paisa=0,
                raw={"free": True},
            ),
        )
        report = PaymentFulfilment.run(payment)
        return ServiceResult.success(
            PaymentInitiation(
                payment=payment,
                gateway_payload={"free": True, "fulfilment": report.to_dict()},
                risk=risk,
            )
        )

    @classmethod
    def _mark_completed(
        cls, payment_id: uuid.UUID, verification: GatewayVerification
    ) -> tuple[Payment, bool]:
        """Return (payment, completed_now); completed_now is False if it raced."""
        with transaction.atomic():
            payment = lock_payment(payment_id)
            if payment.status != PaymentStatus.PENDING:
                return payment, False

            payment.complete()
            payment.external_transaction_id = verification.external_transaction_id
            payment.metadata = {
                **payment.metadata,
                "verification": {
                    "amount_paisa": verification.amount_paisa,
                    "external_transaction_id": verification.external_transaction_id,
                    "raw": verification.raw,
                    "verified_at": timezone.now().isoformat(),
                },
            }
            payment.save()

        AuditService.record(
            AuditAction.PAYMENT_COMPLETED,
            user=payment.payer,
            entity=payment,
            description=f"Payment {payment.transaction_id} completed",
            metadata={"final_amount_paisa": payment.final_amount_paisa},
        )
        cls.get_logger().info(
            "Payment completed",
            extra={"payment_id": str(payment.pk), "gateway": payment.gateway},
        )
        return Payment.objects.select_related("course", "order", "payer", "coupon").get(
            pk=payment_id
        ), True

    @classmethod
    def _mark_failed(
        cls,
        payment_id: uuid.UUID,
        reason: str,
        error: GatewayError | None = None,
        raw: dict[str, Any] | None = None,
    ) -> Payment:
        with transaction.atomic():
            payment = lock_payment(payment_id)
            if payment.status != PaymentStatus.PENDING:
                return payment

            payment.fail(reason)
            last_error: dict[str, Any] = {"reason": reason}
            if error is not None:
                last_error.update(
                    {
                        "error_code": error.error_code,
                        "gateway_code": error.gateway_code,
                        "retryable": error.is_retryable,
                    }
                )
            if raw:
                last_error["raw"] = raw
            payment.metadata = {**payment.metadata, "last_error": last_error}
            payment.save()

        AuditService.record(
            AuditAction.PAYMENT_FAILED,
            user=payment.payer,
            entity=payment,
            description=reason,
            metadata=last_error,
        )
        cls.get_logger().warning(
            "Payment failed",
            extra={"payment_id": str(payment.pk), "reason": reason},
        )
        return payment

    @classmethod
    def _manual_confirmation(cls, payment: Payment, confirmed_by: User) -> GatewayVerification:
        if not confirmed_by.is_administrator:
            raise PaymentError(
                "Only administrators can confirm payments manually",
                error_code="PERMISSION_DENIED",
            )
        if payment.gateway != GatewayName.BANK_TRANSFER:
            raise InvalidGatewayOperationError(
                "Only bank transfers can be confirmed manually",
                details={"payment_id": str(payment.pk), "gateway": payment.gateway},
            )
        return GatewayVerification(
            outcome=VerificationOutcome.SUCCESS,
            amount_paisa=payment.final_amount_paisa,
            external_transaction_id=payment.gateway_transaction_id,
            raw={"confirmed_by": str(confirmed_by.pk), "manual": True},
        )

    @classmethod
    def _find_payment(cls, params: VerifyPaymentParams) -> Payment:
        lookup = Q()
        if params.payment_id:
            lookup = Q(pk=params.payment_id)
        elif params.transaction_id:
            lookup = Q(transaction_id=params.transaction_id)
        else:
            lookup = Q(gateway_transaction_id=params.gateway_reference)
            if params.gateway:
                lookup &= Q(gateway=params.gateway)

        payment = Payment.objects.filter(lookup).first()
        if payment is None:
            raise PaymentNotFoundError(
                "Payment not found",
                details={
                    "payment_id": str(params.payment_id) if params.payment_id else None,
                    "transaction_id": params.transaction_id,
                    "gateway_reference": params.gateway_reference,
                },
            )
        return payment

    @classmethod
    def _check_callback_signature(cls, payment: Payment, params: VerifyPaymentParams) -> None:
        if not params.callback_data or params.signature_verified:
            return

        adapter = get_adapter(payment.gateway)
        if not adapter.supports_callbacks:
            return

        if not adapter.verify_callback_signature(params.callback_data):
            AuditService.record(
                AuditAction.INVALID_SIGNATURE,
                user=payment.payer,
                entity=payment,
                description=f"Invalid {payment.gateway} callback signature",
                metadata={"gateway": payment.gateway},
                risk_score=80,
            )
            raise InvalidSignatureError(
                f"Invalid {adapter.display_name} callback signature",
                gateway=payment.gateway,
            )

    @classmethod
    def _get_retryable(cls, payment_id: uuid.UUID) -> Payment:
        payment = Payment.objects.select_related("payer").filter(pk=payment_id).first()
        if payment is None:
            raise PaymentNotFoundError(
                f"Payment {payment_id} not found",
                details={"payment_id": str(payment_id)},
            )
        cls._ensure_retryable(payment)
        return payment

    @staticmethod
    def _ensure_retryable(payment: Payment) -> None:
        if payment.status != PaymentStatus.FAILED:
            raise InvalidStateTransitionError(
                f"Only failed payments can be retried (payment is {payment.status})",
                details={"current_state": payment.status, "transition": "retry"},
            )
        if payment.retry_count >= payment.max_retries:
            raise RetryLimitExceededError(
                f"Payment has already been retried {payment.retry_count} times",
                details={
                    "payment_id": str(payment.pk),
                    "retry_count": payment.retry_count,
                    "max_retries": payment.max_retries,
                },
            )

    @staticmethod
    def _product_name(payment: Payment) -> str:
        if payment.course_id is not None:
            return payment.course.title
        return f"Order {payment.order.order_number}"
