"""
Payment-specific exceptions.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentNotFoundError - Payment lookup failures
    ├── PaymentValidationError - Bad amount, method or request
    │   └── RefundAmountExceededError - Refund above remaining amount
    ├── FraudBlockedError - Initiation rejected by the fraud scorer
    ├── RetryLimitExceededError - Retry attempted after max_retries
    ├── RefundNotAllowedError - Refund from a non-refundable status
    ├── InvalidGatewayOperationError - Operation not supported by the gateway
    └── PaymentProcessingError - Payment processing failures
        └── GatewayError - Base for all gateway adapter errors
            ├── GatewayTimeoutError - Request timed out (transient, retry)
            ├── GatewayUnavailableError - Gateway down or rate limited (transient, retry)
            ├── GatewayRequestError - Rejected request or credentials (permanent)
            ├── GatewayDeclinedError - Payment declined (permanent)
            ├── InvalidSignatureError - Callback signature mismatch (permanent)
            └── GatewayNotConfiguredError - Missing credentials (permanent)

    StaleRecordError - Optimistic locking conflict (inherits ConflictError)
    LockAcquisitionError - Distributed lock timeout (inherits ConflictError)
    InvalidStateTransitionError - FSM transition not allowed (inherits ConflictError)

Usage:
    from payments.exceptions import GatewayError, InvalidStateTransitionError

    try:
        adapter.initiate(params)
    except GatewayError as e:
        if e.is_retryable:
            ...

    raise InvalidStateTransitionError(
        "Cannot refund payment from 'pending' state",
        details={"current_state": "pending", "transition": "refund"},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    Example:
        try:
            PaymentOrchestrator.refund(payment_id)
        except PaymentError as e:
            logger.error(f"Payment operation failed: {e}")
            return Response(e.to_dict(), status=400)
    """

    default_error_code: str = "PAYMENT_ERROR"


class PaymentNotFoundError(PaymentError, NotFoundError):
    """
    Raised when a payment cannot be found, or is not visible to the caller.

    Example:
        raise PaymentNotFoundError(
            f"Payment {payment_id} not found",
            details={"payment_id": str(payment_id)},
        )
    """

    default_error_code: str = "PAYMENT_NOT_FOUND"


class PaymentValidationError(PaymentError, ValidationError):
    """
    Raised when payment input validation fails.

    Use for:
    - Non-positive or non-integer amounts
    - Unsupported payment methods
    - Missing course/order target
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"


class RefundAmountExceededError(PaymentValidationError):
    """Requested refund is larger than what remains refundable."""

    default_error_code: str = "REFUND_AMOUNT_EXCEEDED"


class FraudBlockedError(PaymentError, PermissionDeniedError):
    """
    Raised when the fraud scorer rates an initiation HIGH risk.

    The message shown to clients is deliberately generic; the score and
    triggered signals only go to the audit log.
    """

    default_error_code: str = "FRAUD_BLOCKED"


class RetryLimitExceededError(PaymentError, ConflictError):
    """Raised when a failed payment has used all of its retries."""

    default_error_code: str = "RETRY_LIMIT_EXCEEDED"


class RefundNotAllowedError(PaymentError, ConflictError):
    """Raised when refunding a payment that is not completed."""

    default_error_code: str = "REFUND_NOT_ALLOWED"


class InvalidGatewayOperationError(PaymentError, ConflictError):
    """Raised when an operation is not supported for the payment's gateway."""

    default_error_code: str = "INVALID_GATEWAY_OPERATION"


class PaymentProcessingError(PaymentError):
    """
    Raised when payment processing fails.

    Use for:
    - Gateway API errors
    - Processing timeouts
    """

    default_error_code: str = "PAYMENT_PROCESSING_ERROR"


# =============================================================================
# Gateway Exceptions
# =============================================================================


class GatewayError(PaymentProcessingError, ExternalServiceError):
    """
    Base exception for gateway adapter errors.

    Provides common attributes for gateway error handling:
    - gateway: Adapter key (esewa, khalti, stripe, bank_transfer)
    - gateway_code: The gateway's own error code, when it sends one
    - is_retryable: Whether the operation can be retried

    Example:
        try:
            adapter.verify(params)
        except GatewayError as e:
            if e.is_retryable:
                schedule_retry(e)
            else:
                mark_failed(e)
    """

    default_error_code: str = "GATEWAY_ERROR"
    is_retryable: bool = True

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        gateway: str | None = None,
        gateway_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if gateway:
            details["gateway"] = gateway
        if gateway_code:
            details["gateway_code"] = gateway_code
        super().__init__(message, error_code=error_code, details=details)
        self.gateway = gateway
        self.gateway_code = gateway_code


# -----------------------------------------------------------------------------
# Transient Errors (safe to retry)
# -----------------------------------------------------------------------------


class GatewayTimeoutError(GatewayError):
    """
    The gateway did not answer within GATEWAY_HTTP_TIMEOUT_SECONDS.

    The payment is marked FAILED rather than left hanging; a retry can
    start a fresh attempt.
    """

    default_error_code: str = "GATEWAY_TIMEOUT"
    is_retryable: bool = True


class GatewayUnavailableError(GatewayError):
    """Gateway returned 5xx, refused the connection, or rate limited us."""

    default_error_code: str = "GATEWAY_UNAVAILABLE"
    is_retryable: bool = True


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class GatewayRequestError(GatewayError):
    """Gateway rejected the request (bad parameters or credentials)."""

    default_error_code: str = "GATEWAY_REQUEST_ERROR"
    is_retryable: bool = False


class GatewayDeclinedError(GatewayError):
    """The payer's instrument was declined."""

    default_error_code: str = "GATEWAY_DECLINED"
    is_retryable: bool = False


class InvalidSignatureError(GatewayError):
    """
    Callback signature did not match.

    Raised before any state is changed; the payment keeps its status.
    """

    default_error_code: str = "INVALID_SIGNATURE"
    is_retryable: bool = False


class GatewayNotConfiguredError(GatewayError):
    """Gateway credentials are missing from settings."""

    default_error_code: str = "GATEWAY_NOT_CONFIGURED"
    is_retryable: bool = False


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class StaleRecordError(ConflictError):
    """
    Raised when optimistic locking detects concurrent modification.

    Example:
        rows = Payment.objects.filter(pk=pk, version=expected).update(...)
        if rows == 0:
            raise StaleRecordError(
                f"Payment {pk} has been modified",
                details={"pk": str(pk), "expected_version": expected},
            )
    """

    default_error_code: str = "STALE_RECORD"


class LockAcquisitionError(ConflictError):
    """
    Raised when a distributed lock cannot be acquired.

    Example:
        raise LockAcquisitionError(
            "Failed to acquire lock 'payment:verify:123' within 10s",
            details={"key": "payment:verify:123", "timeout": 10},
        )
    """

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a state machine transition is not allowed.

    Wraps django-fsm's TransitionNotAllowed in the standard error format.

    Example:
        try:
            payment.complete()
        except TransitionNotAllowed:
            raise InvalidStateTransitionError(
                f"Cannot complete payment from '{payment.status}' state",
                details={"current_state": payment.status, "transition": "complete"},
            )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Payment domain
    "PaymentError",
    "PaymentNotFoundError",
    "PaymentValidationError",
    "RefundAmountExceededError",
    "FraudBlockedError",
    "RetryLimitExceededError",
    "RefundNotAllowedError",
    "InvalidGatewayOperationError",
    "PaymentProcessingError",
    # Gateway
    "GatewayError",
    "GatewayTimeoutError",
    "GatewayUnavailableError",
    "GatewayRequestError",
    "GatewayDeclinedError",
    "InvalidSignatureError",
    "GatewayNotConfiguredError",
    # Concurrency control
    "StaleRecordError",
    "LockAcquisitionError",
    "InvalidStateTransitionError",
]
