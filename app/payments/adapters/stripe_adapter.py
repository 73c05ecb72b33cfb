"""
Stripe card adapter.

Encapsulates all Stripe API interactions for card payments: PaymentIntent
creation at initiation, PaymentIntent retrieval at verification, and
webhook signature checks. All Stripe calls go through this adapter to
ensure consistent error handling, timeouts, idempotency, and
observability.

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_PUBLISHABLE_KEY: Returned to clients for card confirmation
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)

Usage:
    from payments.adapters import StripeAdapter

    initiation = StripeAdapter.initiate(params)
    client_secret = initiation.payload["client_secret"]
"""

from __future__ import annotations

import hashlib
import uuid
from typing import Any

import stripe
from django.conf import settings

from payments.adapters.base import (
    GatewayAdapter,
    GatewayInitiateParams,
    GatewayInitiation,
    GatewayVerification,
    GatewayVerifyParams,
)
from payments.exceptions import (
    GatewayDeclinedError,
    GatewayError,
    GatewayRequestError,
    GatewayTimeoutError,
    GatewayUnavailableError,
    InvalidSignatureError,
)
from payments.state_machines import GatewayName, VerificationOutcome

STATUS_SUCCEEDED = "succeeded"


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for Stripe API calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    The hash component provides uniqueness across service restarts
    while the structured format aids debugging and correlation.

    Example:
        key = IdempotencyKeyGenerator.generate(
            operation="create_intent",
            entity_id=payment.transaction_id,
        )
        # Result: "create_intent:TXN1718000000000A1B2C3D4:1:a1b2c3d4"
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int = 1,
    ) -> str:
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]
        return f"{operation}:{entity_str}:{attempt}:{short_hash}"


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter(GatewayAdapter):
    """
    Adapter for Visa/Mastercard payments through Stripe.

    All methods are classmethods - no instance state is maintained.
    Thread-safe for use from Celery workers.
    """

    name = GatewayName.STRIPE
    display_name = "Stripe"
    supports_callbacks = True

    @classmethod
    def is_configured(cls) -> bool:
        return bool(settings.STRIPE_SECRET_KEY)

    @staticmethod
    def _configure_stripe() -> None:
        """Configure Stripe client with API key and timeout."""
        stripe.api_key = settings.STRIPE_SECRET_KEY
        stripe.default_http_client = stripe.RequestsClient(
            timeout=settings.STRIPE_API_TIMEOUT_SECONDS
        )

    # =========================================================================
    # Contract
    # =========================================================================

    @classmethod
    def initiate(cls, params: GatewayInitiateParams) -> GatewayInitiation:
        """
        Create a PaymentIntent for the payment amount.

        Raises:
            GatewayDeclinedError: Card was declined
            GatewayRequestError: Invalid parameters or credentials
            GatewayUnavailableError: Stripe unreachable or rate limited
            GatewayTimeoutError: Request timed out
        """
        cls.require_configured()
        cls._configure_stripe()

        idempotency_key = params.idempotency_key or IdempotencyKeyGenerator.generate(
            "create_intent", params.transaction_id
        )

        with cls.track_operation(
            "initiate",
            transaction_id=params.transaction_id,
            amount_paisa=params.amount_paisa,
            idempotency_key=idempotency_key,
        ) as log_context:
            try:
                intent = stripe.PaymentIntent.create(
                    amount=params.amount_paisa,
                    currency=params.currency.lower(),
                    description=params.product_name,
                    receipt_email=params.payer_email or None,
                    metadata={"transaction_id": params.transaction_id, **params.metadata},
                    payment_method_types=["card"],
                    idempotency_key=idempotency_key,
                )
            except stripe.StripeError as e:
                cls._handle_stripe_error(e)
            log_context["payment_intent_id"] = intent.id

        return GatewayInitiation(
            gateway_reference=intent.id,
            payload={
                "gateway": cls.name,
                "payment_intent_id": intent.id,
                "client_secret": intent.client_secret,
                "publishable_key": settings.STRIPE_PUBLISHABLE_KEY,
            },
        )

    @classmethod
    def verify(cls, params: GatewayVerifyParams) -> GatewayVerification:
        """Retrieve the PaymentIntent and report whether it succeeded."""
        cls.require_configured()
        cls._configure_stripe()

        payment_intent_id = params.gateway_reference
        if not payment_intent_id:
            raise GatewayRequestError(
                "Stripe verification requires a PaymentIntent id",
                gateway=cls.name,
            )

        with cls.track_operation(
            "verify",
            transaction_id=params.transaction_id,
            payment_intent_id=payment_intent_id,
        ) as log_context:
            try:
                intent = stripe.PaymentIntent.retrieve(payment_intent_id)
            except stripe.StripeError as e:
                cls._handle_stripe_error(e)
            log_context["gateway_status"] = intent.status

        raw = intent.to_dict()
        if intent.status != STATUS_SUCCEEDED:
            return GatewayVerification(
                outcome=VerificationOutcome.FAILED,
                message=f"Stripe PaymentIntent status is {intent.status}",
                raw=raw,
            )

        if intent.amount_received != params.amount_paisa:
            return GatewayVerification(
                outcome=VerificationOutcome.FAILED,
                amount_paisa=intent.amount_received,
                message=(
                    f"Stripe amount {intent.amount_received} does not match "
                    f"expected {params.amount_paisa}"
                ),
                raw=raw,
            )

        return GatewayVerification(
            outcome=VerificationOutcome.SUCCESS,
            amount_paisa=intent.amount_received,
            external_transaction_id=intent.latest_charge or intent.id,
            raw=raw,
        )

    @classmethod
    def construct_event(cls, body: bytes | str, signature: str) -> dict[str, Any]:
        """
        Verify a webhook body against its Stripe-Signature header.

        Returns:
            The event as a plain dict

        Raises:
            InvalidSignatureError: Signature or payload is invalid
        """
        try:
            event = stripe.Webhook.construct_event(
                body, signature, settings.STRIPE_WEBHOOK_SECRET
            )
        except ValueError:
            raise InvalidSignatureError("Invalid Stripe webhook payload", gateway=cls.name)
        except stripe.SignatureVerificationError:
            raise InvalidSignatureError("Invalid Stripe webhook signature", gateway=cls.name)
        return event.to_dict()

    @classmethod
    def verify_callback_signature(cls, payload: dict[str, Any]) -> bool:
        """
        Check ``{"body": ..., "signature": ...}`` from a webhook request.
        """
        if not settings.STRIPE_WEBHOOK_SECRET:
            return False
        try:
            cls.construct_event(payload.get("body", b""), payload.get("signature", ""))
        except InvalidSignatureError:
            return False
        return True

    # =========================================================================
    # Error Translation
    # =========================================================================

    @classmethod
    def _handle_stripe_error(cls, error: stripe.StripeError) -> None:
        """
        Translate Stripe exceptions to gateway exceptions.

        Raises:
            GatewayDeclinedError: Card was declined
            GatewayRequestError: Invalid request or authentication failure
            GatewayUnavailableError: Rate limited, connection or server error
            GatewayTimeoutError: Connection timed out
            GatewayError: Anything else
        """
        logger = cls.get_logger()
        gateway_code = getattr(error, "code", None)

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None)
            logger.warning(
                "Card error from Stripe",
                extra={"gateway": cls.name, "decline_code": decline_code},
            )
            raise GatewayDeclinedError(
                str(error.user_message or error),
                gateway=cls.name,
                gateway_code=decline_code or gateway_code,
            )

        if isinstance(error, stripe.InvalidRequestError):
            raise GatewayRequestError(str(error), gateway=cls.name, gateway_code=gateway_code)

        if isinstance(error, stripe.AuthenticationError):
            logger.critical(
                "Stripe authentication failed - check API key",
                extra={"gateway": cls.name},
            )
            raise GatewayRequestError(
                "Stripe authentication failed",
                gateway=cls.name,
                gateway_code="authentication_error",
            )

        if isinstance(error, stripe.RateLimitError):
            raise GatewayUnavailableError(
                "Stripe rate limit exceeded. Please retry.",
                gateway=cls.name,
                gateway_code="rate_limit",
            )

        if isinstance(error, stripe.APIConnectionError):
            if "timed out" in str(error).lower() or "timeout" in str(error).lower():
                raise GatewayTimeoutError(
                    "Stripe did not respond in time",
                    gateway=cls.name,
                    gateway_code="timeout",
                )
            raise GatewayUnavailableError(
                "Could not connect to Stripe. Please retry.",
                gateway=cls.name,
                gateway_code="api_connection_error",
            )

        if isinstance(error, stripe.APIError):
            raise GatewayUnavailableError(
                "Stripe service error. Please retry.",
                gateway=cls.name,
                gateway_code="api_error",
            )

        logger.error(
            f"Unexpected error from Stripe: {type(error).__name__}",
            extra={"gateway": cls.name},
        )
        raise GatewayError(
            f"Unexpected Stripe error: {error}",
            gateway=cls.name,
            gateway_code=gateway_code or "unknown_error",
        )
