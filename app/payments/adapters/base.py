"""
Gateway adapter contract.

Every gateway (eSewa, Khalti, Stripe, manual bank transfer) is a
GatewayAdapter subclass with classmethods only; the registry maps
gateway keys and payment methods to these classes. The orchestrator
never talks to a gateway except through this contract.

Usage:
    from payments.adapters import GatewayInitiateParams, get_adapter

    adapter = get_adapter("esewa")
    initiation = adapter.initiate(
        GatewayInitiateParams(
            transaction_id=payment.transaction_id,
            amount_paisa=payment.final_amount_paisa,
            currency="NPR",
            product_name=course.title,
        )
    )
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

import requests
from django.conf import settings

from payments.exceptions import (
    GatewayError,
    GatewayNotConfiguredError,
    GatewayRequestError,
    GatewayTimeoutError,
    GatewayUnavailableError,
)
from payments.state_machines import VerificationOutcome

if TYPE_CHECKING:
    from collections.abc import Iterator


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class GatewayInitiateParams:
    """
    Parameters for starting a payment at a gateway.

    Attributes:
        transaction_id: Internal transaction id (sent as the merchant reference)
        amount_paisa: Amount to charge in paisa
        currency: ISO 4217 currency code
        product_name: What is being bought, shown on the gateway page
        payer_name / payer_email / payer_phone: Optional customer details
        idempotency_key: Key for gateways that support idempotent creation
        metadata: Extra key-value pairs attached where the gateway allows it
    """

    transaction_id: str
    amount_paisa: int
    currency: str
    product_name: str
    payer_name: str = ""
    payer_email: str = ""
    payer_phone: str = ""
    idempotency_key: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.amount_paisa, int) or self.amount_paisa <= 0:
            raise ValueError("amount_paisa must be a positive integer")
        if not self.transaction_id:
            raise ValueError("transaction_id is required")
        if not self.currency:
            raise ValueError("currency is required")


@dataclass
class GatewayVerifyParams:
    """
    Parameters for asking a gateway whether a payment went through.

    Attributes:
        transaction_id: Internal transaction id of the attempt
        amount_paisa: Amount we expect the gateway to have collected
        gateway_reference: Reference from initiation (pidx, pi_xxx, MBxxx)
        callback_data: Decoded callback payload, when verification was
            triggered by a callback
    """

    transaction_id: str
    amount_paisa: int
    gateway_reference: str | None = None
    callback_data: dict[str, Any] = field(default_factory=dict)


@dataclass
class GatewayInitiation:
    """
    Result of a successful initiation.

    Attributes:
        gateway_reference: Reference the gateway will know this payment by
        payload: What the client needs to continue (redirect URL, form
            fields, client secret, bank instructions)
    """

    gateway_reference: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class GatewayVerification:
    """
    Result of a verification.

    Attributes:
        outcome: success | failed | manual_required
        amount_paisa: Amount the gateway reports, if any
        external_transaction_id: Gateway's settlement reference
        message: Human-readable reason for failed/manual outcomes
        raw: Gateway response for the payment's metadata
    """

    outcome: str
    amount_paisa: int | None = None
    external_transaction_id: str | None = None
    message: str = ""
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return self.outcome == VerificationOutcome.SUCCESS

    @property
    def requires_manual_verification(self) -> bool:
        return self.outcome == VerificationOutcome.MANUAL_REQUIRED


# =============================================================================
# Money Formatting
# =============================================================================


def paisa_to_rupees(amount_paisa: int) -> str:
    """Format paisa as a two-decimal rupee string: 150050 -> '1500.50'."""
    return f"{amount_paisa // 100}.{amount_paisa % 100:02d}"


def rupees_to_paisa(value: Any) -> int:
    """Parse a rupee amount ('1500.5', 1500.5, 1500) into paisa."""
    amount = Decimal(str(value)) * 100
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# =============================================================================
# Adapter Contract
# =============================================================================


class GatewayAdapter:
    """
    Base class for gateway adapters.

    Subclasses set ``name``/``display_name`` and implement
    ``is_configured``, ``initiate`` and ``verify``. Adapters whose
    callbacks carry a signature set ``supports_callbacks`` and implement
    ``verify_callback_signature``.
    """

    name: str = ""
    display_name: str = ""
    supports_callbacks: bool = False

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    def is_configured(cls) -> bool:
        raise NotImplementedError

    @classmethod
    def initiate(cls, params: GatewayInitiateParams) -> GatewayInitiation:
        raise NotImplementedError

    @classmethod
    def verify(cls, params: GatewayVerifyParams) -> GatewayVerification:
        raise NotImplementedError

    @classmethod
    def verify_callback_signature(cls, payload: dict[str, Any]) -> bool:
        raise NotImplementedError(f"{cls.name} callbacks are not signed")

    # =========================================================================
    # Helpers
    # =========================================================================

    @classmethod
    def require_configured(cls) -> None:
        if not cls.is_configured():
            raise GatewayNotConfiguredError(
                f"{cls.display_name or cls.name} is not configured",
                gateway=cls.name,
            )

    @classmethod
    def callback_url(cls) -> str:
        """Backend URL the gateway sends the payer (or its webhook) back to."""
        return f"{settings.BACKEND_URL.rstrip('/')}/api/v1/payments/webhooks/{cls.name}/"

    @classmethod
    def failure_url(cls, transaction_id: str) -> str:
        return (
            f"{settings.FRONTEND_URL.rstrip('/')}/payment/failed"
            f"?transaction_id={transaction_id}"
        )

    @classmethod
    @contextmanager
    def track_operation(cls, operation: str, **context: Any) -> Iterator[dict[str, Any]]:
        """
        Log start and completion of a gateway call with timing.

        The yielded dict is the log context; callers may add result fields
        to it before the block exits.
        """
        logger = cls.get_logger()
        log_context = {"gateway": cls.name, "operation": operation, **context}
        start_time = time.time()
        logger.info("Starting gateway operation", extra=log_context)

        try:
            yield log_context
        except GatewayError as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.warning(
                f"Gateway operation failed: {e.error_code}",
                extra={**log_context, "duration_ms": duration_ms},
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Gateway operation completed",
            extra={**log_context, "duration_ms": duration_ms},
        )


class HttpGatewayAdapter(GatewayAdapter):
    """
    Base for gateways reached over plain HTTP with ``requests``.

    Every request carries GATEWAY_HTTP_TIMEOUT_SECONDS. Transport
    failures and bad statuses are translated to gateway exceptions.
    """

    @classmethod
    def request(
        cls,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """
        Send a request and return the decoded JSON body.

        Raises:
            GatewayTimeoutError: No answer within the timeout
            GatewayUnavailableError: Connection failure, 429 or 5xx, or a
                body that is not JSON
            GatewayRequestError: Any other 4xx
        """
        kwargs.setdefault("timeout", settings.GATEWAY_HTTP_TIMEOUT_SECONDS)

        try:
            response = requests.request(method, url, **kwargs)
        except requests.Timeout:
            raise GatewayTimeoutError(
                f"{cls.display_name} did not respond in time",
                gateway=cls.name,
            )
        except requests.RequestException as e:
            raise GatewayUnavailableError(
                f"Could not reach {cls.display_name}: {e}",
                gateway=cls.name,
            )

        if response.status_code == 429 or response.status_code >= 500:
            raise GatewayUnavailableError(
                f"{cls.display_name} returned HTTP {response.status_code}",
                gateway=cls.name,
                gateway_code=str(response.status_code),
            )

        try:
            body = response.json()
        except ValueError:
            raise GatewayUnavailableError(
                f"{cls.display_name} returned a non-JSON response",
                gateway=cls.name,
                gateway_code=str(response.status_code),
            )

        if response.status_code >= 400:
            detail = body.get("detail") or body.get("message") if isinstance(body, dict) else None
            raise GatewayRequestError(
                f"{cls.display_name} rejected the request: {detail or response.status_code}",
                gateway=cls.name,
                gateway_code=str(response.status_code),
                details={"response": body},
            )

        return body
