"""
Gateway adapters for external payment services.

All gateway calls go through these adapters to ensure consistent error
handling, timeouts, idempotency, and observability.

Usage:
    from payments.adapters import GatewayInitiateParams, adapter_for_method

    adapter = adapter_for_method(payment.method)
    initiation = adapter.initiate(
        GatewayInitiateParams(
            transaction_id=payment.transaction_id,
            amount_paisa=payment.final_amount_paisa,
            currency=payment.currency,
            product_name="Intro to Django",
        )
    )
"""

from payments.adapters.bank_transfer import BankTransferAdapter
from payments.adapters.base import (
    GatewayAdapter,
    GatewayInitiateParams,
    GatewayInitiation,
    GatewayVerification,
    GatewayVerifyParams,
    HttpGatewayAdapter,
    paisa_to_rupees,
    rupees_to_paisa,
)
from payments.adapters.esewa import EsewaAdapter
from payments.adapters.khalti import KhaltiAdapter
from payments.adapters.registry import (
    GATEWAY_ADAPTERS,
    adapter_for_method,
    available_gateways,
    card_gateway,
    gateway_for_method,
    get_adapter,
)
from payments.adapters.stripe_adapter import IdempotencyKeyGenerator, StripeAdapter

__all__ = [
    "BankTransferAdapter",
    "EsewaAdapter",
    "GATEWAY_ADAPTERS",
    "GatewayAdapter",
    "GatewayInitiateParams",
    "GatewayInitiation",
    "GatewayVerification",
    "GatewayVerifyParams",
    "HttpGatewayAdapter",
    "IdempotencyKeyGenerator",
    "KhaltiAdapter",
    "StripeAdapter",
    "adapter_for_method",
    "available_gateways",
    "card_gateway",
    "gateway_for_method",
    "get_adapter",
    "paisa_to_rupees",
    "rupees_to_paisa",
]
