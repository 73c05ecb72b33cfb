"""
Gateway registry.

Maps gateway keys to adapter classes and payment methods to gateway
keys. Card methods resolve through CARD_PAYMENT_GATEWAY so the card
provider can be switched without touching callers.

Usage:
    from payments.adapters import adapter_for_method, get_adapter

    gateway = gateway_for_method(PaymentMethod.VISA_CARD)   # "khalti"
    adapter = get_adapter(gateway)
"""

from __future__ import annotations

from typing import Any

from django.conf import settings

from payments.adapters.bank_transfer import BankTransferAdapter
from payments.adapters.base import GatewayAdapter
from payments.adapters.esewa import EsewaAdapter
from payments.adapters.khalti import KhaltiAdapter
from payments.adapters.stripe_adapter import StripeAdapter
from payments.exceptions import GatewayNotConfiguredError
from payments.state_machines import CARD_METHODS, GatewayName, PaymentMethod

GATEWAY_ADAPTERS: dict[str, type[GatewayAdapter]] = {
    GatewayName.ESEWA: EsewaAdapter,
    GatewayName.KHALTI: KhaltiAdapter,
    GatewayName.STRIPE: StripeAdapter,
    GatewayName.BANK_TRANSFER: BankTransferAdapter,
}

METHOD_GATEWAYS: dict[str, str] = {
    PaymentMethod.WALLET: GatewayName.ESEWA,
    PaymentMethod.MOBILE_BANKING: GatewayName.BANK_TRANSFER,
}

# Interchangeable card providers, in fallback order
CARD_GATEWAYS: tuple[str, ...] = (GatewayName.KHALTI, GatewayName.STRIPE)


def get_adapter(gateway: str) -> type[GatewayAdapter]:
    """
    Get the adapter class for a gateway key.

    Raises:
        ValueError: If the gateway key is unknown
    """
    adapter = GATEWAY_ADAPTERS.get(gateway)
    if adapter is None:
        supported = ", ".join(GATEWAY_ADAPTERS.keys())
        raise ValueError(f"Unknown gateway: {gateway}. Supported gateways: {supported}")
    return adapter


def card_gateway() -> str:
    """
    Gateway used for Visa/Mastercard.

    CARD_PAYMENT_GATEWAY wins when set; otherwise the first configured card
    provider.

    Raises:
        GatewayNotConfiguredError: No card provider is configured
    """
    configured = settings.CARD_PAYMENT_GATEWAY
    if configured:
        if configured not in CARD_GATEWAYS:
            raise ValueError(
                f"CARD_PAYMENT_GATEWAY must be one of {', '.join(CARD_GATEWAYS)}, got {configured}"
            )
        return configured

    for gateway in CARD_GATEWAYS:
        if GATEWAY_ADAPTERS[gateway].is_configured():
            return gateway

    raise GatewayNotConfiguredError("No card payment gateway is configured")


def gateway_for_method(method: str) -> str:
    """
    Resolve a payment method to a gateway key.

    Raises:
        ValueError: If the method is unknown
        GatewayNotConfiguredError: Card method with no card provider
    """
    if method in CARD_METHODS:
        return card_gateway()

    gateway = METHOD_GATEWAYS.get(method)
    if gateway is None:
        supported = ", ".join(PaymentMethod.values)
        raise ValueError(f"Unknown payment method: {method}. Supported methods: {supported}")
    return gateway


def adapter_for_method(method: str) -> type[GatewayAdapter]:
    return get_adapter(gateway_for_method(method))


def available_gateways() -> list[dict[str, Any]]:
    """
    List configured gateways and the methods each one serves.

    Card methods are only listed under the provider that would actually
    handle them.
    """
    try:
        active_card_gateway = card_gateway()
    except (GatewayNotConfiguredError, ValueError):
        active_card_gateway = None

    gateways = []
    for key, adapter in GATEWAY_ADAPTERS.items():
        if not adapter.is_configured():
            continue

        methods = [method for method, gateway in METHOD_GATEWAYS.items() if gateway == key]
        if key == active_card_gateway:
            methods.extend(CARD_METHODS)
        if not methods:
            continue

        gateways.append(
            {
                "id": key,
                "name": adapter.display_name,
                "methods": [str(method) for method in methods],
                "currencies": [settings.PAYMENT_CURRENCY],
                "requires_manual_verification": key == GatewayName.BANK_TRANSFER,
            }
        )
    return gateways
