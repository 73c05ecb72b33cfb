"""
Pytest fixtures for gateway adapter tests.

Sections:
    - Gateway Settings
    - Mock HTTP Responses
    - Mock Stripe Objects
"""

from dataclasses import dataclass
from typing import Any
from unittest.mock import MagicMock

import pytest


# =============================================================================
# Gateway Settings
# =============================================================================


@pytest.fixture
def esewa_settings(settings):
    settings.ESEWA_MERCHANT_CODE = "EPAYTEST"
    settings.ESEWA_SECRET_KEY = "8gBm/:&EnhH.1/q"
    settings.ESEWA_ENVIRONMENT = "sandbox"
    settings.BACKEND_URL = "http://localhost:8000"
    settings.FRONTEND_URL = "http://localhost:3000"
    return settings


@pytest.fixture
def khalti_settings(settings):
    settings.KHALTI_SECRET_KEY = "test_secret_key_khalti"
    settings.KHALTI_BASE_URL = "https://dev.khalti.com/api/v2/"
    settings.BACKEND_URL = "http://localhost:8000"
    settings.FRONTEND_URL = "http://localhost:3000"
    return settings


@pytest.fixture
def stripe_settings(settings):
    settings.STRIPE_SECRET_KEY = "sk_test_123"
    settings.STRIPE_PUBLISHABLE_KEY = "pk_test_123"
    settings.STRIPE_WEBHOOK_SECRET = "whsec_test_123"
    return settings


@pytest.fixture
def no_card_gateways(settings):
    settings.CARD_PAYMENT_GATEWAY = ""
    settings.KHALTI_SECRET_KEY = ""
    settings.STRIPE_SECRET_KEY = ""
    return settings


# =============================================================================
# Mock HTTP Responses
# =============================================================================


@pytest.fixture
def http_response(mocker):
    """
    Patch requests.request for HTTP gateways.

    Call with the status code and JSON body to return; pass
    ``body=ValueError`` to simulate a response that is not JSON.
    """

    def _respond(status_code: int = 200, body: Any = None):
        response = MagicMock(status_code=status_code)
        if body is ValueError:
            response.json.side_effect = ValueError("No JSON object could be decoded")
        else:
            response.json.return_value = {} if body is None else body
        return mocker.patch(
            "payments.adapters.base.requests.request", return_value=response
        )

    return _respond


# =============================================================================
# Mock Stripe Objects
# =============================================================================


@dataclass
class MockStripeObject:
    """Mock Stripe API object with to_dict support."""

    data: dict[str, Any]

    def __getattr__(self, name: str) -> Any:
        if name == "data":
            return self.__dict__["data"]
        return self.data.get(name)

    def to_dict(self) -> dict[str, Any]:
        return self.data


@pytest.fixture
def mock_payment_intent():
    """Create a mock PaymentIntent response."""

    def _create(
        id: str = "pi_test123456",
        status: str = "requires_payment_method",
        amount: int = 150000,
        amount_received: int = 0,
        latest_charge: str | None = None,
        client_secret: str = "pi_test123456_secret_abc123",
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "payment_intent",
                "status": status,
                "amount": amount,
                "currency": "npr",
                "amount_received": amount_received,
                "latest_charge": latest_charge,
                "client_secret": client_secret,
            }
        )

    return _create


@pytest.fixture
def mock_stripe_payment_intent(mocker):
    """Patch the PaymentIntent resource used by the adapter."""
    return mocker.patch("payments.adapters.stripe_adapter.stripe.PaymentIntent")
