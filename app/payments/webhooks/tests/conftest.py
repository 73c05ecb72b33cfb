"""
Pytest fixtures for gateway callback tests.
"""

import base64
import json

import pytest

from payments.adapters import EsewaAdapter


@pytest.fixture
def esewa_settings(settings):
    settings.ESEWA_MERCHANT_CODE = "EPAYTEST"
    settings.ESEWA_SECRET_KEY = "8gBm/:&EnhH.1/q"
    settings.ESEWA_ENVIRONMENT = "sandbox"
    settings.FRONTEND_URL = "http://localhost:3000"
    return settings


@pytest.fixture
def esewa_callback_payload(esewa_settings):
    """Build a signed eSewa success payload for a transaction."""

    def _build(transaction_uuid: str, total_amount: str = "1500.00", **overrides) -> dict:
        payload = {
            "transaction_code": "000AE01",
            "status": "COMPLETE",
            "total_amount": total_amount,
            "transaction_uuid": transaction_uuid,
            "product_code": "EPAYTEST",
            "signed_field_names": (
                "transaction_code,status,total_amount,transaction_uuid,product_code,signed_field_names"
            ),
        }
        payload["signature"] = EsewaAdapter.sign(payload, payload["signed_field_names"])
        payload.update(overrides)
        return payload

    return _build


@pytest.fixture
def encode_callback():
    def _encode(payload: dict) -> str:
        return base64.b64encode(json.dumps(payload).encode()).decode()

    return _encode
