"""
eSewa wallet adapter (ePay v2).

Initiation produces a signed HTML form the client POSTs to eSewa. After
payment eSewa redirects to our callback with ``?data=<base64 JSON>``;
that payload is signed over the fields named in ``signed_field_names``.
Verification asks the status check API.

Signature:
    base64(HMAC-SHA256(secret, "total_amount=100.00,transaction_uuid=TXN..,product_code=EPAYTEST"))

Configuration (via settings):
- ESEWA_MERCHANT_CODE: Product code issued by eSewa
- ESEWA_SECRET_KEY: HMAC secret
- ESEWA_ENVIRONMENT: sandbox | production
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
from typing import Any

from django.conf import settings

from payments.adapters.base import (
    GatewayInitiateParams,
    GatewayInitiation,
    GatewayVerification,
    GatewayVerifyParams,
    HttpGatewayAdapter,
    paisa_to_rupees,
    rupees_to_paisa,
)
from payments.exceptions import InvalidSignatureError
from payments.state_machines import GatewayName, VerificationOutcome

ESEWA_FORM_URLS = {
    "sandbox": "https://rc-epay.esewa.com.np/api/epay/main/v2/form",
    "production": "https://epay.esewa.com.np/api/epay/main/v2/form",
}

ESEWA_STATUS_URLS = {
    "sandbox": "https://rc.esewa.com.np/api/epay/transaction/status/",
    "production": "https://epay.esewa.com.np/api/epay/transaction/status/",
}

SIGNED_FIELD_NAMES = "total_amount,transaction_uuid,product_code"

STATUS_COMPLETE = "COMPLETE"


class EsewaAdapter(HttpGatewayAdapter):
    """Adapter for eSewa wallet payments."""

    name = GatewayName.ESEWA
    display_name = "eSewa"
    supports_callbacks = True

    @classmethod
    def is_configured(cls) -> bool:
        return bool(settings.ESEWA_MERCHANT_CODE and settings.ESEWA_SECRET_KEY)

    @classmethod
    def environment(cls) -> str:
        return "production" if settings.ESEWA_ENVIRONMENT == "production" else "sandbox"

    @classmethod
    def sign(cls, fields: dict[str, Any], signed_field_names: str = SIGNED_FIELD_NAMES) -> str:
        """Sign ``fields`` in the order given by ``signed_field_names``."""
        message = ",".join(
            f"{name}={fields.get(name, '')}" for name in signed_field_names.split(",")
        )
        digest = hmac.new(
            settings.ESEWA_SECRET_KEY.encode(),
            message.encode(),
            hashlib.sha256,
        ).digest()
        return base64.b64encode(digest).decode()

    @staticmethod
    def decode_callback(data: str) -> dict[str, Any]:
        """
        Decode the ``data`` query parameter of an eSewa redirect.

        Raises:
            InvalidSignatureError: Payload is not base64-encoded JSON
        """
        try:
            decoded = json.loads(base64.b64decode(data))
        except (binascii.Error, ValueError, TypeError):
            raise InvalidSignatureError(
                "Malformed eSewa callback payload",
                gateway=GatewayName.ESEWA,
            )
        if not isinstance(decoded, dict):
            raise InvalidSignatureError(
                "Malformed eSewa callback payload",
                gateway=GatewayName.ESEWA,
            )
        return decoded

    # =========================================================================
    # Contract
    # =========================================================================

    @classmethod
    def initiate(cls, params: GatewayInitiateParams) -> GatewayInitiation:
        cls.require_configured()

        with cls.track_operation("initiate", transaction_id=params.transaction_id):
            total_amount = paisa_to_rupees(params.amount_paisa)
            form_data = {
                "amount": total_amount,
                "tax_amount": "0",
                "total_amount": total_amount,
                "transaction_uuid": params.transaction_id,
                "product_code": settings.ESEWA_MERCHANT_CODE,
                "product_service_charge": "0",
                "product_delivery_charge": "0",
                "success_url": cls.callback_url(),
                "failure_url": cls.failure_url(params.transaction_id),
                "signed_field_names": SIGNED_FIELD_NAMES,
            }
            form_data["signature"] = cls.sign(form_data)

        return GatewayInitiation(
            gateway_reference=params.transaction_id,
            payload={
                "gateway": cls.name,
                "method": "POST",
                "url": ESEWA_FORM_URLS[cls.environment()],
                "form_data": form_data,
            },
        )

    @classmethod
    def verify(cls, params: GatewayVerifyParams) -> GatewayVerification:
        cls.require_configured()

        with cls.track_operation("verify", transaction_id=params.transaction_id) as log_context:
            data = cls.request(
                "GET",
                ESEWA_STATUS_URLS[cls.environment()],
                params={
                    "product_code": settings.ESEWA_MERCHANT_CODE,
                    "total_amount": paisa_to_rupees(params.amount_paisa),
                    "transaction_uuid": params.transaction_id,
                },
            )
            status = data.get("status")
            log_context["gateway_status"] = status

        if status != STATUS_COMPLETE:
            return GatewayVerification(
                outcome=VerificationOutcome.FAILED,
                message=f"eSewa reported status {status or 'UNKNOWN'}",
                raw=data,
            )

        amount_paisa = rupees_to_paisa(data.get("total_amount", 0))
        if amount_paisa != params.amount_paisa:
            return GatewayVerification(
                outcome=VerificationOutcome.FAILED,
                amount_paisa=amount_paisa,
                message=(
                    f"eSewa amount {amount_paisa} does not match "
                    f"expected {params.amount_paisa}"
                ),
                raw=data,
            )

        return GatewayVerification(
            outcome=VerificationOutcome.SUCCESS,
            amount_paisa=amount_paisa,
            external_transaction_id=data.get("ref_id"),
            raw=data,
        )

    @classmethod
    def verify_callback_signature(cls, payload: dict[str, Any]) -> bool:
        """Check a decoded callback payload against its own signed fields."""
        if not settings.ESEWA_SECRET_KEY:
            return False
        signature = payload.get("signature")
        signed_field_names = payload.get("signed_field_names") or SIGNED_FIELD_NAMES
        if not isinstance(signature, str) or not isinstance(signed_field_names, str):
            return False
        expected = cls.sign(payload, signed_field_names)
        return hmac.compare_digest(signature.encode(), expected.encode())
