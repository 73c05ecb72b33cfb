"""
Khalti card adapter (ePayment v2).

Khalti takes amounts in paisa. Initiation returns a ``pidx`` and a
hosted payment URL; Khalti redirects the payer back to our return URL
with ``pidx`` and ``status`` in the query string. The return is not
signed, so the only trusted answer is the lookup API.

Configuration (via settings):
- KHALTI_SECRET_KEY: Merchant secret key (``Authorization: Key <secret>``)
- KHALTI_BASE_URL: API root, e.g. https://dev.khalti.com/api/v2/
"""

from __future__ import annotations

from django.conf import settings

from payments.adapters.base import (
    GatewayInitiateParams,
    GatewayInitiation,
    GatewayVerification,
    GatewayVerifyParams,
    HttpGatewayAdapter,
)
from payments.exceptions import GatewayRequestError
from payments.state_machines import GatewayName, VerificationOutcome

STATUS_COMPLETED = "Completed"


class KhaltiAdapter(HttpGatewayAdapter):
    """Adapter for Visa/Mastercard payments through Khalti."""

    name = GatewayName.KHALTI
    display_name = "Khalti"

    @classmethod
    def is_configured(cls) -> bool:
        return bool(settings.KHALTI_SECRET_KEY)

    @classmethod
    def _url(cls, path: str) -> str:
        return f"{settings.KHALTI_BASE_URL.rstrip('/')}/{path}"

    @classmethod
    def _headers(cls) -> dict[str, str]:
        return {
            "Authorization": f"Key {settings.KHALTI_SECRET_KEY}",
            "Content-Type": "application/json",
        }

    @classmethod
    def initiate(cls, params: GatewayInitiateParams) -> GatewayInitiation:
        cls.require_configured()

        body = {
            "return_url": cls.callback_url(),
            "website_url": settings.FRONTEND_URL,
            "amount": params.amount_paisa,
            "purchase_order_id": params.transaction_id,
            "purchase_order_name": params.product_name[:100],
        }
        customer_info = {
            key: value
            for key, value in (
                ("name", params.payer_name),
                ("email", params.payer_email),
                ("phone", params.payer_phone),
            )
            if value
        }
        if customer_info:
            body["customer_info"] = customer_info

        with cls.track_operation("initiate", transaction_id=params.transaction_id) as log_context:
            data = cls.request(
                "POST",
                cls._url("epayment/initiate/"),
                json=body,
                headers=cls._headers(),
            )
            pidx = data.get("pidx")
            if not pidx:
                raise GatewayRequestError(
                    "Khalti did not return a pidx",
                    gateway=cls.name,
                    details={"response": data},
                )
            log_context["pidx"] = pidx

        return GatewayInitiation(
            gateway_reference=pidx,
            payload={
                "gateway": cls.name,
                "pidx": pidx,
                "payment_url": data.get("payment_url"),
                "expires_at": data.get("expires_at"),
            },
        )

    @classmethod
    def verify(cls, params: GatewayVerifyParams) -> GatewayVerification:
        cls.require_configured()

        pidx = params.gateway_reference or params.callback_data.get("pidx")
        if not pidx:
            raise GatewayRequestError(
                "Khalti verification requires a pidx",
                gateway=cls.name,
            )

        with cls.track_operation("verify", transaction_id=params.transaction_id, pidx=pidx) as log_context:
            data = cls.request(
                "POST",
                cls._url("epayment/lookup/"),
                json={"pidx": pidx},
                headers=cls._headers(),
            )
            status = data.get("status")
            log_context["gateway_status"] = status

        if status != STATUS_COMPLETED:
            return GatewayVerification(
                outcome=VerificationOutcome.FAILED,
                message=f"Khalti reported status {status or 'Unknown'}",
                raw=data,
            )

        amount_paisa = int(data.get("total_amount") or 0)
        if amount_paisa != params.amount_paisa:
            return GatewayVerification(
                outcome=VerificationOutcome.FAILED,
                amount_paisa=amount_paisa,
                message=(
                    f"Khalti amount {amount_paisa} does not match "
                    f"expected {params.amount_paisa}"
                ),
                raw=data,
            )

        return GatewayVerification(
            outcome=VerificationOutcome.SUCCESS,
            amount_paisa=amount_paisa,
            external_transaction_id=data.get("transaction_id"),
            raw=data,
        )
