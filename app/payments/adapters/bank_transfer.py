"""
Manual mobile-banking adapter.

There is no bank API: initiation hands the payer bank details and a
reference number, and verification always answers MANUAL_REQUIRED until
an administrator confirms the transfer.
"""

from __future__ import annotations

from django.conf import settings

from core.helpers import generate_reference
from payments.adapters.base import (
    GatewayAdapter,
    GatewayInitiateParams,
    GatewayInitiation,
    GatewayVerification,
    GatewayVerifyParams,
    paisa_to_rupees,
)
from payments.state_machines import GatewayName, VerificationOutcome


class BankTransferAdapter(GatewayAdapter):
    name = GatewayName.BANK_TRANSFER
    display_name = "Mobile Banking"

    @classmethod
    def is_configured(cls) -> bool:
        return bool(settings.MOBILE_BANKING_ENABLED)

    @classmethod
    def initiate(cls, params: GatewayInitiateParams) -> GatewayInitiation:
        cls.require_configured()

        with cls.track_operation("initiate", transaction_id=params.transaction_id) as log_context:
            reference = generate_reference("MB")
            amount = paisa_to_rupees(params.amount_paisa)
            bank_details = dict(settings.PAYMENT_BANK_DETAILS)
            log_context["reference_number"] = reference

        return GatewayInitiation(
            gateway_reference=reference,
            payload={
                "gateway": cls.name,
                "reference_number": reference,
                "amount": amount,
                "currency": params.currency,
                "bank_details": bank_details,
                "instructions": [
                    f"Transfer {params.currency} {amount} to the account above",
                    f"Use reference number: {reference}",
                    "Send the payment receipt to support for verification",
                ],
                "requires_manual_verification": True,
            },
        )

    @classmethod
    def verify(cls, params: GatewayVerifyParams) -> GatewayVerification:
        return GatewayVerification(
            outcome=VerificationOutcome.MANUAL_REQUIRED,
            message="Mobile banking payments require manual verification by an administrator",
            raw={"reference_number": params.gateway_reference},
        )
