"""
Tests for the gateway adapters and registry.

HTTP gateways are tested with requests.request mocked; Stripe with the
PaymentIntent resource mocked. No test reaches a real gateway.
"""

import base64
import json
from unittest.mock import MagicMock

import pytest
import requests
import stripe

from payments.adapters import (
    BankTransferAdapter,
    EsewaAdapter,
    GatewayInitiateParams,
    GatewayVerifyParams,
    IdempotencyKeyGenerator,
    KhaltiAdapter,
    StripeAdapter,
    adapter_for_method,
    available_gateways,
    card_gateway,
    gateway_for_method,
    get_adapter,
    paisa_to_rupees,
    rupees_to_paisa,
)
from payments.exceptions import (
    GatewayDeclinedError,
    GatewayError,
    GatewayNotConfiguredError,
    GatewayRequestError,
    GatewayTimeoutError,
    GatewayUnavailableError,
    InvalidSignatureError,
)
from payments.state_machines import VerificationOutcome


def initiate_params(**overrides) -> GatewayInitiateParams:
    values = {
        "transaction_id": "TXN1777629600000A1B2C3D4",
        "amount_paisa": 150000,
        "currency": "NPR",
        "product_name": "Intro to Django",
    }
    values.update(overrides)
    return GatewayInitiateParams(**values)


def verify_params(**overrides) -> GatewayVerifyParams:
    values = {
        "transaction_id": "TXN1777629600000A1B2C3D4",
        "amount_paisa": 150000,
    }
    values.update(overrides)
    return GatewayVerifyParams(**values)


# =============================================================================
# Data Types and Money
# =============================================================================


class TestMoneyFormatting:
    @pytest.mark.parametrize(
        "paisa,rupees",
        [(150000, "1500.00"), (150050, "1500.50"), (5, "0.05"), (0, "0.00")],
    )
    def test_paisa_to_rupees(self, paisa, rupees):
        assert paisa_to_rupees(paisa) == rupees

    @pytest.mark.parametrize(
        "value,paisa",
        [("1500.5", 150050), (1500, 150000), ("0.005", 1), ("99.99", 9999)],
    )
    def test_rupees_to_paisa(self, value, paisa):
        assert rupees_to_paisa(value) == paisa


class TestGatewayInitiateParams:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"amount_paisa": 0},
            {"amount_paisa": -100},
            {"amount_paisa": 15.5},
            {"transaction_id": ""},
            {"currency": ""},
        ],
    )
    def test_rejects_invalid_values(self, overrides):
        with pytest.raises(ValueError):
            initiate_params(**overrides)


class TestIdempotencyKeyGenerator:
    def test_format(self):
        key = IdempotencyKeyGenerator.generate("create_intent", "TXN1")

        operation, entity, attempt, digest = key.split(":")
        assert (operation, entity, attempt) == ("create_intent", "TXN1", "1")
        assert len(digest) == 8

    def test_stable_per_attempt(self):
        first = IdempotencyKeyGenerator.generate("create_intent", "TXN1")

        assert IdempotencyKeyGenerator.generate("create_intent", "TXN1") == first
        assert IdempotencyKeyGenerator.generate("create_intent", "TXN1", attempt=2) != first


# =============================================================================
# HTTP Error Mapping
# =============================================================================


class TestHttpRequestErrors:
    """HttpGatewayAdapter.request, exercised through the eSewa adapter."""

    @pytest.fixture(autouse=True)
    def configured(self, esewa_settings):
        return esewa_settings

    def test_timeout(self, mocker):
        mocker.patch(
            "payments.adapters.base.requests.request", side_effect=requests.Timeout()
        )

        with pytest.raises(GatewayTimeoutError) as exc_info:
            EsewaAdapter.verify(verify_params())

        assert exc_info.value.is_retryable
        assert exc_info.value.gateway == "esewa"

    def test_connection_error(self, mocker):
        mocker.patch(
            "payments.adapters.base.requests.request",
            side_effect=requests.ConnectionError("refused"),
        )

        with pytest.raises(GatewayUnavailableError):
            EsewaAdapter.verify(verify_params())

    @pytest.mark.parametrize("status_code", [429, 500, 503])
    def test_server_side_statuses_are_unavailable(self, http_response, status_code):
        http_response(status_code, {"message": "busy"})

        with pytest.raises(GatewayUnavailableError) as exc_info:
            EsewaAdapter.verify(verify_params())

        assert exc_info.value.gateway_code == str(status_code)

    def test_non_json_body(self, http_response):
        http_response(200, ValueError)

        with pytest.raises(GatewayUnavailableError):
            EsewaAdapter.verify(verify_params())

    def test_client_error(self, http_response):
        http_response(400, {"message": "Invalid product code"})

        with pytest.raises(GatewayRequestError) as exc_info:
            EsewaAdapter.verify(verify_params())

        assert "Invalid product code" in str(exc_info.value)
        assert exc_info.value.details["response"] == {"message": "Invalid product code"}
        assert not exc_info.value.is_retryable

    def test_default_timeout_is_applied(self, http_response, settings):
        settings.GATEWAY_HTTP_TIMEOUT_SECONDS = 7
        request = http_response(200, {"status": "COMPLETE", "total_amount": "1500.00"})

        EsewaAdapter.verify(verify_params())

        assert request.call_args.kwargs["timeout"] == 7


# =============================================================================
# eSewa
# =============================================================================


class TestEsewaAdapter:
    @pytest.fixture(autouse=True)
    def configured(self, esewa_settings):
        return esewa_settings

    def test_is_configured(self, settings):
        assert EsewaAdapter.is_configured()

        settings.ESEWA_SECRET_KEY = ""
        assert not EsewaAdapter.is_configured()

    def test_initiate_builds_signed_form(self):
        initiation = EsewaAdapter.initiate(initiate_params())

        assert initiation.gateway_reference == "TXN1777629600000A1B2C3D4"
        payload = initiation.payload
        assert payload["method"] == "POST"
        assert payload["url"] == "https://rc-epay.esewa.com.np/api/epay/main/v2/form"

        form = payload["form_data"]
        assert form["total_amount"] == "1500.00"
        assert form["product_code"] == "EPAYTEST"
        assert form["success_url"] == "http://localhost:8000/api/v1/payments/webhooks/esewa/"
        assert form["failure_url"] == (
            "http://localhost:3000/payment/failed?transaction_id=TXN1777629600000A1B2C3D4"
        )
        assert form["signed_field_names"] == "total_amount,transaction_uuid,product_code"
        assert form["signature"] == EsewaAdapter.sign(form)

    def test_production_urls(self, settings, http_response):
        settings.ESEWA_ENVIRONMENT = "production"
        request = http_response(200, {"status": "COMPLETE", "total_amount": "1500.00"})

        initiation = EsewaAdapter.initiate(initiate_params())
        EsewaAdapter.verify(verify_params())

        assert initiation.payload["url"] == "https://epay.esewa.com.np/api/epay/main/v2/form"
        assert request.call_args.args[1] == (
            "https://epay.esewa.com.np/api/epay/transaction/status/"
        )

    def test_initiate_requires_configuration(self, settings):
        settings.ESEWA_MERCHANT_CODE = ""

        with pytest.raises(GatewayNotConfiguredError):
            EsewaAdapter.initiate(initiate_params())

    def test_verify_complete(self, http_response):
        request = http_response(
            200, {"status": "COMPLETE", "total_amount": "1500.00", "ref_id": "000AE01"}
        )

        verification = EsewaAdapter.verify(verify_params())

        assert verification.is_success
        assert verification.amount_paisa == 150000
        assert verification.external_transaction_id == "000AE01"
        method, url = request.call_args.args
        assert method == "GET"
        assert url == "https://rc.esewa.com.np/api/epay/transaction/status/"
        assert request.call_args.kwargs["params"] == {
            "product_code": "EPAYTEST",
            "total_amount": "1500.00",
            "transaction_uuid": "TXN1777629600000A1B2C3D4",
        }

    def test_verify_incomplete_status(self, http_response):
        http_response(200, {"status": "AMBIGUOUS"})

        verification = EsewaAdapter.verify(verify_params())

        assert verification.outcome == VerificationOutcome.FAILED
        assert verification.message == "eSewa reported status AMBIGUOUS"

    def test_verify_amount_mismatch(self, http_response):
        http_response(200, {"status": "COMPLETE", "total_amount": "100.00"})

        verification = EsewaAdapter.verify(verify_params())

        assert not verification.is_success
        assert verification.amount_paisa == 10000
        assert "does not match" in verification.message

    def test_callback_signature(self):
        payload = {
            "transaction_code": "000AE01",
            "status": "COMPLETE",
            "total_amount": "1500.00",
            "transaction_uuid": "TXN1777629600000A1B2C3D4",
            "product_code": "EPAYTEST",
            "signed_field_names": "transaction_code,status,total_amount,transaction_uuid,product_code",
        }
        payload["signature"] = EsewaAdapter.sign(payload, payload["signed_field_names"])

        assert EsewaAdapter.verify_callback_signature(payload)

        tampered = {**payload, "total_amount": "1.00"}
        assert not EsewaAdapter.verify_callback_signature(tampered)
        assert not EsewaAdapter.verify_callback_signature({**payload, "signature": None})

    @pytest.mark.parametrize("signed_field_names", [["total_amount"], 42, {"a": 1}])
    def test_callback_signature_rejects_malformed_field_list(self, signed_field_names):
        payload = {"total_amount": "1500.00", "transaction_uuid": "TXN1"}
        payload["signature"] = EsewaAdapter.sign(payload)
        payload["signed_field_names"] = signed_field_names

        assert not EsewaAdapter.verify_callback_signature(payload)

    def test_callback_signature_without_secret(self, settings):
        payload = {"total_amount": "1500.00", "transaction_uuid": "TXN1"}
        payload["signature"] = EsewaAdapter.sign(payload)
        settings.ESEWA_SECRET_KEY = ""

        assert not EsewaAdapter.verify_callback_signature(payload)

    def test_decode_callback(self):
        data = base64.b64encode(json.dumps({"status": "COMPLETE"}).encode()).decode()

        assert EsewaAdapter.decode_callback(data) == {"status": "COMPLETE"}

    @pytest.mark.parametrize(
        "data",
        ["not base64!", base64.b64encode(b"[1, 2]").decode(), base64.b64encode(b"{").decode()],
    )
    def test_decode_malformed_callback(self, data):
        with pytest.raises(InvalidSignatureError):
            EsewaAdapter.decode_callback(data)


# =============================================================================
# Khalti
# =============================================================================


class TestKhaltiAdapter:
    @pytest.fixture(autouse=True)
    def configured(self, khalti_settings):
        return khalti_settings

    def test_initiate(self, http_response):
        request = http_response(
            200,
            {
                "pidx": "bZQLD9wRVWo4CdESSfuSsB",
                "payment_url": "https://test-pay.khalti.com/?pidx=bZQLD9wRVWo4CdESSfuSsB",
                "expires_at": "2026-05-01T10:30:00+05:45",
            },
        )

        initiation = KhaltiAdapter.initiate(
            initiate_params(payer_name="Sita Sharma", payer_email="sita@example.com")
        )

        assert initiation.gateway_reference == "bZQLD9wRVWo4CdESSfuSsB"
        assert initiation.payload["payment_url"].endswith("pidx=bZQLD9wRVWo4CdESSfuSsB")

        method, url = request.call_args.args
        assert method == "POST"
        assert url == "https://dev.khalti.com/api/v2/epayment/initiate/"
        assert request.call_args.kwargs["headers"]["Authorization"] == (
            "Key test_secret_key_khalti"
        )
        body = request.call_args.kwargs["json"]
        assert body["amount"] == 150000
        assert body["purchase_order_id"] == "TXN1777629600000A1B2C3D4"
        assert body["return_url"] == "http://localhost:8000/api/v1/payments/webhooks/khalti/"
        assert body["customer_info"] == {"name": "Sita Sharma", "email": "sita@example.com"}

    def test_initiate_without_customer_details(self, http_response):
        request = http_response(200, {"pidx": "abc"})

        KhaltiAdapter.initiate(initiate_params())

        assert "customer_info" not in request.call_args.kwargs["json"]

    def test_initiate_without_pidx(self, http_response):
        http_response(200, {"detail": "ok"})

        with pytest.raises(GatewayRequestError):
            KhaltiAdapter.initiate(initiate_params())

    def test_verify_completed(self, http_response):
        request = http_response(
            200,
            {"status": "Completed", "total_amount": 150000, "transaction_id": "GFq9PFS7b2iYvL8Lir9oXe"},
        )

        verification = KhaltiAdapter.verify(verify_params(gateway_reference="abc"))

        assert verification.is_success
        assert verification.external_transaction_id == "GFq9PFS7b2iYvL8Lir9oXe"
        assert request.call_args.kwargs["json"] == {"pidx": "abc"}

    def test_verify_uses_callback_pidx(self, http_response):
        request = http_response(200, {"status": "Completed", "total_amount": 150000})

        KhaltiAdapter.verify(verify_params(callback_data={"pidx": "from-callback"}))

        assert request.call_args.kwargs["json"] == {"pidx": "from-callback"}

    def test_verify_without_pidx(self):
        with pytest.raises(GatewayRequestError):
            KhaltiAdapter.verify(verify_params())

    @pytest.mark.parametrize("status", ["Pending", "User canceled", "Expired"])
    def test_verify_not_completed(self, http_response, status):
        http_response(200, {"status": status, "total_amount": 150000})

        verification = KhaltiAdapter.verify(verify_params(gateway_reference="abc"))

        assert verification.outcome == VerificationOutcome.FAILED
        assert status in verification.message

    def test_verify_amount_mismatch(self, http_response):
        http_response(200, {"status": "Completed", "total_amount": 1000})

        verification = KhaltiAdapter.verify(verify_params(gateway_reference="abc"))

        assert not verification.is_success
        assert verification.amount_paisa == 1000


# =============================================================================
# Stripe
# =============================================================================


class TestStripeAdapter:
    @pytest.fixture(autouse=True)
    def configured(self, stripe_settings):
        return stripe_settings

    def test_initiate_creates_payment_intent(self, mock_stripe_payment_intent, mock_payment_intent):
        mock_stripe_payment_intent.create.return_value = mock_payment_intent()

        initiation = StripeAdapter.initiate(
            initiate_params(payer_email="sita@example.com", idempotency_key="key-1")
        )

        assert initiation.gateway_reference == "pi_test123456"
        assert initiation.payload == {
            "gateway": "stripe",
            "payment_intent_id": "pi_test123456",
            "client_secret": "pi_test123456_secret_abc123",
            "publishable_key": "pk_test_123",
        }
        kwargs = mock_stripe_payment_intent.create.call_args.kwargs
        assert kwargs["amount"] == 150000
        assert kwargs["currency"] == "npr"
        assert kwargs["receipt_email"] == "sita@example.com"
        assert kwargs["metadata"] == {"transaction_id": "TXN1777629600000A1B2C3D4"}
        assert kwargs["idempotency_key"] == "key-1"

    def test_initiate_generates_idempotency_key(self, mock_stripe_payment_intent, mock_payment_intent):
        mock_stripe_payment_intent.create.return_value = mock_payment_intent()

        StripeAdapter.initiate(initiate_params())

        key = mock_stripe_payment_intent.create.call_args.kwargs["idempotency_key"]
        assert key == IdempotencyKeyGenerator.generate(
            "create_intent", "TXN1777629600000A1B2C3D4"
        )

    def test_initiate_requires_configuration(self, settings):
        settings.STRIPE_SECRET_KEY = ""

        with pytest.raises(GatewayNotConfiguredError):
            StripeAdapter.initiate(initiate_params())

    def test_verify_succeeded(self, mock_stripe_payment_intent, mock_payment_intent):
        mock_stripe_payment_intent.retrieve.return_value = mock_payment_intent(
            status="succeeded", amount_received=150000, latest_charge="ch_123"
        )

        verification = StripeAdapter.verify(verify_params(gateway_reference="pi_test123456"))

        assert verification.is_success
        assert verification.external_transaction_id == "ch_123"
        assert verification.raw["id"] == "pi_test123456"
        mock_stripe_payment_intent.retrieve.assert_called_once_with("pi_test123456")

    def test_verify_falls_back_to_intent_id(self, mock_stripe_payment_intent, mock_payment_intent):
        mock_stripe_payment_intent.retrieve.return_value = mock_payment_intent(
            status="succeeded", amount_received=150000
        )

        verification = StripeAdapter.verify(verify_params(gateway_reference="pi_test123456"))

        assert verification.external_transaction_id == "pi_test123456"

    def test_verify_not_succeeded(self, mock_stripe_payment_intent, mock_payment_intent):
        mock_stripe_payment_intent.retrieve.return_value = mock_payment_intent(
            status="requires_action"
        )

        verification = StripeAdapter.verify(verify_params(gateway_reference="pi_test123456"))

        assert verification.outcome == VerificationOutcome.FAILED
        assert verification.message == "Stripe PaymentIntent status is requires_action"

    def test_verify_amount_mismatch(self, mock_stripe_payment_intent, mock_payment_intent):
        mock_stripe_payment_intent.retrieve.return_value = mock_payment_intent(
            status="succeeded", amount_received=100
        )

        verification = StripeAdapter.verify(verify_params(gateway_reference="pi_test123456"))

        assert not verification.is_success
        assert verification.amount_paisa == 100

    def test_verify_without_reference(self):
        with pytest.raises(GatewayRequestError):
            StripeAdapter.verify(verify_params())

    def test_construct_event(self, mocker):
        event = MagicMock()
        event.to_dict.return_value = {"id": "evt_1", "type": "payment_intent.succeeded"}
        construct = mocker.patch(
            "payments.adapters.stripe_adapter.stripe.Webhook.construct_event",
            return_value=event,
        )

        assert StripeAdapter.construct_event(b"{}", "t=1,v1=abc") == {
            "id": "evt_1",
            "type": "payment_intent.succeeded",
        }
        construct.assert_called_once_with(b"{}", "t=1,v1=abc", "whsec_test_123")

    @pytest.mark.parametrize(
        "error",
        [ValueError("bad json"), stripe.SignatureVerificationError("bad signature", "t=1")],
    )
    def test_construct_event_rejects_invalid(self, mocker, error):
        mocker.patch(
            "payments.adapters.stripe_adapter.stripe.Webhook.construct_event",
            side_effect=error,
        )

        with pytest.raises(InvalidSignatureError):
            StripeAdapter.construct_event(b"{}", "t=1")
        assert not StripeAdapter.verify_callback_signature({"body": b"{}", "signature": "t=1"})

    def test_callback_signature_without_secret(self, settings):
        settings.STRIPE_WEBHOOK_SECRET = ""

        assert not StripeAdapter.verify_callback_signature({"body": b"{}", "signature": "t=1"})


class TestStripeErrorTranslation:
    @pytest.fixture(autouse=True)
    def configured(self, stripe_settings):
        return stripe_settings

    def initiate_with(self, mock_stripe_payment_intent, error):
        mock_stripe_payment_intent.create.side_effect = error
        StripeAdapter.initiate(initiate_params())

    def test_card_declined(self, mock_stripe_payment_intent):
        error = stripe.CardError(message="Your card was declined.", param=None, code="card_declined")
        error.decline_code = "insufficient_funds"

        with pytest.raises(GatewayDeclinedError) as exc_info:
            self.initiate_with(mock_stripe_payment_intent, error)

        assert exc_info.value.gateway_code == "insufficient_funds"
        assert not exc_info.value.is_retryable

    def test_invalid_request(self, mock_stripe_payment_intent):
        error = stripe.InvalidRequestError(
            message="Invalid currency", param="currency", code="parameter_invalid_string"
        )

        with pytest.raises(GatewayRequestError) as exc_info:
            self.initiate_with(mock_stripe_payment_intent, error)

        assert exc_info.value.gateway_code == "parameter_invalid_string"

    def test_authentication_error(self, mock_stripe_payment_intent):
        with pytest.raises(GatewayRequestError) as exc_info:
            self.initiate_with(
                mock_stripe_payment_intent, stripe.AuthenticationError(message="Invalid API Key")
            )

        assert exc_info.value.gateway_code == "authentication_error"

    @pytest.mark.parametrize(
        "error,expected_type,expected_code",
        [
            (stripe.RateLimitError(message="Too many requests"), GatewayUnavailableError, "rate_limit"),
            (
                stripe.APIConnectionError(message="Request timed out"),
                GatewayTimeoutError,
                "timeout",
            ),
            (
                stripe.APIConnectionError(message="Could not connect"),
                GatewayUnavailableError,
                "api_connection_error",
            ),
            (stripe.APIError(message="Server error"), GatewayUnavailableError, "api_error"),
        ],
    )
    def test_transient_errors(
        self, mock_stripe_payment_intent, error, expected_type, expected_code
    ):
        with pytest.raises(expected_type) as exc_info:
            self.initiate_with(mock_stripe_payment_intent, error)

        assert exc_info.value.gateway_code == expected_code
        assert exc_info.value.is_retryable

    def test_unexpected_error(self, mock_stripe_payment_intent):
        with pytest.raises(GatewayError) as exc_info:
            self.initiate_with(mock_stripe_payment_intent, stripe.StripeError("mystery"))

        assert type(exc_info.value) is GatewayError
        assert exc_info.value.gateway_code == "unknown_error"


# =============================================================================
# Bank Transfer
# =============================================================================


class TestBankTransferAdapter:
    @pytest.fixture(autouse=True)
    def configured(self, settings):
        settings.MOBILE_BANKING_ENABLED = True
        settings.PAYMENT_BANK_DETAILS = {
            "bank_name": "Nabil Bank",
            "account_name": "Learning Platform Pvt. Ltd.",
            "account_number": "0101010101",
        }

    def test_initiate_returns_instructions(self):
        initiation = BankTransferAdapter.initiate(initiate_params())

        reference = initiation.gateway_reference
        assert reference.startswith("MB")
        payload = initiation.payload
        assert payload["reference_number"] == reference
        assert payload["amount"] == "1500.00"
        assert payload["bank_details"]["bank_name"] == "Nabil Bank"
        assert payload["requires_manual_verification"] is True
        assert f"Use reference number: {reference}" in payload["instructions"]

    def test_disabled(self, settings):
        settings.MOBILE_BANKING_ENABLED = False

        with pytest.raises(GatewayNotConfiguredError):
            BankTransferAdapter.initiate(initiate_params())

    def test_verify_always_needs_an_administrator(self):
        verification = BankTransferAdapter.verify(verify_params(gateway_reference="MB123"))

        assert verification.requires_manual_verification
        assert not verification.is_success
        assert verification.raw == {"reference_number": "MB123"}

    def test_callbacks_are_not_signed(self):
        with pytest.raises(NotImplementedError):
            BankTransferAdapter.verify_callback_signature({})


# =============================================================================
# Registry
# =============================================================================


class TestRegistry:
    def test_get_adapter(self):
        assert get_adapter("esewa") is EsewaAdapter
        assert get_adapter("bank_transfer") is BankTransferAdapter

    def test_get_unknown_adapter(self):
        with pytest.raises(ValueError, match="Unknown gateway: paypal"):
            get_adapter("paypal")

    def test_fixed_method_gateways(self):
        assert gateway_for_method("wallet") == "esewa"
        assert gateway_for_method("mobile_banking") == "bank_transfer"
        assert adapter_for_method("wallet") is EsewaAdapter

    def test_unknown_method(self):
        with pytest.raises(ValueError, match="Unknown payment method"):
            gateway_for_method("cash")

    def test_card_gateway_setting_wins(self, no_card_gateways):
        no_card_gateways.CARD_PAYMENT_GATEWAY = "stripe"

        assert card_gateway() == "stripe"
        assert adapter_for_method("visa_card") is StripeAdapter

    def test_card_gateway_setting_must_be_a_card_provider(self, no_card_gateways):
        no_card_gateways.CARD_PAYMENT_GATEWAY = "esewa"

        with pytest.raises(ValueError):
            card_gateway()

    def test_card_gateway_falls_back_to_first_configured(self, no_card_gateways):
        no_card_gateways.STRIPE_SECRET_KEY = "sk_test_123"
        assert gateway_for_method("mastercard") == "stripe"

        no_card_gateways.KHALTI_SECRET_KEY = "test_secret_key_khalti"
        assert gateway_for_method("mastercard") == "khalti"

    def test_no_card_gateway(self, no_card_gateways):
        with pytest.raises(GatewayNotConfiguredError):
            gateway_for_method("visa_card")

    def test_available_gateways(self, esewa_settings, no_card_gateways):
        no_card_gateways.KHALTI_SECRET_KEY = "test_secret_key_khalti"
        no_card_gateways.MOBILE_BANKING_ENABLED = False
        no_card_gateways.PAYMENT_CURRENCY = "NPR"

        gateways = available_gateways()

        assert gateways == [
            {
                "id": "esewa",
                "name": "eSewa",
                "methods": ["wallet"],
                "currencies": ["NPR"],
                "requires_manual_verification": False,
            },
            {
                "id": "khalti",
                "name": "Khalti",
                "methods": ["visa_card", "mastercard"],
                "currencies": ["NPR"],
                "requires_manual_verification": False,
            },
        ]

    def test_available_gateways_lists_unchosen_card_provider_without_methods(
        self, no_card_gateways
    ):
        no_card_gateways.KHALTI_SECRET_KEY = "test_secret_key_khalti"
        no_card_gateways.STRIPE_SECRET_KEY = "sk_test_123"
        no_card_gateways.ESEWA_MERCHANT_CODE = ""
        no_card_gateways.MOBILE_BANKING_ENABLED = False

        assert [gateway["id"] for gateway in available_gateways()] == ["khalti"]
