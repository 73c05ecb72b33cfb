"""
Pytest fixtures for payment tests.

Payments are created in the state a test needs through factory traits;
Payment.status is protected and cannot be assigned afterwards.

Usage:
    def test_refund(completed_payment, mock_redis_lock):
        RefundService.create_refund(completed_payment.id, 50000)
"""

import pytest

from authentication.tests.factories import UserFactory
from learning.tests.factories import CourseFactory
from payments.tests.factories import PaymentFactory


@pytest.fixture
def user(db):
    return UserFactory(full_name="Sita Sharma", phone="9800000000")


@pytest.fixture
def course(db):
    return CourseFactory(price_paisa=150000)


@pytest.fixture
def pending_payment(user, course):
    return PaymentFactory(payer=user, course=course)


@pytest.fixture
def completed_payment(user, course):
    return PaymentFactory(payer=user, course=course, completed=True)


@pytest.fixture
def failed_payment(user, course):
    return PaymentFactory(payer=user, course=course, failed=True)


@pytest.fixture
def esewa_settings(settings):
    settings.ESEWA_MERCHANT_CODE = "EPAYTEST"
    settings.ESEWA_SECRET_KEY = "8gBm/:&EnhH.1/q"
    settings.ESEWA_ENVIRONMENT = "sandbox"
    return settings


@pytest.fixture
def esewa_status(mocker):
    """
    Stub the eSewa status check API.

    Usage:
        request = esewa_status(status="COMPLETE", total_amount="1500.00")
    """

    def _respond(status="COMPLETE", total_amount="1500.00", ref_id="000AE01"):
        response = mocker.MagicMock(status_code=200)
        response.json.return_value = {
            "status": status,
            "total_amount": total_amount,
            "ref_id": ref_id,
        }
        return mocker.patch("payments.adapters.base.requests.request", return_value=response)

    return _respond


@pytest.fixture
def bank_transfer_settings(settings):
    settings.MOBILE_BANKING_ENABLED = True
    settings.PAYMENT_BANK_DETAILS = {
        "bank_name": "Nabil Bank",
        "account_name": "Learning Platform Pvt. Ltd.",
        "account_number": "0100017500123",
    }
    return settings
