"""
Tests for the payments API.
"""

import uuid

import pytest
from django.urls import reverse
from rest_framework import status

from authentication.tests.factories import UserFactory
from learning.models import EnrollmentStatus
from learning.tests.factories import CourseFactory, EnrollmentFactory
from payments.models import Payment
from payments.state_machines import GatewayName, PaymentStatus
from payments.tests.factories import PaymentFactory

GOOD_UA = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/126.0 Safari/537.36"


@pytest.mark.django_db
class TestGatewayList:
    def test_lists_configured_gateways(
        self, client_for, user, esewa_settings, bank_transfer_settings, settings
    ):
        settings.CARD_PAYMENT_GATEWAY = ""
        settings.KHALTI_SECRET_KEY = ""
        settings.STRIPE_SECRET_KEY = ""

        response = client_for(user).get(reverse("payments:gateway_list"))

        assert response.status_code == status.HTTP_200_OK
        assert [gateway["id"] for gateway in response.data] == [
            GatewayName.ESEWA,
            GatewayName.BANK_TRANSFER,
        ]
        assert response.data[0]["methods"] == ["wallet"]
        assert response.data[1]["requires_manual_verification"] is True

    def test_requires_authentication(self, api_client):
        response = api_client.get(reverse("payments:gateway_list"))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
@pytest.mark.usefixtures("esewa_settings")
class TestInitiate:
    def test_starts_course_payment(self, client_for, user, course):
        response = client_for(user).post(
            reverse("payments:initiate"),
            {"method": "wallet", "course_id": str(course.id)},
            format="json",
            HTTP_USER_AGENT=GOOD_UA,
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["payment"]["status"] == PaymentStatus.PENDING
        assert response.data["payment"]["final_amount_paisa"] == 150000
        assert response.data["payment"]["course_title"] == course.title
        assert response.data["gateway_payload"]["form_data"]["total_amount"] == "1500.00"
        assert response.data["risk"]["score"] == 0

        payment = Payment.objects.get(payer=user)
        assert payment.ip_address == "127.0.0.1"
        assert payment.user_agent == GOOD_UA

    def test_missing_user_agent_is_scored(self, client_for, user, course):
        response = client_for(user).post(
            reverse("payments:initiate"),
            {"method": "wallet", "course_id": str(course.id)},
            format="json",
        )

        assert response.data["risk"]["score"] == 10

    def test_needs_exactly_one_target(self, client_for, user, course):
        response = client_for(user).post(
            reverse("payments:initiate"),
            {"method": "wallet", "course_id": str(course.id), "order_id": str(uuid.uuid4())},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_unpublished_course(self, client_for, user):
        course = CourseFactory(is_published=False)

        response = client_for(user).post(
            reverse("payments:initiate"),
            {"method": "wallet", "course_id": str(course.id)},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "course_id" in response.data

    def test_unknown_method(self, client_for, user, course):
        response = client_for(user).post(
            reverse("payments:initiate"),
            {"method": "cash", "course_id": str(course.id)},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_already_enrolled_is_conflict(self, client_for, user, course):
        EnrollmentFactory(user=user, course=course, status=EnrollmentStatus.ACTIVE)

        response = client_for(user).post(
            reverse("payments:initiate"),
            {"method": "wallet", "course_id": str(course.id)},
            format="json",
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "ALREADY_ENROLLED"

    def test_gateway_error_is_bad_gateway(self, client_for, user, course, settings):
        settings.ESEWA_MERCHANT_CODE = ""

        response = client_for(user).post(
            reverse("payments:initiate"),
            {"method": "wallet", "course_id": str(course.id)},
            format="json",
        )

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        assert response.data["error_code"] == "GATEWAY_ERROR"
        assert response.data["details"]["gateway_code"] == "GATEWAY_NOT_CONFIGURED"

    def test_requires_authentication(self, api_client, course):
        response = api_client.post(
            reverse("payments:initiate"),
            {"method": "wallet", "course_id": str(course.id)},
            format="json",
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
@pytest.mark.usefixtures("esewa_settings", "mock_redis_lock")
class TestVerify:
    def test_verifies_own_payment(self, client_for, user, pending_payment, esewa_status):
        esewa_status()

        response = client_for(user).post(
            reverse("payments:verify"), {"payment_id": str(pending_payment.id)}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["outcome"] == "success"
        assert response.data["already_verified"] is False
        assert response.data["payment"]["status"] == PaymentStatus.COMPLETED
        assert response.data["warnings"] == []
        assert response.data["fulfilment"]["steps"][1]["name"] == "enrollment"

    def test_by_transaction_id(self, client_for, user, pending_payment, esewa_status):
        esewa_status()

        response = client_for(user).post(
            reverse("payments:verify"),
            {"transaction_id": pending_payment.transaction_id},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK

    def test_foreign_payment_is_not_found(self, client_for, pending_payment, esewa_status):
        request = esewa_status()

        response = client_for(UserFactory()).post(
            reverse("payments:verify"), {"payment_id": str(pending_payment.id)}, format="json"
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "PAYMENT_NOT_FOUND"
        request.assert_not_called()

    def test_administrator_verifies_any_payment(
        self, client_for, administrator, pending_payment, esewa_status
    ):
        esewa_status()

        response = client_for(administrator).post(
            reverse("payments:verify"), {"payment_id": str(pending_payment.id)}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK

    def test_failed_verification_is_payment_required(
        self, client_for, user, pending_payment, esewa_status
    ):
        esewa_status(status="CANCELED")

        response = client_for(user).post(
            reverse("payments:verify"), {"payment_id": str(pending_payment.id)}, format="json"
        )

        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
        assert response.data["error_code"] == "PAYMENT_FAILED"

    def test_requires_an_identifier(self, client_for, user):
        response = client_for(user).post(reverse("payments:verify"), {}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestHistory:
    def test_list_own_payments(self, client_for, user, pending_payment, completed_payment):
        PaymentFactory()

        response = client_for(user).get(reverse("payments:payment_list"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["count"] == 2

    def test_list_filtered_by_status(self, client_for, user, pending_payment, completed_payment):
        response = client_for(user).get(
            reverse("payments:payment_list"), {"status": PaymentStatus.COMPLETED}
        )

        assert response.data["count"] == 1
        assert response.data["results"][0]["id"] == str(completed_payment.id)

    def test_list_rejects_unknown_status(self, client_for, user):
        response = client_for(user).get(reverse("payments:payment_list"), {"status": "lost"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_detail(self, client_for, user, completed_payment):
        response = client_for(user).get(
            reverse("payments:payment_detail", args=[completed_payment.id])
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["refundable_paisa"] == 150000
        assert response.data["transaction_id"] == completed_payment.transaction_id

    def test_detail_of_foreign_payment(self, client_for, completed_payment):
        response = client_for(UserFactory()).get(
            reverse("payments:payment_detail", args=[completed_payment.id])
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
@pytest.mark.usefixtures("esewa_settings", "mock_redis_lock")
class TestRetry:
    def test_retries_own_failed_payment(self, client_for, user, failed_payment):
        response = client_for(user).post(
            reverse("payments:retry", args=[failed_payment.id]),
            {},
            format="json",
            HTTP_USER_AGENT=GOOD_UA,
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["payment"]["status"] == PaymentStatus.PENDING
        assert response.data["payment"]["retry_count"] == 1

    def test_foreign_payment_is_not_found(self, client_for, failed_payment):
        response = client_for(UserFactory()).post(
            reverse("payments:retry", args=[failed_payment.id]), {}, format="json"
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert Payment.objects.get(pk=failed_payment.pk).retry_count == 0

    def test_limit_is_conflict(self, client_for, user, course):
        payment = PaymentFactory(payer=user, course=course, failed=True, retry_count=3)

        response = client_for(user).post(
            reverse("payments:retry", args=[payment.id]), {}, format="json"
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "RETRY_LIMIT_EXCEEDED"


@pytest.mark.django_db
@pytest.mark.usefixtures("mock_redis_lock")
class TestRefund:
    def test_partial_refund(self, client_for, administrator, completed_payment):
        response = client_for(administrator).post(
            reverse("payments:refund", args=[completed_payment.id]),
            {"amount_paisa": 50000, "reason": "Course cancelled"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["amount_paisa"] == 50000
        assert response.data["refundable_paisa"] == 100000
        assert response.data["payment"]["status"] == PaymentStatus.PARTIALLY_REFUNDED

    def test_amount_above_refundable(self, client_for, administrator, completed_payment):
        response = client_for(administrator).post(
            reverse("payments:refund", args=[completed_payment.id]),
            {"amount_paisa": 150001},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "REFUND_AMOUNT_EXCEEDED"

    def test_pending_payment_is_conflict(self, client_for, administrator, pending_payment):
        response = client_for(administrator).post(
            reverse("payments:refund", args=[pending_payment.id]), {}, format="json"
        )

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_customer_forbidden(self, client_for, user, completed_payment):
        response = client_for(user).post(
            reverse("payments:refund", args=[completed_payment.id]), {}, format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert Payment.objects.get(pk=completed_payment.pk).status == PaymentStatus.COMPLETED


@pytest.mark.django_db
@pytest.mark.usefixtures("mock_redis_lock")
class TestConfirm:
    def test_administrator_confirms_bank_transfer(self, client_for, administrator, user, course):
        payment = PaymentFactory(payer=user, course=course, bank_transfer=True)

        response = client_for(administrator).post(
            reverse("payments:confirm", args=[payment.id])
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["outcome"] == "success"
        assert response.data["payment"]["status"] == PaymentStatus.COMPLETED

    def test_completed_payment_reports_already_verified(
        self, client_for, administrator, user, course
    ):
        payment = PaymentFactory(payer=user, course=course, bank_transfer=True, completed=True)

        response = client_for(administrator).post(reverse("payments:confirm", args=[payment.id]))

        assert response.data["already_verified"] is True

    def test_customer_forbidden(self, client_for, user, course):
        payment = PaymentFactory(payer=user, course=course, bank_transfer=True)

        response = client_for(user).post(reverse("payments:confirm", args=[payment.id]))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_wallet_payment_rejected(self, client_for, administrator, pending_payment, mocker):
        gateway_call = mocker.patch("payments.adapters.base.requests.request")

        response = client_for(administrator).post(
            reverse("payments:confirm", args=[pending_payment.id])
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "INVALID_GATEWAY_OPERATION"
        assert Payment.objects.get(pk=pending_payment.pk).status == PaymentStatus.PENDING
        gateway_call.assert_not_called()
