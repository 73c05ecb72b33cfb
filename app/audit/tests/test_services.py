"""
Tests for AuditService.
"""

from datetime import datetime, timedelta
from datetime import timezone as dt_timezone

import pytest
from django.test import RequestFactory
from freezegun import freeze_time

from audit.models import AuditAction, AuditLog
from audit.services import AuditService, calculate_risk_score
from authentication.tests.factories import UserFactory
from payments.tests.factories import PaymentFactory

BROWSER_UA = "Mozilla/5.0 (X11; Linux x86_64) Firefox/128.0"


@pytest.mark.django_db
class TestRecord:
    def test_records_entity_reference(self, user):
        payment = PaymentFactory(payer=user)

        entry = AuditService.record(
            AuditAction.PAYMENT_INITIATED,
            user=user,
            entity=payment,
            description="Payment initiated",
            metadata={"amount_paisa": 150000},
        )

        assert entry.entity_type == "payments.payment"
        assert entry.entity_id == str(payment.pk)
        assert entry.metadata == {"amount_paisa": 150000}
        assert entry.flagged is False

    @pytest.mark.parametrize("score,flagged", [(69, False), (70, True), (100, True)])
    def test_flags_at_threshold(self, score, flagged):
        entry = AuditService.record(AuditAction.FRAUD_DETECTED, risk_score=score)

        assert entry.flagged is flagged

    def test_clamps_risk(self):
        assert AuditService.record(AuditAction.FRAUD_DETECTED, risk_score=250).risk_score == 100
        assert AuditService.record(AuditAction.FRAUD_DETECTED, risk_score=-5).risk_score == 0

    def test_reads_request_context(self, user):
        request = RequestFactory().post(
            "/api/v1/payments/initiate/",
            HTTP_X_FORWARDED_FOR="198.51.100.7, 10.0.0.1",
            HTTP_USER_AGENT="pytest-agent/1.0",
        )

        entry = AuditService.record(AuditAction.PAYMENT_INITIATED, user=user, request=request)

        assert entry.ip_address == "198.51.100.7"
        assert entry.user_agent == "pytest-agent/1.0"
        assert entry.request_method == "POST"
        assert entry.request_path == "/api/v1/payments/initiate/"

    def test_failure_returns_none(self, mocker):
        mocker.patch.object(AuditLog.objects, "create", side_effect=RuntimeError("db down"))

        assert AuditService.record(AuditAction.PAYMENT_FAILED) is None

    def test_entries_are_immutable(self):
        entry = AuditService.record(AuditAction.PAYMENT_FAILED)

        with pytest.raises(ValueError):
            entry.delete()


@pytest.mark.django_db
@freeze_time("2026-03-02 12:00:00")
class TestRiskScore:
    def test_routine_event_scores_zero(self):
        assert calculate_risk_score(AuditAction.PAYMENT_FAILED, user_agent=BROWSER_UA) == 0

    def test_money_moving_action(self):
        assert calculate_risk_score(AuditAction.PAYMENT_REFUNDED, user_agent=BROWSER_UA) == 20

    def test_delete_request(self):
        score = calculate_risk_score(
            AuditAction.API_REQUEST, request_method="delete", user_agent=BROWSER_UA
        )

        assert score == 20

    @pytest.mark.parametrize(
        "amount_paisa,expected",
        [(1_000_000, 0), (1_000_001, 15), (5_000_000, 15), (5_000_001, 30)],
    )
    def test_amount_tiers(self, amount_paisa, expected):
        score = calculate_risk_score(
            AuditAction.PAYMENT_FAILED, amount_paisa=amount_paisa, user_agent=BROWSER_UA
        )

        assert score == expected

    def test_administrator_on_payment_endpoint(self):
        score = calculate_risk_score(
            AuditAction.API_REQUEST,
            user=UserFactory(is_staff=True),
            request_path="/api/v1/payments/abc/refund/",
            user_agent=BROWSER_UA,
        )

        assert score == 20

    @pytest.mark.parametrize("user_agent", [None, "", "curl/8"])
    def test_missing_or_short_user_agent(self, user_agent):
        assert calculate_risk_score(AuditAction.PAYMENT_FAILED, user_agent=user_agent) == 5

    @freeze_time("2026-03-02 02:30:00")
    def test_quiet_hours(self):
        assert calculate_risk_score(AuditAction.PAYMENT_FAILED, user_agent=BROWSER_UA) == 5

    @freeze_time("2026-03-02 02:30:00")
    def test_all_signals_combined(self):
        score = calculate_risk_score(
            AuditAction.PAYMENT_REFUNDED,
            user=UserFactory(is_staff=True),
            amount_paisa=6_000_000,
            request_method="POST",
            request_path="/api/v1/admin/payments/",
        )

        assert score == 80

    @freeze_time("2026-03-02 02:30:00")
    def test_record_scores_when_no_score_given(self):
        administrator = UserFactory(is_staff=True)

        entry = AuditService.record(
            AuditAction.PAYMENT_REFUNDED,
            user=administrator,
            metadata={"amount_paisa": 6_000_000},
        )

        # 20 action + 30 amount + 10 admin + 5 no user agent + 5 quiet hours
        assert entry.risk_score == 70
        assert entry.flagged is True

    def test_record_reads_final_amount(self, user):
        entry = AuditService.record(
            AuditAction.PAYMENT_COMPLETED,
            user=user,
            metadata={"final_amount_paisa": 2_000_000},
            user_agent=BROWSER_UA,
        )

        assert entry.risk_score == 35
        assert entry.flagged is False

    def test_record_scores_request_context(self, user):
        request = RequestFactory().post("/api/v1/payments/initiate/")

        entry = AuditService.record(AuditAction.PAYMENT_INITIATED, user=user, request=request)

        # 20 action + 10 payment endpoint + 5 no user agent
        assert entry.risk_score == 35

    def test_explicit_score_wins(self):
        entry = AuditService.record(
            AuditAction.PAYMENT_REFUNDED,
            user=UserFactory(is_staff=True),
            metadata={"amount_paisa": 6_000_000},
            risk_score=0,
        )

        assert entry.risk_score == 0
        assert entry.flagged is False


@pytest.mark.django_db
class TestQuery:
    def test_filters(self, user):
        payment = PaymentFactory(payer=user)
        AuditService.record(AuditAction.PAYMENT_INITIATED, user=user, entity=payment)
        AuditService.record(AuditAction.FRAUD_DETECTED, user=user, risk_score=80)
        AuditService.record(AuditAction.PAYMENT_FAILED)

        assert AuditService.query().count() == 3
        assert AuditService.query({"user": user.pk}).count() == 2
        assert AuditService.query({"action": AuditAction.FRAUD_DETECTED}).count() == 1
        assert AuditService.query({"flagged": True}).count() == 1
        assert AuditService.query({"min_risk": 50}).count() == 1
        assert AuditService.for_entity(payment).count() == 1

    def test_time_window(self):
        with freeze_time("2026-01-10 09:00:00"):
            AuditService.record(AuditAction.PAYMENT_FAILED)
        with freeze_time("2026-01-20 09:00:00"):
            AuditService.record(AuditAction.PAYMENT_FAILED)

        start = datetime(2026, 1, 15, tzinfo=dt_timezone.utc)
        assert AuditService.query({"start": start}).count() == 1
        assert AuditService.query({"end": start}).count() == 1
        assert AuditService.query({"start": start, "end": start + timedelta(days=1)}).count() == 0
