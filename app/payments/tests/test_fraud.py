"""
Tests for FraudScorer.

Time is frozen so window and rapid-succession boundaries are exact.
"""

from datetime import timedelta

import pytest
from freezegun import freeze_time

from audit.models import AuditAction, AuditLog
from authentication.tests.factories import UserFactory
from payments.fraud import FraudScorer, RiskLevel
from payments.fraud.scorer import risk_level
from payments.tests.factories import PaymentFactory

GOOD_UA = "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_5) Safari/605.1.15"
LARGE = 10_000_001


class TestRiskLevel:
    @pytest.mark.parametrize(
        "score,level",
        [
            (0, RiskLevel.LOW),
            (39, RiskLevel.LOW),
            (40, RiskLevel.MEDIUM),
            (69, RiskLevel.MEDIUM),
            (70, RiskLevel.HIGH),
            (100, RiskLevel.HIGH),
        ],
    )
    def test_boundaries(self, score, level):
        assert risk_level(score) == level


@pytest.mark.django_db
class TestAssess:
    def test_clean_attempt(self, user):
        assessment = FraudScorer.assess(user, 150000, "wallet", "203.0.113.1", GOOD_UA)

        assert assessment.score == 0
        assert assessment.level == RiskLevel.LOW
        assert assessment.signals == []
        assert not assessment.is_high_risk

    def test_large_amount_threshold_is_exclusive(self, user):
        at_threshold = FraudScorer.assess(user, 10_000_000, "wallet", None, GOOD_UA)
        above = FraudScorer.assess(user, LARGE, "wallet", None, GOOD_UA)

        assert at_threshold.score == 0
        assert above.signal_codes == ["LARGE_AMOUNT"]
        assert above.score == 20

    @pytest.mark.parametrize("user_agent", [None, "", "curl/8.0"])
    def test_suspicious_user_agent(self, user, user_agent):
        assessment = FraudScorer.assess(user, 1000, "wallet", None, user_agent)

        assert assessment.signal_codes == ["SUSPICIOUS_USER_AGENT"]
        assert assessment.score == 10

    def test_velocity_counts_the_current_attempt(self, user):
        with freeze_time("2026-05-01 10:00:00") as frozen:
            for _ in range(4):
                PaymentFactory(payer=user)
                frozen.tick(timedelta(minutes=5))

            fifth = FraudScorer.assess(user, 1000, "wallet", None, GOOD_UA)
            PaymentFactory(payer=user)
            frozen.tick(timedelta(minutes=5))
            sixth = FraudScorer.assess(user, 1000, "wallet", None, GOOD_UA)

        assert "VELOCITY" not in fifth.signal_codes
        assert "VELOCITY" in sixth.signal_codes

    def test_velocity_window_slides(self, user):
        with freeze_time("2026-05-01 10:00:00") as frozen:
            for _ in range(5):
                PaymentFactory(payer=user)
            frozen.tick(timedelta(minutes=61))

            assessment = FraudScorer.assess(user, 1000, "wallet", None, GOOD_UA)

        assert assessment.score == 0

    def test_rapid_succession_boundary(self, user):
        with freeze_time("2026-05-01 10:00:00") as frozen:
            PaymentFactory(payer=user)
            frozen.tick(timedelta(seconds=59))
            rapid = FraudScorer.assess(user, 1000, "wallet", None, GOOD_UA)
            frozen.tick(timedelta(seconds=1))
            not_rapid = FraudScorer.assess(user, 1000, "wallet", None, GOOD_UA)

        assert rapid.signal_codes == ["RAPID_SUCCESSION"]
        assert not_rapid.score == 0

    def test_ip_reuse_needs_three_other_payers(self, user):
        ip = "198.51.100.23"
        with freeze_time("2026-05-01 10:00:00"):
            for _ in range(2):
                PaymentFactory(ip_address=ip)
            PaymentFactory(payer=user, ip_address=ip)
            two_others = FraudScorer.assess(user, 1000, "wallet", ip, GOOD_UA)

            PaymentFactory(ip_address=ip)
            three_others = FraudScorer.assess(user, 1000, "wallet", ip, GOOD_UA)

        assert "IP_REUSE" not in two_others.signal_codes
        assert "IP_REUSE" in three_others.signal_codes

    def test_same_payer_on_ip_does_not_count(self, user):
        other = UserFactory()
        ip = "198.51.100.24"
        with freeze_time("2026-05-01 10:00:00"):
            for _ in range(5):
                PaymentFactory(payer=other, ip_address=ip)

            assessment = FraudScorer.assess(user, 1000, "wallet", ip, GOOD_UA)

        assert "IP_REUSE" not in assessment.signal_codes

    def test_sixth_rapid_large_payment_is_high_risk(self, user):
        with freeze_time("2026-05-01 10:00:00") as frozen:
            for _ in range(4):
                PaymentFactory(payer=user, amount_paisa=LARGE)
                frozen.tick(timedelta(seconds=10))

            fifth = FraudScorer.assess(user, LARGE, "wallet", None, None)
            PaymentFactory(payer=user, amount_paisa=LARGE)
            frozen.tick(timedelta(seconds=10))
            sixth = FraudScorer.assess(user, LARGE, "wallet", None, None)

        assert fifth.score == 45
        assert fifth.level == RiskLevel.MEDIUM
        assert sixth.score == 75
        assert sixth.is_high_risk
        assert set(sixth.signal_codes) == {
            "VELOCITY",
            "LARGE_AMOUNT",
            "RAPID_SUCCESSION",
            "SUSPICIOUS_USER_AGENT",
        }

    def test_score_is_clamped(self, user):
        ip = "198.51.100.25"
        with freeze_time("2026-05-01 10:00:00"):
            for _ in range(3):
                PaymentFactory(ip_address=ip)
            for _ in range(6):
                PaymentFactory(payer=user)

            assessment = FraudScorer.assess(user, LARGE, "wallet", ip, None)

        assert assessment.score == 100
        assert len(assessment.signals) == 5

    def test_retry_excludes_the_payment_itself(self, user):
        with freeze_time("2026-05-01 10:00:00") as frozen:
            payment = PaymentFactory(payer=user, failed=True)
            frozen.tick(timedelta(seconds=5))

            with_self = FraudScorer.assess(user, 1000, "wallet", None, GOOD_UA)
            without_self = FraudScorer.assess(
                user, 1000, "wallet", None, GOOD_UA, exclude_payment_id=payment.id
            )

        assert with_self.signal_codes == ["RAPID_SUCCESSION"]
        assert without_self.score == 0

    def test_to_dict(self, user):
        assessment = FraudScorer.assess(user, LARGE, "wallet", None, GOOD_UA)

        assert assessment.to_dict() == {
            "score": 20,
            "level": RiskLevel.LOW,
            "signals": [
                {
                    "code": "LARGE_AMOUNT",
                    "message": f"Amount {LARGE} exceeds normal threshold",
                    "weight": 20,
                }
            ],
        }


@pytest.mark.django_db
class TestVelocity:
    def test_summary(self, user):
        with freeze_time("2026-05-01 10:00:00") as frozen:
            PaymentFactory(payer=user, completed=True, amount_paisa=1000)
            frozen.tick(timedelta(minutes=90))
            PaymentFactory(payer=user, completed=True, amount_paisa=2000)
            PaymentFactory(payer=user)

            summary = FraudScorer.velocity(user, minutes=60)

        assert summary.count == 2
        assert summary.completed_amount_paisa == 2000
        assert summary.window_minutes == 60


@pytest.mark.django_db
class TestFlagUser:
    def test_writes_flagged_entry(self, user):
        FraudScorer.flag_user(user, "chargeback pattern")

        entry = AuditLog.objects.get(action=AuditAction.USER_FLAGGED)
        assert entry.user == user
        assert entry.risk_score == 100
        assert entry.flagged is True
        assert "chargeback pattern" in entry.description
