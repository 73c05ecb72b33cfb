"""
Tests for EnrollmentService.
"""

import pytest

from earnings.tests.factories import AffiliateFactory
from learning.models import Course, Enrollment, EnrollmentStatus
from learning.services import EnrollmentService
from learning.tests.factories import EnrollmentFactory


@pytest.mark.django_db
class TestActivate:
    def test_creates_active_enrollment(self, learner, course):
        enrollment = EnrollmentService.activate(learner, course)

        assert enrollment.status == EnrollmentStatus.ACTIVE
        assert enrollment.activated_at is not None
        assert Course.objects.get(pk=course.pk).total_enrollments == 1

    def test_converts_pending_enrollment(self, learner, course):
        pending = EnrollmentFactory(user=learner, course=course)

        enrollment = EnrollmentService.activate(learner, course)

        assert enrollment.pk == pending.pk
        assert enrollment.status == EnrollmentStatus.ACTIVE

    def test_repeated_activation_is_a_no_op(self, learner, course):
        first = EnrollmentService.activate(learner, course)
        second = EnrollmentService.activate(learner, course)

        assert first.pk == second.pk
        assert Enrollment.objects.filter(user=learner, course=course).count() == 1
        assert Course.objects.get(pk=course.pk).total_enrollments == 1


@pytest.mark.django_db
class TestReserve:
    def test_creates_pending_enrollment_with_affiliate(self, learner, course):
        affiliate = AffiliateFactory()

        enrollment = EnrollmentService.reserve(learner, course, affiliate=affiliate)

        assert enrollment.status == EnrollmentStatus.PENDING
        assert enrollment.affiliate_id == affiliate.pk
        assert Course.objects.get(pk=course.pk).total_enrollments == 0

    def test_keeps_first_affiliate(self, learner, course):
        first = AffiliateFactory()
        second = AffiliateFactory()

        EnrollmentService.reserve(learner, course, affiliate=first)
        enrollment = EnrollmentService.reserve(learner, course, affiliate=second)

        assert enrollment.affiliate_id == first.pk

    def test_active_enrollment_untouched(self, learner, course):
        EnrollmentService.activate(learner, course)
        affiliate = AffiliateFactory()

        enrollment = EnrollmentService.reserve(learner, course, affiliate=affiliate)

        assert enrollment.status == EnrollmentStatus.ACTIVE
        assert enrollment.affiliate_id is None

    def test_get_enrollment_returns_none_when_missing(self, learner, course):
        assert EnrollmentService.get_enrollment(learner, course) is None
