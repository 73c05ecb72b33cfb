"""
Enrollment service.

The payment engine only needs two operations from the learning side:
reserve a pending enrollment (to carry an affiliate referral through
checkout) and activate it once payment succeeds. Both are idempotent.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from core.services import BaseService
from learning.models import Course, Enrollment, EnrollmentStatus

if TYPE_CHECKING:
    from authentication.models import User
    from earnings.models import Affiliate

logger = logging.getLogger(__name__)


class EnrollmentService(BaseService):
    """
    Idempotent enrollment operations.

    Methods:
        activate: Grant access, converting a pending enrollment to active
        reserve: Create a pending enrollment that remembers the affiliate
    """

    @classmethod
    def activate(cls, user: User, course: Course) -> Enrollment:
        """
        Activate the user's enrollment in ``course``.

        Returns the existing enrollment when already active. A pending
        enrollment is flipped to active; a missing one is created active.
        The course's ``total_enrollments`` is bumped only on an actual
        activation.
        """
        with transaction.atomic():
            enrollment = cls._get_or_create_locked(user, course)

            if enrollment.status == EnrollmentStatus.ACTIVE:
                return enrollment

            enrollment.status = EnrollmentStatus.ACTIVE
            enrollment.activated_at = timezone.now()
            enrollment.save(update_fields=["status", "activated_at", "updated_at"])

            Course.objects.filter(pk=course.pk).update(
                total_enrollments=F("total_enrollments") + 1
            )

        cls.get_logger().info(
            f"Activated enrollment {enrollment.id}",
            extra={"user_id": str(user.pk), "course_id": str(course.pk)},
        )
        return enrollment

    @classmethod
    def reserve(
        cls,
        user: User,
        course: Course,
        affiliate: Affiliate | None = None,
    ) -> Enrollment:
        """
        Ensure a pending enrollment exists, attaching ``affiliate`` if the
        enrollment has none yet. Active enrollments are returned untouched.
        """
        with transaction.atomic():
            enrollment = cls._get_or_create_locked(user, course)

            if (
                affiliate is not None
                and enrollment.affiliate_id is None
                and enrollment.status == EnrollmentStatus.PENDING
            ):
                enrollment.affiliate = affiliate
                enrollment.save(update_fields=["affiliate", "updated_at"])

        return enrollment

    @staticmethod
    def get_enrollment(user: User, course: Course) -> Enrollment | None:
        return Enrollment.objects.filter(user=user, course=course).first()

    @staticmethod
    def _get_or_create_locked(user: User, course: Course) -> Enrollment:
        enrollment = (
            Enrollment.objects.select_for_update()
            .filter(user=user, course=course)
            .first()
        )
        if enrollment is not None:
            return enrollment

        try:
            with transaction.atomic():
                return Enrollment.objects.create(
                    user=user,
                    course=course,
                    status=EnrollmentStatus.PENDING,
                )
        except IntegrityError:
            # Created concurrently by another request
            return Enrollment.objects.select_for_update().get(user=user, course=course)
