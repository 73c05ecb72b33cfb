"""
Course and Enrollment models.

Only the fields the payment engine reads or writes are modelled here;
lesson content and catalogue management live outside this service.

Usage:
    from learning.models import Course, Enrollment, EnrollmentStatus

    course = Course.objects.create(title="Django 101", price_paisa=150000)
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


class EnrollmentStatus(models.TextChoices):
    """
    Enrollment lifecycle.

    PENDING is created when a payment is initiated with an affiliate code
    so the referral survives until the payment completes.
    """

    PENDING = "pending", "Pending"
    ACTIVE = "active", "Active"
    CANCELLED = "cancelled", "Cancelled"


class Course(UUIDPrimaryKeyMixin, BaseModel):
    """
    A purchasable course.

    Fields:
        title: Course title
        slug: URL-safe unique identifier
        price_paisa: List price in paisa
        instructor: Payee credited with instructor commission (optional)
        is_published: Whether the course can be purchased
        total_enrollments: Count of active enrollments
    """

    title = models.CharField(
        max_length=200,
        help_text="Course title",
    )

    slug = models.SlugField(
        max_length=220,
        unique=True,
        help_text="URL-safe unique identifier",
    )

    price_paisa = models.PositiveBigIntegerField(
        default=0,
        help_text="List price in paisa",
    )

    instructor = models.ForeignKey(
        "earnings.Instructor",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="courses",
        help_text="Instructor credited with commission on sales",
    )

    is_published = models.BooleanField(
        default=True,
        help_text="Whether the course is open for purchase",
    )

    total_enrollments = models.PositiveIntegerField(
        default=0,
        help_text="Number of active enrollments",
    )

    class Meta:
        ordering = ["title"]
        verbose_name = "Course"
        verbose_name_plural = "Courses"

    def __str__(self) -> str:
        return self.title


class Enrollment(UUIDPrimaryKeyMixin, BaseModel):
    """
    A user's access to a course.

    Fields:
        user: Enrolled learner
        course: Course being accessed
        status: pending / active / cancelled
        affiliate: Affiliate that referred this enrollment (optional)
        activated_at: When access was granted
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="enrollments",
        help_text="Enrolled learner",
    )

    course = models.ForeignKey(
        Course,
        on_delete=models.PROTECT,
        related_name="enrollments",
        help_text="Course being accessed",
    )

    status = models.CharField(
        max_length=20,
        choices=EnrollmentStatus.choices,
        default=EnrollmentStatus.PENDING,
        db_index=True,
        help_text="Enrollment status",
    )

    affiliate = models.ForeignKey(
        "earnings.Affiliate",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="referred_enrollments",
        help_text="Affiliate credited for referring this enrollment",
    )

    activated_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the enrollment became active",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Enrollment"
        verbose_name_plural = "Enrollments"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "course"],
                name="unique_enrollment_per_user_course",
            ),
        ]

    def __str__(self) -> str:
        return f"Enrollment({self.user_id}, {self.course_id}, {self.status})"

    @property
    def is_active(self) -> bool:
        return self.status == EnrollmentStatus.ACTIVE
