"""
Factory Boy factories for learning models.

Usage:
    from learning.tests.factories import CourseFactory

    course = CourseFactory(price_paisa=250000)
    course = CourseFactory(instructor=InstructorFactory())
"""

import factory

from authentication.tests.factories import UserFactory
from learning.models import Course, Enrollment, EnrollmentStatus


class CourseFactory(factory.django.DjangoModelFactory):
    """Published course priced at NPR 1,500.00 with no instructor."""

    class Meta:
        model = Course

    title = factory.Sequence(lambda n: f"Course {n}")
    slug = factory.Sequence(lambda n: f"course-{n}")
    price_paisa = 150000
    instructor = None
    is_published = True


class EnrollmentFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Enrollment

    user = factory.SubFactory(UserFactory)
    course = factory.SubFactory(CourseFactory)
    status = EnrollmentStatus.PENDING
