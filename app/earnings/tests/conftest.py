"""
Fixtures for commission tests.

Usage:
    def test_accrue(instructor, sale):
        InstructorCommissionService.accrue(instructor, sale.course, sale, 100000)
"""

import pytest

from authentication.tests.factories import UserFactory
from earnings.tests.factories import AffiliateFactory, InstructorFactory
from learning.tests.factories import CourseFactory
from payments.tests.factories import PaymentFactory


@pytest.fixture
def user(db):
    return UserFactory()


@pytest.fixture
def instructor(db):
    return InstructorFactory()


@pytest.fixture
def affiliate(db):
    return AffiliateFactory()


@pytest.fixture
def course(db, instructor):
    return CourseFactory(instructor=instructor, price_paisa=100000)


@pytest.fixture
def make_sale(db, course):
    """Create a completed payment for ``course``."""

    def _make_sale(**kwargs):
        kwargs.setdefault("course", course)
        kwargs.setdefault("amount_paisa", course.price_paisa)
        return PaymentFactory(completed=True, **kwargs)

    return _make_sale


@pytest.fixture
def sale(make_sale):
    return make_sale()
