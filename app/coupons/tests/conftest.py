"""
Fixtures for coupon tests.
"""

import pytest

from authentication.tests.factories import UserFactory
from coupons.tests.factories import CouponFactory


@pytest.fixture
def user(db):
    return UserFactory()


@pytest.fixture
def coupon(db):
    return CouponFactory(code="launch10")
