"""
Fixtures for shop tests.
"""

import pytest

from authentication.tests.factories import UserFactory
from commerce.tests.factories import ProductFactory


@pytest.fixture
def user(db):
    return UserFactory()


@pytest.fixture
def product(db):
    return ProductFactory(price_paisa=50000, stock=5)
