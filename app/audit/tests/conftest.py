"""
Fixtures for audit tests.
"""

import pytest

from authentication.tests.factories import UserFactory


@pytest.fixture
def user(db):
    return UserFactory()
