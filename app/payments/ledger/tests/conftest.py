"""
Pytest fixtures for ledger tests.
"""

import pytest

from authentication.tests.factories import UserFactory


@pytest.fixture
def user(db):
    return UserFactory()
