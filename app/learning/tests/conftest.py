"""
Fixtures for learning tests.
"""

import pytest

from authentication.tests.factories import UserFactory
from learning.tests.factories import CourseFactory


@pytest.fixture
def learner(db):
    return UserFactory()


@pytest.fixture
def course(db):
    return CourseFactory()
