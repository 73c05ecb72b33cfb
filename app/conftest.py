"""
Project-wide pytest configuration for the Django project.

This module adjusts settings for tests and provides fixtures shared by
every app. App-specific fixtures are defined in each app's tests/conftest.py.
"""

import pytest


def pytest_configure():
    """Adjust settings before tests run."""
    from django.conf import settings

    # Disable throttling during tests to prevent rate limit failures
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}

    # Use fast password hasher for tests (PBKDF2 is too slow with 870K iterations)
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]

    # Local memory cache; Redis locks are mocked per test
    settings.CACHES = {
        "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"}
    }
    # DEBUG is off under test; the test client speaks plain HTTP
    settings.SECURE_SSL_REDIRECT = False
    settings.CELERY_TASK_ALWAYS_EAGER = True
    # Request trail entries are switched on by the tests that cover them
    settings.AUDIT_REQUESTS_ENABLED = False
    settings.STORAGES["staticfiles"] = {
        "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"
    }


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py → e2e (full checkout journeys)
    - test_views.py, test_services.py, test_tasks.py, etc. → integration
    - test_models.py, test_serializers.py, test_fraud.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_webhooks.py",
        "test_handlers.py",
        "test_orchestrator.py",
        "test_refund_service.py",
        "test_fulfilment.py",
        "test_statements.py",
        "test_analytics.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_serializers.py",
        "test_adapters.py",
        "test_state_transitions.py",
        "test_locks.py",
        "test_fraud.py",
        "test_responses.py",
        "test_helpers.py",
    ]

    for item in items:
        # Skip if test already has unit/integration/e2e marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)


@pytest.fixture
def api_client():
    """Unauthenticated DRF test client."""
    from rest_framework.test import APIClient

    return APIClient()


@pytest.fixture
def client_for():
    """
    Build a DRF client authenticated as a given user.

    Usage:
        def test_list(client_for, user):
            response = client_for(user).get("/api/v1/payments/")
    """
    from rest_framework.test import APIClient

    def _client(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    return _client


@pytest.fixture
def administrator(db):
    """Staff user; passes IsAdministrator."""
    from authentication.tests.factories import UserFactory

    return UserFactory(is_staff=True)


@pytest.fixture
def mock_redis_lock(mocker):
    """
    Replace the Redis connection behind payments.locks.

    SET NX always succeeds and the release script reports one key deleted,
    so DistributedLock acquires and releases without a Redis server.
    """
    connection = mocker.MagicMock()
    connection.set.return_value = True
    connection.eval.return_value = 1
    mocker.patch("payments.locks.get_redis_connection", return_value=connection)
    return connection
