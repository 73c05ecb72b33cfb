"""
Tests for the health check endpoint.
"""

import pytest
from django.urls import reverse


@pytest.mark.django_db
class TestHealthCheck:
    def test_healthy(self, client, mocker):
        mocker.patch("core.views.get_redis_connection")

        response = client.get(reverse("health_check"))

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "database": "connected",
            "redis": "connected",
        }

    def test_redis_outage_does_not_fail_the_probe(self, client, mocker):
        mocker.patch(
            "core.views.get_redis_connection",
            side_effect=ConnectionError("redis down"),
        )

        response = client.get(reverse("health_check"))

        assert response.status_code == 200
        assert response.json()["redis"] == "disconnected"
