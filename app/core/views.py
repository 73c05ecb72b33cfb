"""
Infrastructure endpoints.
"""

import logging

from django.db import connection
from django.http import JsonResponse
from django_redis import get_redis_connection

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Liveness probe: 503 only when the database cannot be reached.

    Redis carries the payment locks and the Celery broker. Losing it
    degrades checkout but the process is still worth keeping, so it is
    reported without failing the probe.
    """
    body = {"status": "healthy", "database": "connected", "redis": "connected"}

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except Exception:
        logger.exception("Health check could not reach the database")
        body["database"] = "disconnected"
        body["status"] = "unhealthy"

    try:
        get_redis_connection("default").ping()
    except Exception:
        logger.warning("Health check could not reach redis")
        body["redis"] = "disconnected"

    return JsonResponse(body, status=200 if body["database"] == "connected" else 503)
