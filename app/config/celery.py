"""
Celery configuration for the course payment backend.

Workers process gateway webhooks off the request path; celery-beat runs
the periodic maintenance jobs listed in settings.CELERY_BEAT_SCHEDULE
(webhook retry/cleanup, stale payment expiry, coupon expiry).

Redis is both the message broker and the result backend. Tasks are
auto-discovered from the installed apps.

Usage:
    from payments.tasks import process_webhook_event

    process_webhook_event.delay(str(webhook_event.id))

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()

