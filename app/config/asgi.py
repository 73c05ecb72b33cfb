"""
ASGI config for the course payment backend.

Uvicorn serves the project through this entry point. Only HTTP is
routed; gateways reach the webhook endpoints over plain HTTP.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/asgi/
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_asgi_application()
