"""
WSGI entry point, for servers that do not speak ASGI.

Uvicorn serves the ASGI app in config/asgi.py in normal deployments.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
