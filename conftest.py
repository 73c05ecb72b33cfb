"""
Root pytest configuration.

Django itself is configured by pytest-django from the [tool.pytest.ini_options]
table in pyproject.toml; project-wide hooks and fixtures live in
app/conftest.py and per-app fixtures in each app's tests/conftest.py.
"""

import os

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")
