"""
Request and identifier helpers shared across apps.

Functions:
    get_client_ip: Client IP extraction from request (proxy aware)
    get_user_agent: User-Agent header extraction
    generate_reference: Time-prefixed, uppercase reference numbers
"""

from __future__ import annotations

import secrets
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from django.http import HttpRequest


def get_client_ip(request: HttpRequest) -> str:
    """
    Extract client IP from request, handling proxies.

    Takes the first address of X-Forwarded-For (the original client) and
    falls back to REMOTE_ADDR.

    Example:
        ip = get_client_ip(request)
    """
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        ip = x_forwarded_for.split(",")[0].strip()
    else:
        ip = request.META.get("REMOTE_ADDR", "")
    return ip


def get_user_agent(request: HttpRequest) -> str:
    """Return the request's User-Agent header, or an empty string."""
    return request.META.get("HTTP_USER_AGENT", "") or ""


def generate_reference(prefix: str, random_bytes: int = 4) -> str:
    """
    Generate a reference such as ``TXN1718000000000A1B2C3D4``.

    The millisecond timestamp keeps references roughly sortable, the random
    suffix keeps them unique across concurrent requests.

    Args:
        prefix: Short uppercase prefix (TXN, MB, PAYOUT, ...)
        random_bytes: Number of random bytes to hex-encode

    Returns:
        Uppercase reference string
    """
    timestamp = int(time.time() * 1000)
    return f"{prefix}{timestamp}{secrets.token_hex(random_bytes)}".upper()
