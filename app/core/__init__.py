"""
Shared building blocks for the domain apps.

``core.services`` and ``core.exceptions`` are re-exported here. Models,
model mixins and the DRF glue in ``core.responses`` import Django
machinery, so import those from their own modules.
"""

from .exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from .helpers import generate_reference, get_client_ip, get_user_agent
from .services import BaseService, ServiceResult

__all__ = [
    "BaseApplicationError",
    "BaseService",
    "ConflictError",
    "ExternalServiceError",
    "NotFoundError",
    "PermissionDeniedError",
    "ServiceResult",
    "ValidationError",
    "generate_reference",
    "get_client_ip",
    "get_user_agent",
]
