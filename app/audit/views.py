"""
API views for the audit log (administrators only).

- AuditLogListView: Filtered, paginated audit entries
"""

from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework.generics import ListAPIView

from audit.serializers import AuditLogSerializer, AuditQuerySerializer
from audit.services import AuditService
from core.permissions import IsAdministrator


class AuditLogListView(ListAPIView):
    """GET /api/v1/audit/logs/"""

    permission_classes = [IsAdministrator]
    serializer_class = AuditLogSerializer

    def get_queryset(self):
        query = AuditQuerySerializer(data=self.request.query_params)
        query.is_valid(raise_exception=True)
        return AuditService.query(query.validated_data).order_by("-created_at")

    @extend_schema(
        operation_id="list_audit_logs",
        summary="List audit log entries",
        parameters=[AuditQuerySerializer],
        tags=["Audit"],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)
