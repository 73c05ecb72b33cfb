"""
Django admin configuration for the audit log (read-only).
"""

from django.contrib import admin

from audit.models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ["created_at", "action", "user", "entity_type", "entity_id", "risk_score", "flagged"]
    list_filter = ["action", "flagged", "entity_type"]
    search_fields = ["entity_id", "description", "user__email", "ip_address"]
    ordering = ["-created_at"]
    readonly_fields = [f.name for f in AuditLog._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
