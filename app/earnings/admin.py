"""
Django admin configuration for payees and earnings.

Aggregates and earning amounts are read-only: they only change through
the commission services.
"""

from django.contrib import admin

from earnings.models import Affiliate, AffiliateEarning, Instructor, InstructorEarning

AGGREGATE_FIELDS = [
    "total_earnings_paisa",
    "pending_earnings_paisa",
    "paid_earnings_paisa",
]


@admin.register(Instructor)
class InstructorAdmin(admin.ModelAdmin):
    list_display = ["user", "commission_rate", *AGGREGATE_FIELDS]
    search_fields = ["user__email", "user__full_name"]
    raw_id_fields = ["user"]
    readonly_fields = [*AGGREGATE_FIELDS, "created_at", "updated_at"]


@admin.register(Affiliate)
class AffiliateAdmin(admin.ModelAdmin):
    list_display = ["affiliate_code", "user", "status", "commission_rate", *AGGREGATE_FIELDS]
    list_filter = ["status"]
    search_fields = ["affiliate_code", "user__email"]
    raw_id_fields = ["user"]
    readonly_fields = [*AGGREGATE_FIELDS, "approved_at", "created_at", "updated_at"]


class EarningAdmin(admin.ModelAdmin):
    list_filter = ["status"]
    raw_id_fields = ["course", "payment", "enrollment", "paid_by"]
    readonly_fields = [
        "amount_paisa",
        "commission_rate",
        "status",
        "paid_at",
        "cancelled_at",
        "created_at",
        "updated_at",
    ]

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(InstructorEarning)
class InstructorEarningAdmin(EarningAdmin):
    list_display = ["id", "instructor", "course", "amount_paisa", "status", "created_at"]
    search_fields = ["instructor__user__email", "payment__transaction_id"]


@admin.register(AffiliateEarning)
class AffiliateEarningAdmin(EarningAdmin):
    list_display = ["id", "affiliate", "course", "amount_paisa", "status", "created_at"]
    search_fields = ["affiliate__affiliate_code", "payment__transaction_id"]
