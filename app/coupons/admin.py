"""
Django admin configuration for coupons.
"""

from django.contrib import admin

from coupons.models import Coupon, CouponUsage


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = [
        "code",
        "discount_type",
        "percent_off",
        "amount_off_paisa",
        "used_count",
        "usage_limit",
        "status",
        "valid_until",
    ]
    list_filter = ["status", "discount_type"]
    search_fields = ["code", "description"]
    readonly_fields = ["used_count", "created_at", "updated_at"]


@admin.register(CouponUsage)
class CouponUsageAdmin(admin.ModelAdmin):
    list_display = ["coupon", "user", "payment", "discount_paisa", "created_at"]
    search_fields = ["coupon__code", "user__email"]
    raw_id_fields = ["coupon", "user", "payment", "order"]
    readonly_fields = ["created_at"]

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
