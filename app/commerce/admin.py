"""
Django admin configuration for commerce models.
"""

from django.contrib import admin

from commerce.models import Cart, CartItem, Order, OrderItem, Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ["name", "sku", "price_paisa", "stock", "status"]
    list_filter = ["status"]
    search_fields = ["name", "sku"]


class CartItemInline(admin.TabularInline):
    model = CartItem
    extra = 0
    raw_id_fields = ["product"]


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ["user", "created_at", "updated_at"]
    search_fields = ["user__email"]
    raw_id_fields = ["user"]
    inlines = [CartItemInline]


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    can_delete = False
    readonly_fields = ["product", "product_name", "quantity", "unit_price_paisa", "total_paisa"]


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = [
        "order_number",
        "user",
        "status",
        "total_paisa",
        "stock_committed",
        "created_at",
    ]
    list_filter = ["status", "stock_committed"]
    search_fields = ["order_number", "user__email", "tracking_number"]
    raw_id_fields = ["user", "coupon"]
    inlines = [OrderItemInline]
    readonly_fields = [
        "order_number",
        "subtotal_paisa",
        "discount_paisa",
        "tax_paisa",
        "shipping_paisa",
        "total_paisa",
        "status",
        "stock_committed",
        "confirmed_at",
        "shipped_at",
        "delivered_at",
        "cancelled_at",
        "refunded_at",
        "created_at",
        "updated_at",
    ]
