"""
Serializers for products, the cart and orders.
"""

from __future__ import annotations

from rest_framework import serializers

from commerce.models import Cart, CartItem, Order, OrderItem, OrderStatus, Product


class ProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = ["id", "name", "sku", "description", "price_paisa", "stock", "status"]
        read_only_fields = fields


class CartItemSerializer(serializers.ModelSerializer):
    product = ProductSerializer(read_only=True)
    line_total_paisa = serializers.SerializerMethodField()

    class Meta:
        model = CartItem
        fields = ["id", "product", "quantity", "line_total_paisa"]
        read_only_fields = fields

    def get_line_total_paisa(self, obj: CartItem) -> int:
        return obj.product.price_paisa * obj.quantity


class CartSerializer(serializers.ModelSerializer):
    items = CartItemSerializer(many=True, read_only=True)
    subtotal_paisa = serializers.SerializerMethodField()

    class Meta:
        model = Cart
        fields = ["id", "items", "subtotal_paisa"]
        read_only_fields = fields

    def get_subtotal_paisa(self, obj: Cart) -> int:
        return sum(item.product.price_paisa * item.quantity for item in obj.items.all())


class CartItemAddSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1, default=1)

    def validate_product_id(self, value):
        product = Product.objects.filter(pk=value).first()
        if product is None:
            raise serializers.ValidationError("Product not found.")
        return product


class CheckoutSerializer(serializers.Serializer):
    """Snapshot the cart into a pending order."""

    shipping_address = serializers.DictField(help_text="Name, line1, city, phone ...")
    billing_address = serializers.DictField(required=False, allow_null=True)
    coupon_code = serializers.CharField(required=False, allow_blank=True, max_length=50)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = ["id", "product", "product_name", "quantity", "unit_price_paisa", "total_paisa"]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    coupon_code = serializers.CharField(source="coupon.code", read_only=True, default=None)
    gross_amount_paisa = serializers.IntegerField(read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "status",
            "items",
            "subtotal_paisa",
            "discount_paisa",
            "tax_paisa",
            "shipping_paisa",
            "total_paisa",
            "gross_amount_paisa",
            "coupon_code",
            "shipping_address",
            "billing_address",
            "tracking_number",
            "notes",
            "confirmed_at",
            "shipped_at",
            "delivered_at",
            "cancelled_at",
            "refunded_at",
            "created_at",
        ]
        read_only_fields = fields


class OrderStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    tracking_number = serializers.CharField(required=False, allow_blank=True, max_length=100)
