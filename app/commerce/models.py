"""
Commerce models: Product, Cart, CartItem, Order, OrderItem.

Order status is an FSM; stock is only decremented by
``OrderService.confirm_payment`` (pending -> confirmed) and restored once
by a move to cancelled/refunded.

Usage:
    from commerce.models import Order, OrderStatus

    order.confirm()
    order.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


# =============================================================================
# Catalogue
# =============================================================================


class ProductStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"
    OUT_OF_STOCK = "out_of_stock", "Out of Stock"


class Product(UUIDPrimaryKeyMixin, BaseModel):
    """
    A physical product with live price and stock.

    Fields:
        name: Display name
        sku: Unique stock keeping unit
        price_paisa: Current price in paisa
        stock: Units available
        status: active / inactive / out_of_stock
    """

    name = models.CharField(
        max_length=200,
        help_text="Product name",
    )

    sku = models.CharField(
        max_length=64,
        unique=True,
        help_text="Stock keeping unit",
    )

    description = models.TextField(
        blank=True,
        default="",
        help_text="Product description",
    )

    price_paisa = models.PositiveBigIntegerField(
        help_text="Current price in paisa",
    )

    stock = models.PositiveIntegerField(
        default=0,
        help_text="Units available",
    )

    status = models.CharField(
        max_length=20,
        choices=ProductStatus.choices,
        default=ProductStatus.ACTIVE,
        db_index=True,
        help_text="Availability status",
    )

    class Meta:
        ordering = ["name"]
        verbose_name = "Product"
        verbose_name_plural = "Products"

    def __str__(self) -> str:
        return f"{self.name} ({self.sku})"

    @property
    def is_available(self) -> bool:
        return self.status == ProductStatus.ACTIVE


class Cart(UUIDPrimaryKeyMixin, BaseModel):
    """One shopping cart per user."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="cart",
        help_text="Cart owner",
    )

    class Meta:
        verbose_name = "Cart"
        verbose_name_plural = "Carts"

    def __str__(self) -> str:
        return f"Cart({self.user_id})"


class CartItem(UUIDPrimaryKeyMixin, BaseModel):
    cart = models.ForeignKey(
        Cart,
        on_delete=models.CASCADE,
        related_name="items",
        help_text="Containing cart",
    )

    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name="cart_items",
        help_text="Product in the cart",
    )

    quantity = models.PositiveIntegerField(
        default=1,
        help_text="Requested quantity",
    )

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["cart", "product"],
                name="unique_cart_product",
            ),
            models.CheckConstraint(
                condition=Q(quantity__gt=0),
                name="cart_item_quantity_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"CartItem({self.product_id} x{self.quantity})"


# =============================================================================
# Orders
# =============================================================================


class OrderStatus(models.TextChoices):
    """
    Order lifecycle.

    State Flow:
        PENDING -> CONFIRMED -> PROCESSING -> SHIPPED -> DELIVERED

    Exit Flow:
        PENDING/CONFIRMED/PROCESSING -> CANCELLED
        CONFIRMED/PROCESSING/SHIPPED/DELIVERED -> REFUNDED
    """

    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    PROCESSING = "processing", "Processing"
    SHIPPED = "shipped", "Shipped"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"


class Order(UUIDPrimaryKeyMixin, BaseModel):
    """
    An order created from a cart.

    Prices and addresses are snapshots taken at creation; they are never
    re-read from the live product.

    Fields:
        order_number: Human-readable number (ORD{timestamp}{3 digits})
        user: Order owner
        subtotal/discount/tax/shipping/total_paisa: Amounts in paisa
        coupon: Coupon validated at checkout (usage recorded on payment)
        shipping_address / billing_address: JSON snapshots
        status: FSM-managed order status
        stock_committed: True while this order holds decremented stock
    """

    order_number = models.CharField(
        max_length=32,
        unique=True,
        db_index=True,
        help_text="Human-readable order number",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="orders",
        help_text="Order owner",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    subtotal_paisa = models.PositiveBigIntegerField(
        default=0,
        help_text="Sum of line totals in paisa",
    )

    discount_paisa = models.PositiveBigIntegerField(
        default=0,
        help_text="Coupon discount in paisa",
    )

    tax_paisa = models.PositiveBigIntegerField(
        default=0,
        help_text="Tax in paisa",
    )

    shipping_paisa = models.PositiveBigIntegerField(
        default=0,
        help_text="Shipping charge in paisa",
    )

    total_paisa = models.PositiveBigIntegerField(
        default=0,
        help_text="Amount payable in paisa",
    )

    coupon = models.ForeignKey(
        "coupons.Coupon",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
        help_text="Coupon validated at checkout",
    )

    # ==========================================================================
    # Addresses
    # ==========================================================================

    shipping_address = models.JSONField(
        default=dict,
        help_text="Shipping address snapshot",
    )

    billing_address = models.JSONField(
        default=dict,
        blank=True,
        help_text="Billing address snapshot",
    )

    # ==========================================================================
    # Status
    # ==========================================================================

    status = FSMField(
        default=OrderStatus.PENDING,
        choices=OrderStatus.choices,
        db_index=True,
        protected=True,
        help_text="Order status (managed by FSM)",
    )

    stock_committed = models.BooleanField(
        default=False,
        help_text="Whether stock has been decremented for this order",
    )

    tracking_number = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Carrier tracking number",
    )

    notes = models.TextField(
        blank=True,
        default="",
        help_text="Customer notes",
    )

    confirmed_at = models.DateTimeField(null=True, blank=True, help_text="When payment confirmed the order")
    shipped_at = models.DateTimeField(null=True, blank=True, help_text="When the order shipped")
    delivered_at = models.DateTimeField(null=True, blank=True, help_text="When the order was delivered")
    cancelled_at = models.DateTimeField(null=True, blank=True, help_text="When the order was cancelled")
    refunded_at = models.DateTimeField(null=True, blank=True, help_text="When the order was refunded")

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Order"
        verbose_name_plural = "Orders"
        indexes = [
            models.Index(fields=["user", "status"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(discount_paisa__lte=models.F("subtotal_paisa")),
                name="order_discount_not_above_subtotal",
            ),
        ]

    def __str__(self) -> str:
        return f"Order({self.order_number}, {self.status})"

    @property
    def gross_amount_paisa(self) -> int:
        """Amount before discount."""
        return self.subtotal_paisa + self.tax_paisa + self.shipping_paisa

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(field=status, source=OrderStatus.PENDING, target=OrderStatus.CONFIRMED)
    def confirm(self):
        """Transition: PENDING -> CONFIRMED"""
        self.confirmed_at = timezone.now()

    @transition(field=status, source=OrderStatus.CONFIRMED, target=OrderStatus.PROCESSING)
    def start_processing(self):
        """Transition: CONFIRMED -> PROCESSING"""

    @transition(
        field=status,
        source=[OrderStatus.CONFIRMED, OrderStatus.PROCESSING],
        target=OrderStatus.SHIPPED,
    )
    def ship(self, tracking_number: str | None = None):
        """Transition: CONFIRMED/PROCESSING -> SHIPPED"""
        self.shipped_at = timezone.now()
        if tracking_number:
            self.tracking_number = tracking_number

    @transition(field=status, source=OrderStatus.SHIPPED, target=OrderStatus.DELIVERED)
    def deliver(self):
        """Transition: SHIPPED -> DELIVERED"""
        self.delivered_at = timezone.now()

    @transition(
        field=status,
        source=[OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING],
        target=OrderStatus.CANCELLED,
    )
    def cancel(self):
        """Transition: PENDING/CONFIRMED/PROCESSING -> CANCELLED"""
        self.cancelled_at = timezone.now()

    @transition(
        field=status,
        source=[
            OrderStatus.CONFIRMED,
            OrderStatus.PROCESSING,
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
        ],
        target=OrderStatus.REFUNDED,
    )
    def refund(self):
        """Transition: CONFIRMED/PROCESSING/SHIPPED/DELIVERED -> REFUNDED"""
        self.refunded_at = timezone.now()


class OrderItem(UUIDPrimaryKeyMixin, BaseModel):
    """
    One order line with the price captured at order time.
    """

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="items",
        help_text="Containing order",
    )

    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name="order_items",
        help_text="Ordered product",
    )

    product_name = models.CharField(
        max_length=200,
        help_text="Product name at order time",
    )

    quantity = models.PositiveIntegerField(
        help_text="Ordered quantity",
    )

    unit_price_paisa = models.PositiveBigIntegerField(
        help_text="Unit price at order time in paisa",
    )

    total_paisa = models.PositiveBigIntegerField(
        help_text="quantity x unit price in paisa",
    )

    class Meta:
        ordering = ["created_at"]
        verbose_name = "Order Item"
        verbose_name_plural = "Order Items"

    def __str__(self) -> str:
        return f"OrderItem({self.product_name} x{self.quantity})"
