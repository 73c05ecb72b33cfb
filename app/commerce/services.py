"""
Cart and order services.

OrderService is the order/stock reconciler:

- create_from_cart: snapshot prices from live products, no stock change
- confirm_payment: re-check and decrement stock, pending -> confirmed
- update_status: drive the order FSM; cancelled/refunded restore stock once

Product rows are always locked in primary-key order so two checkouts
touching the same products cannot deadlock.

Usage:
    from commerce.services import CartService, OrderService

    CartService.add_item(user, product, quantity=2)
    order = OrderService.create_from_cart(user, shipping_address={...})
    order = OrderService.confirm_payment(order.id)
"""

from __future__ import annotations

import secrets
import time
import uuid
from collections import defaultdict
from typing import TYPE_CHECKING, Any

from django.db import transaction
from django.db.models import F
from django_fsm import TransitionNotAllowed

from commerce.exceptions import (
    CartEmptyError,
    OrderNotFoundError,
    OrderStateError,
    ProductUnavailableError,
    StockExhaustedError,
)
from commerce.models import (
    Cart,
    CartItem,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    ProductStatus,
)
from core.exceptions import ValidationError
from core.services import BaseService
from coupons.services import CouponService

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from authentication.models import User


# Status -> transition method name
STATUS_TRANSITIONS: dict[str, str] = {
    OrderStatus.CONFIRMED: "confirm",
    OrderStatus.PROCESSING: "start_processing",
    OrderStatus.SHIPPED: "ship",
    OrderStatus.DELIVERED: "deliver",
    OrderStatus.CANCELLED: "cancel",
    OrderStatus.REFUNDED: "refund",
}

RELEASING_STATUSES = (OrderStatus.CANCELLED, OrderStatus.REFUNDED)


def generate_order_number() -> str:
    """``ORD`` + millisecond timestamp + three random digits."""
    return f"ORD{int(time.time() * 1000)}{secrets.randbelow(1000):03d}"


def _lock_products(product_ids) -> dict[uuid.UUID, Product]:
    return {
        product.id: product
        for product in Product.objects.select_for_update()
        .filter(id__in=set(product_ids))
        .order_by("id")
    }


class CartService(BaseService):
    """Minimal cart operations used to build orders."""

    @classmethod
    def get_cart(cls, user: User) -> Cart:
        cart, _ = Cart.objects.get_or_create(user=user)
        return cart

    @classmethod
    def add_item(cls, user: User, product: Product, quantity: int = 1) -> CartItem:
        """
        Add ``quantity`` of ``product`` to the user's cart.

        Raises:
            ValidationError: Non-positive quantity
            ProductUnavailableError: Product is not active
            StockExhaustedError: Requested quantity exceeds current stock
        """
        if quantity <= 0:
            raise ValidationError("Quantity must be positive", error_code="INVALID_QUANTITY")
        if not product.is_available:
            raise ProductUnavailableError(
                f"{product.name} is not available",
                details={"product_id": str(product.id)},
            )

        with transaction.atomic():
            cart = cls.get_cart(user)
            item, created = CartItem.objects.select_for_update().get_or_create(
                cart=cart, product=product, defaults={"quantity": quantity}
            )
            if not created:
                item.quantity += quantity

            if item.quantity > product.stock:
                raise StockExhaustedError(
                    f"Only {product.stock} units of {product.name} available",
                    details={
                        "product_id": str(product.id),
                        "requested": item.quantity,
                        "available": product.stock,
                    },
                )
            item.save()
        return item

    @classmethod
    def remove_item(cls, user: User, product: Product) -> bool:
        deleted, _ = CartItem.objects.filter(cart__user=user, product=product).delete()
        return deleted > 0

    @classmethod
    def clear(cls, user: User) -> int:
        deleted, _ = CartItem.objects.filter(cart__user=user).delete()
        return deleted

    @classmethod
    def subtotal_paisa(cls, user: User) -> int:
        """Cart subtotal at live prices (display only)."""
        return sum(
            item.product.price_paisa * item.quantity
            for item in CartItem.objects.filter(cart__user=user).select_related("product")
        )


class OrderService(BaseService):
    """
    Order/stock reconciler.

    Methods:
        create_from_cart: Snapshot the cart into a pending order
        confirm_payment: Commit stock and confirm the order
        update_status: Drive fulfilment and exit transitions
        get_order_for_user / list_orders_for_user: Owner-scoped reads
    """

    @classmethod
    def create_from_cart(
        cls,
        user: User,
        shipping_address: dict[str, Any],
        billing_address: dict[str, Any] | None = None,
        coupon_code: str | None = None,
        tax_paisa: int = 0,
        shipping_paisa: int = 0,
        notes: str = "",
    ) -> Order:
        """
        Create a pending order from the user's cart.

        Every line is re-validated against the live product row (status
        and stock). Any failure rejects the whole checkout and leaves the
        cart untouched. Stock is not decremented here.

        Raises:
            CartEmptyError: Nothing to order
            ProductUnavailableError: A product is no longer active
            StockExhaustedError: A product lacks stock for its line
            CouponInvalidError: ``coupon_code`` fails validation
        """
        if not shipping_address:
            raise ValidationError(
                "Shipping address is required", error_code="SHIPPING_ADDRESS_REQUIRED"
            )

        with transaction.atomic():
            cart = Cart.objects.select_for_update().filter(user=user).first()
            items = list(cart.items.all()) if cart is not None else []
            if not items:
                raise CartEmptyError("Cart is empty")

            products = _lock_products(item.product_id for item in items)

            unavailable = []
            short = []
            for item in items:
                product = products[item.product_id]
                if product.status != ProductStatus.ACTIVE:
                    unavailable.append(
                        {"product_id": str(product.id), "name": product.name, "status": product.status}
                    )
                elif product.stock < item.quantity:
                    short.append(
                        {
                            "product_id": str(product.id),
                            "name": product.name,
                            "requested": item.quantity,
                            "available": product.stock,
                        }
                    )

            if unavailable:
                raise ProductUnavailableError(
                    "Some products are no longer available",
                    details={"items": unavailable},
                )
            if short:
                raise StockExhaustedError(
                    "Insufficient stock for some products",
                    details={"items": short},
                )

            subtotal = sum(
                products[item.product_id].price_paisa * item.quantity for item in items
            )

            coupon = None
            discount = 0
            if coupon_code:
                validation = CouponService.validate(
                    coupon_code,
                    user,
                    subtotal,
                    product_ids=[item.product_id for item in items],
                )
                validation.raise_if_invalid()
                coupon = validation.coupon
                discount = validation.discount_paisa

            order = Order.objects.create(
                order_number=generate_order_number(),
                user=user,
                subtotal_paisa=subtotal,
                discount_paisa=discount,
                tax_paisa=tax_paisa,
                shipping_paisa=shipping_paisa,
                total_paisa=max(0, subtotal - discount + tax_paisa + shipping_paisa),
                coupon=coupon,
                shipping_address=shipping_address,
                billing_address=billing_address or shipping_address,
                notes=notes,
            )

            OrderItem.objects.bulk_create(
                [
                    OrderItem(
                        order=order,
                        product=products[item.product_id],
                        product_name=products[item.product_id].name,
                        quantity=item.quantity,
                        unit_price_paisa=products[item.product_id].price_paisa,
                        total_paisa=products[item.product_id].price_paisa * item.quantity,
                    )
                    for item in items
                ]
            )

            cart.items.all().delete()

        cls.get_logger().info(
            f"Created order {order.order_number}",
            extra={"order_id": str(order.id), "total_paisa": order.total_paisa},
        )
        return order

    @classmethod
    def confirm_payment(cls, order_id: uuid.UUID) -> Order:
        """
        Commit stock for a paid order and move it to CONFIRMED.

        Stock is re-checked under the product row locks; if any line can no
        longer be covered nothing is decremented and the order stays
        PENDING.

        Raises:
            OrderNotFoundError: Unknown order
            OrderStateError: Order is not PENDING
            StockExhaustedError: Concurrent orders consumed the stock
        """
        with transaction.atomic():
            order = cls._get_locked(order_id)
            if order.status != OrderStatus.PENDING:
                raise OrderStateError(
                    f"Order {order.order_number} is {order.status}, expected pending",
                    details={"order_id": str(order.id), "status": order.status},
                )

            quantities = cls._quantities(order)
            products = _lock_products(quantities)

            short = [
                {
                    "product_id": str(product_id),
                    "requested": quantity,
                    "available": products[product_id].stock,
                }
                for product_id, quantity in quantities.items()
                if products[product_id].stock < quantity
            ]
            if short:
                raise StockExhaustedError(
                    f"Insufficient stock to confirm order {order.order_number}",
                    details={"order_id": str(order.id), "items": short},
                )

            for product_id, quantity in quantities.items():
                Product.objects.filter(pk=product_id).update(stock=F("stock") - quantity)

            Product.objects.filter(
                pk__in=quantities.keys(), stock=0, status=ProductStatus.ACTIVE
            ).update(status=ProductStatus.OUT_OF_STOCK)

            order.confirm()
            order.stock_committed = True
            order.save()

        cls.get_logger().info(f"Confirmed order {order.order_number}, stock committed")
        return order

    @classmethod
    def update_status(
        cls,
        order_id: uuid.UUID,
        new_status: str,
        tracking_number: str | None = None,
    ) -> Order:
        """
        Move an order to ``new_status`` through its FSM transition.

        Moving to CANCELLED or REFUNDED returns committed stock; the
        ``stock_committed`` flag ensures that happens once.

        Raises:
            OrderNotFoundError: Unknown order
            OrderStateError: Unknown status or illegal transition
        """
        method_name = STATUS_TRANSITIONS.get(new_status)
        if method_name is None:
            raise OrderStateError(
                f"Unknown order status: {new_status}",
                details={"status": new_status, "supported": list(STATUS_TRANSITIONS)},
            )

        with transaction.atomic():
            order = cls._get_locked(order_id)
            previous = order.status

            kwargs = {"tracking_number": tracking_number} if method_name == "ship" else {}
            try:
                getattr(order, method_name)(**kwargs)
            except TransitionNotAllowed:
                raise OrderStateError(
                    f"Cannot move order {order.order_number} from {previous} to {new_status}",
                    details={"order_id": str(order.id), "from": previous, "to": new_status},
                )

            if new_status in RELEASING_STATUSES and order.stock_committed:
                cls._restore_stock(order)
                order.stock_committed = False

            order.save()

        cls.get_logger().info(f"Order {order.order_number}: {previous} -> {order.status}")
        return order

    @classmethod
    def get_order_for_user(cls, order_id: uuid.UUID, user: User) -> Order:
        """
        Fetch an order visible to ``user`` (owner, or any order for staff).

        Raises:
            OrderNotFoundError: Missing or owned by someone else
        """
        queryset = Order.objects.prefetch_related("items")
        if not user.is_administrator:
            queryset = queryset.filter(user=user)
        order = queryset.filter(id=order_id).first()
        if order is None:
            raise OrderNotFoundError(
                f"Order {order_id} not found", details={"order_id": str(order_id)}
            )
        return order

    @staticmethod
    def list_orders_for_user(user: User, status: str | None = None) -> QuerySet[Order]:
        queryset = Order.objects.prefetch_related("items")
        if not user.is_administrator:
            queryset = queryset.filter(user=user)
        if status:
            queryset = queryset.filter(status=status)
        return queryset

    # ==========================================================================
    # Internals
    # ==========================================================================

    @staticmethod
    def _get_locked(order_id: uuid.UUID) -> Order:
        try:
            return Order.objects.select_for_update().get(id=order_id)
        except Order.DoesNotExist:
            raise OrderNotFoundError(
                f"Order {order_id} not found", details={"order_id": str(order_id)}
            )

    @staticmethod
    def _quantities(order: Order) -> dict[uuid.UUID, int]:
        quantities: dict[uuid.UUID, int] = defaultdict(int)
        for item in order.items.all():
            quantities[item.product_id] += item.quantity
        return dict(quantities)

    @classmethod
    def _restore_stock(cls, order: Order) -> None:
        quantities = cls._quantities(order)
        _lock_products(quantities)
        for product_id, quantity in quantities.items():
            Product.objects.filter(pk=product_id).update(stock=F("stock") + quantity)
        Product.objects.filter(
            pk__in=quantities.keys(), stock__gt=0, status=ProductStatus.OUT_OF_STOCK
        ).update(status=ProductStatus.ACTIVE)
        cls.get_logger().info(f"Restored stock for order {order.order_number}")
