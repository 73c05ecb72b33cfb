"""
API views for the shop.

Provides:
- ProductListView: Active products
- CartView / CartItemView: Read and edit the caller's cart
- CheckoutView: Turn the cart into a pending order
- OrderListView / OrderDetailView: Owner-scoped orders
- OrderCancelView: Cancel one of the caller's pending orders
- OrderStatusView: Administrator fulfilment transitions

Domain errors (stock, availability, illegal transitions) are rendered
by core.responses.application_exception_handler.
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.generics import ListAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from commerce.models import OrderStatus, Product, ProductStatus
from commerce.serializers import (
    CartItemAddSerializer,
    CartItemSerializer,
    CartSerializer,
    CheckoutSerializer,
    OrderSerializer,
    OrderStatusUpdateSerializer,
    ProductSerializer,
)
from commerce.services import CartService, OrderService
from core.permissions import IsAdministrator


class ProductListView(ListAPIView):
    """GET /api/v1/commerce/products/"""

    permission_classes = [IsAuthenticated]
    serializer_class = ProductSerializer
    queryset = Product.objects.filter(status=ProductStatus.ACTIVE).order_by("name")

    @extend_schema(operation_id="list_products", summary="List products", tags=["Shop - Products"])
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class CartView(APIView):
    """
    GET    /api/v1/commerce/cart/  - Current cart
    POST   /api/v1/commerce/cart/  - Add a product
    DELETE /api/v1/commerce/cart/  - Empty the cart
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_cart",
        summary="Get cart",
        responses={200: CartSerializer},
        tags=["Shop - Cart"],
    )
    def get(self, request):
        cart = CartService.get_cart(request.user)
        return Response(CartSerializer(cart).data)

    @extend_schema(
        operation_id="add_cart_item",
        summary="Add product to cart",
        request=CartItemAddSerializer,
        responses={
            201: CartItemSerializer,
            400: OpenApiResponse(description="Product unavailable"),
            409: OpenApiResponse(description="Not enough stock"),
        },
        tags=["Shop - Cart"],
    )
    def post(self, request):
        serializer = CartItemAddSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        item = CartService.add_item(
            request.user,
            serializer.validated_data["product_id"],
            quantity=serializer.validated_data["quantity"],
        )
        return Response(CartItemSerializer(item).data, status=status.HTTP_201_CREATED)

    @extend_schema(operation_id="clear_cart", summary="Empty cart", tags=["Shop - Cart"])
    def delete(self, request):
        CartService.clear(request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


class CartItemView(APIView):
    """DELETE /api/v1/commerce/cart/{product_id}/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="remove_cart_item",
        summary="Remove product from cart",
        responses={204: None, 404: OpenApiResponse(description="Product not in cart")},
        tags=["Shop - Cart"],
    )
    def delete(self, request, product_id):
        product = Product.objects.filter(pk=product_id).first()
        if product is None or not CartService.remove_item(request.user, product):
            return Response({"error": "Product not in cart"}, status=status.HTTP_404_NOT_FOUND)
        return Response(status=status.HTTP_204_NO_CONTENT)


class CheckoutView(APIView):
    """
    POST /api/v1/commerce/checkout/

    Response:
        201 Created: Pending order; pay it through /api/v1/payments/initiate/
        400 Bad Request: Empty cart, unavailable product, invalid coupon
        409 Conflict: Not enough stock for a line
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="checkout",
        summary="Create order from cart",
        request=CheckoutSerializer,
        responses={
            201: OrderSerializer,
            400: OpenApiResponse(description="Validation error"),
            409: OpenApiResponse(description="Stock exhausted"),
        },
        tags=["Shop - Orders"],
    )
    def post(self, request):
        serializer = CheckoutSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data

        order = OrderService.create_from_cart(
            request.user,
            shipping_address=data["shipping_address"],
            billing_address=data.get("billing_address"),
            coupon_code=data.get("coupon_code") or None,
            notes=data.get("notes", ""),
        )
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)


class OrderListView(ListAPIView):
    """GET /api/v1/commerce/orders/"""

    permission_classes = [IsAuthenticated]
    serializer_class = OrderSerializer

    def get_queryset(self):
        return OrderService.list_orders_for_user(
            self.request.user, status=self.request.query_params.get("status")
        )

    @extend_schema(operation_id="list_orders", summary="List my orders", tags=["Shop - Orders"])
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class OrderDetailView(APIView):
    """GET /api/v1/commerce/orders/{order_id}/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_order",
        summary="Get order",
        responses={200: OrderSerializer, 404: OpenApiResponse(description="Order not found")},
        tags=["Shop - Orders"],
    )
    def get(self, request, order_id):
        order = OrderService.get_order_for_user(order_id, request.user)
        return Response(OrderSerializer(order).data)


class OrderCancelView(APIView):
    """POST /api/v1/commerce/orders/{order_id}/cancel/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="cancel_order",
        summary="Cancel pending order",
        request=None,
        responses={
            200: OrderSerializer,
            404: OpenApiResponse(description="Order not found"),
            409: OpenApiResponse(description="Order can no longer be cancelled by the customer"),
        },
        tags=["Shop - Orders"],
    )
    def post(self, request, order_id):
        order = OrderService.get_order_for_user(order_id, request.user)
        if order.status != OrderStatus.PENDING and not request.user.is_administrator:
            return Response(
                {
                    "success": False,
                    "error": "Only pending orders can be cancelled",
                    "error_code": "ORDER_STATE_ERROR",
                },
                status=status.HTTP_409_CONFLICT,
            )
        order = OrderService.update_status(order.id, OrderStatus.CANCELLED)
        return Response(OrderSerializer(order).data)


class OrderStatusView(APIView):
    """POST /api/v1/commerce/orders/{order_id}/status/ (administrators)"""

    permission_classes = [IsAdministrator]

    @extend_schema(
        operation_id="update_order_status",
        summary="Update order status",
        request=OrderStatusUpdateSerializer,
        responses={
            200: OrderSerializer,
            404: OpenApiResponse(description="Order not found"),
            409: OpenApiResponse(description="Illegal transition"),
        },
        tags=["Shop - Admin"],
    )
    def post(self, request, order_id):
        serializer = OrderStatusUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        order = OrderService.update_status(
            order_id,
            serializer.validated_data["status"],
            tracking_number=serializer.validated_data.get("tracking_number") or None,
        )
        return Response(OrderSerializer(order).data)
