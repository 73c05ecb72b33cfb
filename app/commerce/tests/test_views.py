"""
Tests for shop API endpoints.
"""

import pytest
from django.urls import reverse
from rest_framework import status

from commerce.models import OrderStatus, Product
from commerce.services import CartService, OrderService
from commerce.tests.factories import SHIPPING_ADDRESS, OrderFactory, ProductFactory


@pytest.mark.django_db
class TestCartEndpoints:
    def test_add_and_view_cart(self, client_for, user, product):
        client = client_for(user)

        added = client.post(
            reverse("commerce:cart"),
            {"product_id": str(product.id), "quantity": 2},
            format="json",
        )
        cart = client.get(reverse("commerce:cart"))

        assert added.status_code == status.HTTP_201_CREATED
        assert added.data["line_total_paisa"] == 100000
        assert cart.data["subtotal_paisa"] == 100000
        assert len(cart.data["items"]) == 1

    def test_over_stock_is_conflict(self, client_for, user, product):
        response = client_for(user).post(
            reverse("commerce:cart"),
            {"product_id": str(product.id), "quantity": 6},
            format="json",
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "STOCK_EXHAUSTED"

    def test_unknown_product(self, client_for, user):
        import uuid

        response = client_for(user).post(
            reverse("commerce:cart"), {"product_id": str(uuid.uuid4())}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_remove_item(self, client_for, user, product):
        CartService.add_item(user, product)
        client = client_for(user)

        first = client.delete(reverse("commerce:cart_item", args=[product.id]))
        second = client.delete(reverse("commerce:cart_item", args=[product.id]))

        assert first.status_code == status.HTTP_204_NO_CONTENT
        assert second.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestCheckout:
    def test_checkout_creates_order(self, client_for, user, product):
        CartService.add_item(user, product, 2)

        response = client_for(user).post(
            reverse("commerce:checkout"),
            {"shipping_address": SHIPPING_ADDRESS},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["status"] == OrderStatus.PENDING
        assert response.data["total_paisa"] == 100000
        assert len(response.data["items"]) == 1

    def test_empty_cart(self, client_for, user):
        response = client_for(user).post(
            reverse("commerce:checkout"),
            {"shipping_address": SHIPPING_ADDRESS},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "CART_EMPTY"


@pytest.mark.django_db
class TestOrders:
    def test_list_only_own_orders(self, client_for, user, product):
        OrderFactory(user=user, items=[(product, 1)])
        OrderFactory(items=[(product, 1)])

        response = client_for(user).get(reverse("commerce:order_list"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["count"] == 1

    def test_detail_of_foreign_order_is_404(self, client_for, user, product):
        order = OrderFactory(items=[(product, 1)])

        response = client_for(user).get(reverse("commerce:order_detail", args=[order.id]))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "ORDER_NOT_FOUND"

    def test_customer_cancels_pending_order(self, client_for, user, product):
        order = OrderFactory(user=user, items=[(product, 1)])

        response = client_for(user).post(reverse("commerce:order_cancel", args=[order.id]))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == OrderStatus.CANCELLED

    def test_customer_cannot_cancel_confirmed_order(self, client_for, user, product):
        order = OrderFactory(user=user, items=[(product, 1)])
        OrderService.confirm_payment(order.id)

        response = client_for(user).post(reverse("commerce:order_cancel", args=[order.id]))

        assert response.status_code == status.HTTP_409_CONFLICT
        assert Product.objects.get(pk=product.pk).stock == 4


@pytest.mark.django_db
class TestOrderStatusAdmin:
    def test_admin_ships_order(self, client_for, administrator, user):
        product = ProductFactory(stock=2)
        order = OrderFactory(user=user, items=[(product, 1)])
        OrderService.confirm_payment(order.id)

        response = client_for(administrator).post(
            reverse("commerce:order_status", args=[order.id]),
            {"status": OrderStatus.SHIPPED, "tracking_number": "NP123"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["tracking_number"] == "NP123"

    def test_illegal_transition_is_conflict(self, client_for, administrator, user, product):
        order = OrderFactory(user=user, items=[(product, 1)])

        response = client_for(administrator).post(
            reverse("commerce:order_status", args=[order.id]),
            {"status": OrderStatus.DELIVERED},
            format="json",
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "ORDER_STATE_ERROR"

    def test_customer_forbidden(self, client_for, user, product):
        order = OrderFactory(user=user, items=[(product, 1)])

        response = client_for(user).post(
            reverse("commerce:order_status", args=[order.id]),
            {"status": OrderStatus.CANCELLED},
            format="json",
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
