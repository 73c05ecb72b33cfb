"""Shop routes, included under /api/v1/commerce/."""

from django.urls import path

from commerce import views

app_name = "commerce"

urlpatterns = [
    path("products/", views.ProductListView.as_view(), name="product_list"),
    path("cart/", views.CartView.as_view(), name="cart"),
    path("cart/<uuid:product_id>/", views.CartItemView.as_view(), name="cart_item"),
    path("checkout/", views.CheckoutView.as_view(), name="checkout"),
    path("orders/", views.OrderListView.as_view(), name="order_list"),
    path("orders/<uuid:order_id>/", views.OrderDetailView.as_view(), name="order_detail"),
    path("orders/<uuid:order_id>/cancel/", views.OrderCancelView.as_view(), name="order_cancel"),
    path("orders/<uuid:order_id>/status/", views.OrderStatusView.as_view(), name="order_status"),
]
