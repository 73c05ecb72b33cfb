"""
URL configuration for the payments app.

Routes:
    - GET  /gateways/                     - Configured gateways
    - POST /initiate/                     - Start a payment
    - POST /verify/                       - Verify after the gateway redirect
    - GET  /                              - My payments
    - GET  /{id}/                         - Payment detail
    - POST /{id}/retry/                   - Retry a failed payment
    - POST /{id}/refund/                  - Refund (administrators)
    - POST /{id}/confirm/                 - Confirm bank transfer (administrators)
    - GET  /webhooks/esewa/               - eSewa success redirect
    - GET  /webhooks/khalti/              - Khalti return URL
    - POST /webhooks/stripe/              - Stripe webhook endpoint
    - /finance/...                        - Ledger reports and expenses

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.
"""

from django.urls import include, path

from payments import views
from payments.webhooks.views import esewa_callback, khalti_callback, stripe_webhook

app_name = "payments"

urlpatterns = [
    path("", views.PaymentListView.as_view(), name="payment_list"),
    path("gateways/", views.PaymentGatewayListView.as_view(), name="gateway_list"),
    path("initiate/", views.PaymentInitiateView.as_view(), name="initiate"),
    path("verify/", views.PaymentVerifyView.as_view(), name="verify"),
    path("<uuid:payment_id>/", views.PaymentDetailView.as_view(), name="payment_detail"),
    path("<uuid:payment_id>/retry/", views.PaymentRetryView.as_view(), name="retry"),
    path("<uuid:payment_id>/refund/", views.PaymentRefundView.as_view(), name="refund"),
    path("<uuid:payment_id>/confirm/", views.PaymentConfirmView.as_view(), name="confirm"),
    # Webhook endpoints
    path("webhooks/esewa/", esewa_callback, name="esewa_callback"),
    path("webhooks/khalti/", khalti_callback, name="khalti_callback"),
    path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    # Finance
    path("finance/", include("payments.ledger.urls")),
]
