"""
Payment admin configuration.

Registers Payment and WebhookEvent, and pulls in the ledger admin so
Transaction and Expense appear under the payments app. Status changes go
through the orchestrator (bank transfer confirmation) or the webhook task
(requeue), never through the change form.
"""

from django.contrib import admin, messages

from payments.adapters.base import paisa_to_rupees
from payments.ledger.admin import ExpenseAdmin, TransactionAdmin
from payments.models import Payment, WebhookEvent
from payments.services import PaymentOrchestrator, VerifyPaymentParams
from payments.state_machines import GatewayName, PaymentStatus, WebhookEventStatus

__all__ = [
    "ExpenseAdmin",
    "PaymentAdmin",
    "TransactionAdmin",
    "WebhookEventAdmin",
]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """
    Admin configuration for Payment.

    Amounts, status and gateway references are read-only. Pending bank
    transfers are confirmed with the "Confirm bank transfer" action.
    """

    list_display = [
        "transaction_id",
        "payer",
        "final_amount_display",
        "status",
        "method",
        "gateway",
        "retry_count",
        "created_at",
    ]
    list_filter = ["status", "method", "gateway", "created_at"]
    search_fields = [
        "id",
        "transaction_id",
        "gateway_transaction_id",
        "external_transaction_id",
        "payer__email",
    ]
    list_select_related = ["payer"]
    readonly_fields = [
        "id",
        "payer",
        "course",
        "order",
        "coupon",
        "amount_paisa",
        "discount_paisa",
        "final_amount_paisa",
        "refunded_paisa",
        "currency",
        "method",
        "gateway",
        "status",
        "transaction_id",
        "gateway_transaction_id",
        "external_transaction_id",
        "retry_count",
        "max_retries",
        "version",
        "ip_address",
        "user_agent",
        "completed_at",
        "failed_at",
        "refunded_at",
        "metadata",
        "failure_reason",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["confirm_bank_transfers"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "payer", "status", "method", "gateway"),
            },
        ),
        (
            "Purchase",
            {
                "fields": ("course", "order", "coupon"),
            },
        ),
        (
            "Amount",
            {
                "fields": (
                    "amount_paisa",
                    "discount_paisa",
                    "final_amount_paisa",
                    "refunded_paisa",
                    "currency",
                ),
            },
        ),
        (
            "Gateway References",
            {
                "fields": (
                    "transaction_id",
                    "gateway_transaction_id",
                    "external_transaction_id",
                ),
            },
        ),
        (
            "Retries",
            {
                "fields": ("retry_count", "max_retries", "version", "failure_reason"),
            },
        ),
        (
            "Client",
            {
                "fields": ("ip_address", "user_agent"),
                "classes": ("collapse",),
            },
        ),
        (
            "Metadata",
            {
                "fields": ("metadata",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": (
                    "completed_at",
                    "failed_at",
                    "refunded_at",
                    "created_at",
                    "updated_at",
                ),
            },
        ),
    )

    @admin.display(description="Amount")
    def final_amount_display(self, obj: Payment) -> str:
        return f"{obj.currency} {paisa_to_rupees(obj.final_amount_paisa)}"

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False

    @admin.action(description="Confirm bank transfer")
    def confirm_bank_transfers(self, request, queryset):
        confirmed = 0
        pending = queryset.filter(
            status=PaymentStatus.PENDING,
            gateway=GatewayName.BANK_TRANSFER,
        )
        for payment in pending:
            result = PaymentOrchestrator.verify(
                VerifyPaymentParams(payment_id=payment.pk, confirmed_by=request.user)
            )
            if not result.success:
                self.message_user(
                    request,
                    f"{payment.transaction_id}: {result.error}",
                    messages.ERROR,
                )
                continue
            confirmed += 1
        self.message_user(request, f"{confirmed} payment(s) confirmed.", messages.SUCCESS)


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Events are immutable once received; failed ones can be requeued.
    """

    list_display = [
        "id",
        "gateway",
        "event_id",
        "event_type",
        "status",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["gateway", "status", "event_type", "created_at"]
    search_fields = ["id", "event_id", "event_type"]
    readonly_fields = [
        "id",
        "gateway",
        "event_id",
        "event_type",
        "payload",
        "status",
        "processed_at",
        "error_message",
        "retry_count",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["requeue_events"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "gateway", "event_id", "event_type", "status"),
            },
        ),
        (
            "Processing",
            {
                "fields": ("processed_at", "retry_count"),
            },
        ),
        (
            "Error Info",
            {
                "fields": ("error_message",),
                "classes": ("collapse",),
            },
        ),
        (
            "Payload",
            {
                "fields": ("payload",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False

    @admin.action(description="Requeue failed events")
    def requeue_events(self, request, queryset):
        from payments.tasks import process_webhook_event

        failed = queryset.filter(status=WebhookEventStatus.FAILED)
        count = 0
        for event in failed:
            process_webhook_event.delay(str(event.id))
            count += 1
        self.message_user(request, f"{count} event(s) queued.", messages.SUCCESS)
