"""
Django admin configuration for ledger models.

Transaction rows are immutable: no add, change or delete through the
admin. Corrections are appended through LedgerService. Expenses are
approved, rejected and paid with admin actions that go through
ExpenseService so the ledger row is written with the payment.
"""

from django.contrib import admin, messages

from payments.adapters.base import paisa_to_rupees
from payments.ledger.exceptions import LedgerError
from payments.ledger.models import Expense, ExpenseStatus, Transaction
from payments.ledger.services import ExpenseService


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    """
    Admin configuration for Transaction.

    Read-only view of the ledger with filters by type and category.
    """

    list_display = [
        "id",
        "transaction_date",
        "type",
        "category",
        "amount_display",
        "payment",
        "reference_number",
    ]
    list_filter = ["type", "category", "transaction_date"]
    search_fields = [
        "id",
        "idempotency_key",
        "reference_number",
        "description",
    ]
    readonly_fields = [
        "id",
        "created_at",
        "transaction_date",
        "type",
        "category",
        "amount_paisa",
        "currency",
        "description",
        "payment",
        "expense",
        "instructor_earning",
        "affiliate_earning",
        "reference_number",
        "idempotency_key",
        "metadata",
        "recorded_by",
    ]
    date_hierarchy = "transaction_date"
    ordering = ["-transaction_date"]

    fieldsets = (
        (
            "Transaction Details",
            {
                "fields": (
                    "id",
                    "type",
                    "category",
                    "amount_paisa",
                    "currency",
                    "transaction_date",
                    "created_at",
                ),
            },
        ),
        (
            "Source",
            {
                "fields": ("payment", "expense", "instructor_earning", "affiliate_earning"),
            },
        ),
        (
            "Reference",
            {
                "fields": ("reference_number", "idempotency_key"),
            },
        ),
        (
            "Additional Info",
            {
                "fields": ("description", "metadata", "recorded_by"),
            },
        ),
    )

    @admin.display(description="Amount")
    def amount_display(self, obj: Transaction) -> str:
        return f"{obj.currency} {paisa_to_rupees(obj.amount_paisa)}"

    def has_delete_permission(self, request, obj=None) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_add_permission(self, request) -> bool:
        return False


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    list_display = [
        "title",
        "category",
        "amount_display",
        "status",
        "vendor",
        "submitted_by",
        "paid_date",
        "created_at",
    ]
    list_filter = ["status", "category", "created_at"]
    search_fields = ["title", "vendor", "invoice_number"]
    readonly_fields = [
        "id",
        "status",
        "approved_by",
        "approved_at",
        "paid_date",
        "created_at",
        "updated_at",
    ]
    actions = ["approve_expenses", "reject_expenses", "mark_expenses_paid"]

    @admin.display(description="Amount")
    def amount_display(self, obj: Expense) -> str:
        return paisa_to_rupees(obj.amount_paisa)

    def save_model(self, request, obj, form, change):
        if not change and obj.submitted_by_id is None:
            obj.submitted_by = request.user
        super().save_model(request, obj, form, change)

    def _run(self, request, queryset, status, operation, label):
        done = 0
        for expense in queryset.filter(status=status):
            try:
                operation(expense)
            except LedgerError as e:
                self.message_user(request, f"{expense.title}: {e.message}", messages.ERROR)
                continue
            done += 1
        self.message_user(request, f"{done} expense(s) {label}.", messages.SUCCESS)

    @admin.action(description="Approve selected expenses")
    def approve_expenses(self, request, queryset):
        self._run(
            request,
            queryset,
            ExpenseStatus.PENDING,
            lambda e: ExpenseService.approve(e.id, approved_by=request.user),
            "approved",
        )

    @admin.action(description="Reject selected expenses")
    def reject_expenses(self, request, queryset):
        self._run(
            request,
            queryset,
            ExpenseStatus.PENDING,
            lambda e: ExpenseService.reject(e.id, rejected_by=request.user),
            "rejected",
        )

    @admin.action(description="Mark selected expenses paid")
    def mark_expenses_paid(self, request, queryset):
        self._run(
            request,
            queryset,
            ExpenseStatus.APPROVED,
            lambda e: ExpenseService.mark_paid(e.id, recorded_by=request.user),
            "paid",
        )
