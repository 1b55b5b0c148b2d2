"""
Billing admin configuration.

Subscriptions are viewable and editable for support work; Payment rows are
read-only ledger entries; WebhookEventLog rows can be replayed.
"""

from django.contrib import admin

from billing.models import Payment, Subscription, WebhookEventLog
from billing.plans import from_minor_units
from billing.tasks import replay_webhook_event


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    """
    Admin configuration for Subscription.

    State changes should come from Razorpay webhooks or the cancel
    endpoint, not from admin edits.
    """

    list_display = [
        "id",
        "user",
        "plan",
        "status",
        "razorpay_subscription_id",
        "cancel_at_period_end",
        "current_period_end",
    ]
    list_filter = ["plan", "status", "cancel_at_period_end"]
    search_fields = ["id", "user__email", "razorpay_subscription_id", "razorpay_customer_email"]
    readonly_fields = ["id", "status", "created_at", "updated_at"]
    raw_id_fields = ["user"]
    ordering = ["-created_at"]

    fieldsets = (
        (None, {"fields": ("id", "user", "plan", "status")}),
        (
            "Razorpay",
            {
                "fields": (
                    "razorpay_subscription_id",
                    "razorpay_plan_id",
                    "razorpay_customer_email",
                ),
            },
        ),
        (
            "Billing Period",
            {
                "fields": (
                    "current_period_start",
                    "current_period_end",
                    "cancel_at_period_end",
                    "canceled_at",
                ),
            },
        ),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """Read-only view of the payment ledger."""

    list_display = [
        "id",
        "subscription",
        "amount_display",
        "status",
        "razorpay_invoice_id",
        "paid_at",
        "created_at",
    ]
    list_filter = ["status", "currency", "created_at"]
    search_fields = [
        "id",
        "razorpay_payment_id",
        "razorpay_invoice_id",
        "subscription__user__email",
    ]
    ordering = ["-created_at"]

    @admin.display(description="Amount")
    def amount_display(self, obj: Payment) -> str:
        return f"{from_minor_units(obj.amount)} {obj.currency}"

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(WebhookEventLog)
class WebhookEventLogAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEventLog.

    Failed webhooks are fixed at the source and then replayed with the
    "Replay selected webhooks" action.
    """

    list_display = [
        "id",
        "event",
        "razorpay_subscription_id",
        "status",
        "attempts",
        "created_at",
        "processed_at",
    ]
    list_filter = ["status", "event", "created_at"]
    search_fields = ["id", "razorpay_event_id", "razorpay_subscription_id"]
    readonly_fields = [
        "id",
        "razorpay_event_id",
        "event",
        "razorpay_subscription_id",
        "payload",
        "status",
        "error_message",
        "attempts",
        "processed_at",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]
    actions = ["replay_selected"]

    @admin.action(description="Replay selected webhooks")
    def replay_selected(self, request, queryset):
        queued = 0
        for event_log in queryset:
            if event_log.can_replay:
                replay_webhook_event.delay(str(event_log.id))
                queued += 1
        self.message_user(request, f"Queued {queued} webhook(s) for replay.")

    def has_add_permission(self, request) -> bool:
        return False
