import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Subscription",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "plan",
                    models.CharField(
                        choices=[
                            ("FREE", "Free"),
                            ("STARTER", "Starter"),
                            ("PRO", "Pro"),
                            ("BUSINESS", "Business"),
                        ],
                        db_index=True,
                        default="FREE",
                        help_text="Current plan tier",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("ACTIVE", "Active"),
                            ("PAST_DUE", "Past Due"),
                            ("CANCELED", "Canceled"),
                            ("COMPLETED", "Completed"),
                        ],
                        db_index=True,
                        default="ACTIVE",
                        help_text="Lifecycle status of the subscription (managed by FSM)",
                        max_length=50,
                    ),
                ),
                (
                    "razorpay_subscription_id",
                    models.CharField(
                        blank=True,
                        help_text="Razorpay subscription ID (sub_xxx)",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "razorpay_plan_id",
                    models.CharField(
                        blank=True,
                        help_text="Razorpay plan ID (plan_xxx)",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "razorpay_customer_email",
                    models.EmailField(
                        blank=True,
                        help_text="Customer email captured from checkout notes",
                        max_length=254,
                        null=True,
                    ),
                ),
                (
                    "current_period_start",
                    models.DateTimeField(
                        blank=True, help_text="Start of current billing period", null=True
                    ),
                ),
                (
                    "current_period_end",
                    models.DateTimeField(
                        blank=True, help_text="End of current billing period", null=True
                    ),
                ),
                (
                    "cancel_at_period_end",
                    models.BooleanField(
                        default=False,
                        help_text="Whether subscription will cancel at period end",
                    ),
                ),
                (
                    "canceled_at",
                    models.DateTimeField(
                        blank=True, help_text="When subscription was cancelled", null=True
                    ),
                ),
                (
                    "user",
                    models.OneToOneField(
                        help_text="User this subscription belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="subscription",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Subscription",
                "verbose_name_plural": "Subscriptions",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "plan"], name="billing_sub_status_0c9d3e_idx"
                    ),
                    models.Index(
                        fields=["status", "current_period_end"],
                        name="billing_sub_status_5b1f7a_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "razorpay_payment_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Razorpay payment ID (pay_xxx)",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "razorpay_order_id",
                    models.CharField(
                        blank=True,
                        help_text="Razorpay order ID (order_xxx)",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "razorpay_invoice_id",
                    models.CharField(
                        blank=True,
                        help_text="Razorpay invoice ID (inv_xxx) - unique constraint for idempotency",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "amount",
                    models.PositiveBigIntegerField(
                        default=0, help_text="Amount in smallest currency unit (paise)"
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="INR", help_text="ISO 4217 currency code", max_length=3
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("paid", "Paid"), ("failed", "Failed")],
                        db_index=True,
                        help_text="Outcome of the charge",
                        max_length=10,
                    ),
                ),
                (
                    "failure_reason",
                    models.TextField(blank=True, help_text="Why the charge failed", null=True),
                ),
                (
                    "paid_at",
                    models.DateTimeField(
                        blank=True, help_text="When the charge succeeded", null=True
                    ),
                ),
                (
                    "subscription",
                    models.ForeignKey(
                        help_text="Subscription this payment belongs to",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="billing.subscription",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment",
                "verbose_name_plural": "Payments",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["subscription", "created_at"],
                        name="billing_pay_subscri_8e2a41_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEventLog",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "razorpay_event_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Razorpay event ID from the X-Razorpay-Event-Id header",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "event",
                    models.CharField(
                        db_index=True,
                        help_text="Razorpay event kind (e.g., 'subscription.charged')",
                        max_length=100,
                    ),
                ),
                (
                    "razorpay_subscription_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Razorpay subscription ID the event refers to",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "payload",
                    models.JSONField(help_text="Full webhook payload from Razorpay (JSON)"),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("received", "Received"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                            ("ignored", "Ignored"),
                        ],
                        db_index=True,
                        default="received",
                        help_text="Current processing status",
                        max_length=20,
                    ),
                ),
                (
                    "error_message",
                    models.TextField(
                        blank=True, help_text="Error message if processing failed", null=True
                    ),
                ),
                (
                    "attempts",
                    models.PositiveSmallIntegerField(
                        default=0, help_text="Number of processing attempts"
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When event was successfully processed",
                        null=True,
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event Log",
                "verbose_name_plural": "Webhook Event Logs",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"],
                        name="billing_web_status_3d7c22_idx",
                    ),
                    models.Index(
                        fields=["event", "created_at"],
                        name="billing_web_event_9a4b10_idx",
                    ),
                ],
            },
        ),
    ]
