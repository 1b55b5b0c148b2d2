"""
Tests for the webhook reconciliation engine.

Handlers are driven through dispatch_webhook() with decoded payloads; the
notification tasks are patched so nothing is queued.
"""

from unittest.mock import patch

import pytest
from freezegun import freeze_time

from billing.models import Payment, Subscription
from billing.state_machines import PaymentStatus, PlanTier, SubscriptionStatus
from billing.tests.conftest import PERIOD_END, PERIOD_START, as_datetime
from billing.tests.factories import PaymentFactory, SubscriptionFactory
from billing.webhooks.decoder import decode_payload
from billing.webhooks.handlers import (
    HALTED_FAILURE_REASON,
    WEBHOOK_HANDLERS,
    dispatch_webhook,
    has_handler,
)

HANDLERS = "billing.webhooks.handlers"


@pytest.fixture
def mock_welcome_email():
    with patch(f"{HANDLERS}.send_welcome_upgrade_email") as mock:
        yield mock


@pytest.fixture
def mock_failed_email():
    with patch(f"{HANDLERS}.send_payment_failed_email") as mock:
        yield mock


@pytest.fixture
def live_subscription(user):
    """PRO subscription attached to sub_live123."""
    return SubscriptionFactory(
        user=user,
        plan=PlanTier.PRO,
        razorpay_subscription_id="sub_live123",
        razorpay_plan_id="plan_pro_monthly",
        current_period_start=as_datetime(PERIOD_START),
        current_period_end=as_datetime(PERIOD_END),
    )


def _dispatch(payload):
    return dispatch_webhook(decode_payload(payload))


# =============================================================================
# Registry
# =============================================================================


class TestRegistry:
    def test_all_subscription_events_are_registered(self):
        assert set(WEBHOOK_HANDLERS) == {
            "subscription.activated",
            "subscription.charged",
            "subscription.halted",
            "subscription.cancelled",
            "subscription.completed",
            "subscription.updated",
        }

    def test_unrecognized_event_is_a_successful_noop(self, db):
        event = decode_payload({"event": "payment.captured", "payload": {}})

        result = dispatch_webhook(event)

        assert result.success is True
        assert result.data is None
        assert has_handler(event) is False


# =============================================================================
# subscription.activated
# =============================================================================


@pytest.mark.django_db
class TestSubscriptionActivated:
    def _payload(self, webhook_payload_factory, user, **kwargs):
        kwargs.setdefault(
            "notes",
            {"userId": str(user.pk), "userEmail": user.email, "plan": "PRO", "interval": "MONTHLY"},
        )
        return webhook_payload_factory("subscription.activated", **kwargs)

    def test_activates_users_subscription(self, user, webhook_payload_factory, mock_welcome_email):
        payload = self._payload(
            webhook_payload_factory,
            user,
            subscription_id="sub_act1",
            plan_id="plan_pro_yearly",
        )

        result = _dispatch(payload)

        assert result.success is True
        subscription = Subscription.objects.get(user=user)
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.plan == PlanTier.PRO
        assert subscription.razorpay_subscription_id == "sub_act1"
        assert subscription.razorpay_plan_id == "plan_pro_yearly"
        assert subscription.razorpay_customer_email == user.email
        assert subscription.current_period_start == as_datetime(PERIOD_START)
        assert subscription.current_period_end == as_datetime(PERIOD_END)
        mock_welcome_email.delay.assert_called_once_with(user.email, "Asha Rao", "PRO")

    def test_greets_nameless_user_as_there(
        self, other_user, webhook_payload_factory, mock_welcome_email
    ):
        _dispatch(self._payload(webhook_payload_factory, other_user, plan_id="plan_starter_monthly"))

        mock_welcome_email.delay.assert_called_once_with(
            other_user.email, "there", "STARTER"
        )

    @freeze_time("2024-03-01 12:00:00")
    def test_missing_period_start_falls_back_to_now(
        self, user, webhook_payload_factory, mock_welcome_email
    ):
        payload = self._payload(
            webhook_payload_factory, user, current_start=None, current_end=None
        )

        _dispatch(payload)

        subscription = Subscription.objects.get(user=user)
        assert subscription.current_period_start.isoformat() == "2024-03-01T12:00:00+00:00"
        assert subscription.current_period_end is None

    def test_unresolved_plan_falls_back_to_starter(
        self, user, webhook_payload_factory, mock_welcome_email
    ):
        payload = self._payload(webhook_payload_factory, user, plan_id="plan_legacy")

        with patch(f"{HANDLERS}.logger") as mock_logger:
            result = _dispatch(payload)

        assert result.success is True
        subscription = Subscription.objects.get(user=user)
        assert subscription.plan == PlanTier.STARTER
        assert subscription.razorpay_plan_id == "plan_legacy"
        mock_logger.warning.assert_called_once()

    def test_clears_scheduled_cancellation(
        self, user, webhook_payload_factory, mock_welcome_email
    ):
        SubscriptionFactory(user=user, status=SubscriptionStatus.CANCELED, cancel_at_period_end=True)

        _dispatch(self._payload(webhook_payload_factory, user))

        subscription = Subscription.objects.get(user=user)
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.cancel_at_period_end is False
        assert subscription.canceled_at is None

    def test_creates_row_when_user_has_none(
        self, user, webhook_payload_factory, mock_welcome_email
    ):
        Subscription.objects.filter(user=user).delete()

        _dispatch(self._payload(webhook_payload_factory, user))

        assert Subscription.objects.filter(user=user, plan=PlanTier.PRO).count() == 1

    def test_redelivery_does_not_resend_welcome_email(
        self, user, webhook_payload_factory, mock_welcome_email
    ):
        payload = self._payload(webhook_payload_factory, user, subscription_id="sub_again")

        _dispatch(payload)
        _dispatch(payload)

        assert mock_welcome_email.delay.call_count == 1
        assert Subscription.objects.get(user=user).razorpay_subscription_id == "sub_again"

    def test_missing_user_id_note_is_a_noop(
        self, user, webhook_payload_factory, mock_welcome_email
    ):
        result = _dispatch(webhook_payload_factory("subscription.activated", notes=[]))

        assert result.success is True
        assert Subscription.objects.get(user=user).plan == PlanTier.FREE
        mock_welcome_email.delay.assert_not_called()

    def test_unknown_user_fails(self, db, webhook_payload_factory, mock_welcome_email):
        payload = webhook_payload_factory(
            "subscription.activated", notes={"userId": "999999"}
        )

        result = _dispatch(payload)

        assert result.success is False
        assert result.error_code == "USER_NOT_FOUND"
        mock_welcome_email.delay.assert_not_called()

    def test_non_numeric_user_id_fails_cleanly(
        self, db, webhook_payload_factory, mock_welcome_email
    ):
        payload = webhook_payload_factory(
            "subscription.activated", notes={"userId": "not-a-pk"}
        )

        assert _dispatch(payload).error_code == "USER_NOT_FOUND"

    def test_broker_failure_does_not_fail_activation(
        self, user, webhook_payload_factory, mock_welcome_email
    ):
        mock_welcome_email.delay.side_effect = ConnectionError("broker down")

        result = _dispatch(self._payload(webhook_payload_factory, user))

        assert result.success is True
        assert Subscription.objects.get(user=user).plan == PlanTier.PRO


# =============================================================================
# subscription.charged
# =============================================================================


@pytest.mark.django_db
class TestSubscriptionCharged:
    def _payload(self, webhook_payload_factory, invoice_id="inv_1", **kwargs):
        kwargs.setdefault("subscription_id", "sub_live123")
        return webhook_payload_factory(
            "subscription.charged",
            payment={
                "id": f"pay_for_{invoice_id}",
                "order_id": "order_1",
                "invoice_id": invoice_id,
                "amount": 49900,
                "currency": "INR",
            },
            **kwargs,
        )

    def test_records_payment_and_refreshes_period(
        self, live_subscription, webhook_payload_factory
    ):
        new_start = PERIOD_END
        new_end = PERIOD_END + 30 * 24 * 60 * 60

        result = _dispatch(
            self._payload(webhook_payload_factory, current_start=new_start, current_end=new_end)
        )

        assert result.success is True
        payment = Payment.objects.get(razorpay_invoice_id="inv_1")
        assert payment.subscription == live_subscription
        assert payment.status == PaymentStatus.PAID
        assert payment.amount == 49900
        assert payment.currency == "INR"
        assert payment.razorpay_payment_id == "pay_for_inv_1"
        assert payment.razorpay_order_id == "order_1"
        assert payment.paid_at is not None

        live_subscription.refresh_from_db()
        assert live_subscription.status == SubscriptionStatus.ACTIVE
        assert live_subscription.current_period_start == as_datetime(new_start)
        assert live_subscription.current_period_end == as_datetime(new_end)

    def test_duplicate_invoice_records_one_payment(
        self, live_subscription, webhook_payload_factory
    ):
        payload = self._payload(webhook_payload_factory)

        first = _dispatch(payload)
        second = _dispatch(payload)

        assert first.success is True
        assert second.success is True
        assert second.data is None
        assert Payment.objects.filter(razorpay_invoice_id="inv_1").count() == 1

    def test_existing_payment_short_circuits(self, live_subscription, webhook_payload_factory):
        PaymentFactory(subscription=live_subscription, razorpay_invoice_id="inv_seen")

        result = _dispatch(self._payload(webhook_payload_factory, invoice_id="inv_seen"))

        assert result.success is True
        assert live_subscription.payments.count() == 1

    def test_missing_invoice_is_guarded_on_payment_id(
        self, live_subscription, webhook_payload_factory
    ):
        payload = webhook_payload_factory(
            "subscription.charged",
            subscription_id="sub_live123",
            payment={"id": "pay_no_invoice", "amount": 100},
        )

        _dispatch(payload)
        _dispatch(payload)

        assert live_subscription.payments.count() == 1

    def test_past_due_subscription_recovers(self, live_subscription, webhook_payload_factory):
        live_subscription.status = SubscriptionStatus.PAST_DUE
        live_subscription.save()

        _dispatch(self._payload(webhook_payload_factory))

        live_subscription.refresh_from_db()
        assert live_subscription.status == SubscriptionStatus.ACTIVE

    def test_older_period_does_not_regress(self, live_subscription, webhook_payload_factory):
        old_start = PERIOD_START - 30 * 24 * 60 * 60

        _dispatch(
            self._payload(
                webhook_payload_factory,
                invoice_id="inv_old",
                current_start=old_start,
                current_end=PERIOD_START,
            )
        )

        live_subscription.refresh_from_db()
        assert live_subscription.current_period_end == as_datetime(PERIOD_END)
        assert Payment.objects.filter(razorpay_invoice_id="inv_old").exists()

    def test_unknown_subscription_is_a_noop(self, db, webhook_payload_factory):
        result = _dispatch(self._payload(webhook_payload_factory, subscription_id="sub_ghost"))

        assert result.success is True
        assert Payment.objects.count() == 0

    def test_missing_payment_entity_is_a_noop(self, live_subscription, webhook_payload_factory):
        payload = webhook_payload_factory("subscription.charged", subscription_id="sub_live123")

        assert _dispatch(payload).success is True
        assert Payment.objects.count() == 0

    def test_missing_amount_records_zero(self, live_subscription, webhook_payload_factory):
        payload = webhook_payload_factory(
            "subscription.charged",
            subscription_id="sub_live123",
            payment={"id": "pay_x", "invoice_id": "inv_x", "amount": None, "currency": None},
        )

        _dispatch(payload)

        payment = Payment.objects.get(razorpay_invoice_id="inv_x")
        assert payment.amount == 0
        assert payment.currency == "INR"

    def test_terminal_subscription_is_a_failure(self, live_subscription, webhook_payload_factory):
        Subscription.objects.filter(pk=live_subscription.pk).update(
            status=SubscriptionStatus.COMPLETED
        )

        result = _dispatch(self._payload(webhook_payload_factory))

        assert result.success is False
        assert result.error_code == "RECONCILIATION_FAILED"
        assert Payment.objects.count() == 0


# =============================================================================
# subscription.halted
# =============================================================================


@pytest.mark.django_db
class TestSubscriptionHalted:
    def test_marks_past_due_and_records_failed_payment(
        self, user, live_subscription, webhook_payload_factory, mock_failed_email
    ):
        result = _dispatch(
            webhook_payload_factory("subscription.halted", subscription_id="sub_live123")
        )

        assert result.success is True
        live_subscription.refresh_from_db()
        assert live_subscription.status == SubscriptionStatus.PAST_DUE
        assert live_subscription.plan == PlanTier.PRO

        payment = live_subscription.payments.get()
        assert payment.status == PaymentStatus.FAILED
        assert payment.amount == 0
        assert payment.failure_reason == HALTED_FAILURE_REASON
        assert payment.paid_at is None

        mock_failed_email.delay.assert_called_once_with(user.email, "Asha Rao", 1)

    def test_unknown_subscription_is_a_noop(self, db, webhook_payload_factory, mock_failed_email):
        result = _dispatch(
            webhook_payload_factory("subscription.halted", subscription_id="sub_ghost")
        )

        assert result.success is True
        assert Payment.objects.count() == 0
        mock_failed_email.delay.assert_not_called()


# =============================================================================
# subscription.cancelled / completed / updated
# =============================================================================


@pytest.mark.django_db
class TestSubscriptionCancelled:
    def test_downgrades_to_free(self, live_subscription, webhook_payload_factory):
        live_subscription.cancel_at_period_end = True
        live_subscription.save()

        result = _dispatch(
            webhook_payload_factory("subscription.cancelled", subscription_id="sub_live123")
        )

        assert result.success is True
        assert result.data == 1
        live_subscription.refresh_from_db()
        assert live_subscription.status == SubscriptionStatus.CANCELED
        assert live_subscription.plan == PlanTier.FREE
        assert live_subscription.razorpay_subscription_id is None
        assert live_subscription.razorpay_plan_id is None
        assert live_subscription.canceled_at is not None
        assert live_subscription.cancel_at_period_end is False

    def test_no_matching_rows_is_fine(self, db, webhook_payload_factory):
        result = _dispatch(
            webhook_payload_factory("subscription.cancelled", subscription_id="sub_ghost")
        )

        assert result.success is True
        assert result.data == 0


@pytest.mark.django_db
class TestSubscriptionCompleted:
    def test_degrades_to_free_completed(self, live_subscription, webhook_payload_factory):
        _dispatch(webhook_payload_factory("subscription.completed", subscription_id="sub_live123"))

        live_subscription.refresh_from_db()
        assert live_subscription.status == SubscriptionStatus.COMPLETED
        assert live_subscription.plan == PlanTier.FREE
        assert live_subscription.razorpay_subscription_id is None


@pytest.mark.django_db
class TestSubscriptionUpdated:
    def test_follows_plan_change(self, live_subscription, webhook_payload_factory):
        result = _dispatch(
            webhook_payload_factory(
                "subscription.updated",
                subscription_id="sub_live123",
                plan_id="plan_business_monthly",
            )
        )

        assert result.data == 1
        live_subscription.refresh_from_db()
        assert live_subscription.plan == PlanTier.BUSINESS
        assert live_subscription.razorpay_plan_id == "plan_business_monthly"

    def test_unresolved_plan_is_a_noop(self, live_subscription, webhook_payload_factory):
        result = _dispatch(
            webhook_payload_factory(
                "subscription.updated", subscription_id="sub_live123", plan_id="plan_legacy"
            )
        )

        assert result.success is True
        live_subscription.refresh_from_db()
        assert live_subscription.plan == PlanTier.PRO
        assert live_subscription.razorpay_plan_id == "plan_pro_monthly"


# =============================================================================
# Event sequences
# =============================================================================


@pytest.mark.django_db
class TestEventSequences:
    def test_activated_halted_cancelled(
        self, user, webhook_payload_factory, mock_welcome_email, mock_failed_email
    ):
        notes = {"userId": str(user.pk), "userEmail": user.email}
        for event in (
            "subscription.activated",
            "subscription.halted",
            "subscription.cancelled",
        ):
            result = _dispatch(
                webhook_payload_factory(event, subscription_id="sub_seq", notes=notes)
            )
            assert result.success is True

        subscription = Subscription.objects.get(user=user)
        assert subscription.status == SubscriptionStatus.CANCELED
        assert subscription.plan == PlanTier.FREE
        assert subscription.razorpay_subscription_id is None
        assert subscription.payments.filter(status=PaymentStatus.FAILED).count() == 1

    def test_replayed_cancellation_converges(self, live_subscription, webhook_payload_factory):
        payload = webhook_payload_factory("subscription.cancelled", subscription_id="sub_live123")

        _dispatch(payload)
        second = _dispatch(payload)

        assert second.success is True
        live_subscription.refresh_from_db()
        assert live_subscription.status == SubscriptionStatus.CANCELED
        assert live_subscription.plan == PlanTier.FREE
