"""
Django signals for the billing app.

Every user gets a FREE/ACTIVE Subscription row when their account is
created, so billing code can rely on request.user.subscription existing.

Signals are connected in BillingConfig.ready().
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

from billing.models import Subscription

logger = logging.getLogger(__name__)


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def provision_subscription(sender, instance, created, **kwargs):
    """Create the user's FREE subscription row on signup."""
    if not created or kwargs.get("raw"):
        return

    _, was_created = Subscription.objects.get_or_create(user=instance)
    if was_created:
        logger.debug(f"Provisioned FREE subscription for user {instance.pk}")
