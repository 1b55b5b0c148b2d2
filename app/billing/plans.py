"""
Plan reference table and amount helpers.

Maps each paid tier and billing interval to the Razorpay plan id configured
for it, and back again. The table lives in settings.RAZORPAY_PLAN_IDS and is
filled from RAZORPAY_{TIER}_{INTERVAL}_PLAN_ID environment variables.

Usage:
    from billing.plans import get_plan_reference, resolve_plan

    plan_id = get_plan_reference(PlanTier.PRO, BillingInterval.YEARLY)
    tier = resolve_plan("plan_Pro_Yearly")  # PlanTier.PRO
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings

from billing.state_machines import PAID_TIERS, BillingInterval, PlanTier


def get_plan_table() -> dict[str, dict[str, str]]:
    """Return the configured {tier: {interval: plan_id}} table."""
    return getattr(settings, "RAZORPAY_PLAN_IDS", {})


def get_plan_reference(tier: str, interval: str) -> str | None:
    """
    Look up the Razorpay plan id for a paid tier and interval.

    Returns None for FREE, unknown values, or an unconfigured slot.
    """
    if tier not in PAID_TIERS or interval not in BillingInterval.values:
        return None
    plan_id = get_plan_table().get(tier, {}).get(interval)
    return plan_id or None


def resolve_plan(plan_reference: str | None) -> PlanTier | None:
    """
    Resolve a Razorpay plan id back to its tier.

    Empty configured slots never match, so an unset environment variable
    cannot map a blank plan id onto a paid tier.
    """
    if not plan_reference:
        return None
    for tier, intervals in get_plan_table().items():
        for plan_id in intervals.values():
            if plan_id and plan_id == plan_reference:
                return PlanTier(tier)
    return None


def to_minor_units(amount: Decimal | int | float | str) -> int:
    """Convert a major-unit amount (rupees) to minor units (paise)."""
    value = Decimal(str(amount)) * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> Decimal:
    """Convert minor units (paise) back to a major-unit Decimal."""
    return (Decimal(amount) / 100).quantize(Decimal("0.01"))
