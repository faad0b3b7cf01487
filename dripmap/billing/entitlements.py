"""
Feature entitlement checks.

Pure functions over an already-loaded shop or membership row. They make no
queries and no Stripe calls, so templates and serializers can call them as
often as they like.

PAST_DUE keeps the paid features for a grace period after the first failed
payment. The length comes from ``BILLING_PAST_DUE_GRACE_DAYS``; None means
the grace period lasts until Stripe deletes the subscription.

Usage:
    if is_pro(shop):
        ...
    if needs_attention(shop):
        # prompt the owner to update their payment method
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from dripmap.billing.constants import MembershipTier
from dripmap.billing.constants import ShopTier
from dripmap.billing.constants import SubscriptionStatus

PAID_SHOP_TIERS = frozenset({ShopTier.PRO, ShopTier.PRO_PLUS})


@dataclass(frozen=True)
class Entitlements:
    """Snapshot of what an entity's subscription currently grants."""

    tier: str
    subscription_status: str
    entitled: bool
    in_grace_period: bool
    needs_attention: bool
    cancel_at_period_end: bool
    current_period_end: datetime | None


def within_grace_period(entity, now: datetime | None = None) -> bool:
    """True if a PAST_DUE entity is still inside its grace period."""
    grace_days = getattr(settings, "BILLING_PAST_DUE_GRACE_DAYS", None)
    if grace_days is None or entity.past_due_since is None:
        return True
    now = now or timezone.now()
    return now < entity.past_due_since + timedelta(days=grace_days)


def has_paid_access(entity, now: datetime | None = None) -> bool:
    """True if the entity's status currently grants its tier's features."""
    status = entity.subscription_status
    if status in (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING):
        return True
    if status == SubscriptionStatus.PAST_DUE:
        return within_grace_period(entity, now)
    return False


def is_pro(shop, now: datetime | None = None) -> bool:
    """PRO features: granted to both PRO and PRO+ shops."""
    return shop.tier in PAID_SHOP_TIERS and has_paid_access(shop, now)


def is_pro_plus(shop, now: datetime | None = None) -> bool:
    return shop.tier == ShopTier.PRO_PLUS and has_paid_access(shop, now)


def is_active_member(membership, now: datetime | None = None) -> bool:
    if membership is None:
        return False
    return membership.tier == MembershipTier.ACTIVE and has_paid_access(
        membership,
        now,
    )


def offers_member_discount(shop, now: datetime | None = None) -> bool:
    """True if DripClub members should see this shop's discount."""
    return shop.discount_enabled and is_pro_plus(shop, now)


def needs_attention(entity) -> bool:
    """True if the owner should be asked to fix their payment."""
    return entity.subscription_status in (
        SubscriptionStatus.PAST_DUE,
        SubscriptionStatus.UNPAID,
    )


def entitlements_for(entity, now: datetime | None = None) -> Entitlements:
    now = now or timezone.now()
    is_past_due = entity.subscription_status == SubscriptionStatus.PAST_DUE
    return Entitlements(
        tier=entity.tier,
        subscription_status=entity.subscription_status,
        entitled=entity.tier != entity.free_tier and has_paid_access(entity, now),
        in_grace_period=is_past_due and within_grace_period(entity, now),
        needs_attention=needs_attention(entity),
        cancel_at_period_end=entity.cancel_at_period_end,
        current_period_end=entity.current_period_end,
    )
