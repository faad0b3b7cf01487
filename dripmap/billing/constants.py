"""
Billing constants for shop subscriptions and DripClub memberships.

These enums define the tiers, subscription lifecycle states and Stripe event
types used throughout the billing module. Values are stored as-is in the
database, so renaming a value requires a data migration.
"""

from enum import Enum

from django.db import models
from django.utils.translation import gettext_lazy as _


class EntityType(models.TextChoices):
    """The two kinds of billable subject."""

    SHOP = "shop", _("Shop")
    MEMBERSHIP = "membership", _("DripClub membership")


class ShopTier(models.TextChoices):
    """
    Feature level purchased by a shop owner.

    PRO+ includes everything in PRO plus the DripClub member discount.
    """

    FREE = "free", _("Free")
    PRO = "pro", _("PRO")
    PRO_PLUS = "pro_plus", _("PRO+")


class MembershipTier(models.TextChoices):
    """Consumer DripClub membership level."""

    NONE = "none", _("None")
    ACTIVE = "active", _("Active")


class BillingInterval(models.TextChoices):
    MONTHLY = "monthly", _("Monthly")
    ANNUAL = "annual", _("Annual")


class SubscriptionStatus(models.TextChoices):
    """
    Subscription lifecycle states.

    Typical flow:
        INACTIVE → ACTIVE or TRIALING (checkout)
        TRIALING → ACTIVE (first successful charge)
        ACTIVE ⇄ PAST_DUE (invoice failure / success)
        any → CANCELED (subscription deleted, terminal)

    Re-subscribing after CANCELED creates a new Stripe subscription; the
    canceled id is never reused.
    """

    INACTIVE = "inactive", _("Inactive")
    TRIALING = "trialing", _("Trial")
    ACTIVE = "active", _("Active")
    PAST_DUE = "past_due", _("Past Due")
    CANCELED = "canceled", _("Canceled")
    UNPAID = "unpaid", _("Unpaid")


class StripeEventType(str, Enum):
    """Stripe webhook event types the processor acts on."""

    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"


# Stripe subscription status → internal status. Anything not listed here
# (incomplete, incomplete_expired, paused, future additions) is INACTIVE.
STRIPE_STATUS_MAP = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.TRIALING,
    "past_due": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELED,
    "unpaid": SubscriptionStatus.UNPAID,
}

# Statuses that count as "already subscribed" for duplicate checkout checks.
SUBSCRIBED_STATUSES = frozenset(
    {SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING},
)

# Ordering used to decide whether a requested shop tier is an upgrade.
SHOP_TIER_RANK = {
    ShopTier.FREE: 0,
    ShopTier.PRO: 1,
    ShopTier.PRO_PLUS: 2,
}

# Values written to checkout metadata by earlier releases, still accepted
# when attributing webhook events.
LEGACY_SHOP_CHECKOUT_TYPE = "shop_subscription"
LEGACY_MEMBERSHIP_CHECKOUT_TYPE = "dripclub_membership"
