"""
Billing models for shop subscriptions and DripClub memberships.

Key design decisions:
- Shops and memberships share their subscription columns through the abstract
  BillableModel, so webhook and service code can treat both the same way.
- Stripe is the source of truth. These rows mirror it and are written mostly
  by the webhook processor; service-side writes are optimistic.
- ProcessedEvent is the idempotency ledger for Stripe webhooks. Rows are
  append-only and pruned by the prune_processed_events command.

Relationship: User ──1:1── DripClubMembership, User ──1:N── Shop (claimed_by)
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone
from model_utils.models import TimeStampedModel

from dripmap.billing.constants import BillingInterval
from dripmap.billing.constants import EntityType
from dripmap.billing.constants import MembershipTier
from dripmap.billing.constants import SubscriptionStatus


class BillableModel(TimeStampedModel):
    """
    Subscription state shared by every billable entity.

    Concrete models add their own ``tier`` field and set ``entity_type`` and
    ``free_tier``. All status changes should go through ``apply_status`` so
    the dependent columns stay consistent:

    - ``stripe_subscription_id`` is only kept while the status is not INACTIVE
    - ``cancel_at_period_end`` is never left set on a CANCELED row
    - ``past_due_since`` tracks when the current PAST_DUE spell began

    Usage:
        update_fields = shop.apply_status(SubscriptionStatus.PAST_DUE)
        shop.save(update_fields=update_fields)
    """

    entity_type: str = ""
    free_tier: str = ""

    subscription_status = models.CharField(
        max_length=20,
        choices=SubscriptionStatus.choices,
        default=SubscriptionStatus.INACTIVE,
    )

    # Stripe integration
    stripe_customer_id = models.CharField(
        max_length=255,
        blank=True,
        db_index=True,
        help_text="Stripe Customer ID (cus_xxx). Set once, then reused.",
    )
    stripe_subscription_id = models.CharField(
        max_length=255,
        blank=True,
        db_index=True,
        help_text="Stripe Subscription ID (sub_xxx).",
    )

    # Billing period tracking
    current_period_end = models.DateTimeField(
        null=True,
        blank=True,
        help_text="End of current billing period.",
    )
    cancel_at_period_end = models.BooleanField(
        default=False,
        help_text="Subscription ends at current_period_end instead of renewing.",
    )
    canceled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When cancellation was last requested or applied.",
    )
    past_due_since = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the subscription entered past_due. Drives the grace period.",
    )

    class Meta:
        abstract = True

    def apply_status(self, status: str) -> list[str]:
        """
        Set the subscription status and the columns that depend on it.

        Returns the list of field names touched, suitable for
        ``save(update_fields=...)``.
        """
        fields = ["subscription_status"]

        if status == SubscriptionStatus.PAST_DUE:
            if self.past_due_since is None:
                self.past_due_since = timezone.now()
                fields.append("past_due_since")
        elif self.past_due_since is not None:
            self.past_due_since = None
            fields.append("past_due_since")

        if status == SubscriptionStatus.CANCELED and self.cancel_at_period_end:
            self.cancel_at_period_end = False
            fields.append("cancel_at_period_end")

        if status == SubscriptionStatus.INACTIVE and self.stripe_subscription_id:
            self.stripe_subscription_id = ""
            fields.append("stripe_subscription_id")

        self.subscription_status = status
        return fields

    def revert_to_free(self) -> list[str]:
        """Drop back to the free tier with a terminal CANCELED status."""
        fields = self.apply_status(SubscriptionStatus.CANCELED)
        self.tier = self.free_tier
        self.cancel_at_period_end = False
        return sorted({*fields, "tier", "cancel_at_period_end"})


class DripClubMembership(BillableModel):
    """
    Consumer DripClub membership.

    One row per user, created lazily on first checkout. ``tier`` is ACTIVE
    while the member has purchased the program and NONE otherwise; whether
    they are currently entitled also depends on the status (see
    billing.entitlements).

    Usage:
        membership = user.dripclub_membership
        if is_active_member(membership):
            ...
    """

    entity_type = EntityType.MEMBERSHIP
    free_tier = MembershipTier.NONE

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="dripclub_membership",
    )
    tier = models.CharField(
        max_length=20,
        choices=MembershipTier.choices,
        default=MembershipTier.NONE,
    )
    billing_interval = models.CharField(
        max_length=20,
        choices=BillingInterval.choices,
        default=BillingInterval.MONTHLY,
        help_text="Billing interval of the purchased plan.",
    )
    current_period_start = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Start of current billing period.",
    )

    class Meta:
        verbose_name = "DripClub membership"
        verbose_name_plural = "DripClub memberships"

    def __str__(self) -> str:
        return f"{self.user} - DripClub ({self.subscription_status})"


class ProcessedEvent(models.Model):
    """
    Ledger of Stripe webhook events that have been handled.

    The Stripe event id is the primary key, so a second insert of the same id
    fails at the database level. Rows are never updated.
    """

    event_id = models.CharField(
        max_length=255,
        primary_key=True,
        help_text="Stripe Event ID (evt_xxx).",
    )
    event_type = models.CharField(max_length=100)
    livemode = models.BooleanField(default=False)
    payload = models.JSONField(
        default=dict,
        blank=True,
        help_text="The event's data.object, kept for auditing.",
    )
    received_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-received_at"]

    def __str__(self) -> str:
        return f"{self.event_id} ({self.event_type})"
