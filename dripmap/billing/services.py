"""
Billing service for Stripe operations.

This service provides a clean interface for:
- Creating Stripe Checkout sessions for shop PRO/PRO+ and DripClub
- Creating Stripe Customer Portal sessions (self-service management)
- Cancelling subscriptions at period end or immediately
- Getting or creating Stripe customers

Every operation verifies ownership before talking to Stripe. Local rows are
only written after the Stripe call they depend on succeeded, with one
exception: a newly created Stripe customer id is saved straight away, so a
retried checkout reuses it instead of creating a second customer.

Subscription state written here is an optimistic mirror. The webhook
processor (billing.webhooks) is authoritative and overwrites it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import stripe
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from dripmap.billing import prices
from dripmap.billing.constants import SHOP_TIER_RANK
from dripmap.billing.constants import SUBSCRIBED_STATUSES
from dripmap.billing.constants import BillingInterval
from dripmap.billing.constants import EntityType
from dripmap.billing.constants import MembershipTier
from dripmap.billing.constants import ShopTier
from dripmap.billing.constants import SubscriptionStatus
from dripmap.billing.entitlements import is_pro_plus
from dripmap.billing.exceptions import AuthorizationError
from dripmap.billing.exceptions import BillingValidationError
from dripmap.billing.exceptions import ConflictError
from dripmap.billing.exceptions import NotFoundError
from dripmap.billing.exceptions import UpstreamDependencyError
from dripmap.billing.models import DripClubMembership
from dripmap.billing.ownership import NotFound
from dripmap.billing.ownership import verify_customer_ownership
from dripmap.billing.ownership import verify_membership_subject
from dripmap.billing.ownership import verify_shop_ownership
from dripmap.billing.ownership import verify_subscription_ownership
from dripmap.billing.stripe_objects import StripeSubscription
from dripmap.shops.models import Shop

if TYPE_CHECKING:
    from datetime import datetime

    from django.db.models import QuerySet

    from dripmap.users.models import User

logger = logging.getLogger(__name__)


@dataclass
class CancellationResult:
    """Result of a cancellation request, as mirrored locally."""

    success: bool
    cancel_at_period_end: bool
    current_period_end: datetime | None
    subscription_status: str


class BillingService:
    """
    Service for Stripe billing operations.

    Uses Stripe Checkout for payments (not custom forms), and the Stripe
    Customer Portal for self-service management.

    Usage:
        service = BillingService()
        checkout_url = service.create_shop_checkout(
            request.user,
            shop_id=shop.id,
            tier=ShopTier.PRO,
            billing_interval=BillingInterval.MONTHLY,
            success_url="https://example.com/shops/1/?upgraded=1",
            cancel_url="https://example.com/shops/1/",
        )
    """

    def __init__(self):
        """Initialize with Stripe API key from settings."""
        stripe.api_key = settings.STRIPE_SECRET_KEY

    # Checkout
    # ------------------------------------------------------------------

    def create_shop_checkout(
        self,
        user: User,
        *,
        shop_id: int,
        tier: str,
        billing_interval: str,
        success_url: str,
        cancel_url: str,
        price_id: str | None = None,
    ) -> str:
        """
        Create a Stripe Checkout session for a shop PRO or PRO+ subscription.

        Returns the checkout session URL to redirect the owner to.

        Raises:
            BillingValidationError: bad tier, interval or price id
            NotFoundError: the shop does not exist
            AuthorizationError: ``user`` does not own the shop
            ConflictError: the shop is already subscribed at or above ``tier``
            UpstreamDependencyError: a Stripe call failed
        """
        if tier not in (ShopTier.PRO, ShopTier.PRO_PLUS):
            msg = f"Invalid shop tier: {tier}"
            raise BillingValidationError(msg)
        self._check_interval(billing_interval)

        if not Shop.objects.filter(pk=shop_id).exists():
            msg = "Shop not found."
            raise NotFoundError(msg)
        if not verify_shop_ownership(user, shop_id):
            logger.warning(
                "User %s attempted checkout for shop %s they do not own",
                user.pk,
                shop_id,
            )
            msg = "You do not own this shop."
            raise AuthorizationError(msg)

        price_id = self._resolve_price(
            EntityType.SHOP,
            tier,
            billing_interval,
            price_id,
        )

        with transaction.atomic():
            shop = Shop.objects.select_for_update().get(pk=shop_id)
            if (
                shop.subscription_status in SUBSCRIBED_STATUSES
                and SHOP_TIER_RANK[shop.tier] >= SHOP_TIER_RANK[tier]
            ):
                msg = (
                    f"This shop already has an active "
                    f"{shop.get_tier_display()} subscription."
                )
                raise ConflictError(msg)
            customer_id = self.get_or_create_shop_customer(shop, user)

        metadata = {
            "entity_type": EntityType.SHOP.value,
            "entity_id": str(shop.pk),
            "tier": str(tier),
            "billing_interval": str(billing_interval),
        }
        session = self._create_checkout_session(
            customer_id=customer_id,
            price_id=price_id,
            success_url=success_url,
            cancel_url=cancel_url,
            client_reference_id=str(shop.pk),
            metadata=metadata,
        )

        logger.info(
            "Created checkout session %s for shop %s, tier=%s, interval=%s",
            session.id,
            shop.pk,
            tier,
            billing_interval,
        )
        return session.url

    def create_membership_checkout(
        self,
        user: User,
        *,
        subject_user_id: int,
        billing_interval: str,
        success_url: str,
        cancel_url: str,
        price_id: str | None = None,
    ) -> str:
        """
        Create a Stripe Checkout session for a DripClub membership.

        New members get a free trial (``DRIPCLUB_TRIAL_DAYS``).
        Returns the checkout session URL.
        """
        self._check_interval(billing_interval)

        if not verify_membership_subject(user, subject_user_id):
            logger.warning(
                "User %s attempted DripClub checkout for user %s",
                user.pk,
                subject_user_id,
            )
            msg = "You can only purchase a DripClub membership for yourself."
            raise AuthorizationError(msg)

        price_id = self._resolve_price(
            EntityType.MEMBERSHIP,
            None,
            billing_interval,
            price_id,
        )

        with transaction.atomic():
            # A Stripe failure below rolls the new row back with the block
            membership, _ = DripClubMembership.objects.select_for_update().get_or_create(
                user=user,
            )
            if (
                membership.subscription_status in SUBSCRIBED_STATUSES
                and membership.tier == MembershipTier.ACTIVE
            ):
                msg = "You already have an active DripClub membership."
                raise ConflictError(msg)
            customer_id = self.get_or_create_membership_customer(membership)

        metadata = {
            "entity_type": EntityType.MEMBERSHIP.value,
            "entity_id": str(user.pk),
            "tier": MembershipTier.ACTIVE.value,
            "billing_interval": str(billing_interval),
        }
        session = self._create_checkout_session(
            customer_id=customer_id,
            price_id=price_id,
            success_url=success_url,
            cancel_url=cancel_url,
            client_reference_id=str(user.pk),
            metadata=metadata,
            trial_period_days=settings.DRIPCLUB_TRIAL_DAYS,
        )

        logger.info(
            "Created DripClub checkout session %s for user %s, interval=%s",
            session.id,
            user.pk,
            billing_interval,
        )
        return session.url

    # Customers
    # ------------------------------------------------------------------

    def get_or_create_shop_customer(self, shop: Shop, user: User) -> str:
        """
        Get the shop's Stripe customer or create one.

        Shops never adopt the owner's profile customer: a customer id belongs
        to exactly one billable entity. Call with the shop row locked.
        """
        if shop.stripe_customer_id:
            return shop.stripe_customer_id

        customer = self._create_customer(
            email=user.email,
            name=shop.name,
            metadata={
                "entity_type": EntityType.SHOP.value,
                "entity_id": str(shop.pk),
                "user_id": str(user.pk),
            },
        )
        shop.stripe_customer_id = customer.id
        shop.save(update_fields=["stripe_customer_id"])

        logger.info("Created Stripe customer %s for shop %s", customer.id, shop.pk)
        return customer.id

    def get_or_create_membership_customer(self, membership: DripClubMembership) -> str:
        """
        Get the member's Stripe customer or create one.

        Reuses, in order: the membership's customer, the customer on the
        user's profile, then creates a new one and stores it on both.
        Call with the membership row locked.
        """
        if membership.stripe_customer_id:
            return membership.stripe_customer_id

        user = membership.user
        if user.stripe_customer_id:
            customer_id = user.stripe_customer_id
        else:
            customer = self._create_customer(
                email=user.email,
                name=user.name,
                metadata={
                    "entity_type": EntityType.MEMBERSHIP.value,
                    "entity_id": str(user.pk),
                    "user_id": str(user.pk),
                },
            )
            customer_id = customer.id
            user.stripe_customer_id = customer_id
            user.save(update_fields=["stripe_customer_id"])
            logger.info(
                "Created Stripe customer %s for DripClub member %s",
                customer_id,
                user.pk,
            )

        membership.stripe_customer_id = customer_id
        membership.save(update_fields=["stripe_customer_id"])
        return customer_id

    # Portal & cancellation
    # ------------------------------------------------------------------

    def create_portal_session(
        self,
        user: User,
        *,
        customer_id: str,
        return_url: str,
    ) -> str:
        """
        Get a Stripe Customer Portal URL for self-service management.

        The portal lets the customer update payment methods, view invoices
        and change or cancel their plan. Nothing is written locally.
        """
        if not verify_customer_ownership(user, customer_id):
            msg = "You do not have access to this billing account."
            raise AuthorizationError(msg)

        try:
            session = stripe.billing_portal.Session.create(
                customer=customer_id,
                return_url=return_url,
            )
        except stripe.StripeError as e:
            logger.exception("Failed to create portal session for %s", customer_id)
            raise UpstreamDependencyError(str(e.user_message or e)) from e

        logger.info("Created portal session for customer %s", customer_id)
        return session.url

    def cancel_subscription(
        self,
        user: User,
        *,
        subscription_id: str,
        cancel_at_period_end: bool = True,
    ) -> CancellationResult:
        """
        Cancel a subscription in Stripe and mirror the result locally.

        At period end: Stripe keeps billing until ``current_period_end``; the
        entity keeps its tier and status with ``cancel_at_period_end`` set.
        Immediately: Stripe cancels now; the entity drops to the free tier
        with status CANCELED.
        """
        ref = verify_subscription_ownership(user, subscription_id)
        if isinstance(ref, NotFound):
            msg = "You do not own this subscription."
            raise AuthorizationError(msg)

        try:
            if cancel_at_period_end:
                stripe_sub = stripe.Subscription.modify(
                    subscription_id,
                    cancel_at_period_end=True,
                )
            else:
                stripe_sub = stripe.Subscription.cancel(subscription_id)
        except stripe.StripeError as e:
            logger.exception("Failed to cancel subscription %s", subscription_id)
            raise UpstreamDependencyError(str(e.user_message or e)) from e

        subscription = StripeSubscription.from_stripe(stripe_sub)
        model = type(ref.entity)

        with transaction.atomic():
            entity = model.objects.select_for_update().get(pk=ref.entity.pk)
            if cancel_at_period_end:
                fields = ["canceled_at"]
                if entity.subscription_status != SubscriptionStatus.CANCELED:
                    entity.cancel_at_period_end = True
                    fields.append("cancel_at_period_end")
            else:
                fields = entity.revert_to_free()
                fields.append("canceled_at")
            entity.canceled_at = timezone.now()
            if subscription.period_end:
                entity.current_period_end = subscription.period_end
                fields.append("current_period_end")
            entity.save(update_fields=fields)

        logger.info(
            "Canceled subscription %s for %s %s (at_period_end=%s)",
            subscription_id,
            entity.entity_type,
            entity.pk,
            cancel_at_period_end,
        )
        return CancellationResult(
            success=True,
            cancel_at_period_end=entity.cancel_at_period_end,
            current_period_end=entity.current_period_end,
            subscription_status=entity.subscription_status,
        )

    # Helpers
    # ------------------------------------------------------------------

    def _check_interval(self, billing_interval: str) -> None:
        if billing_interval not in BillingInterval.values:
            msg = f"Invalid billing interval: {billing_interval}"
            raise BillingValidationError(msg)

    def _resolve_price(
        self,
        entity_type: str,
        tier: str | None,
        billing_interval: str,
        price_id: str | None,
    ) -> str:
        """
        Return the Stripe price to charge.

        A client-supplied price id must be one of ours and must match the
        requested product; otherwise the configured price is looked up.
        """
        expected = prices.PriceMapping(entity_type, tier, billing_interval)
        if price_id:
            mapping = prices.resolve(price_id)
            if mapping != expected:
                msg = f"Price {price_id} does not match the requested plan."
                raise BillingValidationError(msg)
            return price_id

        configured = prices.price_id_for(entity_type, tier, billing_interval)
        if not configured:
            logger.error(
                "No Stripe price configured for %s/%s/%s",
                entity_type,
                tier,
                billing_interval,
            )
            msg = "This plan is not available for purchase."
            raise BillingValidationError(msg)
        return configured

    def _create_customer(self, *, email: str, name: str, metadata: dict):
        try:
            return stripe.Customer.create(
                email=email,
                name=name,
                metadata=metadata,
            )
        except stripe.StripeError as e:
            logger.exception("Failed to create Stripe customer for %s", metadata)
            raise UpstreamDependencyError(str(e.user_message or e)) from e

    def _create_checkout_session(
        self,
        *,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        client_reference_id: str,
        metadata: dict,
        trial_period_days: int | None = None,
    ):
        subscription_data = {"metadata": metadata}
        if trial_period_days:
            subscription_data["trial_period_days"] = trial_period_days

        try:
            return stripe.checkout.Session.create(
                customer=customer_id,
                mode="subscription",
                line_items=[
                    {
                        "price": price_id,
                        "quantity": 1,
                    },
                ],
                success_url=success_url,
                cancel_url=cancel_url,
                client_reference_id=client_reference_id,
                # The webhook processor attributes the purchase from this
                # metadata, not from the price.
                metadata=metadata,
                subscription_data=subscription_data,
                allow_promotion_codes=True,
            )
        except stripe.StripeError as e:
            logger.exception("Failed to create checkout session for %s", metadata)
            raise UpstreamDependencyError(str(e.user_message or e)) from e


def set_discount_enabled(user: User, shop_id: int, *, enabled: bool) -> Shop:
    """
    Turn the DripClub member discount on or off for a shop.

    Only the shop's owner may change it, and only a PRO+ shop may enable it.
    Disabling is always allowed so a downgraded shop can clear the flag.
    """
    if not Shop.objects.filter(pk=shop_id).exists():
        msg = "Shop not found."
        raise NotFoundError(msg)
    if not verify_shop_ownership(user, shop_id):
        msg = "You do not own this shop."
        raise AuthorizationError(msg)

    shop = Shop.objects.get(pk=shop_id)
    if enabled and not is_pro_plus(shop):
        msg = "The member discount requires an active PRO+ subscription."
        raise ConflictError(msg)

    shop.discount_enabled = enabled
    shop.save(update_fields=["discount_enabled"])
    logger.info("Shop %s member discount set to %s", shop.pk, enabled)
    return shop


def member_discount_shops() -> QuerySet[Shop]:
    """
    Shops currently offering the DripClub member discount.

    Filters in the database on what can be expressed there; callers still
    apply the grace-period rule through ``offers_member_discount``.
    """
    return Shop.objects.filter(
        tier=ShopTier.PRO_PLUS,
        discount_enabled=True,
        subscription_status__in=[
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.TRIALING,
            SubscriptionStatus.PAST_DUE,
        ],
    ).order_by("name")
