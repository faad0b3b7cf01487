"""
Stripe webhook processing.

Stripe is the source of truth for subscription state; this module applies
its webhook events to shops and DripClub memberships.

Processing steps for each delivery:
1. Verify the Stripe-Signature header (shared secret, timestamp tolerance).
2. Skip events already in the ProcessedEvent ledger.
3. Claim the event id in the ledger and commit the claim.
4. Parse the payload into one of a fixed set of event types and apply it
   in its own transaction.

Key events handled:
- checkout.session.completed: activate the purchased tier
- customer.subscription.created / updated: sync status, period and flags
- customer.subscription.deleted: revert to the free tier
- invoice.payment_succeeded: back to active after a renewal
- invoice.payment_failed: flag past_due, keep the tier (grace period)

Anything else is logged and acknowledged. Events whose entity can't be found
are logged and acknowledged too: Stripe retrying them would not help.
Unexpected errors roll back the event's effects and surface as a 500. The
ledger row stays, so a redelivery of that event is acknowledged as a
duplicate instead of failing the same way again.

To test locally:
    stripe listen --forward-to localhost:8000/stripe/webhook/
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import stripe
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import transaction
from django.utils import timezone
from pydantic import ValidationError

from dripmap.billing import ledger
from dripmap.billing import prices
from dripmap.billing.constants import STRIPE_STATUS_MAP
from dripmap.billing.constants import BillingInterval
from dripmap.billing.constants import EntityType
from dripmap.billing.constants import MembershipTier
from dripmap.billing.constants import ShopTier
from dripmap.billing.constants import StripeEventType
from dripmap.billing.constants import SubscriptionStatus
from dripmap.billing.exceptions import BillingValidationError
from dripmap.billing.exceptions import WebhookSignatureError
from dripmap.billing.models import BillableModel
from dripmap.billing.models import DripClubMembership
from dripmap.billing.ownership import NotFound
from dripmap.billing.ownership import resolve_owner
from dripmap.billing.stripe_objects import BillingMetadata
from dripmap.billing.stripe_objects import StripeCheckoutSession
from dripmap.billing.stripe_objects import StripeEvent
from dripmap.billing.stripe_objects import StripeInvoice
from dripmap.billing.stripe_objects import StripeSubscription
from dripmap.shops.models import Shop
from dripmap.users.models import User

logger = logging.getLogger(__name__)


def map_stripe_status(stripe_status: str | None) -> str:
    """Map a Stripe subscription status to ours. Unknown values are INACTIVE."""
    return STRIPE_STATUS_MAP.get(stripe_status or "", SubscriptionStatus.INACTIVE)


# Event types
# ------------------------------------------------------------------------------


@dataclass(frozen=True)
class CheckoutCompleted:
    session: StripeCheckoutSession


@dataclass(frozen=True)
class SubscriptionChanged:
    """customer.subscription.created and customer.subscription.updated."""

    subscription: StripeSubscription


@dataclass(frozen=True)
class SubscriptionDeleted:
    subscription: StripeSubscription


@dataclass(frozen=True)
class InvoicePaid:
    invoice: StripeInvoice


@dataclass(frozen=True)
class InvoiceFailed:
    invoice: StripeInvoice


@dataclass(frozen=True)
class UnhandledEvent:
    event_type: str
    reason: str = "unrecognized event type"


WebhookEvent = (
    CheckoutCompleted
    | SubscriptionChanged
    | SubscriptionDeleted
    | InvoicePaid
    | InvoiceFailed
    | UnhandledEvent
)

# Stripe event type → (payload model, event class).
EVENT_TYPES = {
    StripeEventType.CHECKOUT_SESSION_COMPLETED: (
        StripeCheckoutSession,
        CheckoutCompleted,
    ),
    StripeEventType.SUBSCRIPTION_CREATED: (StripeSubscription, SubscriptionChanged),
    StripeEventType.SUBSCRIPTION_UPDATED: (StripeSubscription, SubscriptionChanged),
    StripeEventType.SUBSCRIPTION_DELETED: (StripeSubscription, SubscriptionDeleted),
    StripeEventType.INVOICE_PAYMENT_SUCCEEDED: (StripeInvoice, InvoicePaid),
    StripeEventType.INVOICE_PAYMENT_FAILED: (StripeInvoice, InvoiceFailed),
}


def parse_event(event: StripeEvent) -> WebhookEvent:
    """Turn a verified Stripe event into one of the event types above."""
    try:
        event_type = StripeEventType(event.type)
    except ValueError:
        return UnhandledEvent(event.type)

    payload_model, event_class = EVENT_TYPES[event_type]
    try:
        payload = payload_model.model_validate(event.data.object)
    except ValidationError as e:
        logger.warning("Malformed %s payload in event %s: %s", event.type, event.id, e)
        return UnhandledEvent(event.type, reason="malformed payload")
    return event_class(payload)


@dataclass
class WebhookResult:
    event_id: str
    event_type: str
    duplicate: bool = False
    handled: bool = False


class WebhookProcessor:
    """
    Verifies, deduplicates and applies Stripe webhook events.

    Usage:
        processor = WebhookProcessor()
        result = processor.handle(request.body, request.headers["Stripe-Signature"])
    """

    def __init__(self):
        """Initialize with Stripe API key from settings."""
        stripe.api_key = settings.STRIPE_SECRET_KEY
        self.handlers = {
            CheckoutCompleted: self.handle_checkout_completed,
            SubscriptionChanged: self.handle_subscription_changed,
            SubscriptionDeleted: self.handle_subscription_deleted,
            InvoicePaid: self.handle_invoice_paid,
            InvoiceFailed: self.handle_invoice_failed,
        }

    def construct_event(self, payload: bytes, signature: str | None) -> StripeEvent:
        """
        Verify the payload signature and parse the event envelope.

        Raises:
            WebhookSignatureError: missing or invalid signature, or a
                timestamp outside ``STRIPE_WEBHOOK_TOLERANCE`` seconds
            BillingValidationError: the payload is not a Stripe event
        """
        secret = settings.STRIPE_WEBHOOK_SECRET
        if not secret:
            msg = "STRIPE_WEBHOOK_SECRET is not configured"
            raise ImproperlyConfigured(msg)
        if not signature:
            msg = "Missing Stripe-Signature header."
            raise WebhookSignatureError(msg)

        try:
            stripe.Webhook.construct_event(
                payload,
                signature,
                secret,
                tolerance=settings.STRIPE_WEBHOOK_TOLERANCE,
            )
        except stripe.SignatureVerificationError as e:
            logger.warning("Stripe webhook signature verification failed: %s", e)
            raise WebhookSignatureError from e
        except ValueError as e:
            msg = "Invalid webhook payload."
            raise BillingValidationError(msg) from e

        try:
            return StripeEvent.model_validate_json(payload)
        except ValidationError as e:
            msg = "Invalid webhook payload."
            raise BillingValidationError(msg) from e

    def handle(self, payload: bytes, signature: str | None) -> WebhookResult:
        """Verify and apply one webhook delivery."""
        event = self.construct_event(payload, signature)

        if ledger.is_processed(event.id):
            logger.info("Duplicate Stripe event %s (%s)", event.id, event.type)
            return WebhookResult(event.id, event.type, duplicate=True)

        with transaction.atomic():
            claimed = ledger.claim_event(
                event.id,
                event.type,
                livemode=event.livemode,
                payload=event.data.object,
            )
        if not claimed:
            return WebhookResult(event.id, event.type, duplicate=True)

        with transaction.atomic():
            handled = self.dispatch(parse_event(event))

        return WebhookResult(event.id, event.type, handled=handled)

    def dispatch(self, event: WebhookEvent) -> bool:
        handler = self.handlers.get(type(event))
        if handler is None:
            logger.info(
                "Ignoring Stripe event %s: %s",
                event.event_type,
                event.reason,
            )
            return False
        return handler(event)

    # Handlers
    # --------------------------------------------------------------------------

    def handle_checkout_completed(self, event: CheckoutCompleted) -> bool:
        """
        Activate the tier purchased through Stripe Checkout.

        Attribution and tier come from the session metadata written by
        BillingService; the price catalog is only consulted when the
        metadata has no tier.
        """
        session = event.session
        if session.mode not in (None, "subscription"):
            logger.info("Ignoring %s checkout session %s", session.mode, session.id)
            return False

        entity = self._locate(
            session.metadata,
            subscription_id=session.subscription,
            customer_id=session.customer,
            create_membership=True,
        )
        if entity is None:
            logger.warning(
                "checkout.session.completed %s: no shop or membership found",
                session.id,
            )
            return False

        tier = self._checkout_tier(entity, session)
        if tier is None:
            logger.warning(
                "checkout.session.completed %s: could not determine tier for %s %s",
                session.id,
                entity.entity_type,
                entity.pk,
            )
            return False

        # A subscription.created event may have already recorded the trial.
        if (
            entity.subscription_status == SubscriptionStatus.TRIALING
            and entity.stripe_subscription_id == session.subscription
        ):
            status = SubscriptionStatus.TRIALING
        else:
            status = SubscriptionStatus.ACTIVE

        fields = entity.apply_status(status)
        entity.tier = tier
        entity.cancel_at_period_end = False
        fields += ["tier", "cancel_at_period_end"]
        fields += self._record_stripe_ids(
            entity,
            customer_id=session.customer,
            subscription_id=session.subscription,
        )
        if isinstance(entity, DripClubMembership):
            interval = session.metadata.billing_interval
            if interval in BillingInterval.values:
                entity.billing_interval = interval
            entity.current_period_start = timezone.now()
            fields += ["billing_interval", "current_period_start"]

        self._save(entity, fields)
        logger.info(
            "checkout.session.completed: %s %s now %s (%s)",
            entity.entity_type,
            entity.pk,
            entity.tier,
            entity.subscription_status,
        )
        return True

    def handle_subscription_changed(self, event: SubscriptionChanged) -> bool:
        """Sync status, period end and the pending-cancel flag."""
        subscription = event.subscription
        status = map_stripe_status(subscription.status)

        entity = self._locate(
            subscription.metadata,
            subscription_id=subscription.id,
            customer_id=subscription.customer,
        )
        if entity is None:
            logger.warning(
                "Subscription event: no shop or membership for %s",
                subscription.id,
            )
            return False
        if self._is_stale(entity, subscription.id):
            return False

        fields = entity.apply_status(status)
        if status != SubscriptionStatus.INACTIVE:
            entity.stripe_subscription_id = subscription.id
            fields.append("stripe_subscription_id")
        fields += self._record_stripe_ids(entity, customer_id=subscription.customer)

        entity.cancel_at_period_end = (
            subscription.cancel_at_period_end and status != SubscriptionStatus.CANCELED
        )
        fields.append("cancel_at_period_end")
        if subscription.period_end:
            entity.current_period_end = subscription.period_end
            fields.append("current_period_end")

        # Plan switches made in the Customer Portal only show up in the price.
        mapping = prices.resolve(subscription.price_id)
        if (
            mapping is not None
            and mapping.entity_type == entity.entity_type
            and status
            in (
                SubscriptionStatus.ACTIVE,
                SubscriptionStatus.TRIALING,
                SubscriptionStatus.PAST_DUE,
            )
        ):
            entity.tier = mapping.tier or MembershipTier.ACTIVE
            fields.append("tier")
            if isinstance(entity, DripClubMembership):
                entity.billing_interval = mapping.billing_interval
                fields.append("billing_interval")

        if isinstance(entity, DripClubMembership) and subscription.period_start:
            entity.current_period_start = subscription.period_start
            fields.append("current_period_start")

        self._save(entity, fields)
        logger.info(
            "Subscription %s for %s %s: stripe status=%s, status=%s",
            subscription.id,
            entity.entity_type,
            entity.pk,
            subscription.status,
            status,
        )
        return True

    def handle_subscription_deleted(self, event: SubscriptionDeleted) -> bool:
        """Revoke access when the subscription ends."""
        subscription = event.subscription
        entity = self._locate(
            subscription.metadata,
            subscription_id=subscription.id,
            customer_id=subscription.customer,
        )
        if entity is None:
            logger.warning(
                "customer.subscription.deleted: no shop or membership for %s",
                subscription.id,
            )
            return False
        if self._is_stale(entity, subscription.id):
            return False

        fields = entity.revert_to_free()
        entity.stripe_subscription_id = subscription.id
        fields.append("stripe_subscription_id")
        if entity.canceled_at is None:
            entity.canceled_at = timezone.now()
            fields.append("canceled_at")

        self._save(entity, fields)
        logger.info(
            "customer.subscription.deleted: %s %s reverted to %s",
            entity.entity_type,
            entity.pk,
            entity.tier,
        )
        return True

    def handle_invoice_paid(self, event: InvoicePaid) -> bool:
        """
        Mark the subscription active after a successful payment.

        The invoice doesn't carry the subscription's state, so the
        subscription is fetched from Stripe.
        """
        invoice = event.invoice
        subscription_id = invoice.subscription_id
        if not subscription_id:
            logger.debug("Invoice %s is not for a subscription", invoice.id)
            return False

        subscription = StripeSubscription.from_stripe(
            stripe.Subscription.retrieve(subscription_id),
        )
        entity = self._locate(
            subscription.metadata,
            subscription_id=subscription_id,
            customer_id=invoice.customer,
        )
        if entity is None:
            logger.warning(
                "invoice.payment_succeeded %s: no shop or membership for %s",
                invoice.id,
                subscription_id,
            )
            return False
        if self._is_stale(entity, subscription_id):
            return False

        # The $0 invoice that opens a trial is "paid" too.
        if subscription.status == "trialing":
            status = SubscriptionStatus.TRIALING
        else:
            status = SubscriptionStatus.ACTIVE
        fields = entity.apply_status(status)
        entity.stripe_subscription_id = subscription_id
        fields.append("stripe_subscription_id")
        if subscription.period_end:
            entity.current_period_end = subscription.period_end
            fields.append("current_period_end")
        if isinstance(entity, DripClubMembership) and subscription.period_start:
            entity.current_period_start = subscription.period_start
            fields.append("current_period_start")

        self._save(entity, fields)
        logger.info(
            "invoice.payment_succeeded: %s %s is %s until %s",
            entity.entity_type,
            entity.pk,
            entity.subscription_status,
            entity.current_period_end,
        )
        return True

    def handle_invoice_failed(self, event: InvoiceFailed) -> bool:
        """
        Flag the subscription past_due.

        The tier is left alone: the entity keeps its features during the
        grace period while Stripe retries the charge.
        """
        invoice = event.invoice
        subscription_id = invoice.subscription_id
        if not subscription_id:
            logger.debug("Invoice %s is not for a subscription", invoice.id)
            return False

        entity = self._locate(
            invoice.metadata,
            subscription_id=subscription_id,
            customer_id=invoice.customer,
        )
        if entity is None:
            subscription = StripeSubscription.from_stripe(
                stripe.Subscription.retrieve(subscription_id),
            )
            entity = self._locate(subscription.metadata)
        if entity is None:
            logger.warning(
                "invoice.payment_failed %s: no shop or membership for %s",
                invoice.id,
                subscription_id,
            )
            return False
        if self._is_stale(entity, subscription_id):
            return False

        fields = entity.apply_status(SubscriptionStatus.PAST_DUE)
        entity.stripe_subscription_id = subscription_id
        fields.append("stripe_subscription_id")
        self._save(entity, fields)
        logger.warning(
            "invoice.payment_failed: %s %s set to past_due (tier %s kept)",
            entity.entity_type,
            entity.pk,
            entity.tier,
        )
        return True

    # Helpers
    # --------------------------------------------------------------------------

    def _locate(
        self,
        metadata: BillingMetadata,
        *,
        subscription_id: str | None = None,
        customer_id: str | None = None,
        create_membership: bool = False,
    ) -> BillableModel | None:
        """
        Find and lock the entity an event is about.

        Order: the metadata's entity reference, then the subscription id,
        then the customer id.
        """
        ref = metadata.entity_ref()
        if ref is not None:
            entity = None
            if ref.entity_type == EntityType.SHOP:
                entity = Shop.objects.select_for_update().filter(pk=ref.entity_id).first()
            elif create_membership and User.objects.filter(pk=ref.entity_id).exists():
                entity, _ = DripClubMembership.objects.select_for_update().get_or_create(
                    user_id=ref.entity_id,
                )
            else:
                entity = (
                    DripClubMembership.objects.select_for_update()
                    .filter(user_id=ref.entity_id)
                    .first()
                )
            if entity is not None:
                return entity
            logger.warning(
                "Metadata refers to missing %s %s",
                ref.entity_type,
                ref.entity_id,
            )

        owner = NotFound()
        if subscription_id:
            owner = resolve_owner(subscription_id=subscription_id)
        if isinstance(owner, NotFound) and customer_id:
            owner = resolve_owner(customer_id=customer_id)
        if isinstance(owner, NotFound):
            return None

        model = type(owner.entity)
        return model.objects.select_for_update().get(pk=owner.entity.pk)

    def _checkout_tier(
        self,
        entity: BillableModel,
        session: StripeCheckoutSession,
    ) -> str | None:
        if entity.entity_type == EntityType.MEMBERSHIP:
            return MembershipTier.ACTIVE

        tier = session.metadata.tier
        if tier in (ShopTier.PRO, ShopTier.PRO_PLUS):
            return tier

        if not session.subscription:
            return None
        subscription = StripeSubscription.from_stripe(
            stripe.Subscription.retrieve(session.subscription),
        )
        mapping = prices.resolve(subscription.price_id)
        if mapping is None or mapping.entity_type != EntityType.SHOP:
            logger.warning(
                "Price %s is not in the shop price catalog",
                subscription.price_id,
            )
            return None
        return mapping.tier

    def _record_stripe_ids(
        self,
        entity: BillableModel,
        *,
        customer_id: str | None = None,
        subscription_id: str | None = None,
    ) -> list[str]:
        fields = []
        if customer_id and not entity.stripe_customer_id:
            entity.stripe_customer_id = customer_id
            fields.append("stripe_customer_id")
        elif customer_id and entity.stripe_customer_id != customer_id:
            logger.warning(
                "%s %s has customer %s, event refers to %s; keeping existing",
                entity.entity_type,
                entity.pk,
                entity.stripe_customer_id,
                customer_id,
            )
        if subscription_id:
            entity.stripe_subscription_id = subscription_id
            fields.append("stripe_subscription_id")
        return fields

    def _is_stale(self, entity: BillableModel, subscription_id: str) -> bool:
        """True if the entity is live on a different subscription than the event's."""
        if (
            not entity.stripe_subscription_id
            or entity.stripe_subscription_id == subscription_id
            or entity.subscription_status
            in (SubscriptionStatus.CANCELED, SubscriptionStatus.INACTIVE)
        ):
            return False
        logger.info(
            "Ignoring event for replaced subscription %s (%s %s is on %s)",
            subscription_id,
            entity.entity_type,
            entity.pk,
            entity.stripe_subscription_id,
        )
        return True

    def _save(self, entity: BillableModel, fields: list[str]) -> None:
        entity.save(update_fields=sorted(set(fields)))
